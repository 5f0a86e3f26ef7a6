"""Canonical webhook envelope."""
from __future__ import annotations

import json
import time
from typing import Any
from uuid import UUID

from fluxdesk_webhooks.domain.events import WebhookEvent


def build_payload(
    event: WebhookEvent,
    data: dict[str, Any],
    webhook_id: UUID,
    *,
    timestamp: int | None = None,
) -> dict[str, Any]:
    """Wrap event data into the envelope sent to every endpoint."""
    return {
        "event": WebhookEvent(event).value,
        "timestamp": int(time.time()) if timestamp is None else timestamp,
        "webhook_id": str(webhook_id),
        "data": data,
    }


def canonical_json(envelope: dict[str, Any]) -> bytes:
    # Key order is insertion order; slashes and non-ASCII are left unescaped.
    return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
