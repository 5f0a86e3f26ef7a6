"""HMAC-SHA256 payload signatures."""
from __future__ import annotations

import hmac
from hashlib import sha256
from typing import Any

from fluxdesk_webhooks.services.payload import canonical_json

SIGNATURE_PREFIX = "sha256="


def sign(body: bytes | dict[str, Any], secret: str) -> str:
    """Return ``sha256=<hex>`` over the canonical body."""
    body_bytes = canonical_json(body) if isinstance(body, dict) else body
    digest = hmac.new(secret.encode("utf-8"), body_bytes, sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, secret: str, signature: str) -> bool:
    """Receiver-side check over the raw request body, in constant time."""
    return hmac.compare_digest(sign(body, secret), signature)
