"""Delivery ledger: the audit trail of every attempt."""
from __future__ import annotations

from typing import Any, List
from uuid import UUID

from fluxdesk_webhooks.domain.models import DeliveryOutcome, DeliveryRecord
from fluxdesk_webhooks.repositories.deliveries import WebhookDeliveryRepository
from fluxdesk_webhooks.services.payload import canonical_json


class DeliveryLedger:
    """Append and read only. Records disappear solely with their webhook."""

    def __init__(self, repository: WebhookDeliveryRepository):
        self._repository = repository

    async def append(
        self,
        webhook_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        attempt: int,
        outcome: DeliveryOutcome,
    ) -> DeliveryRecord:
        """Record one attempt. *payload* is stored along with its exact canonical body."""
        return await self._repository.append(
            webhook_id=webhook_id,
            event_type=event_type,
            payload=payload,
            body=canonical_json(payload).decode("utf-8"),
            attempt=attempt,
            outcome=outcome,
        )

    async def list_for(
        self, webhook_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> tuple[List[DeliveryRecord], int]:
        """Newest first."""
        return await self._repository.list_for_webhook(webhook_id, limit=limit, offset=offset)
