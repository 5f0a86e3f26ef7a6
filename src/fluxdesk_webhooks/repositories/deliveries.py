"""Delivery ledger repository (append-only)."""
from __future__ import annotations

import json
from typing import Any, List, Tuple
from uuid import UUID

import asyncpg  # type: ignore[import-untyped]
from asyncpg import Pool, Record  # type: ignore[import-untyped]

from fluxdesk_webhooks.core.exceptions import NotFoundError
from fluxdesk_webhooks.domain.models import DeliveryOutcome, DeliveryRecord
from fluxdesk_webhooks.repositories.base import BaseRepository


class WebhookDeliveryRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _normalize(payload: dict[str, Any]) -> dict[str, Any]:
        # jsonb does not keep key order; the stored body does.
        payload["payload"] = json.loads(payload["body"])
        return payload

    @classmethod
    def _to_model(cls, record: Record | dict[str, Any]) -> DeliveryRecord:
        return DeliveryRecord.model_validate(cls._normalize(dict(record)))

    async def append(
        self,
        *,
        webhook_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        body: str,
        attempt: int,
        outcome: DeliveryOutcome,
    ) -> DeliveryRecord:
        try:
            record = await self._fetchrow(
                """
                INSERT INTO webhook_deliveries (
                    webhook_id,
                    event_type,
                    payload,
                    body,
                    attempt,
                    success,
                    response_status,
                    response_body,
                    error,
                    duration_ms
                )
                VALUES ($1, $2, $3::jsonb, $4, $5, $6, $7, $8, $9, $10)
                RETURNING *
                """,
                webhook_id,
                event_type,
                json.dumps(payload, ensure_ascii=False),
                body,
                attempt,
                outcome.success,
                outcome.status_code,
                outcome.response_body,
                outcome.error,
                outcome.duration_ms,
            )
        except asyncpg.exceptions.ForeignKeyViolationError as exc:
            raise NotFoundError("Webhook not found") from exc
        assert record is not None
        return self._to_model(record)

    async def list_for_webhook(
        self, webhook_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> Tuple[List[DeliveryRecord], int]:
        records = await self._fetch(
            """
            SELECT *,
                   COUNT(*) OVER() AS total_count
            FROM webhook_deliveries
            WHERE webhook_id = $1
            ORDER BY created_at DESC, seq DESC
            LIMIT $2 OFFSET $3
            """,
            webhook_id,
            limit,
            offset,
        )
        rows, total = self._split_total(records)
        if total is None:
            record = await self._fetchrow(
                "SELECT COUNT(*) AS total FROM webhook_deliveries WHERE webhook_id = $1",
                webhook_id,
            )
            total = int(record["total"]) if record else 0
        return [self._to_model(row) for row in rows], total
