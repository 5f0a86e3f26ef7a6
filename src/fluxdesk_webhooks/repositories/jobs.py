"""Delivery job queue (outbox table polled by the dispatcher)."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.domain.models import DeliveryJob, DeliveryState
from fluxdesk_webhooks.repositories.base import BaseRepository

_FINISHED_STATES = [
    DeliveryState.DELIVERED.value,
    DeliveryState.EXHAUSTED.value,
    DeliveryState.CANCELLED.value,
]


class DeliveryJobRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> DeliveryJob:
        payload = dict(record)
        value = payload.get("data")
        if isinstance(value, str):
            payload["data"] = json.loads(value)
        return DeliveryJob.model_validate(payload)

    async def enqueue(
        self,
        *,
        webhook_id: UUID,
        tenant_id: UUID,
        event_type: WebhookEvent,
        data: dict[str, Any],
    ) -> DeliveryJob:
        record = await self._fetchrow(
            """
            INSERT INTO webhook_delivery_jobs (
                webhook_id, tenant_id, event_type, data, attempt, state, not_before
            )
            VALUES ($1, $2, $3, $4::jsonb, 0, 'pending', now())
            RETURNING *
            """,
            webhook_id,
            tenant_id,
            WebhookEvent(event_type).value,
            json.dumps(data, ensure_ascii=False),
        )
        assert record is not None
        return self._to_model(record)

    async def claim_due(self, *, limit: int = 50) -> List[DeliveryJob]:
        """
        Atomically claim due jobs for processing.

        Uses row-level locking (FOR UPDATE SKIP LOCKED) so multiple dispatchers
        won't process the same job concurrently. A claimed job stays invisible
        to other claims until its attempt has been recorded.

        Side-effects:
          - state -> attempting
          - locked_at -> now()
          - attempt += 1
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                records = await conn.fetch(
                    """
                    WITH cte AS (
                        SELECT id
                        FROM webhook_delivery_jobs
                        WHERE state IN ('pending', 'retry_scheduled')
                          AND not_before <= now()
                        ORDER BY not_before ASC, created_at ASC
                        FOR UPDATE SKIP LOCKED
                        LIMIT $1
                    )
                    UPDATE webhook_delivery_jobs j
                    SET state = 'attempting',
                        locked_at = now(),
                        attempt = j.attempt + 1,
                        updated_at = now()
                    FROM cte
                    WHERE j.id = cte.id
                    RETURNING j.*
                    """,
                    limit,
                )
        return [self._to_model(r) for r in records]

    async def finish_attempt(
        self,
        job_id: UUID,
        *,
        state: DeliveryState,
        not_before: datetime | None,
        last_error: str | None,
    ) -> None:
        # No-op when the job was cascaded away with its webhook.
        await self._execute(
            """
            UPDATE webhook_delivery_jobs
            SET state = $2,
                last_error = $3,
                locked_at = NULL,
                not_before = COALESCE($4, not_before),
                updated_at = now()
            WHERE id = $1
            """,
            job_id,
            DeliveryState(state).value,
            last_error,
            not_before,
        )

    async def reclaim_stuck(self, locked_before: datetime) -> int:
        """Release jobs stuck in ``attempting`` (e.g. after crash).

        The interrupted attempt is given back so the ordinal stays gapless in
        the ledger.
        """
        result = await self._execute(
            """
            UPDATE webhook_delivery_jobs
            SET state = CASE WHEN attempt > 1 THEN 'retry_scheduled' ELSE 'pending' END,
                attempt = GREATEST(attempt - 1, 0),
                locked_at = NULL,
                not_before = now(),
                updated_at = now()
            WHERE state = 'attempting'
              AND locked_at < $1
            """,
            locked_before,
        )
        return self._affected_rows(result)

    async def delete_finished(self, updated_before: datetime) -> int:
        """Purge finished jobs older than *updated_before*. The ledger keeps the history."""
        result = await self._execute(
            """
            DELETE FROM webhook_delivery_jobs
            WHERE state = ANY($1::text[])
              AND updated_at < $2
            """,
            _FINISHED_STATES,
            updated_before,
        )
        return self._affected_rows(result)
