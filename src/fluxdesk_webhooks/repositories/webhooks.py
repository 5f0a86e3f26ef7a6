"""Webhook endpoint repository."""
from __future__ import annotations

from typing import Any, List, Tuple
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from fluxdesk_webhooks.core.exceptions import NotFoundError
from fluxdesk_webhooks.domain.events import WebhookEvent, WebhookFormat
from fluxdesk_webhooks.domain.models import Webhook
from fluxdesk_webhooks.repositories.base import BaseRepository

_UPDATABLE_COLUMNS = ("name", "url", "events", "format", "description")


class WebhookRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record | dict[str, Any]) -> Webhook:
        return Webhook.model_validate(dict(record))

    @staticmethod
    def _column_value(column: str, value: Any) -> Any:
        if column == "events":
            return [WebhookEvent(e).value for e in value]
        if column == "format":
            return WebhookFormat(value).value
        return value

    async def create(
        self,
        *,
        tenant_id: UUID,
        name: str,
        url: str,
        events: list[WebhookEvent],
        format: WebhookFormat,
        description: str | None,
        secret_ciphertext: str,
    ) -> Webhook:
        record = await self._fetchrow(
            """
            INSERT INTO webhooks (
                tenant_id, name, url, secret_ciphertext, events, format, description,
                is_active, auto_disabled, failure_count
            )
            VALUES ($1, $2, $3, $4, $5::text[], $6, $7, true, false, 0)
            RETURNING *
            """,
            tenant_id,
            name,
            url,
            secret_ciphertext,
            self._column_value("events", events),
            self._column_value("format", format),
            description,
        )
        assert record is not None
        return self._to_model(record)

    async def get(self, tenant_id: UUID, webhook_id: UUID) -> Webhook:
        record = await self._fetchrow(
            "SELECT * FROM webhooks WHERE tenant_id = $1 AND id = $2",
            tenant_id,
            webhook_id,
        )
        if record is None:
            raise NotFoundError("Webhook not found")
        return self._to_model(record)

    async def get_by_id(self, webhook_id: UUID) -> Webhook | None:
        record = await self._fetchrow("SELECT * FROM webhooks WHERE id = $1", webhook_id)
        return self._to_model(record) if record is not None else None

    async def list_by_tenant(
        self, tenant_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> Tuple[List[Webhook], int]:
        records = await self._fetch(
            """
            SELECT *,
                   COUNT(*) OVER() AS total_count
            FROM webhooks
            WHERE tenant_id = $1
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3
            """,
            tenant_id,
            limit,
            offset,
        )
        rows, total = self._split_total(records)
        if total is None:
            total = await self._count_by_tenant(tenant_id)
        return [self._to_model(row) for row in rows], total

    async def _count_by_tenant(self, tenant_id: UUID) -> int:
        record = await self._fetchrow(
            "SELECT COUNT(*) AS total FROM webhooks WHERE tenant_id = $1",
            tenant_id,
        )
        return int(record["total"]) if record else 0

    async def update(self, tenant_id: UUID, webhook_id: UUID, changes: dict[str, Any]) -> Webhook:
        assignments: list[str] = []
        values: list[Any] = [tenant_id, webhook_id]
        idx = 3
        for column in _UPDATABLE_COLUMNS:
            if column not in changes:
                continue
            cast = "::text[]" if column == "events" else ""
            assignments.append(f"{column} = ${idx}{cast}")
            values.append(self._column_value(column, changes[column]))
            idx += 1
        if not assignments:
            return await self.get(tenant_id, webhook_id)
        set_sql = ", ".join([*assignments, "updated_at = now()"])
        record = await self._fetchrow(
            f"""
            UPDATE webhooks
            SET {set_sql}
            WHERE tenant_id = $1 AND id = $2
            RETURNING *
            """,
            *values,
        )
        if record is None:
            raise NotFoundError("Webhook not found")
        return self._to_model(record)

    async def delete(self, tenant_id: UUID, webhook_id: UUID) -> None:
        # Delivery records and queued jobs go with it (ON DELETE CASCADE).
        record = await self._fetchrow(
            """
            DELETE FROM webhooks
            WHERE tenant_id = $1 AND id = $2
            RETURNING id
            """,
            tenant_id,
            webhook_id,
        )
        if record is None:
            raise NotFoundError("Webhook not found")

    async def toggle_active(self, tenant_id: UUID, webhook_id: UUID) -> Webhook:
        # Right-hand sides see the pre-update row.
        record = await self._fetchrow(
            """
            UPDATE webhooks
            SET is_active = NOT is_active,
                auto_disabled = false,
                failure_count = CASE WHEN is_active THEN failure_count ELSE 0 END,
                updated_at = now()
            WHERE tenant_id = $1 AND id = $2
            RETURNING *
            """,
            tenant_id,
            webhook_id,
        )
        if record is None:
            raise NotFoundError("Webhook not found")
        return self._to_model(record)

    async def replace_secret(self, tenant_id: UUID, webhook_id: UUID, secret_ciphertext: str) -> Webhook:
        record = await self._fetchrow(
            """
            UPDATE webhooks
            SET secret_ciphertext = $3,
                updated_at = now()
            WHERE tenant_id = $1 AND id = $2
            RETURNING *
            """,
            tenant_id,
            webhook_id,
            secret_ciphertext,
        )
        if record is None:
            raise NotFoundError("Webhook not found")
        return self._to_model(record)

    async def list_active_subscribers(self, tenant_id: UUID, event: WebhookEvent) -> List[Webhook]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhooks
            WHERE tenant_id = $1
              AND is_active = true
              AND $2 = ANY(events)
            ORDER BY created_at ASC
            """,
            tenant_id,
            WebhookEvent(event).value,
        )
        return [self._to_model(r) for r in records]

    async def compare_and_set_health(self, expected: Webhook, updated: Webhook) -> bool:
        """Write the health fields of *updated* only if the row still matches *expected*."""
        record = await self._fetchrow(
            """
            UPDATE webhooks
            SET failure_count = $5,
                is_active = $6,
                auto_disabled = $7,
                last_triggered_at = $8,
                updated_at = now()
            WHERE id = $1
              AND failure_count = $2
              AND is_active = $3
              AND auto_disabled = $4
            RETURNING id
            """,
            expected.id,
            expected.failure_count,
            expected.is_active,
            expected.auto_disabled,
            updated.failure_count,
            updated.is_active,
            updated.auto_disabled,
            updated.last_triggered_at,
        )
        return record is not None
