"""Webhook domain service (management operations + emitting events)."""
from __future__ import annotations

from typing import Any, List
from uuid import UUID

from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.domain.models import DeliveryJob, DeliveryOutcome, DeliveryRecord, Webhook
from fluxdesk_webhooks.services.delivery import DeliveryPipeline
from fluxdesk_webhooks.services.ledger import DeliveryLedger
from fluxdesk_webhooks.services.registry import SubscriptionRegistry
from fluxdesk_webhooks.services.secret_manager import SecretManager
from fluxdesk_webhooks.services.tester import TEST_EVENT, WebhookTester


class WebhookService:
    def __init__(
        self,
        registry: SubscriptionRegistry,
        secrets: SecretManager,
        ledger: DeliveryLedger,
        tester: WebhookTester,
        pipeline: DeliveryPipeline,
    ):
        self._registry = registry
        self._secrets = secrets
        self._ledger = ledger
        self._tester = tester
        self._pipeline = pipeline

    async def create(
        self,
        tenant_id: UUID,
        *,
        name: str,
        url: str,
        events: list[str],
        description: str | None = None,
        format: str | None = None,
    ) -> tuple[Webhook, str]:
        return await self._registry.create(
            tenant_id,
            name=name,
            url=url,
            events=events,
            description=description,
            format=format,
        )

    async def get(self, tenant_id: UUID, webhook_id: UUID) -> Webhook:
        return await self._registry.get(tenant_id, webhook_id)

    async def list_webhooks(
        self, tenant_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> tuple[List[Webhook], int]:
        return await self._registry.list(tenant_id, limit=limit, offset=offset)

    async def update(self, tenant_id: UUID, webhook_id: UUID, fields: dict[str, Any]) -> Webhook:
        return await self._registry.update(tenant_id, webhook_id, fields)

    async def delete(self, tenant_id: UUID, webhook_id: UUID) -> None:
        await self._registry.delete(tenant_id, webhook_id)

    async def toggle_active(self, tenant_id: UUID, webhook_id: UUID) -> Webhook:
        return await self._registry.toggle_active(tenant_id, webhook_id)

    async def regenerate_secret(self, tenant_id: UUID, webhook_id: UUID) -> tuple[Webhook, str]:
        webhook = await self._registry.get(tenant_id, webhook_id)
        return await self._secrets.rotate(webhook)

    async def reveal_secret(self, tenant_id: UUID, webhook_id: UUID, *, role: str | None) -> str:
        webhook = await self._registry.get(tenant_id, webhook_id)
        return self._secrets.reveal(webhook, role=role)

    async def list_deliveries(
        self, tenant_id: UUID, webhook_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> tuple[List[DeliveryRecord], int]:
        # Tenant check before touching the ledger.
        await self._registry.get(tenant_id, webhook_id)
        return await self._ledger.list_for(webhook_id, limit=limit, offset=offset)

    async def send_test(self, tenant_id: UUID, webhook_id: UUID) -> DeliveryOutcome:
        """Send the sample event once and log it as attempt 1. Failure counters are untouched."""
        webhook = await self._registry.get(tenant_id, webhook_id)
        outcome, envelope = await self._tester.send_test(webhook)
        await self._ledger.append(webhook.id, TEST_EVENT.value, envelope, 1, outcome)
        return outcome

    async def emit(self, tenant_id: UUID, event: WebhookEvent, data: dict[str, Any]) -> List[DeliveryJob]:
        return await self._pipeline.emit(tenant_id, event, data)
