"""Per-tenant webhook registrations and event matching."""
from __future__ import annotations

from typing import Any, List
from uuid import UUID

import structlog
from pydantic import ValidationError

from fluxdesk_webhooks.core.exceptions import WebhookValidationError
from fluxdesk_webhooks.domain.dto import WebhookCreateDTO, WebhookUpdateDTO
from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.domain.models import Webhook
from fluxdesk_webhooks.repositories.webhooks import WebhookRepository
from fluxdesk_webhooks.services.secret_manager import SecretManager

logger = structlog.get_logger(__name__)


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class SubscriptionRegistry:
    def __init__(
        self,
        repository: WebhookRepository,
        secret_manager: SecretManager,
        *,
        require_https: bool = True,
    ):
        self._repository = repository
        self._secrets = secret_manager
        self._require_https = require_https

    def _check_scheme(self, url: str) -> None:
        if self._require_https and not url.lower().startswith("https://"):
            raise WebhookValidationError("url: webhook URLs must use https://")

    async def find_subscribers(self, tenant_id: UUID, event: WebhookEvent) -> List[Webhook]:
        """Active webhooks of the tenant subscribed to *event*."""
        webhooks = await self._repository.list_active_subscribers(tenant_id, event)
        return [w for w in webhooks if w.is_active and w.subscribes_to(event)]

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
        """Register a webhook. The plaintext secret is returned here only."""
        fields: dict[str, Any] = {"name": name, "url": url, "events": events, "description": description}
        if format is not None:
            fields["format"] = format
        try:
            dto = WebhookCreateDTO.model_validate(fields)
        except ValidationError as exc:
            raise WebhookValidationError(_validation_message(exc)) from exc
        self._check_scheme(dto.url)

        plaintext, sealed = self._secrets.generate()
        webhook = await self._repository.create(
            tenant_id=tenant_id,
            name=dto.name,
            url=dto.url,
            events=dto.events,
            format=dto.format,
            description=dto.description,
            secret_ciphertext=sealed,
        )
        logger.info(
            "webhook created",
            webhook_id=str(webhook.id),
            tenant_id=str(tenant_id),
            events=[e.value for e in webhook.events],
        )
        return webhook, plaintext

    async def update(self, tenant_id: UUID, webhook_id: UUID, fields: dict[str, Any]) -> Webhook:
        try:
            dto = WebhookUpdateDTO.model_validate(fields)
        except ValidationError as exc:
            raise WebhookValidationError(_validation_message(exc)) from exc
        changes = dto.changes()
        if "url" in changes:
            self._check_scheme(changes["url"])
        webhook = await self._repository.update(tenant_id, webhook_id, changes)
        logger.info("webhook updated", webhook_id=str(webhook_id), fields=sorted(changes))
        return webhook

    async def delete(self, tenant_id: UUID, webhook_id: UUID) -> None:
        await self._repository.delete(tenant_id, webhook_id)
        logger.info("webhook deleted", webhook_id=str(webhook_id), tenant_id=str(tenant_id))

    async def toggle_active(self, tenant_id: UUID, webhook_id: UUID) -> Webhook:
        webhook = await self._repository.toggle_active(tenant_id, webhook_id)
        logger.info("webhook toggled", webhook_id=str(webhook_id), is_active=webhook.is_active)
        return webhook

    async def get(self, tenant_id: UUID, webhook_id: UUID) -> Webhook:
        return await self._repository.get(tenant_id, webhook_id)

    async def list(
        self, tenant_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> tuple[List[Webhook], int]:
        return await self._repository.list_by_tenant(tenant_id, limit=limit, offset=offset)
