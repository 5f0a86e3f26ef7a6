"""Per-webhook consecutive failure tracking and auto-disable."""
from __future__ import annotations

from typing import Callable
from uuid import UUID

import structlog

from fluxdesk_webhooks.core.exceptions import ConcurrentUpdateError
from fluxdesk_webhooks.domain.models import Webhook
from fluxdesk_webhooks.repositories.webhooks import WebhookRepository

logger = structlog.get_logger(__name__)

DEFAULT_FAILURE_THRESHOLD = 10
_MAX_CAS_ROUNDS = 8


class CircuitBreaker:
    def __init__(self, repository: WebhookRepository, *, threshold: int = DEFAULT_FAILURE_THRESHOLD):
        self._repository = repository
        self.threshold = threshold

    def should_auto_disable(self, failure_count: int) -> bool:
        return failure_count >= self.threshold

    async def increment_failure_count(self, webhook_id: UUID) -> Webhook | None:
        result = await self._apply(webhook_id, lambda w: w.with_failure_recorded(self.threshold))
        if result is None:
            return None
        before, after = result
        if before.is_active and not after.is_active:
            logger.warning(
                "webhook auto-disabled",
                webhook_id=str(webhook_id),
                failure_count=after.failure_count,
            )
        return after

    async def reset_failure_count(self, webhook_id: UUID) -> Webhook | None:
        result = await self._apply(webhook_id, lambda w: w.with_failures_reset())
        return result[1] if result is not None else None

    async def _apply(
        self, webhook_id: UUID, change: Callable[[Webhook], Webhook]
    ) -> tuple[Webhook, Webhook] | None:
        """Compare-and-swap loop; ``None`` when the webhook no longer exists."""
        for _ in range(_MAX_CAS_ROUNDS):
            current = await self._repository.get_by_id(webhook_id)
            if current is None:
                return None
            updated = change(current)
            if await self._repository.compare_and_set_health(current, updated):
                return current, updated
        raise ConcurrentUpdateError(f"Failure counter of webhook {webhook_id} kept changing")
