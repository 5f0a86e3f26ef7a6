"""Event fan-out and per-job delivery."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, List
from uuid import UUID

import structlog

from fluxdesk_webhooks.core.exceptions import (
    InvalidStatusTransitionError,
    NotFoundError,
    SecretStoreError,
)
from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.domain.models import (
    DeliveryJob,
    DeliveryOutcome,
    DeliveryRecord,
    DeliveryState,
    Webhook,
)
from fluxdesk_webhooks.repositories.jobs import DeliveryJobRepository
from fluxdesk_webhooks.repositories.webhooks import WebhookRepository
from fluxdesk_webhooks.services.circuit_breaker import CircuitBreaker
from fluxdesk_webhooks.services.executor import DeliveryExecutor, DeliveryRequest
from fluxdesk_webhooks.services.ledger import DeliveryLedger
from fluxdesk_webhooks.services.payload import build_payload, canonical_json
from fluxdesk_webhooks.services.registry import SubscriptionRegistry
from fluxdesk_webhooks.services.retry import BreakerSignal, RetryScheduler, validate_delivery_transition
from fluxdesk_webhooks.services.secret_manager import SecretManager
from fluxdesk_webhooks.services.signing import sign

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryPipeline:
    """Registry → queue on the way in; payload → sign → send → ledger → retry → breaker per job."""

    def __init__(
        self,
        *,
        registry: SubscriptionRegistry,
        webhooks: WebhookRepository,
        jobs: DeliveryJobRepository,
        ledger: DeliveryLedger,
        secrets: SecretManager,
        executor: DeliveryExecutor,
        scheduler: RetryScheduler,
        breaker: CircuitBreaker,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._registry = registry
        self._webhooks = webhooks
        self._jobs = jobs
        self._ledger = ledger
        self._secrets = secrets
        self._executor = executor
        self._scheduler = scheduler
        self._breaker = breaker
        self._clock = clock

    async def emit(self, tenant_id: UUID, event: WebhookEvent, data: dict[str, Any]) -> List[DeliveryJob]:
        """Queue one job per active subscriber. Never waits on HTTP."""
        event = WebhookEvent(event)
        subscribers = await self._registry.find_subscribers(tenant_id, event)
        jobs: List[DeliveryJob] = []
        for webhook in subscribers:
            job = await self._jobs.enqueue(
                webhook_id=webhook.id,
                tenant_id=tenant_id,
                event_type=event,
                data=data,
            )
            jobs.append(job)
        logger.info(
            "event emitted",
            tenant_id=str(tenant_id),
            event_type=event.value,
            enqueued=len(jobs),
        )
        return jobs

    async def process(self, job: DeliveryJob) -> DeliveryRecord | None:
        """Run one claimed attempt of *job*; returns the ledger entry it produced."""
        log = logger.bind(job_id=str(job.id), webhook_id=str(job.webhook_id), event_type=job.event_type.value)

        webhook = await self._webhooks.get_by_id(job.webhook_id)
        if webhook is None:
            log.info("webhook skipped", reason="deleted")
            return None
        if not webhook.is_active:
            await self._finish(job, DeliveryState.CANCELLED, None, "Webhook is disabled")
            log.info("webhook skipped", reason="disabled", auto_disabled=webhook.auto_disabled)
            return None

        if job.state is not DeliveryState.ATTEMPTING:
            raise InvalidStatusTransitionError(
                f"Job {job.id} is {job.state.value}; only claimed jobs can be attempted"
            )

        now = self._clock()
        envelope = build_payload(job.event_type, job.data, webhook.id, timestamp=int(now.timestamp()))
        outcome = await self._attempt(webhook, job, envelope)

        try:
            record = await self._ledger.append(
                webhook.id, job.event_type.value, envelope, job.attempt, outcome
            )
        except NotFoundError:
            log.info("webhook skipped", reason="deleted during delivery")
            return None

        decision = self._scheduler.decide(job.attempt, outcome, now)
        await self._finish(job, decision.state, decision.not_before, outcome.error)

        if decision.signal is BreakerSignal.RESET:
            await self._breaker.reset_failure_count(webhook.id)
        elif decision.signal is BreakerSignal.FAILURE:
            await self._breaker.increment_failure_count(webhook.id)

        if outcome.success:
            log.info(
                "webhook delivered",
                attempt=job.attempt,
                status_code=outcome.status_code,
                duration_ms=outcome.duration_ms,
            )
        elif decision.state is DeliveryState.EXHAUSTED:
            log.warning("webhook delivery exhausted", attempt=job.attempt, error=outcome.error)
        else:
            log.warning(
                "webhook delivery failed",
                attempt=job.attempt,
                error=outcome.error,
                retry_at=decision.not_before.isoformat() if decision.not_before else None,
            )
        return record

    async def _finish(
        self,
        job: DeliveryJob,
        state: DeliveryState,
        not_before: datetime | None,
        last_error: str | None,
    ) -> None:
        validate_delivery_transition(job.state, state)
        await self._jobs.finish_attempt(job.id, state=state, not_before=not_before, last_error=last_error)

    async def _attempt(self, webhook: Webhook, job: DeliveryJob, envelope: dict[str, Any]) -> DeliveryOutcome:
        try:
            secret = self._secrets.signing_key(webhook)
        except SecretStoreError as exc:
            return DeliveryOutcome(success=False, error=str(exc))
        body = canonical_json(envelope)
        request = DeliveryRequest(
            url=webhook.url,
            body=body,
            signature=sign(body, secret),
            event=job.event_type,
            timestamp=envelope["timestamp"],
            attempt=job.attempt,
        )
        return await self._executor.execute(request)
