from __future__ import annotations

import asyncio
import uuid
from unittest.mock import AsyncMock

import pytest

from fluxdesk_webhooks.dispatcher import WebhookDispatcher
from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.domain.models import DeliveryState


@pytest.mark.asyncio
async def test_run_once_delivers_due_jobs(pipeline, registry, job_repo, store, receiver, tenant_id):
    await registry.create(tenant_id, name="A", url=receiver.url, events=["ticket.created"])
    await registry.create(tenant_id, name="B", url=receiver.url, events=["ticket.created"])
    await pipeline.emit(tenant_id, WebhookEvent.TICKET_CREATED, {"n": 1})

    dispatcher = WebhookDispatcher(job_repo, pipeline)
    assert await dispatcher.run_once() == 2

    assert len(receiver.requests) == 2
    assert {j.state for j in store.jobs.values()} == {DeliveryState.DELIVERED}
    assert await dispatcher.run_once() == 0


@pytest.mark.asyncio
async def test_concurrency_is_bounded(job_repo, tenant_id):
    for _ in range(6):
        await job_repo.enqueue(
            webhook_id=uuid.uuid4(), tenant_id=tenant_id, event_type=WebhookEvent.TICKET_CREATED, data={}
        )

    running = 0
    peak = 0

    async def slow_process(job):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    pipeline = AsyncMock()
    pipeline.process = AsyncMock(side_effect=slow_process)
    dispatcher = WebhookDispatcher(job_repo, pipeline, max_concurrency=2)

    assert await dispatcher.run_once() == 6
    assert peak == 2


@pytest.mark.asyncio
async def test_failing_job_does_not_break_the_batch(job_repo, tenant_id):
    for _ in range(3):
        await job_repo.enqueue(
            webhook_id=uuid.uuid4(), tenant_id=tenant_id, event_type=WebhookEvent.TICKET_CREATED, data={}
        )
    pipeline = AsyncMock()
    pipeline.process = AsyncMock(side_effect=[RuntimeError("db down"), None, None])

    dispatcher = WebhookDispatcher(job_repo, pipeline)
    assert await dispatcher.run_once() == 3
    assert pipeline.process.await_count == 3
