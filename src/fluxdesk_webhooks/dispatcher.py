"""Background webhook dispatcher (polls the job queue and runs delivery attempts)."""
from __future__ import annotations

import asyncio

import structlog
from aiohttp import web

from fluxdesk_webhooks.domain.models import DeliveryJob
from fluxdesk_webhooks.repositories.jobs import DeliveryJobRepository
from fluxdesk_webhooks.services.delivery import DeliveryPipeline
from fluxdesk_webhooks.services.dependencies import (
    COMPONENTS_KEY,
    HTTP_SESSION_KEY,
    build_delivery_pipeline,
)
from fluxdesk_webhooks.settings import settings

logger = structlog.get_logger(__name__)

_DISPATCHER_TASK_KEY = "webhook_dispatcher_task"


class WebhookDispatcher:
    def __init__(
        self,
        jobs: DeliveryJobRepository,
        pipeline: DeliveryPipeline,
        *,
        batch_size: int = 50,
        max_concurrency: int = 10,
    ):
        self._jobs = jobs
        self._pipeline = pipeline
        self._batch_size = batch_size
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def run_once(self) -> int:
        """Claim one batch of due jobs and attempt them; returns the batch size."""
        due = await self._jobs.claim_due(limit=self._batch_size)
        if due:
            await asyncio.gather(*(self._process(job) for job in due))
        return len(due)

    async def _process(self, job: DeliveryJob) -> None:
        async with self._semaphore:
            try:
                await self._pipeline.process(job)
            except Exception:
                # Job stays in attempting until the reclaim task hands it back.
                logger.exception("webhook dispatch failed", job_id=str(job.id))


async def _dispatcher_loop(app: web.Application) -> None:
    components = app[COMPONENTS_KEY]
    dispatcher = WebhookDispatcher(
        components.jobs,
        build_delivery_pipeline(components, app[HTTP_SESSION_KEY]),
        batch_size=settings.webhook_dispatch_batch_size,
        max_concurrency=settings.webhook_dispatch_max_concurrency,
    )
    logger.info("webhook dispatcher started")

    while True:
        try:
            try:
                processed = await dispatcher.run_once()
            except Exception:
                logger.exception("webhook dispatcher poll failed")
                processed = 0
            if not processed:
                await asyncio.sleep(settings.webhook_dispatch_interval_seconds)
        except asyncio.CancelledError:
            logger.info("webhook dispatcher stopped")
            raise


async def start_webhook_dispatcher(app: web.Application) -> None:
    app[_DISPATCHER_TASK_KEY] = asyncio.create_task(_dispatcher_loop(app))


async def stop_webhook_dispatcher(app: web.Application) -> None:
    task = app.get(_DISPATCHER_TASK_KEY)
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
