"""Worker: purge finished delivery jobs."""
from __future__ import annotations

from datetime import datetime, timedelta

from fluxdesk_webhooks.db.pool import get_pool
from fluxdesk_webhooks.repositories.jobs import DeliveryJobRepository
from fluxdesk_webhooks.settings import settings


async def purge_finished_jobs(now: datetime) -> str | None:
    cutoff = now - timedelta(days=settings.webhook_finished_job_retention_days)
    purged = await DeliveryJobRepository(await get_pool()).delete_finished(cutoff)
    return f"purged={purged}" if purged else None
