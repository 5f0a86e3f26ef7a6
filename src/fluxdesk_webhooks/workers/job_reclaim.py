"""Worker: hand back delivery jobs stuck in ``attempting``."""
from __future__ import annotations

from datetime import datetime, timedelta

from fluxdesk_webhooks.db.pool import get_pool
from fluxdesk_webhooks.repositories.jobs import DeliveryJobRepository
from fluxdesk_webhooks.settings import settings


async def reclaim_stuck_jobs(now: datetime) -> str | None:
    """Release jobs locked longer than ``webhook_stuck_minutes`` (dispatcher crash or restart)."""
    pool = await get_pool()
    cutoff = now - timedelta(minutes=settings.webhook_stuck_minutes)
    reclaimed = await DeliveryJobRepository(pool).reclaim_stuck(cutoff)
    return f"reclaimed={reclaimed}" if reclaimed else None
