"""Background maintenance of the delivery queue.

Each module exports one async task function compatible with
:class:`fluxdesk_webhooks.worker.WorkerTask`. The delivery ledger is never
touched here; only queue rows are reclaimed or purged.
"""
from __future__ import annotations

from fluxdesk_webhooks.settings import settings
from fluxdesk_webhooks.worker import BackgroundWorker, WorkerTask
from fluxdesk_webhooks.workers.job_purge import purge_finished_jobs
from fluxdesk_webhooks.workers.job_reclaim import reclaim_stuck_jobs

worker = BackgroundWorker(
    interval_seconds=settings.worker_interval_seconds,
    tasks=[
        WorkerTask(name="webhook_job_reclaim", fn=reclaim_stuck_jobs),
        WorkerTask(name="webhook_job_purge", fn=purge_finished_jobs),
    ],
)

start_background_worker = worker.start
stop_background_worker = worker.stop

__all__ = [
    "worker",
    "start_background_worker",
    "stop_background_worker",
]
