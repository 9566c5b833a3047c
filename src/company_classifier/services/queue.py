"""Job queue.

``dispatch`` is fire-and-forget: it records a queued ScrapingJob that becomes
claimable once its delay has elapsed. The scraping_jobs table is the queue.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Protocol

import structlog

from company_classifier.database import Database
from company_classifier.models import JobDescriptor, ScrapingJob, utcnow

logger = structlog.get_logger()


class JobQueue(Protocol):
    def dispatch(self, descriptor: JobDescriptor, delay: timedelta | None = None) -> None: ...


class DatabaseJobQueue:
    def __init__(self, db: Database, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self._clock = clock

    def dispatch(self, descriptor: JobDescriptor, delay: timedelta | None = None) -> None:
        now = self._clock()
        job = ScrapingJob.from_descriptor(descriptor, available_at=now + (delay or timedelta(0)))
        job.created_at = now
        job_id = self.db.create_job(job)
        logger.info(
            "job_dispatched",
            job_id=job_id,
            company_id=descriptor.company_id,
            job_type=descriptor.job_type.value,
            delay_seconds=int(delay.total_seconds()) if delay else 0,
            requeue_count=descriptor.requeue_count,
        )

