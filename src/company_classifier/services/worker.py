"""Queue worker.

Claims due jobs from the scraping_jobs table, runs the matching handler under
the per-type timeout and records the outcome. When a classifying job completes
and nothing else of its company is queued or running, the worker rolls the
company's analyses up into a classification. Failed jobs go back to the
queue after a delay until their attempts are spent; an exhausted job marks
its company as failed.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timedelta
from typing import Callable

import structlog

from company_classifier.config import Config
from company_classifier.database import Database
from company_classifier.errors import ScrapingJobError
from company_classifier.models import JOB_SETTINGS, CompanyStatus, JobType, ScrapingJob, utcnow
from company_classifier.services.aggregator import ConfidenceAggregator
from company_classifier.services.jobs import CLASSIFYING_JOB_TYPES, JobHandler
from company_classifier.services.retry import classify_error

logger = structlog.get_logger()


class Worker:
    def __init__(
        self,
        db: Database,
        handlers: dict[JobType, JobHandler],
        aggregator: ConfidenceAggregator | None = None,
        retry_delay: timedelta = timedelta(seconds=30),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.handlers = handlers
        self.aggregator = aggregator
        self.retry_delay = retry_delay
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: Config,
        db: Database,
        handlers: dict[JobType, JobHandler],
        aggregator: ConfidenceAggregator | None = None,
    ) -> Worker:
        return cls(db, handlers, aggregator, retry_delay=config.job_retry_delay)

    def run_once(self) -> ScrapingJob | None:
        """Process one due job. Returns it, or None when nothing was due."""
        job = self.db.claim_next_job(self._clock())
        if job is None:
            return None

        log = logger.bind(job_id=job.id, company_id=job.company_id, job_type=job.job_type.value)
        log.info("job_started", attempt=job.attempts + 1, max_attempts=job.max_attempts)
        try:
            self._execute(job)
        except Exception as exc:
            self._record_failure(job, exc)
        else:
            job.mark_completed(self._clock())
            settled = self.db.complete_job(job)
            log.info("job_completed", duration_seconds=job.duration_seconds(), settled=settled)
            if settled and job.job_type in CLASSIFYING_JOB_TYPES:
                self._classify(job)
        return job

    def run(
        self,
        max_jobs: int | None = None,
        poll_interval: float = 5.0,
        stop_when_idle: bool = False,
    ) -> int:
        """Loop over ``run_once``. Returns the number of jobs processed."""
        processed = 0
        while max_jobs is None or processed < max_jobs:
            job = self.run_once()
            if job is not None:
                processed += 1
                continue
            if stop_when_idle:
                break
            time.sleep(poll_interval)
        logger.info("worker_stopped", processed=processed)
        return processed

    def _execute(self, job: ScrapingJob) -> None:
        handler = self.handlers.get(job.job_type)
        if handler is None:
            raise ScrapingJobError(
                f"No handler registered for {job.job_type.value} jobs", job_type=job.job_type.value
            )
        company = self.db.get_company(job.company_id)
        if company is None:
            raise ScrapingJobError(
                f"Company {job.company_id} not found", job_type=job.job_type.value
            )

        timeout = JOB_SETTINGS[job.job_type].timeout
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(handler, job, company)
        try:
            future.result(timeout=timeout)
        except FutureTimeout as exc:
            raise ScrapingJobError(
                f"{job.job_type.value} job timed out after {timeout}s",
                company=company,
                job_type=job.job_type.value,
                cause=exc,
            ) from exc
        finally:
            # A timed-out handler thread cannot be killed; do not wait on it.
            executor.shutdown(wait=False)

    def _classify(self, job: ScrapingJob) -> None:
        if self.aggregator is None:
            return
        company = self.db.get_company(job.company_id)
        if company is None:
            return
        try:
            self.aggregator.rollup(company)
        except Exception:
            # The job stays completed; `classify` can rerun the roll-up.
            logger.exception("rollup_failed", job_id=job.id, company_id=job.company_id)

    def _record_failure(self, job: ScrapingJob, exc: Exception) -> None:
        now = self._clock()
        job.mark_failed(f"{classify_error(exc)}: {exc}", now)
        self.db.save_job(job)

        if job.can_retry():
            job.reset_for_retry(available_at=now + self.retry_delay)
            self.db.save_job(job)
            logger.warning(
                "job_failed_will_retry",
                job_id=job.id,
                company_id=job.company_id,
                job_type=job.job_type.value,
                attempts=job.attempts,
                max_attempts=job.max_attempts,
                error=str(exc),
            )
            return

        logger.error(
            "job_exhausted",
            job_id=job.id,
            company_id=job.company_id,
            job_type=job.job_type.value,
            attempts=job.attempts,
            error=str(exc),
        )
        if self.db.get_company(job.company_id) is not None:
            self.db.update_company(job.company_id, status=CompanyStatus.failed)
