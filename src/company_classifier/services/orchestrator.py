"""Scraping orchestration.

Decides whether a company's analysis starts with a content fetch or can go
straight to the jobs that read cached content, and implements the bounded
wait those dependent jobs perform when the cache is still empty.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

import structlog

from company_classifier.config import Config
from company_classifier.database import Database
from company_classifier.errors import OrchestrationError, ScrapingJobError
from company_classifier.models import (
    JOB_SETTINGS,
    BatchStartResult,
    Company,
    CompanyStatus,
    JobDescriptor,
    JobType,
    ScrapingJob,
    utcnow,
)
from company_classifier.services.cache import ContentCache
from company_classifier.services.queue import JobQueue

logger = structlog.get_logger()

# Jobs that read the cached website content.
DEPENDENT_JOB_TYPES: tuple[JobType, ...] = (JobType.social_media, JobType.analysis)


def descriptor_for(company: Company, job_type: JobType, requeue_count: int = 0) -> JobDescriptor:
    return JobDescriptor(
        company_id=company.id,
        job_type=job_type,
        max_attempts=JOB_SETTINGS[job_type].tries,
        requeue_count=requeue_count,
    )


class JobOrchestrator:
    def __init__(
        self,
        db: Database,
        cache: ContentCache,
        queue: JobQueue,
        dependent_delay: timedelta = timedelta(minutes=3),
        refetch_delay: timedelta = timedelta(minutes=2),
        max_content_waits: int = 3,
        stuck_minutes: int = 30,
        dependent_job_types: tuple[JobType, ...] = DEPENDENT_JOB_TYPES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.cache = cache
        self.queue = queue
        self.dependent_delay = dependent_delay
        self.refetch_delay = refetch_delay
        self.max_content_waits = max_content_waits
        self.stuck_minutes = stuck_minutes
        self.dependent_job_types = dependent_job_types
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: Config,
        db: Database,
        cache: ContentCache,
        queue: JobQueue,
        with_analysis: bool | None = None,
    ) -> JobOrchestrator:
        if with_analysis is None:
            with_analysis = config.llm_enabled
        dependent = DEPENDENT_JOB_TYPES if with_analysis else (JobType.social_media,)
        return cls(
            db,
            cache,
            queue,
            dependent_delay=config.dependent_job_delay,
            refetch_delay=config.content_refetch_delay,
            max_content_waits=config.max_content_waits,
            stuck_minutes=config.stuck_job_minutes,
            dependent_job_types=dependent,
        )

    # --- Entry points ---

    def start_company_analysis(self, company: Company) -> bool:
        """Kick off scraping for a company. Returns False when skipped.

        A company turns ``processing`` only once its jobs have been dispatched.
        """
        try:
            self._require_website(company)
        except OrchestrationError as exc:
            logger.warning("analysis_skipped", **exc.context())
            return False

        content_cached = self.cache.is_cached(company.website)
        if content_cached:
            self.dispatch_dependent_jobs(company)
        else:
            self.dispatch_content_job(company)
            self.dispatch_dependent_jobs(company, delay=self.dependent_delay)

        self.db.update_company(company.id, status=CompanyStatus.processing)
        company.status = CompanyStatus.processing
        logger.info(
            "company_analysis_started",
            company_id=company.id,
            website=company.website,
            content_cached=content_cached,
        )
        return True

    def dispatch_content_job(self, company: Company, delay: timedelta | None = None) -> None:
        self.queue.dispatch(descriptor_for(company, JobType.website), delay=delay)

    def dispatch_dependent_jobs(self, company: Company, delay: timedelta | None = None) -> None:
        for job_type in self.dependent_job_types:
            self.queue.dispatch(descriptor_for(company, job_type), delay=delay)

    def await_content(self, job: ScrapingJob, company: Company) -> str | None:
        """Return cached content for a dependent job, or schedule a later look.

        When the cache is empty the content job is re-dispatched, the calling
        job is re-dispatched as a new instance with ``requeue_count + 1`` and
        None is returned. Once ``max_content_waits`` re-dispatches have been
        spent the job fails instead.
        """
        content = self.cache.get(company.website)
        if content:
            return content

        if job.requeue_count >= self.max_content_waits:
            raise ScrapingJobError(
                f"Website content still not cached after {job.requeue_count} waits",
                company=company,
                job_type=job.job_type.value,
            )

        self.dispatch_content_job(company, delay=self.refetch_delay)
        self.queue.dispatch(
            descriptor_for(company, job.job_type, requeue_count=job.requeue_count + 1),
            delay=self.dependent_delay,
        )
        logger.info(
            "content_not_cached_requeued",
            company_id=company.id,
            website=company.website,
            job_type=job.job_type.value,
            requeue_count=job.requeue_count + 1,
        )
        return None

    def create_jobs_for_company(
        self,
        company: Company,
        job_types: tuple[JobType, ...] | None = None,
        priority: int = 0,
    ) -> list[JobType]:
        """Dispatch the given job types for a company right away."""
        job_types = job_types or (JobType.website, *self.dependent_job_types)
        for job_type in job_types:
            descriptor = descriptor_for(company, job_type)
            descriptor.priority = priority
            self.queue.dispatch(descriptor)
        return list(job_types)

    def batch_start_analysis(self, company_ids: list[int]) -> BatchStartResult:
        result = BatchStartResult()
        for company_id in company_ids:
            company = self.db.get_company(company_id)
            if company is None:
                result.errors.append(f"Company {company_id} not found")
                continue
            if self.start_company_analysis(company):
                result.started += 1
            else:
                result.skipped += 1
        return result

    # --- Content helpers ---

    def is_content_available(self, company: Company) -> bool:
        if not company.website:
            return False
        return self.cache.is_cached(company.website)

    def get_website_content(self, company: Company) -> str | None:
        if not company.website:
            return None
        return self.cache.get(company.website)

    def refresh_website_content(self, company: Company) -> bool:
        """Drop cached content and dispatch a fresh fetch."""
        if not company.website:
            return False
        self.cache.clear(company.website)
        self.dispatch_content_job(company)
        logger.info("content_refresh_started", company_id=company.id, website=company.website)
        return True

    def cache_statistics(self) -> dict[str, Any]:
        return self.cache.statistics()

    def cleanup_expired_cache(self) -> int:
        return self.cache.purge_expired()

    # --- Monitoring ---

    def find_stuck_jobs(self) -> list[ScrapingJob]:
        """Processing jobs older than the stuck threshold. Reported, never remediated."""
        threshold = self._clock() - timedelta(minutes=self.stuck_minutes)
        stuck = self.db.get_stuck_jobs(threshold)
        for job in stuck:
            logger.warning(
                "job_stuck",
                job_id=job.id,
                company_id=job.company_id,
                job_type=job.job_type.value,
                started_at=job.started_at.isoformat() if job.started_at else None,
            )
        return stuck

    @staticmethod
    def _require_website(company: Company) -> None:
        if not company.website:
            raise OrchestrationError(
                "Cannot start analysis for company without website", company=company
            )
