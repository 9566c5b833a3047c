"""Scraping job handlers.

One handler per job type. The website handler fills the content cache; the
social media and analysis handlers read from it and wait (bounded) through
``JobOrchestrator.await_content`` when it is still empty. Their results are
written only while the delivery still owns its job row; the worker classifies
the company after the last of them completes.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

import structlog

from company_classifier.database import Database
from company_classifier.errors import ClassifierError, ScrapingJobError
from company_classifier.models import (
    Company,
    DataSource,
    JobType,
    ScrapingJob,
    SourceAnalysis,
    utcnow,
)
from company_classifier.services.ai_analysis import Analyzer, keyword_indicators, preprocess_content
from company_classifier.services.cache import ContentCache
from company_classifier.services.fetcher import ContentFetcher
from company_classifier.services.orchestrator import JobOrchestrator
from company_classifier.services.signals import extract_signals

logger = structlog.get_logger()

# Job types whose results feed the classification roll-up.
CLASSIFYING_JOB_TYPES = (JobType.social_media, JobType.analysis)

JobHandler = Callable[[ScrapingJob, Company], None]


@contextmanager
def job_errors(job: ScrapingJob, company: Company) -> Iterator[None]:
    """Log domain errors with their context and wrap anything unexpected."""
    try:
        yield
    except ClassifierError as exc:
        logger.error("job_handler_failed", job_id=job.id, **exc.context())
        raise
    except Exception as exc:
        wrapped = ScrapingJobError(
            f"{job.job_type.value} job failed: {exc}",
            company=company,
            job_type=job.job_type.value,
            cause=exc,
        )
        logger.error("job_handler_failed", job_id=job.id, **wrapped.context())
        raise wrapped from exc


class ScrapingJobHandlers:
    def __init__(
        self,
        db: Database,
        cache: ContentCache,
        fetcher: ContentFetcher,
        orchestrator: JobOrchestrator,
        analyzer: Analyzer | None = None,
    ):
        self.db = db
        self.cache = cache
        self.fetcher = fetcher
        self.orchestrator = orchestrator
        self.analyzer = analyzer

    def handlers(self) -> dict[JobType, JobHandler]:
        table: dict[JobType, JobHandler] = {
            JobType.website: self.website_content,
            JobType.social_media: self.social_media,
        }
        if self.analyzer is not None:
            table[JobType.analysis] = self.analysis
        return table

    # --- Website content ---

    def website_content(self, job: ScrapingJob, company: Company) -> None:
        """Fetch a company's homepage into the content cache."""
        with job_errors(job, company):
            if not company.website:
                raise ScrapingJobError(
                    "Company has no website to fetch", company=company, job_type=job.job_type.value
                )
            if self.cache.check_and_extend(company.website):
                logger.info("content_already_cached", company_id=company.id, website=company.website)
                return

            content = self.fetcher.fetch(company.website)
            self.cache.put(company.website, content)
            self.cache.put_metadata(company.website, {"company_id": company.id, "content": content})
            logger.info(
                "website_content_cached",
                company_id=company.id,
                website=company.website,
                content_size=len(content),
            )

    # --- Social media ---

    def social_media(self, job: ScrapingJob, company: Company) -> None:
        """Extract social signals from cached content and store them."""
        with job_errors(job, company):
            content = self.orchestrator.await_content(job, company)
            if content is None:
                return

            signals = extract_signals(content)
            if not self._owns_job(job):
                return
            analysis = SourceAnalysis.for_source(
                company.id,
                DataSource.social_media,
                raw_data={
                    "discovered_links": signals.links,
                    "scraped_url": company.website,
                    "content_length": len(content),
                },
                processed_data={
                    "social_platforms": signals.platforms,
                    "engagement_indicators": signals.engagement,
                    "link_count": len(signals.links),
                    "platform_diversity": len(signals.platforms),
                },
                indicators=signals.indicator_tags(),
                source_confidence=signals.confidence,
            )
            analysis_id = self.db.store_source_analysis(analysis)
            logger.info(
                "social_media_analyzed",
                company_id=company.id,
                analysis_id=analysis_id,
                links=len(signals.links),
                platforms=sorted(signals.platforms),
                confidence=round(signals.confidence, 4),
            )

    # --- AI analysis ---

    def analysis(self, job: ScrapingJob, company: Company) -> None:
        """Run the AI analyzer over cached content and store its findings."""
        with job_errors(job, company):
            if self.analyzer is None:
                raise ScrapingJobError(
                    "No AI analyzer configured", company=company, job_type=job.job_type.value
                )
            content = self.orchestrator.await_content(job, company)
            if content is None:
                return

            text = preprocess_content(content)
            result = self.analyzer(company, text)
            if not self._owns_job(job):
                return

            now = utcnow()
            self.db.update_company(
                company.id,
                summary=result.summary,
                branch=result.branch,
                scope=result.scope,
                keywords=result.keywords,
                ai_analyzed_at=now,
            )
            analysis = SourceAnalysis.for_source(
                company.id,
                DataSource.website,
                raw_data={"scraped_url": company.website, "content_length": len(content)},
                processed_data={
                    "summary": result.summary,
                    "branch": result.branch,
                    "scope": result.scope,
                    "keywords": result.keywords,
                },
                indicators=result.indicators + keyword_indicators(result.keywords),
                source_confidence=result.confidence,
                scraped_at=now,
            )
            self.db.store_source_analysis(analysis)
            logger.info(
                "ai_analysis_completed",
                company_id=company.id,
                branch=result.branch,
                confidence=result.confidence,
            )

    def _owns_job(self, job: ScrapingJob) -> bool:
        """False once the worker gave up on this delivery (timeout or re-claim)."""
        if self.db.is_current_delivery(job):
            return True
        logger.warning(
            "stale_delivery_discarded",
            job_id=job.id,
            company_id=job.company_id,
            job_type=job.job_type.value,
        )
        return False
