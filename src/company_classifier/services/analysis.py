"""Company intake and analysis lifecycle.

Sits above the orchestrator: creates companies from a website, moves them
into processing when their scraping starts, schedules re-analysis and
summarizes what has been collected so far.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

import structlog

from company_classifier.database import Database
from company_classifier.models import (
    BatchStartResult,
    Company,
    CompanyStatus,
    ScrapingJobStatus,
    utcnow,
)
from company_classifier.services.aggregator import ConfidenceAggregator
from company_classifier.services.orchestrator import JobOrchestrator, descriptor_for
from company_classifier.services.website import (
    company_name_from_website,
    extract_domain,
    is_valid_url,
    normalize_url,
)

logger = structlog.get_logger()


class AnalysisService:
    def __init__(
        self,
        db: Database,
        orchestrator: JobOrchestrator,
        aggregator: ConfidenceAggregator,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.orchestrator = orchestrator
        self.aggregator = aggregator
        self._clock = clock

    # --- Intake ---

    def create_company(self, website: str, name: str | None = None) -> Company:
        """Register a company by website. Raises ValueError on bad or duplicate URLs."""
        website = normalize_url(website)
        if not is_valid_url(website):
            raise ValueError(f"Invalid website URL: {website}")

        domain = extract_domain(website)
        existing = self.db.get_company_by_domain(domain)
        if existing is not None:
            raise ValueError(f"Company with domain {domain} already exists (id={existing.id})")

        name = name or company_name_from_website(website)
        if not name:
            raise ValueError(f"Could not derive a company name from {website}")

        company = Company(name=name, website=website, domain=domain)
        company.id = self.db.create_company(company)
        logger.info("company_created", company_id=company.id, name=company.name, domain=domain)
        return company

    # --- Lifecycle ---

    def start_analysis(self, company: Company) -> bool:
        """Start scraping; the company turns processing only if jobs went out."""
        return self.orchestrator.start_company_analysis(company)

    def start_batch(self, company_ids: list[int]) -> BatchStartResult:
        return self.orchestrator.batch_start_analysis(company_ids)

    def schedule_reanalysis(self, company: Company) -> bool:
        """Drop unfinished jobs, reset the company to pending and start over."""
        removed = self.db.delete_active_jobs(company.id)
        self.db.update_company(
            company.id, status=CompanyStatus.pending, classification=None, confidence_score=None
        )
        company.status = CompanyStatus.pending
        company.classification = None
        company.confidence_score = None
        logger.info("reanalysis_scheduled", company_id=company.id, removed_jobs=removed)
        return self.start_analysis(company)

    def retry_exhausted_jobs(self) -> int:
        """Dispatch a fresh job for every exhausted one and reopen its company."""
        count = 0
        for job in self.db.get_exhausted_jobs():
            company = self.db.get_company(job.company_id)
            if company is None or not company.website:
                continue
            self.orchestrator.queue.dispatch(descriptor_for(company, job.job_type))
            if company.status == CompanyStatus.failed:
                self.db.update_company(company.id, status=CompanyStatus.processing)
            count += 1
        logger.info("exhausted_jobs_redispatched", count=count)
        return count

    # --- Queries ---

    def companies_ready_for_analysis(self) -> list[Company]:
        """Pending companies with nothing queued or running."""
        return [
            c for c in self.db.get_all_companies(status=CompanyStatus.pending)
            if not self.db.has_active_jobs(c.id)
        ]

    def companies_needing_reanalysis(self, days: int = 30) -> list[Company]:
        now = self._clock()
        return [
            c for c in self.db.get_all_companies()
            if c.status != CompanyStatus.processing and c.needs_reanalysis(days, now)
        ]

    def analysis_summary(self, company: Company) -> dict[str, Any]:
        analyses = self.db.get_source_analyses(company.id)

        breakdown: dict[str, dict[str, float]] = {}
        for source in sorted({a.data_source for a in analyses}, key=lambda s: s.value):
            confidences = [a.source_confidence for a in analyses if a.data_source == source]
            weights = [a.source_weight for a in analyses if a.data_source == source]
            breakdown[source.value] = {
                "count": len(confidences),
                "avg_confidence": sum(confidences) / len(confidences),
                "max_confidence": max(confidences),
                "weight": sum(weights) / len(weights),
            }

        latest = self.db.get_latest_analyses_by_source(company.id)

        return {
            "total_analyses": len(analyses),
            "data_sources": sorted(breakdown),
            "last_analysis": max((a.scraped_at for a in analyses), default=None),
            "scraping_jobs": self.db.job_status_counts(company.id),
            "confidence_breakdown": breakdown,
            "latest_by_source": {
                source.value: {"confidence": a.source_confidence, "scraped_at": a.scraped_at}
                for source, a in sorted(latest.items(), key=lambda item: item[0].value)
            },
            "overall_confidence": self.aggregator.company_confidence(company.id),
            "complete": self.aggregator.is_company_complete(company.id),
        }

    def statistics(self) -> dict[str, Any]:
        """Store-wide counters plus job throughput figures."""
        jobs = self.db.get_jobs(statuses=[ScrapingJobStatus.completed])
        durations = [d for d in (j.duration_seconds() for j in jobs) if d is not None]
        job_counts = self.db.job_status_counts()
        total_jobs = sum(job_counts.values())
        since = self._clock() - timedelta(days=1)
        recent = [
            a for c in self.db.get_all_companies()
            for a in self.db.get_source_analyses(c.id) if a.scraped_at >= since
        ]
        return {
            "companies": self.db.company_status_counts(),
            "classifications": self.db.classification_counts(),
            "analyses": self.db.source_analysis_counts(),
            "analyses_last_24h": len(recent),
            "jobs": job_counts,
            "avg_processing_seconds": sum(durations) / len(durations) if durations else None,
            "success_rate": job_counts["completed"] / total_jobs * 100 if total_jobs else 0.0,
            "cache": self.orchestrator.cache_statistics(),
        }
