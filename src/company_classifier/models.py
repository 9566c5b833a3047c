"""Pydantic models for all domain entities.

Covers: companies, source analyses, classification results, scraping jobs,
job descriptors, AI analysis results and batch operation results.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from company_classifier.errors import JobStateError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CompanyStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"

    def label(self) -> str:
        return _COMPANY_STATUS_LABELS[self]

    def color(self) -> str:
        return _COMPANY_STATUS_COLORS[self]


class Classification(str, Enum):
    b2b = "b2b"
    b2c = "b2c"
    hybrid = "hybrid"
    unknown = "unknown"

    def label(self) -> str:
        return _CLASSIFICATION_LABELS[self]

    def color(self) -> str:
        return _CLASSIFICATION_COLORS[self]

    def description(self) -> str:
        return _CLASSIFICATION_DESCRIPTIONS[self]


class ClassificationMethod(str, Enum):
    automated = "automated"
    manual = "manual"
    ai_verified = "ai_verified"

    def label(self) -> str:
        return _METHOD_LABELS[self]

    def color(self) -> str:
        return _METHOD_COLORS[self]


class DataSource(str, Enum):
    website = "website"
    social_media = "social_media"
    google_business = "google_business"
    partners = "partners"

    @property
    def weight(self) -> float:
        """Fixed reliability coefficient used in confidence aggregation."""
        return SOURCE_WEIGHTS[self]


class JobType(str, Enum):
    website = "website"
    social_media = "social_media"
    google_business = "google_business"
    analysis = "analysis"


class ScrapingJobStatus(str, Enum):
    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"

    def label(self) -> str:
        return _JOB_STATUS_LABELS[self]

    def color(self) -> str:
        return _JOB_STATUS_COLORS[self]

    def is_in_progress(self) -> bool:
        return self in (ScrapingJobStatus.queued, ScrapingJobStatus.processing)

    def is_terminal(self) -> bool:
        return self in (ScrapingJobStatus.completed, ScrapingJobStatus.failed)


# Every accessor table is keyed by the full enum; tests assert coverage.

_COMPANY_STATUS_LABELS = {
    CompanyStatus.pending: "Pending",
    CompanyStatus.processing: "Processing",
    CompanyStatus.completed: "Completed",
    CompanyStatus.failed: "Failed",
}

_COMPANY_STATUS_COLORS = {
    CompanyStatus.pending: "gray",
    CompanyStatus.processing: "yellow",
    CompanyStatus.completed: "green",
    CompanyStatus.failed: "red",
}

_CLASSIFICATION_LABELS = {
    Classification.b2b: "B2B",
    Classification.b2c: "B2C",
    Classification.hybrid: "Hybrid",
    Classification.unknown: "Unknown",
}

_CLASSIFICATION_COLORS = {
    Classification.b2b: "blue",
    Classification.b2c: "green",
    Classification.hybrid: "purple",
    Classification.unknown: "gray",
}

_CLASSIFICATION_DESCRIPTIONS = {
    Classification.b2b: "Primarily serves other businesses with products or services",
    Classification.b2c: "Directly serves individual consumers and end users",
    Classification.hybrid: "Serves both businesses and consumers with different offerings",
    Classification.unknown: "Classification could not be determined from available data",
}

_METHOD_LABELS = {
    ClassificationMethod.automated: "Automated",
    ClassificationMethod.manual: "Manual",
    ClassificationMethod.ai_verified: "AI Verified",
}

_METHOD_COLORS = {
    ClassificationMethod.automated: "blue",
    ClassificationMethod.manual: "green",
    ClassificationMethod.ai_verified: "purple",
}

_JOB_STATUS_LABELS = {
    ScrapingJobStatus.queued: "Queued",
    ScrapingJobStatus.processing: "Processing",
    ScrapingJobStatus.completed: "Completed",
    ScrapingJobStatus.failed: "Failed",
}

_JOB_STATUS_COLORS = {
    ScrapingJobStatus.queued: "gray",
    ScrapingJobStatus.processing: "blue",
    ScrapingJobStatus.completed: "green",
    ScrapingJobStatus.failed: "red",
}

SOURCE_WEIGHTS: dict[DataSource, float] = {
    DataSource.website: 0.8,
    DataSource.social_media: 0.3,
    DataSource.google_business: 0.6,
    DataSource.partners: 0.5,
}

B2B_INDICATORS = frozenset({
    "case_studies",
    "whitepapers",
    "enterprise_pricing",
    "linkedin_focus",
    "desktop_dominant",
    "long_sales_cycle",
    "professional_content",
    "api_documentation",
    "partner_networks",
})

B2C_INDICATORS = frozenset({
    "ecommerce",
    "shopping_cart",
    "consumer_reviews",
    "social_media_heavy",
    "mobile_first",
    "quick_checkout",
    "emotional_marketing",
    "consumer_support",
})


# ---------------------------------------------------------------------------
# Company
# ---------------------------------------------------------------------------

class Company(BaseModel):
    id: int | None = None
    name: str = Field(..., min_length=1)
    website: str | None = None
    domain: str | None = None
    status: CompanyStatus = CompanyStatus.pending
    classification: Classification | None = None
    confidence_score: float | None = Field(default=None, ge=0, le=1)
    last_analyzed_at: datetime | None = None
    summary: str | None = None
    branch: str | None = None
    scope: str | None = None
    keywords: list[str] = Field(default_factory=list)
    ai_analyzed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, v: str) -> str:
        return " ".join(v.split())

    @model_validator(mode="after")
    def _derive_domain(self) -> Company:
        if self.website and not self.domain:
            host = urlparse(self.website).hostname
            self.domain = host.lower() if host else None
        return self

    def is_classified(self) -> bool:
        return self.classification is not None

    def has_high_confidence(self, threshold: float = 0.8) -> bool:
        return self.confidence_score is not None and self.confidence_score >= threshold

    def confidence_percentage(self) -> float | None:
        if self.confidence_score is None:
            return None
        return round(self.confidence_score * 100, 1)

    def needs_reanalysis(self, days: int = 30, now: datetime | None = None) -> bool:
        if self.last_analyzed_at is None:
            return True
        now = now or utcnow()
        return _aware(self.last_analyzed_at) < now - timedelta(days=days)


# ---------------------------------------------------------------------------
# Source Analysis
# ---------------------------------------------------------------------------

class SourceAnalysis(BaseModel):
    """One scraping pass of one data source. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    company_id: int
    data_source: DataSource
    raw_data: dict[str, Any] = Field(default_factory=dict)
    processed_data: dict[str, Any] = Field(default_factory=dict)
    indicators: list[str] = Field(default_factory=list)
    source_weight: float = Field(ge=0, le=1)
    source_confidence: float = Field(ge=0, le=1)
    scraped_at: datetime = Field(default_factory=utcnow)

    @field_validator("indicators")
    @classmethod
    def _dedupe_indicators(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @classmethod
    def for_source(cls, company_id: int, data_source: DataSource, **kwargs: Any) -> SourceAnalysis:
        """Build an analysis carrying the fixed weight of its source type."""
        return cls(
            company_id=company_id,
            data_source=data_source,
            source_weight=data_source.weight,
            **kwargs,
        )

    @property
    def weighted_score(self) -> float:
        return self.source_confidence * self.source_weight

    def has_indicator(self, indicator: str) -> bool:
        return indicator in self.indicators

    def b2b_indicators(self) -> list[str]:
        return [i for i in self.indicators if i in B2B_INDICATORS]

    def b2c_indicators(self) -> list[str]:
        return [i for i in self.indicators if i in B2C_INDICATORS]

    def b2b_score(self) -> float:
        if not self.indicators:
            return 0.0
        return len(self.b2b_indicators()) / len(self.indicators)

    def b2c_score(self) -> float:
        if not self.indicators:
            return 0.0
        return len(self.b2c_indicators()) / len(self.indicators)

    def is_stale(self, days: int = 30, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return _aware(self.scraped_at) < now - timedelta(days=days)


# ---------------------------------------------------------------------------
# Classification Result
# ---------------------------------------------------------------------------

class ClassificationReasoning(BaseModel):
    summary: str = ""
    indicators: list[str] = Field(default_factory=list)
    breakdown: dict[str, float] = Field(default_factory=dict)


class ClassificationResult(BaseModel):
    """Append-only audit row written alongside every classification update."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    company_id: int
    classification: Classification
    confidence_score: float = Field(ge=0, le=1)
    method: ClassificationMethod = ClassificationMethod.automated
    reasoning: ClassificationReasoning = Field(default_factory=ClassificationReasoning)
    classified_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Scraping Job
# ---------------------------------------------------------------------------

class JobSettings(BaseModel):
    tries: int = Field(ge=1)
    timeout: int = Field(gt=0)


JOB_SETTINGS: dict[JobType, JobSettings] = {
    JobType.website: JobSettings(tries=3, timeout=60),
    JobType.social_media: JobSettings(tries=3, timeout=120),
    JobType.google_business: JobSettings(tries=3, timeout=60),
    JobType.analysis: JobSettings(tries=3, timeout=180),
}


class JobDescriptor(BaseModel):
    """What gets handed to the job queue."""

    company_id: int
    job_type: JobType
    priority: int = 0
    max_attempts: int = Field(default=3, ge=1)
    requeue_count: int = Field(default=0, ge=0)


class ScrapingJob(BaseModel):
    id: int | None = None
    company_id: int
    job_type: JobType
    status: ScrapingJobStatus = ScrapingJobStatus.queued
    priority: int = 0
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    requeue_count: int = Field(default=0, ge=0)
    error_message: str | None = None
    available_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _timestamps_match_status(self) -> ScrapingJob:
        if self.status == ScrapingJobStatus.processing and self.started_at is None:
            raise ValueError("a processing job must have started_at set")
        if self.status.is_terminal() and self.completed_at is None:
            raise ValueError(f"a {self.status.value} job must have completed_at set")
        return self

    @classmethod
    def from_descriptor(cls, descriptor: JobDescriptor, available_at: datetime | None = None) -> ScrapingJob:
        now = utcnow()
        return cls(
            company_id=descriptor.company_id,
            job_type=descriptor.job_type,
            priority=descriptor.priority,
            max_attempts=descriptor.max_attempts,
            requeue_count=descriptor.requeue_count,
            available_at=available_at or now,
            created_at=now,
        )

    # --- State queries ---

    def can_retry(self) -> bool:
        return self.status == ScrapingJobStatus.failed and self.attempts < self.max_attempts

    def is_exhausted(self) -> bool:
        return self.status == ScrapingJobStatus.failed and self.attempts >= self.max_attempts

    def is_stuck(self, minutes: int = 30, now: datetime | None = None) -> bool:
        if self.status != ScrapingJobStatus.processing or self.started_at is None:
            return False
        now = now or utcnow()
        return _aware(self.started_at) < now - timedelta(minutes=minutes)

    def has_high_priority(self) -> bool:
        return self.priority > 0

    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def attempt_percentage(self) -> float:
        return self.attempts / self.max_attempts * 100

    def duration_seconds(self, now: datetime | None = None) -> int | None:
        if self.started_at is None:
            return None
        end = self.completed_at or now or utcnow()
        return int((_aware(end) - _aware(self.started_at)).total_seconds())

    def wait_seconds(self, now: datetime | None = None) -> int:
        end = self.started_at or now or utcnow()
        return int((_aware(end) - _aware(self.created_at)).total_seconds())

    # --- Transitions ---

    def mark_processing(self, now: datetime | None = None) -> ScrapingJob:
        self._require(ScrapingJobStatus.queued, "start")
        self.status = ScrapingJobStatus.processing
        self.started_at = now or utcnow()
        return self

    def mark_completed(self, now: datetime | None = None) -> ScrapingJob:
        self._require(ScrapingJobStatus.processing, "complete")
        self.status = ScrapingJobStatus.completed
        self.completed_at = now or utcnow()
        self.error_message = None
        return self

    def mark_failed(self, error_message: str | None = None, now: datetime | None = None) -> ScrapingJob:
        self._require(ScrapingJobStatus.processing, "fail")
        self.status = ScrapingJobStatus.failed
        self.completed_at = now or utcnow()
        self.error_message = error_message
        self.attempts += 1
        return self

    def reset_for_retry(self, available_at: datetime | None = None) -> ScrapingJob:
        if not self.can_retry():
            raise JobStateError(
                f"job {self.id} cannot be retried "
                f"(status={self.status.value}, attempts={self.attempts}/{self.max_attempts})"
            )
        self.status = ScrapingJobStatus.queued
        self.started_at = None
        self.completed_at = None
        self.error_message = None
        if available_at is not None:
            self.available_at = available_at
        return self

    def _require(self, expected: ScrapingJobStatus, action: str) -> None:
        if self.status != expected:
            raise JobStateError(
                f"cannot {action} job {self.id}: status is {self.status.value}, "
                f"expected {expected.value}"
            )


# ---------------------------------------------------------------------------
# AI Analysis Result
# ---------------------------------------------------------------------------

class AnalysisResult(BaseModel):
    summary: str
    branch: str
    scope: str
    keywords: list[str] = Field(default_factory=list)
    indicators: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)


# ---------------------------------------------------------------------------
# Command Results
# ---------------------------------------------------------------------------

class BatchStartResult(BaseModel):
    started: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
