"""Domain exceptions.

Every error raised by the pipeline carries enough structured context
(company, website, job type, cause) to be logged as structlog key/values.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol


class _CompanyLike(Protocol):
    id: int | None
    name: str
    website: str | None


class ClassifierError(Exception):
    """Base class for all company classifier errors."""

    def __init__(
        self,
        message: str,
        *,
        company: _CompanyLike | None = None,
        job_type: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.company = company
        self.job_type = job_type
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def context(self) -> dict[str, Any]:
        ctx: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
        }
        if self.company is not None:
            ctx["company_id"] = self.company.id
            ctx["company_name"] = self.company.name
            ctx["company_website"] = self.company.website
        if self.job_type is not None:
            ctx["job_type"] = self.job_type
        if self.cause is not None:
            ctx["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return ctx


class FetchFailureReason(str, Enum):
    network = "network"
    bad_status = "bad_status"
    too_short = "too_short"
    not_html = "not_html"


class FetchError(ClassifierError):
    """Website content could not be fetched or failed validation."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        reason: FetchFailureReason,
        status: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.url = url
        self.reason = reason
        self.status = status

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx.update(url=self.url, reason=self.reason.value)
        if self.status is not None:
            ctx["status"] = self.status
        return ctx


class ExtractionError(ClassifierError):
    """Signal extraction failed on malformed content."""


class OrchestrationError(ClassifierError):
    """Bad input to the orchestrator; handled as a logged skip."""


class ScrapingJobError(ClassifierError):
    """A queued job could not do its work."""


class AnalysisError(ClassifierError):
    """The AI analysis function failed or returned an unusable result."""


class JobStateError(ValueError):
    """An illegal scraping job state transition was attempted."""
