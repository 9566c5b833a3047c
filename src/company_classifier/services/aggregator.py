"""Confidence aggregation and classification roll-up.

The overall confidence of a company is the weight-averaged confidence of all
its source analyses. No recency decay is applied unless a half-life is
configured, so stale analyses count as much as fresh ones by default.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable

import structlog

from company_classifier.config import Config
from company_classifier.database import Database
from company_classifier.models import (
    Classification,
    ClassificationMethod,
    ClassificationReasoning,
    ClassificationResult,
    Company,
    DataSource,
    SourceAnalysis,
    utcnow,
)

logger = structlog.get_logger()

REQUIRED_SOURCES = frozenset({DataSource.website, DataSource.social_media, DataSource.google_business})

# Share of B2B signal at or above which a company is B2B; at or below
# 1 - this it is B2C; anything between is hybrid.
DOMINANT_SHARE = 0.65


def _decay(analysis: SourceAnalysis, half_life_days: float | None, now: datetime) -> float:
    if half_life_days is None:
        return 1.0
    age_days = max(0.0, (now - analysis.scraped_at).total_seconds() / 86400)
    return 0.5 ** (age_days / half_life_days)


def overall_confidence(
    analyses: Iterable[SourceAnalysis],
    half_life_days: float | None = None,
    now: datetime | None = None,
) -> float:
    """Σ(confidence × weight) / Σ(weight); 0.0 when there is nothing to weigh."""
    now = now or utcnow()
    weighted_sum = 0.0
    total_weight = 0.0
    for analysis in analyses:
        weight = analysis.source_weight * _decay(analysis, half_life_days, now)
        weighted_sum += analysis.source_confidence * weight
        total_weight += weight
    return weighted_sum / total_weight if total_weight > 0 else 0.0


def is_complete(sources: Iterable[DataSource | SourceAnalysis]) -> bool:
    observed = {s.data_source if isinstance(s, SourceAnalysis) else DataSource(s) for s in sources}
    return not (REQUIRED_SOURCES - observed)


def latest_per_source(analyses: Iterable[SourceAnalysis]) -> list[SourceAnalysis]:
    latest: dict[DataSource, SourceAnalysis] = {}
    for analysis in sorted(analyses, key=lambda a: a.scraped_at, reverse=True):
        latest.setdefault(analysis.data_source, analysis)
    return list(latest.values())


def classify(analyses: Iterable[SourceAnalysis]) -> tuple[Classification, ClassificationReasoning]:
    """Vote a business model from the B2B/B2C indicators of the latest analyses."""
    current = latest_per_source(analyses)
    b2b = sum(a.b2b_score() * a.source_weight for a in current)
    b2c = sum(a.b2c_score() * a.source_weight for a in current)
    found = sorted({i for a in current for i in a.b2b_indicators() + a.b2c_indicators()})

    breakdown = {"b2b": round(b2b, 4), "b2c": round(b2c, 4)}
    breakdown.update({a.data_source.value: a.source_confidence for a in current})

    total = b2b + b2c
    if total == 0:
        classification = Classification.unknown
    elif b2b / total >= DOMINANT_SHARE:
        classification = Classification.b2b
    elif b2b / total <= 1 - DOMINANT_SHARE:
        classification = Classification.b2c
    else:
        classification = Classification.hybrid

    sources = ", ".join(sorted(a.data_source.value for a in current)) or "none"
    summary = (
        f"{classification.label()}: B2B signal {b2b:.2f} vs B2C signal {b2c:.2f} "
        f"from sources {sources}"
    )
    return classification, ClassificationReasoning(summary=summary, indicators=found, breakdown=breakdown)


class ConfidenceAggregator:
    def __init__(
        self,
        db: Database,
        half_life_days: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.half_life_days = half_life_days
        self._clock = clock

    @classmethod
    def from_config(cls, config: Config, db: Database) -> ConfidenceAggregator:
        return cls(db, half_life_days=config.confidence_half_life_days)

    def company_confidence(self, company_id: int) -> float:
        return overall_confidence(
            self.db.get_source_analyses(company_id), self.half_life_days, self._clock()
        )

    def is_company_complete(self, company_id: int) -> bool:
        return is_complete(self.db.get_source_analyses(company_id))

    def update_classification(
        self,
        company: Company,
        classification: Classification,
        confidence: float,
        method: ClassificationMethod = ClassificationMethod.automated,
        reasoning: ClassificationReasoning | None = None,
        actor: str | None = None,
    ) -> ClassificationResult:
        """Update the company and append its audit row in one transaction."""
        result = ClassificationResult(
            company_id=company.id,
            classification=classification,
            confidence_score=confidence,
            method=method,
            reasoning=reasoning or ClassificationReasoning(),
            classified_by=actor,
            created_at=self._clock(),
        )
        stored = self.db.update_classification(result)
        logger.info(
            "classification_updated",
            company_id=company.id,
            classification=classification.value,
            confidence=round(confidence, 4),
            method=method.value,
            classified_by=actor,
        )
        return stored

    def rollup(
        self, company: Company, method: ClassificationMethod = ClassificationMethod.automated
    ) -> ClassificationResult | None:
        """Fold every source analysis of a company into a classification."""
        analyses = self.db.get_source_analyses(company.id)
        if not analyses:
            logger.warning("rollup_skipped_no_analyses", company_id=company.id)
            return None

        classification, reasoning = classify(analyses)
        confidence = overall_confidence(analyses, self.half_life_days, self._clock())
        if not is_complete(analyses):
            missing = sorted(s.value for s in REQUIRED_SOURCES - {a.data_source for a in analyses})
            reasoning.summary += f" (incomplete, missing: {', '.join(missing)})"
        return self.update_classification(company, classification, confidence, method, reasoning)
