"""Tests for Pydantic models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from company_classifier.errors import JobStateError
from company_classifier.models import (
    JOB_SETTINGS,
    Classification,
    ClassificationMethod,
    Company,
    CompanyStatus,
    DataSource,
    JobDescriptor,
    JobType,
    ScrapingJob,
    ScrapingJobStatus,
    SourceAnalysis,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestCompany:
    def test_create_valid(self):
        c = Company(name="Acme Corp", website="https://www.acme.com")
        assert c.name == "Acme Corp"
        assert c.status == CompanyStatus.pending

    def test_name_whitespace_normalized(self):
        c = Company(name="  Acme   Corp  ")
        assert c.name == "Acme Corp"

    def test_name_required(self):
        with pytest.raises(ValidationError):
            Company(name="")

    def test_domain_derived_from_website(self):
        c = Company(name="Acme", website="https://WWW.Acme.com/about")
        assert c.domain == "www.acme.com"

    @pytest.mark.parametrize("score", [-0.1, 1.1])
    def test_confidence_range(self, score):
        with pytest.raises(ValidationError):
            Company(name="Acme", confidence_score=score)

    def test_confidence_percentage(self):
        assert Company(name="Acme", confidence_score=0.8437).confidence_percentage() == 84.4
        assert Company(name="Acme").confidence_percentage() is None

    def test_high_confidence(self):
        assert Company(name="Acme", confidence_score=0.8).has_high_confidence()
        assert not Company(name="Acme", confidence_score=0.79).has_high_confidence()

    def test_needs_reanalysis(self):
        assert Company(name="Acme").needs_reanalysis(now=NOW)
        recent = Company(name="Acme", last_analyzed_at=NOW - timedelta(days=5))
        old = Company(name="Acme", last_analyzed_at=NOW - timedelta(days=31))
        assert not recent.needs_reanalysis(30, NOW)
        assert old.needs_reanalysis(30, NOW)


class TestEnumAccessors:
    @pytest.mark.parametrize("enum_cls", [CompanyStatus, Classification, ClassificationMethod, ScrapingJobStatus])
    def test_every_member_has_label_and_color(self, enum_cls):
        for member in enum_cls:
            assert member.label()
            assert member.color()

    def test_every_classification_has_description(self):
        for member in Classification:
            assert member.description()

    def test_source_weights(self):
        assert DataSource.website.weight == 0.8
        assert DataSource.social_media.weight == 0.3
        assert DataSource.google_business.weight == 0.6
        assert DataSource.partners.weight == 0.5

    def test_job_status_groups(self):
        assert ScrapingJobStatus.queued.is_in_progress()
        assert ScrapingJobStatus.processing.is_in_progress()
        assert ScrapingJobStatus.completed.is_terminal()
        assert ScrapingJobStatus.failed.is_terminal()

    def test_every_job_type_has_settings(self):
        assert set(JOB_SETTINGS) == set(JobType)
        assert JOB_SETTINGS[JobType.website].timeout == 60
        assert JOB_SETTINGS[JobType.social_media].timeout == 120


class TestSourceAnalysis:
    def test_for_source_uses_fixed_weight(self):
        a = SourceAnalysis.for_source(1, DataSource.social_media, source_confidence=0.5)
        assert a.source_weight == 0.3
        assert a.weighted_score == pytest.approx(0.15)

    @pytest.mark.parametrize("field", ["source_weight", "source_confidence"])
    @pytest.mark.parametrize("value", [-0.01, 1.01])
    def test_unit_interval(self, field, value):
        kwargs = {"source_weight": 0.5, "source_confidence": 0.5, field: value}
        with pytest.raises(ValidationError):
            SourceAnalysis(company_id=1, data_source=DataSource.website, **kwargs)

    def test_immutable(self):
        a = SourceAnalysis.for_source(1, DataSource.website, source_confidence=0.5)
        with pytest.raises(ValidationError):
            a.source_confidence = 0.9

    def test_indicators_deduplicated(self):
        a = SourceAnalysis.for_source(
            1, DataSource.website, source_confidence=0.5,
            indicators=["ecommerce", "ecommerce", "case_studies"],
        )
        assert a.indicators == ["ecommerce", "case_studies"]

    def test_b2b_b2c_scores(self):
        a = SourceAnalysis.for_source(
            1, DataSource.website, source_confidence=0.5,
            indicators=["case_studies", "whitepapers", "ecommerce", "has_social_presence"],
        )
        assert a.b2b_score() == 0.5
        assert a.b2c_score() == 0.25
        assert a.has_indicator("ecommerce")

    def test_stale(self):
        a = SourceAnalysis.for_source(
            1, DataSource.website, source_confidence=0.5, scraped_at=NOW - timedelta(days=40)
        )
        assert a.is_stale(30, NOW)


def _processing_job(**kwargs) -> ScrapingJob:
    job = ScrapingJob(company_id=1, job_type=JobType.website, **kwargs)
    return job.mark_processing(NOW)


class TestScrapingJob:
    def test_from_descriptor(self):
        d = JobDescriptor(company_id=7, job_type=JobType.analysis, priority=2, max_attempts=5, requeue_count=1)
        job = ScrapingJob.from_descriptor(d, available_at=NOW)
        assert job.status == ScrapingJobStatus.queued
        assert (job.company_id, job.priority, job.max_attempts, job.requeue_count) == (7, 2, 5, 1)
        assert job.available_at == NOW

    def test_processing_requires_started_at(self):
        with pytest.raises(ValidationError):
            ScrapingJob(company_id=1, job_type=JobType.website, status=ScrapingJobStatus.processing)

    def test_terminal_requires_completed_at(self):
        with pytest.raises(ValidationError):
            ScrapingJob(company_id=1, job_type=JobType.website, status=ScrapingJobStatus.failed)

    def test_complete_lifecycle(self):
        job = _processing_job()
        assert job.started_at == NOW
        job.mark_completed(NOW + timedelta(seconds=42))
        assert job.status == ScrapingJobStatus.completed
        assert job.duration_seconds() == 42

    def test_failure_increments_attempts(self):
        job = _processing_job().mark_failed("boom", NOW)
        assert job.attempts == 1
        assert job.error_message == "boom"
        assert job.can_retry()
        assert not job.is_exhausted()

    def test_reset_for_retry_keeps_attempts(self):
        job = _processing_job().mark_failed("boom", NOW)
        later = NOW + timedelta(seconds=30)
        job.reset_for_retry(available_at=later)
        assert job.status == ScrapingJobStatus.queued
        assert job.attempts == 1
        assert job.started_at is None and job.completed_at is None and job.error_message is None
        assert job.available_at == later

    def test_exhausted_after_max_attempts(self):
        job = ScrapingJob(company_id=1, job_type=JobType.website, max_attempts=2)
        for _ in range(2):
            job.mark_processing(NOW).mark_failed("boom", NOW)
            if job.can_retry():
                job.reset_for_retry()
        assert job.is_exhausted()
        assert job.remaining_attempts() == 0
        with pytest.raises(JobStateError):
            job.reset_for_retry()

    @pytest.mark.parametrize("action", ["mark_completed", "mark_failed"])
    def test_queued_job_cannot_finish(self, action):
        job = ScrapingJob(company_id=1, job_type=JobType.website)
        with pytest.raises(JobStateError):
            getattr(job, action)()

    def test_completed_job_cannot_restart(self):
        job = _processing_job().mark_completed(NOW)
        with pytest.raises(JobStateError):
            job.mark_processing(NOW)

    def test_stuck(self):
        job = _processing_job()
        assert not job.is_stuck(30, NOW + timedelta(minutes=29))
        assert job.is_stuck(30, NOW + timedelta(minutes=31))

    def test_attempt_helpers(self):
        job = ScrapingJob(company_id=1, job_type=JobType.website, attempts=1, max_attempts=4, priority=1)
        assert job.remaining_attempts() == 3
        assert job.attempt_percentage() == 25.0
        assert job.has_high_priority()
