"""Typer CLI for the company classifier.

All commands load configuration, initialize the database, and delegate
to the services wired up by ``build_pipeline``.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import structlog
import typer

from company_classifier.config import Config
from company_classifier.database import Database
from company_classifier.models import (
    Classification,
    ClassificationMethod,
    ClassificationReasoning,
    ScrapingJobStatus,
)
from company_classifier.services.pipeline import Pipeline, build_pipeline

app = typer.Typer(
    name="company-classifier",
    help="Classify companies as B2B, B2C or hybrid from their web presence.",
    add_completion=False,
)

logger = structlog.get_logger()


def _get_config() -> Config:
    try:
        config = Config()  # type: ignore[call-arg]
    except Exception as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(1)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, config.log_level))
    )
    return config


def _get_db(config: Config) -> Database:
    db = Database(config.database_path)
    db.init_db()
    return db


def _get_pipeline() -> Pipeline:
    config = _get_config()
    return build_pipeline(config, _get_db(config))


def _load_company(pipeline: Pipeline, company_id: int):
    company = pipeline.db.get_company(company_id)
    if company is None:
        typer.echo(f"Company {company_id} not found.", err=True)
        raise typer.Exit(1)
    return company


# ===================================================================
# Database
# ===================================================================

@app.command()
def init_db() -> None:
    """Initialize the database schema."""
    config = _get_config()
    _get_db(config)
    typer.echo("Database initialized successfully.")


# ===================================================================
# Companies
# ===================================================================

@app.command()
def add_company(
    website: str = typer.Argument(..., help="Company website URL"),
    name: Optional[str] = typer.Option(None, "--name", help="Company name (derived from URL if omitted)"),
    analyze: bool = typer.Option(True, "--analyze/--no-analyze", help="Start analysis right away"),
) -> None:
    """Register a company by website."""
    pipeline = _get_pipeline()
    try:
        company = pipeline.analysis.create_company(website, name=name)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Created company {company.id}: {company.name} ({company.domain})")
    if analyze:
        started = pipeline.analysis.start_analysis(company)
        typer.echo("Analysis started." if started else "Analysis skipped.")


@app.command()
def show_company(
    company_id: int = typer.Argument(...),
    as_json: bool = typer.Option(False, "--json", help="Print the analysis summary as JSON"),
) -> None:
    """Show a company with its analysis summary."""
    pipeline = _get_pipeline()
    company = _load_company(pipeline, company_id)
    summary = pipeline.analysis.analysis_summary(company)
    if as_json:
        payload = {"company": company.model_dump(mode="json"), "summary": summary}
        typer.echo(json.dumps(payload, indent=2, default=str))
        return

    classification = company.classification.label() if company.classification else "-"
    confidence = company.confidence_percentage()
    typer.echo(f"{company.name} [{company.status.label()}]")
    typer.echo(f"  Website: {company.website}")
    typer.echo(f"  Classification: {classification}")
    typer.echo(f"  Confidence: {confidence if confidence is not None else '-'}%")
    if company.branch:
        typer.echo(f"  Branch: {company.branch} / {company.scope}")
    if company.summary:
        typer.echo(f"  Summary: {company.summary}")
    typer.echo(f"  Analyses: {summary['total_analyses']} ({', '.join(summary['data_sources']) or 'none'})")
    typer.echo(f"  Overall confidence: {summary['overall_confidence']:.2f}")
    jobs = ", ".join(f"{k}={v}" for k, v in summary["scraping_jobs"].items())
    typer.echo(f"  Jobs: {jobs}")


# ===================================================================
# Analysis
# ===================================================================

@app.command()
def analyze(
    company_id: Optional[int] = typer.Option(None, "--company-id", help="Specific company ID"),
    limit: Optional[int] = typer.Option(None, "--limit"),
) -> None:
    """Start analysis for one company or every company ready for it."""
    pipeline = _get_pipeline()
    if company_id is not None:
        ids = [company_id]
    else:
        ids = [c.id for c in pipeline.analysis.companies_ready_for_analysis()][:limit]
    result = pipeline.analysis.start_batch(ids)
    typer.echo(f"Started: {result.started}, Skipped: {result.skipped}, Errors: {len(result.errors)}")
    for error in result.errors:
        typer.echo(f"  {error}", err=True)


@app.command()
def reanalyze(
    company_id: Optional[int] = typer.Option(None, "--company-id", help="Specific company ID"),
    days: int = typer.Option(30, "--days", help="Re-analyze companies older than this"),
) -> None:
    """Drop unfinished jobs and analyze again."""
    pipeline = _get_pipeline()
    if company_id is not None:
        companies = [_load_company(pipeline, company_id)]
    else:
        companies = pipeline.analysis.companies_needing_reanalysis(days)
    started = sum(1 for c in companies if pipeline.analysis.schedule_reanalysis(c))
    typer.echo(f"Scheduled: {started}, Skipped: {len(companies) - started}")


@app.command()
def work(
    max_jobs: Optional[int] = typer.Option(None, "--max-jobs", help="Stop after this many jobs"),
    poll_interval: float = typer.Option(5.0, "--poll-interval", help="Seconds between idle polls"),
    until_idle: bool = typer.Option(False, "--until-idle", help="Exit when no job is due"),
) -> None:
    """Run the job worker."""
    pipeline = _get_pipeline()
    try:
        processed = pipeline.worker.run(
            max_jobs=max_jobs, poll_interval=poll_interval, stop_when_idle=until_idle
        )
    except KeyboardInterrupt:
        typer.echo("Interrupted.")
        raise typer.Exit(130)
    finally:
        pipeline.close()
    typer.echo(f"Processed: {processed}")


@app.command()
def classify(
    company_id: int = typer.Argument(...),
    classification: Optional[Classification] = typer.Argument(
        None, help="Manual classification; omit to recompute from analyses"
    ),
    confidence: float = typer.Option(1.0, "--confidence", min=0.0, max=1.0),
    by: Optional[str] = typer.Option(None, "--by", help="Who made the manual call"),
    note: str = typer.Option("", "--note"),
) -> None:
    """Recompute a company's classification, or set it by hand."""
    pipeline = _get_pipeline()
    company = _load_company(pipeline, company_id)
    if classification is None:
        result = pipeline.aggregator.rollup(company)
        if result is None:
            typer.echo("No analyses to classify from.", err=True)
            raise typer.Exit(1)
    else:
        result = pipeline.aggregator.update_classification(
            company,
            classification,
            confidence,
            method=ClassificationMethod.manual,
            reasoning=ClassificationReasoning(summary=note),
            actor=by,
        )
    typer.echo(
        f"{company.name}: {result.classification.label()} "
        f"({result.confidence_score:.2f}, {result.method.label()})"
    )


# ===================================================================
# Jobs
# ===================================================================

@app.command()
def list_jobs(
    company_id: Optional[int] = typer.Option(None, "--company-id"),
    status: Optional[ScrapingJobStatus] = typer.Option(None, "--status"),
    limit: int = typer.Option(50, "--limit"),
) -> None:
    """List scraping jobs in queue order."""
    pipeline = _get_pipeline()
    jobs = pipeline.db.get_jobs(
        company_id=company_id, statuses=[status] if status else None, limit=limit
    )
    for job in jobs:
        line = (
            f"#{job.id} company={job.company_id} {job.job_type.value} "
            f"{job.status.label()} attempts={job.attempts}/{job.max_attempts}"
            f" queued_for={job.wait_seconds()}s"
        )
        if job.requeue_count:
            line += f" waits={job.requeue_count}"
        if job.error_message:
            line += f" error={job.error_message}"
        typer.echo(line)
    typer.echo(f"Total: {len(jobs)}")


@app.command()
def stuck_jobs() -> None:
    """Report jobs that have been processing for too long."""
    pipeline = _get_pipeline()
    stuck = pipeline.orchestrator.find_stuck_jobs()
    for job in stuck:
        typer.echo(
            f"#{job.id} company={job.company_id} {job.job_type.value} "
            f"running {job.duration_seconds()}s"
        )
    typer.echo(f"Stuck: {len(stuck)}")


@app.command()
def retry_failed() -> None:
    """Dispatch fresh jobs for exhausted ones."""
    pipeline = _get_pipeline()
    count = pipeline.analysis.retry_exhausted_jobs()
    typer.echo(f"Re-dispatched: {count}")


# ===================================================================
# Cache
# ===================================================================

@app.command()
def refresh_content(
    company_id: int = typer.Argument(...),
) -> None:
    """Drop a company's cached website content and fetch it again."""
    pipeline = _get_pipeline()
    company = _load_company(pipeline, company_id)
    if not pipeline.orchestrator.refresh_website_content(company):
        typer.echo("Company has no website.", err=True)
        raise typer.Exit(1)
    typer.echo("Content refresh dispatched.")


@app.command()
def stats(
    purge_cache: bool = typer.Option(False, "--purge-cache", help="Remove expired cache entries first"),
) -> None:
    """Print store, job and cache statistics."""
    pipeline = _get_pipeline()
    if purge_cache:
        removed = pipeline.orchestrator.cleanup_expired_cache()
        typer.echo(f"Purged {removed} expired cache entries.")
    typer.echo(json.dumps(pipeline.analysis.statistics(), indent=2, default=str))


if __name__ == "__main__":
    app()
