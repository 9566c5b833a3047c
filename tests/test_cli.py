"""Tests for the Typer CLI."""

import json

import httpx
import pytest
import structlog
from typer.testing import CliRunner

from company_classifier.cli import app
from company_classifier.config import Config
from company_classifier.database import Database
from company_classifier.services.fetcher import ContentFetcher
from company_classifier.services.pipeline import build_pipeline

runner = CliRunner()

PAGE = (
    "<!DOCTYPE html><html><body><p>Shop our store, add to cart.</p>"
    '<a href="https://facebook.com/acme">f</a><a href="https://instagram.com/acme">i</a>'
    '<a href="https://tiktok.com/@acme">t</a></body></html>'
)


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    yield
    structlog.reset_defaults()


def _db(tmp_path) -> Database:
    return Database(str(tmp_path / "cli.db"))


class TestCommands:
    def test_init_db(self):
        result = runner.invoke(app, ["init-db"])
        assert result.exit_code == 0
        assert "initialized" in result.output

    def test_add_company_and_show(self, tmp_path):
        result = runner.invoke(app, ["add-company", "acme.com", "--no-analyze"])
        assert result.exit_code == 0, result.output
        assert "Created company 1: Acme (acme.com)" in result.output

        result = runner.invoke(app, ["show-company", "1", "--json"])
        payload = json.loads(result.output)
        assert payload["company"]["name"] == "Acme"
        assert payload["summary"]["total_analyses"] == 0

    def test_duplicate_company_exits_nonzero(self):
        runner.invoke(app, ["add-company", "acme.com", "--no-analyze"])
        result = runner.invoke(app, ["add-company", "https://acme.com", "--no-analyze"])
        assert result.exit_code == 1

    def test_analyze_without_llm_key_queues_two_jobs(self, tmp_path):
        runner.invoke(app, ["add-company", "acme.com", "--no-analyze"])
        result = runner.invoke(app, ["analyze"])
        assert "Started: 1, Skipped: 0, Errors: 0" in result.output

        result = runner.invoke(app, ["list-jobs"])
        assert "Total: 2" in result.output
        assert "website" in result.output and "social_media" in result.output
        assert "queued_for=" in result.output

    def test_manual_classify(self, tmp_path):
        runner.invoke(app, ["add-company", "acme.com", "--no-analyze"])
        result = runner.invoke(app, ["classify", "1", "b2c", "--confidence", "0.7", "--by", "alice"])
        assert result.exit_code == 0, result.output
        assert "B2C (0.70, Manual)" in result.output
        assert _db(tmp_path).get_company(1).classification.value == "b2c"

    def test_classify_without_analyses_fails(self):
        runner.invoke(app, ["add-company", "acme.com", "--no-analyze"])
        result = runner.invoke(app, ["classify", "1"])
        assert result.exit_code == 1

    def test_unknown_company(self):
        result = runner.invoke(app, ["show-company", "42"])
        assert result.exit_code == 1

    def test_stats(self):
        runner.invoke(app, ["add-company", "acme.com"])
        result = runner.invoke(app, ["stats", "--purge-cache"])
        assert result.exit_code == 0
        stats = json.loads(result.output.split("\n", 1)[1])
        assert stats["jobs"]["queued"] == 2


class TestPipeline:
    def test_end_to_end_without_llm(self, tmp_path):
        config = Config(_env_file=None)
        db = _db(tmp_path)
        db.init_db()
        fetcher = ContentFetcher(
            retries=0,
            client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, text=PAGE))),
        )
        pipeline = build_pipeline(config, db, fetcher=fetcher)
        # dependent jobs go out without delay once content is cached
        pipeline.orchestrator.dependent_delay = pipeline.orchestrator.dependent_delay * 0

        company = pipeline.analysis.create_company("https://acme-shop.com")
        pipeline.analysis.start_analysis(company)
        assert pipeline.worker.run(stop_when_idle=True) == 2

        stored = db.get_company(company.id)
        assert stored.status.value == "completed"
        assert stored.classification.value == "b2c"
        [analysis] = db.get_source_analyses(company.id)
        assert "social_media_heavy" in analysis.indicators
        pipeline.close()
