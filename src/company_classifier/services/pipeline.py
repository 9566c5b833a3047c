"""Wires the services together from a Config and a Database."""

from __future__ import annotations

from dataclasses import dataclass

from company_classifier.config import Config
from company_classifier.database import Database
from company_classifier.services.aggregator import ConfidenceAggregator
from company_classifier.services.ai_analysis import Analyzer, AnthropicAnalyzer
from company_classifier.services.analysis import AnalysisService
from company_classifier.services.cache import ContentCache
from company_classifier.services.fetcher import ContentFetcher
from company_classifier.services.jobs import ScrapingJobHandlers
from company_classifier.services.orchestrator import JobOrchestrator
from company_classifier.services.queue import DatabaseJobQueue
from company_classifier.services.worker import Worker


@dataclass
class Pipeline:
    db: Database
    cache: ContentCache
    fetcher: ContentFetcher
    orchestrator: JobOrchestrator
    aggregator: ConfidenceAggregator
    analysis: AnalysisService
    handlers: ScrapingJobHandlers
    worker: Worker

    def close(self) -> None:
        self.fetcher.close()


def build_pipeline(
    config: Config,
    db: Database,
    analyzer: Analyzer | None = None,
    fetcher: ContentFetcher | None = None,
) -> Pipeline:
    if analyzer is None and config.llm_enabled:
        analyzer = AnthropicAnalyzer(config.anthropic_api_key, model=config.llm_model)

    cache = ContentCache(db, ttl=config.content_ttl, metadata_ttl=config.metadata_ttl)
    fetcher = fetcher or ContentFetcher.from_config(config)
    orchestrator = JobOrchestrator.from_config(
        config, db, cache, DatabaseJobQueue(db), with_analysis=analyzer is not None
    )
    aggregator = ConfidenceAggregator.from_config(config, db)
    handlers = ScrapingJobHandlers(db, cache, fetcher, orchestrator, analyzer)
    return Pipeline(
        db=db,
        cache=cache,
        fetcher=fetcher,
        orchestrator=orchestrator,
        aggregator=aggregator,
        analysis=AnalysisService(db, orchestrator, aggregator),
        handlers=handlers,
        worker=Worker.from_config(config, db, handlers.handlers(), aggregator),
    )
