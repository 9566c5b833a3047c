"""SQLite record store with schema, CRUD, job queue and cache tables.

All datetimes are stored as ISO 8601 strings in UTC.
List and dict fields are stored as JSON text.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator

import structlog

from company_classifier.models import (
    Classification,
    ClassificationMethod,
    ClassificationReasoning,
    ClassificationResult,
    Company,
    CompanyStatus,
    DataSource,
    JobType,
    ScrapingJob,
    ScrapingJobStatus,
    SourceAnalysis,
    utcnow,
)

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Schema SQL
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS companies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    website TEXT,
    domain TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    classification TEXT,
    confidence_score REAL,
    last_analyzed_at TEXT,
    summary TEXT,
    branch TEXT,
    scope TEXT,
    keywords TEXT,
    ai_analyzed_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS source_analyses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
    data_source TEXT NOT NULL,
    raw_data TEXT,
    processed_data TEXT,
    indicators TEXT,
    source_weight REAL NOT NULL,
    source_confidence REAL NOT NULL,
    scraped_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS classification_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
    classification TEXT NOT NULL,
    confidence_score REAL NOT NULL,
    method TEXT NOT NULL,
    reasoning TEXT,
    classified_by TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scraping_jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
    job_type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'queued',
    priority INTEGER NOT NULL DEFAULT 0,
    attempts INTEGER NOT NULL DEFAULT 0,
    max_attempts INTEGER NOT NULL DEFAULT 3,
    requeue_count INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    available_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at TEXT NOT NULL
);
"""

_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS idx_companies_status ON companies(status);
CREATE INDEX IF NOT EXISTS idx_companies_domain ON companies(domain);
CREATE INDEX IF NOT EXISTS idx_source_analyses_company_id ON source_analyses(company_id);
CREATE INDEX IF NOT EXISTS idx_source_analyses_data_source ON source_analyses(data_source);
CREATE INDEX IF NOT EXISTS idx_classification_results_company_id ON classification_results(company_id);
CREATE INDEX IF NOT EXISTS idx_scraping_jobs_company_id ON scraping_jobs(company_id);
CREATE INDEX IF NOT EXISTS idx_scraping_jobs_status_available ON scraping_jobs(status, available_at);
CREATE INDEX IF NOT EXISTS idx_cache_entries_expires_at ON cache_entries(expires_at);
"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _dt_to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _iso_to_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    dt = datetime.fromisoformat(val)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _json_dumps(val: list | dict | None) -> str | None:
    if val is None:
        return None
    return json.dumps(val)


def _json_loads(val: str | None) -> Any:
    if val is None:
        return None
    return json.loads(val)


def _to_column(val: Any) -> Any:
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, datetime):
        return _dt_to_iso(val)
    if isinstance(val, (list, dict)):
        return _json_dumps(val)
    return val


# ---------------------------------------------------------------------------
# Database class
# ---------------------------------------------------------------------------

class Database:
    def __init__(self, db_path: str = "data/classifier.db"):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connection() as conn:
            conn.executescript(_SCHEMA_SQL)
            conn.executescript(_INDEX_SQL)
        logger.info("database_initialized", path=self.db_path)

    # =======================================================================
    # Companies
    # =======================================================================

    def create_company(self, company: Company) -> int:
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO companies
                    (name, website, domain, status, classification, confidence_score,
                     last_analyzed_at, summary, branch, scope, keywords, ai_analyzed_at,
                     created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    company.name,
                    company.website,
                    company.domain,
                    company.status.value,
                    company.classification.value if company.classification else None,
                    company.confidence_score,
                    _dt_to_iso(company.last_analyzed_at),
                    company.summary,
                    company.branch,
                    company.scope,
                    _json_dumps(company.keywords),
                    _dt_to_iso(company.ai_analyzed_at),
                    _dt_to_iso(company.created_at),
                    _dt_to_iso(company.updated_at),
                ),
            )
            return cursor.lastrowid  # type: ignore[return-value]

    def get_company(self, company_id: int) -> Company | None:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM companies WHERE id = ?", (company_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_company(row)

    def get_company_by_domain(self, domain: str) -> Company | None:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM companies WHERE domain = ? ORDER BY id LIMIT 1", (domain.lower(),)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_company(row)

    def get_all_companies(
        self, status: CompanyStatus | None = None, limit: int | None = None
    ) -> list[Company]:
        sql = "SELECT * FROM companies"
        params: list[Any] = []
        if status is not None:
            sql += " WHERE status = ?"
            params.append(status.value)
        sql += " ORDER BY id"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        with self.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_company(r) for r in rows]

    def update_company(self, company_id: int, **kwargs: Any) -> None:
        kwargs.setdefault("updated_at", utcnow())
        sets = ", ".join(f"{k} = ?" for k in kwargs)
        vals = [_to_column(v) for v in kwargs.values()] + [company_id]
        with self.connection() as conn:
            conn.execute(f"UPDATE companies SET {sets} WHERE id = ?", vals)

    def delete_company(self, company_id: int) -> None:
        with self.connection() as conn:
            conn.execute("DELETE FROM companies WHERE id = ?", (company_id,))

    def company_status_counts(self) -> dict[str, int]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM companies GROUP BY status"
            ).fetchall()
        return {r["status"]: r["n"] for r in rows}

    def classification_counts(self) -> dict[str, int]:
        with self.connection() as conn:
            rows = conn.execute(
                """
                SELECT classification, COUNT(*) AS n FROM companies
                WHERE classification IS NOT NULL GROUP BY classification
                """
            ).fetchall()
        return {r["classification"]: r["n"] for r in rows}

    @staticmethod
    def _row_to_company(row: sqlite3.Row) -> Company:
        return Company(
            id=row["id"],
            name=row["name"],
            website=row["website"],
            domain=row["domain"],
            status=CompanyStatus(row["status"]),
            classification=Classification(row["classification"]) if row["classification"] else None,
            confidence_score=row["confidence_score"],
            last_analyzed_at=_iso_to_dt(row["last_analyzed_at"]),
            summary=row["summary"],
            branch=row["branch"],
            scope=row["scope"],
            keywords=_json_loads(row["keywords"]) or [],
            ai_analyzed_at=_iso_to_dt(row["ai_analyzed_at"]),
            created_at=_iso_to_dt(row["created_at"]) or datetime.now(timezone.utc),
            updated_at=_iso_to_dt(row["updated_at"]) or datetime.now(timezone.utc),
        )

    # =======================================================================
    # Source Analyses
    # =======================================================================

    def store_source_analysis(self, analysis: SourceAnalysis) -> int:
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO source_analyses
                    (company_id, data_source, raw_data, processed_data, indicators,
                     source_weight, source_confidence, scraped_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    analysis.company_id,
                    analysis.data_source.value,
                    _json_dumps(analysis.raw_data),
                    _json_dumps(analysis.processed_data),
                    _json_dumps(analysis.indicators),
                    analysis.source_weight,
                    analysis.source_confidence,
                    _dt_to_iso(analysis.scraped_at),
                ),
            )
            return cursor.lastrowid  # type: ignore[return-value]

    def get_source_analyses(
        self, company_id: int, data_source: DataSource | None = None
    ) -> list[SourceAnalysis]:
        sql = "SELECT * FROM source_analyses WHERE company_id = ?"
        params: list[Any] = [company_id]
        if data_source is not None:
            sql += " AND data_source = ?"
            params.append(data_source.value)
        sql += " ORDER BY scraped_at DESC, id DESC"
        with self.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_analysis(r) for r in rows]

    def get_latest_analyses_by_source(self, company_id: int) -> dict[DataSource, SourceAnalysis]:
        latest: dict[DataSource, SourceAnalysis] = {}
        for analysis in self.get_source_analyses(company_id):
            latest.setdefault(analysis.data_source, analysis)
        return latest

    def source_analysis_counts(self) -> dict[str, int]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT data_source, COUNT(*) AS n FROM source_analyses GROUP BY data_source"
            ).fetchall()
        return {r["data_source"]: r["n"] for r in rows}

    @staticmethod
    def _row_to_analysis(row: sqlite3.Row) -> SourceAnalysis:
        return SourceAnalysis(
            id=row["id"],
            company_id=row["company_id"],
            data_source=DataSource(row["data_source"]),
            raw_data=_json_loads(row["raw_data"]) or {},
            processed_data=_json_loads(row["processed_data"]) or {},
            indicators=_json_loads(row["indicators"]) or [],
            source_weight=row["source_weight"],
            source_confidence=row["source_confidence"],
            scraped_at=_iso_to_dt(row["scraped_at"]) or datetime.now(timezone.utc),
        )

    # =======================================================================
    # Classification Results
    # =======================================================================

    def update_classification(self, result: ClassificationResult) -> ClassificationResult:
        """Write the company's denormalized classification and its audit row.

        Both statements share one connection, so either both commit or the
        rollback in ``connection()`` discards both.
        """
        with self.connection() as conn:
            updated = conn.execute(
                """
                UPDATE companies SET
                    classification = ?, confidence_score = ?, status = ?,
                    last_analyzed_at = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    result.classification.value,
                    result.confidence_score,
                    CompanyStatus.completed.value,
                    _dt_to_iso(result.created_at),
                    _dt_to_iso(result.created_at),
                    result.company_id,
                ),
            )
            if updated.rowcount != 1:
                raise LookupError(f"company {result.company_id} does not exist")
            cursor = conn.execute(
                """
                INSERT INTO classification_results
                    (company_id, classification, confidence_score, method, reasoning,
                     classified_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.company_id,
                    result.classification.value,
                    result.confidence_score,
                    result.method.value,
                    result.reasoning.model_dump_json(),
                    result.classified_by,
                    _dt_to_iso(result.created_at),
                ),
            )
            result_id = cursor.lastrowid
        return result.model_copy(update={"id": result_id})

    def get_classification_results(self, company_id: int) -> list[ClassificationResult]:
        with self.connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM classification_results WHERE company_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (company_id,),
            ).fetchall()
        return [self._row_to_classification(r) for r in rows]

    @staticmethod
    def _row_to_classification(row: sqlite3.Row) -> ClassificationResult:
        return ClassificationResult(
            id=row["id"],
            company_id=row["company_id"],
            classification=Classification(row["classification"]),
            confidence_score=row["confidence_score"],
            method=ClassificationMethod(row["method"]),
            reasoning=ClassificationReasoning.model_validate_json(row["reasoning"] or "{}"),
            classified_by=row["classified_by"],
            created_at=_iso_to_dt(row["created_at"]) or datetime.now(timezone.utc),
        )

    # =======================================================================
    # Scraping Jobs
    # =======================================================================

    def create_job(self, job: ScrapingJob) -> int:
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO scraping_jobs
                    (company_id, job_type, status, priority, attempts, max_attempts,
                     requeue_count, error_message, available_at, started_at, completed_at,
                     created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.company_id,
                    job.job_type.value,
                    job.status.value,
                    job.priority,
                    job.attempts,
                    job.max_attempts,
                    job.requeue_count,
                    job.error_message,
                    _dt_to_iso(job.available_at),
                    _dt_to_iso(job.started_at),
                    _dt_to_iso(job.completed_at),
                    _dt_to_iso(job.created_at),
                ),
            )
            return cursor.lastrowid  # type: ignore[return-value]

    def save_job(self, job: ScrapingJob) -> None:
        """Persist the mutable lifecycle fields of an existing job."""
        with self.connection() as conn:
            conn.execute(
                """
                UPDATE scraping_jobs SET
                    status = ?, priority = ?, attempts = ?, error_message = ?,
                    available_at = ?, started_at = ?, completed_at = ?
                WHERE id = ?
                """,
                (
                    job.status.value,
                    job.priority,
                    job.attempts,
                    job.error_message,
                    _dt_to_iso(job.available_at),
                    _dt_to_iso(job.started_at),
                    _dt_to_iso(job.completed_at),
                    job.id,
                ),
            )

    def complete_job(self, job: ScrapingJob) -> bool:
        """Persist a completed delivery and report whether its company is settled.

        Settled means no other job of the company is queued or processing.
        The write and the check run in one IMMEDIATE transaction, so when
        several workers finish the same company's jobs, the last one to
        commit is the one that sees it settled. A delivery that no longer
        owns the row (failed or re-claimed after a timeout) writes nothing
        and returns False.
        """
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            updated = conn.execute(
                """
                UPDATE scraping_jobs SET status = ?, completed_at = ?, error_message = ?
                WHERE id = ? AND status = ? AND started_at = ?
                """,
                (
                    job.status.value,
                    _dt_to_iso(job.completed_at),
                    job.error_message,
                    job.id,
                    ScrapingJobStatus.processing.value,
                    _dt_to_iso(job.started_at),
                ),
            )
            if updated.rowcount != 1:
                return False
            row = conn.execute(
                "SELECT 1 FROM scraping_jobs WHERE company_id = ? AND status IN (?, ?) LIMIT 1",
                (job.company_id, ScrapingJobStatus.queued.value, ScrapingJobStatus.processing.value),
            ).fetchone()
        return row is None

    def is_current_delivery(self, job: ScrapingJob) -> bool:
        """True while the stored row is still this delivery's processing claim."""
        stored = self.get_job(job.id) if job.id is not None else None
        return (
            stored is not None
            and stored.status == ScrapingJobStatus.processing
            and stored.started_at == job.started_at
        )

    def get_job(self, job_id: int) -> ScrapingJob | None:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM scraping_jobs WHERE id = ?", (job_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_job(row)

    def get_jobs(
        self,
        company_id: int | None = None,
        statuses: Iterable[ScrapingJobStatus] | None = None,
        job_type: JobType | None = None,
        limit: int | None = None,
    ) -> list[ScrapingJob]:
        """Jobs in queue order: priority desc, then oldest first."""
        clauses: list[str] = []
        params: list[Any] = []
        if company_id is not None:
            clauses.append("company_id = ?")
            params.append(company_id)
        if statuses is not None:
            values = [s.value for s in statuses]
            clauses.append(f"status IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        if job_type is not None:
            clauses.append("job_type = ?")
            params.append(job_type.value)
        sql = "SELECT * FROM scraping_jobs"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY priority DESC, created_at ASC, id ASC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        with self.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_job(r) for r in rows]

    def claim_next_job(self, now: datetime | None = None) -> ScrapingJob | None:
        """Move the next due queued job to processing and return it.

        The conditional UPDATE makes the claim safe when several worker
        processes poll the same database.
        """
        now = now or utcnow()
        with self.connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM scraping_jobs
                WHERE status = ? AND available_at <= ?
                ORDER BY priority DESC, created_at ASC, id ASC
                LIMIT 5
                """,
                (ScrapingJobStatus.queued.value, _dt_to_iso(now)),
            ).fetchall()
            for row in rows:
                job = self._row_to_job(row).mark_processing(now)
                claimed = conn.execute(
                    """
                    UPDATE scraping_jobs SET status = ?, started_at = ?
                    WHERE id = ? AND status = ?
                    """,
                    (job.status.value, _dt_to_iso(job.started_at), job.id,
                     ScrapingJobStatus.queued.value),
                )
                if claimed.rowcount == 1:
                    return job
        return None

    def get_retryable_jobs(self) -> list[ScrapingJob]:
        return self._jobs_where(
            "status = ? AND attempts < max_attempts", (ScrapingJobStatus.failed.value,)
        )

    def get_exhausted_jobs(self) -> list[ScrapingJob]:
        return self._jobs_where(
            "status = ? AND attempts >= max_attempts", (ScrapingJobStatus.failed.value,)
        )

    def get_stuck_jobs(self, started_before: datetime) -> list[ScrapingJob]:
        return self._jobs_where(
            "status = ? AND started_at < ?",
            (ScrapingJobStatus.processing.value, _dt_to_iso(started_before)),
        )

    def delete_active_jobs(self, company_id: int) -> int:
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM scraping_jobs WHERE company_id = ? AND status IN (?, ?)",
                (company_id, ScrapingJobStatus.queued.value, ScrapingJobStatus.processing.value),
            )
            return cursor.rowcount

    def has_active_jobs(self, company_id: int) -> bool:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM scraping_jobs WHERE company_id = ? AND status IN (?, ?) LIMIT 1",
                (company_id, ScrapingJobStatus.queued.value, ScrapingJobStatus.processing.value),
            ).fetchone()
        return row is not None

    def job_status_counts(self, company_id: int | None = None) -> dict[str, int]:
        sql = "SELECT status, COUNT(*) AS n FROM scraping_jobs"
        params: tuple = ()
        if company_id is not None:
            sql += " WHERE company_id = ?"
            params = (company_id,)
        sql += " GROUP BY status"
        with self.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        counts = {s.value: 0 for s in ScrapingJobStatus}
        counts.update({r["status"]: r["n"] for r in rows})
        return counts

    def _jobs_where(self, where: str, params: tuple) -> list[ScrapingJob]:
        with self.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM scraping_jobs WHERE {where} "
                "ORDER BY priority DESC, created_at ASC, id ASC",
                params,
            ).fetchall()
        return [self._row_to_job(r) for r in rows]

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> ScrapingJob:
        return ScrapingJob(
            id=row["id"],
            company_id=row["company_id"],
            job_type=JobType(row["job_type"]),
            status=ScrapingJobStatus(row["status"]),
            priority=row["priority"],
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            requeue_count=row["requeue_count"],
            error_message=row["error_message"],
            available_at=_iso_to_dt(row["available_at"]) or datetime.now(timezone.utc),
            started_at=_iso_to_dt(row["started_at"]),
            completed_at=_iso_to_dt(row["completed_at"]),
            created_at=_iso_to_dt(row["created_at"]) or datetime.now(timezone.utc),
        )

    # =======================================================================
    # Cache entries
    # =======================================================================

    def cache_get(self, key: str, now: datetime) -> Any | None:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT value FROM cache_entries WHERE key = ? AND expires_at > ?",
                (key, _dt_to_iso(now)),
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    def cache_put(self, key: str, value: Any, expires_at: datetime) -> None:
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at
                """,
                (key, json.dumps(value), _dt_to_iso(expires_at)),
            )

    def cache_forget(self, key: str) -> None:
        with self.connection() as conn:
            conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))

    def cache_purge_expired(self, now: datetime) -> int:
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE expires_at <= ?", (_dt_to_iso(now),)
            )
            return cursor.rowcount

    def cache_stats(self, prefix: str, now: datetime) -> tuple[int, int]:
        """Return (live entry count, total stored bytes) for keys under prefix."""
        with self.connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS n, COALESCE(SUM(LENGTH(value)), 0) AS size
                FROM cache_entries WHERE key LIKE ? AND expires_at > ?
                """,
                (prefix + "%", _dt_to_iso(now)),
            ).fetchone()
        return row["n"], row["size"]
