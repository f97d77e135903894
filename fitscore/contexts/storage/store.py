"""
SQLite-backed storage collaborator.

One SqliteStore wraps one database file. Connections are opened per call, so
a store instance may be shared, but analysis units construct their own store
from the URI in their execution context and never share connections across
threads.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from fitscore.contexts.storage.schema import (
    ANALYSIS_PERFORMANCE_QUERY,
    CONTEXT_STATS_QUERY,
    RUN_BREAKDOWN_QUERY,
    SCHEMA,
    SUBJECT_TABLES,
)
from fitscore.utils.timestamp import now_exact

CONNECT_TIMEOUT_S = 10.0


class SqliteStore:
    """
    Storage collaborator over a single SQLite database file.

    Attributes:
        db_path: Path to the database file
    """

    def __init__(self, db_path):
        self.db_path = Path(db_path)

    def __repr__(self) -> str:
        return f"SqliteStore({str(self.db_path)!r})"

    @contextmanager
    def _connect(self, read_only: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Open a connection, commit on success, always close.

        Read-only connections never create the database file, so reading
        from a copy that has already been reclaimed fails instead of leaving
        an empty file behind.
        """
        if read_only:
            uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
            conn = sqlite3.connect(uri, uri=True, timeout=CONNECT_TIMEOUT_S)
        else:
            conn = sqlite3.connect(self.db_path, timeout=CONNECT_TIMEOUT_S)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    def ping(self) -> bool:
        """
        Verify the database answers a trivial query.

        Raises:
            sqlite3.Error: If the database is unreachable
        """
        if not self.db_path.exists():
            raise sqlite3.OperationalError(f"Database file not found: {self.db_path}")
        with self._connect() as conn:
            conn.execute("SELECT 1").fetchone()
        return True

    # =========================================================================
    # SUBJECTS
    # =========================================================================

    def put_subject(self, kind: str, subject_id: str, record: Dict[str, Any]) -> None:
        """
        Insert or replace a resume/job record.

        Args:
            kind: "resume" or "job"
            subject_id: Identifier (primary key)
            record: JSON-serializable subject payload
        """
        table, key_column = _subject_table(kind)
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {table} ({key_column}, data, created_at) VALUES (?, ?, ?)",
                (subject_id, json.dumps(record), now_exact()),
            )

    def get_subject(self, kind: str, subject_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a resume/job record.

        Returns:
            Record dict with its identifier included, or None if absent

        Raises:
            ValueError: If kind is unknown
            sqlite3.Error: If the database cannot be read
        """
        table, key_column = _subject_table(kind)
        with self._connect(read_only=True) as conn:
            row = conn.execute(
                f"SELECT data FROM {table} WHERE {key_column} = ?", (subject_id,)
            ).fetchone()

        if row is None:
            return None

        record = json.loads(row["data"])
        record[key_column] = subject_id
        return record

    # =========================================================================
    # RESULTS
    # =========================================================================

    def put_result(
        self,
        context_id: str,
        analysis_type: str,
        result,  # AnalysisResult
        resume_id: str,
        job_id: str,
        before_commit: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Store one validated analysis result.

        Args:
            context_id: Execution context that produced the result
            analysis_type: Analysis type value (e.g., "skill")
            result: AnalysisResult to store
            resume_id: Resume the result refers to
            job_id: Job the result refers to
            before_commit: Called after the insert, before commit; raising
                from it rolls the insert back
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO analysis_results
                (context_id, analysis_type, resume_id, job_id, status, score, evidence, timing_ms, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    context_id,
                    analysis_type,
                    resume_id,
                    job_id,
                    result.status.value,
                    result.score,
                    json.dumps(result.evidence_dict()),
                    result.timing_ms,
                    now_exact(),
                ),
            )
            if before_commit is not None:
                before_commit()

    def get_results(self, resume_id: str, job_id: str) -> List[Dict[str, Any]]:
        """All stored analysis results for a pair, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT context_id, analysis_type, status, score, evidence, timing_ms, created_at
                FROM analysis_results
                WHERE resume_id = ? AND job_id = ?
                ORDER BY id DESC
                """,
                (resume_id, job_id),
            ).fetchall()

        results = []
        for row in rows:
            entry = dict(row)
            entry["evidence"] = json.loads(entry["evidence"]) if entry["evidence"] else None
            results.append(entry)
        return results

    # =========================================================================
    # CONTEXT LEDGER
    # =========================================================================

    def record_context(self, context) -> None:
        """
        Upsert the ledger row for an execution context.

        Args:
            context: ExecutionContext snapshot
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO execution_contexts
                (context_id, run_id, analysis_type, resume_id, job_id, status,
                 isolation_tier, created_at, completed_at, duration_ms, error)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(context_id) DO UPDATE SET
                    status = excluded.status,
                    isolation_tier = excluded.isolation_tier,
                    completed_at = excluded.completed_at,
                    duration_ms = excluded.duration_ms,
                    error = excluded.error
                """,
                (
                    context.id,
                    context.run_id,
                    context.analysis_type.value,
                    context.subject_refs.resume_id,
                    context.subject_refs.job_id,
                    context.status.value,
                    context.isolation_tier.value if context.isolation_tier else None,
                    context.created_at.isoformat(),
                    context.completed_at.isoformat() if context.completed_at else None,
                    context.duration_ms,
                    context.error,
                ),
            )

    # =========================================================================
    # COMPOSITES
    # =========================================================================

    def put_composite(self, composite) -> None:
        """
        Store a CompositeResult (one row per scoring run).

        Args:
            composite: CompositeResult from Coordinator.score()
        """
        response = composite.to_response()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO composite_scores
                (run_id, resume_id, job_id, composite_score, overall_status,
                 weights, scores, processing_time_ms, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    composite.run_id,
                    composite.resume_id,
                    composite.job_id,
                    composite.composite_score,
                    composite.overall_status.value,
                    json.dumps(response["weightsUsed"]),
                    json.dumps(response["scores"]),
                    composite.processing_time_ms,
                    now_exact(),
                ),
            )

    def get_composite(self, resume_id: str, job_id: str) -> Optional[Dict[str, Any]]:
        """Latest stored composite for a pair, or None."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT run_id, composite_score, overall_status, weights, scores,
                       processing_time_ms, created_at
                FROM composite_scores
                WHERE resume_id = ? AND job_id = ?
                ORDER BY id DESC
                LIMIT 1
                """,
                (resume_id, job_id),
            ).fetchone()

        if row is None:
            return None

        entry = dict(row)
        entry["weights"] = json.loads(entry["weights"])
        entry["scores"] = json.loads(entry["scores"])
        return entry

    # =========================================================================
    # ANALYTICS (multi-table queries)
    # =========================================================================

    def analysis_performance(self) -> List[Dict[str, Any]]:
        """Per-analyzer run counts, success/failure split, average score and duration."""
        with self._connect() as conn:
            return [dict(row) for row in conn.execute(ANALYSIS_PERFORMANCE_QUERY).fetchall()]

    def context_stats(self, resume_id: str, job_id: str) -> List[Dict[str, Any]]:
        """Every context recorded for a pair, joined with its stored result (if any)."""
        with self._connect() as conn:
            rows = conn.execute(CONTEXT_STATS_QUERY, (resume_id, job_id)).fetchall()
        return [dict(row) for row in rows]

    def run_breakdown(self, run_id: str) -> List[Dict[str, Any]]:
        """Composite score of one run joined with each of its contexts and results."""
        with self._connect() as conn:
            rows = conn.execute(RUN_BREAKDOWN_QUERY, (run_id,)).fetchall()
        return [dict(row) for row in rows]


def _subject_table(kind: str) -> tuple:
    if kind not in SUBJECT_TABLES:
        raise ValueError(f"Unknown subject kind '{kind}'. Expected one of {list(SUBJECT_TABLES)}")
    return SUBJECT_TABLES[kind]
