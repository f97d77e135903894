"""
Coordinator: concurrent analysis and weighted aggregation.

Coordinator.score() runs every registered analyzer concurrently, each in its
own execution context, under a per-task deadline measured from submission:

    submit task ──> acquire context ──> activate ──> unit.run() ──> release
         │                                                  │
         └── deadline passes: abandon flag set, context released,
             result recorded TimedOut; the worker thread is not awaited

Failures of individual analyses never fail the call. The composite score is
the weighted mean over the analyses that succeeded, with weights renormalized
to 1.0 over that set; with no successes there is no composite at all.

Examples:
    >>> coordinator = build_coordinator()
    >>> composite = coordinator.score("resume_001", "job_042")
    >>> composite.overall_status, composite.composite_score
    (<OverallStatus.COMPLETE: 'Complete'>, 78.31)
"""

import re
import sqlite3
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

from fitscore.contexts.analysis import default_analyzers
from fitscore.contexts.analysis.base_unit import AnalysisUnit
from fitscore.contexts.analysis.result_schema import AnalysisResult, AnalysisType
from fitscore.contexts.coordination.logger import (
    _log_debug,
    _log_warning,
    log_score_result,
    log_score_start,
    log_task_timeout,
)
from fitscore.contexts.coordination.weights import WeightOptimizer, coerce_weights, normalize_weights
from fitscore.contexts.isolation.context_data_structure import SubjectRefs
from fitscore.contexts.isolation.context_manager import ExecutionContextManager
from fitscore.contexts.isolation.providers import SqliteIsolationProvider
from fitscore.contexts.storage.store import SqliteStore
from fitscore.exceptions import (
    ContextAcquisitionFailure,
    CoordinatorError,
    DispatchFailure,
    ErrorKind,
    InvalidRequest,
)
from fitscore.utils.config import CLONE_DIR, DATABASE_PATH, load_scoring_config
from fitscore.utils.event_logging import SCORE_COMPLETED, TASK_OUTCOME, log_lifecycle_event
from fitscore.utils.report_formatter import Column, TableFormatter, format_duration_ms, format_score

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9_.:-]{1,128}")

# perTaskStatus for a registered analysis that produced no outcome
MISSING = "Missing"

UnitFactory = Callable[[], AnalysisUnit]


class OverallStatus(str, Enum):
    COMPLETE = "Complete"
    PARTIAL = "Partial"
    FAILED = "Failed"


@dataclass(frozen=True)
class CompositeResult:
    """
    Aggregate outcome of one scoring run.

    Attributes:
        resume_id: Resume that was scored
        job_id: Job it was scored against
        run_id: Identifier shared by all contexts of this run
        results: Outcome per registered analysis (None marks a missing outcome)
        weights_requested: Weights before renormalization
        weights_used: Weights renormalized over the successful analyses
        composite_score: Weighted mean of successful scores, None when undefined
        overall_status: Complete, Partial or Failed
        processing_time_ms: Wall time of the whole run
        weight_source: "caller", "optimizer" or "default"
        persisted: Whether the composite was stored
        persist_error: Why storing failed, if it did
    """

    resume_id: str
    job_id: str
    run_id: str
    results: Dict[AnalysisType, Optional[AnalysisResult]]
    weights_requested: Dict[AnalysisType, float]
    weights_used: Dict[AnalysisType, float]
    composite_score: Optional[float]
    overall_status: OverallStatus
    processing_time_ms: float
    weight_source: str = "caller"
    persisted: bool = False
    persist_error: Optional[str] = None

    def score_of(self, analysis_type: AnalysisType) -> Optional[float]:
        result = self.results.get(analysis_type)
        return result.score if result is not None and result.is_success else None

    def to_response(self) -> dict:
        """Render the front-end response schema."""
        per_task_error = {}
        for analysis_type, result in self.results.items():
            if result is None:
                per_task_error[analysis_type.value] = {"kind": MISSING, "message": "No outcome recorded"}
            elif not result.is_success:
                per_task_error[analysis_type.value] = {
                    "kind": result.error_kind.value if result.error_kind else ErrorKind.ANALYSIS_ERROR.value,
                    "message": result.error,
                }

        return {
            "runId": self.run_id,
            "resumeId": self.resume_id,
            "jobId": self.job_id,
            "scores": {t.value: self.score_of(t) for t in self.results},
            "composite": self.composite_score,
            "status": self.overall_status.value,
            "perTaskStatus": {
                t.value: result.status.value if result is not None else MISSING
                for t, result in self.results.items()
            },
            "perTaskError": per_task_error,
            "weightsUsed": {t.value: round(w, 6) for t, w in self.weights_used.items()},
            "processingTimeMs": round(self.processing_time_ms, 1),
            "persisted": self.persisted,
        }


def aggregate(
    results: Mapping[AnalysisType, Optional[AnalysisResult]],
    weights: Mapping[AnalysisType, float],
) -> Tuple[Optional[float], OverallStatus, Dict[AnalysisType, float]]:
    """
    Combine per-analysis results into a composite score.

    Weights are renormalized over the successful analyses only, so a failed
    analysis is excluded rather than counted as zero. If the successful
    analyses all carry weight 0 the composite is undefined (None) while the
    status still reflects how many succeeded.

    Args:
        results: Outcome per registered analysis (None for missing outcomes)
        weights: Raw weights per analysis

    Returns:
        (composite score rounded to 2 decimals or None, overall status, weights used)
    """
    succeeded = [t for t, r in results.items() if r is not None and r.is_success]
    if not succeeded:
        return None, OverallStatus.FAILED, {}

    status = OverallStatus.COMPLETE if len(succeeded) == len(results) else OverallStatus.PARTIAL
    if sum(weights.get(t, 0.0) for t in succeeded) <= 0:
        return None, status, {t: 0.0 for t in succeeded}

    used = normalize_weights(weights, include=succeeded)
    composite = sum(used[t] * results[t].score for t in succeeded)
    return round(composite, 2), status, used


class _AnalysisTask:
    """Coordinator-side handle for one in-flight analysis."""

    def __init__(self, analysis_type: AnalysisType, unit_factory: UnitFactory):
        self.analysis_type = analysis_type
        self.unit_factory = unit_factory
        self.abandoned = threading.Event()
        self.lock = threading.Lock()
        self.context_id: Optional[str] = None
        self.future = None
        self.submitted_at: float = 0.0
        self.deadline: float = 0.0


class Coordinator:
    """
    Runs all registered analyzers for a resume/job pair and combines their scores.

    Attributes:
        context_manager: Provides one execution context per task
        analyzers: AnalysisType -> factory returning a fresh AnalysisUnit
        store: Primary store (job lookup for dynamic weights, composite persistence)
        task_timeout_s: Per-task budget measured from submission
    """

    def __init__(
        self,
        context_manager: ExecutionContextManager,
        analyzers: Optional[Mapping[AnalysisType, UnitFactory]] = None,
        store: Optional[SqliteStore] = None,
        config=None,
        weight_optimizer: Optional[WeightOptimizer] = None,
        task_timeout_s: Optional[float] = None,
    ):
        config = config if config is not None else load_scoring_config()

        self.context_manager = context_manager
        self.analyzers: Dict[AnalysisType, UnitFactory] = dict(
            default_analyzers() if analyzers is None else analyzers
        )
        self.store = store
        self.task_timeout_s = float(
            task_timeout_s if task_timeout_s is not None else config.coordinator.task_timeout_s
        )
        if self.task_timeout_s <= 0:
            raise ValueError(f"task_timeout_s must be positive, got {self.task_timeout_s}")

        self.dynamic_weights = bool(config.coordinator.dynamic_weights)
        self.persist_composite = bool(config.coordinator.persist_composite)
        self.default_weights = {AnalysisType(k): float(v) for k, v in config.weights.default.items()}
        self._weight_optimizer = weight_optimizer

    def __repr__(self) -> str:
        names = ", ".join(t.value for t in self.analyzers)
        return f"Coordinator(analyzers=[{names}], task_timeout_s={self.task_timeout_s:g})"

    def register(self, analysis_type: AnalysisType, unit_factory: UnitFactory) -> None:
        """Register (or replace) the analyzer for one analysis type."""
        self.analyzers[AnalysisType(analysis_type)] = unit_factory

    def unregister(self, analysis_type: AnalysisType) -> None:
        self.analyzers.pop(AnalysisType(analysis_type), None)

    @property
    def weight_optimizer(self) -> WeightOptimizer:
        if self._weight_optimizer is None:
            self._weight_optimizer = WeightOptimizer(
                default_weights={t.value: w for t, w in self.default_weights.items()}
            )
        return self._weight_optimizer

    # =========================================================================
    # SCORING
    # =========================================================================

    def score(
        self,
        resume_id: str,
        job_id: str,
        weights: Optional[Mapping[str, float]] = None,
    ) -> CompositeResult:
        """
        Score a resume against a job with every registered analyzer.

        Args:
            resume_id: Resume identifier ([A-Za-z0-9_.:-], 1-128 chars)
            job_id: Job identifier (same format)
            weights: Optional analysis type -> weight; registered types left
                out get 0. When omitted, weights are derived from the job
                (dynamic weights) or taken from configuration.

        Returns:
            CompositeResult (always, however many analyses fail)

        Raises:
            InvalidRequest: Malformed identifiers or weights
            CoordinatorError: No analyzers registered
            DispatchFailure: Concurrent work could not be scheduled
        """
        _validate_identifier("resume_id", resume_id)
        _validate_identifier("job_id", job_id)
        if not self.analyzers:
            raise CoordinatorError("No analyzers registered")

        analysis_types = list(self.analyzers)
        if weights is not None:
            requested, weight_source, weight_detail = coerce_weights(weights, analysis_types), "caller", "caller"
        else:
            requested, weight_source, weight_detail = self._resolve_weights(job_id, analysis_types)

        run_id = uuid4().hex
        started = time.perf_counter()
        log_score_start(run_id, resume_id, job_id, analysis_types, weight_detail)

        results = self._dispatch(analysis_types, SubjectRefs(resume_id, job_id), run_id)
        composite_score, status, used = aggregate(results, requested)

        composite = CompositeResult(
            resume_id=resume_id,
            job_id=job_id,
            run_id=run_id,
            results=results,
            weights_requested=requested,
            weights_used=used,
            composite_score=composite_score,
            overall_status=status,
            processing_time_ms=(time.perf_counter() - started) * 1000,
            weight_source=weight_source,
        )
        composite = self._persist(composite)

        log_score_result(composite)
        log_lifecycle_event(
            event_type=SCORE_COMPLETED,
            context_id=None,
            analysis_type=None,
            status=composite.overall_status.value,
            duration_ms=composite.processing_time_ms,
            source="coordination",
            run_id=run_id,
            resume_id=resume_id,
            job_id=job_id,
            composite=composite.composite_score,
            persisted=composite.persisted,
        )
        return composite

    def _resolve_weights(
        self, job_id: str, analysis_types: List[AnalysisType]
    ) -> Tuple[Dict[AnalysisType, float], str, str]:
        if self.dynamic_weights and self.store is not None:
            try:
                job = self.store.get_subject("job", job_id)
            except sqlite3.Error as e:
                _log_warning(f"Could not read {job_id} for dynamic weights ({e}); using defaults")
                job = None

            if job:
                description = " ".join(
                    str(job.get(field) or "") for field in ("description", "requirements")
                )
                rec = self.weight_optimizer.recommend(str(job.get("title") or ""), description)
                detail = (
                    f"optimizer (industry={rec.industry or '-'}, role={rec.role or '-'}, "
                    f"seniority={rec.seniority}, confidence={rec.confidence})"
                )
                return {t: rec.weights.get(t, 0.0) for t in analysis_types}, "optimizer", detail

        return {t: self.default_weights.get(t, 0.0) for t in analysis_types}, "default", "default"

    def _dispatch(
        self, analysis_types: List[AnalysisType], refs: SubjectRefs, run_id: str
    ) -> Dict[AnalysisType, Optional[AnalysisResult]]:
        tasks = [_AnalysisTask(t, self.analyzers[t]) for t in analysis_types]
        results: Dict[AnalysisType, Optional[AnalysisResult]] = {t: None for t in analysis_types}

        try:
            executor = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix=f"score-{run_id[:8]}")
        except (RuntimeError, ValueError) as e:
            raise DispatchFailure(f"Cannot create worker pool: {e}") from e

        try:
            for task in tasks:
                task.submitted_at = time.monotonic()
                task.deadline = task.submitted_at + self.task_timeout_s
                try:
                    task.future = executor.submit(self._run_task, task, refs, run_id)
                except RuntimeError as e:
                    for submitted in tasks:
                        if submitted.future is not None:
                            self._abandon(submitted, reason="Dispatch failed")
                    raise DispatchFailure(f"Cannot schedule {task.analysis_type.value}: {e}") from e

            for task in tasks:
                remaining = max(0.0, task.deadline - time.monotonic())
                try:
                    results[task.analysis_type] = task.future.result(timeout=remaining)
                except FutureTimeout:
                    results[task.analysis_type] = self._abandon(task)
                except Exception as e:
                    results[task.analysis_type] = AnalysisResult.failure(
                        task.analysis_type,
                        f"Task raised {type(e).__name__}: {e}",
                        ErrorKind.ANALYSIS_ERROR,
                        context_id=task.context_id,
                        timing_ms=(time.monotonic() - task.submitted_at) * 1000,
                    )
        finally:
            executor.shutdown(wait=False)

        for analysis_type, result in results.items():
            if result is not None:
                log_lifecycle_event(
                    event_type=TASK_OUTCOME,
                    context_id=result.context_id,
                    analysis_type=analysis_type.value,
                    status=result.status.value,
                    duration_ms=result.timing_ms,
                    source="coordination",
                    run_id=run_id,
                    error_kind=result.error_kind.value if result.error_kind else None,
                    error=result.error,
                )
        return results

    def _run_task(self, task: _AnalysisTask, refs: SubjectRefs, run_id: str) -> AnalysisResult:
        """Body of one worker thread: acquire, activate, run, release."""
        analysis_type = task.analysis_type
        if task.abandoned.is_set():
            return self._timed_out(task)

        try:
            context = self.context_manager.acquire(analysis_type, refs, run_id)
        except ContextAcquisitionFailure as e:
            return AnalysisResult.failure(analysis_type, str(e), e.kind, context_id=e.context_id)

        with task.lock:
            task.context_id = context.id
            abandoned = task.abandoned.is_set()
        if abandoned:
            self.context_manager.release(context.id, succeeded=False, error="Abandoned before activation")
            return self._timed_out(task)

        result = None
        try:
            context = self.context_manager.activate(context.id)
            result = task.unit_factory().run(context, abandoned=task.abandoned)
            return result
        finally:
            if result is None:
                self.context_manager.release(context.id, succeeded=False, error="Task raised before producing a result")
            else:
                self.context_manager.release(context.id, succeeded=result.is_success, error=result.error)

    def _abandon(self, task: _AnalysisTask, reason: Optional[str] = None) -> AnalysisResult:
        """Give up on a task: flag it, release its context now, record TimedOut."""
        task.abandoned.set()
        with task.lock:
            context_id = task.context_id
        reason = reason or f"Timed out after {self.task_timeout_s:g}s"
        if context_id is not None:
            self.context_manager.release(context_id, succeeded=False, error=reason)
        log_task_timeout(task.analysis_type.value, context_id, self.task_timeout_s)
        return self._timed_out(task, reason)

    def _timed_out(self, task: _AnalysisTask, reason: Optional[str] = None) -> AnalysisResult:
        return AnalysisResult.failure(
            task.analysis_type,
            reason or f"{task.analysis_type.value} abandoned before it started",
            ErrorKind.TIMEOUT_EXCEEDED,
            context_id=task.context_id,
            timing_ms=(time.monotonic() - task.submitted_at) * 1000,
        )

    def _persist(self, composite: CompositeResult) -> CompositeResult:
        if not self.persist_composite or self.store is None:
            return composite
        try:
            self.store.put_composite(composite)
        except (sqlite3.Error, OSError) as e:
            _log_warning(f"Composite for run {composite.run_id} not persisted: {e}")
            return replace(composite, persisted=False, persist_error=str(e))
        _log_debug(f"Stored composite for run {composite.run_id}")
        return replace(composite, persisted=True)


def _validate_identifier(name: str, value) -> None:
    if not isinstance(value, str) or not IDENTIFIER_PATTERN.fullmatch(value):
        raise InvalidRequest(f"{name} must match [A-Za-z0-9_.:-]{{1,128}}, got {value!r}")


def summary(composite: CompositeResult) -> str:
    """Render per-analysis status, score, weight and duration as a text table."""
    table = TableFormatter(
        [
            Column("Analysis", 15),
            Column("Status", 10),
            Column("Score", 8, ">"),
            Column("Weight", 8, ">"),
            Column("Time", 9, ">"),
            Column("Error", 24),
        ],
        total_width=79,
    )
    table.add_section_header(f"{composite.resume_id} vs {composite.job_id} (run {composite.run_id[:8]})")
    table.add_table_header()

    for analysis_type, result in composite.results.items():
        weight = composite.weights_used.get(analysis_type)
        table.add_row(
            [
                analysis_type.value,
                result.status.value if result is not None else MISSING,
                format_score(composite.score_of(analysis_type)),
                f"{weight:.3f}" if weight is not None else None,
                format_duration_ms(result.timing_ms if result is not None else None),
                (result.error_kind.value if result is not None and result.error_kind else ""),
            ]
        )

    table.add_separator()
    table.add_summary(
        f"Composite: {format_score(composite.composite_score)}  "
        f"Status: {composite.overall_status.value}  "
        f"Weights: {composite.weight_source}  "
        f"Time: {format_duration_ms(composite.processing_time_ms)}"
    )
    if composite.persist_error:
        table.add_summary(f"Composite not persisted: {composite.persist_error}")
    return table.render()


def build_coordinator(
    config=None,
    database_path: Optional[Path] = None,
    clone_dir: Optional[Path] = None,
) -> Coordinator:
    """
    Wire a Coordinator over the SQLite store using configuration defaults.

    Args:
        config: Scoring config (defaults to load_scoring_config())
        database_path: Primary database (defaults to FITSCORE_DATABASE_PATH)
        clone_dir: Directory for per-context copies (defaults to FITSCORE_CLONE_DIR)
    """
    config = config if config is not None else load_scoring_config()
    store = SqliteStore(database_path or DATABASE_PATH)
    store.init_schema()

    provider = SqliteIsolationProvider(
        primary_path=store.db_path,
        clone_dir=Path(clone_dir or CLONE_DIR),
        enabled_tiers=list(config.isolation.tiers),
    )
    manager = ExecutionContextManager.from_config(config.isolation, provider, ledger=store)
    return Coordinator(manager, store=store, config=config)
