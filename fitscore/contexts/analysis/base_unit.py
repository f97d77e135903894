"""
Analysis Unit contract.

An AnalysisUnit performs one kind of analysis on one resume/job pair inside
one execution context:

    Created → Loading → Analyzing → Validating → Persisting → Done

Steps run strictly in that order; any failure jumps straight to Done.
run() is the unit's single error boundary: it always returns an
AnalysisResult and never raises task-level errors to the caller.

Subclasses implement analyze() (pure and deterministic) and declare their
analysis_type. The evidence schema is looked up from EVIDENCE_SCHEMAS.
"""

import math
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from fitscore.contexts.analysis.logger import _log_debug, _log_warning, log_unit_outcome, log_unit_start
from fitscore.contexts.analysis.result_schema import (
    EVIDENCE_SCHEMAS,
    AnalysisResult,
    AnalysisStatus,
    AnalysisType,
)
from fitscore.contexts.storage.store import SqliteStore
from fitscore.exceptions import (
    AnalysisError,
    DataUnavailable,
    ErrorKind,
    InvalidResult,
    PersistFailure,
    TimeoutExceeded,
)
from fitscore.utils.event_logging import UNIT_TRANSITION, log_lifecycle_event


class UnitState(str, Enum):
    CREATED = "created"
    LOADING = "loading"
    ANALYZING = "analyzing"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    DONE = "done"


_NEXT_STATE = {
    UnitState.CREATED: UnitState.LOADING,
    UnitState.LOADING: UnitState.ANALYZING,
    UnitState.ANALYZING: UnitState.VALIDATING,
    UnitState.VALIDATING: UnitState.PERSISTING,
    UnitState.PERSISTING: UnitState.DONE,
}


class AnalysisUnit(ABC):
    """
    Base class for the five specialized analyzers.

    A unit instance runs exactly once; the coordinator creates a fresh
    instance per task.

    Attributes:
        analysis_type: Analysis this unit performs (set by subclasses)
        state: Current UnitState
    """

    analysis_type: AnalysisType = None

    def __init__(self, store_factory: Callable[[str], SqliteStore] = SqliteStore):
        if self.analysis_type is None:
            raise TypeError(f"{type(self).__name__} must set analysis_type")
        self.state = UnitState.CREATED
        self._store_factory = store_factory
        self._context_id: Optional[str] = None
        self._started: Optional[float] = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self.state.value})"

    @property
    def evidence_schema(self):
        return EVIDENCE_SCHEMAS[self.analysis_type]

    # =========================================================================
    # STEPS
    # =========================================================================

    def load_inputs(self, context) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Read the resume and job records from the context's isolated store.

        Raises:
            DataUnavailable: Store unreachable or either record missing
        """
        if context.connection is None:
            raise DataUnavailable("Execution context has no connection", self.analysis_type.value, context.id)

        refs = context.subject_refs
        store = self._store_factory(context.connection.subject_uri)
        try:
            resume = store.get_subject("resume", refs.resume_id)
            job = store.get_subject("job", refs.job_id)
        except sqlite3.Error as e:
            raise DataUnavailable(f"Subject store unreadable: {e}", self.analysis_type.value, context.id) from e

        if resume is None:
            raise DataUnavailable(f"Resume not found: {refs.resume_id}", self.analysis_type.value, context.id)
        if job is None:
            raise DataUnavailable(f"Job not found: {refs.job_id}", self.analysis_type.value, context.id)

        return resume, job

    @abstractmethod
    def analyze(self, resume: Dict[str, Any], job: Dict[str, Any]) -> Dict[str, Any]:
        """
        Score one resume against one job.

        Returns:
            Raw dict with "score" (0-100) and "evidence" (dict matching the evidence schema)
        """

    def validate(self, raw: Any) -> AnalysisResult:
        """
        Check raw analyzer output against the result contract.

        The score must be a real number (bools rejected), finite, and within
        [0, 100]; out-of-range scores are rejected, never clamped. Evidence is
        validated strictly against the analyzer's schema.

        Raises:
            InvalidResult: On any contract violation
        """
        name = self.analysis_type.value
        if not isinstance(raw, Mapping):
            raise InvalidResult(f"Analyzer output must be a mapping, got {type(raw).__name__}", name, self._context_id)

        if "score" not in raw:
            raise InvalidResult("Missing score", name, self._context_id, field="score")
        score = raw["score"]
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise InvalidResult(f"Score must be numeric, got {type(score).__name__}", name, self._context_id, field="score")
        if not math.isfinite(score):
            raise InvalidResult(f"Score must be finite, got {score}", name, self._context_id, field="score")
        if not 0 <= score <= 100:
            raise InvalidResult(f"Score must be within 0-100, got {score}", name, self._context_id, field="score")

        try:
            evidence = self.evidence_schema.model_validate(raw.get("evidence"), strict=True)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "evidence"
            raise InvalidResult(
                f"Evidence failed {self.evidence_schema.__name__} ({e.error_count()} errors): {first['msg']}",
                name,
                self._context_id,
                field=field,
            ) from e

        return AnalysisResult(
            analysis_type=self.analysis_type,
            status=AnalysisStatus.SUCCESS,
            score=float(score),
            evidence=evidence,
        )

    def persist(self, context, result: AnalysisResult, abandoned: Optional[threading.Event] = None) -> None:
        """
        Write a validated result to the context's results store.

        The abandon flag is checked again inside the write transaction, just
        before commit, so a task abandoned while its row is being inserted
        rolls the row back.

        Raises:
            PersistFailure: If the write fails
            TimeoutExceeded: If the task was abandoned before the commit
        """
        store = self._store_factory(context.connection.results_uri)
        try:
            store.put_result(
                context.id,
                self.analysis_type.value,
                result,
                context.subject_refs.resume_id,
                context.subject_refs.job_id,
                before_commit=lambda: self._checkpoint(abandoned),
            )
        except (sqlite3.Error, OSError) as e:
            raise PersistFailure(f"Could not store result: {e}", self.analysis_type.value, context.id) from e

    # =========================================================================
    # RUN
    # =========================================================================

    def run(self, context, abandoned: Optional[threading.Event] = None) -> AnalysisResult:
        """
        Execute every step inside the given execution context.

        Args:
            context: ExecutionContext snapshot (read only)
            abandoned: Set by the coordinator when the task times out; checked
                between steps, before persisting, and again before the result
                row is committed

        Returns:
            AnalysisResult (Success, Failed or TimedOut)

        Raises:
            RuntimeError: If this instance has already run
        """
        if self.state is not UnitState.CREATED:
            raise RuntimeError(f"{type(self).__name__} has already run; create a new instance per task")

        self._context_id = context.id
        self._started = time.perf_counter()
        log_unit_start(self.analysis_type.value, context)

        try:
            self._checkpoint(abandoned)
            self._advance(UnitState.LOADING)
            resume, job = self.load_inputs(context)

            self._checkpoint(abandoned)
            self._advance(UnitState.ANALYZING)
            raw = self.analyze(resume, job)

            self._advance(UnitState.VALIDATING)
            result = self.validate(raw)

            self._checkpoint(abandoned)
            self._advance(UnitState.PERSISTING)
            result = result.with_changes(context_id=context.id, timing_ms=self._elapsed_ms())
            try:
                self.persist(context, result, abandoned)
                result = result.with_changes(persisted=True)
            except PersistFailure as e:
                _log_warning(f"{e}")
                result = result.with_changes(persisted=False, persist_error=str(e))

        except AnalysisError as e:
            result = AnalysisResult.failure(
                self.analysis_type, str(e), e.kind, context_id=context.id, timing_ms=self._elapsed_ms()
            )
        except Exception as e:
            result = AnalysisResult.failure(
                self.analysis_type,
                f"{type(e).__name__}: {e}",
                ErrorKind.ANALYSIS_ERROR,
                context_id=context.id,
                timing_ms=self._elapsed_ms(),
            )

        self._advance(UnitState.DONE, status=result.status.value)
        log_unit_outcome(result)
        return result

    def _checkpoint(self, abandoned: Optional[threading.Event]) -> None:
        if abandoned is not None and abandoned.is_set():
            raise TimeoutExceeded(
                f"Abandoned by coordinator while {self.state.value}",
                self.analysis_type.value,
                self._context_id,
            )

    def _advance(self, target: UnitState, status: Optional[str] = None) -> None:
        """Move to target, enforcing step order (Done is reachable from any live state)."""
        if self.state is UnitState.DONE:
            raise RuntimeError(f"{type(self).__name__} is done; cannot move to {target.value}")
        if target is not UnitState.DONE and _NEXT_STATE[self.state] is not target:
            raise RuntimeError(f"Illegal unit transition {self.state.value} -> {target.value}")

        _log_debug(f"{self.analysis_type.value}: {self.state.value} -> {target.value}")
        self.state = target
        log_lifecycle_event(
            event_type=UNIT_TRANSITION,
            context_id=self._context_id,
            analysis_type=self.analysis_type.value,
            status=target.value,
            duration_ms=self._elapsed_ms(),
            source="analysis",
            outcome=status,
        )

    def _elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        return (time.perf_counter() - self._started) * 1000


# =============================================================================
# SUBJECT TEXT HELPERS
# =============================================================================


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(_as_text(item) for item in value)
    if isinstance(value, dict):
        return " ".join(_as_text(item) for item in value.values())
    return str(value)


def resume_text(resume: Mapping[str, Any]) -> str:
    """Concatenate the free-text fields of a resume record."""
    fields = ("raw_text", "summary", "experience", "skills", "education", "certifications")
    return " ".join(text for text in (_as_text(resume.get(f)) for f in fields) if text.strip())


def job_text(job: Mapping[str, Any]) -> str:
    """Concatenate the free-text fields of a job record."""
    fields = ("title", "description", "requirements", "responsibilities", "company_description")
    return " ".join(text for text in (_as_text(job.get(f)) for f in fields) if text.strip())
