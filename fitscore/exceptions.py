"""
Exception taxonomy for FITSCORE.

Task-level errors (subclasses of AnalysisError) are contained at the analysis
task boundary and surface as a Failed/TimedOut AnalysisResult. Request-level
errors (CoordinatorError and subclasses) are the only ones a caller of
Coordinator.score() ever sees.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Machine-readable classification carried on failed analysis results."""

    CONTEXT_ACQUISITION = "ContextAcquisitionFailure"
    DATA_UNAVAILABLE = "DataUnavailable"
    INVALID_RESULT = "InvalidResult"
    PERSIST_FAILURE = "PersistFailure"
    TIMEOUT_EXCEEDED = "TimeoutExceeded"
    ANALYSIS_ERROR = "AnalysisError"


class FitscoreError(Exception):
    """Base class for all FITSCORE errors."""


class AnalysisError(FitscoreError):
    """
    Error raised inside a single analysis task.

    Attributes:
        message: Error description
        analysis_type: Analysis type value (e.g., 'skill'), if known
        context_id: Execution context the task was bound to, if any
    """

    kind = ErrorKind.ANALYSIS_ERROR

    def __init__(
        self,
        message: str,
        analysis_type: Optional[str] = None,
        context_id: Optional[str] = None,
    ):
        self.message = message
        self.analysis_type = analysis_type
        self.context_id = context_id

        parts = [message]
        if analysis_type:
            parts.append(f"analysis={analysis_type}")
        if context_id:
            parts.append(f"context={context_id}")

        super().__init__(" | ".join(parts))


class ContextAcquisitionFailure(AnalysisError):
    """
    All isolation tiers were exhausted (or the context limit was reached).

    Attributes:
        tier_errors: Mapping of tier name to the error that tier raised
    """

    kind = ErrorKind.CONTEXT_ACQUISITION

    def __init__(
        self,
        message: str,
        analysis_type: Optional[str] = None,
        context_id: Optional[str] = None,
        tier_errors: Optional[dict] = None,
    ):
        self.tier_errors = tier_errors or {}
        if self.tier_errors:
            detail = "; ".join(f"{tier}: {err}" for tier, err in self.tier_errors.items())
            message = f"{message} ({detail})"
        super().__init__(message, analysis_type=analysis_type, context_id=context_id)


class DataUnavailable(AnalysisError):
    """Subject record missing or unreadable in the isolated store."""

    kind = ErrorKind.DATA_UNAVAILABLE


class InvalidResult(AnalysisError):
    """
    Analyzer produced output outside its contract.

    Attributes:
        field: Offending field name, when the failure is field-specific
    """

    kind = ErrorKind.INVALID_RESULT

    def __init__(
        self,
        message: str,
        analysis_type: Optional[str] = None,
        context_id: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.field = field
        if field:
            message = f"{message} (field '{field}')"
        super().__init__(message, analysis_type=analysis_type, context_id=context_id)


class PersistFailure(AnalysisError):
    """Result computed and validated but not durably stored."""

    kind = ErrorKind.PERSIST_FAILURE


class TimeoutExceeded(AnalysisError):
    """Task exceeded its time budget and was abandoned."""

    kind = ErrorKind.TIMEOUT_EXCEEDED


class IsolationUnavailable(FitscoreError):
    """A single isolation tier cannot provide a context (the next tier is tried)."""


class CoordinatorError(FitscoreError):
    """The coordinator cannot accept the request at all (e.g., no analyzers registered)."""


class InvalidRequest(CoordinatorError, ValueError):
    """Malformed identifiers or weights."""


class DispatchFailure(CoordinatorError):
    """Concurrent work could not be scheduled."""
