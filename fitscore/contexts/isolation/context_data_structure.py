"""
Execution context data structures for the Isolation context.

An ExecutionContext is the record of one isolated sandbox bound to exactly one
analysis task. Records are immutable; the ExecutionContextManager replaces the
record on every lifecycle transition, so a snapshot handed to an analysis unit
can never be mutated behind the manager's back.
"""

import hashlib
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from fitscore.contexts.analysis.result_schema import AnalysisType
from fitscore.utils.timestamp import utc_now


class ContextStatus(str, Enum):
    """Lifecycle status of an execution context (monotonic)."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ContextStatus.COMPLETED, ContextStatus.FAILED)


ALLOWED_TRANSITIONS = {
    ContextStatus.PENDING: {ContextStatus.ACTIVE, ContextStatus.FAILED},
    ContextStatus.ACTIVE: {ContextStatus.COMPLETED, ContextStatus.FAILED},
    ContextStatus.COMPLETED: set(),
    ContextStatus.FAILED: set(),
}


class IsolationTier(str, Enum):
    """Isolation strategies, in the order they are attempted."""

    ZERO_COPY = "zero_copy"
    STANDARD = "standard"
    SHARED = "shared"


@dataclass(frozen=True)
class SubjectRefs:
    """The resume/job pair an analysis run is about."""

    resume_id: str
    job_id: str

    def __str__(self) -> str:
        return f"{self.resume_id} vs {self.job_id}"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """
    Opaque handle to the storage an execution context is bound to.

    Attributes:
        subject_uri: Store the unit reads resume/job records from (isolated copy or shared primary)
        results_uri: Durable store the unit writes its result to
        tier: Isolation tier that produced subject_uri
    """

    subject_uri: str
    results_uri: str
    tier: IsolationTier


@dataclass(frozen=True)
class ExecutionContext:
    """
    One isolated sandbox for a single analysis run.

    Attributes:
        id: Unique context identifier (e.g., "ctx_skill_3fa2b1c94e0d")
        analysis_type: Analysis the context serves
        subject_refs: Resume/job pair under analysis
        run_id: Scoring run the context belongs to
        status: Lifecycle status
        created_at: When the context was requested (UTC)
        connection: Storage handle (None until a tier succeeds)
        isolation_tier: Tier recorded for observability
        started_at: When the analyzer began work
        completed_at: When the context reached a terminal status
        duration_ms: created_at → completed_at, in milliseconds
        error: Failure description for failed contexts
    """

    id: str
    analysis_type: AnalysisType
    subject_refs: SubjectRefs
    run_id: str
    status: ContextStatus = ContextStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    connection: Optional[ConnectionDescriptor] = None
    isolation_tier: Optional[IsolationTier] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(self, new_status: ContextStatus, **changes) -> "ExecutionContext":
        """
        Return a copy moved to new_status.

        Raises:
            ValueError: If the move would break status monotonicity
        """
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(
                f"Illegal context transition {self.status.value} -> {new_status.value} for {self.id}"
            )
        return replace(self, status=new_status, **changes)

    def is_older_than(self, cutoff: datetime) -> bool:
        """Whether the context's reference time precedes cutoff (completion for terminal contexts)."""
        reference = self.completed_at if self.is_terminal and self.completed_at else self.created_at
        return reference <= cutoff

    def elapsed_ms(self, until: datetime) -> float:
        return (until - self.created_at) / timedelta(milliseconds=1)


def generate_context_id(analysis_type: AnalysisType, subject_refs: SubjectRefs) -> str:
    """
    Generate a unique context identifier.

    Combines the analysis type with a short digest of the subjects and a random
    nonce, so ids are readable in logs yet never reused.
    """
    seed = f"{analysis_type.value}-{subject_refs.resume_id}-{subject_refs.job_id}-{uuid.uuid4().hex}"
    digest = hashlib.md5(seed.encode("utf-8")).hexdigest()[:12]
    return f"ctx_{analysis_type.value}_{digest}"
