"""
Execution context manager.

Owns the registry of execution contexts and their lifecycle:

    acquire()  -> Pending (tiers attempted, connection bound)
    activate() -> Active
    release()  -> Completed | Failed (isolated resources reclaimed)
    sweep()    -> terminal contexts older than the retention window removed

All registry reads and writes go through one lock. Provider calls (cloning,
reclaiming) happen outside it, so a slow clone never blocks other tasks.

Every transition is appended to the lifecycle event log and, when a ledger
store is configured, upserted into the execution_contexts table.
"""

import sqlite3
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set, Tuple
from uuid import uuid4

from fitscore.contexts.analysis.result_schema import AnalysisType
from fitscore.contexts.isolation.context_data_structure import (
    ContextStatus,
    ExecutionContext,
    IsolationTier,
    SubjectRefs,
    generate_context_id,
)
from fitscore.contexts.isolation.logger import (
    _log_debug,
    _log_error,
    _log_info,
    _log_warning,
    log_acquisition_failure,
    log_context_acquired,
    log_context_released,
    log_sweep_result,
)
from fitscore.contexts.isolation.providers import IsolationProvider
from fitscore.exceptions import ContextAcquisitionFailure
from fitscore.utils.event_logging import CONTEXT_TRANSITION, log_lifecycle_event
from fitscore.utils.timestamp import utc_now

DEFAULT_MAX_CONCURRENT_CONTEXTS = 25
DEFAULT_RETENTION = timedelta(hours=24)
DEFAULT_SWEEP_INTERVAL_S = 30 * 60


class ExecutionContextManager:
    """
    Registry and lifecycle owner for execution contexts.

    Attributes:
        provider: Isolation provider used to bind connections
        ledger: Optional store that receives one row per context
        max_concurrent_contexts: Limit on non-terminal contexts
        retention: How long terminal contexts are kept before sweep() removes them
    """

    def __init__(
        self,
        provider: IsolationProvider,
        ledger=None,  # SqliteStore
        max_concurrent_contexts: int = DEFAULT_MAX_CONCURRENT_CONTEXTS,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utc_now,
    ):
        if max_concurrent_contexts < 1:
            raise ValueError(f"max_concurrent_contexts must be >= 1, got {max_concurrent_contexts}")

        self.provider = provider
        self.ledger = ledger
        self.max_concurrent_contexts = max_concurrent_contexts
        self.retention = retention
        self._clock = clock

        self._lock = threading.Lock()
        self._contexts: Dict[str, ExecutionContext] = {}
        self._run_index: Dict[Tuple[str, AnalysisType], str] = {}
        self._unreclaimed: Set[str] = set()

        self._sweeper: Optional[threading.Thread] = None
        self._sweeper_stop = threading.Event()

    @classmethod
    def from_config(cls, isolation_config, provider: IsolationProvider, ledger=None):
        """
        Build a manager from the `isolation` section of scoring.yaml.

        Args:
            isolation_config: DictConfig with max_concurrent_contexts and retention_hours
            provider: Isolation provider to use
            ledger: Optional SqliteStore for the context ledger
        """
        return cls(
            provider=provider,
            ledger=ledger,
            max_concurrent_contexts=int(isolation_config.max_concurrent_contexts),
            retention=timedelta(hours=float(isolation_config.retention_hours)),
        )

    def __repr__(self) -> str:
        with self._lock:
            count = len(self._contexts)
        return f"ExecutionContextManager(provider={self.provider!r}, contexts={count})"

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def acquire(
        self,
        analysis_type: AnalysisType,
        subject_refs: SubjectRefs,
        run_id: Optional[str] = None,
    ) -> ExecutionContext:
        """
        Create an isolated execution context for one analysis.

        Tiers are attempted in order (zero_copy, standard, shared); the first
        one that produces a connection wins.

        Args:
            analysis_type: Analysis the context will serve
            subject_refs: Resume/job pair under analysis
            run_id: Scoring run identifier (generated if omitted)

        Returns:
            Pending ExecutionContext with a bound connection

        Raises:
            ContextAcquisitionFailure: Every tier failed or the context limit was reached
            ValueError: The run already holds a context for this analysis type
        """
        run_id = run_id or uuid4().hex
        context = ExecutionContext(
            id=generate_context_id(analysis_type, subject_refs),
            analysis_type=analysis_type,
            subject_refs=subject_refs,
            run_id=run_id,
            created_at=self._clock(),
        )

        with self._lock:
            key = (run_id, analysis_type)
            if key in self._run_index:
                raise ValueError(
                    f"Run {run_id} already holds context {self._run_index[key]} for {analysis_type.value}"
                )
            in_flight = sum(1 for c in self._contexts.values() if not c.is_terminal)
            at_capacity = in_flight >= self.max_concurrent_contexts
            self._contexts[context.id] = context
            self._run_index[key] = context.id

        try:
            self._record(context)
        except Exception as e:
            message = f"Could not record context: {type(e).__name__}: {e}"
            _log_error(f"{context.id}: {message}")
            self._finish(context.id, ContextStatus.FAILED, error=message, record=False)
            raise ContextAcquisitionFailure(message, analysis_type.value, context.id) from e

        if at_capacity:
            message = f"Max concurrent contexts reached ({self.max_concurrent_contexts})"
            _log_error(f"{message}; rejecting {analysis_type.value} for {subject_refs}")
            self._finish(context.id, ContextStatus.FAILED, error=message)
            raise ContextAcquisitionFailure(message, analysis_type.value, context.id)

        tier_errors: Dict[str, str] = {}
        connection = None
        for tier, attempt in self._tier_attempts():
            try:
                connection = attempt(context.id)
                break
            except Exception as e:
                tier_errors[tier.value] = str(e)
                _log_debug(f"{context.id}: {tier.value} failed: {e}")

        if connection is None:
            log_acquisition_failure(analysis_type.value, context.id, tier_errors)
            self._finish(context.id, ContextStatus.FAILED, error="All isolation tiers exhausted")
            raise ContextAcquisitionFailure(
                "All isolation tiers exhausted",
                analysis_type.value,
                context.id,
                tier_errors=tier_errors,
            )

        with self._lock:
            bound = replace(
                self._contexts[context.id],
                connection=connection,
                isolation_tier=connection.tier,
            )
            self._contexts[context.id] = bound

        log_context_acquired(bound, tier_errors)
        self._record(bound, emit_event=False)
        return bound

    def activate(self, context_id: str) -> ExecutionContext:
        """
        Mark a context as Active when its analyzer begins work.

        No-op for contexts that are already Active or terminal (e.g., a task
        the coordinator abandoned before it got going).

        Raises:
            KeyError: If context_id is unknown
        """
        with self._lock:
            context = self._get_locked(context_id)
            if context.status is not ContextStatus.PENDING:
                _log_debug(f"activate({context_id}) ignored; status is {context.status.value}")
                return context
            context = context.transition(ContextStatus.ACTIVE, started_at=self._clock())
            self._contexts[context_id] = context

        self._record(context)
        return context

    def release(
        self,
        context_id: str,
        succeeded: bool = True,
        error: Optional[str] = None,
    ) -> bool:
        """
        Move a context to Completed/Failed and reclaim its isolated resources.

        Idempotent: releasing an already-terminal (or already-swept) context
        changes nothing.

        Args:
            context_id: Context to release
            succeeded: True for Completed, False for Failed
            error: Failure description recorded on the context

        Returns:
            True if this call performed the transition, False if it was a no-op
        """
        with self._lock:
            context = self._contexts.get(context_id)
            if context is None:
                _log_debug(f"release({context_id}) ignored; context not registered")
                return False
            if context.is_terminal:
                return False

            if context.status is ContextStatus.PENDING and succeeded:
                succeeded = False
                error = error or "Released before activation"

            completed_at = self._clock()
            context = context.transition(
                ContextStatus.COMPLETED if succeeded else ContextStatus.FAILED,
                completed_at=completed_at,
                duration_ms=context.elapsed_ms(completed_at),
                error=None if succeeded else error,
            )
            self._contexts[context_id] = context

        self._reclaim(context)
        log_context_released(context)
        self._record(context)
        return True

    def _finish(self, context_id: str, status: ContextStatus, error: Optional[str], record: bool = True) -> None:
        """Terminate a context that never got a connection."""
        with self._lock:
            context = self._contexts[context_id]
            completed_at = self._clock()
            context = context.transition(
                status,
                completed_at=completed_at,
                duration_ms=context.elapsed_ms(completed_at),
                error=error,
            )
            self._contexts[context_id] = context
        if record:
            self._record(context)

    def _tier_attempts(self) -> List[Tuple[IsolationTier, Callable]]:
        return [
            (IsolationTier.ZERO_COPY, self.provider.try_zero_copy_clone),
            (IsolationTier.STANDARD, self.provider.try_standard_clone),
            (IsolationTier.SHARED, self.provider.fallback_to_shared),
        ]

    def _reclaim(self, context: ExecutionContext) -> None:
        if context.connection is None:
            return
        try:
            self.provider.reclaim(context.connection)
        except OSError as e:
            _log_warning(f"Could not reclaim {context.id} ({e}); leaving it for the sweep")
            with self._lock:
                self._unreclaimed.add(context.id)

    def _record(self, context: ExecutionContext, emit_event: bool = True) -> None:
        """Emit the lifecycle event and upsert the ledger row for a transition."""
        if emit_event:
            log_lifecycle_event(
                event_type=CONTEXT_TRANSITION,
                context_id=context.id,
                analysis_type=context.analysis_type.value,
                status=context.status.value,
                duration_ms=context.duration_ms,
                source="isolation",
                run_id=context.run_id,
                tier=context.isolation_tier.value if context.isolation_tier else None,
                error=context.error,
            )

        if self.ledger is None:
            return
        try:
            self.ledger.record_context(context)
        except sqlite3.Error as e:
            _log_warning(f"Ledger write failed for {context.id} ({context.status.value}): {e}")

    # =========================================================================
    # QUERIES
    # =========================================================================

    def _get_locked(self, context_id: str) -> ExecutionContext:
        try:
            return self._contexts[context_id]
        except KeyError:
            raise KeyError(f"Unknown execution context: {context_id}") from None

    def get(self, context_id: str) -> Optional[ExecutionContext]:
        """Current snapshot of a context, or None if unknown/swept."""
        with self._lock:
            return self._contexts.get(context_id)

    def list_contexts(self, status: Optional[ContextStatus] = None) -> List[ExecutionContext]:
        """All registered contexts (optionally filtered by status), oldest first."""
        with self._lock:
            contexts = list(self._contexts.values())
        if status is not None:
            contexts = [c for c in contexts if c.status is status]
        return sorted(contexts, key=lambda c: c.created_at)

    def health_check(self) -> dict:
        """
        Summarize registry state and probe the primary store.

        Never raises: probe failures are reported as status "degraded".

        Returns:
            Dict with status, per-status counts, total and (when degraded) error
        """
        with self._lock:
            contexts = list(self._contexts.values())

        counts = {f"{status.value}_count": 0 for status in ContextStatus}
        for context in contexts:
            counts[f"{context.status.value}_count"] += 1

        report = {
            "status": "healthy",
            "total": len(contexts),
            **counts,
            "max_concurrent_contexts": self.max_concurrent_contexts,
        }

        try:
            self.provider.ping()
            if self.ledger is not None:
                self.ledger.ping()
        except Exception as e:
            report["status"] = "degraded"
            report["error"] = str(e)
            _log_warning(f"Health check degraded: {e}")

        return report

    # =========================================================================
    # RETENTION
    # =========================================================================

    def sweep(self, retention: Optional[timedelta] = None) -> int:
        """
        Remove terminal contexts older than the retention window.

        Active and pending contexts are never removed, however old; they are
        reported as stale instead.

        Args:
            retention: Override for the manager's retention window

        Returns:
            Number of contexts removed
        """
        retention = self.retention if retention is None else retention
        cutoff = self._clock() - retention

        with self._lock:
            expired = [c for c in self._contexts.values() if c.is_terminal and c.is_older_than(cutoff)]
            for context in expired:
                del self._contexts[context.id]
                if self._run_index.get((context.run_id, context.analysis_type)) == context.id:
                    del self._run_index[(context.run_id, context.analysis_type)]
            leftovers = [c for c in expired if c.id in self._unreclaimed]
            self._unreclaimed.difference_update(c.id for c in expired)
            stale = [c for c in self._contexts.values() if not c.is_terminal and c.is_older_than(cutoff)]

        for context in leftovers:
            try:
                self.provider.reclaim(context.connection)
            except OSError as e:
                _log_error(f"Sweep could not reclaim {context.id}: {e}")

        for context in expired:
            log_lifecycle_event(
                event_type=CONTEXT_TRANSITION,
                context_id=context.id,
                analysis_type=context.analysis_type.value,
                status="retired",
                duration_ms=context.duration_ms,
                source="isolation",
                run_id=context.run_id,
            )

        log_sweep_result(len(expired), stale, retention / timedelta(hours=1))
        return len(expired)

    def start_sweeper(self, interval_s: float = DEFAULT_SWEEP_INTERVAL_S) -> None:
        """
        Run sweep() periodically on a daemon thread.

        Args:
            interval_s: Seconds between sweeps
        """
        if self._sweeper is not None and self._sweeper.is_alive():
            _log_debug("Sweeper already running")
            return

        self._sweeper_stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            args=(interval_s,),
            name="context-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        _log_info(f"Started context sweeper (every {interval_s:g}s)")

    def stop_sweeper(self, timeout: float = 5.0) -> None:
        """Stop the background sweeper, if running."""
        if self._sweeper is None:
            return
        self._sweeper_stop.set()
        self._sweeper.join(timeout)
        self._sweeper = None
        _log_info("Stopped context sweeper")

    def _sweep_loop(self, interval_s: float) -> None:
        while not self._sweeper_stop.wait(interval_s):
            try:
                self.sweep()
            except Exception as e:
                # Keep the sweeper alive; the next tick retries
                _log_error(f"Sweep failed: {e}")

    def shutdown(self) -> None:
        """Stop the sweeper and fail every context that is still in flight."""
        self.stop_sweeper()
        for context in self.list_contexts():
            if not context.is_terminal:
                self.release(context.id, succeeded=False, error="Manager shut down")
