"""
Batch scoring over many resume/job pairs.

Scores the cross product of resume and job identifiers with a bounded number
of pairs in flight. Each pair is an independent Coordinator.score() call, so a
rejected pair (bad identifier, dispatch failure) is recorded and the rest of
the batch carries on.

Keep max_concurrent * analyzers-per-run within the context manager's
max_concurrent_contexts, or later pairs will see ContextAcquisitionFailure.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from itertools import product
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from fitscore.contexts.coordination.coordinator import CompositeResult, Coordinator, OverallStatus
from fitscore.contexts.coordination.logger import _log_error, _log_info, _log_success, _log_warning
from fitscore.exceptions import CoordinatorError

DEFAULT_MAX_CONCURRENT = 4

Pair = Tuple[str, str]


@dataclass
class BatchReport:
    """
    Outcome of a batch run.

    Attributes:
        results: Composite per (resume_id, job_id), in request order
        failures: Error message per pair whose request was rejected
        processing_time_ms: Wall time of the whole batch
    """

    results: Dict[Pair, CompositeResult] = field(default_factory=dict)
    failures: Dict[Pair, str] = field(default_factory=dict)
    processing_time_ms: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results) + len(self.failures)

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in OverallStatus}
        for composite in self.results.values():
            counts[composite.overall_status.value] += 1
        return counts

    def ranked(self, job_id: Optional[str] = None) -> List[CompositeResult]:
        """Composites with a score, best first (optionally for one job)."""
        scored = [
            c for c in self.results.values()
            if c.composite_score is not None and (job_id is None or c.job_id == job_id)
        ]
        return sorted(scored, key=lambda c: (-c.composite_score, c.resume_id, c.job_id))


class BatchScorer:
    """Runs Coordinator.score() for many pairs with bounded concurrency."""

    def __init__(self, coordinator: Coordinator, max_concurrent: int = DEFAULT_MAX_CONCURRENT):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self.coordinator = coordinator
        self.max_concurrent = max_concurrent

    def score_batch(
        self,
        resume_ids: Iterable[str],
        job_ids: Iterable[str],
        max_concurrent: Optional[int] = None,
        weights: Optional[Mapping[str, float]] = None,
    ) -> BatchReport:
        """
        Score every resume against every job.

        Args:
            resume_ids: Resumes to score
            job_ids: Jobs to score them against
            max_concurrent: Pairs in flight at once (defaults to the scorer's setting)
            weights: Weights applied to every pair (None for per-job resolution)

        Returns:
            BatchReport with one entry per pair, in results or failures
        """
        limit = max_concurrent or self.max_concurrent
        pairs = list(dict.fromkeys(product(resume_ids, job_ids)))
        report = BatchReport()
        if not pairs:
            _log_warning("Empty batch; nothing to score")
            return report

        _log_info(f"Batch scoring {len(pairs)} pairs ({limit} at a time)")
        started = time.perf_counter()
        outcomes: Dict[Pair, object] = {}

        with ThreadPoolExecutor(max_workers=limit, thread_name_prefix="batch") as executor:
            futures = {
                executor.submit(self.coordinator.score, resume_id, job_id, weights): (resume_id, job_id)
                for resume_id, job_id in pairs
            }
            for future in as_completed(futures):
                pair = futures[future]
                try:
                    outcomes[pair] = future.result()
                except CoordinatorError as e:
                    _log_error(f"{pair[0]} vs {pair[1]} rejected: {e}")
                    outcomes[pair] = e

        for pair in pairs:
            outcome = outcomes[pair]
            if isinstance(outcome, CompositeResult):
                report.results[pair] = outcome
            else:
                report.failures[pair] = str(outcome)

        report.processing_time_ms = (time.perf_counter() - started) * 1000
        counts = report.status_counts()
        message = (
            f"Batch done: {counts['Complete']} complete, {counts['Partial']} partial, "
            f"{counts['Failed']} failed, {len(report.failures)} rejected "
            f"({report.processing_time_ms:.0f}ms)"
        )
        if report.failures or counts["Failed"]:
            _log_warning(message)
        else:
            _log_success(message)
        return report
