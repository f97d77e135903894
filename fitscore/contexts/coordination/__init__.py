"""
Coordination Context

Responsibilities:
- Dispatches one analysis task per registered analyzer, concurrently
- Enforces per-task timeouts and contains task failures
- Resolves weights and aggregates successful scores into a composite
- Scores batches of resume/job pairs

Owns: Coordinator, CompositeResult, weight profiles, BatchScorer
Never: Implements analyses or manages isolated resources directly
"""

from fitscore.contexts.coordination.batch import BatchReport, BatchScorer
from fitscore.contexts.coordination.coordinator import (
    CompositeResult,
    Coordinator,
    OverallStatus,
    aggregate,
    build_coordinator,
    summary,
)
from fitscore.contexts.coordination.weights import WeightOptimizer, normalize_weights

__all__ = [
    "BatchReport",
    "BatchScorer",
    "CompositeResult",
    "Coordinator",
    "OverallStatus",
    "WeightOptimizer",
    "aggregate",
    "build_coordinator",
    "normalize_weights",
    "summary",
]
