"""
Coordination context logger.

Provides logging interface for the coordination context with automatic [coord] prefix.
All coordination modules should import from this module, not from utils.logger directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[coord]"


# Wrapper functions with automatic [coord] prefix


def _log_info(message: str) -> None:
    """Log info message with [coord] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [coord] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [coord] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [coord] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [coord] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level coordination-specific logging helpers


def log_score_start(run_id: str, resume_id: str, job_id: str, analysis_types: list, weight_source: str) -> None:
    """Log the start of one scoring run."""
    _log_info(f"Scoring {resume_id} vs {job_id} (run {run_id})")
    _log_debug(f"  Analyses: {', '.join(t.value for t in analysis_types)}")
    _log_debug(f"  Weights: {weight_source}")


def log_task_timeout(analysis_type: str, context_id, timeout_s: float) -> None:
    """Log a task abandoned at its deadline."""
    _log_warning(f"{analysis_type} exceeded {timeout_s:g}s; abandoned (context {context_id or 'not acquired'})")


def log_score_result(composite) -> None:
    """
    Log the outcome of one scoring run.

    Args:
        composite: CompositeResult from Coordinator.score()
    """
    status = composite.overall_status.value
    score = f"{composite.composite_score:.2f}" if composite.composite_score is not None else "n/a"
    message = f"Run {composite.run_id}: {status}, composite {score} ({composite.processing_time_ms:.0f}ms)"

    if status == "Complete":
        _log_success(message)
    elif status == "Partial":
        _log_warning(message)
        for analysis_type, result in composite.results.items():
            if result is not None and not result.is_success:
                _log_warning(f"  {analysis_type.value}: {result.status.value}: {result.error}")
    else:
        _log_error(message)
        for analysis_type, result in composite.results.items():
            error = result.error if result is not None else "no outcome"
            _log_error(f"  {analysis_type.value}: {error}")
