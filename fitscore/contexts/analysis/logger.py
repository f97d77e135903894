"""
Analysis context logger.

Provides logging interface for the analysis context with automatic [analysis] prefix.
All analysis modules should import from this module, not from utils.logger directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[analysis]"


# Wrapper functions with automatic [analysis] prefix


def _log_info(message: str) -> None:
    """Log info message with [analysis] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [analysis] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [analysis] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [analysis] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [analysis] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level analysis-specific logging helpers


def log_unit_start(analysis_type: str, context) -> None:
    """Log a unit starting work inside its execution context."""
    tier = context.isolation_tier.value if context.isolation_tier else "none"
    _log_debug(f"{analysis_type}: starting in {context.id} ({tier}) for {context.subject_refs}")


def log_unit_outcome(result) -> None:
    """
    Log the final outcome of one unit run.

    Args:
        result: AnalysisResult returned by AnalysisUnit.run()
    """
    name = result.analysis_type.value
    if result.is_success:
        _log_success(f"{name}: {result.score:.2f} ({result.timing_ms:.1f}ms)")
        if not result.persisted:
            _log_warning(f"{name}: result not persisted: {result.persist_error}")
    elif result.error_kind is not None and result.error_kind.value == "TimeoutExceeded":
        _log_warning(f"{name}: abandoned after {result.timing_ms:.1f}ms: {result.error}")
    else:
        kind = result.error_kind.value if result.error_kind else "Unknown"
        _log_error(f"{name}: {kind}: {result.error}")
