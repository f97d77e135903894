"""
Isolation context logger.

Provides logging interface for the isolation context with automatic [context] prefix.
All isolation modules should import from this module, not from utils.logger directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[context]"


# Wrapper functions with automatic [context] prefix


def _log_info(message: str) -> None:
    """Log info message with [context] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [context] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [context] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [context] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [context] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level isolation-specific logging helpers


def log_context_acquired(context, tier_errors: dict) -> None:
    """
    Log a successful acquisition, including any tiers that were skipped.

    Args:
        context: ExecutionContext with a connection
        tier_errors: Tier name -> error for tiers that failed before this one
    """
    _log_info(
        f"Acquired {context.id} ({context.analysis_type.value}, {context.subject_refs}) "
        f"via {context.isolation_tier.value}"
    )
    for tier, error in tier_errors.items():
        _log_debug(f"  {tier} unavailable: {error}")


def log_acquisition_failure(analysis_type: str, context_id: str, tier_errors: dict) -> None:
    """Log that every isolation tier failed for one analysis."""
    _log_error(f"No isolation tier available for {analysis_type} ({context_id})")
    for tier, error in tier_errors.items():
        _log_error(f"  {tier}: {error}")


def log_context_released(context) -> None:
    """Log a context reaching a terminal status."""
    duration = f"{context.duration_ms:.1f}ms" if context.duration_ms is not None else "n/a"
    if context.status.value == "completed":
        _log_debug(f"Released {context.id} as completed ({duration})")
    else:
        _log_warning(f"Released {context.id} as failed ({duration}): {context.error}")


def log_sweep_result(retired: int, stale: list, retention_hours: float) -> None:
    """
    Log the outcome of one retention sweep.

    Args:
        retired: Number of terminal contexts removed
        stale: Non-terminal contexts older than the retention window (left in place)
        retention_hours: Retention window used for the sweep
    """
    if retired:
        _log_info(f"Sweep retired {retired} contexts older than {retention_hours:g}h")
    else:
        _log_debug(f"Sweep found nothing older than {retention_hours:g}h")

    for context in stale:
        _log_warning(
            f"{context.id} still {context.status.value} after {retention_hours:g}h "
            "(not swept; release it explicitly)"
        )
