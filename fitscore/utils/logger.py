"""
Loguru setup for entry points (Tier 1, detailed logging).

Scripts and the API call setup_logger() once at startup. It installs a
thread-aware file sink and a console sink, then writes a provenance header
naming the database, clone directory, event log and scoring settings the
session runs with. Per-context wrappers live in contexts/{context}/logger.py.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from fitscore.utils import event_logging
from fitscore.utils.config import CLONE_DIR, DATABASE_PATH

load_dotenv()

# Console colors; WARNING stands out because degraded analyses log at that level
LEVEL_COLORS = {
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {thread.name: <16} | {message}"
CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <7}</level> | <level>{message}</level>"


def setup_logger(
    context_name: str,
    log_dir: Path,
    extra_provenance: dict = None,
    console_level: str = "INFO",
    config=None,
) -> Path:
    """
    Configure loguru sinks for a scoring session and log its provenance.

    The file sink is enqueued because analysis workers log from their own
    threads; the thread name column tells the tasks of one run apart.

    Args:
        context_name: Session identifier (e.g., "score", "batch", "api")
        log_dir: Directory for this logging session
        extra_provenance: Additional key-value pairs for the header
        console_level: Minimum level echoed to the console
        config: Scoring config whose isolation and coordinator settings are
            added to the header

    Returns:
        Path to log file

    Example:
        log_file = setup_logger(
            context_name="score",
            log_dir=Path("outs/logs/score_20251114_123456"),
            extra_provenance={"Pair": "resume_001 vs job_042"},
            config=load_scoring_config(),
        )
    """
    log_dir.mkdir(exist_ok=True, parents=True)
    log_file = log_dir / f"{context_name}.log"

    logger.remove()
    for level_name, color in LEVEL_COLORS.items():
        logger.level(level_name, color=color)

    logger.add(log_file, format=FILE_FORMAT, level="DEBUG", enqueue=True)
    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    provenance = scoring_provenance(config)
    provenance.update(extra_provenance or {})
    log_provenance(provenance)

    return log_file


def scoring_provenance(config=None) -> dict:
    """
    Storage locations and scoring settings a session runs with.

    Args:
        config: Optional scoring config (DictConfig from load_scoring_config)

    Returns:
        Ordered dict of header lines
    """
    provenance = {
        "Database": DATABASE_PATH,
        "Clone dir": CLONE_DIR,
        "Event log": event_logging.LIFECYCLE_EVENTS_FILE,
    }
    if config is not None:
        provenance["Isolation tiers"] = ", ".join(config.isolation.tiers)
        provenance["Max contexts"] = config.isolation.max_concurrent_contexts
        provenance["Task timeout"] = f"{float(config.coordinator.task_timeout_s):g}s"
        provenance["Dynamic weights"] = config.coordinator.dynamic_weights
    return provenance


def log_provenance(extra_context: dict = None) -> None:
    """
    Log the provenance header: script, command, working directory, Python
    version and process id, then any extra key-value pairs.
    """
    logger.info("=" * 80)
    logger.info(f"Script: {sys.argv[0]}")
    logger.info(f"Command: {' '.join(sys.argv)}")
    logger.info(f"Working directory: {Path.cwd()}")
    logger.info(f"Python: {sys.version.split()[0]} (pid {os.getpid()})")

    for key, value in (extra_context or {}).items():
        logger.info(f"{key}: {value}")

    logger.info("=" * 80)
