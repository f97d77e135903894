"""
Lifecycle event logging utilities for FITSCORE (Tier 2 logging).

Every execution context and analysis unit transition is appended to
lifecycle_events.log in JSON Lines format, keyed by
(context_id, analysis_type, status, duration_ms). This is the observability
sink consumed by dashboards and by scripts/tail_events.py.

For detailed within-context logging (Tier 1), use fitscore.utils.logger instead.

Usage:
    from fitscore.utils.event_logging import log_lifecycle_event

    log_lifecycle_event(
        event_type="context_transition",
        context_id="ctx_skill_3fa2b1c9",
        analysis_type="skill",
        status="active",
        duration_ms=None,
        source="isolation",
    )
"""

import json
import os
import threading
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from fitscore.utils.timestamp import now_exact

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))
LIFECYCLE_EVENTS_FILE = Path(
    os.getenv("LIFECYCLE_EVENTS_FILE", str(LOGS_PATH / "lifecycle_events.log"))
)

# Event types written by the contexts
CONTEXT_TRANSITION = "context_transition"
UNIT_TRANSITION = "unit_transition"
TASK_OUTCOME = "task_outcome"
SCORE_COMPLETED = "score_completed"

_write_lock = threading.Lock()


def log_lifecycle_event(
    event_type: str,
    context_id: Optional[str],
    analysis_type: Optional[str],
    status: str,
    duration_ms: Optional[float],
    source: str,
    **extra_fields,
) -> None:
    """
    Append one lifecycle event to the event log.

    Writes are serialized with a process-wide lock so events from concurrent
    analysis threads never interleave within a line. A sink that cannot be
    written (full disk, unwritable log dir) never fails the caller: the event
    is reported through loguru at ERROR level with its payload instead.

    Args:
        event_type: Type of event (e.g., "context_transition", "unit_transition")
        context_id: Execution context identifier (None before acquisition)
        analysis_type: Analysis type value (e.g., "skill")
        status: New status after the transition
        duration_ms: Elapsed time attached to the transition, if known
        source: Event source (e.g., "isolation", "analysis", "coordination")
        **extra_fields: Additional event-specific fields (error, tier, run_id, ...)

    Example:
        log_lifecycle_event(
            event_type="task_outcome",
            context_id="ctx_certification_0a1b2c3d",
            analysis_type="certification",
            status="TimedOut",
            duration_ms=2000.4,
            source="coordination",
            error="certification task exceeded 2.0s",
        )
    """
    event = {
        "timestamp": now_exact(),
        "event_type": event_type,
        "context_id": context_id,
        "analysis_type": analysis_type,
        "status": status,
        "duration_ms": round(duration_ms, 2) if duration_ms is not None else None,
        "source": source,
        **extra_fields,
    }

    events_file = LIFECYCLE_EVENTS_FILE
    line = json.dumps(event, default=str) + "\n"
    try:
        with _write_lock:
            events_file.parent.mkdir(parents=True, exist_ok=True)
            with open(events_file, "a", encoding="utf-8") as f:
                f.write(line)
    except OSError as e:
        logger.error(f"Lifecycle event not written to {events_file} ({e}): {line.rstrip()}")


def get_recent_events(
    n: int = 10,
    context_id: Optional[str] = None,
    analysis_type: Optional[str] = None,
    event_type: Optional[str] = None,
    run_id: Optional[str] = None,
) -> List[dict]:
    """
    Get the last n events from the lifecycle log, optionally filtered.

    Args:
        n: Number of recent events to return (default: 10)
        context_id: Only events for this execution context
        analysis_type: Only events for this analysis type
        event_type: Only events of this type
        run_id: Only events belonging to this scoring run

    Returns:
        List of event dicts (most recent last)
    """
    if not LIFECYCLE_EVENTS_FILE.is_file():
        return []

    events = []
    with open(LIFECYCLE_EVENTS_FILE, "r", encoding="utf-8") as f:
        for line in f:
            try:
                events.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                # Skip malformed lines
                continue

    if context_id:
        events = [e for e in events if e.get("context_id") == context_id]

    if analysis_type:
        events = [e for e in events if e.get("analysis_type") == analysis_type]

    if event_type:
        events = [e for e in events if e.get("event_type") == event_type]

    if run_id:
        events = [e for e in events if e.get("run_id") == run_id]

    return events[-n:] if len(events) > n else events


def context_history(context_id: str) -> List[str]:
    """Ordered list of statuses recorded for one execution context."""
    return [
        e["status"]
        for e in get_recent_events(n=10**9, context_id=context_id, event_type=CONTEXT_TRANSITION)
    ]
