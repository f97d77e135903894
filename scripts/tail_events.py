#!/usr/bin/env python3
"""
View recent lifecycle events from lifecycle_events.log.

Provides filtered access to the event log by context, analysis type, event
type or scoring run, plus a per-context status timeline.
"""

import json
from typing import Optional

import typer

from fitscore.utils.event_logging import LIFECYCLE_EVENTS_FILE, CONTEXT_TRANSITION, get_recent_events
from fitscore.utils.timestamp import format_timestamp

app = typer.Typer(
    add_completion=False,
    help="View recent lifecycle events",
)


@app.command()
def main(
    n: int = typer.Option(10, "--num", "-n", help="Number of recent events to show"),
    context_id: Optional[str] = typer.Option(None, "--context", "-x", help="Filter to one execution context"),
    analysis_type: Optional[str] = typer.Option(None, "--analysis", "-a", help="Filter to one analysis type"),
    event_type: Optional[str] = typer.Option(None, "--event-type", "-e", help="Filter to events of this type"),
    run_id: Optional[str] = typer.Option(None, "--run", "-r", help="Filter to one scoring run"),
    compact: bool = typer.Option(
        False, "--compact", "-c", help="Print one event per line (no pretty formatting)"
    ),
):
    """
    Show the last n events from the lifecycle log.

    Examples:\n

        $ python scripts/tail_events.py                       # Last 10 events

        $ python scripts/tail_events.py -n 20 -a semantic     # Last 20 semantic events

        $ python scripts/tail_events.py -e task_outcome -c    # Task outcomes, one per line
    """
    events = get_recent_events(
        n=n,
        context_id=context_id,
        analysis_type=analysis_type,
        event_type=event_type,
        run_id=run_id,
    )

    if not events:
        typer.secho(f"No events found in {LIFECYCLE_EVENTS_FILE}", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    if not compact:
        typer.secho(f"\nShowing last {len(events)} event(s):\n", fg=typer.colors.BLUE)

    for event in events:
        if compact:
            typer.echo(json.dumps(event))
        else:
            typer.echo(json.dumps(event, indent=2))
            typer.echo("")


@app.command()
def track(
    context_id: str = typer.Argument(..., help="Execution context to track"),
    relative: bool = typer.Option(
        False, "--relative", "-r", help="Show relative timestamps (e.g., '2 hours ago')"
    ),
):
    """
    Show the status timeline of one execution context, oldest first.

    Examples:\n

        $ python scripts/tail_events.py track ctx_skill_3fa2b1c9d0e8
    """
    events = get_recent_events(n=10**9, context_id=context_id, event_type=CONTEXT_TRANSITION)
    if not events:
        typer.secho(f"No transitions recorded for {context_id}", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    typer.secho(f"\n{context_id} ({events[0].get('analysis_type')})\n", fg=typer.colors.BLUE, bold=True)
    for index, event in enumerate(events):
        marker = "●" if index == len(events) - 1 else "○"
        line = f"  {marker} {event['status']:<10} {format_timestamp(event['timestamp'], relative=relative)}"
        if event.get("tier"):
            line += f"  tier={event['tier']}"
        if event.get("duration_ms") is not None:
            line += f"  {event['duration_ms']:.0f}ms"
        typer.echo(line)
        if event.get("error"):
            typer.secho(f"      {event['error']}", fg=typer.colors.RED)


if __name__ == "__main__":
    app()
