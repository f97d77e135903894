#!/usr/bin/env python3
"""
Inspect execution contexts and analyzer performance.

The context ledger (execution_contexts table) records one row per context
across runs; the in-process registry only lives as long as its manager, so
these commands read the ledger and the stored results.

Commands:
    health       - Probe the primary store and isolation tiers
    list         - List recorded contexts for a resume/job pair
    run          - Show every context and result of one scoring run
    performance  - Per-analyzer success rate, average score and duration
    sweep        - Reclaim leftover per-context database copies
"""

import json
from datetime import datetime, timedelta
from pathlib import Path

import typer

from fitscore.contexts.isolation import ExecutionContextManager, SqliteIsolationProvider
from fitscore.contexts.storage import SqliteStore
from fitscore.utils.config import CLONE_DIR, DATABASE_PATH, load_scoring_config
from fitscore.utils.report_formatter import (
    Column,
    TableFormatter,
    format_duration_ms,
    format_percentage,
    format_score,
)

app = typer.Typer(
    add_completion=False,
    help="Inspect execution contexts, the context ledger and analyzer performance",
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _store(db: Path) -> SqliteStore:
    if not db.exists():
        typer.secho(f"Database not found: {db}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return SqliteStore(db)


@app.command("health")
def health_command(
    db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database"),
    clone_dir: Path = typer.Option(CLONE_DIR, "--clone-dir", help="Per-context copy directory"),
):
    """
    Probe the primary store and report the configured isolation tiers.

    Examples:\n

        $ python scripts/manage_contexts.py health
    """
    config = load_scoring_config()
    store = SqliteStore(db)
    provider = SqliteIsolationProvider(db, clone_dir, enabled_tiers=list(config.isolation.tiers))
    manager = ExecutionContextManager.from_config(config.isolation, provider, ledger=store)

    report = manager.health_check()
    color = typer.colors.GREEN if report["status"] == "healthy" else typer.colors.RED
    typer.secho(f"Status: {report['status']}", fg=color, bold=True)
    typer.echo(f"Tiers: {', '.join(config.isolation.tiers)}")
    typer.echo(f"Context limit: {report['max_concurrent_contexts']}")
    if "error" in report:
        typer.secho(f"Error: {report['error']}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command("list")
def list_command(
    resume_id: str = typer.Argument(..., help="Resume identifier"),
    job_id: str = typer.Argument(..., help="Job identifier"),
    db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database"),
):
    """
    List every recorded context for a resume/job pair, with its result.

    Examples:\n

        $ python scripts/manage_contexts.py list resume_001 job_042
    """
    rows = _store(db).context_stats(resume_id, job_id)
    if not rows:
        typer.secho(f"No contexts recorded for {resume_id} vs {job_id}", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    table = TableFormatter(
        [
            Column("Context", 32),
            Column("Analysis", 14),
            Column("Status", 10),
            Column("Tier", 10),
            Column("Score", 7, ">"),
            Column("Time", 8, ">"),
        ],
        total_width=86,
    )
    table.add_section_header(f"Contexts for {resume_id} vs {job_id}")
    table.add_table_header()
    for row in rows:
        table.add_row(
            [
                row["context_id"],
                row["analysis_type"],
                row["context_status"],
                row["isolation_tier"],
                format_score(row["score"]),
                format_duration_ms(row["duration_ms"]),
            ]
        )
    table.add_summary(f"{len(rows)} context(s)")
    typer.echo(table.render())


@app.command("run")
def run_command(
    run_id: str = typer.Argument(..., help="Scoring run identifier"),
    db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database"),
):
    """
    Show the composite of one run with each of its contexts.

    Examples:\n

        $ python scripts/manage_contexts.py run 3fa2b1c9d0e84f5a9b7c6d5e4f3a2b1c
    """
    rows = _store(db).run_breakdown(run_id)
    if not rows:
        typer.secho(f"Run not found: {run_id}", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(rows, indent=2, default=str))


@app.command("performance")
def performance_command(
    db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database"),
):
    """
    Per-analyzer run counts, success rate, average score and duration.

    Examples:\n

        $ python scripts/manage_contexts.py performance
    """
    rows = _store(db).analysis_performance()
    if not rows:
        typer.secho("No contexts recorded yet", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    table = TableFormatter(
        [
            Column("Analysis", 14),
            Column("Runs", 6, ">"),
            Column("Success", 9, ">"),
            Column("Failed", 7, ">"),
            Column("Avg score", 10, ">"),
            Column("Avg time", 9, ">"),
        ],
        total_width=60,
    )
    table.add_section_header("Analyzer performance")
    table.add_table_header()
    for row in rows:
        table.add_row(
            [
                row["analysis_type"],
                row["runs"],
                format_percentage(row["completed"], row["runs"]),
                row["failed"],
                format_score(row["avg_score"]),
                format_duration_ms(row["avg_duration_ms"]),
            ]
        )
    typer.echo(table.render())


@app.command("sweep")
def sweep_command(
    clone_dir: Path = typer.Option(CLONE_DIR, "--clone-dir", help="Per-context copy directory"),
    hours: float = typer.Option(None, "--hours", help="Retention window (default: config retention_hours)"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be removed"),
):
    """
    Delete per-context database copies older than the retention window.

    Copies normally disappear when their context is released; this clears
    leftovers from processes that exited mid-run.

    Examples:\n

        $ python scripts/manage_contexts.py sweep --dry-run

        $ python scripts/manage_contexts.py sweep --hours 1
    """
    retention_hours = hours if hours is not None else float(load_scoring_config().isolation.retention_hours)
    cutoff = datetime.now() - timedelta(hours=retention_hours)

    if not clone_dir.exists():
        typer.secho(f"Nothing to sweep: {clone_dir} does not exist", fg=typer.colors.YELLOW)
        return

    stale = [
        path for path in sorted(clone_dir.glob("*.sqlite"))
        if datetime.fromtimestamp(path.stat().st_mtime) < cutoff
    ]
    for path in stale:
        if dry_run:
            typer.echo(f"• {path.name}")
        else:
            path.unlink()
            typer.echo(f"✓ removed {path.name}")

    verb = "would remove" if dry_run else "removed"
    typer.secho(f"\nSweep {verb} {len(stale)} copy(ies) older than {retention_hours:g}h", fg=typer.colors.BLUE)


if __name__ == "__main__":
    app()
