#!/usr/bin/env python3
"""
Score resumes against jobs from the command line.

Commands:
    pair   - Score one resume against one job
    batch  - Score every listed resume against every listed job
"""

import json
from pathlib import Path
from typing import List, Optional

import typer

from fitscore.contexts.coordination import BatchScorer, build_coordinator, summary
from fitscore.exceptions import CoordinatorError
from fitscore.utils.config import DATABASE_PATH, LOGS_PATH, load_scoring_config
from fitscore.utils.logger import setup_logger
from fitscore.utils.report_formatter import Column, TableFormatter, format_score
from fitscore.utils.timestamp import now

app = typer.Typer(
    add_completion=False,
    help="Score resume/job fit with all registered analyzers",
)


def _parse_weights(weights: Optional[List[str]]) -> Optional[dict]:
    """Turn ["skill=0.4", "semantic=0.6"] into {"skill": 0.4, "semantic": 0.6}."""
    if not weights:
        return None
    parsed = {}
    for item in weights:
        name, sep, value = item.partition("=")
        if not sep:
            raise typer.BadParameter(f"Expected TYPE=WEIGHT, got '{item}'")
        try:
            parsed[name.strip()] = float(value)
        except ValueError:
            raise typer.BadParameter(f"Weight for '{name}' is not a number: '{value}'") from None
    return parsed


@app.command("pair")
def pair_command(
    resume_id: str = typer.Argument(..., help="Resume identifier"),
    job_id: str = typer.Argument(..., help="Job identifier"),
    weight: Optional[List[str]] = typer.Option(
        None, "--weight", "-w", help="Analysis weight as TYPE=WEIGHT (repeatable)"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Per-analysis timeout in seconds (overrides config)"
    ),
    db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database"),
    as_json: bool = typer.Option(False, "--json", help="Print the response JSON instead of a table"),
):
    """
    Score one resume against one job.

    Examples:\n

        $ python scripts/score_resume.py pair resume_001 job_042

        $ python scripts/score_resume.py pair resume_001 job_042 -w skill=0.5 -w semantic=0.5

        $ python scripts/score_resume.py pair resume_001 job_042 --json
    """
    overrides = {"coordinator": {"task_timeout_s": timeout}} if timeout else None
    config = load_scoring_config(overrides=overrides)
    setup_logger(
        context_name="score",
        log_dir=LOGS_PATH / f"score_{now()}",
        extra_provenance={"Database": db, "Pair": f"{resume_id} vs {job_id}"},
        console_level="WARNING" if as_json else "INFO",
        config=config,
    )

    coordinator = build_coordinator(config, database_path=db)
    try:
        composite = coordinator.score(resume_id, job_id, _parse_weights(weight))
    except CoordinatorError as e:
        typer.secho(f"Request rejected: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    finally:
        coordinator.context_manager.shutdown()

    if as_json:
        typer.echo(json.dumps(composite.to_response(), indent=2))
    else:
        typer.echo(summary(composite))

    if composite.overall_status.value == "Failed":
        raise typer.Exit(code=1)


@app.command("batch")
def batch_command(
    resume_ids: List[str] = typer.Option(..., "--resume", "-r", help="Resume identifier (repeatable)"),
    job_ids: List[str] = typer.Option(..., "--job", "-j", help="Job identifier (repeatable)"),
    max_concurrent: Optional[int] = typer.Option(
        None, "--max-concurrent", "-c", help="Pairs scored at once (default: config batch.max_concurrent)"
    ),
    db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database"),
):
    """
    Score every resume against every job and print a ranking per job.

    Examples:\n

        $ python scripts/score_resume.py batch -r resume_001 -r resume_002 -j job_042
    """
    config = load_scoring_config()
    setup_logger(
        context_name="batch",
        log_dir=LOGS_PATH / f"batch_{now()}",
        extra_provenance={"Database": db, "Resumes": len(resume_ids), "Jobs": len(job_ids)},
        config=config,
    )

    coordinator = build_coordinator(config, database_path=db)
    scorer = BatchScorer(coordinator, max_concurrent=max_concurrent or int(config.batch.max_concurrent))
    try:
        report = scorer.score_batch(resume_ids, job_ids)
    finally:
        coordinator.context_manager.shutdown()

    for job_id in dict.fromkeys(job_ids):
        table = TableFormatter(
            [Column("Rank", 5, ">"), Column("Resume", 30), Column("Composite", 10, ">"), Column("Status", 10)],
            total_width=58,
        )
        table.add_section_header(f"Ranking for {job_id}")
        table.add_table_header()
        for rank, composite in enumerate(report.ranked(job_id), start=1):
            table.add_row([rank, composite.resume_id, format_score(composite.composite_score), composite.overall_status.value])
        typer.echo(table.render())

    counts = report.status_counts()
    typer.secho(
        f"\n{report.total} pairs: {counts['Complete']} complete, {counts['Partial']} partial, "
        f"{counts['Failed']} failed, {len(report.failures)} rejected",
        fg=typer.colors.GREEN if not report.failures and not counts["Failed"] else typer.colors.YELLOW,
    )
    for (resume_id, job_id), error in report.failures.items():
        typer.secho(f"  ✗ {resume_id} vs {job_id}: {error}", fg=typer.colors.RED, err=True)


if __name__ == "__main__":
    app()
