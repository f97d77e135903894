#!/usr/bin/env python3
"""
Load resume and job records into the primary store.

Each fixture file (YAML or JSON) holds one record, or a list of records under
a top-level "resumes" or "jobs" key. Every record needs an identifier field
(resume_id / job_id); the file stem is used when a single record has none.

Usage:
    python scripts/seed_store.py resume data/fixtures/resume_001.yaml
    python scripts/seed_store.py job data/fixtures/jobs.yaml
    python scripts/seed_store.py init
"""

import json
from pathlib import Path
from typing import Dict, List, Tuple

import typer
from omegaconf import OmegaConf

from fitscore.contexts.storage import SqliteStore
from fitscore.utils.config import DATABASE_PATH

app = typer.Typer(
    add_completion=False,
    help="Seed the primary store with resume and job records",
    invoke_without_command=True,
)

KINDS = {"resume": ("resume_id", "resumes"), "job": ("job_id", "jobs")}


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def load_records(path: Path, kind: str) -> List[Tuple[str, Dict]]:
    """
    Read (identifier, record) pairs from a YAML or JSON fixture.

    Raises:
        ValueError: If a record has no identifier or the file shape is unknown
    """
    key_field, list_key = KINDS[kind]
    if path.suffix.lower() == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
    else:
        data = OmegaConf.to_container(OmegaConf.load(path), resolve=True)

    if isinstance(data, dict) and list_key in data:
        records = data[list_key]
    elif isinstance(data, dict):
        records = [{key_field: path.stem, **data}]
    elif isinstance(data, list):
        records = data
    else:
        raise ValueError(f"{path}: expected a mapping or a list of records")

    pairs = []
    for index, record in enumerate(records):
        if not isinstance(record, dict) or not record.get(key_field):
            raise ValueError(f"{path}: record {index} has no '{key_field}'")
        record = dict(record)
        pairs.append((str(record.pop(key_field)), record))
    return pairs


def _seed(kind: str, files: List[Path], db: Path) -> None:
    store = SqliteStore(db)
    store.init_schema()

    loaded = 0
    errors = 0
    for path in files:
        try:
            records = load_records(path, kind)
        except (OSError, ValueError) as e:
            typer.secho(f"✗ {path}: {e}", fg=typer.colors.RED, err=True)
            errors += 1
            continue
        for subject_id, record in records:
            store.put_subject(kind, subject_id, record)
            typer.echo(f"✓ {kind} {subject_id}")
            loaded += 1

    typer.secho(f"\nLoaded {loaded} {kind}(s) into {db}", fg=typer.colors.GREEN if not errors else typer.colors.YELLOW)
    if errors:
        raise typer.Exit(code=1)


@app.command("init")
def init_command(db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database")):
    """Create the database schema (safe to re-run)."""
    SqliteStore(db).init_schema()
    typer.secho(f"Schema ready: {db}", fg=typer.colors.GREEN)


@app.command("resume")
def resume_command(
    files: List[Path] = typer.Argument(..., help="Resume fixture files (YAML or JSON)"),
    db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database"),
):
    """Load resume records."""
    _seed("resume", files, db)


@app.command("job")
def job_command(
    files: List[Path] = typer.Argument(..., help="Job fixture files (YAML or JSON)"),
    db: Path = typer.Option(DATABASE_PATH, "--db", help="Primary SQLite database"),
):
    """Load job records."""
    _seed("job", files, db)


if __name__ == "__main__":
    app()
