"""
Storage Context

Responsibilities:
- Serves resume and job subject records
- Stores per-analysis results, the execution context ledger and composite scores
- Answers analytics queries joining contexts with their results

Owns: SQLite schema and query construction
Never: Decides scores or isolation strategy
"""

from fitscore.contexts.storage.store import SqliteStore

__all__ = ["SqliteStore"]
