"""
Isolation Context

Responsibilities:
- Creates one execution context per analysis task
- Binds each context to isolated storage (zero_copy, standard or shared tier)
- Tracks context lifecycle (pending, active, completed, failed) and retention

Owns: ExecutionContext records, isolation providers, the context registry
Never: Runs analyzers or combines scores
"""

from fitscore.contexts.isolation.context_data_structure import (
    ConnectionDescriptor,
    ContextStatus,
    ExecutionContext,
    IsolationTier,
    SubjectRefs,
)
from fitscore.contexts.isolation.context_manager import ExecutionContextManager
from fitscore.contexts.isolation.providers import (
    IsolationProvider,
    SqliteIsolationProvider,
)

__all__ = [
    "ConnectionDescriptor",
    "ContextStatus",
    "ExecutionContext",
    "ExecutionContextManager",
    "IsolationProvider",
    "IsolationTier",
    "SqliteIsolationProvider",
    "SubjectRefs",
]
