"""
Shared utilities for FITSCORE.

Common functionality used across contexts:
- Logging setup and lifecycle event log
- Configuration loading
- Timestamps
- Report formatting
"""

from fitscore.utils.timestamp import now, now_exact, today, utc_now

__all__ = ["now", "now_exact", "today", "utc_now"]
