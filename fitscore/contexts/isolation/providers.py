"""
Isolation providers.

An IsolationProvider turns a context id into a ConnectionDescriptor using one
of three escalating strategies. The ExecutionContextManager tries them in
order and does not care which one succeeded.

SqliteIsolationProvider works over a primary SQLite file:
- zero_copy: copy-on-write reflink of the database file (btrfs, XFS, APFS)
- standard:  SQLite online backup into a per-context file
- shared:    the primary file itself (managed environments that forbid copies)
"""

import sqlite3
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable

from fitscore.contexts.isolation.context_data_structure import (
    ConnectionDescriptor,
    IsolationTier,
)
from fitscore.exceptions import IsolationUnavailable

ALL_TIERS = (IsolationTier.ZERO_COPY, IsolationTier.STANDARD, IsolationTier.SHARED)


class IsolationProvider(ABC):
    """Three-tier primitive used by ExecutionContextManager.acquire()."""

    @abstractmethod
    def try_zero_copy_clone(self, context_id: str) -> ConnectionDescriptor:
        """Fastest isolation. Raises IsolationUnavailable if unsupported."""

    @abstractmethod
    def try_standard_clone(self, context_id: str) -> ConnectionDescriptor:
        """Explicit duplication. Raises IsolationUnavailable if it fails."""

    @abstractmethod
    def fallback_to_shared(self, context_id: str) -> ConnectionDescriptor:
        """Reuse of the primary store. Raises IsolationUnavailable if unreachable."""

    @abstractmethod
    def reclaim(self, connection: ConnectionDescriptor) -> None:
        """Release resources behind a descriptor. Must be a no-op for shared descriptors."""

    def ping(self) -> bool:
        """Check that the primary store is reachable. Raises on failure."""
        return True


class SqliteIsolationProvider(IsolationProvider):
    """
    Isolation over a primary SQLite database file.

    Attributes:
        primary_path: Primary database (subjects are read from copies of it; results go to it)
        clone_dir: Directory that holds per-context copies
        enabled_tiers: Tiers this provider is allowed to use
    """

    def __init__(
        self,
        primary_path: Path,
        clone_dir: Path,
        enabled_tiers: Iterable = ALL_TIERS,
        copy_command: str = "cp",
    ):
        self.primary_path = Path(primary_path)
        self.clone_dir = Path(clone_dir)
        self.enabled_tiers = {IsolationTier(tier) for tier in enabled_tiers}
        self.copy_command = copy_command

    def __repr__(self) -> str:
        tiers = [tier.value for tier in ALL_TIERS if tier in self.enabled_tiers]
        return f"SqliteIsolationProvider(primary={str(self.primary_path)!r}, tiers={tiers})"

    def _require(self, tier: IsolationTier) -> None:
        if tier not in self.enabled_tiers:
            raise IsolationUnavailable(f"{tier.value} isolation disabled by configuration")
        if not self.primary_path.exists():
            raise IsolationUnavailable(f"Primary database not found: {self.primary_path}")

    def _clone_path(self, context_id: str) -> Path:
        return self.clone_dir / f"{self.primary_path.stem}_{context_id}.sqlite"

    def _descriptor(self, subject_path: Path, tier: IsolationTier) -> ConnectionDescriptor:
        return ConnectionDescriptor(
            subject_uri=str(subject_path),
            results_uri=str(self.primary_path),
            tier=tier,
        )

    def try_zero_copy_clone(self, context_id: str) -> ConnectionDescriptor:
        self._require(IsolationTier.ZERO_COPY)
        clone_path = self._clone_path(context_id)
        self.clone_dir.mkdir(parents=True, exist_ok=True)

        try:
            subprocess.run(
                [self.copy_command, "--reflink=always", str(self.primary_path), str(clone_path)],
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            clone_path.unlink(missing_ok=True)
            reason = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise IsolationUnavailable(f"Reflink copy failed: {reason}") from e
        except OSError as e:
            clone_path.unlink(missing_ok=True)
            raise IsolationUnavailable(f"Reflink copy unavailable: {e}") from e

        return self._descriptor(clone_path, IsolationTier.ZERO_COPY)

    def try_standard_clone(self, context_id: str) -> ConnectionDescriptor:
        self._require(IsolationTier.STANDARD)
        clone_path = self._clone_path(context_id)
        self.clone_dir.mkdir(parents=True, exist_ok=True)

        source = None
        target = None
        try:
            source = sqlite3.connect(f"{self.primary_path.resolve().as_uri()}?mode=ro", uri=True)
            target = sqlite3.connect(clone_path)
            source.backup(target)
        except (sqlite3.Error, OSError) as e:
            if target is not None:
                target.close()
                target = None
            clone_path.unlink(missing_ok=True)
            raise IsolationUnavailable(f"SQLite backup failed: {e}") from e
        finally:
            if source is not None:
                source.close()
            if target is not None:
                target.close()

        return self._descriptor(clone_path, IsolationTier.STANDARD)

    def fallback_to_shared(self, context_id: str) -> ConnectionDescriptor:
        self._require(IsolationTier.SHARED)
        return self._descriptor(self.primary_path, IsolationTier.SHARED)

    def reclaim(self, connection: ConnectionDescriptor) -> None:
        if connection.tier is IsolationTier.SHARED:
            return
        clone_path = Path(connection.subject_uri)
        if clone_path.resolve() == self.primary_path.resolve():
            raise ValueError(f"Refusing to reclaim the primary database: {clone_path}")
        clone_path.unlink(missing_ok=True)

    def ping(self) -> bool:
        if not self.primary_path.exists():
            raise IsolationUnavailable(f"Primary database not found: {self.primary_path}")
        conn = sqlite3.connect(f"{self.primary_path.resolve().as_uri()}?mode=ro", uri=True)
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()
        return True
