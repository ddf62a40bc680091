"""
Ledger storage for wortex.

This module provides:
- StateStore, the storage capability every component receives
- JsonStateStore, the durable JSON ledger shared by all wortex processes
- InMemoryStateStore, a process-local ledger with the same semantics

Every operation runs as one transaction: enter the critical section, load
the ledger, apply an in-memory change, persist, leave. No git or tmux call
ever happens inside a transaction.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, ContextManager, Optional, TypeVar
from uuid import UUID

from pydantic import ValidationError

from wortex.exceptions import (
    ConflictError,
    EntryNotFoundError,
    LedgerError,
    StateNotInitializedError,
)
from wortex.models.entry import Entry, Ledger
from wortex.utils.io import atomic_write_text, exclusive_file_lock

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Serializes transactions between threads of one process; the flock
# serializes between processes.
_PROCESS_LOCK = threading.Lock()


class StateStore(ABC):
    """Lock-guarded read-modify-write access to the ledger."""

    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether the backing storage exists."""

    @abstractmethod
    def initialize(self) -> None:
        """Create the backing storage. Idempotent."""

    @abstractmethod
    def _transaction(self, write: bool) -> ContextManager[Ledger]:
        """Yield the current ledger inside the critical section.

        When ``write`` is true the (possibly mutated) ledger is persisted
        before the critical section is left, unless the body raised.
        """

    def _run(self, fn: Callable[[Ledger], T], write: bool = True) -> T:
        with self._transaction(write) as ledger:
            return fn(ledger)

    def append(self, entry: Entry) -> Entry:
        """
        Append a new entry.

        Raises:
            ConflictError: If the branch or path is already in the ledger.
        """

        def _append(ledger: Ledger) -> Entry:
            if ledger.find_by_branch(entry.branch):
                raise ConflictError(
                    f"Entry for branch '{entry.branch}' already exists in state "
                    f"(run `wortex cleanup` to remove stale entries)",
                    resource=entry.branch,
                )
            if ledger.find_by_path(entry.path):
                raise ConflictError(
                    f"Entry for path '{entry.path}' already exists in state",
                    resource=str(entry.path),
                )
            ledger.entries.append(entry)
            return entry

        return self._run(_append)

    def mutate(self, entry_id: UUID, fn: Callable[[Entry], None]) -> Entry:
        """
        Apply ``fn`` to the entry with ``entry_id`` and persist the result.

        Raises:
            EntryNotFoundError: If no entry has that id.
        """

        def _mutate(ledger: Ledger) -> Entry:
            entry = ledger.get(entry_id)
            if entry is None:
                raise EntryNotFoundError(str(entry_id))
            fn(entry)
            return entry

        return self._run(_mutate)

    def remove(self, entry_id: UUID) -> Optional[Entry]:
        """Remove an entry by id. Returns the removed entry, or None."""
        return self._run(lambda ledger: ledger.remove(entry_id))

    def remove_by_branch(self, branch: str) -> Optional[Entry]:
        """Remove the entry tracking ``branch``. Returns it, or None."""

        def _remove(ledger: Ledger) -> Optional[Entry]:
            entry = ledger.find_by_branch(branch)
            if entry is None:
                return None
            return ledger.remove(entry.id)

        return self._run(_remove)

    def remove_many(self, entry_ids: Iterable[UUID]) -> list[Entry]:
        """
        Remove several entries in one transaction.

        Ids no longer present are skipped, so the result lists only the
        entries this call actually removed.
        """
        ids = list(entry_ids)

        def _remove(ledger: Ledger) -> list[Entry]:
            removed = []
            for entry_id in ids:
                entry = ledger.remove(entry_id)
                if entry is not None:
                    removed.append(entry)
            return removed

        return self._run(_remove)

    def list(self) -> list[Entry]:
        """Return a snapshot of all entries in ledger order."""
        return self._run(lambda ledger: list(ledger.entries), write=False)

    def snapshot(self) -> Ledger:
        """Return a copy of the whole ledger document."""
        return self._run(lambda ledger: ledger.model_copy(deep=True), write=False)

    def get(self, entry_id: UUID) -> Optional[Entry]:
        return self._run(lambda ledger: ledger.get(entry_id), write=False)

    def find_by_branch(self, branch: str) -> Optional[Entry]:
        return self._run(lambda ledger: ledger.find_by_branch(branch), write=False)


class JsonStateStore(StateStore):
    """
    Ledger persisted as a JSON document in the state directory.

    The file is rewritten whole through an atomic replace, and every
    transaction holds an exclusive flock on a sidecar lock file, so other
    processes never observe a torn write.
    """

    STATE_FILENAME = "state.json"
    LOCK_FILENAME = "state.lock"

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)
        self.state_path = self.state_dir / self.STATE_FILENAME
        self.lock_path = self.state_dir / self.LOCK_FILENAME

    def is_initialized(self) -> bool:
        return self.state_dir.is_dir()

    def initialize(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _transaction(self, write: bool) -> Iterator[Ledger]:
        if not self.is_initialized():
            raise StateNotInitializedError(self.state_dir)

        with _PROCESS_LOCK, exclusive_file_lock(self.lock_path):
            ledger = self._load()
            yield ledger
            if write:
                self._save(ledger)

    def _load(self) -> Ledger:
        """Load the ledger. A missing or empty file is an empty ledger."""
        try:
            text = self.state_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Ledger()
        except OSError as e:
            raise LedgerError(f"Cannot read {self.state_path}: {e}") from e

        if not text.strip():
            return Ledger()

        try:
            return Ledger.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            raise LedgerError(f"Corrupt ledger {self.state_path}: {e}") from e

    def _save(self, ledger: Ledger) -> None:
        try:
            atomic_write_text(self.state_path, ledger.model_dump_json(indent=2))
        except OSError as e:
            raise LedgerError(f"Cannot write {self.state_path}: {e}") from e
        logger.debug(f"Persisted {len(ledger.entries)} entries to {self.state_path}")


class InMemoryStateStore(StateStore):
    """Ledger held in memory; transactions are serialized by a thread lock."""

    def __init__(self, entries: Optional[Iterable[Entry]] = None):
        self._ledger = Ledger(entries=list(entries or []))
        self._lock = threading.Lock()
        self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        self._initialized = True

    @contextmanager
    def _transaction(self, write: bool) -> Iterator[Ledger]:
        with self._lock:
            working = self._ledger.model_copy(deep=True)
            yield working
            if write:
                self._ledger = working
