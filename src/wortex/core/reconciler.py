"""
Reconciliation of the ledger against git and tmux.

This module provides functionality to:
- Detect entries whose worktree directory or tmux window is gone
- Detect entries that repeat a branch already tracked earlier in the ledger
- Remove stale entries in a single locked pass, with dry-run support
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from wortex.core.store import StateStore
from wortex.core.tmux_manager import TmuxManager
from wortex.models.entry import Entry
from wortex.models.maintenance import (
    REASON_DUPLICATE_BRANCH,
    REASON_WINDOW_MISSING,
    REASON_WORKTREE_MISSING,
    ReconcileReport,
    StaleEntry,
)

logger = logging.getLogger(__name__)


def find_stale_entries(
    entries: Iterable[Entry],
    path_exists: Callable[[Path], bool],
    window_exists: Callable[[str, str], bool],
) -> list[StaleEntry]:
    """
    Classify entries without touching the ledger.

    Args:
        entries: Entries in ledger order
        path_exists: Check for the worktree directory
        window_exists: Check for ``(session, window)``

    Returns:
        One StaleEntry per stale entry, in ledger order
    """
    stale = []
    seen_branches = set()

    for entry in entries:
        reasons = []
        if not path_exists(entry.path):
            reasons.append(REASON_WORKTREE_MISSING)
        if not window_exists(entry.tmux_session, entry.tmux_window):
            reasons.append(REASON_WINDOW_MISSING)
        if entry.branch in seen_branches:
            reasons.append(REASON_DUPLICATE_BRANCH)
        seen_branches.add(entry.branch)

        if reasons:
            stale.append(StaleEntry(id=entry.id, branch=entry.branch, reasons=reasons))

    return stale


class Reconciler:
    """Prunes ledger entries whose external resources no longer exist."""

    def __init__(self, store: StateStore, tmux: TmuxManager):
        self.store = store
        self.tmux = tmux

    def _window_lookup(self) -> Callable[[str, str], bool]:
        """Window lookup that lists each session's windows once per scan."""
        cache: dict[str, set[str]] = {}

        def _exists(session: str, window: str) -> bool:
            if session not in cache:
                cache[session] = set(self.tmux.list_windows(session))
            return window in cache[session]

        return _exists

    def scan(self, dry_run: bool = False) -> ReconcileReport:
        """
        Find stale entries and, unless ``dry_run``, remove them.

        The existence checks run outside the ledger lock; removal is one
        transaction that skips entries already gone.
        """
        entries = self.store.list()
        stale = find_stale_entries(entries, Path.exists, self._window_lookup())

        report = ReconcileReport(
            timestamp=datetime.now(),
            dry_run=dry_run,
            entries_scanned=len(entries),
            stale=stale,
        )

        for item in stale:
            logger.info(f"Stale entry {item.id} ({item.branch}): {', '.join(item.reasons)}")

        if dry_run or not stale:
            return report

        removed = self.store.remove_many(report.stale_ids)
        report.removed_ids = [e.id for e in removed]
        return report
