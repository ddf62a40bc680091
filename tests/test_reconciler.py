"""Tests for ledger reconciliation."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from wortex.core.reconciler import Reconciler, find_stale_entries
from wortex.core.tmux_manager import TmuxManager
from wortex.models.maintenance import (
    REASON_DUPLICATE_BRANCH,
    REASON_WINDOW_MISSING,
    REASON_WORKTREE_MISSING,
)


@pytest.fixture
def mock_tmux() -> MagicMock:
    """tmux with a single session 'main' holding windows 'a' and 'b'."""
    tmux = MagicMock(spec=TmuxManager)
    tmux.list_windows.side_effect = lambda session: ["a", "b"] if session == "main" else []
    return tmux


@pytest.fixture
def existing_dir(temp_dir: Path):
    def _make(name: str) -> Path:
        path = temp_dir / name
        path.mkdir()
        return path

    return _make


class TestFindStaleEntries:
    """Tests for the pure classification step."""

    def test_reasons(self, make_entry):
        healthy = make_entry("a")
        no_path = make_entry("b")
        no_window = make_entry("c")
        both = make_entry("d")

        stale = find_stale_entries(
            [healthy, no_path, no_window, both],
            path_exists=lambda p: p in (healthy.path, no_window.path),
            window_exists=lambda s, w: w in ("a", "b"),
        )

        assert [(s.branch, s.reasons) for s in stale] == [
            ("b", [REASON_WORKTREE_MISSING]),
            ("c", [REASON_WINDOW_MISSING]),
            ("d", [REASON_WORKTREE_MISSING, REASON_WINDOW_MISSING]),
        ]

    def test_duplicate_branch(self, make_entry, temp_dir):
        first = make_entry("a")
        second = make_entry("a", path=temp_dir / "copy")

        stale = find_stale_entries(
            [first, second],
            path_exists=lambda p: True,
            window_exists=lambda s, w: True,
        )

        assert [s.id for s in stale] == [second.id]
        assert stale[0].reasons == [REASON_DUPLICATE_BRANCH]


class TestReconciler:
    """Tests for Reconciler.scan."""

    def test_valid_entry_is_kept(self, memory_store, mock_tmux, make_entry, existing_dir):
        entry = memory_store.append(make_entry("a", path=existing_dir("mp-a")))

        report = Reconciler(memory_store, mock_tmux).scan()

        assert report.entries_scanned == 1
        assert report.stale == []
        assert memory_store.list() == [entry]

    def test_deleted_worktree_is_pruned(self, memory_store, mock_tmux, make_entry, existing_dir):
        keep = memory_store.append(make_entry("a", path=existing_dir("mp-a")))
        gone = memory_store.append(make_entry("b", path=existing_dir("mp-b")))
        gone.path.rmdir()

        report = Reconciler(memory_store, mock_tmux).scan()

        assert report.removed_ids == [gone.id]
        assert report.stale[0].reasons == [REASON_WORKTREE_MISSING]
        assert memory_store.list() == [keep]

    def test_missing_window_is_pruned(self, memory_store, mock_tmux, make_entry, existing_dir):
        lost = memory_store.append(make_entry("c", path=existing_dir("mp-c")))

        report = Reconciler(memory_store, mock_tmux).scan()

        assert report.removed_ids == [lost.id]
        assert memory_store.list() == []

    def test_missing_session_is_pruned(self, memory_store, mock_tmux, make_entry, existing_dir):
        memory_store.append(make_entry("a", path=existing_dir("mp-a"), session="other"))

        report = Reconciler(memory_store, mock_tmux).scan()

        assert report.stale[0].reasons == [REASON_WINDOW_MISSING]
        assert memory_store.list() == []

    def test_dry_run_does_not_mutate(self, memory_store, mock_tmux, make_entry):
        stale = memory_store.append(make_entry("a"))

        report = Reconciler(memory_store, mock_tmux).scan(dry_run=True)

        assert report.dry_run is True
        assert report.stale_ids == [stale.id]
        assert report.removed_ids == []
        assert memory_store.list() == [stale]

    def test_second_run_removes_nothing(self, memory_store, mock_tmux, make_entry, existing_dir):
        memory_store.append(make_entry("a", path=existing_dir("mp-a")))
        memory_store.append(make_entry("b"))
        reconciler = Reconciler(memory_store, mock_tmux)

        first = reconciler.scan()
        second = reconciler.scan()

        assert len(first.removed_ids) == 1
        assert second.stale == []
        assert second.removed_ids == []

    def test_sessions_listed_once_per_scan(self, memory_store, mock_tmux, make_entry, existing_dir):
        memory_store.append(make_entry("a", path=existing_dir("mp-a")))
        memory_store.append(make_entry("b", path=existing_dir("mp-b")))

        Reconciler(memory_store, mock_tmux).scan()

        mock_tmux.list_windows.assert_called_once_with("main")

    def test_entry_removed_concurrently_is_not_reported_removed(
        self, memory_store, mock_tmux, make_entry
    ):
        entry = memory_store.append(make_entry("a"))
        reconciler = Reconciler(memory_store, mock_tmux)

        def _list_and_vanish(session):
            memory_store.remove(entry.id)
            return []

        mock_tmux.list_windows.side_effect = _list_and_vanish

        report = reconciler.scan()

        assert report.stale_ids == [entry.id]
        assert report.removed_ids == []
