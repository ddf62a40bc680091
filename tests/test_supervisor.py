"""Tests for the in-window supervisor."""

from pathlib import Path
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from wortex.config import Config
from wortex.core.supervisor import RunSupervisor
from wortex.core.tmux_manager import TmuxError, TmuxManager
from wortex.exceptions import EntryNotFoundError, ExitAlreadyRecordedError
from wortex.models.entry import AgentInvocation, ExitPolicy


@pytest.fixture
def mock_tmux() -> MagicMock:
    return MagicMock(spec=TmuxManager)


@pytest.fixture
def supervisor(memory_store, mock_tmux) -> RunSupervisor:
    return RunSupervisor(memory_store, mock_tmux, Config())


@pytest.fixture
def add_entry(memory_store, make_entry, temp_dir: Path):
    """Append an entry running ``cmd`` in an existing worktree directory."""

    def _add(cmd: str, exit_policy=None):
        path = temp_dir / "mp-feature-x"
        path.mkdir(exist_ok=True)
        return memory_store.append(make_entry("feature-x", path=path, cmd=cmd, exit_policy=exit_policy))

    return _add


class TestBuildArgv:
    """Tests for argv construction."""

    def test_raw_command_runs_through_shell(self, supervisor, make_entry):
        entry = make_entry(cmd="make test && echo ok")

        assert supervisor.build_argv(entry) == ["sh", "-c", "make test && echo ok"]

    def test_agent_without_identifier(self, supervisor, make_entry):
        entry = make_entry().model_copy(update={"command": AgentInvocation(prompt="Fix it")})

        assert supervisor.build_argv(entry) == ["claude", "Fix it"]

    def test_agent_with_identifier(self, supervisor, make_entry):
        entry = make_entry().model_copy(
            update={"command": AgentInvocation(prompt="Fix it", agent="reviewer")}
        )

        assert supervisor.build_argv(entry) == ["claude", "--agent", "reviewer", "Fix it"]


class TestRun:
    """Tests for RunSupervisor.run."""

    def test_missing_entry(self, supervisor):
        with pytest.raises(EntryNotFoundError):
            supervisor.run(uuid4())

    def test_runs_in_worktree(self, supervisor, add_entry, memory_store):
        entry = add_entry("pwd > where.txt")

        assert supervisor.run(entry.id) == 0
        assert Path((entry.path / "where.txt").read_text().strip()).resolve() == entry.path.resolve()

    def test_no_policy_records_exit_code(self, supervisor, add_entry, memory_store, mock_tmux):
        entry = add_entry("exit 5")

        assert supervisor.run(entry.id) == 5

        assert memory_store.get(entry.id).exit_code == 5
        mock_tmux.kill_window.assert_not_called()

    def test_non_matching_code_is_recorded(self, supervisor, add_entry, memory_store, mock_tmux):
        entry = add_entry("exit 0", exit_policy=ExitPolicy.for_codes([1]))

        assert supervisor.run(entry.id) == 0

        assert memory_store.get(entry.id).exit_code == 0
        mock_tmux.kill_window.assert_not_called()

    def test_matching_code_removes_entry_and_window(
        self, supervisor, add_entry, memory_store, mock_tmux
    ):
        entry = add_entry("exit 1", exit_policy=ExitPolicy.for_codes([1]))

        assert supervisor.run(entry.id) == 1

        assert memory_store.get(entry.id) is None
        mock_tmux.kill_window.assert_called_once_with("main", "feature-x")

    def test_any_policy(self, supervisor, add_entry, memory_store, mock_tmux):
        entry = add_entry("exit 3", exit_policy=ExitPolicy.any_code())

        assert supervisor.run(entry.id) == 3
        assert memory_store.list() == []

    def test_signal_counts_as_one(self, supervisor, add_entry, memory_store):
        entry = add_entry("kill -TERM $$")

        assert supervisor.run(entry.id) == 1
        assert memory_store.get(entry.id).exit_code == 1

    def test_spawn_failure_counts_as_127(self, memory_store, mock_tmux, add_entry):
        config = Config()
        config.supervisor.shell = "/nonexistent/shell"
        entry = add_entry("true")

        code = RunSupervisor(memory_store, mock_tmux, config).run(entry.id)

        assert code == 127
        assert memory_store.get(entry.id).exit_code == 127

    def test_spawn_failure_matches_any_policy(self, memory_store, mock_tmux, add_entry):
        config = Config()
        config.supervisor.shell = "/nonexistent/shell"
        entry = add_entry("true", exit_policy=ExitPolicy.any_code())

        assert RunSupervisor(memory_store, mock_tmux, config).run(entry.id) == 127
        assert memory_store.list() == []

    def test_window_kill_failure_is_not_raised(self, supervisor, add_entry, memory_store, mock_tmux):
        mock_tmux.kill_window.side_effect = TmuxError("window gone")
        entry = add_entry("exit 0", exit_policy=ExitPolicy.for_codes([0]))

        assert supervisor.run(entry.id) == 0
        assert memory_store.list() == []

    def test_entry_removed_while_running(self, supervisor, add_entry, memory_store):
        entry = add_entry("true")

        def _spawn_and_vanish(e):
            memory_store.remove(e.id)
            return 4

        with patch.object(supervisor, "_spawn", side_effect=_spawn_and_vanish):
            assert supervisor.run(entry.id) == 4

        assert memory_store.list() == []

    def test_finished_entry_is_not_run_again(self, supervisor, add_entry, memory_store):
        entry = add_entry("echo ran >> runs.txt; exit 2")
        assert supervisor.run(entry.id) == 2

        with pytest.raises(ExitAlreadyRecordedError) as exc_info:
            supervisor.run(entry.id)

        assert exc_info.value.exit_code == 2
        assert (entry.path / "runs.txt").read_text().splitlines() == ["ran"]
        assert memory_store.get(entry.id).exit_code == 2

    def test_exit_recorded_by_concurrent_run(self, supervisor, add_entry, memory_store):
        entry = add_entry("true")

        def _spawn_and_settle_elsewhere(e):
            memory_store.mutate(e.id, lambda other: other.record_exit(0))
            return 6

        with patch.object(supervisor, "_spawn", side_effect=_spawn_and_settle_elsewhere):
            with pytest.raises(ExitAlreadyRecordedError):
                supervisor.run(entry.id)

        assert memory_store.get(entry.id).exit_code == 0
