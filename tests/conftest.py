"""
Pytest configuration and shared fixtures for wortex tests.
"""

import os
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional
from unittest.mock import MagicMock, patch

import pytest

from wortex.core.store import InMemoryStateStore, JsonStateStore
from wortex.models.entry import Entry, ExitPolicy, RawInvocation


def _git(*args: str, cwd: Path) -> None:
    subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=True)


@pytest.fixture(autouse=True)
def isolated_state_home(monkeypatch, tmp_path: Path) -> Path:
    """Point WORTEX_HOME at a per-test directory that does not exist yet."""
    home = tmp_path / "wortex-home"
    monkeypatch.setenv("WORTEX_HOME", str(home))
    return home


@pytest.fixture
def temp_directory() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def temp_dir(temp_directory: Path) -> Path:
    """Alias for temp_directory."""
    return temp_directory


@pytest.fixture
def git_repo(temp_directory: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with one commit."""
    repo_path = temp_directory / "checkouts" / "my-project"
    repo_path.mkdir(parents=True)

    _git("init", cwd=repo_path)
    _git("config", "user.email", "test@example.com", cwd=repo_path)
    _git("config", "user.name", "Test User", cwd=repo_path)

    readme = repo_path / "README.md"
    readme.write_text("# Test Repository\n")

    _git("add", ".", cwd=repo_path)
    _git("commit", "-m", "Initial commit", cwd=repo_path)

    yield repo_path


@pytest.fixture
def git_repo_with_origin(git_repo: Path, temp_directory: Path) -> Path:
    """A git repository whose ``origin`` is a local bare repository with ``main``."""
    origin = temp_directory / "remotes" / "my-project.git"
    origin.mkdir(parents=True)
    _git("init", "--bare", cwd=origin)

    _git("remote", "add", "origin", str(origin), cwd=git_repo)
    _git("push", "origin", "HEAD:refs/heads/main", cwd=git_repo)
    _git("fetch", "origin", cwd=git_repo)
    return git_repo


@pytest.fixture
def git_worktree(git_repo: Path) -> Generator[Path, None, None]:
    """Create a linked git worktree for tests."""
    worktree_path = git_repo.parent / "my-project-linked"

    _git("worktree", "add", "-b", "linked-branch", str(worktree_path), cwd=git_repo)

    yield worktree_path

    subprocess.run(
        ["git", "worktree", "remove", "--force", str(worktree_path)],
        cwd=git_repo,
        capture_output=True
    )


# Ledger fixtures


@pytest.fixture
def state_dir(temp_directory: Path) -> Path:
    """An initialized state directory."""
    path = temp_directory / "state"
    path.mkdir()
    return path


@pytest.fixture
def json_store(state_dir: Path) -> JsonStateStore:
    return JsonStateStore(state_dir)


@pytest.fixture
def memory_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def make_entry(temp_directory: Path) -> Callable[..., Entry]:
    """Factory for ledger entries pointing under the temp directory."""

    def _make(
        branch: str = "feature-x",
        path: Optional[Path] = None,
        cmd: str = "make test",
        exit_policy: Optional[ExitPolicy] = None,
        session: str = "main",
    ) -> Entry:
        return Entry(
            project="mp",
            branch=branch,
            path=path or temp_directory / f"mp-{branch.replace('/', '-')}",
            tmux_session=session,
            tmux_window=branch,
            command=RawInvocation(cmd=cmd),
            exit_policy=exit_policy,
        )

    return _make


# Mock fixtures for tmux


@pytest.fixture
def mock_libtmux_window() -> MagicMock:
    """Create a mock libtmux window."""
    window = MagicMock()
    window.window_name = "feature-x"
    window.cmd.return_value = MagicMock(stderr=[])
    return window


@pytest.fixture
def mock_libtmux_session(mock_libtmux_window: MagicMock) -> MagicMock:
    """Create a mock libtmux session holding one window."""
    session = MagicMock()
    session.name = "main"
    session.id = "$1"

    windows = MagicMock()
    windows.filter.side_effect = lambda window_name: [
        w for w in [mock_libtmux_window] if w.window_name == window_name
    ]
    windows.__iter__.side_effect = lambda: iter([mock_libtmux_window])
    session.windows = windows
    session.new_window.return_value = mock_libtmux_window

    return session


@pytest.fixture
def mock_libtmux_server(mock_libtmux_session: MagicMock) -> MagicMock:
    """Create a mock libtmux server with a single session named 'main'."""
    server = MagicMock()
    server.sessions.filter.side_effect = lambda session_name: (
        [mock_libtmux_session] if session_name == "main" else []
    )
    return server


@pytest.fixture
def inside_tmux() -> Generator[None, None, None]:
    with patch.dict(os.environ, {"TMUX": "/tmp/tmux-1000/default,12345,0"}):
        yield


@pytest.fixture
def outside_tmux() -> Generator[None, None, None]:
    env_copy = os.environ.copy()
    env_copy.pop("TMUX", None)

    with patch.dict(os.environ, env_copy, clear=True):
        yield
