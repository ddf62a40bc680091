"""
Creation and teardown of worktree/window pairings.

The orchestrator validates the invoking environment, then drives git, the
ledger and tmux in a fixed order. Creation is all-or-nothing: when a step
fails after the worktree exists, everything done so far is rolled back
before the error is surfaced.
"""

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from wortex.config import Config
from wortex.core.prefix import to_prefix
from wortex.core.store import StateStore
from wortex.core.tmux_manager import TmuxError, TmuxManager, TmuxWindowConfig
from wortex.core.tool_log import write_hooks_config
from wortex.core.worktree import WorktreeManager, status_short
from wortex.exceptions import (
    ConflictError,
    EntryNotFoundError,
    ExternalToolError,
    InsideWorktreeError,
    NotAGitRepositoryError,
    NotInTmuxError,
    RemoteNotFoundError,
    StateNotInitializedError,
    WindowNotFoundError,
    WortexError,
)
from wortex.models.entry import AgentInvocation, Entry, ExitPolicy, RawInvocation

logger = logging.getLogger(__name__)


@dataclass
class CreateRequest:
    """Parameters of a new pairing."""

    branch: str
    command: Union[AgentInvocation, RawInvocation]
    exit_policy: Optional[ExitPolicy] = None
    remote: Optional[str] = None
    base: Optional[str] = None


@dataclass
class WorkingCopyStatus:
    """Short git status of one tracked worktree."""

    entry: Entry
    status: Optional[str]

    @property
    def missing(self) -> bool:
        return self.status is None

    @property
    def clean(self) -> bool:
        return self.status is not None and not self.status.strip()


class Orchestrator:
    """
    Drives the lifecycle of pairings from the invoking process.

    All collaborators are injected: the ledger store, the git adapter and
    the tmux adapter.
    """

    def __init__(
        self,
        store: StateStore,
        git: WorktreeManager,
        tmux: TmuxManager,
        config: Optional[Config] = None,
    ):
        self.store = store
        self.git = git
        self.tmux = tmux
        self.config = config or Config()

    def _check_preconditions(self, remote: str) -> None:
        """
        Validate the environment in a fixed order, failing on the first problem.

        Raises:
            StateNotInitializedError: If the state directory is missing.
            NotInTmuxError: If not running inside tmux.
            NotAGitRepositoryError: If not inside a git repository.
            InsideWorktreeError: If running from a linked worktree.
            RemoteNotFoundError: If the remote is not configured.
        """
        if not self.store.is_initialized():
            raise StateNotInitializedError(self.config.state.directory)

        if not self.tmux.is_inside_tmux():
            raise NotInTmuxError()

        if not self.git.is_git_repo():
            raise NotAGitRepositoryError(f"Not a git repository: {self.git.repo_path}")

        if self.git.is_linked_worktree():
            raise InsideWorktreeError()

        if not self.git.remote_exists(remote):
            raise RemoteNotFoundError(remote)

    def _check_conflicts(self, branch: str, path: Path) -> None:
        if self.git.branch_exists(branch):
            raise ConflictError(f"Branch '{branch}' already exists", resource=branch)

        if self.store.find_by_branch(branch):
            raise ConflictError(
                f"Entry for branch '{branch}' already exists in state "
                f"(run `wortex cleanup` to remove stale entries)",
                resource=branch,
            )

        if path.exists():
            raise ConflictError(f"Directory '{path}' already exists", resource=str(path))

    def supervisor_command(self, entry: Entry) -> str:
        """Shell command that runs the supervisor for ``entry`` inside its window."""
        return shlex.join(self.config.supervisor.invocation() + ["__run", str(entry.id)])

    def create(self, request: CreateRequest) -> Entry:
        """
        Create a worktree, a pending ledger entry and a window running the supervisor.

        Args:
            request: CreateRequest describing the pairing.

        Returns:
            The new Entry.

        Raises:
            PreconditionError: If the environment is not fit (see _check_preconditions).
            RemoteNotFoundError: If the remote is not configured.
            ConflictError: If the branch or target directory is taken.
            ExternalToolError: If git or tmux fails; earlier steps are rolled back.
        """
        remote = request.remote or self.config.git.default_remote
        base = request.base or self.config.git.default_base
        branch = request.branch

        self._check_preconditions(remote)

        try:
            prefix = to_prefix(self.git.get_remote_url(remote))
        except ValueError as e:
            raise ExternalToolError(str(e)) from e

        path = self.git.worktree_path_for(prefix, branch)
        self._check_conflicts(branch, path)

        session = self.tmux.get_current_session_name()
        if not session:
            raise TmuxError("Failed to get current session")

        logger.info(f"Fetching from {remote}")
        self.git.fetch(remote)

        self.git.add_worktree(path, branch, f"{remote}/{base}")

        entry = Entry(
            project=prefix,
            branch=branch,
            path=path,
            tmux_session=session,
            tmux_window=branch,
            command=request.command,
            exit_policy=request.exit_policy,
        )

        try:
            self.store.append(entry)
        except WortexError:
            self._rollback_worktree(path, branch)
            raise

        try:
            if isinstance(entry.command, AgentInvocation) and self.config.agent.log_tools:
                write_hooks_config(path, self.config.supervisor.invocation(), entry.id)

            self.tmux.create_window(
                TmuxWindowConfig(
                    session_name=session,
                    window_name=entry.tmux_window,
                    working_directory=str(path),
                    command=self.supervisor_command(entry),
                    remain_on_exit=self.config.tmux.remain_on_exit,
                )
            )
        except (WortexError, OSError):
            try:
                self.store.remove(entry.id)
            except WortexError as e:
                logger.error(f"Rollback could not remove entry {entry.id} from the ledger: {e}")
            self._rollback_worktree(path, branch)
            raise

        logger.info(f"Created pairing {entry.id} for branch {branch} at {path}")
        return entry

    def _rollback_worktree(self, path: Path, branch: str) -> None:
        logger.warning(f"Rolling back worktree {path} and branch {branch}")
        try:
            self.git.remove_worktree(path)
        except ExternalToolError as e:
            logger.error(f"Rollback could not remove worktree {path}: {e}")
        try:
            self.git.delete_branch(branch)
        except ExternalToolError as e:
            logger.error(f"Rollback could not delete branch {branch}: {e}")

    def _require_entry(self, branch: str) -> Entry:
        entry = self.store.find_by_branch(branch)
        if entry is None:
            raise EntryNotFoundError(branch)
        return entry

    def terminate(self, branch: str, keep_worktree: bool = False) -> Entry:
        """
        Tear a pairing down: window, worktree (unless kept), local branch, entry.

        Raises:
            EntryNotFoundError: If no entry tracks ``branch``.
            ExternalToolError: If git or tmux fails; the entry is kept then.
        """
        entry = self._require_entry(branch)

        if self.tmux.window_exists(entry.tmux_session, entry.tmux_window):
            logger.info(f"Killing tmux window '{entry.tmux_target}'")
            self.tmux.kill_window(entry.tmux_session, entry.tmux_window)

        if not keep_worktree and entry.path.exists():
            logger.info(f"Removing worktree at {entry.path}")
            self.git.remove_worktree(entry.path)

        if self.git.branch_exists(entry.branch):
            logger.info(f"Deleting local branch '{entry.branch}'")
            self.git.delete_branch(entry.branch)

        self.store.remove(entry.id)
        return entry

    def switch(self, branch: str) -> Entry:
        """
        Focus the window of a pairing.

        Raises:
            NotInTmuxError: If not running inside tmux.
            EntryNotFoundError: If no entry tracks ``branch``.
            WindowNotFoundError: If the window is gone.
        """
        if not self.tmux.is_inside_tmux():
            raise NotInTmuxError()

        entry = self._require_entry(branch)

        if not self.tmux.window_exists(entry.tmux_session, entry.tmux_window):
            raise WindowNotFoundError(branch)

        self.tmux.select_window(entry.tmux_session, entry.tmux_window)
        return entry

    def working_copy_status(self) -> list[WorkingCopyStatus]:
        """Short git status of every tracked worktree (None where the path is gone)."""
        results = []
        for entry in self.store.list():
            if not entry.path.exists():
                results.append(WorkingCopyStatus(entry=entry, status=None))
                continue
            results.append(WorkingCopyStatus(entry=entry, status=status_short(entry.path)))
        return results
