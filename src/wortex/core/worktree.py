"""Git worktree operations used by the orchestrator."""

import logging
import re
from pathlib import Path
from typing import Optional

from git import Git, Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from wortex.exceptions import (
    ExternalToolError,
    NotAGitRepositoryError,
    RemoteNotFoundError,
)

logger = logging.getLogger(__name__)


class WorktreeError(ExternalToolError):
    """Raised when a git operation fails."""


def _stderr(error: GitCommandError) -> str:
    return (error.stderr or str(error)).strip()


class WorktreeManager:
    """Manages git worktree operations for a repository."""

    def __init__(self, repo_path: Optional[Path] = None):
        """
        Initialize the WorktreeManager.

        The repository is opened lazily so callers can check
        is_git_repo() before anything raises.

        Args:
            repo_path: Path inside the git repository. Defaults to current directory.
        """
        self.repo_path = repo_path or Path.cwd()
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        """
        Get the repository, opening it on first use.

        Raises:
            NotAGitRepositoryError: If the path is not a git repository.
        """
        if self._repo is None:
            try:
                self._repo = Repo(self.repo_path, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError) as e:
                raise NotAGitRepositoryError(
                    f"Not a git repository: {self.repo_path}"
                ) from e
        return self._repo

    @property
    def git_root(self) -> Path:
        return Path(self.repo.working_dir)

    def is_git_repo(self) -> bool:
        try:
            self.repo
        except NotAGitRepositoryError:
            return False
        return True

    def is_linked_worktree(self) -> bool:
        """Whether the repository is a linked worktree rather than the main checkout."""
        git_dir = Path(self.repo.git_dir).resolve()
        common_dir = Path(self.repo.common_dir).resolve()
        return git_dir != common_dir

    def _sanitize_branch_name(self, branch: str) -> str:
        """
        Sanitize branch name for use in directory names.

        Args:
            branch: The branch name to sanitize.

        Returns:
            Sanitized string safe for directory names.
        """
        sanitized = branch.replace("/", "-")
        sanitized = re.sub(r"[^\w\-.]", "", sanitized)
        return sanitized

    def worktree_path_for(self, prefix: str, branch: str) -> Path:
        """
        Generate the path for a new worktree.

        Pattern: {prefix}-{branch-name} next to the repository root.

        Args:
            prefix: Short project prefix.
            branch: The branch name for the worktree.

        Returns:
            Absolute path where the worktree should be created.
        """
        worktree_name = f"{prefix}-{self._sanitize_branch_name(branch)}"
        return (self.git_root.parent / worktree_name).resolve()

    def remote_exists(self, remote: str) -> bool:
        return any(r.name == remote for r in self.repo.remotes)

    def get_remote_url(self, remote: str) -> str:
        """
        Get the URL configured for a remote.

        Raises:
            RemoteNotFoundError: If the remote is not configured.
        """
        try:
            return self.repo.git.remote("get-url", remote).strip()
        except GitCommandError as e:
            raise RemoteNotFoundError(remote) from e

    def branch_exists(self, branch: str) -> bool:
        """
        Check if a local branch exists in the repository.

        Args:
            branch: Name of the branch to check.

        Returns:
            True if branch exists, False otherwise.
        """
        try:
            self.repo.git.rev_parse("--verify", "--quiet", f"refs/heads/{branch}")
            return True
        except GitCommandError:
            return False

    def fetch(self, remote: str) -> None:
        try:
            self.repo.git.fetch(remote)
        except GitCommandError as e:
            raise WorktreeError(f"fetch failed: {_stderr(e)}") from e

    def add_worktree(self, path: Path, branch: str, start_point: str) -> None:
        """
        Create a worktree at ``path`` on a new branch started from ``start_point``.

        Raises:
            WorktreeError: If git refuses to create the worktree.
        """
        try:
            self.repo.git.worktree("add", str(path), "-b", branch, start_point)
        except GitCommandError as e:
            raise WorktreeError(f"worktree add failed: {_stderr(e)}") from e

        logger.info(f"Created worktree {path} on branch {branch} from {start_point}")

    def remove_worktree(self, path: Path) -> None:
        """Force-remove a worktree, discarding uncommitted changes."""
        try:
            self.repo.git.worktree("remove", "--force", str(path))
        except GitCommandError as e:
            raise WorktreeError(f"worktree remove failed: {_stderr(e)}") from e

        logger.info(f"Removed worktree {path}")

    def delete_branch(self, branch: str) -> None:
        try:
            self.repo.git.branch("-D", branch)
        except GitCommandError as e:
            raise WorktreeError(f"branch delete failed: {_stderr(e)}") from e

        logger.info(f"Deleted branch {branch}")


def status_short(path: Path) -> str:
    """
    Short working-copy status (``git status -s``) of a worktree.

    Raises:
        WorktreeError: If git cannot report the status.
    """
    try:
        return Git(str(path)).status("-s")
    except GitCommandError as e:
        raise WorktreeError(f"status failed for {path}: {_stderr(e)}") from e
