"""Exception hierarchy shared by every wortex component."""

from pathlib import Path


class WortexError(Exception):
    """Base exception for wortex operations."""


class PreconditionError(WortexError):
    """Raised when the invoking environment is not fit for the operation."""


class StateNotInitializedError(PreconditionError):
    """Raised when the state directory has not been created yet."""

    def __init__(self, state_dir: Path):
        self.state_dir = state_dir
        super().__init__(f"State directory {state_dir} not found. Run `wortex init` first.")


class NotInTmuxError(PreconditionError):
    """Raised when a command needs a tmux session and there is none."""

    def __init__(self) -> None:
        super().__init__("Must run inside a tmux session")


class NotAGitRepositoryError(PreconditionError):
    """Raised when the path is not a git repository."""


class InsideWorktreeError(PreconditionError):
    """Raised when invoked from a linked worktree instead of the main checkout."""

    def __init__(self) -> None:
        super().__init__("Must run from the main repository, not a worktree")


class ConflictError(WortexError):
    """Raised when a branch or path is already taken."""

    def __init__(self, message: str, resource: str):
        self.resource = resource
        super().__init__(message)


class ExitAlreadyRecordedError(ConflictError):
    """Raised when an entry already carries an exit code."""

    def __init__(self, entry_id: str, exit_code: int):
        self.exit_code = exit_code
        super().__init__(
            f"Entry {entry_id} already exited with code {exit_code}", resource=entry_id
        )


class NotFoundError(WortexError):
    """Raised when a referenced entry, remote or window does not exist."""


class EntryNotFoundError(NotFoundError):
    """Raised when no ledger entry matches a branch or id."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Entry not found: {identifier}")


class RemoteNotFoundError(NotFoundError):
    """Raised when the named git remote is not configured."""

    def __init__(self, remote: str):
        self.remote = remote
        super().__init__(f"Remote '{remote}' not found")


class WindowNotFoundError(NotFoundError):
    """Raised when the tmux window of an entry is gone."""

    def __init__(self, window: str):
        self.window = window
        super().__init__(f"Tmux window '{window}' not found")


class ExternalToolError(WortexError):
    """Raised when git or tmux reports a failure."""


class LockError(WortexError):
    """Raised when the ledger lock file cannot be opened or locked."""


class LedgerError(WortexError):
    """Raised when the ledger file exists but cannot be parsed."""


class ToolLogError(WortexError):
    """Raised when the tool-call database cannot be opened or queried."""
