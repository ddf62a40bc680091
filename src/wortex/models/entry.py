"""Pydantic models for ledger entries.

This module provides data models for:
- The command launched in a pairing (agent prompt or raw shell command)
- The exit policy deciding whether a finished pairing tears itself down
- The ledger entry and the ledger document persisted on disk
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from wortex.exceptions import ExitAlreadyRecordedError

LEDGER_VERSION = 1


class AgentInvocation(BaseModel):
    """Run the coding agent with a prompt."""

    type: Literal["claude"] = "claude"
    prompt: str = Field(..., description="Prompt passed to the agent")
    agent: str | None = Field(
        default=None,
        description="Agent identifier passed to the agent binary"
    )


class RawInvocation(BaseModel):
    """Run an arbitrary shell command line."""

    type: Literal["raw"] = "raw"
    cmd: str = Field(..., description="Command line run through the shell")


Command = Annotated[Union[AgentInvocation, RawInvocation], Field(discriminator="type")]


class ExitPolicyKind(str, Enum):
    """How an exit policy matches exit codes."""

    CODES = "codes"
    ANY = "any"


class ExitPolicy(BaseModel):
    """Rule deciding whether a child's exit code tears the pairing down."""

    kind: ExitPolicyKind = Field(default=ExitPolicyKind.CODES)
    codes: list[int] = Field(
        default_factory=lambda: [0],
        description="Exit codes that trigger teardown (ignored for 'any')"
    )

    @classmethod
    def any_code(cls) -> "ExitPolicy":
        return cls(kind=ExitPolicyKind.ANY, codes=[])

    @classmethod
    def for_codes(cls, codes: list[int]) -> "ExitPolicy":
        return cls(kind=ExitPolicyKind.CODES, codes=sorted(set(codes)))

    @classmethod
    def parse(cls, value: str | None) -> "ExitPolicy | None":
        """
        Parse the ``--exit-kill`` option value.

        ``None`` means the option was not given. An empty string (flag with
        no value) means exit code 0, ``any`` means every code, and a comma
        separated list means those codes. Unparseable items are skipped; if
        nothing parses the policy falls back to exit code 0.
        """
        if value is None:
            return None

        text = value.strip()
        if text.lower() == "any":
            return cls.any_code()

        codes = []
        for item in text.split(","):
            try:
                codes.append(int(item.strip()))
            except ValueError:
                continue

        return cls.for_codes(codes or [0])

    def matches(self, code: int) -> bool:
        if self.kind == ExitPolicyKind.ANY:
            return True
        return code in self.codes

    def describe(self) -> str:
        if self.kind == ExitPolicyKind.ANY:
            return "any"
        return ",".join(str(c) for c in self.codes)


class EntryState(str, Enum):
    """Lifecycle of a ledger entry, derived from facts at read time."""

    PENDING = "pending"
    RUNNING = "running"
    EXITED = "exited"


class Entry(BaseModel):
    """One tracked branch/worktree/window/command pairing."""

    id: UUID = Field(default_factory=uuid4, frozen=True)
    project: str = Field(..., description="Short project prefix")
    branch: str = Field(..., description="Git branch of the worktree")
    path: Path = Field(..., description="Absolute path to the worktree")
    tmux_session: str = Field(..., description="Hosting tmux session")
    tmux_window: str = Field(..., description="Hosting tmux window (the branch name)")
    command: Command
    exit_policy: ExitPolicy | None = Field(default=None)
    exit_code: int | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        frozen=True
    )

    @property
    def tmux_target(self) -> str:
        return f"{self.tmux_session}:{self.tmux_window}"

    def state(self, window_alive: bool) -> EntryState:
        """Compute the lifecycle state from the exit code and window presence."""
        if self.exit_code is not None:
            return EntryState.EXITED
        if window_alive:
            return EntryState.RUNNING
        return EntryState.PENDING

    def record_exit(self, code: int) -> None:
        """Record the child's exit code. Allowed once per entry."""
        if self.exit_code is not None:
            raise ExitAlreadyRecordedError(str(self.id), self.exit_code)
        self.exit_code = code


class Ledger(BaseModel):
    """The persisted ledger document."""

    version: int = Field(default=LEDGER_VERSION)
    entries: list[Entry] = Field(default_factory=list)

    def get(self, entry_id: UUID) -> Entry | None:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def find_by_branch(self, branch: str) -> Entry | None:
        for entry in self.entries:
            if entry.branch == branch:
                return entry
        return None

    def find_by_path(self, path: Path) -> Entry | None:
        for entry in self.entries:
            if entry.path == path:
                return entry
        return None

    def remove(self, entry_id: UUID) -> Entry | None:
        """Remove an entry by id. Returns the removed entry, if any."""
        for index, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return self.entries.pop(index)
        return None
