"""
Core modules for wortex.

This package contains the core business logic for:
- Ledger storage
- Worktree management
- tmux window management
- Creating and tearing down pairings
- Supervising commands inside windows
- Reconciliation
- Tool-call logging
"""

from wortex.core.orchestrator import CreateRequest, Orchestrator, WorkingCopyStatus
from wortex.core.reconciler import Reconciler, find_stale_entries
from wortex.core.store import InMemoryStateStore, JsonStateStore, StateStore
from wortex.core.supervisor import RunSupervisor
from wortex.core.tool_log import ToolCallLog

__all__ = [
    "CreateRequest",
    "Orchestrator",
    "WorkingCopyStatus",
    "Reconciler",
    "find_stale_entries",
    "InMemoryStateStore",
    "JsonStateStore",
    "StateStore",
    "RunSupervisor",
    "ToolCallLog",
]
