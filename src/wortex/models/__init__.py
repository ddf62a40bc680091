"""
Pydantic models for wortex.

This package contains data models for:
- Ledger entries and the ledger document
- Commands and exit policies of a pairing
- Reconciliation reports
- Logged agent tool calls
"""

from wortex.models.entry import (
    AgentInvocation,
    Command,
    Entry,
    EntryState,
    ExitPolicy,
    ExitPolicyKind,
    Ledger,
    RawInvocation,
)
from wortex.models.maintenance import ReconcileReport, StaleEntry
from wortex.models.tool_call import ToolCall

__all__ = [
    "AgentInvocation",
    "Command",
    "Entry",
    "EntryState",
    "ExitPolicy",
    "ExitPolicyKind",
    "Ledger",
    "RawInvocation",
    "ReconcileReport",
    "StaleEntry",
    "ToolCall",
]
