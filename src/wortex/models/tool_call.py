"""Pydantic model for agent tool calls captured by hooks."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    """One logged PreToolUse/PostToolUse hook invocation."""

    id: int = Field(..., description="Row id")
    session_id: UUID = Field(..., description="Id of the ledger entry the agent runs in")
    hook_type: str = Field(..., description="'pre' or 'post'")
    tool_name: str
    input: str = Field(..., description="JSON text of the tool input")
    timestamp: datetime
