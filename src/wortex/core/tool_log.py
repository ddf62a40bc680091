"""
Tool-call log for agent pairings.

Agent worktrees get Claude hook settings that pipe every PreToolUse and
PostToolUse event into ``wortex __log-tool``; the calls are stored in a
SQLite database in the state directory and queried by ``wortex tools``.
"""

import json
import logging
import shlex
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

from wortex.exceptions import ToolLogError
from wortex.models.tool_call import ToolCall

logger = logging.getLogger(__name__)

HOOK_TYPES = ("pre", "post")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS tool_calls (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        hook_type TEXT NOT NULL,
        tool_name TEXT NOT NULL,
        input TEXT NOT NULL,
        timestamp TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tool_calls_session_id ON tool_calls(session_id)",
)

_SELECT = "SELECT id, session_id, hook_type, tool_name, input, timestamp FROM tool_calls"


class ToolCallLog:
    """SQLite-backed store of agent tool calls."""

    DB_FILENAME = "tools.db"

    def __init__(self, state_dir: Path):
        self.db_path = Path(state_dir) / self.DB_FILENAME

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        for statement in _SCHEMA:
            conn.execute(statement)
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            with closing(self._connect()) as conn:
                yield conn
        except sqlite3.Error as e:
            raise ToolLogError(f"Tool log {self.db_path} is unusable: {e}") from e

    def record(
        self,
        session_id: UUID,
        hook_type: str,
        tool_name: str,
        tool_input: Any,
    ) -> None:
        """
        Append one tool call.

        Raises:
            ValueError: If hook_type is not 'pre' or 'post'.
            ToolLogError: If the database cannot be written.
        """
        if hook_type not in HOOK_TYPES:
            raise ValueError(f"Invalid hook type: {hook_type}")

        timestamp = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn, conn:
            conn.execute(
                "INSERT INTO tool_calls (session_id, hook_type, tool_name, input, timestamp) "
                "VALUES (?, ?, ?, ?, ?)",
                (str(session_id), hook_type, tool_name, json.dumps(tool_input), timestamp),
            )

    def record_hook_payload(self, session_id: UUID, hook_type: str, payload: str) -> None:
        """Record a raw hook payload as delivered on the hook's stdin."""
        data = json.loads(payload)
        self.record(session_id, hook_type, data["tool_name"], data.get("tool_input"))

    def for_session(self, session_id: UUID) -> list[ToolCall]:
        """Calls of one session, oldest first."""
        with self._connection() as conn:
            rows = conn.execute(
                f"{_SELECT} WHERE session_id = ? ORDER BY timestamp ASC, id ASC",
                (str(session_id),),
            ).fetchall()
        return [self._to_call(row) for row in rows]

    def all(self) -> list[ToolCall]:
        """Every logged call, newest first."""
        with self._connection() as conn:
            rows = conn.execute(f"{_SELECT} ORDER BY timestamp DESC, id DESC").fetchall()
        return [self._to_call(row) for row in rows]

    def query(
        self,
        session_id: Optional[UUID] = None,
        hook_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ToolCall]:
        calls = self.for_session(session_id) if session_id else self.all()

        if hook_type:
            calls = [c for c in calls if c.hook_type == hook_type]
        if limit is not None:
            calls = calls[:limit]

        return calls

    @staticmethod
    def _to_call(row: tuple) -> ToolCall:
        return ToolCall(
            id=row[0],
            session_id=UUID(row[1]),
            hook_type=row[2],
            tool_name=row[3],
            input=row[4],
            timestamp=datetime.fromisoformat(row[5]),
        )


def hooks_settings(log_command: list[str], session_id: UUID) -> dict:
    """Claude settings that route tool hooks into ``wortex __log-tool``."""
    base = shlex.join(log_command)

    def _hook(hook_type: str) -> list[dict]:
        return [
            {
                "matcher": ".*",
                "hooks": [
                    {
                        "type": "command",
                        "command": f"{base} __log-tool {session_id} {hook_type}",
                    }
                ],
            }
        ]

    return {"hooks": {"PreToolUse": _hook("pre"), "PostToolUse": _hook("post")}}


def write_hooks_config(worktree_path: Path, log_command: list[str], session_id: UUID) -> Path:
    """Write .claude/settings.local.json into the worktree and return its path."""
    claude_dir = worktree_path / ".claude"
    claude_dir.mkdir(parents=True, exist_ok=True)

    settings_path = claude_dir / "settings.local.json"
    settings_path.write_text(json.dumps(hooks_settings(log_command, session_id), indent=2))
    logger.debug(f"Wrote tool hooks to {settings_path}")
    return settings_path
