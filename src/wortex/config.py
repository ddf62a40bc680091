"""
Configuration management for wortex.

Loads configuration from TOML files in the following priority:
1. Path specified via --config flag
2. .wortexrc in current directory
3. ~/.config/wortex/config.toml
4. config.toml inside the state directory

The WORTEX_HOME environment variable overrides the state directory.
"""

import logging
import os
import shlex
import sys
from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_STATE_HOME = "~/.wortex"
STATE_HOME_ENV = "WORTEX_HOME"


class StateConfig(BaseModel):
    """Where the ledger and its sidecar files live."""

    home: str = Field(
        default=DEFAULT_STATE_HOME,
        description="State directory holding the ledger, lock and tool log",
    )

    @property
    def directory(self) -> Path:
        override = os.environ.get(STATE_HOME_ENV)
        return Path(override or self.home).expanduser()


class GitConfig(BaseModel):
    """Defaults for worktree creation."""

    default_remote: str = Field(default="origin", description="Remote to fetch from")
    default_base: str = Field(default="main", description="Base branch on the remote")


class AgentConfig(BaseModel):
    """How agent invocations are launched."""

    binary: str = Field(default="claude", description="Agent executable")
    agent_flag: str = Field(
        default="--agent",
        description="Flag used to pass the agent identifier",
    )
    log_tools: bool = Field(
        default=True,
        description="Write tool-logging hooks into agent worktrees",
    )


class SupervisorConfig(BaseModel):
    """How the in-window supervisor runs commands."""

    shell: str = Field(default="sh", description="Shell used for raw commands")
    command: Optional[str] = Field(
        default=None,
        description="Command that re-invokes wortex inside a window (default: python -m wortex)",
    )

    def invocation(self) -> list[str]:
        if self.command:
            return shlex.split(self.command)
        return [sys.executable, "-m", "wortex"]


class TmuxConfig(BaseModel):
    """Configuration for tmux windows."""

    remain_on_exit: bool = Field(
        default=True,
        description="Keep windows open after the supervised command exits",
    )


class Config(BaseModel):
    """Main configuration model for wortex."""

    state: StateConfig = Field(default_factory=StateConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    tmux: TmuxConfig = Field(default_factory=TmuxConfig)


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from file or use defaults.

    Args:
        config_path: Optional explicit path to config file.

    Returns:
        Config instance with loaded or default values.
    """
    state_home = Path(os.environ.get(STATE_HOME_ENV) or DEFAULT_STATE_HOME).expanduser()
    search_paths = [
        Path(config_path) if config_path else None,
        Path.cwd() / ".wortexrc",
        Path.home() / ".config" / "wortex" / "config.toml",
        state_home / "config.toml",
    ]

    for path in search_paths:
        if path and path.exists():
            try:
                data = toml.load(path)
                return Config(**data)
            except (toml.TomlDecodeError, ValidationError, OSError) as e:
                logger.warning(f"Ignoring invalid config file {path}: {e}")
                continue

    return Config()


def save_config(config: Config, path: Path) -> None:
    """
    Save configuration to a TOML file.

    Args:
        config: Configuration to save.
        path: Path to save the config file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        toml.dump(config.model_dump(exclude_none=True), f)
