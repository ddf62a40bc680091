"""
tmux window management for wortex.

This module handles creating, selecting, inspecting and killing the tmux
windows that host supervised commands, one window per tracked worktree.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Optional

import libtmux

from wortex.exceptions import ExternalToolError

logger = logging.getLogger(__name__)


@dataclass
class TmuxWindowConfig:
    """Configuration for tmux window creation."""

    session_name: str
    window_name: str
    working_directory: str
    command: str
    remain_on_exit: bool = True


class TmuxError(ExternalToolError):
    """Base exception for tmux operations."""
    pass


class TmuxSessionNotFoundError(TmuxError):
    """Raised when a requested session doesn't exist."""
    pass


class TmuxManager:
    """
    Manages the tmux windows that host wortex pairings.

    Windows are addressed as ``session:window``; the window name is the
    branch of the pairing.
    """

    def __init__(self):
        """Initialize TmuxManager with a lazy libtmux server connection."""
        self._server: Optional[libtmux.Server] = None

    @property
    def server(self) -> libtmux.Server:
        """Get or create libtmux server instance."""
        if self._server is None:
            self._server = libtmux.Server()
        return self._server

    def _find_session(self, session_name: str) -> Optional[libtmux.Session]:
        try:
            sessions = self.server.sessions.filter(session_name=session_name)
        except libtmux.exc.LibTmuxException:
            return None
        return sessions[0] if sessions else None

    def _find_window(self, session_name: str, window_name: str) -> Optional[libtmux.Window]:
        session = self._find_session(session_name)
        if session is None:
            return None

        try:
            windows = session.windows.filter(window_name=window_name)
        except libtmux.exc.LibTmuxException:
            return None
        return windows[0] if windows else None

    def is_inside_tmux(self) -> bool:
        """Check if currently running inside a tmux session."""
        return "TMUX" in os.environ

    def get_current_session_name(self) -> Optional[str]:
        """Get the name of the current tmux session if inside tmux."""
        if not self.is_inside_tmux():
            return None

        try:
            result = subprocess.run(
                ["tmux", "display-message", "-p", "#S"],
                capture_output=True,
                text=True,
                check=True
            )
            return result.stdout.strip()
        except (subprocess.CalledProcessError, OSError):
            return None

    def create_window(self, config: TmuxWindowConfig) -> None:
        """
        Open a window running ``config.command`` in ``config.session_name``.

        Args:
            config: TmuxWindowConfig with window parameters

        Raises:
            TmuxSessionNotFoundError: If the session doesn't exist
            TmuxError: If the window cannot be created or configured
        """
        session = self._find_session(config.session_name)
        if session is None:
            raise TmuxSessionNotFoundError(
                f"Session '{config.session_name}' not found."
            )

        if not os.path.isdir(config.working_directory):
            raise TmuxError(
                f"Working directory does not exist: {config.working_directory}"
            )

        try:
            window = session.new_window(
                window_name=config.window_name,
                start_directory=config.working_directory,
                attach=False,
                window_shell=config.command,
            )
        except libtmux.exc.LibTmuxException as e:
            raise TmuxError(f"Failed to create window: {e}") from e

        if config.remain_on_exit:
            result = window.cmd("set-option", "-w", "remain-on-exit", "on")
            if result.stderr:
                self._discard_window(window, config)
                raise TmuxError(
                    f"Failed to set remain-on-exit: {' '.join(result.stderr)}"
                )

        logger.info(f"Opened tmux window {config.session_name}:{config.window_name}")

    def _discard_window(self, window: libtmux.Window, config: TmuxWindowConfig) -> None:
        try:
            window.kill()
        except libtmux.exc.LibTmuxException as e:
            logger.warning(
                f"Could not close half-configured window "
                f"{config.session_name}:{config.window_name}: {e}"
            )

    def window_exists(self, session_name: str, window_name: str) -> bool:
        """Check if a window exists. A missing session counts as a missing window."""
        return self._find_window(session_name, window_name) is not None

    def list_windows(self, session_name: str) -> list[str]:
        """Names of the windows in a session (empty if the session is gone)."""
        session = self._find_session(session_name)
        if session is None:
            return []

        try:
            return [w.window_name for w in session.windows]
        except libtmux.exc.LibTmuxException:
            return []

    def select_window(self, session_name: str, window_name: str) -> None:
        """
        Focus a window.

        Raises:
            TmuxError: If the window doesn't exist or cannot be selected
        """
        window = self._find_window(session_name, window_name)
        if window is None:
            raise TmuxError(f"Window '{session_name}:{window_name}' not found.")

        try:
            window.select()
        except libtmux.exc.LibTmuxException as e:
            raise TmuxError(f"Failed to select window: {e}") from e

    def kill_window(self, session_name: str, window_name: str) -> None:
        """
        Kill a window and every process running in it.

        Raises:
            TmuxError: If the window doesn't exist or cannot be killed
        """
        window = self._find_window(session_name, window_name)
        if window is None:
            raise TmuxError(f"Window '{session_name}:{window_name}' not found.")

        try:
            window.kill()
        except libtmux.exc.LibTmuxException as e:
            raise TmuxError(f"Failed to kill window: {e}") from e

        logger.info(f"Killed tmux window {session_name}:{window_name}")
