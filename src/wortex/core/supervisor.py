"""
In-window supervisor.

Each tmux window created by the orchestrator runs ``wortex __run <id>``. The
supervisor launches the entry's command in the worktree, waits for it, and
then applies exactly one terminal mutation to the ledger: remove the entry
and close its own window when the exit policy matches, otherwise record the
exit code.
"""

import logging
import subprocess
from typing import Optional
from uuid import UUID

from wortex.config import Config
from wortex.core.store import StateStore
from wortex.core.tmux_manager import TmuxError, TmuxManager
from wortex.exceptions import EntryNotFoundError, ExitAlreadyRecordedError
from wortex.models.entry import AgentInvocation, Entry

logger = logging.getLogger(__name__)

SIGNALED_EXIT_CODE = 1
SPAWN_FAILED_EXIT_CODE = 127


class RunSupervisor:
    """Runs one entry's command and settles its ledger record."""

    def __init__(
        self,
        store: StateStore,
        tmux: TmuxManager,
        config: Optional[Config] = None,
    ):
        self.store = store
        self.tmux = tmux
        self.config = config or Config()

    def build_argv(self, entry: Entry) -> list[str]:
        command = entry.command
        if isinstance(command, AgentInvocation):
            argv = [self.config.agent.binary]
            if command.agent:
                argv += [self.config.agent.agent_flag, command.agent]
            argv.append(command.prompt)
            return argv
        return [self.config.supervisor.shell, "-c", command.cmd]

    def _spawn(self, entry: Entry) -> int:
        argv = self.build_argv(entry)
        logger.debug(f"Running {argv} in {entry.path}")
        try:
            result = subprocess.run(argv, cwd=entry.path)
        except OSError as e:
            logger.error(f"Failed to start {argv[0]}: {e}")
            return SPAWN_FAILED_EXIT_CODE

        if result.returncode < 0:
            logger.info(f"Command terminated by signal {-result.returncode}")
            return SIGNALED_EXIT_CODE
        return result.returncode

    def run(self, entry_id: UUID) -> int:
        """
        Run the command of ``entry_id`` to completion.

        Returns:
            The captured exit code of the child.

        Raises:
            EntryNotFoundError: If the entry is not in the ledger at start.
            ExitAlreadyRecordedError: If the entry already ran to completion.
        """
        entry = self.store.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        if entry.exit_code is not None:
            raise ExitAlreadyRecordedError(str(entry_id), entry.exit_code)

        code = self._spawn(entry)
        policy = entry.exit_policy

        if policy is not None and policy.matches(code):
            if self.store.remove(entry_id) is None:
                logger.info(f"Entry {entry_id} already removed")
            else:
                logger.info(f"Exit code {code} matches policy; closing {entry.tmux_target}")
            self._kill_own_window(entry)
            return code

        try:
            self.store.mutate(entry_id, lambda e: e.record_exit(code))
        except EntryNotFoundError:
            logger.info(f"Entry {entry_id} was removed while its command ran")
        return code

    def _kill_own_window(self, entry: Entry) -> None:
        try:
            self.tmux.kill_window(entry.tmux_session, entry.tmux_window)
        except TmuxError as e:
            logger.warning(f"Could not kill window {entry.tmux_target}: {e}")
