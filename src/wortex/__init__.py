"""
wortex - git worktree + tmux window orchestration.

Pairs isolated git worktrees with tmux windows, runs a supervised command
or agent in each pairing, and tracks every pairing in a shared ledger.
"""

__version__ = "0.3.0"

from wortex.config import Config, load_config

__all__ = [
    "__version__",
    "Config",
    "load_config",
]
