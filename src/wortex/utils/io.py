"""Small IO helpers for safe persistence.

Provides atomic_write_text() which writes to a temp file in the same
filesystem and atomically replaces the destination, then sets restrictive
permissions.

Also provides the exclusive advisory lock used to serialize ledger access
across processes via exclusive_file_lock().
"""
from __future__ import annotations

import fcntl
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from wortex.exceptions import LockError

logger = logging.getLogger(__name__)


@contextmanager
def exclusive_file_lock(lock_path: str | Path) -> Iterator[None]:
    """Exclusive (write) advisory lock on a sidecar file.

    Blocks until the lock is granted; there is no timeout. The lock is tied
    to the open file description, so a holder that dies releases it when the
    OS closes its descriptors.

    Usage:
        with exclusive_file_lock(state_dir / "state.lock"):
            ...load, mutate, persist...

    Raises:
        LockError: If the lock file cannot be opened or locked.
    """
    path = Path(lock_path)

    try:
        handle = open(path, "a")
    except OSError as e:
        raise LockError(f"Cannot open lock file {path}: {e}") from e

    try:
        try:
            fcntl.flock(handle, fcntl.LOCK_EX)
        except OSError as e:
            raise LockError(f"Cannot lock {path}: {e}") from e

        try:
            yield
        finally:
            try:
                fcntl.flock(handle, fcntl.LOCK_UN)
            except OSError:
                logger.warning(f"Could not unlock {path}; closing the handle releases it")
    finally:
        handle.close()


def atomic_write_text(path: str | Path, data: str, perms: int = 0o600) -> None:
    """Replace path with data in one step.

    The content goes to a synced temp file next to the destination which is
    then renamed over it, so readers see either the old or the new ledger.
    The temp file is removed if the rename fails.
    """
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)

    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            dir=str(dest.parent),
            prefix=f".{dest.name}.",
            delete=False,
            encoding="utf-8",
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())

        os.replace(tmp_name, dest)
        tmp_name = None

        try:
            os.chmod(dest, perms)
        except PermissionError:
            logger.warning(
                f"Could not set permissions {oct(perms)} on {dest}. "
                f"File was written but permissions may be insecure."
            )
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
