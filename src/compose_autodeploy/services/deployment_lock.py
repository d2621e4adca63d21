"""
PID lock file preventing overlapping deployment runs.

Scheduled runs fire every few minutes while an image rebuild can take much
longer, so a run that finds a live lock holder skips instead of racing it on
the marker and the working tree.
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class DeploymentLock:
    """Exclusive lock backed by a file holding the owner's PID."""

    def __init__(self, lock_file: Path):
        self.lock_file = lock_file
        self.lock_acquired = False

    def acquire(self) -> bool:
        """
        Try to take the lock without blocking.

        A lock file whose PID no longer exists is stale and gets replaced.

        Returns:
            True if the lock is now held by this process, False otherwise
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)

        if self.lock_file.exists():
            holder = self.get_holder_pid()
            if holder is not None and _process_alive(holder):
                logger.info(f"Deployment lock held by PID {holder}")
                return False
            logger.info("Removing stale deployment lock")
            self._remove_lock_file()

        try:
            fd = os.open(str(self.lock_file), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            # Another run created it between our check and open
            return False

        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))

        self.lock_acquired = True
        return True

    def release(self) -> None:
        """Release the lock if this instance holds it."""
        if not self.lock_acquired:
            return
        self._remove_lock_file()
        self.lock_acquired = False

    def get_holder_pid(self) -> Optional[int]:
        try:
            return int(self.lock_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def _remove_lock_file(self) -> None:
        try:
            self.lock_file.unlink()
        except FileNotFoundError:
            pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


def _process_alive(pid: int) -> bool:
    try:
        # Signal 0 only checks that the process exists
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True
