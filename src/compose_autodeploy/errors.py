"""Exception hierarchy for deployment runs.

Every error a run can end with derives from DeployError. The CLI turns any of
them into an ``[ERROR]`` line on stderr and exit code 1.
"""

from typing import List, Optional, Sequence


class DeployError(Exception):
    """Base exception for deployment errors."""

    recoverable: bool = False


class PrivilegeError(DeployError):
    """Raised when the agent is not running with root privileges."""

    pass


class CommandFailure(DeployError):
    """Raised when an external command exits non-zero."""

    def __init__(
        self,
        cmd: Sequence[str],
        returncode: int,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
        recoverable: bool = False,
    ):
        self.cmd: List[str] = list(cmd)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        self.recoverable = recoverable
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        message = f"Command failed with exit code {self.returncode}: {' '.join(self.cmd)}"
        detail = self.stderr.strip()
        if detail:
            # Last line is usually the one that explains the failure
            message += f" ({detail.splitlines()[-1]})"
        return message


class DiscoveryFailure(DeployError):
    """Raised when the frontend or backend directory cannot be resolved."""

    pass
