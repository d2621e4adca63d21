"""
Centralized external command runner.

Every package-manager, systemctl and compose call goes through run_command so
that a non-zero exit is logged with full context and surfaces as a
CommandFailure rather than a bare CalledProcessError.
"""

import logging
import os
import pwd
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..errors import CommandFailure

logger = logging.getLogger(__name__)


def as_user(cmd: Sequence[str], user: Optional[str], preserve_env: Sequence[str] = ()) -> List[str]:
    """
    Wrap a command so it runs as another user via sudo.

    Args:
        cmd: Command to run
        user: Target user; None or the current user leaves the command unchanged
        preserve_env: Environment variable names sudo must pass through

    Returns:
        Command list, prefixed with sudo when a user switch is needed
    """
    if not user or user == current_user():
        return list(cmd)

    prefix = ["sudo", "-u", user, "-H"]
    if preserve_env:
        prefix.append(f"--preserve-env={','.join(preserve_env)}")
    return prefix + ["--"] + list(cmd)


def current_user() -> str:
    """Name of the effective user running this process."""
    return pwd.getpwuid(os.geteuid()).pw_name


def run_command(
    cmd: Sequence[str],
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
    capture_output: bool = True,
    input: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """
    Run an external command, raising CommandFailure on non-zero exit.

    Args:
        cmd: Command as a list (e.g., ["apt-get", "update", "-y"])
        cwd: Working directory for the command
        env: Full environment for the child (inherits ours when None)
        capture_output: Whether to capture stdout and stderr
        input: Text passed to the child's stdin

    Returns:
        CompletedProcess instance with the command result

    Raises:
        CommandFailure: If the command exits non-zero or cannot be started
    """
    cmd = list(cmd)
    logger.debug(f"Running: {' '.join(cmd)} (cwd={cwd})")

    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            env=env,
            capture_output=capture_output,
            text=True,
            input=input,
            check=False,
        )
    except FileNotFoundError as e:
        failure = CommandFailure(cmd, 127, stderr=str(e))
        _log_command_failure(failure, cwd)
        raise failure from e

    if result.returncode != 0:
        failure = CommandFailure(
            cmd, result.returncode, stdout=result.stdout, stderr=result.stderr
        )
        _log_command_failure(failure, cwd)
        raise failure

    return result


def run_best_effort(
    cmd: Sequence[str],
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
) -> bool:
    """
    Run a command whose failure must not abort the deployment.

    Returns:
        True if the command succeeded, False if it failed (already logged)
    """
    try:
        run_command(cmd, cwd=cwd, env=env)
        return True
    except CommandFailure as e:
        e.recoverable = True
        logger.warning(f"Ignoring failure of best-effort command: {e}")
        return False


def _log_command_failure(failure: CommandFailure, cwd: Optional[Path]) -> None:
    """Log a command failure with full context."""
    from .exception_logger import ExceptionLogger

    exception_logger = ExceptionLogger.get_instance()
    if exception_logger:
        exception_logger.log_exception(
            failure,
            context={
                "command": " ".join(failure.cmd),
                "cwd": str(cwd) if cwd else None,
                "returncode": failure.returncode,
                "stdout": failure.stdout,
                "stderr": failure.stderr,
            },
        )
