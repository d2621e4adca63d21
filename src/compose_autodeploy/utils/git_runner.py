"""
Git command runner with dubious ownership handling.

The agent runs as root but the working copy belongs to the deploy user, so
every git call is delegated to that user and carries a safe.directory
override; otherwise git refuses to touch a repository owned by someone else.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import CommandFailure
from .command_runner import as_user, run_command

logger = logging.getLogger(__name__)


def get_git_environment(project_dir: Path) -> Dict[str, str]:
    """
    Get environment variables for git commands to handle dubious ownership.

    Any GIT_CONFIG_* entries already present in the calling environment are
    shifted up by one so safe.directory can take index 0.

    Args:
        project_dir: Path to the working copy

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()

    config_count = 1
    for key in os.environ:
        if key.startswith("GIT_CONFIG_KEY_"):
            idx = key.replace("GIT_CONFIG_KEY_", "")
            if idx.isdigit():
                new_idx = int(idx) + 1
                env[f"GIT_CONFIG_KEY_{new_idx}"] = os.environ[key]
                if f"GIT_CONFIG_VALUE_{idx}" in os.environ:
                    env[f"GIT_CONFIG_VALUE_{new_idx}"] = os.environ[
                        f"GIT_CONFIG_VALUE_{idx}"
                    ]
                config_count = max(config_count, new_idx + 1)

    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(project_dir.resolve())
    env["GIT_CONFIG_COUNT"] = str(config_count)

    return env


def _git_config_names(env: Dict[str, str]) -> List[str]:
    return sorted(key for key in env if key.startswith("GIT_CONFIG_"))


def run_git_command(
    args: List[str],
    cwd: Path,
    user: Optional[str] = None,
    safe_directory: Optional[Path] = None,
):
    """
    Run a git command as the deploy user.

    Args:
        args: Git arguments without the leading "git" (e.g., ["fetch", "origin", "main"])
        cwd: Working directory for the command
        user: Deploy user to run as (None runs as the current user)
        safe_directory: Directory marked safe for this call (defaults to cwd)

    Returns:
        CompletedProcess instance with the command result

    Raises:
        CommandFailure: If git exits non-zero
    """
    env = get_git_environment(safe_directory or cwd)
    cmd = as_user(["git"] + list(args), user, preserve_env=_git_config_names(env))
    return run_command(cmd, cwd=cwd, env=env)


def is_git_repository(project_dir: Path) -> bool:
    """True when the directory holds git metadata (a .git directory)."""
    return (project_dir / ".git").is_dir()


def get_remote_commit(project_dir: Path, branch: str, user: Optional[str] = None) -> str:
    """
    Get the commit hash the remote-tracking branch points at.

    Raises:
        CommandFailure: If the ref cannot be resolved
    """
    result = run_git_command(
        ["rev-parse", f"origin/{branch}"], cwd=project_dir, user=user
    )
    return str(result.stdout.strip())


def ensure_safe_directory(project_dir: Path, user: Optional[str] = None) -> bool:
    """
    Register the directory in the user's global safe.directory list.

    Returns:
        True if the entry was added, False if it was already present
    """
    directory = str(project_dir.resolve())
    try:
        result = run_git_command(
            ["config", "--global", "--get-all", "safe.directory"],
            cwd=project_dir,
            user=user,
        )
        existing = result.stdout.splitlines()
    except CommandFailure as e:
        # git config exits 1 when the key has no values yet
        if e.returncode != 1:
            raise
        existing = []

    if directory in existing or "*" in existing:
        return False

    run_git_command(
        ["config", "--global", "--add", "safe.directory", directory],
        cwd=project_dir,
        user=user,
    )
    logger.info(f"Marked {directory} as a safe git directory")
    return True


def head_resolves(project_dir: Path, user: Optional[str] = None) -> bool:
    """False when HEAD points at an unborn branch (nothing checked out yet)."""
    try:
        run_git_command(
            ["rev-parse", "--verify", "--quiet", "HEAD"], cwd=project_dir, user=user
        )
    except CommandFailure:
        return False
    return True


def has_remote(project_dir: Path, name: str, user: Optional[str] = None) -> bool:
    result = run_git_command(["remote"], cwd=project_dir, user=user)
    return name in result.stdout.split()
