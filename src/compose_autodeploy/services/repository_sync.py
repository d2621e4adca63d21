"""Working copy management: first-run clone and subsequent fetches."""

import logging
from pathlib import Path
from typing import Optional

from ..utils.git_runner import (
    ensure_safe_directory,
    has_remote,
    head_resolves,
    is_git_repository,
    run_git_command,
)
from ..utils.messaging import Reporter

logger = logging.getLogger(__name__)


class RepositorySynchronizer:
    """
    Keeps the application directory a working copy of the remote branch.

    Only fetches: moving the working tree to the fetched commit is the
    deployer's decision.
    """

    def __init__(
        self,
        repo_url: str,
        app_dir: Path,
        branch: str = "main",
        user: Optional[str] = None,
        reporter: Optional[Reporter] = None,
    ):
        self.repo_url = repo_url
        self.app_dir = app_dir
        self.branch = branch
        self.user = user
        self.reporter = reporter or Reporter()

    def clone(self) -> None:
        """
        Create the working copy on first run.

        A plain clone needs an empty target, but the application directory
        already holds the scripts subdirectory, so a non-empty target is
        initialised in place, fetched and checked out instead.
        """
        if not any(self.app_dir.iterdir()):
            run_git_command(
                ["clone", "--branch", self.branch, self.repo_url, str(self.app_dir)],
                cwd=self.app_dir.parent,
                user=self.user,
                safe_directory=self.app_dir,
            )
            return

        run_git_command(["init", "-b", self.branch], cwd=self.app_dir, user=self.user)
        self.checkout_remote_branch()

    def checkout_remote_branch(self) -> None:
        """
        Point origin at repo_url, fetch, and check the branch out.

        Safe to repeat, so an in-place clone interrupted after ``git init``
        is completed by the next run.
        """
        if has_remote(self.app_dir, "origin", user=self.user):
            run_git_command(
                ["remote", "set-url", "origin", self.repo_url],
                cwd=self.app_dir,
                user=self.user,
            )
        else:
            run_git_command(
                ["remote", "add", "origin", self.repo_url],
                cwd=self.app_dir,
                user=self.user,
            )
        self.fetch()
        # Populate the tree like a clone would; topology discovery runs next
        run_git_command(
            ["checkout", "-f", "-B", self.branch, "--track", f"origin/{self.branch}"],
            cwd=self.app_dir,
            user=self.user,
        )

    def fetch(self) -> None:
        run_git_command(
            ["fetch", "origin", self.branch], cwd=self.app_dir, user=self.user
        )

    def sync(self) -> bool:
        """
        Run the repository step.

        Returns:
            True if this run populated the working copy (first clone, or
            completion of an interrupted one), False if it only fetched

        Raises:
            CommandFailure: If any git command fails
        """
        self.reporter.info("Managing the repository...")
        self.app_dir.mkdir(parents=True, exist_ok=True)

        if not is_git_repository(self.app_dir):
            self.reporter.info("Cloning repository for the first time...")
            self.clone()
            return True

        ensure_safe_directory(self.app_dir, user=self.user)

        if not head_resolves(self.app_dir, user=self.user):
            self.reporter.warning(
                "Working copy has nothing checked out. Completing the first clone..."
            )
            self.checkout_remote_branch()
            return True

        self.reporter.info("Fetching repository updates...")
        self.fetch()
        return False
