"""Change-gated deployment: rebuild the stack only when the remote branch moved."""

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..utils.command_runner import run_command
from ..utils.git_runner import get_remote_commit, run_git_command
from ..utils.messaging import Reporter

logger = logging.getLogger(__name__)


class DeploymentMarker:
    """The persisted last-deployed commit hash."""

    def __init__(self, path: Path):
        self.path = path

    def read(self) -> str:
        """Return the stored hash, or an empty string when none was recorded."""
        if not self.path.exists():
            return ""
        return self.path.read_text().strip()

    def write(self, commit: str) -> None:
        """Replace the stored hash atomically."""
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f"{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(f"{commit}\n")
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


@dataclass
class DeploymentOutcome:
    """What a deployer run did."""

    changed: bool
    commit: str
    previous_commit: str


def get_compose_command() -> List[str]:
    """Get the compose command, preferring the docker compose plugin."""
    try:
        result = subprocess.run(
            ["docker", "compose", "version"], capture_output=True, timeout=5
        )
        if result.returncode == 0:
            return ["docker", "compose"]
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass

    # Fall back to docker-compose (old syntax)
    try:
        result = subprocess.run(
            ["docker-compose", "--version"], capture_output=True, timeout=5
        )
        if result.returncode == 0:
            return ["docker-compose"]
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass

    return ["docker", "compose"]


class ChangeGatedDeployer:
    """
    Compares the remote branch head with the marker and starts the stack.

    Changed: hard-reset the working copy to the remote head (local edits are
    discarded), record the new marker, then start the stack with a forced
    image rebuild. Unchanged: start the stack from existing images.
    """

    def __init__(
        self,
        app_dir: Path,
        compose_file: Path,
        marker: DeploymentMarker,
        branch: str = "main",
        user: Optional[str] = None,
        reporter: Optional[Reporter] = None,
        compose_command: Optional[List[str]] = None,
    ):
        self.app_dir = app_dir
        self.compose_file = compose_file
        self.marker = marker
        self.branch = branch
        self.user = user
        self.reporter = reporter or Reporter()
        self._compose_command = compose_command

    @property
    def compose_command(self) -> List[str]:
        if self._compose_command is None:
            self._compose_command = get_compose_command()
        return self._compose_command

    def reset_working_tree(self) -> None:
        run_git_command(
            ["reset", "--hard", f"origin/{self.branch}"],
            cwd=self.app_dir,
            user=self.user,
        )

    def start_stack(self, rebuild: bool) -> None:
        cmd = self.compose_command + ["-f", str(self.compose_file), "up", "-d"]
        if rebuild:
            cmd.append("--build")
        # Build output is long; let it stream into the log instead of buffering
        run_command(cmd, cwd=self.app_dir, capture_output=False)

    def deploy(self) -> DeploymentOutcome:
        """
        Run the change gate and start the stack.

        Raises:
            CommandFailure: If the remote head cannot be read, or reset/compose fails
        """
        self.reporter.info("Checking whether the containers need a rebuild...")
        current = get_remote_commit(self.app_dir, self.branch, user=self.user)
        previous = self.marker.read()

        changed = current != previous
        if changed:
            self.reporter.info("New changes detected. A rebuild is required.")
            self.reset_working_tree()
            self.marker.write(current)
            self.reporter.info("Rebuilding and starting containers...")
            self.start_stack(rebuild=True)
        else:
            self.reporter.info("No changes detected.")
            self.reporter.info("Starting existing containers...")
            self.start_stack(rebuild=False)

        self.reporter.success("Containers are running.")
        return DeploymentOutcome(changed=changed, commit=current, previous_commit=previous)
