"""Container runtime and tooling installation via apt."""

import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx

from ..config import DependencyConfig
from ..errors import DeployError
from ..utils.command_runner import run_best_effort, run_command
from ..utils.messaging import Reporter

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")
KEY_DOWNLOAD_TIMEOUT = 30.0


class DependencyInstaller:
    """
    Brings the host to a state where Docker, the compose plugin and Yarn are installed.

    The Docker apt source file is the only signal used to decide whether the
    repository registration already happened: when it exists, the signing key
    and source entry are left alone even if an older or third-party Docker
    build is installed.
    """

    def __init__(
        self,
        config: DependencyConfig,
        reporter: Optional[Reporter] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
        os_release_path: Path = OS_RELEASE_PATH,
        http_client: Optional[httpx.Client] = None,
    ):
        self.config = config
        self.reporter = reporter or Reporter()
        self._which = which
        self.os_release_path = os_release_path
        self._http_client = http_client

    # apt helpers

    def _apt_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env["DEBIAN_FRONTEND"] = "noninteractive"
        return env

    def update_package_index(self) -> None:
        run_command(["apt-get", "update", "-y"], env=self._apt_env())

    def install_packages(self, packages: List[str]) -> None:
        run_command(["apt-get", "install", "-y"] + list(packages), env=self._apt_env())

    def remove_legacy_packages(self) -> bool:
        """Remove conflicting packages; failures are ignored."""
        return run_best_effort(
            ["apt-get", "remove", "-y"] + self.config.legacy_packages,
            env=self._apt_env(),
        )

    # repository registration

    def docker_repository_configured(self) -> bool:
        return self.config.docker_repo_list.exists()

    def get_architecture(self) -> str:
        result = run_command(["dpkg", "--print-architecture"])
        return str(result.stdout.strip())

    def get_codename(self) -> str:
        """Read VERSION_CODENAME from os-release."""
        try:
            content = self.os_release_path.read_text()
        except OSError as e:
            raise DeployError(f"Cannot read {self.os_release_path}: {e}")

        for line in content.splitlines():
            key, _, value = line.partition("=")
            if key.strip() == "VERSION_CODENAME":
                return value.strip().strip('"')

        raise DeployError(f"VERSION_CODENAME not found in {self.os_release_path}")

    def download_key(self, url: str, destination: Path) -> None:
        """Fetch a repository signing key and store it world-readable."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        os.chmod(destination.parent, 0o755)

        try:
            if self._http_client is not None:
                response = self._http_client.get(url)
            else:
                response = httpx.get(
                    url, follow_redirects=True, timeout=KEY_DOWNLOAD_TIMEOUT
                )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeployError(f"Failed to download signing key from {url}: {e}")

        destination.write_bytes(response.content)
        os.chmod(destination, 0o644)

    def docker_source_entry(self) -> str:
        return (
            f"deb [arch={self.get_architecture()} signed-by={self.config.docker_keyring}] "
            f"{self.config.docker_repo_url} {self.get_codename()} stable\n"
        )

    def configure_docker_repository(self) -> None:
        """Register the official Docker apt repository."""
        self.reporter.info(
            "Official Docker repository not found. Configuring it now..."
        )
        self.remove_legacy_packages()
        self.install_packages(self.config.prerequisite_packages)
        self.download_key(self.config.docker_gpg_url, self.config.docker_keyring)

        entry = self.docker_source_entry()
        self.config.docker_repo_list.parent.mkdir(parents=True, exist_ok=True)
        self.config.docker_repo_list.write_text(entry)

        # Index refresh must come after the new source entry exists
        self.update_package_index()

    # runtime

    def enable_runtime_service(self) -> None:
        run_command(["systemctl", "enable", "--now", self.config.runtime_service])

    def install_yarn(self) -> bool:
        """
        Install Yarn when it is not on PATH.

        Returns:
            True if Yarn was installed, False if it was already present
        """
        if self._which("yarn"):
            return False

        self.reporter.info("Yarn not found. Installing...")
        self.download_key(self.config.yarn_gpg_url, self.config.yarn_keyring)
        self.config.yarn_repo_list.parent.mkdir(parents=True, exist_ok=True)
        self.config.yarn_repo_list.write_text(
            f"deb [signed-by={self.config.yarn_keyring}] {self.config.yarn_repo_url} stable main\n"
        )
        self.update_package_index()
        self.install_packages(["yarn"])
        self.reporter.success("Yarn installed.")
        return True

    def install(self) -> bool:
        """
        Run the full dependency installation step.

        Returns:
            True if the Docker repository was (re)configured during this run

        Raises:
            CommandFailure: If any package-manager command fails
        """
        self.reporter.info("Checking and installing dependencies...")
        self.update_package_index()

        reconfigured = False
        if not self.docker_repository_configured():
            self.configure_docker_repository()
            reconfigured = True
        else:
            logger.debug(
                f"{self.config.docker_repo_list} exists, skipping repository setup"
            )

        self.install_packages(self.config.runtime_packages)
        self.enable_runtime_service()
        self.reporter.success("Docker and Docker Compose V2 installed and active.")

        self.install_yarn()
        return reconfigured
