"""Host preparation: privilege check, directory layout, and deploy user resolution."""

import logging
import os
import pwd
from pathlib import Path
from typing import Callable, Optional

from ..config import DeployConfig
from ..errors import PrivilegeError
from ..utils.messaging import Reporter

logger = logging.getLogger(__name__)


class EnvironmentPreparer:
    """
    Ensures the agent runs as root and the application layout exists.

    Creates the application directory, its scripts subdirectory and the log
    file, then hands ownership of the application directory to the deploy
    user so git operations can run unprivileged.
    """

    def __init__(
        self,
        config: DeployConfig,
        reporter: Optional[Reporter] = None,
        geteuid: Callable[[], int] = os.geteuid,
    ):
        self.config = config
        self.reporter = reporter or Reporter()
        self._geteuid = geteuid
        self.deploy_user: Optional[str] = None

    def check_privileges(self) -> None:
        """
        Raises:
            PrivilegeError: If the effective user is not root
        """
        if self._geteuid() != 0:
            raise PrivilegeError(
                "This agent must be run with superuser privileges (sudo)."
            )

    def resolve_deploy_user(self) -> Optional[str]:
        """
        Determine the non-elevated user that owns the working copy.

        Order: SUDO_USER, configured deploy_user, then the current non-root
        owner of an existing application directory. Scheduled runs have no
        SUDO_USER, which is why the fallbacks exist.

        Returns:
            User name, or None when no non-root user can be determined
        """
        sudo_user = os.environ.get("SUDO_USER")
        if sudo_user and sudo_user != "root":
            return sudo_user

        if self.config.deploy_user:
            return self.config.deploy_user

        app_dir = self.config.app_dir
        if app_dir.exists():
            try:
                owner = pwd.getpwuid(app_dir.stat().st_uid).pw_name
            except KeyError:
                owner = None
            if owner and owner != "root":
                return owner

        return None

    def create_layout(self) -> None:
        """Create the application, scripts and log locations if absent."""
        self.config.scripts_dir.mkdir(parents=True, exist_ok=True)
        self.config.log_file.parent.mkdir(parents=True, exist_ok=True)
        self.config.log_file.touch(exist_ok=True)

    def assign_ownership(self, user: str) -> None:
        """Recursively chown the application directory to the deploy user."""
        _chown_tree(self.config.app_dir, user)

    def prepare(self) -> Optional[str]:
        """
        Run the full preparation step.

        Returns:
            The resolved deploy user (None means git runs as root)

        Raises:
            PrivilegeError: If not running as root
            OSError: On any filesystem failure
        """
        self.reporter.info("Starting initial setup...")
        self.check_privileges()
        self.create_layout()

        self.deploy_user = self.resolve_deploy_user()
        if self.deploy_user:
            self.assign_ownership(self.deploy_user)
        else:
            self.reporter.warning(
                "Could not determine a non-root deploy user; git will run as root."
            )

        self.reporter.info(f"Directory {self.config.app_dir} configured.")
        return self.deploy_user


def _chown_tree(root: Path, user: str) -> None:
    entry = pwd.getpwnam(user)
    uid, gid = entry.pw_uid, entry.pw_gid

    os.chown(root, uid, gid)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = os.path.join(dirpath, name)
            if os.path.islink(path):
                os.lchown(path, uid, gid)
            else:
                os.chown(path, uid, gid)
