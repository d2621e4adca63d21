"""Deployment orchestrator - runs every step of one deployment in order."""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import DeployConfig
from .services.dependency_installer import DependencyInstaller
from .services.deployer import ChangeGatedDeployer, DeploymentMarker, DeploymentOutcome
from .services.deployment_lock import DeploymentLock
from .services.environment import EnvironmentPreparer
from .services.repository_sync import RepositorySynchronizer
from .services.scheduler import SchedulerRegistrar
from .services.topology import TopologyGenerator
from .utils.messaging import Reporter

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Summary of one orchestrator invocation."""

    skipped: bool = False
    cloned: bool = False
    repository_configured: bool = False
    schedule_written: bool = False
    deployment: Optional[DeploymentOutcome] = None


class DeploymentOrchestrator:
    """
    Runs prepare -> install -> sync -> topology -> deploy -> schedule.

    The whole run happens under the deployment lock. Any DeployError (or
    OSError from filesystem setup) propagates and ends the run; nothing is
    retried or rolled back. Individual steps can be replaced through the
    attributes below, which is how tests drive the orchestrator without root.
    """

    def __init__(self, config: DeployConfig, reporter: Optional[Reporter] = None):
        self.config = config
        self.reporter = reporter or Reporter()
        self.lock = DeploymentLock(config.lock_file)
        self.environment = EnvironmentPreparer(config, reporter=self.reporter)
        self.installer = DependencyInstaller(config.dependencies, reporter=self.reporter)
        self.topology = TopologyGenerator(
            config.app_dir,
            config.compose_path,
            config=config.topology,
            reporter=self.reporter,
        )

    def build_synchronizer(self, user: Optional[str]) -> RepositorySynchronizer:
        return RepositorySynchronizer(
            repo_url=self.config.repo_url,
            app_dir=self.config.app_dir,
            branch=self.config.branch,
            user=user,
            reporter=self.reporter,
        )

    def build_deployer(self, user: Optional[str]) -> ChangeGatedDeployer:
        return ChangeGatedDeployer(
            app_dir=self.config.app_dir,
            compose_file=self.config.compose_path,
            marker=DeploymentMarker(self.config.marker_path),
            branch=self.config.branch,
            user=user,
            reporter=self.reporter,
        )

    def build_scheduler(self, user: Optional[str]) -> SchedulerRegistrar:
        return SchedulerRegistrar(
            invocation_path=self.config.resolve_invocation_path(),
            log_file=self.config.log_file,
            config=self.config.schedule,
            deploy_user=user,
            reporter=self.reporter,
        )

    def run(self) -> RunResult:
        """
        Execute one deployment.

        Returns:
            RunResult; ``skipped`` is set when another run holds the lock

        Raises:
            DeployError: On the first failing step
        """
        # Privileges first: without root the lock file location is not writable
        self.environment.check_privileges()

        if not self.lock.acquire():
            self.reporter.info("Another deployment is already in progress. Skipping.")
            return RunResult(skipped=True)

        try:
            return self._run_steps()
        finally:
            self.lock.release()

    def _run_steps(self) -> RunResult:
        result = RunResult()

        user = self.environment.prepare()
        result.repository_configured = self.installer.install()
        result.cloned = self.build_synchronizer(user).sync()
        self.topology.generate()
        result.deployment = self.build_deployer(user).deploy()
        result.schedule_written = self.build_scheduler(user).register()

        logger.info(
            f"Deployment run finished: changed={result.deployment.changed} "
            f"commit={result.deployment.commit}"
        )
        return result
