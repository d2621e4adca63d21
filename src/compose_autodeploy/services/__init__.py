"""Deployment steps run by the orchestrator."""

from .dependency_installer import DependencyInstaller
from .deployer import ChangeGatedDeployer, DeploymentMarker, DeploymentOutcome
from .deployment_lock import DeploymentLock
from .environment import EnvironmentPreparer
from .repository_sync import RepositorySynchronizer
from .scheduler import SchedulerRegistrar
from .topology import TopologyGenerator

__all__ = [
    "ChangeGatedDeployer",
    "DependencyInstaller",
    "DeploymentLock",
    "DeploymentMarker",
    "DeploymentOutcome",
    "EnvironmentPreparer",
    "RepositorySynchronizer",
    "SchedulerRegistrar",
    "TopologyGenerator",
]
