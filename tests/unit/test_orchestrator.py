"""Unit tests for DeploymentOrchestrator step ordering and failure handling."""

from unittest.mock import Mock, patch

import pytest

from compose_autodeploy.errors import CommandFailure, DiscoveryFailure, PrivilegeError
from compose_autodeploy.orchestrator import DeploymentOrchestrator
from compose_autodeploy.services.deployer import DeploymentOutcome
from compose_autodeploy.services.deployment_lock import DeploymentLock
from compose_autodeploy.utils.messaging import Reporter

COMMIT = "c" * 40


@pytest.fixture
def steps():
    """Shared mock recording the order in which steps run."""
    manager = Mock()
    manager.environment.prepare.return_value = "deploy"
    manager.installer.install.return_value = False
    manager.synchronizer.sync.return_value = True
    manager.topology.generate.return_value = None
    manager.deployer.deploy.return_value = DeploymentOutcome(
        changed=True, commit=COMMIT, previous_commit=""
    )
    manager.scheduler.register.return_value = True
    return manager


@pytest.fixture
def orchestrator(deploy_config, steps):
    orch = DeploymentOrchestrator(deploy_config, reporter=Reporter())
    orch.environment = steps.environment
    orch.installer = steps.installer
    orch.topology = steps.topology
    with patch.object(orch, "build_synchronizer", return_value=steps.synchronizer), \
            patch.object(orch, "build_deployer", return_value=steps.deployer), \
            patch.object(orch, "build_scheduler", return_value=steps.scheduler):
        yield orch


def step_names(steps: Mock):
    return [name for name, _args, _kwargs in steps.mock_calls]


class TestDeploymentOrchestrator:
    """Test the full run sequence."""

    def test_runs_steps_in_order(self, orchestrator, steps):
        result = orchestrator.run()

        assert step_names(steps) == [
            "environment.check_privileges",
            "environment.prepare",
            "installer.install",
            "synchronizer.sync",
            "topology.generate",
            "deployer.deploy",
            "scheduler.register",
        ]
        assert result.skipped is False
        assert result.cloned is True
        assert result.schedule_written is True
        assert result.deployment.commit == COMMIT

    def test_deploy_user_flows_to_git_steps(self, orchestrator, steps):
        orchestrator.run()

        orchestrator.build_synchronizer.assert_called_once_with("deploy")
        orchestrator.build_deployer.assert_called_once_with("deploy")
        orchestrator.build_scheduler.assert_called_once_with("deploy")

    def test_privilege_error_stops_before_lock(self, orchestrator, steps, deploy_config):
        steps.environment.check_privileges.side_effect = PrivilegeError("need root")

        with pytest.raises(PrivilegeError):
            orchestrator.run()

        assert not deploy_config.lock_file.exists()
        steps.environment.prepare.assert_not_called()

    def test_skips_when_lock_is_held(self, orchestrator, steps, deploy_config):
        holder = DeploymentLock(deploy_config.lock_file)
        assert holder.acquire()

        result = orchestrator.run()

        assert result.skipped is True
        steps.environment.prepare.assert_not_called()
        assert deploy_config.lock_file.exists()

    def test_topology_failure_prevents_deploy_and_schedule(self, orchestrator, steps):
        steps.topology.generate.side_effect = DiscoveryFailure("no backend directory")

        with pytest.raises(DiscoveryFailure):
            orchestrator.run()

        steps.deployer.deploy.assert_not_called()
        steps.scheduler.register.assert_not_called()

    def test_install_failure_prevents_sync(self, orchestrator, steps):
        steps.installer.install.side_effect = CommandFailure(["apt-get", "update"], 100)

        with pytest.raises(CommandFailure):
            orchestrator.run()

        steps.synchronizer.sync.assert_not_called()

    def test_lock_released_after_failure(self, orchestrator, steps, deploy_config):
        steps.deployer.deploy.side_effect = CommandFailure(["docker", "compose"], 1)

        with pytest.raises(CommandFailure):
            orchestrator.run()

        assert not deploy_config.lock_file.exists()

    def test_lock_released_after_success(self, orchestrator, deploy_config):
        orchestrator.run()

        assert not deploy_config.lock_file.exists()
