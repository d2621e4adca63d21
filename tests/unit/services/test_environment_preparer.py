"""Unit tests for EnvironmentPreparer."""

import os
import pwd
from unittest.mock import patch

import pytest

from compose_autodeploy.errors import PrivilegeError
from compose_autodeploy.services.environment import EnvironmentPreparer
from compose_autodeploy.utils.messaging import Reporter

CURRENT_USER = pwd.getpwuid(os.getuid()).pw_name


def make_preparer(config, euid=0) -> EnvironmentPreparer:
    return EnvironmentPreparer(config, reporter=Reporter(), geteuid=lambda: euid)


class TestPrivilegeCheck:
    """Test the root requirement."""

    def test_non_root_raises_privilege_error(self, deploy_config):
        preparer = make_preparer(deploy_config, euid=1000)

        with pytest.raises(PrivilegeError, match="superuser"):
            preparer.prepare()

        assert not deploy_config.app_dir.exists()

    def test_root_passes(self, deploy_config):
        make_preparer(deploy_config, euid=0).check_privileges()


class TestDeployUserResolution:
    """Test how the non-elevated deploy user is found."""

    def test_prefers_sudo_user(self, deploy_config, monkeypatch):
        monkeypatch.setenv("SUDO_USER", "alice")
        deploy_config.deploy_user = "bob"

        assert make_preparer(deploy_config).resolve_deploy_user() == "alice"

    def test_falls_back_to_configured_user(self, deploy_config, monkeypatch):
        monkeypatch.delenv("SUDO_USER", raising=False)
        deploy_config.deploy_user = "bob"

        assert make_preparer(deploy_config).resolve_deploy_user() == "bob"

    def test_ignores_sudo_user_root(self, deploy_config, monkeypatch):
        monkeypatch.setenv("SUDO_USER", "root")
        deploy_config.deploy_user = "bob"

        assert make_preparer(deploy_config).resolve_deploy_user() == "bob"

    def test_falls_back_to_app_dir_owner(self, deploy_config, monkeypatch):
        if CURRENT_USER == "root":
            pytest.skip("app dir owner fallback ignores root")
        monkeypatch.delenv("SUDO_USER", raising=False)
        deploy_config.app_dir.mkdir(parents=True)

        assert make_preparer(deploy_config).resolve_deploy_user() == CURRENT_USER

    def test_none_when_nothing_resolves(self, deploy_config, monkeypatch):
        monkeypatch.delenv("SUDO_USER", raising=False)

        assert make_preparer(deploy_config).resolve_deploy_user() is None


class TestPrepare:
    """Test directory layout creation and ownership."""

    def test_creates_layout_and_log_file(self, deploy_config, monkeypatch):
        monkeypatch.delenv("SUDO_USER", raising=False)
        preparer = make_preparer(deploy_config)

        with patch.object(preparer, "assign_ownership"):
            preparer.prepare()

        assert deploy_config.scripts_dir.is_dir()
        assert deploy_config.log_file.is_file()

    def test_existing_log_content_is_preserved(self, deploy_config, monkeypatch):
        monkeypatch.delenv("SUDO_USER", raising=False)
        deploy_config.log_file.parent.mkdir(parents=True)
        deploy_config.log_file.write_text("[INFO] previous run\n")
        preparer = make_preparer(deploy_config)

        with patch.object(preparer, "assign_ownership"):
            preparer.prepare()

        assert deploy_config.log_file.read_text() == "[INFO] previous run\n"

    def test_assigns_ownership_to_deploy_user(self, deploy_config, monkeypatch):
        monkeypatch.setenv("SUDO_USER", "alice")
        preparer = make_preparer(deploy_config)

        with patch.object(preparer, "assign_ownership") as mock_chown:
            user = preparer.prepare()

        assert user == "alice"
        mock_chown.assert_called_once_with("alice")

    def test_chown_tree_covers_nested_entries(self, deploy_config):
        (deploy_config.app_dir / "frontend").mkdir(parents=True)
        (deploy_config.app_dir / "frontend" / "Dockerfile").write_text("FROM nginx\n")
        entry = pwd.getpwnam(CURRENT_USER)
        preparer = make_preparer(deploy_config)

        with patch("compose_autodeploy.services.environment.os.chown") as mock_chown:
            preparer.assign_ownership(CURRENT_USER)

        chowned = {call.args[0] for call in mock_chown.call_args_list}
        assert deploy_config.app_dir in chowned
        assert str(deploy_config.app_dir / "frontend" / "Dockerfile") in chowned
        assert all(
            call.args[1:] == (entry.pw_uid, entry.pw_gid)
            for call in mock_chown.call_args_list
        )
