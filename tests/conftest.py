"""
Shared pytest fixtures for Compose Autodeploy tests.

Provides temporary deployment configurations, real git remotes for
integration tests, and isolation of global state (exception logger
singleton, the user's git config).
"""

import os
import subprocess
from pathlib import Path
from typing import Generator

import pytest

from compose_autodeploy.config import DeployConfig, DependencyConfig
from compose_autodeploy.utils.exception_logger import ExceptionLogger


def git(*args: str, cwd: Path) -> str:
    """Run a git command in tests and return its stripped stdout."""
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    """Write a file, commit it, and return the new commit hash."""
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git("add", name, cwd=repo)
    git("commit", "-m", message, cwd=repo)
    return git("rev-parse", "HEAD", cwd=repo)


@pytest.fixture(autouse=True)
def reset_exception_logger() -> Generator[None, None, None]:
    """Give each test a fresh ExceptionLogger singleton."""
    ExceptionLogger._instance = None
    yield
    ExceptionLogger._instance = None


@pytest.fixture
def isolated_git_home(tmp_path: Path, monkeypatch) -> Path:
    """Point git's global config and identity at a throwaway location."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    for key in list(os.environ):
        if key.startswith("GIT_CONFIG_KEY_") or key.startswith("GIT_CONFIG_VALUE_"):
            monkeypatch.delenv(key)
    monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
    return home


@pytest.fixture
def remote_repo(tmp_path: Path, isolated_git_home: Path):
    """
    Create a bare origin plus a seed clone with frontend/backend directories.

    Yields:
        Tuple of (origin URL, seed working copy path)
    """
    origin = tmp_path / "origin.git"
    origin.mkdir()
    git("init", "--bare", "-b", "main", cwd=origin)

    seed = tmp_path / "seed"
    seed.mkdir()
    git("init", "-b", "main", cwd=seed)
    git("remote", "add", "origin", f"file://{origin}", cwd=seed)
    commit_file(seed, "pizza-frontend/Dockerfile", "FROM nginx\n", "Add frontend")
    commit_file(seed, "pizza-backend/Dockerfile", "FROM python:3.12\n", "Add backend")
    git("push", "-u", "origin", "main", cwd=seed)

    yield f"file://{origin}", seed


@pytest.fixture
def deploy_config(tmp_path: Path) -> DeployConfig:
    """DeployConfig whose every path lives under tmp_path."""
    return DeployConfig(
        repo_url="https://example.com/acme/pizzeria.git",
        app_dir=tmp_path / "app",
        log_file=tmp_path / "log" / "deploy.log",
        lock_file=tmp_path / "run" / "deploy.lock",
        invocation_path="/opt/proway-docker/scripts/deploy",
        dependencies=DependencyConfig(
            docker_repo_list=tmp_path / "apt" / "sources.list.d" / "docker.list",
            docker_keyring=tmp_path / "apt" / "keyrings" / "docker.asc",
            yarn_keyring=tmp_path / "apt" / "keyrings" / "yarn.asc",
            yarn_repo_list=tmp_path / "apt" / "sources.list.d" / "yarn.list",
        ),
    )
