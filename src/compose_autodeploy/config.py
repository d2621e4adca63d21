"""Configuration management for Compose Autodeploy."""

import json
import logging
import os
import shlex
import shutil
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class TopologyConfig(BaseModel):
    """Configuration for frontend/backend discovery and the generated compose file."""

    frontend_pattern: str = Field(
        default="front", description="Case-insensitive substring naming the frontend dir"
    )
    backend_pattern: str = Field(
        default="back", description="Case-insensitive substring naming the backend dir"
    )
    max_depth: int = Field(
        default=2, description="Deepest directory level searched below app_dir"
    )
    frontend_port: int = Field(default=8080, description="Published frontend port")
    frontend_internal_port: int = Field(
        default=80, description="Port the frontend container listens on"
    )
    backend_port: int = Field(default=5001, description="Published backend port")
    backend_internal_port: int = Field(
        default=5000, description="Port the backend container listens on"
    )
    compose_version: str = Field(default="3.9", description="Compose file version")
    strict: bool = Field(
        default=True,
        description="Fail when more than one directory matches a pattern (first match wins otherwise)",
    )


class DependencyConfig(BaseModel):
    """Configuration for container runtime and tooling installation.

    Package repository references:
    - Docker Engine on Ubuntu: https://docs.docker.com/engine/install/ubuntu/
    - Yarn classic Debian repository: https://classic.yarnpkg.com/lang/en/docs/install/
    """

    docker_repo_list: Path = Field(
        default=Path("/etc/apt/sources.list.d/docker.list"),
        description="Apt source entry for Docker; its presence skips repository setup",
    )
    docker_keyring: Path = Field(
        default=Path("/etc/apt/keyrings/docker.asc"),
        description="Where the Docker signing key is stored",
    )
    docker_gpg_url: str = Field(
        default="https://download.docker.com/linux/ubuntu/gpg",
        description="Docker signing key URL",
    )
    docker_repo_url: str = Field(
        default="https://download.docker.com/linux/ubuntu",
        description="Docker apt repository URL",
    )
    legacy_packages: List[str] = Field(
        default=[
            "docker.io",
            "docker-doc",
            "docker-compose",
            "podman-docker",
            "containerd",
            "runc",
        ],
        description="Conflicting packages removed before Docker repository setup",
    )
    prerequisite_packages: List[str] = Field(
        default=["ca-certificates", "curl"],
        description="Packages needed to register the Docker repository",
    )
    runtime_packages: List[str] = Field(
        default=[
            "git",
            "docker-ce",
            "docker-ce-cli",
            "containerd.io",
            "docker-compose-plugin",
            "python3-venv",
            "curl",
        ],
        description="Packages installed on every run",
    )
    runtime_service: str = Field(
        default="docker", description="Systemd unit enabled after installation"
    )
    yarn_gpg_url: str = Field(
        default="https://dl.yarnpkg.com/debian/pubkey.gpg",
        description="Yarn signing key URL",
    )
    yarn_keyring: Path = Field(
        default=Path("/etc/apt/keyrings/yarn.asc"),
        description="Where the Yarn signing key is stored",
    )
    yarn_repo_list: Path = Field(
        default=Path("/etc/apt/sources.list.d/yarn.list"),
        description="Apt source entry for Yarn",
    )
    yarn_repo_url: str = Field(
        default="https://dl.yarnpkg.com/debian/", description="Yarn apt repository URL"
    )


class ScheduleConfig(BaseModel):
    """Configuration for the periodic crontab entry."""

    expression: str = Field(default="*/5 * * * *", description="Cron schedule")
    comment: str = Field(
        default="compose-autodeploy",
        description="Comment tagging the crontab entry owned by this agent",
    )


class DeployConfig(BaseModel):
    """Main configuration for Compose Autodeploy."""

    repo_url: str = Field(
        default="https://github.com/mathewcandido/proway-docker-new-repo.git",
        description="Source repository to deploy",
    )
    branch: str = Field(default="main", description="Remote branch to track")
    app_dir: Path = Field(
        default=Path("/opt/proway-docker"), description="Working copy location"
    )
    scripts_subdir: str = Field(
        default="scripts", description="Subdirectory created inside app_dir"
    )
    log_file: Path = Field(
        default=Path("/var/log/pizzaria-deploy.log"),
        description="Append-only log receiving scheduled run output",
    )
    marker_filename: str = Field(
        default=".last_commit_hash",
        description="File inside app_dir holding the last deployed commit",
    )
    compose_filename: str = Field(
        default="docker-compose.yml", description="Generated compose file name"
    )
    lock_file: Path = Field(
        default=Path("/var/run/compose-autodeploy.lock"),
        description="PID lock preventing overlapping runs",
    )
    deploy_user: Optional[str] = Field(
        default=None,
        description="Non-root user owning the working copy (falls back to SUDO_USER)",
    )
    invocation_path: Optional[str] = Field(
        default=None,
        description="Command registered in crontab (defaults to this executable)",
    )

    topology: TopologyConfig = Field(default_factory=TopologyConfig)
    dependencies: DependencyConfig = Field(default_factory=DependencyConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)

    @field_validator("app_dir", "log_file", "lock_file", mode="before")
    @classmethod
    def convert_path(cls, v: Any) -> Path:
        """Convert string paths to Path objects."""
        if isinstance(v, str):
            return Path(v)
        if isinstance(v, Path):
            return v
        raise ValueError(f"Expected str or Path, got {type(v)}")

    @property
    def scripts_dir(self) -> Path:
        return self.app_dir / self.scripts_subdir

    @property
    def marker_path(self) -> Path:
        return self.app_dir / self.marker_filename

    @property
    def compose_path(self) -> Path:
        return self.app_dir / self.compose_filename

    def resolve_invocation_path(self) -> str:
        """
        Get the command crontab should run, mirroring how we were invoked.

        An executable argv[0] (the console script) is used as is. Under
        ``python -m`` argv[0] is the package's __main__.py, which cron cannot
        execute, so the installed console script or the interpreter is used.
        """
        if self.invocation_path:
            return self.invocation_path

        argv0 = Path(sys.argv[0]).resolve()
        if argv0.name != "__main__.py" and argv0.is_file() and os.access(argv0, os.X_OK):
            return str(argv0)

        script = shutil.which("compose-autodeploy")
        if script:
            return script
        return shlex.join([sys.executable, "-m", "compose_autodeploy"])


class ConfigManager:
    """Manages configuration loading, saving, and environment overrides."""

    DEFAULT_CONFIG_PATH = Path("/etc/compose-autodeploy/config.json")

    # Environment variable -> top-level config field
    ENV_OVERRIDES: Dict[str, str] = {
        "AUTODEPLOY_REPO_URL": "repo_url",
        "AUTODEPLOY_BRANCH": "branch",
        "AUTODEPLOY_APP_DIR": "app_dir",
        "AUTODEPLOY_LOG_FILE": "log_file",
        "AUTODEPLOY_LOCK_FILE": "lock_file",
        "AUTODEPLOY_DEPLOY_USER": "deploy_user",
    }

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[DeployConfig] = None

    def load(self) -> DeployConfig:
        """Load configuration from file (or defaults) and apply environment overrides."""
        data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
        else:
            logger.debug(f"No config file at {self.config_path}, using defaults")

        data.update(self._env_overrides())

        try:
            self._config = DeployConfig(**data)
        except Exception as e:
            raise ValueError(f"Invalid configuration in {self.config_path}: {e}")

        return self._config

    def _env_overrides(self) -> Dict[str, str]:
        overrides = {}
        for env_name, field_name in self.ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                logger.debug(f"Config override from {env_name}: {field_name}={value}")
                overrides[field_name] = value
        return overrides

    def save(self, config: Optional[DeployConfig] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w") as f:
            json.dump(config.model_dump(mode="json"), f, indent=2)

    def get_config(self) -> DeployConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load()
        if self._config is None:
            raise RuntimeError("Failed to load configuration")
        return self._config
