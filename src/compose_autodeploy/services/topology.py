"""Compose file generation for the frontend/backend stack."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml  # type: ignore

from ..config import TopologyConfig
from ..errors import DiscoveryFailure
from ..utils.messaging import Reporter

logger = logging.getLogger(__name__)


@dataclass
class Topology:
    """Relative build paths of the two discovered services."""

    frontend_path: str
    backend_path: str


def find_matching_dirs(root: Path, pattern: str, max_depth: int) -> List[Path]:
    """
    Find directories whose name contains pattern (case-insensitive).

    Walks depth 1..max_depth below root in sorted pre-order. Hidden
    directories are skipped, and descendants of a match are not reported
    separately.
    """
    needle = pattern.lower()
    matches: List[Path] = []

    def walk(directory: Path, depth: int) -> None:
        if depth > max_depth:
            return
        try:
            children = sorted(p for p in directory.iterdir() if p.is_dir())
        except OSError as e:
            logger.warning(f"Cannot list {directory}: {e}")
            return
        for child in children:
            if child.name.startswith("."):
                continue
            if needle in child.name.lower():
                matches.append(child)
                continue
            walk(child, depth + 1)

    walk(root, 1)
    return matches


class TopologyGenerator:
    """Discovers the frontend/backend directories and writes the compose file."""

    def __init__(
        self,
        app_dir: Path,
        compose_file: Path,
        config: Optional[TopologyConfig] = None,
        reporter: Optional[Reporter] = None,
    ):
        self.app_dir = app_dir
        self.compose_file = compose_file
        self.config = config or TopologyConfig()
        self.reporter = reporter or Reporter()

    def _discover(self, role: str, pattern: str) -> Path:
        matches = find_matching_dirs(self.app_dir, pattern, self.config.max_depth)
        if not matches:
            raise DiscoveryFailure(
                f"Could not find a {role} directory matching '*{pattern}*' in {self.app_dir}"
            )
        if len(matches) > 1 and self.config.strict:
            found = ", ".join(str(m.relative_to(self.app_dir)) for m in matches)
            raise DiscoveryFailure(
                f"Ambiguous {role} directory: '*{pattern}*' matches {found}"
            )
        return matches[0]

    def discover(self) -> Topology:
        """
        Raises:
            DiscoveryFailure: If either directory is missing or ambiguous
        """
        frontend_dir = self._discover("frontend", self.config.frontend_pattern)
        backend_dir = self._discover("backend", self.config.backend_pattern)

        return Topology(
            frontend_path=os.path.relpath(frontend_dir, self.app_dir),
            backend_path=os.path.relpath(backend_dir, self.app_dir),
        )

    def generate_compose_config(self, topology: Topology) -> Dict[str, Any]:
        """Build the compose configuration for the two services."""
        cfg = self.config
        return {
            "version": cfg.compose_version,
            "services": {
                "frontend": {
                    "build": f"./{topology.frontend_path}",
                    "ports": [f"{cfg.frontend_port}:{cfg.frontend_internal_port}"],
                    "depends_on": ["backend"],
                },
                "backend": {
                    "build": f"./{topology.backend_path}",
                    "ports": [f"{cfg.backend_port}:{cfg.backend_internal_port}"],
                },
            },
        }

    def generate(self) -> Path:
        """
        Discover the services and overwrite the compose file.

        Returns:
            Path of the written compose file
        """
        self.reporter.info(f"Generating {self.compose_file.name}...")
        topology = self.discover()
        compose_config = self.generate_compose_config(topology)

        with open(self.compose_file, "w") as f:
            yaml.dump(compose_config, f, default_flow_style=False, sort_keys=False)

        logger.debug(
            f"Compose services: frontend=./{topology.frontend_path} "
            f"backend=./{topology.backend_path}"
        )
        self.reporter.success(f"{self.compose_file.name} generated successfully.")
        return self.compose_file
