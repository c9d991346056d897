"""Project discovery for the area tier.

Projects are not persisted by scopecore. Each cascade and aggregate read asks
the discovery service for a fresh snapshot of the projects under each area,
so a project that appears (or moves to another area) is picked up on the
next call.

Used by:
- CascadeEngine: descendants of a global or area toggle
- PermissionService: per-project rows of the unified state
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .config import AreaDefinition, ScopeCoreConfig
from .scopes import Scope

logger = logging.getLogger(__name__)

WORKTREE_MARKER = "-worktree"


@dataclass(frozen=True)
class ProjectInfo:
    """A project discovered under an area."""

    name: str  # e.g. "api-server"
    path: str  # e.g. "/home/me/sophia/api-server"
    area: str  # e.g. "sophia"

    @property
    def scope(self) -> Scope:
        return Scope.project(self.path)

    @property
    def identifier(self) -> str:
        """Display identifier in ``area/name`` form."""
        return f"{self.area}/{self.name}"


class ProjectDiscovery(ABC):
    """Point-in-time listing of the projects that belong to an area."""

    @abstractmethod
    def list_projects(self, area: str) -> list[ProjectInfo]:
        raise NotImplementedError

    def list_all(self, areas: Iterable[str]) -> dict[str, list[ProjectInfo]]:
        return {area: self.list_projects(area) for area in areas}


def discover_projects_in_dir(base_path: Path, area: str) -> list[ProjectInfo]:
    """List visible project directories under ``base_path``.

    Hidden directories and git worktree checkouts (names containing
    ``-worktree``) are skipped. A missing or unreadable base path yields ``[]``.
    """
    try:
        entries = list(Path(base_path).expanduser().iterdir())
    except OSError as e:
        logger.debug("Project discovery skipped %s: %s", base_path, e)
        return []

    projects = [
        ProjectInfo(name=entry.name, path=str(entry), area=area)
        for entry in entries
        if entry.is_dir() and not entry.name.startswith(".") and WORKTREE_MARKER not in entry.name
    ]
    return sorted(projects, key=lambda p: p.name.lower())


class FilesystemProjectDiscovery(ProjectDiscovery):
    """Projects are the visible subdirectories of each area's ``base_path``."""

    def __init__(self, areas: Iterable[AreaDefinition]) -> None:
        self._areas = {area.name: area for area in areas}

    @classmethod
    def from_config(cls, config: ScopeCoreConfig) -> "FilesystemProjectDiscovery":
        return cls(config.areas)

    def list_projects(self, area: str) -> list[ProjectInfo]:
        definition = self._areas.get(area)
        if definition is None:
            logger.warning("Project discovery: unknown area '%s'", area)
            return []
        return discover_projects_in_dir(definition.base_path, area)

    def project_path_from_identifier(self, identifier: str) -> Optional[str]:
        """Resolve ``area/name`` to a project path; None for malformed ids or unknown areas.

        Example::

            discovery.project_path_from_identifier("sophia/api")  # "/home/me/sophia/api"
        """
        area_name, _, project_name = identifier.partition("/")
        if not area_name or not project_name or "/" in project_name:
            return None
        definition = self._areas.get(area_name)
        if definition is None:
            return None
        return str(Path(definition.base_path).expanduser() / project_name)


class StaticProjectDiscovery(ProjectDiscovery):
    """Discovery over an explicit, mutable ``{area: [path, ...]}`` mapping.

    Useful for embedding (a caller that already knows its projects) and tests.
    """

    def __init__(self, projects_by_area: Optional[dict[str, list[str]]] = None) -> None:
        self._projects: dict[str, list[str]] = {
            area: list(paths) for area, paths in (projects_by_area or {}).items()
        }

    def add_project(self, area: str, path: str) -> None:
        self._projects.setdefault(area, [])
        if path not in self._projects[area]:
            self._projects[area].append(path)

    def remove_project(self, area: str, path: str) -> None:
        paths = self._projects.get(area, [])
        if path in paths:
            paths.remove(path)

    def list_projects(self, area: str) -> list[ProjectInfo]:
        return [
            ProjectInfo(name=Path(path).name or path, path=path, area=area)
            for path in self._projects.get(area, [])
        ]


__all__ = [
    "FilesystemProjectDiscovery",
    "ProjectDiscovery",
    "ProjectInfo",
    "StaticProjectDiscovery",
    "discover_projects_in_dir",
]
