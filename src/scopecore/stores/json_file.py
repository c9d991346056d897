"""JSON-file backed stores.

Each scope's allow list lives in its own ``settings.json``:

- global:  ``config.global_settings_path``
- area:    ``AreaDefinition.settings_path``
- project: ``<project>/<config.project_settings_relpath>``

Writes go to a temp file in the same directory followed by ``os.replace``,
so a reader (or a racing writer) always sees a complete document.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from ..config import ScopeCoreConfig
from ..exceptions import StoreUnavailableError, UnknownScopeError
from ..scopes import ScopeKind, parse_scope
from .base import CategoryMappingStore, SettingsStore, apply_allow_list, extract_allow_list

logger = logging.getLogger(__name__)


def read_json_document(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from ``path``; ``None`` when the file does not exist."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StoreUnavailableError(f"Cannot read {path}: {e}", path=str(path)) from e

    if not content.strip():
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise StoreUnavailableError(f"Malformed JSON in {path}: {e}", path=str(path)) from e
    if not isinstance(data, dict):
        raise StoreUnavailableError(f"Expected a JSON object in {path}", path=str(path))
    return data


def write_json_document(path: Path, document: dict[str, Any]) -> None:
    """Atomically write ``document`` to ``path``, creating parent directories."""
    tmp_name: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as fh:
            tmp_name = fh.name
            json.dump(document, fh, indent=2)
            fh.write("\n")
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise StoreUnavailableError(f"Cannot write {path}: {e}", path=str(path)) from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_name)


class JsonSettingsStore(SettingsStore):
    """Allow lists stored in per-scope ``settings.json`` files."""

    def __init__(self, config: ScopeCoreConfig) -> None:
        self._config = config

    def path_for(self, scope_id: str) -> Path:
        """Resolve the settings document path for a scope id."""
        scope = parse_scope(scope_id, self._config.area_names)
        if scope.kind is ScopeKind.GLOBAL:
            return self._config.global_settings_path.expanduser()
        if scope.kind is ScopeKind.AREA:
            area = self._config.get_area(scope.key)
            if area is None:
                raise UnknownScopeError(f"Unknown area: {scope.key!r}", scope=scope_id)
            return area.settings_path.expanduser()
        return Path(scope.key).expanduser() / self._config.project_settings_relpath

    def read_document(self, scope_id: str) -> dict[str, Any] | None:
        return read_json_document(self.path_for(scope_id))

    def read(self, scope_id: str) -> list[str]:
        return extract_allow_list(self.read_document(scope_id))

    def write(self, scope_id: str, rules: list[str]) -> None:
        path = self.path_for(scope_id)
        existing = read_json_document(path) or {}
        write_json_document(path, apply_allow_list(existing, rules))
        logger.debug("Wrote %d rules to %s", len(rules), path)


class JsonCategoryStore(CategoryMappingStore):
    """All custom category mappings in one JSON document.

    Every scope shares the file, so changes are serialized per instance.

    Layout::

        {"global": {"Bash(docker ps)": "Containers"}, "area:sophia": {...}}
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def all(self) -> dict[str, dict[str, str]]:
        data = read_json_document(self._path) or {}
        return {
            scope_id: {rule: str(category) for rule, category in mapping.items()}
            for scope_id, mapping in data.items()
            if isinstance(mapping, dict)
        }

    def get(self, scope_id: str, rule: str) -> Optional[str]:
        return self.all().get(scope_id, {}).get(rule)

    def set(self, scope_id: str, rule: str, category: str) -> None:
        with self._lock:
            data = self.all()
            data.setdefault(scope_id, {})[rule] = category
            write_json_document(self._path, data)

    def delete(self, scope_id: str, rule: str) -> None:
        with self._lock:
            data = self.all()
            mapping = data.get(scope_id)
            if not mapping or rule not in mapping:
                return
            del mapping[rule]
            if not mapping:
                del data[scope_id]
            write_json_document(self._path, data)


__all__ = [
    "JsonCategoryStore",
    "JsonSettingsStore",
    "read_json_document",
    "write_json_document",
]
