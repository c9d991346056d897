"""Collaborator contracts for scope documents and custom category labels.

The engine only needs ``read``/``write`` of an ordered rule list per scope id
and ``get``/``set``/``delete`` of a category label per ``(scope id, rule)``.
Stores give last-write-wins semantics and no cross-document transactions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional


class SettingsStore(ABC):
    """Per-scope document holding an ordered allow list."""

    @abstractmethod
    def read(self, scope_id: str) -> list[str]:
        """Return the stored allow list, ``[]`` when the scope has no record.

        Raises:
            StoreUnavailableError: the document exists but cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    def write(self, scope_id: str, rules: list[str]) -> None:
        """Replace the allow list; an empty list prunes it from the document.

        Raises:
            StoreUnavailableError: the document cannot be written.
        """
        raise NotImplementedError


class CategoryMappingStore(ABC):
    """Human-assigned category labels for custom rules, keyed by scope id."""

    @abstractmethod
    def get(self, scope_id: str, rule: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, scope_id: str, rule: str, category: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, scope_id: str, rule: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def all(self) -> dict[str, dict[str, str]]:
        """Every mapping as ``{scope_id: {rule: category}}``."""
        raise NotImplementedError


def apply_allow_list(document: dict[str, Any], rules: list[str]) -> dict[str, Any]:
    """Return a copy of a settings document with ``permissions.allow`` replaced.

    Other keys (including ``permissions.deny``) are preserved. An empty rule
    list removes ``allow``; a ``permissions`` object left empty is removed too.
    """
    new_doc = dict(document)
    permissions = dict(new_doc.get("permissions") or {})
    if rules:
        permissions["allow"] = list(rules)
    else:
        permissions.pop("allow", None)

    if permissions:
        new_doc["permissions"] = permissions
    else:
        new_doc.pop("permissions", None)
    return new_doc


def extract_allow_list(document: dict[str, Any] | None) -> list[str]:
    if not document:
        return []
    permissions = document.get("permissions") or {}
    allow = permissions.get("allow") or []
    return [rule for rule in allow if isinstance(rule, str)]


__all__ = [
    "CategoryMappingStore",
    "SettingsStore",
    "apply_allow_list",
    "extract_allow_list",
]
