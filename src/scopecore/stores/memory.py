"""In-process stores, for embedding and for tests."""

from __future__ import annotations

import copy
import threading
from typing import Any, Optional

from .base import CategoryMappingStore, SettingsStore, apply_allow_list, extract_allow_list


class InMemorySettingsStore(SettingsStore):
    """Settings documents held in a dict keyed by scope id.

    Documents have the same shape as the JSON files, so pruning behaviour
    can be asserted on ``document()``.
    """

    def __init__(self, documents: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self._documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self._lock = threading.Lock()

    @classmethod
    def from_rules(cls, rules_by_scope: dict[str, list[str]]) -> "InMemorySettingsStore":
        return cls({scope_id: apply_allow_list({}, rules) for scope_id, rules in rules_by_scope.items()})

    def document(self, scope_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            doc = self._documents.get(scope_id)
            return copy.deepcopy(doc) if doc is not None else None

    def scope_ids(self) -> list[str]:
        with self._lock:
            return list(self._documents)

    def read(self, scope_id: str) -> list[str]:
        with self._lock:
            return extract_allow_list(self._documents.get(scope_id))

    def write(self, scope_id: str, rules: list[str]) -> None:
        with self._lock:
            new_doc = apply_allow_list(self._documents.get(scope_id) or {}, rules)
            if new_doc:
                self._documents[scope_id] = new_doc
            else:
                self._documents.pop(scope_id, None)


class InMemoryCategoryStore(CategoryMappingStore):
    def __init__(self) -> None:
        self._mappings: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    def get(self, scope_id: str, rule: str) -> Optional[str]:
        with self._lock:
            return self._mappings.get(scope_id, {}).get(rule)

    def set(self, scope_id: str, rule: str, category: str) -> None:
        with self._lock:
            self._mappings.setdefault(scope_id, {})[rule] = category

    def delete(self, scope_id: str, rule: str) -> None:
        with self._lock:
            mapping = self._mappings.get(scope_id)
            if mapping is None:
                return
            mapping.pop(rule, None)
            if not mapping:
                del self._mappings[scope_id]

    def all(self) -> dict[str, dict[str, str]]:
        with self._lock:
            return {scope_id: dict(mapping) for scope_id, mapping in self._mappings.items()}


__all__ = [
    "InMemoryCategoryStore",
    "InMemorySettingsStore",
]
