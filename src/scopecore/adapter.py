"""Scope-aware read/modify/write over a SettingsStore.

Every mutation is one read followed by at most one write of one scope's
document. Nothing is batched across scopes and nothing is cached: each call
fetches the current document from the store.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .exceptions import ScopeCoreError, StoreUnavailableError
from .logging import get_scope_logger, safe_preview
from .scopes import Scope, coerce_scope
from .stores.base import SettingsStore


class ScopeStoreAdapter:
    """Allow-list operations keyed by :class:`Scope`.

    Args:
        store: Backing settings store.
        known_areas: Area names accepted in scope identifiers. ``None`` accepts any.
    """

    def __init__(self, store: SettingsStore, known_areas: Optional[Iterable[str]] = None) -> None:
        self._store = store
        self._known_areas = tuple(known_areas) if known_areas is not None else None

    @property
    def store(self) -> SettingsStore:
        return self._store

    def resolve(self, scope: Scope | str) -> Scope:
        """Validate a scope before any I/O (raises UnknownScopeError)."""
        return coerce_scope(scope, self._known_areas)

    def read_rules(self, scope: Scope | str) -> list[str]:
        """Current allow list for ``scope``; ``[]`` when the scope has no record."""
        resolved = self.resolve(scope)
        try:
            return list(self._store.read(resolved.scope_id))
        except ScopeCoreError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Read failed for {resolved.scope_id}: {e}", scope=resolved.scope_id) from e

    def _write(self, scope: Scope, rules: list[str]) -> None:
        try:
            self._store.write(scope.scope_id, rules)
        except ScopeCoreError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Write failed for {scope.scope_id}: {e}", scope=scope.scope_id) from e

    def set_rule_enabled(self, scope: Scope | str, rule: str, enabled: bool) -> bool:
        """Add or remove one rule at one scope.

        Enabling appends the rule unless it is already present. Disabling
        removes every exact-text occurrence. An allow list left empty is
        pruned from the stored document by the store.

        Returns:
            True if the document was written, False for a no-op.

        Raises:
            UnknownScopeError: malformed scope (no I/O attempted).
            StoreUnavailableError: read or write failed.
        """
        resolved = self.resolve(scope)
        log = get_scope_logger(__name__, scope_id=resolved.scope_id, operation="set_rule_enabled")

        current = self.read_rules(resolved)
        if enabled:
            if rule in current:
                return False
            updated = current + [rule]
        else:
            if rule not in current:
                return False
            updated = [r for r in current if r != rule]

        self._write(resolved, updated)
        log.debug("%s rule %s", "Enabled" if enabled else "Disabled", safe_preview(rule, limit=120))
        return True

    def merge_rules(self, scope: Scope | str, rules: Iterable[str]) -> list[str]:
        """Union ``rules`` into the scope's allow list with a single write.

        Rules already present are left where they are; new ones are appended
        in the given order.

        Returns:
            The rules that were actually added (empty list = no write).
        """
        resolved = self.resolve(scope)
        current = self.read_rules(resolved)
        present = set(current)
        added: list[str] = []
        for rule in rules:
            if rule not in present:
                present.add(rule)
                added.append(rule)
        if added:
            self._write(resolved, current + added)
            get_scope_logger(__name__, scope_id=resolved.scope_id, operation="merge_rules").debug(
                "Merged %d rules", len(added)
            )
        return added


__all__ = ["ScopeStoreAdapter"]
