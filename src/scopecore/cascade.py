"""Cascade of a rule toggle from a scope to all of its descendants.

A toggle ``(origin, rule, enabled)`` runs as:

1. Apply at ``origin``. If that write fails the error propagates and no
   descendant is touched.
2. Compute descendants with a fresh discovery query:
   global -> every area plus every project of every area;
   area -> the projects currently under it; project -> nothing.
3. Apply the same toggle to each descendant independently. Failures are
   collected and returned, never raised, so one bad document does not stop
   the rest of the fan-out.

The cascade is not atomic. A partially applied cascade shows up as drift
(see :mod:`scopecore.drift`) and is repaired by reconciliation.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from .adapter import ScopeStoreAdapter
from .discovery import ProjectDiscovery
from .exceptions import PartialCascadeFailure, ScopeCoreError, StoreUnavailableError
from .logging import get_scope_logger, safe_preview
from .scopes import Scope, ScopeKind

logger = logging.getLogger(__name__)


class StoreFailure(BaseModel):
    """A write that did not happen. Reported, never raised."""

    scope_id: str
    code: str = StoreUnavailableError.code
    message: str = ""

    @classmethod
    def from_error(cls, scope_id: str, error: Exception) -> "StoreFailure":
        if isinstance(error, ScopeCoreError):
            return cls(scope_id=scope_id, code=error.code, message=error.message)
        return cls(scope_id=scope_id, code=StoreUnavailableError.code, message=str(error))


class CascadeResult(BaseModel):
    """Outcome of one toggle request.

    ``applied_scopes`` lists every scope whose document now reflects the
    toggle (origin first), whether or not it had to be rewritten;
    ``changed_scopes`` is the subset that was actually written.
    """

    origin: str
    rule: str
    enabled: bool
    applied_scopes: list[str] = Field(default_factory=list)
    changed_scopes: list[str] = Field(default_factory=list)
    failures: list[StoreFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise PartialCascadeFailure if any descendant write failed."""
        if self.failures:
            raise PartialCascadeFailure(
                failures=[f.model_dump() for f in self.failures],
                origin=self.origin,
                rule=self.rule,
            )


class CascadeEngine:
    """Applies rule toggles top-down through the scope hierarchy.

    Args:
        adapter: Scope store adapter used for every write.
        discovery: Project discovery, queried fresh on every toggle.
        areas: Ordered area names (the children of the global scope).
        workers: Threads for descendant writes; 1 applies them sequentially.
    """

    def __init__(
        self,
        adapter: ScopeStoreAdapter,
        discovery: ProjectDiscovery,
        areas: Sequence[str],
        *,
        workers: int = 1,
    ) -> None:
        self._adapter = adapter
        self._discovery = discovery
        self._areas = tuple(areas)
        self._workers = max(1, workers)

    @property
    def areas(self) -> tuple[str, ...]:
        return self._areas

    def affected_scopes(self, origin: Scope | str) -> tuple[list[Scope], list[StoreFailure]]:
        """Descendants of ``origin`` from a fresh discovery query.

        Returns the descendant scopes (areas before projects, config order)
        and a failure entry for each area whose project listing could not be
        obtained.
        """
        resolved = self._adapter.resolve(origin)
        if resolved.kind is ScopeKind.PROJECT:
            return [], []

        if resolved.kind is ScopeKind.GLOBAL:
            scopes = [Scope.area(name) for name in self._areas]
            project_areas = self._areas
        else:
            scopes = []
            project_areas = (resolved.key,)

        failures: list[StoreFailure] = []
        seen: set[str] = set()
        for area in project_areas:
            try:
                projects = self._discovery.list_projects(area)
            except Exception as e:
                logger.warning("Project discovery failed for area '%s': %s", area, e)
                failures.append(
                    StoreFailure(scope_id=Scope.area(area).scope_id, code="DISCOVERY_UNAVAILABLE", message=str(e))
                )
                continue
            for project in projects:
                scope = project.scope
                if scope.scope_id not in seen:
                    seen.add(scope.scope_id)
                    scopes.append(scope)
        return scopes, failures

    def _apply_one(self, scope: Scope, rule: str, enabled: bool) -> tuple[Scope, Optional[bool], Optional[StoreFailure]]:
        try:
            changed = self._adapter.set_rule_enabled(scope, rule, enabled)
            return scope, changed, None
        except ScopeCoreError as e:
            return scope, None, StoreFailure.from_error(scope.scope_id, e)

    def toggle(self, origin: Scope | str, rule: str, enabled: bool) -> CascadeResult:
        """Apply a toggle at ``origin`` and cascade it to every descendant.

        Raises:
            UnknownScopeError: malformed origin (nothing written).
            StoreUnavailableError: the origin write failed (nothing cascaded).
        """
        resolved = self._adapter.resolve(origin)
        log = get_scope_logger(__name__, scope_id=resolved.scope_id, operation="cascade")

        try:
            origin_changed = self._adapter.set_rule_enabled(resolved, rule, enabled)
        except StoreUnavailableError as e:
            log.error("Origin write failed, cascade aborted: %s", e.message)
            raise

        result = CascadeResult(origin=resolved.scope_id, rule=rule, enabled=enabled)
        result.applied_scopes.append(resolved.scope_id)
        if origin_changed:
            result.changed_scopes.append(resolved.scope_id)

        descendants, discovery_failures = self.affected_scopes(resolved)
        result.failures.extend(discovery_failures)

        if self._workers > 1 and len(descendants) > 1:
            with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="scopecore-cascade") as pool:
                outcomes = list(pool.map(lambda s: self._apply_one(s, rule, enabled), descendants))
        else:
            outcomes = [self._apply_one(scope, rule, enabled) for scope in descendants]

        for scope, changed, failure in outcomes:
            if failure is not None:
                log.warning("Descendant write failed for %s: %s", scope.scope_id, failure.message)
                result.failures.append(failure)
                continue
            result.applied_scopes.append(scope.scope_id)
            if changed:
                result.changed_scopes.append(scope.scope_id)

        log.info(
            "%s %s: %d applied, %d changed, %d failed",
            "Enabled" if enabled else "Disabled",
            safe_preview(rule, limit=120),
            len(result.applied_scopes),
            len(result.changed_scopes),
            len(result.failures),
        )
        return result


__all__ = [
    "CascadeEngine",
    "CascadeResult",
    "StoreFailure",
]
