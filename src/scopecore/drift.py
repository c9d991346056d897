"""Drift detection between the global tier and the area tier, and its repair.

Drift is a rule enabled at global that is missing from an area's document.
It appears when a cascade write to the area failed, when the area document
was edited by hand, or when the area was added after the rule.

Reconciliation only tops up the area tier. Project documents are reported by
``compute_project_drift()`` but never rewritten here; pushing rules into
projects is an explicit per-project toggle.
"""

from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel, Field

from .adapter import ScopeStoreAdapter
from .cascade import StoreFailure
from .discovery import ProjectDiscovery
from .exceptions import ScopeCoreError
from .logging import get_scope_logger
from .scopes import Scope


class ReconcileResult(BaseModel):
    """Outcome of a reconcile run.

    ``areas_repaired`` maps each repaired area to the rules that were added.
    """

    areas_repaired: dict[str, list[str]] = Field(default_factory=dict)
    failures: list[StoreFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def missing_rules(reference: Sequence[str], target: Sequence[str]) -> list[str]:
    """``reference \\ target`` by exact text, in reference order, without repeats."""
    present = set(target)
    return [rule for rule in dict.fromkeys(reference) if rule not in present]


class DriftDetector:
    """Compares global against each area and repairs the difference.

    Args:
        adapter: Scope store adapter.
        areas: Area names to check, fixed at construction. Each call diffs
            them against the global set as it is stored at that moment.
        discovery: Needed only for :meth:`compute_project_drift`.
    """

    def __init__(
        self,
        adapter: ScopeStoreAdapter,
        areas: Sequence[str],
        discovery: ProjectDiscovery | None = None,
    ) -> None:
        self._adapter = adapter
        self._areas = tuple(areas)
        self._discovery = discovery

    @property
    def areas(self) -> tuple[str, ...]:
        return self._areas

    def compute_drift(self) -> dict[str, list[str]]:
        """Rules present at global but missing from each area.

        Areas with nothing missing are omitted, so an empty dict means the
        area tier is in sync.

        Raises:
            StoreUnavailableError: a scope document could not be read.
        """
        global_rules = self._adapter.read_rules(Scope.global_())
        drift: dict[str, list[str]] = {}
        for area in self._areas:
            missing = missing_rules(global_rules, self._adapter.read_rules(Scope.area(area)))
            if missing:
                drift[area] = missing
        return drift

    def compute_project_drift(self) -> dict[str, list[str]]:
        """Rules present at an area but missing from a project under it.

        Keyed by project scope id; projects with nothing missing are omitted.
        Informational only: :meth:`reconcile` does not act on it.
        """
        if self._discovery is None:
            return {}
        drift: dict[str, list[str]] = {}
        for area in self._areas:
            area_rules = self._adapter.read_rules(Scope.area(area))
            if not area_rules:
                continue
            for project in self._discovery.list_projects(area):
                missing = missing_rules(area_rules, self._adapter.read_rules(project.scope))
                if missing:
                    drift[project.scope.scope_id] = missing
        return drift

    def reconcile(self) -> ReconcileResult:
        """Union the missing global rules into each drifted area.

        One read-modify-write per drifted area; rules that only exist at the
        area are kept. A failing area is reported and the others proceed.

        Raises:
            StoreUnavailableError: the initial drift computation failed.
        """
        log = get_scope_logger(__name__, operation="reconcile")
        result = ReconcileResult()

        for area, missing in self.compute_drift().items():
            scope = Scope.area(area)
            try:
                added = self._adapter.merge_rules(scope, missing)
            except ScopeCoreError as e:
                log.warning("Reconcile failed for %s: %s", scope.scope_id, e.message, scope_id=scope.scope_id)
                result.failures.append(StoreFailure.from_error(scope.scope_id, e))
                continue
            if added:
                result.areas_repaired[area] = added
                log.info("Restored %d rules", len(added), scope_id=scope.scope_id)

        return result


__all__ = [
    "DriftDetector",
    "ReconcileResult",
    "missing_rules",
]
