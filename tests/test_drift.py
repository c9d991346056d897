"""Tests for scopecore.drift."""

from __future__ import annotations

from scopecore import DriftDetector, ScopeStoreAdapter, StaticProjectDiscovery, StoreUnavailableError
from scopecore.drift import missing_rules
from scopecore.stores import InMemorySettingsStore

AREAS = ("alpha", "beta")


class FailingStore(InMemorySettingsStore):
    def __init__(self, failing: set[str], **kwargs) -> None:
        super().__init__(**kwargs)
        self.failing = failing

    def write(self, scope_id: str, rules: list[str]) -> None:
        if scope_id in self.failing:
            raise StoreUnavailableError("read-only", scope=scope_id)
        super().write(scope_id, rules)


def make_detector(store: InMemorySettingsStore, discovery: StaticProjectDiscovery | None = None) -> DriftDetector:
    return DriftDetector(ScopeStoreAdapter(store, known_areas=AREAS), AREAS, discovery)


class TestMissingRules:
    """Tests for missing_rules."""

    def test_set_difference_in_reference_order(self) -> None:
        assert missing_rules(["Read", "Edit", "Write"], ["Edit"]) == ["Read", "Write"]

    def test_duplicates_collapsed(self) -> None:
        assert missing_rules(["Read", "Read"], []) == ["Read"]


class TestComputeDrift:
    """Tests for DriftDetector.compute_drift."""

    def test_areas_fixed_at_construction(self) -> None:
        areas = ["alpha"]
        store = InMemorySettingsStore.from_rules({"global": ["Read"]})
        detector = DriftDetector(ScopeStoreAdapter(store, known_areas=AREAS), areas)
        areas.append("beta")

        assert detector.areas == ("alpha",)
        assert detector.compute_drift() == {"alpha": ["Read"]}

    def test_no_drift(self) -> None:
        store = InMemorySettingsStore.from_rules(
            {"global": ["Read"], "area:alpha": ["Read", "Edit"], "area:beta": ["Read"]}
        )
        assert make_detector(store).compute_drift() == {}

    def test_missing_area_document(self) -> None:
        store = InMemorySettingsStore.from_rules({"global": ["Read", "Edit"], "area:alpha": ["Read"]})
        assert make_detector(store).compute_drift() == {"alpha": ["Edit"], "beta": ["Read", "Edit"]}

    def test_area_only_rules_are_not_drift(self) -> None:
        store = InMemorySettingsStore.from_rules({"area:alpha": ["Bash(docker ps)"]})
        assert make_detector(store).compute_drift() == {}


class TestReconcile:
    """Tests for DriftDetector.reconcile."""

    def test_reconcile_then_no_drift(self) -> None:
        store = InMemorySettingsStore.from_rules(
            {"global": ["Read", "Edit"], "area:alpha": ["Bash(docker ps)"]}
        )
        detector = make_detector(store)
        result = detector.reconcile()

        assert result.ok
        assert result.areas_repaired == {"alpha": ["Read", "Edit"], "beta": ["Read", "Edit"]}
        assert detector.compute_drift() == {}
        # Area-only rules survive
        assert store.read("area:alpha") == ["Bash(docker ps)", "Read", "Edit"]

    def test_reconcile_in_sync_is_noop(self) -> None:
        store = InMemorySettingsStore.from_rules({"global": ["Read"], "area:alpha": ["Read"], "area:beta": ["Read"]})
        result = make_detector(store).reconcile()
        assert result.areas_repaired == {}
        assert result.failures == []

    def test_reconcile_failure_does_not_stop_others(self) -> None:
        store = FailingStore({"area:alpha"}, documents={"global": {"permissions": {"allow": ["Read"]}}})
        result = make_detector(store).reconcile()

        assert [f.scope_id for f in result.failures] == ["area:alpha"]
        assert result.areas_repaired == {"beta": ["Read"]}
        assert store.read("area:beta") == ["Read"]

    def test_reconcile_never_touches_projects(self) -> None:
        discovery = StaticProjectDiscovery({"alpha": ["/p1"]})
        store = InMemorySettingsStore.from_rules({"global": ["Read"]})
        make_detector(store, discovery).reconcile()
        assert store.read("project:/p1") == []


class TestComputeProjectDrift:
    """Tests for DriftDetector.compute_project_drift."""

    def test_reports_area_rules_missing_from_projects(self) -> None:
        discovery = StaticProjectDiscovery({"alpha": ["/p1", "/p2"]})
        store = InMemorySettingsStore.from_rules({"area:alpha": ["Read", "Edit"], "project:/p2": ["Read", "Edit"]})
        assert make_detector(store, discovery).compute_project_drift() == {"project:/p1": ["Read", "Edit"]}

    def test_without_discovery(self) -> None:
        store = InMemorySettingsStore.from_rules({"area:alpha": ["Read"]})
        assert make_detector(store).compute_project_drift() == {}
