"""Tests for scopecore.cascade."""

from __future__ import annotations

import logging

import pytest

from scopecore import (
    CascadeEngine,
    PartialCascadeFailure,
    Scope,
    ScopeStoreAdapter,
    StaticProjectDiscovery,
    StoreUnavailableError,
    UnknownScopeError,
)
from scopecore.discovery import ProjectDiscovery, ProjectInfo
from scopecore.stores import InMemorySettingsStore

AREAS = ("alpha", "beta")
P1 = "/home/me/alpha/p1"
P2 = "/home/me/beta/p2"
P3 = "/home/me/beta/p3"


class FailingStore(InMemorySettingsStore):
    """In-memory store that refuses writes to some scope ids."""

    def __init__(self, failing: set[str], **kwargs) -> None:
        super().__init__(**kwargs)
        self.failing = failing

    def write(self, scope_id: str, rules: list[str]) -> None:
        if scope_id in self.failing:
            raise StoreUnavailableError(f"disk full: {scope_id}", scope=scope_id)
        super().write(scope_id, rules)


class BrokenDiscovery(ProjectDiscovery):
    def list_projects(self, area: str) -> list[ProjectInfo]:
        raise OSError("permission denied")


def make_discovery() -> StaticProjectDiscovery:
    return StaticProjectDiscovery({"alpha": [P1], "beta": [P2, P3]})


def make_engine(store: InMemorySettingsStore, discovery: ProjectDiscovery | None = None, workers: int = 1) -> CascadeEngine:
    adapter = ScopeStoreAdapter(store, known_areas=AREAS)
    return CascadeEngine(adapter, discovery or make_discovery(), AREAS, workers=workers)


ALL_SCOPE_IDS = ["global", "area:alpha", "area:beta", f"project:{P1}", f"project:{P2}", f"project:{P3}"]


class TestAffectedScopes:
    """Tests for descendant computation."""

    def test_global_reaches_every_area_and_project(self) -> None:
        scopes, failures = make_engine(InMemorySettingsStore()).affected_scopes("global")
        assert [s.scope_id for s in scopes] == ALL_SCOPE_IDS[1:]
        assert failures == []

    def test_area_reaches_its_projects_only(self) -> None:
        scopes, _ = make_engine(InMemorySettingsStore()).affected_scopes("area:beta")
        assert [s.scope_id for s in scopes] == [f"project:{P2}", f"project:{P3}"]

    def test_project_is_a_leaf(self) -> None:
        scopes, failures = make_engine(InMemorySettingsStore()).affected_scopes(f"project:{P1}")
        assert scopes == []
        assert failures == []

    def test_discovery_is_fresh(self) -> None:
        discovery = make_discovery()
        engine = make_engine(InMemorySettingsStore(), discovery)
        discovery.add_project("alpha", "/home/me/alpha/p4")
        scopes, _ = engine.affected_scopes("area:alpha")
        assert Scope.project("/home/me/alpha/p4") in scopes

    def test_duplicate_project_listed_once(self) -> None:
        discovery = StaticProjectDiscovery({"alpha": [P1], "beta": [P1]})
        scopes, _ = make_engine(InMemorySettingsStore(), discovery).affected_scopes("global")
        assert [s.scope_id for s in scopes].count(f"project:{P1}") == 1

    def test_discovery_failure_reported(self) -> None:
        scopes, failures = make_engine(InMemorySettingsStore(), BrokenDiscovery()).affected_scopes("global")
        assert [s.scope_id for s in scopes] == ["area:alpha", "area:beta"]
        assert [f.code for f in failures] == ["DISCOVERY_UNAVAILABLE", "DISCOVERY_UNAVAILABLE"]


class TestToggle:
    """Tests for CascadeEngine.toggle."""

    def test_global_enable_reaches_all_documents(self) -> None:
        store = InMemorySettingsStore()
        result = make_engine(store).toggle("global", "WebFetch", True)

        assert result.ok
        assert result.applied_scopes == ALL_SCOPE_IDS
        assert result.changed_scopes == ALL_SCOPE_IDS
        for scope_id in ALL_SCOPE_IDS:
            assert "WebFetch" in store.read(scope_id)

    def test_origin_first(self) -> None:
        result = make_engine(InMemorySettingsStore()).toggle("area:alpha", "Read", True)
        assert result.applied_scopes == ["area:alpha", f"project:{P1}"]

    def test_area_disable_leaves_global_and_siblings(self) -> None:
        rule = "Bash(git push)"
        store = InMemorySettingsStore.from_rules({scope_id: [rule] for scope_id in ALL_SCOPE_IDS})
        result = make_engine(store).toggle("area:alpha", rule, False)

        assert result.ok
        assert store.read("area:alpha") == []
        assert store.read(f"project:{P1}") == []
        for scope_id in ("global", "area:beta", f"project:{P2}", f"project:{P3}"):
            assert store.read(scope_id) == [rule]

    def test_project_toggle_touches_only_project(self) -> None:
        store = InMemorySettingsStore()
        result = make_engine(store).toggle(f"project:{P2}", "Edit", True)
        assert result.applied_scopes == [f"project:{P2}"]
        assert store.scope_ids() == [f"project:{P2}"]

    def test_idempotent_toggle_reports_no_changes(self) -> None:
        store = InMemorySettingsStore()
        engine = make_engine(store)
        engine.toggle("global", "Read", True)
        before = {scope_id: store.document(scope_id) for scope_id in store.scope_ids()}

        result = engine.toggle("global", "Read", True)
        assert result.changed_scopes == []
        assert result.applied_scopes == ALL_SCOPE_IDS
        assert {scope_id: store.document(scope_id) for scope_id in store.scope_ids()} == before

    def test_partial_failure_collected(self, caplog: pytest.LogCaptureFixture) -> None:
        store = FailingStore({f"project:{P2}"})
        with caplog.at_level(logging.WARNING, logger="scopecore.cascade"):
            result = make_engine(store).toggle("global", "Read", True)

        assert not result.ok
        assert [f.scope_id for f in result.failures] == [f"project:{P2}"]
        assert result.failures[0].code == "STORE_UNAVAILABLE"
        assert f"project:{P2}" not in result.applied_scopes
        # Every other descendant still got the rule
        for scope_id in ALL_SCOPE_IDS:
            if scope_id != f"project:{P2}":
                assert store.read(scope_id) == ["Read"]
        assert any("Descendant write failed" in r.getMessage() for r in caplog.records)

    def test_raise_for_failures(self) -> None:
        result = make_engine(FailingStore({"area:beta"})).toggle("global", "Read", True)
        with pytest.raises(PartialCascadeFailure) as exc_info:
            result.raise_for_failures()
        assert exc_info.value.details["failures"][0]["scope_id"] == "area:beta"

    def test_origin_failure_aborts(self) -> None:
        store = FailingStore({"area:alpha"})
        with pytest.raises(StoreUnavailableError):
            make_engine(store).toggle("area:alpha", "Read", True)
        assert store.read(f"project:{P1}") == []

    def test_unknown_origin_rejected(self) -> None:
        store = InMemorySettingsStore()
        with pytest.raises(UnknownScopeError):
            make_engine(store).toggle("area:gamma", "Read", True)
        assert store.scope_ids() == []

    def test_threaded_fan_out_matches_sequential(self) -> None:
        sequential = InMemorySettingsStore()
        threaded = InMemorySettingsStore()
        seq_result = make_engine(sequential).toggle("global", "Read", True)
        thr_result = make_engine(threaded, workers=4).toggle("global", "Read", True)

        assert thr_result.applied_scopes == seq_result.applied_scopes
        for scope_id in ALL_SCOPE_IDS:
            assert threaded.read(scope_id) == sequential.read(scope_id)

    def test_discovery_failure_does_not_block_areas(self) -> None:
        store = InMemorySettingsStore()
        result = make_engine(store, BrokenDiscovery()).toggle("global", "Read", True)
        assert result.applied_scopes == ["global", "area:alpha", "area:beta"]
        assert len(result.failures) == 2
