"""Tests for scopecore.stores (JSON files, in-memory, Redis)."""

from __future__ import annotations

import fnmatch
import json
import threading
from pathlib import Path
from typing import Any, Optional
from unittest.mock import patch

import pytest

from scopecore import AreaDefinition, ScopeCoreConfig, StoreUnavailableError, UnknownScopeError
from scopecore.adapter import ScopeStoreAdapter
from scopecore.stores import (
    InMemoryCategoryStore,
    InMemorySettingsStore,
    JsonCategoryStore,
    JsonSettingsStore,
    RedisCategoryStore,
    RedisSettingsStore,
    apply_allow_list,
    create_stores,
    extract_allow_list,
)
from scopecore.stores.json_file import read_json_document, write_json_document


@pytest.fixture
def config(tmp_path: Path) -> ScopeCoreConfig:
    return ScopeCoreConfig(
        global_settings_path=tmp_path / ".claude" / "settings.json",
        areas=[
            AreaDefinition.under_home("alpha", home=tmp_path),
            AreaDefinition.under_home("beta", home=tmp_path),
        ],
        category_store_path=tmp_path / ".claude" / "categories.json",
    )


class FakeRedis:
    """Just enough of redis.Redis (decode_responses=True) for the stores."""

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}

    def get(self, key: str) -> Optional[str]:
        return self.strings.get(key)

    def set(self, key: str, value: str) -> None:
        self.strings[key] = value

    def delete(self, key: str) -> None:
        self.strings.pop(key, None)
        self.hashes.pop(key, None)

    def hget(self, key: str, field: str) -> Optional[str]:
        return self.hashes.get(key, {}).get(field)

    def hset(self, key: str, field: str, value: str) -> None:
        self.hashes.setdefault(key, {})[field] = value

    def hdel(self, key: str, field: str) -> None:
        mapping = self.hashes.get(key, {})
        mapping.pop(field, None)
        if not mapping:
            self.hashes.pop(key, None)

    def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))

    def keys(self, pattern: str) -> list[str]:
        return [k for k in list(self.strings) + list(self.hashes) if fnmatch.fnmatch(k, pattern)]


class TestAllowListHelpers:
    """Tests for apply_allow_list / extract_allow_list."""

    def test_preserves_other_keys(self) -> None:
        doc = {"model": "x", "permissions": {"allow": ["Read"], "deny": ["Bash(rm:*)"]}}
        new_doc = apply_allow_list(doc, ["Read", "Edit"])
        assert new_doc == {"model": "x", "permissions": {"allow": ["Read", "Edit"], "deny": ["Bash(rm:*)"]}}
        # Input untouched
        assert doc["permissions"]["allow"] == ["Read"]

    def test_empty_list_prunes_allow_only(self) -> None:
        doc = {"permissions": {"allow": ["Read"], "deny": ["Bash(rm:*)"]}}
        assert apply_allow_list(doc, []) == {"permissions": {"deny": ["Bash(rm:*)"]}}

    def test_empty_permissions_pruned(self) -> None:
        doc = {"env": {"A": "1"}, "permissions": {"allow": ["Read"]}}
        assert apply_allow_list(doc, []) == {"env": {"A": "1"}}

    def test_extract(self) -> None:
        assert extract_allow_list(None) == []
        assert extract_allow_list({}) == []
        assert extract_allow_list({"permissions": {"allow": ["Read", 3, "Edit"]}}) == ["Read", "Edit"]


class TestJsonDocuments:
    """Tests for the JSON read/write helpers."""

    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_json_document(tmp_path / "nope.json") is None

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.json"
        path.write_text("  \n")
        assert read_json_document(path) is None

    def test_malformed_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(StoreUnavailableError, match="Malformed JSON"):
            read_json_document(path)

    def test_non_object(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(StoreUnavailableError):
            read_json_document(path)

    def test_write_creates_parents_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "settings.json"
        write_json_document(path, {"permissions": {"allow": ["Read"]}})
        assert json.loads(path.read_text()) == {"permissions": {"allow": ["Read"]}}
        assert [p.name for p in path.parent.iterdir()] == ["settings.json"]

    def test_failed_replace_keeps_previous_document(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        write_json_document(path, {"permissions": {"allow": ["Read"]}})
        with patch("scopecore.stores.json_file.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreUnavailableError, match="disk full"):
                write_json_document(path, {"permissions": {"allow": ["Edit"]}})
        assert json.loads(path.read_text()) == {"permissions": {"allow": ["Read"]}}
        assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]


class TestJsonSettingsStore:
    """Tests for JsonSettingsStore."""

    def test_paths(self, config: ScopeCoreConfig, tmp_path: Path) -> None:
        store = JsonSettingsStore(config)
        assert store.path_for("global") == tmp_path / ".claude" / "settings.json"
        assert store.path_for("area:alpha") == tmp_path / ".claude-alpha" / "settings.json"
        assert store.path_for("project:/srv/app") == Path("/srv/app/.claude/settings.json")
        assert store.path_for("/srv/app") == Path("/srv/app/.claude/settings.json")

    def test_unknown_area(self, config: ScopeCoreConfig) -> None:
        with pytest.raises(UnknownScopeError):
            JsonSettingsStore(config).path_for("area:gamma")

    def test_missing_document_reads_empty(self, config: ScopeCoreConfig) -> None:
        assert JsonSettingsStore(config).read("area:beta") == []

    def test_write_preserves_unrelated_keys(self, config: ScopeCoreConfig, tmp_path: Path) -> None:
        path = tmp_path / ".claude-alpha" / "settings.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"model": "opus", "permissions": {"allow": ["Read"], "deny": ["Bash(rm:*)"]}}))

        store = JsonSettingsStore(config)
        store.write("area:alpha", ["Read", "Edit"])
        assert json.loads(path.read_text()) == {
            "model": "opus",
            "permissions": {"allow": ["Read", "Edit"], "deny": ["Bash(rm:*)"]},
        }

        store.write("area:alpha", [])
        assert json.loads(path.read_text()) == {"model": "opus", "permissions": {"deny": ["Bash(rm:*)"]}}

    def test_project_document(self, config: ScopeCoreConfig, tmp_path: Path) -> None:
        project = tmp_path / "alpha" / "p1"
        project.mkdir(parents=True)
        store = JsonSettingsStore(config)
        store.write(f"project:{project}", ["Bash(git push)"])
        assert store.read(str(project)) == ["Bash(git push)"]
        assert (project / ".claude" / "settings.json").exists()

    def test_concurrent_writers_leave_valid_document(self, config: ScopeCoreConfig, tmp_path: Path) -> None:
        """Two threads toggling different rules on one document never corrupt it."""
        adapter = ScopeStoreAdapter(JsonSettingsStore(config), known_areas=config.area_names)
        errors: list[BaseException] = []

        def toggle_many(rule: str) -> None:
            try:
                for i in range(40):
                    adapter.set_rule_enabled("global", rule, i % 2 == 0)
            except BaseException as e:  # pragma: no cover - surfaced via errors
                errors.append(e)

        threads = [threading.Thread(target=toggle_many, args=(rule,)) for rule in ("Read", "Edit")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        path = tmp_path / ".claude" / "settings.json"
        doc = json.loads(path.read_text())
        assert isinstance(doc, dict)
        assert set(extract_allow_list(doc)) <= {"Read", "Edit"}
        assert [p.name for p in path.parent.iterdir() if p.name.endswith(".tmp")] == []


class TestJsonCategoryStore:
    """Tests for JsonCategoryStore."""

    def test_set_get_delete(self, tmp_path: Path) -> None:
        store = JsonCategoryStore(tmp_path / "categories.json")
        assert store.all() == {}
        store.set("global", "Bash(docker ps)", "Containers")
        store.set("area:alpha", "Bash(make)", "Build & Lint")
        assert store.get("global", "Bash(docker ps)") == "Containers"
        assert store.get("global", "missing") is None

        store.delete("global", "Bash(docker ps)")
        assert store.all() == {"area:alpha": {"Bash(make)": "Build & Lint"}}

    def test_delete_missing_is_noop(self, tmp_path: Path) -> None:
        store = JsonCategoryStore(tmp_path / "categories.json")
        store.delete("global", "Read")
        assert not store.path.exists()

    def test_concurrent_writers_at_different_scopes_keep_every_label(self, tmp_path: Path) -> None:
        """Labels set at different scopes from many threads all survive."""
        store = JsonCategoryStore(tmp_path / "categories.json")
        workers = 8
        rounds = 10
        barrier = threading.Barrier(workers, timeout=10)
        errors: list[BaseException] = []

        def label_many(n: int) -> None:
            try:
                for i in range(rounds):
                    barrier.wait()
                    store.set(f"area:a{n}", f"Bash(docker ps {i})", "Containers")
            except BaseException as e:  # pragma: no cover - surfaced via errors
                errors.append(e)

        threads = [threading.Thread(target=label_many, args=(n,)) for n in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        mappings = store.all()
        assert sorted(mappings) == sorted(f"area:a{n}" for n in range(workers))
        assert all(len(labels) == rounds for labels in mappings.values())


class TestInMemoryStores:
    """Tests for the in-memory stores."""

    def test_settings_document_shape(self) -> None:
        store = InMemorySettingsStore.from_rules({"global": ["Read"]})
        assert store.document("global") == {"permissions": {"allow": ["Read"]}}
        store.write("global", [])
        assert store.document("global") is None
        assert store.scope_ids() == []

    def test_deny_preserved(self) -> None:
        store = InMemorySettingsStore({"global": {"permissions": {"allow": ["Read"], "deny": ["WebFetch"]}}})
        store.write("global", [])
        assert store.document("global") == {"permissions": {"deny": ["WebFetch"]}}

    def test_category_store(self) -> None:
        store = InMemoryCategoryStore()
        store.set("global", "Bash(docker ps)", "Containers")
        assert store.all() == {"global": {"Bash(docker ps)": "Containers"}}
        store.delete("global", "Bash(docker ps)")
        assert store.all() == {}


class TestRedisStores:
    """Tests for the Redis-backed stores against a fake client."""

    def test_settings_round_trip(self) -> None:
        client = FakeRedis()
        store = RedisSettingsStore(client, prefix="t")
        assert store.read("global") == []
        store.write("global", ["Read", "Edit"])
        assert json.loads(client.strings["t:settings:global"]) == {"permissions": {"allow": ["Read", "Edit"]}}
        assert store.read("global") == ["Read", "Edit"]

    def test_empty_document_deletes_key(self) -> None:
        client = FakeRedis()
        store = RedisSettingsStore(client)
        store.write("area:alpha", ["Read"])
        store.write("area:alpha", [])
        assert "scopecore:settings:area:alpha" not in client.strings

    def test_client_error_wrapped(self) -> None:
        class Broken(FakeRedis):
            def get(self, key: str) -> Optional[str]:
                raise ConnectionError("refused")

        with pytest.raises(StoreUnavailableError, match="refused"):
            RedisSettingsStore(Broken()).read("global")

    def test_malformed_document(self) -> None:
        client = FakeRedis()
        client.strings["scopecore:settings:global"] = "nope"
        with pytest.raises(StoreUnavailableError, match="Malformed"):
            RedisSettingsStore(client).read("global")

    def test_category_store(self) -> None:
        client = FakeRedis()
        store = RedisCategoryStore(client)
        store.set("project:/srv/app", "Bash(docker ps)", "Containers")
        store.set("global", "Bash(make)", "Build & Lint")
        assert store.get("project:/srv/app", "Bash(docker ps)") == "Containers"
        assert store.all() == {
            "project:/srv/app": {"Bash(docker ps)": "Containers"},
            "global": {"Bash(make)": "Build & Lint"},
        }
        store.delete("global", "Bash(make)")
        assert "global" not in store.all()


class TestCreateStores:
    """Tests for backend selection."""

    def test_json_default(self, config: ScopeCoreConfig) -> None:
        settings, categories = create_stores(config)
        assert isinstance(settings, JsonSettingsStore)
        assert isinstance(categories, JsonCategoryStore)

    def test_redis_backend(self, config: ScopeCoreConfig) -> None:
        redis_config = config.model_copy(update={"store_backend": "redis", "redis_url": "redis://localhost:6379/0"})
        fake: Any = FakeRedis()
        with patch("scopecore.stores.connect", return_value=fake) as connect:
            settings, categories = create_stores(redis_config)
        connect.assert_called_once_with("redis://localhost:6379/0")
        assert isinstance(settings, RedisSettingsStore)
        assert isinstance(categories, RedisCategoryStore)
