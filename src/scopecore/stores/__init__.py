"""Settings and category-mapping stores.

``create_stores(config)`` picks the backend named by ``config.store_backend``.
"""

from __future__ import annotations

from ..config import ScopeCoreConfig
from .base import CategoryMappingStore, SettingsStore, apply_allow_list, extract_allow_list
from .json_file import JsonCategoryStore, JsonSettingsStore
from .memory import InMemoryCategoryStore, InMemorySettingsStore
from .redis_store import RedisCategoryStore, RedisSettingsStore, connect


def create_stores(config: ScopeCoreConfig) -> tuple[SettingsStore, CategoryMappingStore]:
    """Build the settings and category stores for the configured backend."""
    if config.store_backend == "redis":
        client = connect(config.redis_url or "")
        return (
            RedisSettingsStore(client, config.redis_prefix),
            RedisCategoryStore(client, config.redis_prefix),
        )
    return JsonSettingsStore(config), JsonCategoryStore(config.category_store_path)


__all__ = [
    "CategoryMappingStore",
    "InMemoryCategoryStore",
    "InMemorySettingsStore",
    "JsonCategoryStore",
    "JsonSettingsStore",
    "RedisCategoryStore",
    "RedisSettingsStore",
    "SettingsStore",
    "apply_allow_list",
    "create_stores",
    "extract_allow_list",
]
