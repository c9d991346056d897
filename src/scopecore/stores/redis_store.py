"""Redis-backed stores.

Keys (``prefix`` defaults to ``scopecore``)::

    {prefix}:settings:{scope_id}     JSON settings document (same shape as settings.json)
    {prefix}:categories:{scope_id}   hash of rule -> category label

A settings document that becomes empty is deleted rather than stored as ``{}``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..exceptions import ConfigurationError, StoreUnavailableError
from .base import CategoryMappingStore, SettingsStore, apply_allow_list, extract_allow_list

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "scopecore"


def connect(redis_url: str) -> Any:
    """Create a synchronous Redis client with string responses.

    Raises:
        ConfigurationError: the ``redis`` package is not installed.
    """
    try:
        import redis as redis_sync
    except ImportError as e:
        raise ConfigurationError(
            "store_backend='redis' requires the 'redis' package (pip install scopecore[redis])"
        ) from e
    return redis_sync.from_url(redis_url, decode_responses=True)


class RedisSettingsStore(SettingsStore):
    """Settings documents stored as JSON strings, one key per scope."""

    def __init__(self, client: Any, prefix: str = DEFAULT_PREFIX) -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str, prefix: str = DEFAULT_PREFIX) -> "RedisSettingsStore":
        return cls(connect(redis_url), prefix)

    def key_for(self, scope_id: str) -> str:
        return f"{self._prefix}:settings:{scope_id}"

    def read_document(self, scope_id: str) -> Optional[dict[str, Any]]:
        key = self.key_for(scope_id)
        try:
            raw = self._client.get(key)
        except Exception as e:
            raise StoreUnavailableError(f"Redis read failed for {key}: {e}", scope=scope_id) from e
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreUnavailableError(f"Malformed settings document at {key}: {e}", scope=scope_id) from e
        if not isinstance(data, dict):
            raise StoreUnavailableError(f"Expected a JSON object at {key}", scope=scope_id)
        return data

    def read(self, scope_id: str) -> list[str]:
        return extract_allow_list(self.read_document(scope_id))

    def write(self, scope_id: str, rules: list[str]) -> None:
        key = self.key_for(scope_id)
        new_doc = apply_allow_list(self.read_document(scope_id) or {}, rules)
        try:
            if new_doc:
                self._client.set(key, json.dumps(new_doc))
            else:
                self._client.delete(key)
        except Exception as e:
            raise StoreUnavailableError(f"Redis write failed for {key}: {e}", scope=scope_id) from e
        logger.debug("Wrote %d rules to %s", len(rules), key)


class RedisCategoryStore(CategoryMappingStore):
    """Custom category labels stored as one hash per scope."""

    def __init__(self, client: Any, prefix: str = DEFAULT_PREFIX) -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str, prefix: str = DEFAULT_PREFIX) -> "RedisCategoryStore":
        return cls(connect(redis_url), prefix)

    def key_for(self, scope_id: str) -> str:
        return f"{self._prefix}:categories:{scope_id}"

    def get(self, scope_id: str, rule: str) -> Optional[str]:
        try:
            return self._client.hget(self.key_for(scope_id), rule)
        except Exception as e:
            raise StoreUnavailableError(f"Redis category read failed: {e}", scope=scope_id) from e

    def set(self, scope_id: str, rule: str, category: str) -> None:
        try:
            self._client.hset(self.key_for(scope_id), rule, category)
        except Exception as e:
            raise StoreUnavailableError(f"Redis category write failed: {e}", scope=scope_id) from e

    def delete(self, scope_id: str, rule: str) -> None:
        try:
            self._client.hdel(self.key_for(scope_id), rule)
        except Exception as e:
            raise StoreUnavailableError(f"Redis category delete failed: {e}", scope=scope_id) from e

    def all(self) -> dict[str, dict[str, str]]:
        prefix = f"{self._prefix}:categories:"
        try:
            result: dict[str, dict[str, str]] = {}
            for key in self._client.keys(f"{prefix}*"):
                mapping = self._client.hgetall(key)
                if mapping:
                    result[key[len(prefix):]] = dict(mapping)
            return result
        except Exception as e:
            raise StoreUnavailableError(f"Redis category scan failed: {e}") from e


__all__ = [
    "RedisCategoryStore",
    "RedisSettingsStore",
    "connect",
]
