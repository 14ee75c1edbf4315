"""Scoped key-value configuration store consumed by the config resolver."""

import json
import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from fleetfare.cache import ConfigCache, get_config_cache
from fleetfare.database import DatabaseManager, get_db_manager

logger = logging.getLogger(__name__)


@runtime_checkable
class ConfigStore(Protocol):
    """
    Narrow store interface: JSON documents addressed by scope key.
    No schema validation happens here; readers treat bad data as missing.
    """

    def get(self, scope_key: str) -> Optional[Any]:
        ...

    def set(self, scope_key: str, value: Any) -> None:
        ...


class SQLConfigStore:
    """Database-backed store with a read-through cache in front of it."""

    def __init__(self, db_manager: DatabaseManager, cache: Optional[ConfigCache] = None):
        self.db_manager = db_manager
        self.cache = cache

    def _raw(self, scope_key: str) -> Optional[str]:
        if self.cache is not None:
            cached = self.cache.get(scope_key)
            if cached is not None:
                return cached

        raw = self.db_manager.get_value(scope_key)
        if raw is not None and self.cache is not None:
            self.cache.set(scope_key, raw)
        return raw

    def get(self, scope_key: str) -> Optional[Any]:
        """Decoded JSON stored under the key; None if absent or unparseable."""
        raw = self._raw(scope_key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unparseable config value at %s", scope_key)
            return None

    def set(self, scope_key: str, value: Any) -> None:
        """Persist a JSON document; store errors propagate to the caller."""
        raw = json.dumps(value)
        self.db_manager.set_value(scope_key, raw)
        if self.cache is not None:
            self.cache.invalidate([scope_key])


class InMemoryConfigStore:
    """Process-local store for embedding the resolver without a database."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, scope_key: str) -> Optional[Any]:
        raw = self._values.get(scope_key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    def set(self, scope_key: str, value: Any) -> None:
        # Serialized so stored documents never alias caller objects
        self._values[scope_key] = json.dumps(value)

    def set_raw(self, scope_key: str, raw: str) -> None:
        """Store text verbatim, e.g. to simulate a corrupted entry."""
        self._values[scope_key] = raw


_default_store: Optional[ConfigStore] = None


def get_config_store() -> ConfigStore:
    """Get the default store: the configured database behind the shared cache."""
    global _default_store
    if _default_store is None:
        _default_store = SQLConfigStore(get_db_manager(), get_config_cache())
    return _default_store
