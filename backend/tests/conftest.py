"""Shared fixtures for the fleet fare test suite."""

import os
import tempfile

# Point the default singletons at a throwaway database before the app imports
_test_db = tempfile.NamedTemporaryFile(suffix='.db', delete=False)
os.environ["DATABASE_URL"] = f"sqlite:///{_test_db.name}"
os.environ.setdefault("REDIS_URL", "")

import pytest

from fleetfare.cache import ConfigCache
from fleetfare.database import DatabaseManager
from fleetfare.services.config_resolver import ConfigResolver
from fleetfare.store import InMemoryConfigStore, SQLConfigStore


@pytest.fixture
def memory_store():
    return InMemoryConfigStore()


@pytest.fixture
def resolver(memory_store):
    return ConfigResolver(memory_store)


@pytest.fixture
def db_manager(tmp_path):
    return DatabaseManager(f"sqlite:///{tmp_path / 'config.db'}")


@pytest.fixture
def sql_store(db_manager):
    return SQLConfigStore(db_manager, ConfigCache())


@pytest.fixture
def sql_resolver(sql_store):
    return ConfigResolver(sql_store)
