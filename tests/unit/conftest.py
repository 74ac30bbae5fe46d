"""Fixtures wiring repositories to an in-memory mongomock store."""

import mongomock
import pytest

from mongorepo.config import ClientConfig, get_settings
from mongorepo.connection import MongoCollectionProvider, set_provider

TEST_URL = "mongodb://localhost:27017/MongoRepositoryTests"


def mongomock_client(url: str, **options) -> mongomock.MongoClient:
    return mongomock.MongoClient(url)


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """Point the default endpoint at TEST_URL and keep .env files out."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MONGODB_URL", TEST_URL)
    monkeypatch.delenv("MONGODB_DATABASE", raising=False)
    monkeypatch.delenv("LOGFIRE_TOKEN", raising=False)
    monkeypatch.setenv("MONGOREPO_CONFIG", str(tmp_path / "mongorepo.yaml"))
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


@pytest.fixture
def provider():
    """Default provider backed by a fresh mongomock store."""
    provider = MongoCollectionProvider(
        client_factory=mongomock_client,
        client_config=ClientConfig(),
    )
    previous = set_provider(provider)
    yield provider
    provider.close()
    set_provider(previous)
