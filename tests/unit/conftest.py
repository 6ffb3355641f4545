"""
Shared pytest fixtures.
"""

import json

import pytest

from cloudsync.storage import Document, MemoryDocumentStore, MemoryKeyValueStore
from cloudsync.sync import CloudSyncService, ProviderRegistry, TokenManager

from fakes import T1, FakeProvider, make_tokens


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def token_manager(kv_store):
    return TokenManager(kv_store)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def registry(fake_provider):
    registry = ProviderRegistry()
    registry.register("fake", lambda: fake_provider)
    yield registry
    registry.reset()


@pytest.fixture
def documents():
    return MemoryDocumentStore(Document(last_modified=T1, payload={"items": ["A"]}))


@pytest.fixture
def config_store():
    return MemoryKeyValueStore()


@pytest.fixture
def make_service(registry, config_store, token_manager, documents):
    def _make() -> CloudSyncService:
        return CloudSyncService(
            registry=registry,
            config_store=config_store,
            token_manager=token_manager,
            documents=documents,
        )
    return _make


@pytest.fixture
def connected_service(make_service, config_store, token_manager):
    """Service rehydrated as connected to the fake provider."""
    config_store.set("cloudSyncConfig", json.dumps({
        "provider": "fake",
        "lastSyncTimestamp": None,
        "remoteFileId": None,
    }))
    token_manager.store(make_tokens("fake"))
    return make_service()
