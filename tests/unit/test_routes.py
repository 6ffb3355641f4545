"""
Tests for the cloud sync HTTP API.
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient

from cloudsync.main import create_app
from cloudsync.storage import Document, MemoryDocumentStore, MemoryKeyValueStore
from cloudsync.sync import (
    GOOGLE_DRIVE,
    CallbackAuthorizationPrompt,
    CloudSyncService,
    GoogleDriveConfig,
    GoogleDriveProvider,
    ProviderRegistry,
    TokenManager,
)

from fakes import T1, DriveStub

API = "/api/v1/cloud-sync"


@pytest.fixture
def stub():
    stub = DriveStub()
    stub.route("GET", "/drive/v3/files", lambda request: httpx.Response(
        200, json={"files": []}
    ))
    stub.route("POST", "/upload/drive/v3/files", lambda request: httpx.Response(
        200, json={"id": "drive-file-1"}
    ))
    stub.route("POST", "/revoke", lambda request: httpx.Response(200))
    return stub


@pytest.fixture
def client(stub):
    prompt = CallbackAuthorizationPrompt()
    token_manager = TokenManager(MemoryKeyValueStore())
    config = GoogleDriveConfig(client_id="client-123")

    registry = ProviderRegistry()
    registry.register(GOOGLE_DRIVE, lambda: GoogleDriveProvider(
        config,
        token_manager,
        prompt,
        client=httpx.AsyncClient(transport=httpx.MockTransport(stub)),
    ))

    service = CloudSyncService(
        registry=registry,
        config_store=MemoryKeyValueStore(),
        token_manager=token_manager,
        documents=MemoryDocumentStore(Document(last_modified=T1, payload={"items": ["A"]})),
    )

    with TestClient(create_app(service, prompt)) as test_client:
        yield test_client


def start_sign_in(client):
    response = client.post(f"{API}/connect/{GOOGLE_DRIVE}")
    assert response.status_code == 200
    body = response.json()
    assert body["auth_url"] is not None
    state = parse_qs(urlsplit(body["auth_url"]).query)["state"][0]
    return body, state


class TestStatusEndpoints:
    """Tests for read-only endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "sync_state": "disconnected"}

    def test_status(self, client):
        response = client.get(f"{API}/status")
        assert response.json() == {
            "provider": None,
            "last_sync_timestamp": None,
            "remote_file_id": None,
            "state": "disconnected",
            "error": None,
        }

    def test_providers(self, client):
        response = client.get(f"{API}/providers")
        assert response.json() == {"providers": [GOOGLE_DRIVE]}

    def test_oauth_callback_page(self, client):
        response = client.get("/oauth/callback")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert f"{API}/oauth/callback" in response.text


class TestSignIn:
    """Tests for the connect and callback round trip."""

    def test_connect_then_sync(self, client, stub):
        body, state = start_sign_in(client)
        assert body["state"]["state"] == "syncing"

        response = client.post(f"{API}/oauth/callback", json={
            "access_token": "granted-token",
            "expires_in": "3600",
            "token_type": "Bearer",
            "state": state,
        })

        assert response.status_code == 200
        assert response.json()["state"] == "connected"
        assert response.json()["provider"] == GOOGLE_DRIVE
        assert response.json()["remote_file_id"] is None

        response = client.post(f"{API}/sync")

        result = response.json()
        assert result["success"] is True
        assert result["direction"] == "upload"
        assert result["requires_reload"] is False
        assert stub.requests[-1].headers["Authorization"] == "Bearer granted-token"

        status = client.get(f"{API}/status").json()
        assert status["remote_file_id"] == "drive-file-1"
        assert status["last_sync_timestamp"] == result["timestamp"]

    def test_callback_with_redirect_url(self, client):
        _, state = start_sign_in(client)

        response = client.post(f"{API}/oauth/callback", json={
            "redirect_url": (
                "http://localhost:8080/oauth/callback"
                f"#access_token=tok&expires_in=3600&state={state}"
            ),
        })

        assert response.json()["state"] == "connected"

    def test_forged_state(self, client):
        start_sign_in(client)

        response = client.post(f"{API}/oauth/callback", json={
            "access_token": "tok",
            "expires_in": "3600",
            "state": "forged",
        })

        assert response.json()["state"] == "error"
        assert response.json()["error"] == "Invalid or expired state token"

    def test_cancel(self, client):
        start_sign_in(client)

        response = client.post(f"{API}/oauth/cancel")

        assert response.json()["state"] == "error"
        assert response.json()["error"] == "Sign-in cancelled"

        response = client.post(f"{API}/clear-error")
        assert response.json()["state"] == "disconnected"

    def test_callback_without_pending_sign_in(self, client):
        response = client.post(f"{API}/oauth/callback", json={"access_token": "tok"})
        assert response.status_code == 409

    def test_cancel_without_pending_sign_in(self, client):
        assert client.post(f"{API}/oauth/cancel").status_code == 409

    def test_unknown_provider(self, client):
        response = client.post(f"{API}/connect/dropbox")

        body = response.json()
        assert body["auth_url"] is None
        assert body["state"]["state"] == "error"
        assert body["state"]["error"] == "Provider not available: dropbox"

    def test_disconnect(self, client, stub):
        _, state = start_sign_in(client)
        client.post(f"{API}/oauth/callback", json={
            "access_token": "tok",
            "expires_in": "3600",
            "state": state,
        })

        response = client.delete(f"{API}/connection")

        assert response.json()["state"] == "disconnected"
        assert response.json()["provider"] is None
        assert stub.requests[-1].url.path == "/revoke"


class TestSyncEndpoint:
    """Tests for sync requests."""

    def test_sync_without_connection(self, client):
        response = client.post(f"{API}/sync")

        result = response.json()
        assert response.status_code == 200
        assert result["success"] is False
        assert result["failure"] == "not_configured"
        assert result["error"] == "Not connected to a cloud provider"
        assert client.get(f"{API}/status").json()["state"] == "disconnected"
