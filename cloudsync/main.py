"""
Application entry point for the cloud sync engine.

Wires settings, storage backends, the provider registry and the sync
service together and serves the HTTP control surface with uvicorn.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from .config import CloudSyncSettings, ConfigValidator, EnvironmentLoader
from .dashboard import create_cloud_sync_router
from .storage import (
    EncryptedFileKeyValueStore,
    FileKeyValueStore,
    JsonFileDocumentStore,
    build_fernet,
)
from .sync import (
    CallbackAuthorizationPrompt,
    CloudSyncService,
    ProviderRegistry,
    TokenManager,
    register_google_drive,
)

logger = logging.getLogger(__name__)

# Google redirects here with the token in the URL fragment, which never
# reaches the server; the page forwards it to the callback endpoint.
OAUTH_CALLBACK_PAGE = """<!doctype html>
<html>
<head><title>Cloud sync sign-in</title></head>
<body>
<p id="status">Completing sign-in...</p>
<script>
const params = Object.fromEntries(new URLSearchParams(window.location.hash.slice(1)));
const query = Object.fromEntries(new URLSearchParams(window.location.search));
fetch("/api/v1/cloud-sync/oauth/callback", {
  method: "POST",
  headers: {"Content-Type": "application/json"},
  body: JSON.stringify(Object.assign({}, query, params)),
}).then(r => r.json()).then(state => {
  document.getElementById("status").textContent =
    state.state === "connected" ? "Connected. You can close this window." : "Sign-in failed: " + state.error;
});
</script>
</body>
</html>
"""


def setup_logging(settings: CloudSyncSettings) -> None:
    """Configure root logging."""
    logging.basicConfig(
        level=settings.log_level.value,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_service(
    settings: CloudSyncSettings,
    prompt: CallbackAuthorizationPrompt,
) -> CloudSyncService:
    """Create the sync service with file-backed storage."""
    token_store = EncryptedFileKeyValueStore(
        settings.tokens_dir, build_fernet(settings.token_encryption_key)
    )
    token_manager = TokenManager(token_store)

    registry = ProviderRegistry()
    register_google_drive(registry, settings.google_drive_config(), token_manager, prompt)

    return CloudSyncService(
        registry=registry,
        config_store=FileKeyValueStore(settings.config_dir),
        token_manager=token_manager,
        documents=JsonFileDocumentStore(settings.document_path),
    )


def create_app(
    service: CloudSyncService,
    prompt: Optional[CallbackAuthorizationPrompt] = None,
) -> FastAPI:
    """Create the FastAPI application around a sync service."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Cloud sync server starting up")
        await service.initialize()
        yield
        await service.aclose()
        logger.info("Cloud sync server shutting down")

    app = FastAPI(
        title="Cloud Sync API",
        description="Control surface for the cloud synchronization engine",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(
        create_cloud_sync_router(service, prompt),
        prefix="/api/v1/cloud-sync",
        tags=["Cloud Sync"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "sync_state": service.state.state.value}

    @app.get("/oauth/callback", response_class=HTMLResponse)
    async def oauth_callback_page():
        return OAUTH_CALLBACK_PAGE

    return app


async def main(settings: Optional[CloudSyncSettings] = None) -> None:
    """Load configuration and serve the API until interrupted."""
    settings = settings or EnvironmentLoader.load_settings()
    setup_logging(settings)

    for problem in ConfigValidator.validate_settings(settings):
        logger.warning(f"Configuration: {problem}")

    prompt = CallbackAuthorizationPrompt()
    service = build_service(settings, prompt)
    app = create_app(service, prompt)

    host = settings.server.host
    port = settings.server.port
    logger.info(f"Starting cloud sync server on http://{host}:{port}")

    server = uvicorn.Server(uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_level=settings.log_level.value.lower(),
        loop="asyncio",
    ))
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
