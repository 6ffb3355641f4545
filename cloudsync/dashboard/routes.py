"""
Cloud sync API routes.

Thin HTTP layer over CloudSyncService. Sign-in runs as a background task:
the connect endpoint returns the consent URL, and the browser posts the
implicit-grant redirect parameters back to the callback endpoint.
"""

import asyncio
import logging
from typing import Optional, Set

from fastapi import APIRouter, HTTPException

from ..sync.oauth import CallbackAuthorizationPrompt
from ..sync.service import CloudSyncService
from .models import (
    ConnectResponse,
    OAuthCallbackRequest,
    ProvidersResponse,
    SyncResultResponse,
    SyncStateResponse,
)

logger = logging.getLogger(__name__)


def create_cloud_sync_router(
    service: CloudSyncService,
    prompt: Optional[CallbackAuthorizationPrompt] = None,
    auth_url_timeout: float = 5.0,
) -> APIRouter:
    """Create the cloud sync API router.

    Args:
        service: Sync service the routes operate on
        prompt: Prompt the providers were built with, if it is callback-driven
        auth_url_timeout: How long connect waits for a consent URL

    Returns:
        FastAPI router for the cloud sync endpoints
    """
    router = APIRouter()
    background_tasks: Set[asyncio.Task] = set()

    @router.get("/status", response_model=SyncStateResponse)
    async def get_status():
        """Get the current sync state."""
        return SyncStateResponse.from_state(service.state)

    @router.get("/providers", response_model=ProvidersResponse)
    async def list_providers():
        """List registered cloud providers."""
        return ProvidersResponse(providers=service.registry.available_providers())

    @router.post("/connect/{provider_id}", response_model=ConnectResponse)
    async def connect(provider_id: str):
        """
        Start connecting to a provider.

        Returns the consent URL when the user has to sign in.
        """
        if not service.registry.is_available(provider_id):
            # Moves the service to the error state naming the provider
            await service.connect(provider_id)
            return ConnectResponse(state=SyncStateResponse.from_state(service.state))

        task = asyncio.create_task(service.connect(provider_id))
        background_tasks.add(task)
        task.add_done_callback(background_tasks.discard)

        auth_url = None
        if prompt is not None:
            waiter = asyncio.ensure_future(prompt.wait_for_url(auth_url_timeout))
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if waiter.done():
                auth_url = waiter.result()
            else:
                waiter.cancel()
        else:
            await task

        return ConnectResponse(
            state=SyncStateResponse.from_state(service.state),
            auth_url=auth_url,
        )

    @router.post("/oauth/callback", response_model=SyncStateResponse)
    async def oauth_callback(request: OAuthCallbackRequest):
        """Deliver the implicit-grant redirect parameters."""
        if prompt is None or not prompt.complete(request.to_params()):
            raise HTTPException(409, "No sign-in in progress")

        await _drain(background_tasks)
        return SyncStateResponse.from_state(service.state)

    @router.post("/oauth/cancel", response_model=SyncStateResponse)
    async def oauth_cancel():
        """Report that the user closed the sign-in prompt."""
        if prompt is None or not prompt.cancel():
            raise HTTPException(409, "No sign-in in progress")

        await _drain(background_tasks)
        return SyncStateResponse.from_state(service.state)

    @router.post("/sync", response_model=SyncResultResponse)
    async def sync_now():
        """Run a sync pass."""
        result = await service.sync_now()
        return SyncResultResponse.from_result(result)

    @router.post("/clear-error", response_model=SyncStateResponse)
    async def clear_error():
        """Leave the error state."""
        service.clear_error()
        return SyncStateResponse.from_state(service.state)

    @router.delete("/connection", response_model=SyncStateResponse)
    async def disconnect():
        """Disconnect from the current provider."""
        await service.disconnect()
        return SyncStateResponse.from_state(service.state)

    return router


async def _drain(tasks: Set[asyncio.Task]) -> None:
    """Wait for pending connect tasks to settle."""
    if tasks:
        await asyncio.wait(set(tasks))
