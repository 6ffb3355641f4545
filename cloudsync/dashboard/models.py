"""
Pydantic models for the cloud sync API.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel

from ..sync.models import SyncResult, SyncState
from ..sync.oauth import parse_redirect_url


class SyncStateResponse(BaseModel):
    """Current sync state."""
    provider: Optional[str] = None
    last_sync_timestamp: Optional[str] = None
    remote_file_id: Optional[str] = None
    state: str
    error: Optional[str] = None

    @classmethod
    def from_state(cls, state: SyncState) -> "SyncStateResponse":
        return cls(
            provider=state.provider,
            last_sync_timestamp=state.last_sync_timestamp,
            remote_file_id=state.remote_file_id,
            state=state.state.value,
            error=state.error,
        )


class ProvidersResponse(BaseModel):
    """Registered providers."""
    providers: List[str]


class ConnectResponse(BaseModel):
    """Connect request outcome."""
    state: SyncStateResponse
    auth_url: Optional[str] = None


class OAuthCallbackRequest(BaseModel):
    """Implicit-grant redirect parameters forwarded by the browser."""
    access_token: Optional[str] = None
    expires_in: Optional[str] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
    redirect_url: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.redirect_url:
            params.update(parse_redirect_url(self.redirect_url))
        for key, value in self.model_dump(exclude={"redirect_url"}).items():
            if value is not None:
                params[key] = str(value)
        return params


class SyncResultResponse(BaseModel):
    """Sync operation result."""
    success: bool
    direction: str
    timestamp: str
    error: Optional[str] = None
    requires_reload: bool = False
    failure: Optional[str] = None

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResultResponse":
        return cls(
            success=result.success,
            direction=result.direction.value,
            timestamp=result.timestamp,
            error=result.error,
            requires_reload=result.requires_reload,
            failure=result.failure.value if result.failure else None,
        )
