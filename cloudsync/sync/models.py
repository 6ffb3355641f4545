"""
Data models for cloud sync.

Persisted records (SyncConfig, StoredTokens) are validated structurally when
read back; from_dict returns None instead of raising for a malformed record.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


GOOGLE_DRIVE = "google-drive"


class ConnectionState(Enum):
    """Finite states of the sync state machine."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SYNCING = "syncing"
    ERROR = "error"


class SyncDirection(Enum):
    """Direction a sync pass moved data."""
    UPLOAD = "upload"
    DOWNLOAD = "download"
    NONE = "none"


class SyncFailureReason(Enum):
    """Why a sync attempt did not succeed."""
    NOT_CONFIGURED = "not_configured"
    NOT_CONNECTED = "not_connected"
    NO_LOCAL_DATA = "no_local_data"
    SYNC_FAILED = "sync_failed"


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _is_optional_str(value: Any) -> bool:
    return value is None or isinstance(value, str)


@dataclass(frozen=True)
class SyncConfig:
    """Non-secret sync configuration, persisted between runs."""
    provider: Optional[str] = None
    last_sync_timestamp: Optional[str] = None
    remote_file_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "lastSyncTimestamp": self.last_sync_timestamp,
            "remoteFileId": self.remote_file_id,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SyncConfig"]:
        if not isinstance(data, dict):
            return None
        provider = data.get("provider")
        last_sync = data.get("lastSyncTimestamp")
        remote_file_id = data.get("remoteFileId")
        if not all(_is_optional_str(v) for v in (provider, last_sync, remote_file_id)):
            return None
        return cls(
            provider=provider,
            last_sync_timestamp=last_sync,
            remote_file_id=remote_file_id,
        )


@dataclass(frozen=True)
class StoredTokens:
    """OAuth credentials for one provider."""
    access_token: str
    refresh_token: Optional[str]
    expires_at: int  # unix millis
    provider: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
            "provider": self.provider,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["StoredTokens"]:
        if not isinstance(data, dict):
            return None
        if any(key not in data for key in ("accessToken", "refreshToken", "expiresAt", "provider")):
            return None

        access_token = data["accessToken"]
        refresh_token = data["refreshToken"]
        expires_at = data["expiresAt"]
        provider = data["provider"]

        if not isinstance(access_token, str) or not isinstance(provider, str):
            return None
        if not _is_optional_str(refresh_token):
            return None
        # bool is an int subclass
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            return None
        if not math.isfinite(expires_at):
            return None

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=int(expires_at),
            provider=provider,
        )


@dataclass(frozen=True)
class SyncState:
    """Externally observable sync state. Replaced as a whole on every change."""
    provider: Optional[str] = None
    last_sync_timestamp: Optional[str] = None
    remote_file_id: Optional[str] = None
    state: ConnectionState = ConnectionState.DISCONNECTED
    error: Optional[str] = None

    @property
    def config(self) -> SyncConfig:
        return SyncConfig(
            provider=self.provider,
            last_sync_timestamp=self.last_sync_timestamp,
            remote_file_id=self.remote_file_id,
        )

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        state: ConnectionState,
        error: Optional[str] = None,
    ) -> "SyncState":
        return cls(
            provider=config.provider,
            last_sync_timestamp=config.last_sync_timestamp,
            remote_file_id=config.remote_file_id,
            state=state,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.config.to_dict()
        data["state"] = self.state.value
        data["error"] = self.error
        return data


@dataclass(frozen=True)
class RemoteFileMetadata:
    """Metadata of the remote sync file. Never persisted."""
    id: str
    name: str
    modified_time: str
    size: Optional[int] = None


@dataclass
class SyncResult:
    """Result of a sync attempt."""
    success: bool
    direction: SyncDirection = SyncDirection.NONE
    timestamp: str = field(default_factory=utc_now_iso)
    error: Optional[str] = None
    requires_reload: bool = False
    failure: Optional[SyncFailureReason] = None

    @classmethod
    def succeeded(cls, direction: SyncDirection, timestamp: str) -> "SyncResult":
        return cls(
            success=True,
            direction=direction,
            timestamp=timestamp,
            requires_reload=direction is SyncDirection.DOWNLOAD,
        )

    @classmethod
    def failed(cls, error: str, reason: SyncFailureReason) -> "SyncResult":
        return cls(success=False, error=error, failure=reason)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "direction": self.direction.value,
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.requires_reload:
            data["requiresReload"] = True
        if self.failure is not None:
            data["failure"] = self.failure.value
        return data
