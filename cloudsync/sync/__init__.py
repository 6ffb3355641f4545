"""
Cloud sync engine.

Keeps one local document consistent with one remote copy stored by a
cloud file provider, using last-write-wins conflict resolution.
"""

from .models import (
    GOOGLE_DRIVE,
    ConnectionState,
    SyncDirection,
    SyncFailureReason,
    SyncConfig,
    StoredTokens,
    SyncState,
    RemoteFileMetadata,
    SyncResult,
)
from .tokens import TokenManager
from .base import StorageProvider
from .registry import ProviderRegistry
from .oauth import (
    AuthorizationPrompt,
    CallbackAuthorizationPrompt,
    ImplicitGrantFlow,
    parse_redirect_url,
)
from .google_drive import GoogleDriveProvider, GoogleDriveConfig, register_google_drive
from .resolution import (
    RemoteFileInfo,
    Reconciliation,
    decide_direction,
    locate_remote_file,
    parse_timestamp_ms,
    reconcile,
)
from .service import CloudSyncService

__all__ = [
    # Models
    "GOOGLE_DRIVE",
    "ConnectionState",
    "SyncDirection",
    "SyncFailureReason",
    "SyncConfig",
    "StoredTokens",
    "SyncState",
    "RemoteFileMetadata",
    "SyncResult",
    # Tokens
    "TokenManager",
    # Providers
    "StorageProvider",
    "ProviderRegistry",
    "GoogleDriveProvider",
    "GoogleDriveConfig",
    "register_google_drive",
    # OAuth
    "AuthorizationPrompt",
    "CallbackAuthorizationPrompt",
    "ImplicitGrantFlow",
    "parse_redirect_url",
    # Conflict resolution
    "RemoteFileInfo",
    "Reconciliation",
    "decide_direction",
    "locate_remote_file",
    "parse_timestamp_ms",
    "reconcile",
    # Service
    "CloudSyncService",
]
