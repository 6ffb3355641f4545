"""
Cloud synchronization engine.

Keeps a local data snapshot consistent with a single remote copy in a
cloud file provider.
"""

from .exceptions import CloudSyncError, ErrorCode
from .sync import CloudSyncService, ProviderRegistry, TokenManager

__version__ = "1.0.0"

__all__ = [
    "CloudSyncError",
    "ErrorCode",
    "CloudSyncService",
    "ProviderRegistry",
    "TokenManager",
]
