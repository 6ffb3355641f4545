"""
Base storage provider interface.

Every cloud backend implements this capability interface. The sync service
only ever talks to providers through it.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .models import RemoteFileMetadata


class StorageProvider(ABC):
    """Abstract base class for cloud storage providers."""

    provider_id: str = ""

    async def initialize(self) -> None:
        """Bootstrap the provider (open clients, load SDKs). Optional."""
        pass

    async def aclose(self) -> None:
        """Release network resources. Optional."""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """
        Authorize with the provider.

        Concurrent calls while an authorization is pending must share it.

        Raises:
            CloudSyncError: AUTH_CANCELLED if the user dismissed the prompt,
                AUTH_FAILED otherwise
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Revoke credentials (best effort) and forget them locally."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check for stored, non-expired credentials."""
        pass

    @abstractmethod
    async def get_access_token(self) -> Optional[str]:
        """
        Get a usable access token.

        Renews expired credentials when a renewal path exists.

        Returns:
            Access token, or None if none can be obtained
        """
        pass

    @abstractmethod
    async def upload(self, content: str, existing_id: Optional[str] = None) -> str:
        """
        Upload the sync file.

        Args:
            content: Serialized document
            existing_id: Remote file to overwrite; a new file is created if None

        Returns:
            Remote file ID
        """
        pass

    @abstractmethod
    async def download(self, file_id: str) -> str:
        """
        Download the sync file.

        Args:
            file_id: Remote file ID

        Returns:
            File content
        """
        pass

    @abstractmethod
    async def get_file_metadata(self, file_id: str) -> Optional[RemoteFileMetadata]:
        """
        Get metadata for a remote file.

        Args:
            file_id: Remote file ID

        Returns:
            Metadata, or None if the file was deleted remotely
        """
        pass

    @abstractmethod
    async def find_sync_file(self) -> Optional[str]:
        """
        Locate a previously created sync file by its well-known name.

        Returns:
            Remote file ID, or None if there is none
        """
        pass
