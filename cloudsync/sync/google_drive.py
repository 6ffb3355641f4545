"""
Google Drive storage provider.

Authorizes through the implicit-grant flow and talks to the Drive v3 REST
API with httpx. Every authenticated request goes through _api_request so
HTTP failures are classified the same way everywhere.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..exceptions import CloudSyncError, ErrorCode, error_for_status
from .base import StorageProvider
from .models import GOOGLE_DRIVE, RemoteFileMetadata
from .oauth import AuthorizationPrompt, ImplicitGrantFlow
from .tokens import TokenManager

logger = logging.getLogger(__name__)

DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"

JSON_MIME_TYPE = "application/json"
MULTIPART_BOUNDARY = "-------314159265358979323846"
DEFAULT_SYNC_FILE_NAME = "cloud-sync-data.json"


@dataclass
class GoogleDriveConfig:
    """Configuration for the Google Drive provider."""
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:8080/oauth/callback"
    sync_file_name: str = DEFAULT_SYNC_FILE_NAME
    timeout_seconds: float = 30.0


def build_multipart_body(metadata: Dict[str, Any], content: str) -> str:
    """multipart/related body carrying file metadata followed by content."""
    delimiter = f"\r\n--{MULTIPART_BOUNDARY}\r\n"
    close_delimiter = f"\r\n--{MULTIPART_BOUNDARY}--"
    return (
        delimiter
        + "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        + json.dumps(metadata)
        + delimiter
        + f"Content-Type: {JSON_MIME_TYPE}\r\n\r\n"
        + content
        + close_delimiter
    )


class GoogleDriveProvider(StorageProvider):
    """
    Google Drive implementation of StorageProvider.

    Only one authorization may be in flight: concurrent connect() calls
    await the same future instead of opening a second prompt.
    """

    provider_id = GOOGLE_DRIVE

    def __init__(
        self,
        config: GoogleDriveConfig,
        token_manager: TokenManager,
        prompt: AuthorizationPrompt,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Google Drive provider.

        Args:
            config: Google Drive configuration
            token_manager: Token lifecycle manager
            prompt: Callback that shows the consent page
            client: HTTP client; created lazily if not given
        """
        self.config = config
        self.token_manager = token_manager
        self.prompt = prompt
        self.flow = ImplicitGrantFlow(
            provider_id=self.provider_id,
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri,
        )
        self._client = client
        self._in_flight_auth: Optional[asyncio.Future] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def initialize(self) -> None:
        self._get_client()
        if not self.flow.is_configured():
            logger.warning(
                "GOOGLE_OAUTH_CLIENT_ID not set. Google Drive sign-in will fail."
            )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ==================== Authentication ====================

    async def connect(self) -> None:
        """Connect to Google Drive, opening the consent prompt if needed."""
        if self.is_connected():
            return

        if self._in_flight_auth is None or self._in_flight_auth.done():
            self._in_flight_auth = asyncio.ensure_future(self._authorize())
            self._in_flight_auth.add_done_callback(self._clear_in_flight_auth)
        else:
            logger.debug("Authorization already in progress, waiting for it")

        await asyncio.shield(self._in_flight_auth)

    def _clear_in_flight_auth(self, future: asyncio.Future) -> None:
        if self._in_flight_auth is future:
            self._in_flight_auth = None

    async def _authorize(self) -> None:
        state_token = self.flow.new_state()
        # A previous (expired) token means the user already consented once
        has_previous = self.token_manager.for_provider(self.provider_id) is not None
        auth_url = self.flow.build_authorization_url(
            state_token, prompt="" if has_previous else "consent"
        )

        params = await self.prompt(auth_url)
        tokens = self.flow.parse_response(params, state_token)
        self.token_manager.store(tokens)
        logger.info("Connected to Google Drive")

    async def disconnect(self) -> None:
        """Revoke the access token (best effort) and clear stored tokens."""
        tokens = self.token_manager.for_provider(self.provider_id)

        if tokens is not None:
            try:
                await self._get_client().post(
                    REVOKE_URL,
                    params={"token": tokens.access_token},
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            except httpx.HTTPError as e:
                # Token might already be invalid
                logger.warning(f"Token revocation failed: {e}")

        self.token_manager.clear()

    def is_connected(self) -> bool:
        tokens = self.token_manager.for_provider(self.provider_id)
        return tokens is not None and not self.token_manager.is_expired()

    async def get_access_token(self) -> Optional[str]:
        """Current access token, renewing it if expired."""
        if not self.is_connected():
            tokens = self.token_manager.for_provider(self.provider_id)
            if tokens is None:
                return None

            if self.flow.can_refresh(tokens):
                try:
                    data = await self.flow.refresh_access_token(
                        self._get_client(), tokens.refresh_token
                    )
                    self.token_manager.update_access_token(
                        str(data["access_token"]), int(data.get("expires_in", 3600))
                    )
                except (CloudSyncError, TypeError, ValueError) as e:
                    logger.warning(f"Token refresh failed, re-authorizing: {e}")

            if not self.is_connected():
                try:
                    await self.connect()
                except CloudSyncError as e:
                    logger.info(f"Could not renew Google Drive session: {e.to_log_string()}")
                    return None

        tokens = self.token_manager.for_provider(self.provider_id)
        return tokens.access_token if tokens else None

    # ==================== API requests ====================

    async def _api_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make an authenticated request to the Drive API.

        Raises:
            CloudSyncError: classified from the transport failure or status
        """
        access_token = await self.get_access_token()
        if not access_token:
            raise CloudSyncError(
                "Not authenticated with Google Drive",
                ErrorCode.AUTH_FAILED,
                False,
            )

        request_headers = {"Authorization": f"Bearer {access_token}"}
        if headers:
            request_headers.update(headers)

        try:
            response = await self._get_client().request(
                method, url, headers=request_headers, **kwargs
            )
        except httpx.TransportError as e:
            raise CloudSyncError(
                f"Network error talking to Google Drive: {e}",
                ErrorCode.NETWORK_ERROR,
                True,
            ) from e

        if response.is_success:
            return response

        try:
            message = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            message = f"API request failed: {response.status_code}"

        raise error_for_status(response.status_code, message)

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise CloudSyncError(
                "Google Drive returned invalid JSON", ErrorCode.PARSE_ERROR, False
            ) from e
        if not isinstance(data, dict):
            raise CloudSyncError(
                "Google Drive returned an unexpected response", ErrorCode.PARSE_ERROR, False
            )
        return data

    # ==================== File operations ====================

    async def find_sync_file(self) -> Optional[str]:
        name = self.config.sync_file_name.replace("\\", "\\\\").replace("'", "\\'")
        response = await self._api_request(
            "GET",
            f"{DRIVE_API_BASE}/files",
            params={
                "q": f"name='{name}' and trashed=false",
                "spaces": "drive",
                "orderBy": "modifiedTime desc",
                "fields": "files(id,name,modifiedTime)",
            },
        )

        files = self._json(response).get("files") or []
        if files:
            return files[0]["id"]
        return None

    async def upload(self, content: str, existing_id: Optional[str] = None) -> str:
        if existing_id:
            response = await self._api_request(
                "PATCH",
                f"{DRIVE_UPLOAD_BASE}/files/{existing_id}",
                params={"uploadType": "media"},
                headers={"Content-Type": JSON_MIME_TYPE},
                content=content.encode("utf-8"),
            )
        else:
            metadata = {
                "name": self.config.sync_file_name,
                "mimeType": JSON_MIME_TYPE,
            }
            response = await self._api_request(
                "POST",
                f"{DRIVE_UPLOAD_BASE}/files",
                params={"uploadType": "multipart"},
                headers={"Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}"},
                content=build_multipart_body(metadata, content).encode("utf-8"),
            )

        data = self._json(response)
        if "id" not in data:
            raise CloudSyncError(
                "Upload response did not include a file ID", ErrorCode.PARSE_ERROR, False
            )

        logger.info(f"Uploaded sync file to Google Drive: {data['id']}")
        return data["id"]

    async def download(self, file_id: str) -> str:
        response = await self._api_request(
            "GET",
            f"{DRIVE_API_BASE}/files/{file_id}",
            params={"alt": "media"},
        )
        return response.text

    async def get_file_metadata(self, file_id: str) -> Optional[RemoteFileMetadata]:
        try:
            response = await self._api_request(
                "GET",
                f"{DRIVE_API_BASE}/files/{file_id}",
                params={"fields": "id,name,modifiedTime,size,trashed"},
            )
        except CloudSyncError as e:
            if e.code is ErrorCode.FILE_NOT_FOUND:
                return None
            raise

        data = self._json(response)
        if data.get("trashed"):
            return None

        try:
            return RemoteFileMetadata(
                id=data["id"],
                name=data.get("name", ""),
                modified_time=data["modifiedTime"],
                size=int(data["size"]) if data.get("size") is not None else None,
            )
        except (KeyError, ValueError) as e:
            raise CloudSyncError(
                f"Invalid file metadata from Google Drive: {e}",
                ErrorCode.PARSE_ERROR,
                False,
            ) from e


def register_google_drive(
    registry,
    config: GoogleDriveConfig,
    token_manager: TokenManager,
    prompt: AuthorizationPrompt,
) -> None:
    """Register the Google Drive provider with a ProviderRegistry."""
    registry.register(
        GOOGLE_DRIVE,
        lambda: GoogleDriveProvider(config, token_manager, prompt),
    )
