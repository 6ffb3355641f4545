"""
Google OAuth implicit-grant flow.

The consent page is shown through an AuthorizationPrompt, an async callback
supplied by the user-interaction surface. It receives the authorization URL
and returns the redirect parameters (or None if the user closed the prompt).
"""

import asyncio
import logging
import secrets
from typing import Awaitable, Callable, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

import httpx

from ..exceptions import CloudSyncError, ErrorCode
from .models import StoredTokens
from .tokens import now_ms

logger = logging.getLogger(__name__)

AuthorizationPrompt = Callable[[str], Awaitable[Optional[Dict[str, str]]]]

CANCELLED_ERRORS = {"popup_closed", "access_denied"}


def parse_redirect_url(url: str) -> Dict[str, str]:
    """
    Extract OAuth parameters from a redirect URL.

    Implicit-grant responses arrive in the fragment; errors may arrive in
    the query string.
    """
    parts = urlsplit(url)
    params = dict(parse_qsl(parts.query))
    params.update(parse_qsl(parts.fragment))
    return params


class ImplicitGrantFlow:
    """
    Builds authorization URLs and validates implicit-grant responses.
    """

    GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
    SCOPES = [
        "https://www.googleapis.com/auth/drive.file",  # only files created by this app
    ]

    def __init__(
        self,
        provider_id: str,
        client_id: str,
        redirect_uri: str,
        client_secret: str = "",
        scopes: Optional[List[str]] = None,
    ):
        """
        Initialize OAuth flow.

        Args:
            provider_id: Provider the issued tokens belong to
            client_id: OAuth client ID
            redirect_uri: Registered redirect URI
            client_secret: Client secret, only needed for refresh grants
            scopes: Requested scopes (defaults to drive.file)
        """
        self.provider_id = provider_id
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.client_secret = client_secret
        self.scopes = scopes or list(self.SCOPES)

    def is_configured(self) -> bool:
        return bool(self.client_id)

    def new_state(self) -> str:
        """CSRF state token for one authorization attempt."""
        return secrets.token_urlsafe(32)

    def build_authorization_url(self, state_token: str, prompt: str = "consent") -> str:
        """
        Build the consent page URL.

        Args:
            state_token: CSRF token echoed back in the redirect
            prompt: "consent" for first sign-in, "" to allow silent re-auth

        Raises:
            CloudSyncError: AUTH_FAILED if no client ID is configured
        """
        if not self.is_configured():
            raise CloudSyncError(
                "Google client ID not configured. Set GOOGLE_OAUTH_CLIENT_ID.",
                ErrorCode.AUTH_FAILED,
                False,
            )

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "token",
            "scope": " ".join(self.scopes),
            "include_granted_scopes": "true",
            "state": state_token,
        }
        if prompt:
            params["prompt"] = prompt

        return f"{self.GOOGLE_AUTH_URL}?{urlencode(params)}"

    def parse_response(
        self,
        params: Optional[Dict[str, str]],
        expected_state: str,
    ) -> StoredTokens:
        """
        Validate redirect parameters and turn them into tokens.

        Args:
            params: Redirect parameters, or None if the prompt was closed
            expected_state: State token sent with the request

        Raises:
            CloudSyncError: AUTH_CANCELLED or AUTH_FAILED
        """
        if params is None:
            raise CloudSyncError("Sign-in cancelled", ErrorCode.AUTH_CANCELLED, False)

        error = params.get("error")
        if error in CANCELLED_ERRORS:
            raise CloudSyncError("Sign-in cancelled", ErrorCode.AUTH_CANCELLED, False)
        if error:
            raise CloudSyncError(
                params.get("error_description") or error,
                ErrorCode.AUTH_FAILED,
                True,
            )

        if not secrets.compare_digest(params.get("state", ""), expected_state):
            raise CloudSyncError(
                "Invalid or expired state token",
                ErrorCode.AUTH_FAILED,
                False,
            )

        access_token = params.get("access_token")
        if not access_token:
            raise CloudSyncError(
                "Authorization response did not include an access token",
                ErrorCode.AUTH_FAILED,
                False,
            )

        try:
            expires_in = int(params.get("expires_in", ""))
        except ValueError:
            raise CloudSyncError(
                "Authorization response has an invalid expires_in",
                ErrorCode.AUTH_FAILED,
                False,
            )

        return StoredTokens(
            access_token=access_token,
            # Implicit grant never issues refresh tokens
            refresh_token=params.get("refresh_token") or None,
            expires_at=now_ms() + expires_in * 1000,
            provider=self.provider_id,
        )

    def can_refresh(self, tokens: StoredTokens) -> bool:
        return bool(tokens.refresh_token and self.client_id and self.client_secret)

    async def refresh_access_token(
        self,
        client: httpx.AsyncClient,
        refresh_token: str,
    ) -> Dict[str, object]:
        """
        Exchange a refresh token for a new access token.

        Returns:
            Token endpoint response (access_token, expires_in, ...)

        Raises:
            CloudSyncError: AUTH_FAILED or NETWORK_ERROR
        """
        try:
            response = await client.post(
                self.GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.TransportError as e:
            raise CloudSyncError(
                f"Token refresh failed: {e}", ErrorCode.NETWORK_ERROR, True
            ) from e

        if response.status_code != 200:
            raise CloudSyncError(
                f"Token refresh failed: {response.status_code}",
                ErrorCode.AUTH_FAILED,
                False,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CloudSyncError(
                "Token refresh returned invalid JSON", ErrorCode.PARSE_ERROR, False
            ) from e

        if not isinstance(data, dict) or "access_token" not in data:
            raise CloudSyncError(
                "Token refresh response did not include an access token",
                ErrorCode.AUTH_FAILED,
                False,
            )
        return data


class CallbackAuthorizationPrompt:
    """
    AuthorizationPrompt resolved from outside, e.g. by an HTTP callback.

    Calling the prompt parks the authorization URL and waits until
    complete() or cancel() is called.
    """

    def __init__(self):
        self.pending_url: Optional[str] = None
        self._future: Optional[asyncio.Future] = None
        self._url_ready = asyncio.Event()

    @property
    def is_pending(self) -> bool:
        return self._future is not None and not self._future.done()

    async def __call__(self, auth_url: str) -> Optional[Dict[str, str]]:
        loop = asyncio.get_running_loop()
        self._future = loop.create_future()
        self.pending_url = auth_url
        self._url_ready.set()
        logger.info("Waiting for user authorization")

        try:
            return await self._future
        finally:
            self.pending_url = None
            self._future = None
            self._url_ready.clear()

    async def wait_for_url(self, timeout: float = 5.0) -> Optional[str]:
        """Wait until an authorization URL is pending."""
        try:
            await asyncio.wait_for(self._url_ready.wait(), timeout)
        except asyncio.TimeoutError:
            return None
        return self.pending_url

    def complete(self, params: Dict[str, str]) -> bool:
        """Deliver redirect parameters. Returns False if nothing is pending."""
        if not self.is_pending:
            return False
        self._future.set_result(params)
        return True

    def cancel(self) -> bool:
        """Report that the user dismissed the prompt."""
        if not self.is_pending:
            return False
        self._future.set_result(None)
        return True
