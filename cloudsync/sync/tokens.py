"""
OAuth token lifecycle management.

Tokens are stored under their own key, apart from the sync configuration,
so that an export of application data never includes credentials.
"""

import json
import logging
import time
from dataclasses import replace
from typing import Optional

from ..storage.backends import KeyValueStore
from .models import StoredTokens

logger = logging.getLogger(__name__)

TOKEN_STORAGE_KEY = "cloudTokens"
DEFAULT_EXPIRY_BUFFER_MS = 60000


def now_ms() -> int:
    """Current unix time in milliseconds."""
    return int(time.time() * 1000)


class TokenManager:
    """
    Persists, validates and expires OAuth credentials for one provider.

    A record that fails structural validation is deleted on read and never
    surfaced as a partial credential.
    """

    def __init__(self, store: KeyValueStore, storage_key: str = TOKEN_STORAGE_KEY):
        """
        Initialize token manager.

        Args:
            store: Persistent key-value store for the token record
            storage_key: Key the record is stored under
        """
        self.store_backend = store
        self.storage_key = storage_key

    def store(self, tokens: StoredTokens) -> None:
        """Persist tokens. Failures are logged and the previous value kept."""
        try:
            self.store_backend.set(self.storage_key, json.dumps(tokens.to_dict()))
            logger.info(f"Stored tokens for {tokens.provider}")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to store OAuth tokens: {e}")

    def retrieve(self) -> Optional[StoredTokens]:
        """
        Retrieve stored tokens.

        Returns:
            Tokens, or None if absent, unparsable or structurally invalid
        """
        try:
            raw = self.store_backend.get(self.storage_key)
        except UnicodeDecodeError:
            logger.warning("Undecodable token record, clearing tokens")
            self.clear()
            return None
        except OSError as e:
            logger.error(f"Failed to retrieve OAuth tokens: {e}")
            return None

        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Unparsable token record, clearing tokens")
            self.clear()
            return None

        tokens = StoredTokens.from_dict(data)
        if tokens is None:
            logger.warning("Invalid token structure, clearing tokens")
            self.clear()
        return tokens

    def clear(self) -> None:
        """Delete stored tokens. Safe to call when none exist."""
        try:
            self.store_backend.delete(self.storage_key)
        except OSError as e:
            logger.error(f"Failed to clear OAuth tokens: {e}")

    def is_expired(self, buffer_ms: int = DEFAULT_EXPIRY_BUFFER_MS) -> bool:
        """
        Check whether the stored access token is expired.

        Args:
            buffer_ms: Treat tokens expiring within this margin as expired

        Returns:
            True if no tokens exist or they expire within the buffer
        """
        tokens = self.retrieve()
        if tokens is None:
            return True
        return tokens.expires_at - buffer_ms <= now_ms()

    def update_access_token(self, access_token: str, expires_in_seconds: int) -> None:
        """Replace the access token after a refresh. No-op without a record."""
        tokens = self.retrieve()
        if tokens is None:
            return

        self.store(replace(
            tokens,
            access_token=access_token,
            expires_at=now_ms() + expires_in_seconds * 1000,
        ))

    def for_provider(self, provider_id: str) -> Optional[StoredTokens]:
        """Stored tokens, but only if they belong to the given provider."""
        tokens = self.retrieve()
        if tokens is None or tokens.provider != provider_id:
            return None
        return tokens
