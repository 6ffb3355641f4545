"""
Cloud sync service.

Owns the externally observable SyncState and drives the token manager,
the provider registry and conflict resolution. Every transition replaces
the whole state object; subscribers are notified after each replacement.
"""

import asyncio
import json
import logging
from dataclasses import replace
from typing import Callable, List

from ..exceptions import CloudSyncError, ErrorCode, get_error_message
from ..storage.backends import KeyValueStore
from ..storage.documents import DocumentStore
from .models import (
    ConnectionState,
    SyncConfig,
    SyncFailureReason,
    SyncResult,
    SyncState,
    utc_now_iso,
)
from .registry import ProviderRegistry
from .resolution import reconcile
from .tokens import TokenManager

logger = logging.getLogger(__name__)

CONFIG_STORAGE_KEY = "cloudSyncConfig"

StateListener = Callable[[SyncState], None]


class CloudSyncService:
    """
    Sync state machine.

    States: disconnected (initial), connected, syncing (during network
    work) and error (left only through clear_error or disconnect).
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        config_store: KeyValueStore,
        token_manager: TokenManager,
        documents: DocumentStore,
    ):
        """
        Initialize sync service.

        Args:
            registry: Available storage providers
            config_store: Persistent store for SyncConfig
            token_manager: OAuth token lifecycle manager
            documents: Local document store
        """
        self.registry = registry
        self.config_store = config_store
        self.token_manager = token_manager
        self.documents = documents
        self._listeners: List[StateListener] = []
        self._sync_lock = asyncio.Lock()
        self._state = self._rehydrate()

        logger.info(
            f"CloudSyncService initialized: provider={self._state.provider}, "
            f"state={self._state.state.value}"
        )

    @property
    def state(self) -> SyncState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener for state changes.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SyncState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Sync state listener failed")

    async def initialize(self) -> None:
        await self.registry.initialize_all()

    async def aclose(self) -> None:
        await self.registry.close_all()

    # ==================== Persisted configuration ====================

    def _load_config(self) -> SyncConfig:
        try:
            raw = self.config_store.get(CONFIG_STORAGE_KEY)
        except UnicodeDecodeError:
            logger.warning("Ignoring undecodable cloud sync config")
            return SyncConfig()
        except OSError as e:
            logger.error(f"Failed to read cloud sync config: {e}")
            return SyncConfig()

        if raw is None:
            return SyncConfig()

        try:
            config = SyncConfig.from_dict(json.loads(raw))
        except ValueError:
            config = None

        if config is None:
            logger.warning("Ignoring malformed cloud sync config")
            return SyncConfig()
        return config

    def _save_config(self, config: SyncConfig) -> None:
        try:
            self.config_store.set(CONFIG_STORAGE_KEY, json.dumps(config.to_dict()))
        except OSError as e:
            logger.error(f"Failed to save cloud sync config: {e}")

    def _clear_config(self) -> None:
        try:
            self.config_store.delete(CONFIG_STORAGE_KEY)
        except OSError as e:
            logger.error(f"Failed to clear cloud sync config: {e}")

    def _rehydrate(self) -> SyncState:
        """Derive the startup state from persisted config and tokens."""
        config = self._load_config()
        tokens = (
            self.token_manager.for_provider(config.provider)
            if config.provider else None
        )
        state = ConnectionState.CONNECTED if tokens else ConnectionState.DISCONNECTED
        return SyncState.from_config(config, state)

    # ==================== Transitions ====================

    async def connect(self, provider_id: str) -> None:
        """
        Connect to a cloud provider.

        Ends in connected, or in error with a human-readable message.
        """
        provider = self.registry.get(provider_id)
        if provider is None:
            self._set_state(replace(
                self._state,
                state=ConnectionState.ERROR,
                error=f"Provider not available: {provider_id}",
            ))
            return

        self._set_state(replace(self._state, state=ConnectionState.SYNCING, error=None))

        try:
            await provider.connect()
            remote_file_id = await provider.find_sync_file()

            config = SyncConfig(
                provider=provider_id,
                last_sync_timestamp=None,
                remote_file_id=remote_file_id,
            )
            self._save_config(config)
            self._set_state(SyncState.from_config(config, ConnectionState.CONNECTED))
            logger.info(f"Connected to {provider_id} (remote file: {remote_file_id})")

        except CloudSyncError as e:
            if e.code is ErrorCode.AUTH_CANCELLED:
                logger.info(f"Sign-in to {provider_id} cancelled by user")
            else:
                logger.error(f"Failed to connect to {provider_id}: {e.to_log_string()}")
            self._set_state(replace(self._state, state=ConnectionState.ERROR, error=e.message))

        except Exception as e:
            logger.exception(f"Failed to connect to {provider_id}: {e}")
            self._set_state(replace(
                self._state,
                state=ConnectionState.ERROR,
                error="Failed to connect to cloud provider",
            ))

    async def disconnect(self) -> None:
        """Disconnect from the current provider. Always succeeds locally."""
        provider_id = self._state.provider
        if provider_id:
            provider = self.registry.get(provider_id)
            if provider is not None:
                try:
                    await provider.disconnect()
                except Exception as e:
                    logger.error(f"Error during disconnect from {provider_id}: {e}")

        self._clear_config()
        self.token_manager.clear()
        self._set_state(SyncState())
        logger.info("Disconnected from cloud provider")

    async def sync_now(self) -> SyncResult:
        """
        Run one last-write-wins sync pass.

        Missing provider, a disconnected provider and a missing local
        document return a failed result without changing state.
        """
        async with self._sync_lock:
            current = self._state

            if not current.provider:
                return SyncResult.failed(
                    "Not connected to a cloud provider", SyncFailureReason.NOT_CONFIGURED
                )

            provider = self.registry.get(current.provider)
            if provider is None or not provider.is_connected():
                return SyncResult.failed(
                    "Not connected to cloud provider", SyncFailureReason.NOT_CONNECTED
                )

            try:
                document = self.documents.load()
            except Exception as e:
                logger.error(f"Failed to load local document: {e}")
                document = None

            if document is None:
                return SyncResult.failed("No local data to sync", SyncFailureReason.NO_LOCAL_DATA)

            self._set_state(replace(current, state=ConnectionState.SYNCING, error=None))

            try:
                outcome = await reconcile(provider, self.documents, document, current.remote_file_id)

                timestamp = utc_now_iso()
                config = SyncConfig(
                    provider=current.provider,
                    last_sync_timestamp=timestamp,
                    remote_file_id=outcome.remote_file_id,
                )
                self._save_config(config)
                self._set_state(SyncState.from_config(config, ConnectionState.CONNECTED))

                logger.info(f"Sync completed: direction={outcome.direction.value}")
                return SyncResult.succeeded(outcome.direction, timestamp)

            except Exception as e:
                if isinstance(e, CloudSyncError):
                    logger.error(f"Sync failed: {e.to_log_string()}")
                else:
                    logger.exception(f"Sync failed: {e}")
                message = get_error_message(e)
                self._set_state(replace(self._state, state=ConnectionState.ERROR, error=message))
                return SyncResult.failed(message, SyncFailureReason.SYNC_FAILED)

    def clear_error(self) -> None:
        """Leave the error state."""
        if self._state.state is not ConnectionState.ERROR:
            return

        next_state = (
            ConnectionState.CONNECTED if self._state.provider
            else ConnectionState.DISCONNECTED
        )
        self._set_state(replace(self._state, state=next_state, error=None))
