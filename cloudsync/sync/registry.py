"""
Provider registry.

Maps provider identifiers to factories so new backends can be added without
touching the sync service. The registry is an explicit object owned by the
service rather than process-wide state.
"""

import logging
from typing import Callable, Dict, List, Optional

from .base import StorageProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], StorageProvider]


class ProviderRegistry:
    """Registry of available storage providers."""

    def __init__(self):
        self._factories: Dict[str, ProviderFactory] = {}
        self._instances: Dict[str, StorageProvider] = {}

    def register(self, provider_id: str, factory: ProviderFactory) -> None:
        """Register a provider factory, replacing any previous one."""
        self._factories[provider_id] = factory
        self._instances.pop(provider_id, None)
        logger.debug(f"Registered cloud provider: {provider_id}")

    def get(self, provider_id: str) -> Optional[StorageProvider]:
        """
        Get the provider instance for an ID.

        The factory runs once; later calls return the same instance so that
        an in-flight authorization is shared.

        Returns:
            Provider, or None if not registered
        """
        instance = self._instances.get(provider_id)
        if instance is not None:
            return instance

        factory = self._factories.get(provider_id)
        if factory is None:
            logger.warning(f"Cloud provider not registered: {provider_id}")
            return None

        instance = factory()
        self._instances[provider_id] = instance
        return instance

    def is_available(self, provider_id: str) -> bool:
        return provider_id in self._factories

    def available_providers(self) -> List[str]:
        return list(self._factories)

    def reset(self) -> None:
        """Forget every factory and instance. Intended for tests."""
        self._factories.clear()
        self._instances.clear()

    async def initialize_all(self) -> None:
        """Run each registered provider's bootstrap."""
        for provider_id in self._factories:
            provider = self.get(provider_id)
            await provider.initialize()
            logger.info(f"Initialized cloud provider: {provider_id}")

    async def close_all(self) -> None:
        """Release resources held by instantiated providers."""
        for provider_id, provider in list(self._instances.items()):
            try:
                await provider.aclose()
            except Exception as e:
                logger.warning(f"Failed to close provider {provider_id}: {e}")
