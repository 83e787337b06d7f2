"""
Shared store manager for the customer record store.

This module provides a singleton store instance shared by every caller in
the process. The store (and with it the primary connection handle) is
created once on first use and never torn down while the process runs.
"""

import asyncio
import logging
from threading import Lock
from typing import Optional

from .storage.factory import create_store_instance
from .storage.hybrid import HybridCustomerStore

logger = logging.getLogger(__name__)


class StoreManager:
    """Manages a singleton store instance for shared access."""

    _instance: Optional["StoreManager"] = None
    _lock: Lock = Lock()

    def __init__(self):
        """Initialize store manager."""
        self._store: HybridCustomerStore | None = None
        self._initialization_lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    def get_instance(cls) -> "StoreManager":
        """Get singleton instance of StoreManager.

        Thread-safe singleton pattern ensures only one instance exists.

        Returns:
            StoreManager: The singleton instance
        """
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
                    logger.info("Created new StoreManager singleton instance")
        return cls._instance

    async def get_store(self) -> HybridCustomerStore:
        """Get or create the shared store instance.

        Idempotent: concurrent first calls still create only one store.

        Returns:
            HybridCustomerStore: The shared store instance
        """
        # Fast path - already created
        if self._store is not None:
            return self._store

        async with self._initialization_lock:
            # Double-check after acquiring lock
            if self._store is not None:
                return self._store

            logger.info("Creating shared customer store instance...")
            self._store = create_store_instance()
            logger.info(f"Shared store ready: {type(self._store).__name__}")
            return self._store

    def is_initialized(self) -> bool:
        """Check if the store has been created.

        Returns:
            bool: True if the store exists, False otherwise
        """
        return self._store is not None

    async def reset(self) -> None:
        """Forget the store, closing its primary connection.

        Intended for tests and process shutdown hooks only.
        """
        if self._store is not None:
            await self._store.primary.close()
            self._store = None
            logger.info("Shared store reset")


def _manager() -> StoreManager:
    return StoreManager.get_instance()


async def get_shared_store() -> HybridCustomerStore:
    """Get the shared store instance.

    Convenience function that uses the singleton StoreManager.

    Returns:
        HybridCustomerStore: The shared store instance
    """
    return await _manager().get_store()


async def reset_shared_store() -> None:
    """Reset the shared store instance.

    Convenience function that uses the singleton StoreManager.
    """
    await _manager().reset()


def is_store_initialized() -> bool:
    """Check if the shared store has been created.

    Convenience function that uses the singleton StoreManager.

    Returns:
        bool: True if the store exists, False otherwise
    """
    return _manager().is_initialized()
