#!/usr/bin/env python3
"""
Test shared store functionality.

Verifies that every caller in the process gets the same store instance and
that it is created only once.
"""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from crm_store import config
from crm_store.shared_storage import (
    StoreManager,
    get_shared_store,
    is_store_initialized,
    reset_shared_store,
)
from crm_store.storage.hybrid import HybridCustomerStore


@pytest.fixture(autouse=True)
def isolated_manager(monkeypatch, temp_db_path):
    """Fresh singleton and settings pointing at a temp directory."""
    monkeypatch.setenv("CRM_STORE_BASE_DIR", temp_db_path)
    config.settings.reset()
    StoreManager._instance = None
    yield
    StoreManager._instance = None
    config.settings.reset()


class TestSharedStore:
    """Test shared store management."""

    @pytest.mark.asyncio
    async def test_singleton_store_manager(self):
        """Test that StoreManager is a true singleton."""
        manager1 = StoreManager.get_instance()
        manager2 = StoreManager.get_instance()

        assert manager1 is manager2, "StoreManager should be a singleton"

    @pytest.mark.asyncio
    async def test_store_created_once(self):
        """Test that the store is only created once despite concurrent calls."""
        with patch("crm_store.shared_storage.create_store_instance") as mock_create:
            mock_store = MagicMock(spec=HybridCustomerStore)
            mock_create.return_value = mock_store

            results = await asyncio.gather(*[get_shared_store() for _ in range(5)])

            for result in results:
                assert result is mock_store
            mock_create.assert_called_once()

    @pytest.mark.asyncio
    async def test_is_initialized_state(self):
        """Test that is_store_initialized correctly reports state."""
        assert not is_store_initialized(), "Store should not exist initially"

        store = await get_shared_store()
        assert is_store_initialized()

        await reset_shared_store()
        assert not is_store_initialized()
        assert not store.primary.is_open

    @pytest.mark.asyncio
    async def test_shared_store_round_trip(self, make_record):
        """Records written through one handle are visible through another."""
        writer = await get_shared_store()
        await writer.add_customer(make_record("a", 1000))

        reader = await get_shared_store()

        assert reader is writer
        assert [r.id for r in await reader.get_all_customers()] == ["a"]
        await reset_shared_store()

    @pytest.mark.asyncio
    async def test_reset_idempotent(self):
        """Test that reset_shared_store can be called repeatedly."""
        await get_shared_store()

        await reset_shared_store()
        await reset_shared_store()

        assert not is_store_initialized()
