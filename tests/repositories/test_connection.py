"""
Database Connection Tests
Tests for MongoDB client lifecycle and connection management.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.repositories.connection import DatabaseManager, db_manager, get_database
from src.config import settings


pytestmark = pytest.mark.asyncio


@pytest.fixture
def motor_client():
    """Patch the Motor client class; the instance answers pings and hands out one database."""
    with patch("src.repositories.connection.AsyncIOMotorClient") as client_cls:
        client = client_cls.return_value
        client.admin.command = AsyncMock(return_value={"ok": 1.0})
        database = AsyncMock()
        database.name = settings.mongodb_database
        client.__getitem__.return_value = database
        yield client_cls


@pytest.fixture(autouse=True)
async def cleanup_db_manager():
    """Ensure db_manager is in clean state after each test."""
    yield
    db_manager._client = None
    db_manager._database = None


class TestDatabaseManager:
    """Test suite for DatabaseManager singleton."""

    async def test_singleton_pattern(self):
        """DatabaseManager should return same instance."""
        assert DatabaseManager() is DatabaseManager()
        assert DatabaseManager() is db_manager

    async def test_connect_uses_settings(self, motor_client):
        """Connect should build a tz-aware client from settings."""
        await db_manager.connect()

        args, kwargs = motor_client.call_args
        assert args == (settings.mongodb_uri,)
        assert kwargs["maxPoolSize"] == settings.mongodb_max_pool_size
        assert kwargs["minPoolSize"] == settings.mongodb_min_pool_size
        assert kwargs["tz_aware"] is True
        motor_client.return_value.__getitem__.assert_called_with(settings.mongodb_database)
        assert db_manager.database.name == settings.mongodb_database

    async def test_connect_is_idempotent(self, motor_client):
        """A healthy client is reused."""
        await db_manager.connect()
        client1 = db_manager.client

        await db_manager.connect()

        assert db_manager.client is client1
        assert motor_client.call_count == 1

    async def test_connect_rebuilds_dead_client(self, motor_client):
        """A client that fails its ping is replaced."""
        await db_manager.connect()
        motor_client.return_value.admin.command.side_effect = RuntimeError("Event loop is closed")

        await db_manager.connect()

        assert motor_client.call_count == 2

    async def test_disconnect_cleans_up(self, motor_client):
        """Disconnect should close client and clear references."""
        await db_manager.connect()
        await db_manager.disconnect()

        motor_client.return_value.close.assert_called_once()
        assert db_manager._client is None
        assert db_manager._database is None

    async def test_disconnect_is_idempotent(self, motor_client):
        """Multiple disconnect calls should not raise errors."""
        await db_manager.connect()
        await db_manager.disconnect()
        await db_manager.disconnect()

        assert db_manager._client is None

    async def test_database_property_raises_when_not_connected(self):
        """Accessing database before connect should raise RuntimeError."""
        with pytest.raises(RuntimeError, match="Database not connected"):
            _ = db_manager.database

    async def test_client_property_raises_when_not_connected(self):
        """Accessing client before connect should raise RuntimeError."""
        with pytest.raises(RuntimeError, match="Database client not connected"):
            _ = db_manager.client

    async def test_create_indexes_creates_all_indexes(self, motor_client):
        """create_indexes should create all required indexes."""
        await db_manager.connect()
        db = db_manager.database

        await db_manager.create_indexes()

        def index_names(collection):
            return {call.kwargs["name"] for call in collection.create_index.await_args_list}

        assert index_names(db.conversations) == {"idx_session_id_unique", "idx_prospect_conversations"}
        assert index_names(db.validation_snapshots) == {"idx_prospect_snapshots"}
        assert index_names(db.domain_cache) == {"idx_domain_unique"}
        assert index_names(db.prospects) == {"idx_prospect_id_unique"}
        assert db.domain_cache.create_index.await_args.kwargs["unique"] is True

    async def test_get_database_helper(self, motor_client):
        """get_database helper should return connected database."""
        await db_manager.connect()

        db = await get_database()

        assert db is db_manager.database
