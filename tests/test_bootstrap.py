"""
Tests for control database bootstrap
"""
import pytest
from unittest.mock import AsyncMock, call
from sqlalchemy.exc import DBAPIError

from pgbroker.database.connection import ConnectionManager
from pgbroker.services.broker import InstanceRegistry, SchemaBootstrapper


class DriverError(Exception):
    def __init__(self, sqlstate):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


class TestSchemaBootstrapper:
    """Test the startup sequence"""

    @pytest.mark.asyncio
    async def test_bootstrap_sequence(self):
        # Arrange
        connections = AsyncMock(spec=ConnectionManager)
        bootstrapper = SchemaBootstrapper(connections, control_database="broker")
        bootstrapper.ensure_schemas = AsyncMock()

        # Act
        await bootstrapper.bootstrap("postgres")

        # Assert
        assert connections.mock_calls == [
            call.open("postgres"),
            call.execute('CREATE DATABASE "broker"'),
            call.open("broker"),
        ]
        bootstrapper.ensure_schemas.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_existing_control_database_is_accepted(self):
        connections = AsyncMock(spec=ConnectionManager)
        connections.execute.side_effect = DBAPIError("CREATE DATABASE", None, DriverError("42P04"))
        bootstrapper = SchemaBootstrapper(connections)
        bootstrapper.ensure_schemas = AsyncMock()

        await bootstrapper.bootstrap("postgres")

        connections.open.assert_awaited_with("broker")
        bootstrapper.ensure_schemas.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_create_errors_abort_startup(self):
        connections = AsyncMock(spec=ConnectionManager)
        connections.execute.side_effect = DBAPIError("CREATE DATABASE", None, DriverError("42501"))
        bootstrapper = SchemaBootstrapper(connections)
        bootstrapper.ensure_schemas = AsyncMock()

        with pytest.raises(DBAPIError):
            await bootstrapper.bootstrap("postgres")

        connections.open.assert_awaited_once_with("postgres")
        bootstrapper.ensure_schemas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreachable_server_aborts_startup(self):
        connections = AsyncMock(spec=ConnectionManager)
        connections.open.side_effect = OSError("connection refused")

        with pytest.raises(OSError):
            await SchemaBootstrapper(connections).bootstrap("postgres")

        connections.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ensure_schemas_is_idempotent(self, connections):
        bootstrapper = SchemaBootstrapper(connections)

        await bootstrapper.ensure_schemas()
        await bootstrapper.ensure_schemas()

        registry = InstanceRegistry(connections)
        await registry.track("inst-1", "db" + "0" * 40)
        assert await registry.exists("inst-1")
