"""
Test configuration and fixtures
"""
import pytest
from unittest.mock import AsyncMock
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pgbroker.database.connection import Base, ConnectionManager
from pgbroker.models.broker import InstanceState
from pgbroker.services.broker import (
    InstanceLifecycleManager, InstanceRegistry, PostgresAdmin, TaskTracker
)


class FixedNameSource:
    """Deterministic names for tests that need to know them up front"""

    def __init__(self, database="db" + "a" * 40, username="u" + "b" * 16, password="c" * 64):
        self._database = database
        self._username = username
        self._password = password

    def database_name(self) -> str:
        return self._database

    def username(self) -> str:
        return self._username

    def password(self) -> str:
        return self._password


@pytest.fixture
async def connections():
    """Connection manager bound to an in-memory control database"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    manager = ConnectionManager(host="db.internal", port="5432", username="admin", password="secret")
    manager.attach(engine)
    yield manager
    await manager.close()


@pytest.fixture
def registry(connections):
    """Instance registry over the in-memory control database"""
    return InstanceRegistry(connections)


@pytest.fixture
def admin():
    """Mock DDL executor; every statement succeeds unless told otherwise"""
    return AsyncMock(spec=PostgresAdmin)


@pytest.fixture
def tasks():
    """Task tracker the tests can join"""
    return TaskTracker()


@pytest.fixture
def manager(registry, admin, tasks):
    """Lifecycle manager with real registry and mocked DDL"""
    return InstanceLifecycleManager(registry=registry, admin=admin, tasks=tasks)


@pytest.fixture
def fixed_names():
    return FixedNameSource()


@pytest.fixture
def ready_instance(registry):
    """Factory for an instance already in `done`"""
    async def make(instance_id="inst-1", db_name="db" + "0" * 40, state=InstanceState.DONE):
        await registry.track(instance_id, db_name, state)
        return db_name
    return make
