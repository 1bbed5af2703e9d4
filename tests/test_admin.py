"""
Tests for DDL composition against the shared server
"""
import pytest
from unittest.mock import AsyncMock
from sqlalchemy.exc import DBAPIError

from pgbroker.database.connection import ConnectionManager
from pgbroker.services.broker.admin import PostgresAdmin, quote_identifier, quote_password
from pgbroker.services.broker.errors import InvalidIdentifier


class DriverError(Exception):
    def __init__(self, message, sqlstate):
        super().__init__(message)
        self.sqlstate = sqlstate


def dbapi_error(sqlstate):
    return DBAPIError("CREATE DATABASE", None, DriverError("boom", sqlstate))


@pytest.fixture
def connections():
    return AsyncMock(spec=ConnectionManager)


@pytest.fixture
def admin(connections):
    return PostgresAdmin(connections)


def executed(connections):
    return [c.args[0] for c in connections.execute.await_args_list]


class TestQuoting:
    """Test identifier and password validation"""

    def test_quote_identifier(self):
        assert quote_identifier("db0a1b") == '"db0a1b"'

    @pytest.mark.parametrize("name", [
        "", "Db1", "1db", "db-1", 'db"; DROP TABLE dbs; --', "db 1", "a" * 64,
    ])
    def test_reject_unsafe_identifier(self, name):
        with pytest.raises(InvalidIdentifier):
            quote_identifier(name)

    def test_quote_password(self):
        assert quote_password("abc123") == "'abc123'"

    @pytest.mark.parametrize("password", ["", "abc'def", "ABC", "a b"])
    def test_reject_unsafe_password(self, password):
        with pytest.raises(InvalidIdentifier):
            quote_password(password)


class TestPostgresAdmin:
    """Test statements issued for each operation"""

    @pytest.mark.asyncio
    async def test_create_and_drop_database(self, admin, connections):
        await admin.create_database("dbabc")
        await admin.drop_database("dbabc")

        assert executed(connections) == ['CREATE DATABASE "dbabc"', 'DROP DATABASE "dbabc"']

    @pytest.mark.asyncio
    async def test_create_user(self, admin, connections):
        await admin.create_user("uabc", "secret1")

        assert executed(connections) == [
            "CREATE USER \"uabc\" WITH NOCREATEDB NOCREATEROLE NOREPLICATION PASSWORD 'secret1'"
        ]

    @pytest.mark.asyncio
    async def test_grant_revoke_drop_user(self, admin, connections):
        await admin.grant_all("dbabc", "uabc")
        await admin.revoke_all("dbabc", "uabc")
        await admin.drop_user("uabc")

        assert executed(connections) == [
            'GRANT ALL PRIVILEGES ON DATABASE "dbabc" TO "uabc"',
            'REVOKE ALL PRIVILEGES ON DATABASE "dbabc" FROM "uabc"',
            'DROP USER "uabc"',
        ]

    @pytest.mark.asyncio
    async def test_unsafe_name_never_reaches_server(self, admin, connections):
        with pytest.raises(InvalidIdentifier):
            await admin.drop_database("x; DROP DATABASE broker")

        connections.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ensure_database_tolerates_existing(self, admin, connections):
        connections.execute.side_effect = dbapi_error("42P04")

        assert await admin.ensure_database("broker") is False

    @pytest.mark.asyncio
    async def test_ensure_database_creates(self, admin, connections):
        assert await admin.ensure_database("broker") is True

    @pytest.mark.asyncio
    async def test_ensure_database_other_error_is_fatal(self, admin, connections):
        connections.execute.side_effect = dbapi_error("42501")

        with pytest.raises(DBAPIError):
            await admin.ensure_database("broker")
