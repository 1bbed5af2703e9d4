"""
DDL against the shared PostgreSQL server
"""
import logging
import re
from typing import Optional

from sqlalchemy.exc import DBAPIError

from ...database.connection import ConnectionManager
from .errors import InvalidIdentifier


logger = logging.getLogger(__name__)

DUPLICATE_DATABASE = "42P04"
MAX_IDENTIFIER_LENGTH = 63

_IDENTIFIER_RE = re.compile(r"^[a-z][a-z0-9]*$")
_PASSWORD_RE = re.compile(r"^[a-z0-9]+$")


def quote_identifier(name: str) -> str:
    """Validate a generated identifier and double-quote it for DDL"""
    if not name or len(name) > MAX_IDENTIFIER_LENGTH or not _IDENTIFIER_RE.match(name):
        raise InvalidIdentifier(f"invalid PostgreSQL identifier: {name!r}")
    return f'"{name}"'


def quote_password(password: str) -> str:
    """Validate a generated password and render it as a string literal"""
    if not password or not _PASSWORD_RE.match(password):
        raise InvalidIdentifier("password contains characters outside the generator alphabet")
    return f"'{password}'"


def sqlstate(error: DBAPIError) -> Optional[str]:
    """SQLSTATE code of a driver error (asyncpg or psycopg)"""
    orig = getattr(error, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class PostgresAdmin:
    """
    Issues database and role DDL on generated identifiers.

    Identifiers cannot be bound as query parameters in DDL, so every name is
    validated against the generator alphabet and quoted before composition.
    """

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    async def create_database(self, db_name: str) -> None:
        await self.connections.execute(f"CREATE DATABASE {quote_identifier(db_name)}")

    async def ensure_database(self, db_name: str) -> bool:
        """
        Create a database, tolerating one that already exists

        Returns:
            bool: True if created, False if it was already there
        """
        try:
            await self.create_database(db_name)
        except DBAPIError as e:
            if sqlstate(e) == DUPLICATE_DATABASE:
                logger.info(f"{db_name} database already exists, continuing")
                return False
            raise
        return True

    async def drop_database(self, db_name: str) -> None:
        await self.connections.execute(f"DROP DATABASE {quote_identifier(db_name)}")

    async def create_user(self, user_name: str, password: str) -> None:
        await self.connections.execute(
            f"CREATE USER {quote_identifier(user_name)} "
            f"WITH NOCREATEDB NOCREATEROLE NOREPLICATION PASSWORD {quote_password(password)}"
        )

    async def drop_user(self, user_name: str) -> None:
        await self.connections.execute(f"DROP USER {quote_identifier(user_name)}")

    async def grant_all(self, db_name: str, user_name: str) -> None:
        await self.connections.execute(
            f"GRANT ALL PRIVILEGES ON DATABASE {quote_identifier(db_name)} "
            f"TO {quote_identifier(user_name)}"
        )

    async def revoke_all(self, db_name: str, user_name: str) -> None:
        await self.connections.execute(
            f"REVOKE ALL PRIVILEGES ON DATABASE {quote_identifier(db_name)} "
            f"FROM {quote_identifier(user_name)}"
        )
