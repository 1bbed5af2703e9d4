"""
Database connection management
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)
from sqlalchemy.orm import declarative_base


logger = logging.getLogger(__name__)

# Create declarative base
Base = declarative_base()


class ConnectionManager:
    """
    Owns the single live engine used by the broker.

    Only one target database is open at a time: the initial database while
    the control database is created, then the control database itself.
    Opening a new target disposes the previous engine.
    """

    def __init__(
        self,
        host: str,
        port: str,
        username: str,
        password: str,
        statement_timeout: Optional[float] = None
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.statement_timeout = statement_timeout
        self.database: Optional[str] = None
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    def url_for(self, database: str) -> URL:
        """Build the connection URL for a target database"""
        return URL.create(
            "postgresql+asyncpg",
            username=self.username,
            password=self.password,
            host=self.host,
            port=int(self.port),
            database=database,
        )

    async def open(self, database: str) -> AsyncEngine:
        """
        Open an engine against `database`, replacing the active one

        Each statement commits on its own (AUTOCOMMIT); CREATE DATABASE and
        DROP DATABASE cannot run inside a transaction block.
        """
        connect_args = {}
        if self.statement_timeout:
            connect_args["command_timeout"] = self.statement_timeout

        engine = create_async_engine(
            self.url_for(database),
            isolation_level="AUTOCOMMIT",
            pool_pre_ping=True,
            connect_args=connect_args,
        )

        # Fail fast: a connection that cannot be opened is a startup error
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            await engine.dispose()
            raise

        await self.close()
        self.attach(engine)
        self.database = database
        logger.info(f"Connected to database {database} on {self.host}:{self.port}")
        return engine

    def attach(self, engine: AsyncEngine) -> None:
        """Adopt an already-built engine as the active handle"""
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database connection is not open")
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a session bound to the active engine"""
        if self._session_factory is None:
            raise RuntimeError("Database connection is not open")
        async with self._session_factory() as session:
            yield session

    async def execute(self, statement: str) -> None:
        """Run a raw statement (DDL) against the active database"""
        async with self.engine.connect() as conn:
            await conn.execute(text(statement))
            await conn.commit()

    async def close(self) -> None:
        """Dispose the active engine, if any"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self.database = None
