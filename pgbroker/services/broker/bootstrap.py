"""
Control database bootstrap
"""
import logging

from ...database.connection import Base, ConnectionManager
from ...models import broker  # noqa: F401  (registers the control tables)
from .admin import PostgresAdmin


logger = logging.getLogger(__name__)


class SchemaBootstrapper:
    """
    Creates the control database and its schema.

    Safe to re-run: an existing control database is accepted and schema
    objects are created only when missing.
    """

    def __init__(self, connections: ConnectionManager, control_database: str = "broker"):
        self.connections = connections
        self.control_database = control_database
        self.admin = PostgresAdmin(connections)

    async def ensure_control_database(self) -> None:
        if await self.admin.ensure_database(self.control_database):
            logger.info(f"Created control database {self.control_database}")

    async def ensure_schemas(self) -> None:
        """Create the `state` enum and the `dbs`/`creds` tables if missing"""
        async with self.connections.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    async def bootstrap(self, initial_database: str) -> None:
        """
        Prepare the control database and leave the connection pointed at it

        Args:
            initial_database: Database named in the platform credentials
        """
        logger.info("initializing broker")
        await self.connections.open(initial_database)
        await self.ensure_control_database()

        await self.connections.open(self.control_database)
        await self.ensure_schemas()
        logger.info(f"Control database {self.control_database} is ready")
