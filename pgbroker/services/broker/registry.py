"""
Instance and credential registry kept in the control database
"""
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, update, delete

from ...database.connection import ConnectionManager
from ...models.broker import CredentialRecord, DatabaseRecord, InstanceState


logger = logging.getLogger(__name__)


@dataclass
class BindingLookup:
    """A credential row joined with the state of its instance"""
    binding_id: str
    user_name: str
    db_name: str
    state: Optional[InstanceState]


class InstanceRegistry:
    """
    Durable record of instances (`dbs`) and bindings (`creds`).

    Every method commits on its own; no transaction spans two calls.
    """

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    async def exists(self, instance_id: str) -> bool:
        return await self.get(instance_id) is not None

    async def get(self, instance_id: str) -> Optional[DatabaseRecord]:
        async with self.connections.session() as session:
            result = await session.execute(
                select(DatabaseRecord).where(DatabaseRecord.instance_id == instance_id)
            )
            return result.scalar_one_or_none()

    async def state_of(self, instance_id: str) -> Optional[InstanceState]:
        record = await self.get(instance_id)
        return record.state if record is not None else None

    async def track(
        self,
        instance_id: str,
        db_name: str,
        state: InstanceState = InstanceState.SETUP
    ) -> None:
        """Insert a new instance row, not scheduled for purge"""
        async with self.connections.session() as session:
            session.add(DatabaseRecord(
                instance_id=instance_id,
                db_name=db_name,
                state=state,
                expires=0
            ))
            await session.commit()

    async def set_state(self, instance_id: str, state: InstanceState) -> None:
        async with self.connections.session() as session:
            await session.execute(
                update(DatabaseRecord)
                .where(DatabaseRecord.instance_id == instance_id)
                .values(state=state)
            )
            await session.commit()

    async def mark_failed(self, instance_id: str) -> None:
        await self.set_state(instance_id, InstanceState.FAILED)

    async def mark_gone(self, instance_id: str, expires_in: int) -> None:
        """Transition to `gone` and schedule the row for purge"""
        async with self.connections.session() as session:
            await session.execute(
                update(DatabaseRecord)
                .where(DatabaseRecord.instance_id == instance_id)
                .values(state=InstanceState.GONE, expires=int(time.time()) + expires_in)
            )
            await session.commit()

    async def credential_names(self, instance_id: str) -> List[str]:
        """Role names of every binding on the instance's database"""
        async with self.connections.session() as session:
            result = await session.execute(
                select(CredentialRecord.user_name)
                .join(DatabaseRecord, CredentialRecord.db_name == DatabaseRecord.db_name)
                .where(DatabaseRecord.instance_id == instance_id)
            )
            return list(result.scalars().all())

    async def find_binding(
        self,
        binding_id: str,
        instance_id: Optional[str] = None
    ) -> Optional[BindingLookup]:
        """
        Look up a binding and the state of its instance

        Args:
            binding_id: Platform-supplied binding ID
            instance_id: When given, only a binding on this instance matches
        """
        query = (
            select(
                DatabaseRecord.state.label("state"),
                CredentialRecord.user_name.label("user_name"),
                CredentialRecord.db_name.label("db_name")
            )
            .join(DatabaseRecord, CredentialRecord.db_name == DatabaseRecord.db_name)
            .where(CredentialRecord.binding_id == binding_id)
        )
        if instance_id is not None:
            query = query.where(DatabaseRecord.instance_id == instance_id)

        async with self.connections.session() as session:
            result = await session.execute(query)
            row = result.first()
            if row is None:
                return None
            return BindingLookup(
                binding_id=binding_id,
                user_name=row.user_name,
                db_name=row.db_name,
                state=row.state
            )

    async def add_credential(
        self,
        binding_id: str,
        user_name: str,
        password: str,
        db_name: str
    ) -> None:
        async with self.connections.session() as session:
            session.add(CredentialRecord(
                binding_id=binding_id,
                user_name=user_name,
                password=password,
                db_name=db_name
            ))
            await session.commit()

    async def delete_credential(self, user_name: str) -> None:
        async with self.connections.session() as session:
            await session.execute(
                delete(CredentialRecord).where(CredentialRecord.user_name == user_name)
            )
            await session.commit()

    async def delete_credentials_for(self, db_name: str) -> None:
        async with self.connections.session() as session:
            await session.execute(
                delete(CredentialRecord).where(CredentialRecord.db_name == db_name)
            )
            await session.commit()
