"""
Control database models: instance registry and credential registry
"""
from sqlalchemy import Column, String, Integer, Enum
import enum

from ..database.connection import Base


class InstanceState(str, enum.Enum):
    """Lifecycle state of a provisioned instance"""
    SETUP = "setup"
    IN_USE = "in-use"  # reserved, never assigned
    TEARDOWN = "teardown"
    DONE = "done"
    GONE = "gone"
    FAILED = "failed"
    ERROR = "error"


class OperationState(str, enum.Enum):
    """Last-operation status reported to the platform"""
    IN_PROGRESS = "in progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


STATE_TO_OPERATION = {
    InstanceState.SETUP: OperationState.IN_PROGRESS,
    InstanceState.TEARDOWN: OperationState.IN_PROGRESS,
    InstanceState.DONE: OperationState.SUCCEEDED,
    InstanceState.GONE: OperationState.SUCCEEDED,
    InstanceState.FAILED: OperationState.FAILED,
    InstanceState.ERROR: OperationState.FAILED,
}

# Column widths bound the generated identifiers
INSTANCE_ID_LENGTH = 36
DB_NAME_LENGTH = 42
BINDING_ID_LENGTH = 36
USERNAME_LENGTH = 17
PASSWORD_LENGTH = 64


state_enum = Enum(
    InstanceState,
    name="state",
    values_callable=lambda states: [s.value for s in states],
)


class DatabaseRecord(Base):
    """One provisioned tenant database"""
    __tablename__ = "dbs"

    instance_id = Column("instance", String(INSTANCE_ID_LENGTH), primary_key=True)
    db_name = Column("name", String(DB_NAME_LENGTH), nullable=False, unique=True)
    state = Column(state_enum)
    expires = Column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<DatabaseRecord {self.instance_id} {self.db_name} [{self.state}]>"


class CredentialRecord(Base):
    """One issued SQL login, tied to an instance database by name"""
    __tablename__ = "creds"

    binding_id = Column("binding", String(BINDING_ID_LENGTH), primary_key=True)
    user_name = Column("name", String(USERNAME_LENGTH), nullable=False, unique=True)
    password = Column("pass", String(PASSWORD_LENGTH), nullable=False)
    db_name = Column("db", String(DB_NAME_LENGTH), nullable=False)

    def __repr__(self) -> str:
        return f"<CredentialRecord {self.binding_id} {self.user_name}@{self.db_name}>"
