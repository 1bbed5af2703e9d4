"""
Instance Lifecycle Manager
"""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError

from ...models.broker import InstanceState, OperationState, STATE_TO_OPERATION
from ...utils.crypto import RandomNameSource, SecureNameSource
from .admin import PostgresAdmin
from .errors import (
    BindingNotFound, GrantFailed, InstanceAlreadyExists, InstanceNotFound,
    InstanceNotReady, RevokeFailed
)
from .registry import InstanceRegistry
from .tasks import TaskTracker


logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SECONDS = 3600


@dataclass
class GrantedCredentials:
    """SQL login issued for one binding"""
    username: str
    password: str
    db_name: str


class LifecycleRunner(Protocol):
    """The asynchronous halves of provision and deprovision"""

    async def setup(self, instance_id: str, db_name: str) -> None: ...

    async def teardown(self, instance_id: str) -> None: ...


class SqlLifecycleRunner:
    """
    Creates and destroys instance databases on the live server.

    Errors never escape: setup records them as the `failed` state, teardown
    logs each failed step and keeps going.
    """

    def __init__(
        self,
        registry: InstanceRegistry,
        admin: PostgresAdmin,
        expiry_seconds: int = DEFAULT_EXPIRY_SECONDS
    ):
        self.registry = registry
        self.admin = admin
        self.expiry_seconds = expiry_seconds

    async def fail(self, what: str, instance_id: str, error: Exception) -> None:
        """Log a failed step and flag the instance as `failed`"""
        logger.error(f"failed {what} for instance {instance_id}: {str(error)}")
        try:
            await self.registry.mark_failed(instance_id)
        except Exception as e:
            logger.error(f"unable to mark instance {instance_id} as failed: {str(e)}")

    async def setup(self, instance_id: str, db_name: str) -> None:
        try:
            await self.registry.track(instance_id, db_name, InstanceState.SETUP)
        except IntegrityError as e:
            # The row belongs to an earlier provision; leave its state alone
            logger.error(f"instance {instance_id} is already tracked, not provisioning: {str(e)}")
            return
        except Exception as e:
            await self.fail("creating `dbs` entry", instance_id, e)
            return

        try:
            await self.admin.create_database(db_name)
        except Exception as e:
            await self.fail("creating instance database", instance_id, e)
            return

        try:
            await self.registry.set_state(instance_id, InstanceState.DONE)
        except Exception as e:
            await self.fail("transitioning instance from [setup] -> [done]", instance_id, e)
            return

        logger.info(f"Successfully provisioned database {db_name} for instance {instance_id}")

    async def teardown(self, instance_id: str) -> None:
        try:
            record = await self.registry.get(instance_id)
            if record is None:
                raise InstanceNotFound(instance_id)
        except Exception as e:
            await self.fail("retrieving instance database entry", instance_id, e)
            return
        db_name = record.db_name

        try:
            await self.registry.set_state(instance_id, InstanceState.TEARDOWN)
        except Exception as e:
            logger.error(f"unable to transition instance {instance_id} to [teardown]: {str(e)}")

        try:
            users = await self.registry.credential_names(instance_id)
        except Exception as e:
            await self.fail("retrieving instance database credentials", instance_id, e)
            return

        for user in users:
            await self._best_effort(f"revoking privileges of {user}", self.admin.revoke_all(db_name, user))
            await self._best_effort(f"dropping user {user}", self.admin.drop_user(user))

        await self._best_effort(f"dropping database {db_name}", self.admin.drop_database(db_name))
        await self._best_effort(
            f"deleting credentials for {db_name}", self.registry.delete_credentials_for(db_name)
        )

        try:
            await self.registry.mark_gone(instance_id, self.expiry_seconds)
        except Exception as e:
            logger.error(f"unable to transition instance {instance_id} to [gone]: {str(e)}")
            return

        logger.info(f"Successfully deprovisioned database {db_name} for instance {instance_id}")

    async def _best_effort(self, what: str, step) -> None:
        try:
            await step
        except Exception as e:
            logger.warning(f"teardown step failed ({what}): {str(e)}")


class InstanceLifecycleManager:
    """
    Turns broker requests into registry updates and SQL on the live server.

    Provision and deprovision return immediately and run on the task
    tracker; their outcome is observable only through `check_on`.
    """

    def __init__(
        self,
        registry: InstanceRegistry,
        admin: PostgresAdmin,
        names: Optional[RandomNameSource] = None,
        runner: Optional[LifecycleRunner] = None,
        tasks: Optional[TaskTracker] = None,
        expiry_seconds: int = DEFAULT_EXPIRY_SECONDS
    ):
        self.registry = registry
        self.admin = admin
        self.names = names or SecureNameSource()
        self.runner = runner or SqlLifecycleRunner(registry, admin, expiry_seconds)
        self.tasks = tasks or TaskTracker()

    async def exists(self, instance_id: str) -> bool:
        return await self.registry.exists(instance_id)

    async def provision(self, instance_id: str) -> str:
        """
        Start provisioning a database for an instance

        Args:
            instance_id: Platform-supplied instance ID

        Returns:
            str: The generated database name

        Raises:
            InstanceAlreadyExists: the instance id is already registered
        """
        if await self.exists(instance_id):
            raise InstanceAlreadyExists(instance_id)

        db_name = self.names.database_name()

        async def flag_failed(error: BaseException) -> None:
            await self.registry.mark_failed(instance_id)

        self.tasks.spawn(
            self.runner.setup(instance_id, db_name),
            name=f"provision-{instance_id}",
            on_failure=flag_failed
        )
        return db_name

    async def deprovision(self, instance_id: str) -> bool:
        """
        Start tearing down an instance

        Returns:
            bool: False if the instance is unknown or already `gone`, True
                if teardown was started
        """
        state = await self.registry.state_of(instance_id)
        if state is None or state == InstanceState.GONE:
            return False

        async def flag_failed(error: BaseException) -> None:
            await self.registry.mark_failed(instance_id)

        self.tasks.spawn(
            self.runner.teardown(instance_id),
            name=f"deprovision-{instance_id}",
            on_failure=flag_failed
        )
        return True

    async def check_on(self, instance_id: str) -> OperationState:
        """Map the instance's stored state to a last-operation status"""
        try:
            state = await self.registry.state_of(instance_id)
        except Exception as e:
            logger.error(f"failed to retrieve instance [{instance_id}] database state: {str(e)}")
            state = InstanceState.ERROR
        else:
            if state is None:
                logger.error(
                    f"failed to retrieve instance [{instance_id}] database state: "
                    f"no entry in dbs table"
                )
                state = InstanceState.ERROR

        return STATE_TO_OPERATION.get(state, OperationState.FAILED)

    async def grant(self, instance_id: str, binding_id: str) -> GrantedCredentials:
        """
        Issue a new SQL login for a binding

        Raises:
            InstanceNotFound: the instance has no registry row
            InstanceNotReady: the instance is not in `done`
            GrantFailed: role creation, grant or registration failed; any
                role already created has been dropped
        """
        record = await self.registry.get(instance_id)
        if record is None:
            raise InstanceNotFound(instance_id)
        if record.state != InstanceState.DONE:
            state = record.state.value if record.state is not None else None
            raise InstanceNotReady(instance_id, state)

        db_name = record.db_name
        user = self.names.username()
        password = self.names.password()

        try:
            await self.admin.create_user(user, password)
        except Exception as e:
            raise GrantFailed(f"failed to provision a user: {str(e)}") from e

        try:
            await self.admin.grant_all(db_name, user)
            await self.registry.add_credential(binding_id, user, password, db_name)
        except Exception as e:
            await self._drop_orphan(user)
            raise GrantFailed(f"failed to grant db access to user: {str(e)}") from e

        return GrantedCredentials(username=user, password=password, db_name=db_name)

    async def _drop_orphan(self, user: str) -> None:
        try:
            await self.admin.drop_user(user)
        except Exception as e:
            logger.error(f"unable to drop orphaned user {user}: {str(e)}")

    async def revoke(self, instance_id: str, binding_id: str, best_effort: bool = False) -> None:
        """
        Remove a binding's SQL login

        Args:
            instance_id: Platform-supplied instance ID
            binding_id: Platform-supplied binding ID
            best_effort: Tolerate failures to drop the role or delete the
                credential row (the role may still own objects)

        Raises:
            BindingNotFound: no credential row for the binding on this instance
            InstanceNotReady: the instance is not in `done`
            RevokeFailed: revoking privileges failed (role left in place),
                or, unless best_effort, dropping/deleting failed
        """
        binding = await self.registry.find_binding(binding_id, instance_id)
        if binding is None:
            raise BindingNotFound(binding_id)
        if binding.state != InstanceState.DONE:
            state = binding.state.value if binding.state is not None else None
            raise InstanceNotReady(instance_id, state)

        try:
            await self.admin.revoke_all(binding.db_name, binding.user_name)
        except Exception as e:
            raise RevokeFailed(f"failed to revoke privileges: {str(e)}") from e

        try:
            await self.admin.drop_user(binding.user_name)
        except Exception as e:
            if not best_effort:
                raise RevokeFailed(f"failed to drop user: {str(e)}") from e
            logger.warning(f"unable to drop user {binding.user_name}, leaving it in place: {str(e)}")

        try:
            await self.registry.delete_credential(binding.user_name)
        except Exception as e:
            if not best_effort:
                raise RevokeFailed(f"failed to delete creds: {str(e)}") from e
            logger.warning(f"unable to delete creds for {binding.user_name}: {str(e)}")

    async def unbind(self, instance_id: str, binding_id: str) -> None:
        """Revoke a binding, tolerating a role that cannot be dropped"""
        await self.revoke(instance_id, binding_id, best_effort=True)
