"""
Service broker: protocol verbs on top of the lifecycle manager
"""
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from ...config.settings import Settings, settings as default_settings
from ...models.broker import OperationState
from .errors import InvalidPlan, UpdateNotSupported
from .lifecycle import InstanceLifecycleManager


logger = logging.getLogger(__name__)


@dataclass
class BindingCredentials:
    """Credentials handed to a bound application"""
    username: str
    password: str
    db_name: str
    host: str
    port: str
    connection_string: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ServiceBroker:
    """
    Offers a single service with a single plan, backed by one shared
    PostgreSQL server.
    """

    def __init__(
        self,
        manager: InstanceLifecycleManager,
        host: str,
        port: str,
        settings: Optional[Settings] = None
    ):
        self.manager = manager
        self.host = host
        self.port = port
        self.settings = settings or default_settings

    def catalog(self) -> Dict[str, Any]:
        return self.settings.get_catalog()

    async def provision(self, instance_id: str, service_id: str, plan_id: str) -> None:
        """
        Accept a provision request; the work continues in the background

        Raises:
            InvalidPlan: service or plan is not the configured one
        """
        logger.info(f"somebody wants to provision a {service_id}/{plan_id}")
        if service_id != self.settings.SERVICE_ID or plan_id != self.settings.PLAN_ID:
            logger.error(
                f"invalid plan {service_id}/{plan_id} "
                f"(we only accept {self.settings.SERVICE_ID}/{self.settings.PLAN_ID})"
            )
            raise InvalidPlan(service_id, plan_id)

        await self.manager.provision(instance_id)

    async def deprovision(self, instance_id: str) -> bool:
        """
        Returns:
            bool: True if teardown started, False if the instance is gone
        """
        logger.info(f"somebody wants to deprovision {instance_id}")
        return await self.manager.deprovision(instance_id)

    async def last_operation(self, instance_id: str) -> OperationState:
        logger.info(f"somebody wants to know how instance {instance_id} is progressing...")
        return await self.manager.check_on(instance_id)

    async def bind(self, instance_id: str, binding_id: str) -> BindingCredentials:
        logger.info(f"somebody wants to bind service instance {instance_id}...")
        try:
            granted = await self.manager.grant(instance_id, binding_id)
        except Exception as e:
            logger.error(f"failed to bind {instance_id}: {str(e)}")
            raise

        credentials = BindingCredentials(
            username=granted.username,
            password=granted.password,
            db_name=granted.db_name,
            host=self.host,
            port=self.port,
            connection_string=(
                f"postgres://{granted.username}:{granted.password}@"
                f"{self.host}:{self.port}/{granted.db_name}?sslmode=disable"
            )
        )
        logger.info(f"bound {granted.username}@{self.host}:{self.port}/{granted.db_name}")
        return credentials

    async def unbind(self, instance_id: str, binding_id: str) -> None:
        logger.info(f"somebody wants to unbind {binding_id} from service instance {instance_id}...")
        try:
            await self.manager.unbind(instance_id, binding_id)
        except Exception as e:
            logger.error(f"failed to unbind {binding_id} from {instance_id}: {str(e)}")
            raise
        logger.info(f"unbound {binding_id} from {instance_id}")

    async def update(self, instance_id: str) -> None:
        logger.error("update operation not implemented")
        raise UpdateNotSupported()
