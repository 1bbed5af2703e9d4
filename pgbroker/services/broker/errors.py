"""
Broker exceptions
"""
from typing import Optional


class BrokerError(Exception):
    """Base exception for broker operations"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidPlan(BrokerError):
    """The requested service/plan is not the one this broker offers"""

    def __init__(self, service_id: str, plan_id: str):
        self.service_id = service_id
        self.plan_id = plan_id
        super().__init__(f"invalid plan {service_id}/{plan_id}")


class InstanceNotFound(BrokerError):
    """No registry row exists for the instance"""

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"database instance {instance_id} not found")


class InstanceAlreadyExists(BrokerError):
    """A registry row already exists for the instance"""

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"database instance {instance_id} already exists")


class InstanceNotReady(BrokerError):
    """The instance is not in a state that accepts bind/unbind"""

    def __init__(self, instance_id: str, state: Optional[str]):
        self.instance_id = instance_id
        self.state = state
        super().__init__(f"database is still in '{state}' state")


class BindingNotFound(BrokerError):
    """No credential row exists for the binding"""

    def __init__(self, binding_id: str):
        self.binding_id = binding_id
        super().__init__(f"database binding {binding_id} not found")


class GrantFailed(BrokerError):
    """Creating or registering a binding's SQL role failed"""


class RevokeFailed(BrokerError):
    """Revoking or removing a binding's SQL role failed"""


class UpdateNotSupported(BrokerError):
    """Instance updates are not implemented"""

    def __init__(self):
        super().__init__("update operation not implemented")


class InvalidIdentifier(BrokerError, ValueError):
    """A value is not safe to compose into a DDL statement"""
