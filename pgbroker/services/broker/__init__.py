"""
Shared PostgreSQL broker services
"""
from .admin import PostgresAdmin
from .bootstrap import SchemaBootstrapper
from .broker import BindingCredentials, ServiceBroker
from .lifecycle import InstanceLifecycleManager, LifecycleRunner, SqlLifecycleRunner
from .registry import InstanceRegistry
from .tasks import TaskTracker

__all__ = [
    "PostgresAdmin",
    "SchemaBootstrapper",
    "BindingCredentials",
    "ServiceBroker",
    "InstanceLifecycleManager",
    "LifecycleRunner",
    "SqlLifecycleRunner",
    "InstanceRegistry",
    "TaskTracker"
]
