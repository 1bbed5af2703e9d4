"""
Platform metadata (VCAP_SERVICES / VCAP_APPLICATION) parsing
"""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError


logger = logging.getLogger(__name__)

DEFAULT_PORT = "5432"
DATABASE_NAME_KEYS = ("db_name", "name", "database")


class ConfigurationError(Exception):
    """
    Raised when platform metadata cannot supply the upstream credentials.

    Each failure class maps to a distinct process exit code:
    1 for unparseable metadata, 2 for no matching service, 3 for a
    missing credential.
    """

    def __init__(self, message: str, exit_code: int):
        self.message = message
        self.exit_code = exit_code
        super().__init__(message)


class ServiceInstance(BaseModel):
    """One bound service instance from VCAP_SERVICES"""
    name: str = ""
    label: str = ""
    tags: List[str] = Field(default_factory=list)
    credentials: Dict[str, Any] = Field(default_factory=dict)

    def get_string(self, key: str) -> Tuple[str, bool]:
        """Look up a credential and render it as a string"""
        value = self.credentials.get(key)
        if value is None or isinstance(value, (dict, list)):
            return "", False
        if isinstance(value, bool):
            return str(value).lower(), True
        return str(value), True

    def database_name(self) -> Tuple[str, bool]:
        for key in DATABASE_NAME_KEYS:
            value, ok = self.get_string(key)
            if ok:
                return value, True
        return "", False


class Services(BaseModel):
    """All service instances, regardless of the label they were filed under"""
    instances: List[ServiceInstance] = Field(default_factory=list)

    def named(self, name: str) -> Optional[ServiceInstance]:
        for instance in self.instances:
            if instance.name == name:
                return instance
        return None

    def tagged(self, *tags: str) -> Optional[ServiceInstance]:
        wanted = set(tags)
        for instance in self.instances:
            if wanted.intersection(instance.tags) or instance.label in wanted:
                return instance
        return None


class Application(BaseModel):
    """The subset of VCAP_APPLICATION used for the startup banner"""
    name: str = Field(default="", alias="application_name")
    version: str = Field(default="", alias="application_version")
    uris: List[str] = Field(default_factory=list, alias="application_uris")

    model_config = {"populate_by_name": True}


class UpstreamCredentials(BaseModel):
    """Admin credentials for the shared PostgreSQL server"""
    host: str
    port: str = DEFAULT_PORT
    username: str
    password: str
    database: str


def parse_services(raw: Optional[str]) -> Services:
    """
    Parse VCAP_SERVICES JSON

    Raises:
        ConfigurationError: exit code 1 if the document is not valid
    """
    try:
        document = json.loads(raw or "{}")
        if not isinstance(document, dict):
            raise ValueError("expected a JSON object")
        instances = [
            ServiceInstance.model_validate({"label": label, **entry})
            for label, entries in document.items()
            for entry in entries
        ]
    except (ValueError, TypeError, ValidationError) as e:
        raise ConfigurationError(f"VCAP_SERVICES: {e}", exit_code=1)
    return Services(instances=instances)


def parse_application(raw: Optional[str]) -> Application:
    """
    Parse VCAP_APPLICATION JSON

    Raises:
        ConfigurationError: exit code 1 if the document is not valid
    """
    try:
        return Application.model_validate(json.loads(raw or "{}"))
    except (ValueError, TypeError, ValidationError) as e:
        raise ConfigurationError(f"VCAP_APPLICATION: {e}", exit_code=1)


def select_instance(services: Services, use_service: Optional[str] = None) -> ServiceInstance:
    """Pick the upstream service by explicit name, or by postgres tag"""
    if use_service:
        instance = services.named(use_service)
        if instance is None:
            raise ConfigurationError(
                f"VCAP_SERVICES: no service named '{use_service}' found", exit_code=2
            )
        return instance

    instance = services.tagged("postgres", "postgresql")
    if instance is None:
        raise ConfigurationError("VCAP_SERVICES: no 'postgres' service found", exit_code=2)
    return instance


def load_upstream_credentials(
    vcap_services: Optional[str],
    use_service: Optional[str] = None
) -> UpstreamCredentials:
    """
    Resolve the upstream PostgreSQL credentials from platform metadata

    Args:
        vcap_services: Raw VCAP_SERVICES document
        use_service: Optional explicit service name

    Returns:
        UpstreamCredentials: host/port/user/password/initial database

    Raises:
        ConfigurationError: on any missing or malformed input
    """
    instance = select_instance(parse_services(vcap_services), use_service)

    resolved = {}
    for key in ("username", "password", "host"):
        value, ok = instance.get_string(key)
        if not ok:
            raise ConfigurationError(
                f"VCAP_SERVICES: '{instance.label}' service has no '{key}' credential",
                exit_code=3
            )
        resolved[key] = value

    database, ok = instance.database_name()
    if not ok:
        raise ConfigurationError(
            f"VCAP_SERVICES: '{instance.label}' service has no database name credential",
            exit_code=3
        )

    port, ok = instance.get_string("port")
    if not ok:
        logger.warning(
            f"VCAP_SERVICES: '{instance.label}' service has no 'port' credential; "
            f"using default of {DEFAULT_PORT}"
        )
        port = DEFAULT_PORT

    return UpstreamCredentials(port=port, database=database, **resolved)
