"""
Authentication and broker dependencies for FastAPI
"""
import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from ..config.settings import settings
from ..services.broker import ServiceBroker


# Security scheme
security = HTTPBasic()


async def require_platform(
    credentials: HTTPBasicCredentials = Depends(security)
) -> str:
    """
    Check the platform's broker credentials (HTTP basic auth)
    """
    valid_username = secrets.compare_digest(
        credentials.username.encode(), settings.SB_BROKER_USERNAME.encode()
    )
    valid_password = secrets.compare_digest(
        credentials.password.encode(), settings.SB_BROKER_PASSWORD.encode()
    )
    if not (valid_username and valid_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid broker credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def get_broker(request: Request) -> ServiceBroker:
    """
    Get the broker wired up at startup
    """
    broker = getattr(request.app.state, "broker", None)
    if broker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Broker is not initialized"
        )
    return broker
