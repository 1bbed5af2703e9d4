"""
pgbroker - Main FastAPI Application
"""
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from .config.settings import settings
from .config.vcap import (
    ConfigurationError, UpstreamCredentials, load_upstream_credentials, parse_application
)
from .database.connection import ConnectionManager
from .api.v2 import broker as broker_api
from .services.broker import (
    InstanceLifecycleManager, InstanceRegistry, PostgresAdmin, SchemaBootstrapper,
    ServiceBroker, TaskTracker
)


logger = logging.getLogger(__name__)


async def build_broker(credentials: UpstreamCredentials) -> ServiceBroker:
    """
    Bootstrap the control database and wire up the broker services

    Args:
        credentials: Upstream PostgreSQL admin credentials

    Returns:
        ServiceBroker: Ready to serve requests
    """
    connections = ConnectionManager(
        host=credentials.host,
        port=credentials.port,
        username=credentials.username,
        password=credentials.password,
        statement_timeout=settings.STATEMENT_TIMEOUT_SECONDS
    )
    await SchemaBootstrapper(connections, settings.CONTROL_DATABASE).bootstrap(
        credentials.database
    )

    registry = InstanceRegistry(connections)
    manager = InstanceLifecycleManager(
        registry=registry,
        admin=PostgresAdmin(connections),
        tasks=TaskTracker(timeout=settings.TASK_TIMEOUT_SECONDS),
        expiry_seconds=settings.INSTANCE_EXPIRY_SECONDS
    )
    return ServiceBroker(manager, host=credentials.host, port=credentials.port)


async def shutdown_broker(broker: ServiceBroker) -> None:
    """Let in-flight provisioning finish, then release the connection"""
    await broker.manager.tasks.join()
    await broker.manager.registry.connections.close()


def create_app(broker: Optional[ServiceBroker] = None) -> FastAPI:
    """
    Create the broker application

    Args:
        broker: Pre-built broker; when omitted, one is bootstrapped at
            startup from platform metadata
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"Starting {settings.APP_NAME} in {settings.ENVIRONMENT} mode")
        owned = broker is None
        if owned:
            credentials = load_upstream_credentials(settings.VCAP_SERVICES, settings.USE_SERVICE)
            app.state.broker = await build_broker(credentials)
        else:
            app.state.broker = broker

        yield

        logger.info(f"Shutting down {settings.APP_NAME}")
        if owned:
            await shutdown_broker(app.state.broker)

    app = FastAPI(
        title="pgbroker",
        description="Shared PostgreSQL service broker",
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan
    )
    if broker is not None:
        app.state.broker = broker

    app.include_router(broker_api.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all uncaught exceptions"""
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={
                "description": "Internal server error" if settings.is_production else str(exc)
            }
        )

    return app


app = create_app()


def run() -> None:
    """Console entry point"""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        application = parse_application(settings.VCAP_APPLICATION)
        load_upstream_credentials(settings.VCAP_SERVICES, settings.USE_SERVICE)
    except ConfigurationError as e:
        print(e.message, file=sys.stderr)
        sys.exit(e.exit_code)

    uri = application.uris[0] if application.uris else f"{settings.HOST}:{settings.PORT}"
    logger.info(f"running v{application.version} of {application.name} at http://{uri}")

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
