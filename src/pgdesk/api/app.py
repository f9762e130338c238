import logging
import traceback

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pgdesk.errors import GatewayError

from .connection_store import ConnectionStore
from .routers.connection import router as connection_router
from .routers.system import router as system_router
from .routers.tables import router as tables_router
from .services import GatewayService, PostgresGatewayService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)
logger = logging.getLogger("pgdesk.api")


def create_app(
    gateway_service: GatewayService, connection_store: ConnectionStore | None = None
) -> FastAPI:
    """
    Build a FastAPI app for the table CRUD gateway.

    Args:
        gateway_service: Service instance that runs the gateway operations against
            the active PostgreSQL pool.
        connection_store: Holder of the active pool. Defaults to the store owned by
            ``gateway_service`` when it has one, else a fresh store.

    Raises:
        ValueError: When gateway_service is not provided.
    """
    if gateway_service is None:
        raise ValueError("gateway_service is required")

    app = FastAPI(title="pgdesk API")

    # Add CORS middleware for the dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        logger.warning(
            f"{type(exc).__name__} at {request.method} {request.url.path}: {exc.message}"
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception at {request.method} {request.url}: {exc}")
        logger.error(f"Exception details: {traceback.format_exc()}")

        if isinstance(exc, HTTPException):
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": str(exc) or "Internal server error",
                "type": type(exc).__name__,
            },
        )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"Request: {request.method} {request.url.path}")
        try:
            response = await call_next(request)
            logger.info(f"Response: {request.method} {request.url.path} - {response.status_code}")
            return response
        except Exception as e:
            logger.error(f"Request failed: {request.method} {request.url.path} - {e}")
            raise

    if connection_store is None:
        if isinstance(gateway_service, PostgresGatewayService):
            connection_store = gateway_service.connection_store
        else:
            connection_store = ConnectionStore()

    app.state.gateway_service = gateway_service
    app.state.connection_store = connection_store
    app.include_router(connection_router)
    app.include_router(tables_router)
    app.include_router(system_router)

    logger.info("FastAPI app created successfully")
    return app
