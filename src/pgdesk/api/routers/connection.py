from fastapi import APIRouter, Depends

from ..connection_store import ConnectionStore
from ..dependencies import get_connection_store, get_gateway_service
from ..schemas import ConnectionConfig, OperationResult
from ..services import GatewayService

router = APIRouter(prefix="/api", tags=["connection"])


@router.post("/test-connection", response_model=OperationResult, response_model_exclude_none=True)
def test_connection(
    config: ConnectionConfig, service: GatewayService = Depends(get_gateway_service)
) -> OperationResult:
    """
    Open a throwaway pool, ping it and close it again.

    Connection failures are reported in the body with ``success: false``; the
    active connection (if any) is never touched.
    """
    return service.test_connection(config.to_settings())


@router.post("/connect", response_model=OperationResult, response_model_exclude_none=True)
def connect(
    config: ConnectionConfig, service: GatewayService = Depends(get_gateway_service)
) -> OperationResult:
    """Replace the active connection pool with one built from ``config``."""
    return service.connect(config.to_settings())


@router.post("/disconnect", response_model=OperationResult, response_model_exclude_none=True)
def disconnect(service: GatewayService = Depends(get_gateway_service)) -> OperationResult:
    """Close the active pool, if any."""
    return service.disconnect()


@router.get("/connection", response_model=dict)
def connection_status(store: ConnectionStore = Depends(get_connection_store)) -> dict:
    """Report whether a pool is active and which database it points at (no password)."""
    settings = store.settings
    connected = store.is_connected
    return {
        "connected": connected,
        "settings": settings.describe() if connected and settings is not None else None,
    }
