from typing import Any

from fastapi import Request

from .connection_store import ConnectionStore
from .services import GatewayService


def _app_state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"App state '{name}' is not configured")
    return value


def get_gateway_service(request: Request) -> GatewayService:
    return _app_state(request, "gateway_service")


def get_connection_store(request: Request) -> ConnectionStore:
    return _app_state(request, "connection_store")
