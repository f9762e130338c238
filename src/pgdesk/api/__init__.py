from .app import create_app
from .connection_store import ConnectionSettings, ConnectionStore
from .services import GatewayService, PostgresGatewayService

__all__ = [
    "create_app",
    "GatewayService",
    "PostgresGatewayService",
    "ConnectionSettings",
    "ConnectionStore",
]
