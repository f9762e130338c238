"""Runtime configuration from environment variables."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .api.connection_store import ConnectionSettings, ConnectionStore
from .api.services import PostgresGatewayService

logger = logging.getLogger("pgdesk.config")


def env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "on"}


def settings_from_env() -> Optional[ConnectionSettings]:
    """Startup connection settings, or None when ``PG_HOST`` is unset."""
    host = os.getenv("PG_HOST")
    if not host:
        return None
    return ConnectionSettings(
        host=host,
        port=int(os.getenv("PG_PORT", "5432")),
        database=os.getenv("PG_DATABASE", "postgres"),
        username=os.getenv("PG_USER", "postgres"),
        password=os.getenv("PG_PASSWORD", ""),
        use_tls=env_bool("PG_SSL", False),
        tls_verify=env_bool("PG_SSL_VERIFY", False),
        schema=os.getenv("PG_SCHEMA", "public"),
    )


def settings_to_env(settings: ConnectionSettings, environ=None) -> None:
    """Write ``settings`` back as ``PG_*`` variables so a reloaded app picks them up."""
    environ = os.environ if environ is None else environ
    environ.update(
        {
            "PG_HOST": settings.host,
            "PG_PORT": str(settings.port),
            "PG_DATABASE": settings.database,
            "PG_USER": settings.username,
            "PG_PASSWORD": settings.password,
            "PG_SSL": "true" if settings.use_tls else "false",
            "PG_SSL_VERIFY": "true" if settings.tls_verify else "false",
            "PG_SCHEMA": settings.schema,
        }
    )


def build_service(settings: Optional[ConnectionSettings] = None) -> PostgresGatewayService:
    """Create the gateway and, when settings are given, connect it eagerly."""
    service = PostgresGatewayService(ConnectionStore())
    if settings is not None:
        result = service.connect(settings)
        if not result["success"]:
            logger.warning(f"Startup connection failed: {result.get('error')}")
    return service
