from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

import psycopg

from pgdesk.database import Database
from pgdesk.errors import ConfigurationError, DatabaseConnectionError, NoConnectionError

logger = logging.getLogger(__name__)

DatabaseFactory = Callable[..., Database]


@dataclass
class ConnectionSettings:
    host: str
    database: str
    username: str
    password: str = ""
    port: int = 5432
    use_tls: bool = False
    tls_verify: bool = False
    tls_root_cert: Optional[str] = None
    schema: str = "public"

    def validate(self) -> None:
        """Reject settings that cannot possibly connect, before touching the network."""
        missing = [
            field_name
            for field_name in ("host", "database", "username")
            if not str(getattr(self, field_name) or "").strip()
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required connection fields: {', '.join(missing)}",
                details={"missing": missing},
            )
        if not 0 < int(self.port) < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}", details={"port": self.port})
        if not (self.schema or "").strip():
            raise ConfigurationError("Schema must not be empty")

    def describe(self) -> dict[str, Any]:
        """Settings without the password, for logs and status responses."""
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "username": self.username,
            "use_tls": self.use_tls,
            "tls_verify": self.tls_verify,
            "schema": self.schema,
        }


# Pool sizing for the short-lived probe and the long-lived active pool.
PROBE_POOL_OPTIONS = {"min_size": 1, "max_size": 1, "max_idle": 10.0, "connect_timeout": 5.0}
ACTIVE_POOL_OPTIONS = {"min_size": 1, "max_size": 10, "max_idle": 30.0, "connect_timeout": 5.0}


def build_database(
    name: str,
    settings: ConnectionSettings,
    *,
    factory: DatabaseFactory = Database,
    **pool_options: Any,
) -> Database:
    return factory(
        name=name,
        host=settings.host,
        port=int(settings.port),
        database=settings.database,
        user=settings.username,
        password=settings.password,
        use_tls=settings.use_tls,
        tls_verify=settings.tls_verify,
        tls_root_cert=settings.tls_root_cert,
        **pool_options,
    )


class ConnectionStore:
    """
    Holds the single active connection pool for the process.

    ``connect`` closes the current pool before opening the next one, and the
    whole swap runs under a lock so concurrent reconfiguration cannot orphan
    a pool.
    """

    def __init__(self, database_factory: DatabaseFactory = Database) -> None:
        self._database_factory = database_factory
        self._lock = threading.Lock()
        self._database: Optional[Database] = None
        self._settings: Optional[ConnectionSettings] = None

    @property
    def settings(self) -> Optional[ConnectionSettings]:
        return self._settings

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._database is not None and self._database.is_open

    def probe(self, settings: ConnectionSettings) -> Any:
        """Open a throwaway single-connection pool, ping it and always close it."""
        settings.validate()
        probe = build_database(
            "probe", settings, factory=self._database_factory, **PROBE_POOL_OPTIONS
        )
        logger.info(f"Probing connection: {settings.describe()}")
        try:
            probe.open()
            return probe.ping()
        except psycopg.Error as exc:
            raise DatabaseConnectionError.from_driver(exc) from exc
        finally:
            probe.close()

    def connect(self, settings: ConnectionSettings) -> Database:
        """
        Replace the active pool with a new one built from ``settings``.

        The previous pool is fully closed first. When the new pool cannot be
        opened or fails its liveness check it is closed too and the store is
        left disconnected.
        """
        settings.validate()
        with self._lock:
            self._close_current()
            database = build_database(
                "active", settings, factory=self._database_factory, **ACTIVE_POOL_OPTIONS
            )
            logger.info(f"Connecting: {settings.describe()}")
            try:
                database.open()
                database.ping()
            except Exception as e:
                logger.error(f"Failed to connect to {settings.host}/{settings.database}: {e}")
                database.close()
                if isinstance(e, psycopg.Error):
                    raise DatabaseConnectionError.from_driver(e) from e
                raise
            self._database = database
            self._settings = settings
            logger.info(f"Connected to {settings.host}:{settings.port}/{settings.database}")
            return database

    def disconnect(self) -> None:
        with self._lock:
            self._close_current()

    def _close_current(self) -> None:
        if self._database is None:
            return
        logger.info("Closing active pool")
        try:
            self._database.close()
        finally:
            self._database = None
            self._settings = None

    def get_database(self) -> Database:
        """Return the active database or raise :class:`NoConnectionError`."""
        with self._lock:
            database = self._database
            if database is None:
                raise NoConnectionError()
            if not database.is_open:
                logger.warning("Active pool is closed; forgetting it")
                self._database = None
                self._settings = None
                raise NoConnectionError()
            return database

    def set_database(
        self, database: Database, settings: Optional[ConnectionSettings] = None
    ) -> None:
        """Install an already-open Database (useful for testing/mocking)."""
        with self._lock:
            self._close_current()
            self._database = database
            self._settings = settings
