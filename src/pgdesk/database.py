from __future__ import annotations

import logging
import re
from time import time
from typing import Any, Callable, Optional, Sequence

from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

_logger = logging.getLogger("pgdesk.database")

# Detect statements that write data or metadata so the log tells them apart from reads.
_MUTATING_RE = re.compile(
    r"^\s*(ALTER|CREATE|DROP|TRUNCATE|RENAME|COMMENT|GRANT|REVOKE|"
    r"INSERT|UPDATE|DELETE|MERGE|COPY|VACUUM|REINDEX|CLUSTER)\b",
    re.IGNORECASE | re.DOTALL,
)

LIVENESS_SQL = "SELECT NOW()"


def is_mutating(sql: str) -> bool:
    """Return True when the statement mutates PostgreSQL state."""
    return bool(_MUTATING_RE.match(sql or ""))


def sslmode_for(use_tls: bool, tls_verify: bool = False) -> str:
    if not use_tls:
        return "disable"
    return "verify-full" if tls_verify else "require"


class StatementResult:
    """Rows (for statements that return any) plus the affected-row count."""

    __slots__ = ("rows", "rowcount")

    def __init__(self, rows: list[dict], rowcount: int) -> None:
        self.rows = rows
        self.rowcount = rowcount

    def first(self) -> Optional[dict]:
        return self.rows[0] if self.rows else None


class Database:
    """
    Thin wrapper around a ``psycopg_pool.ConnectionPool`` that provides:

    * explicit open/close so callers control the pool lifecycle
    * structured logging for every statement (values are never logged)
    * a liveness check used by test-connection and connect
    * a hard row cap when fetching
    """

    def __init__(
        self,
        name: str,
        host: str,
        *,
        port: int = 5432,
        database: str = "postgres",
        user: str = "postgres",
        password: str = "",
        use_tls: bool = False,
        tls_verify: bool = False,
        tls_root_cert: Optional[str] = None,
        min_size: int = 1,
        max_size: int = 10,
        max_idle: float = 30.0,
        connect_timeout: float = 5.0,
        log_sql_text: bool = True,
        log_sql_truncate: int = 4000,
        pool_factory: Callable[..., ConnectionPool] = ConnectionPool,
    ) -> None:
        self.name = name
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.tls_verify = tls_verify
        self.tls_root_cert = tls_root_cert
        self.min_size = min_size
        self.max_size = max_size
        self.max_idle = max_idle
        self.connect_timeout = connect_timeout
        self.log_sql_text = log_sql_text
        self.log_sql_truncate = (
            log_sql_truncate if log_sql_truncate and log_sql_truncate > 0 else 4000
        )
        self._pool_factory = pool_factory
        self._pool: Optional[ConnectionPool] = None

        if not _logger.handlers:
            logging.basicConfig(
                level=logging.INFO,
                format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            )

    # ----------------------- connection management -----------------------
    @property
    def conninfo(self) -> str:
        params: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
            "password": self.password,
            "sslmode": sslmode_for(self.use_tls, self.tls_verify),
            "connect_timeout": max(1, int(self.connect_timeout)),
            "application_name": "pgdesk",
        }
        if self.use_tls and self.tls_root_cert:
            params["sslrootcert"] = self.tls_root_cert
        return make_conninfo(**params)

    @property
    def is_open(self) -> bool:
        return self._pool is not None and not self._pool.closed

    @property
    def closed(self) -> bool:
        return not self.is_open

    @property
    def pool(self) -> ConnectionPool:
        if self._pool is None:
            raise RuntimeError(f"Pool for '{self.name}' has not been opened")
        return self._pool

    def open(self) -> None:
        """Create the pool and wait until ``min_size`` connections are established."""
        if self.is_open:
            return
        _logger.info(
            "Opening pool | db=%s host=%s:%s database=%s user=%s tls=%s verify=%s "
            "min=%d max=%d max_idle=%.0fs timeout=%.0fs",
            self.name,
            self.host,
            self.port,
            self.database,
            self.user,
            self.use_tls,
            self.tls_verify,
            self.min_size,
            self.max_size,
            self.max_idle,
            self.connect_timeout,
        )
        self._pool = self._pool_factory(
            self.conninfo,
            min_size=self.min_size,
            max_size=self.max_size,
            max_idle=self.max_idle,
            timeout=self.connect_timeout,
            kwargs={"row_factory": dict_row},
            name=f"pgdesk-{self.name}",
            open=False,
        )
        try:
            self._pool.open(wait=True, timeout=self.connect_timeout)
        except Exception:
            _logger.error("Pool failed to open | db=%s", self.name)
            self.close()
            raise

    def close(self) -> None:
        if self._pool is None:
            return
        _logger.info("Closing pool | db=%s", self.name)
        try:
            self._pool.close()
        finally:
            self._pool = None

    def ping(self) -> Any:
        """Run the liveness query and return the server time."""
        row = self.execute(LIVENESS_SQL).first()
        return None if row is None else next(iter(row.values()), None)

    # ---------------------------- execution ------------------------------
    def _log_statement(self, sql: str, params: Optional[Sequence[Any]], mutating: bool) -> None:
        nparams = len(params) if params else 0
        if self.log_sql_text:
            display = (
                sql
                if len(sql) <= self.log_sql_truncate
                else sql[: self.log_sql_truncate] + " ... [truncated]"
            )
            _logger.info(
                "%s | db=%s | len=%d | params=%d | sql=%s",
                "MUTATION" if mutating else "QUERY",
                self.name,
                len(sql),
                nparams,
                display,
            )
        else:
            _logger.info(
                "%s | db=%s | len=%d | params=%d",
                "MUTATION" if mutating else "QUERY",
                self.name,
                len(sql),
                nparams,
            )

    def execute(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        *,
        max_rows: Optional[int] = None,
    ) -> StatementResult:
        """
        Run one statement on a pooled connection and return its rows and rowcount.

        The connection is returned to the pool on exit; the transaction commits
        when the statement succeeds and rolls back otherwise.
        """
        trimmed = (sql or "").strip()
        mutating = is_mutating(trimmed)
        self._log_statement(trimmed, params, mutating)

        start = time()
        try:
            with self.pool.connection() as conn:
                cursor = conn.execute(trimmed, params)
                rows: list[dict] = []
                if cursor.description is not None:
                    if max_rows is not None:
                        rows = list(cursor.fetchmany(max_rows))
                    else:
                        rows = list(cursor.fetchall())
                rowcount = cursor.rowcount
        except Exception as exc:
            _logger.error(
                "%s FAILED | db=%s | elapsed=%.3fs | error=%s",
                "MUTATION" if mutating else "QUERY",
                self.name,
                time() - start,
                exc,
            )
            raise

        _logger.info(
            "%s OK | db=%s | rows=%d | rowcount=%d | elapsed=%.3fs",
            "MUTATION" if mutating else "QUERY",
            self.name,
            len(rows),
            rowcount,
            time() - start,
        )
        return StatementResult(rows, rowcount)

    def query(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        *,
        max_rows: Optional[int] = None,
    ) -> list[dict]:
        """Execute SQL and return rows as dictionaries."""
        return self.execute(sql, params, max_rows=max_rows).rows

    # ------------------------------ misc ---------------------------------
    def __repr__(self) -> str:  # pragma: no cover - trivial
        state = "open" if self.is_open else "closed"
        return f"<Database {self.user}@{self.host}:{self.port}/{self.database} ({state})>"
