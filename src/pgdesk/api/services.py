from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Sequence

import psycopg
from psycopg.types.json import Jsonb

from pgdesk import search, transfer
from pgdesk.classifier import classify_table
from pgdesk.database import Database
from pgdesk.errors import (
    ConfigurationError,
    GatewayError,
    RecordNotFoundError,
    UnderlyingStoreError,
    UnknownTableError,
)
from pgdesk.sanitize import ID_FIELD, clean_fields, sanitize_fields
from pgdesk.sql_utils import (
    build_insert_sql,
    build_select_sql,
    build_update_sql,
    format_identifier,
)

from .connection_store import ConnectionSettings, ConnectionStore

logger = logging.getLogger("pgdesk.api.services")

MAX_ROWS = 1000

TABLES_SQL = """
SELECT tablename
FROM pg_tables
WHERE schemaname = %s
ORDER BY tablename
"""

SCHEMA_COLUMNS_SQL = """
SELECT table_name, column_name
FROM information_schema.columns
WHERE table_schema = %s
ORDER BY table_name, ordinal_position
"""

TABLE_COLUMNS_SQL = """
SELECT column_name, data_type, is_nullable, column_default
FROM information_schema.columns
WHERE table_schema = %s AND table_name = %s
ORDER BY ordinal_position
"""

TABLE_STATS_SQL = """
SELECT c.relname AS name,
       COALESCE(s.n_live_tup, 0) AS row_count,
       pg_size_pretty(pg_total_relation_size(c.oid)) AS size
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
LEFT JOIN pg_stat_user_tables s ON s.relid = c.oid
WHERE n.nspname = %s AND c.relkind IN ('r', 'p')
ORDER BY c.relname
"""

USERS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    username VARCHAR(100) NOT NULL UNIQUE,
    email VARCHAR(255) NOT NULL UNIQUE,
    role VARCHAR(50) DEFAULT 'user',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    last_login TIMESTAMP,
    is_active BOOLEAN DEFAULT true
)
"""


class GatewayService:
    """
    Service contract for the table CRUD gateway.

    Implementations own no HTTP concerns; they raise :mod:`pgdesk.errors`
    exceptions which the web layer turns into structured responses.
    """

    def test_connection(
        self, settings: ConnectionSettings
    ) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    def connect(self, settings: ConnectionSettings) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    def disconnect(self) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    def list_table_names(self) -> List[str]:  # pragma: no cover - interface
        raise NotImplementedError

    def list_tables(self) -> List[dict]:  # pragma: no cover - interface
        raise NotImplementedError

    def table_stats(self) -> List[dict]:  # pragma: no cover - interface
        raise NotImplementedError

    def list_columns(self, table: str) -> List[dict]:  # pragma: no cover - interface
        raise NotImplementedError

    def get_table_data(self, table: str) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    def search_rows(
        self, table: str, filters: Sequence[search.SearchFilter], global_search: str = ""
    ) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    def create_record(
        self, table: str, fields: Mapping[str, Any]
    ) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    def update_record(
        self, table: str, record_id: Any, fields: Mapping[str, Any]
    ) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    def export_table(self, table: str, fmt: str) -> bytes:  # pragma: no cover - interface
        raise NotImplementedError

    def csv_template(self, table: str) -> bytes:  # pragma: no cover - interface
        raise NotImplementedError

    def import_csv(self, table: str, payload: bytes) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    def ensure_users_table(self) -> dict:  # pragma: no cover - interface
        raise NotImplementedError


@contextmanager
def driver_errors() -> Iterator[None]:
    """Translate psycopg exceptions into :class:`UnderlyingStoreError`."""
    try:
        yield
    except GatewayError:
        raise
    except psycopg.Error as exc:
        raise UnderlyingStoreError.from_driver(exc) from exc


def _bind(value: Any) -> Any:
    if isinstance(value, dict):
        return Jsonb(value)
    return value


def _readable(value: Any) -> Any:
    """Render ``bytea`` values in PostgreSQL hex format (``\\x89504e47``)."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    return value


def readable_rows(rows: Sequence[Mapping[str, Any]]) -> List[dict]:
    return [{key: _readable(value) for key, value in row.items()} for row in rows]


class PostgresGatewayService(GatewayService):
    """Concrete gateway that runs parameterized SQL through the active pool."""

    def __init__(self, connection_store: ConnectionStore, *, max_rows: int = MAX_ROWS) -> None:
        self.connection_store = connection_store
        self.max_rows = max_rows

    # ----------------------------- connection -----------------------------
    def test_connection(self, settings: ConnectionSettings) -> dict:
        settings.validate()
        try:
            self.connection_store.probe(settings)
            logger.info(f"Connection test succeeded for {settings.host}/{settings.database}")
            return {"success": True}
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Connection test failed for {settings.host}/{settings.database}: {e}")
            return {"success": False, "error": str(e) or type(e).__name__}

    def connect(self, settings: ConnectionSettings) -> dict:
        settings.validate()
        try:
            self.connection_store.connect(settings)
            return {"success": True}
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Connection failed for {settings.host}/{settings.database}: {e}")
            return {"success": False, "error": str(e) or type(e).__name__}

    def disconnect(self) -> dict:
        self.connection_store.disconnect()
        return {"success": True}

    def _database(self) -> Database:
        return self.connection_store.get_database()

    def _schema(self) -> str:
        settings = self.connection_store.settings
        return settings.schema if settings is not None else "public"

    def _table_expression(self, table: str) -> str:
        return format_identifier(self._schema(), table)

    def _table_names(self, db: Database) -> List[str]:
        rows = db.query(TABLES_SQL, (self._schema(),))
        return [row["tablename"] for row in rows]

    def _require_table(self, db: Database, table: str) -> None:
        """Only names from the live table list may be spliced into SQL text."""
        if table not in self._table_names(db):
            logger.warning(f"Rejected unknown table '{table}' in schema '{self._schema()}'")
            raise UnknownTableError(table)

    def _column_rows(self, db: Database, table: str) -> List[dict]:
        return db.query(TABLE_COLUMNS_SQL, (self._schema(), table))

    # ------------------------------- tables -------------------------------
    def list_table_names(self) -> List[str]:
        db = self._database()
        with driver_errors():
            names = self._table_names(db)
        logger.info(f"Listed {len(names)} tables in schema '{self._schema()}'")
        return names

    def list_tables(self) -> List[dict]:
        db = self._database()
        with driver_errors():
            names = self._table_names(db)
            columns_by_table: dict[str, list[str]] = {}
            for row in db.query(SCHEMA_COLUMNS_SQL, (self._schema(),)):
                columns_by_table.setdefault(row["table_name"], []).append(row["column_name"])
        return [
            {"name": name, "category": classify_table(name, columns_by_table.get(name)).value}
            for name in names
        ]

    def table_stats(self) -> List[dict]:
        db = self._database()
        with driver_errors():
            rows = db.query(TABLE_STATS_SQL, (self._schema(),))
            columns_by_table: dict[str, list[str]] = {}
            for row in db.query(SCHEMA_COLUMNS_SQL, (self._schema(),)):
                columns_by_table.setdefault(row["table_name"], []).append(row["column_name"])
        return [
            {
                "name": row["name"],
                "category": classify_table(row["name"], columns_by_table.get(row["name"])).value,
                "row_count": int(row["row_count"] or 0),
                "size": row["size"],
            }
            for row in rows
        ]

    def list_columns(self, table: str) -> List[dict]:
        db = self._database()
        with driver_errors():
            self._require_table(db, table)
            rows = self._column_rows(db, table)
        return [
            {
                "name": row["column_name"],
                "type": row["data_type"],
                "nullable": str(row["is_nullable"]).upper() == "YES",
                "default": row["column_default"],
            }
            for row in rows
        ]

    def get_table_data(self, table: str) -> dict:
        db = self._database()
        with driver_errors():
            self._require_table(db, table)
            columns = [row["column_name"] for row in self._column_rows(db, table)]
            rows = db.query(
                build_select_sql(self._table_expression(table), limit=self.max_rows),
                max_rows=self.max_rows,
            )
        logger.info(f"Fetched {len(rows)} rows from '{table}'")
        return {"columns": columns, "rows": readable_rows(rows[: self.max_rows])}

    def search_rows(
        self, table: str, filters: Sequence[search.SearchFilter], global_search: str = ""
    ) -> dict:
        data = self.get_table_data(table)
        rows = search.filter_rows(data["rows"], filters, global_search)
        logger.info(f"Search on '{table}' matched {len(rows)}/{len(data['rows'])} rows")
        return {"columns": data["columns"], "rows": rows}

    # ------------------------------- records ------------------------------
    def create_record(self, table: str, fields: Mapping[str, Any]) -> dict:
        db = self._database()
        values = sanitize_fields(clean_fields(fields, drop_unset=True))
        with driver_errors():
            self._require_table(db, table)
            columns = [row["column_name"] for row in self._column_rows(db, table)]
            returning = ID_FIELD if ID_FIELD in columns else None
            sql = build_insert_sql(
                self._table_expression(table), list(values), returning=returning
            )
            result = db.execute(sql, [_bind(value) for value in values.values()])
        row = result.first()
        record_id = row.get(ID_FIELD) if row and returning else None
        logger.info(f"Created record in '{table}' with id={record_id}")
        response: dict[str, Any] = {"success": True}
        if record_id is not None:
            response["id"] = record_id
        return response

    def update_record(self, table: str, record_id: Any, fields: Mapping[str, Any]) -> dict:
        db = self._database()
        changes = clean_fields(fields, drop_unset=True)
        if not changes:
            logger.info(f"Nothing to update for '{table}' id={record_id}")
            return {"success": True}

        values = sanitize_fields(changes)
        with driver_errors():
            self._require_table(db, table)
            sql = build_update_sql(self._table_expression(table), list(values), key=ID_FIELD)
            params = [_bind(value) for value in values.values()] + [record_id]
            result = db.execute(sql, params)
        if result.rowcount == 0:
            logger.warning(f"Update matched no rows in '{table}' for id={record_id}")
            raise RecordNotFoundError(table, record_id)
        logger.info(f"Updated {len(values)} field(s) of '{table}' id={record_id}")
        return {"success": True}

    # ------------------------------ transfer ------------------------------
    def export_table(self, table: str, fmt: str) -> bytes:
        data = self.get_table_data(table)
        return transfer.export_records(data["columns"], data["rows"], fmt, title=table)

    def csv_template(self, table: str) -> bytes:
        columns = [column["name"] for column in self.list_columns(table)]
        return transfer.csv_template(columns)

    def import_csv(self, table: str, payload: bytes) -> dict:
        db = self._database()
        with driver_errors():
            self._require_table(db, table)
        records = transfer.read_csv_records(payload)
        return transfer.import_records(records, lambda record: self.create_record(table, record))

    # ------------------------------ bootstrap -----------------------------
    def ensure_users_table(self) -> dict:
        db = self._database()
        with driver_errors():
            db.execute(USERS_TABLE_SQL)
            count_row = db.execute("SELECT COUNT(*) AS count FROM users").first() or {}
            if int(count_row.get("count") or 0) == 0:
                db.execute(
                    "INSERT INTO users (username, email, role) VALUES (%s, %s, %s)",
                    ("admin", "admin@example.com", "admin"),
                )
                logger.info("Seeded default admin user")
        return {"success": True, "message": "Users table created successfully"}

