"""
Test utilities and fixtures for pgdesk.
Shared fakes standing in for PostgreSQL, and helper fixtures for the API.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, List, Optional

import psycopg
import pytest
from fastapi.testclient import TestClient

from pgdesk.api.app import create_app
from pgdesk.api.connection_store import ConnectionSettings, ConnectionStore
from pgdesk.api.services import PostgresGatewayService
from pgdesk.database import StatementResult

_QUOTED_RE = re.compile(r'"((?:[^"]|"")*)"')


class FakeDatabase:
    """
    In-memory stand-in for :class:`pgdesk.database.Database`.

    Tables are described as ``{name: {"columns": [...], "rows": [...]}}``.
    Every executed statement is recorded in ``executed`` as ``(sql, params)``.
    """

    def __init__(self, tables: Optional[Dict[str, Dict[str, Any]]] = None):
        self.tables = tables if tables is not None else {}
        self.executed: List[tuple] = []
        self.is_open = True
        self.next_id = 101
        self.update_rowcount = 1
        self.fail_with: Optional[Exception] = None

    @property
    def closed(self) -> bool:
        return not self.is_open

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def ping(self):
        return "2024-01-15 00:00:00+00"

    def _table_in(self, sql: str) -> Optional[str]:
        names = [match.replace('""', '"') for match in _QUOTED_RE.findall(sql)]
        for name in reversed(names):
            if name in self.tables:
                return name
        return None

    def statements(self, prefix: str) -> List[tuple]:
        return [item for item in self.executed if item[0].lstrip().upper().startswith(prefix)]

    def execute(self, sql: str, params=None, *, max_rows: Optional[int] = None) -> StatementResult:
        self.executed.append((sql, list(params) if params is not None else None))
        text = " ".join(sql.split())

        if "FROM pg_tables" in text:
            return StatementResult([{"tablename": name} for name in sorted(self.tables)], 0)
        if "FROM pg_class" in text:
            rows = [
                {"name": name, "row_count": len(spec.get("rows", [])), "size": "16 kB"}
                for name, spec in sorted(self.tables.items())
            ]
            return StatementResult(rows, len(rows))
        if "information_schema.columns" in text and "table_name = %s" in text:
            spec = self.tables.get(params[1], {"columns": []})
            rows = [
                {
                    "column_name": column,
                    "data_type": "integer" if column == "id" else "text",
                    "is_nullable": "NO" if column == "id" else "YES",
                    "column_default": None,
                }
                for column in spec["columns"]
            ]
            return StatementResult(rows, len(rows))
        if "information_schema.columns" in text:
            rows = [
                {"table_name": name, "column_name": column}
                for name, spec in sorted(self.tables.items())
                for column in spec["columns"]
            ]
            return StatementResult(rows, len(rows))

        if self.fail_with is not None:
            raise self.fail_with

        if text.startswith("SELECT * FROM"):
            rows = [dict(row) for row in self.tables[self._table_in(text)]["rows"]]
            if max_rows is not None:
                rows = rows[:max_rows]
            return StatementResult(rows, len(rows))
        if text.startswith("INSERT INTO"):
            if "RETURNING" in text:
                record_id = self.next_id
                self.next_id += 1
                return StatementResult([{"id": record_id}], 1)
            return StatementResult([], 1)
        if text.startswith("UPDATE"):
            return StatementResult([], self.update_rowcount)
        if text.startswith("SELECT COUNT(*)"):
            return StatementResult([{"count": 0}], 1)
        return StatementResult([], 0)

    def query(self, sql: str, params=None, *, max_rows: Optional[int] = None):
        return self.execute(sql, params, max_rows=max_rows).rows


class StubDatabase:
    """Database double for ConnectionStore tests; hosts listed in ``fail_hosts`` refuse to open."""

    def __init__(self, fail_hosts=(), **kwargs):
        self.kwargs = kwargs
        self.fail_hosts = set(fail_hosts)
        self.is_open = False
        self.open_calls = 0
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return not self.is_open

    def open(self) -> None:
        self.open_calls += 1
        if self.kwargs.get("host") in self.fail_hosts:
            raise psycopg.OperationalError(f"connection to {self.kwargs['host']} refused")
        self.is_open = True

    def ping(self):
        return "2024-01-15 00:00:00+00"

    def close(self) -> None:
        self.close_calls += 1
        self.is_open = False


class StubDatabaseFactory:
    def __init__(self, fail_hosts=()):
        self.fail_hosts = fail_hosts
        self.created: List[StubDatabase] = []

    def __call__(self, **kwargs) -> StubDatabase:
        database = StubDatabase(fail_hosts=self.fail_hosts, **kwargs)
        self.created.append(database)
        return database


SAMPLE_TABLES = {
    "vp-v10-apps": {
        "columns": ["id", "hostname", "site_name", "app_name", "created_at"],
        "rows": [
            {
                "id": 1,
                "hostname": "VP-V10-DEV",
                "site_name": "Default Web Site",
                "app_name": "MyApp",
                "created_at": "2024-01-15T00:00:00.000Z",
            },
            {
                "id": 2,
                "hostname": "VP-V10-PROD",
                "site_name": "Production Site",
                "app_name": "CriticalApp",
                "created_at": None,
            },
        ],
    },
    "vp-sql-databases": {
        "columns": ["id", "hostname", "db_name", "owner", "size_mb"],
        "rows": [
            {"id": 1, "hostname": "VP-SQL-DEV", "db_name": "ACT", "owner": "sa", "size_mb": 1930},
            {"id": 2, "hostname": "VP-SQL-PROD", "db_name": "PROD", "owner": "sa", "size_mb": 4560},
        ],
    },
    "audit": {"columns": ["event", "logged_at"], "rows": []},
}


def make_settings(**overrides) -> ConnectionSettings:
    values = dict(host="localhost", database="inventory", username="admin", password="secret")
    values.update(overrides)
    return ConnectionSettings(**values)


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase(copy.deepcopy(SAMPLE_TABLES))


@pytest.fixture
def connected_store(fake_db: FakeDatabase) -> ConnectionStore:
    store = ConnectionStore()
    store.set_database(fake_db, make_settings())
    return store


@pytest.fixture
def gateway(connected_store: ConnectionStore) -> PostgresGatewayService:
    return PostgresGatewayService(connected_store)


@pytest.fixture
def api_client(gateway: PostgresGatewayService) -> TestClient:
    """API client backed by the real gateway over a FakeDatabase."""
    return TestClient(create_app(gateway))


@pytest.fixture
def disconnected_client() -> TestClient:
    return TestClient(create_app(PostgresGatewayService(ConnectionStore())))
