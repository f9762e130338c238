from __future__ import annotations

import io

import openpyxl
import psycopg
import pytest
from psycopg.types.json import Jsonb

from conftest import FakeDatabase, StubDatabaseFactory, make_settings
from pgdesk.api.connection_store import ConnectionStore
from pgdesk.api.services import PostgresGatewayService
from pgdesk.errors import (
    ConfigurationError,
    ImportFormatError,
    NoConnectionError,
    RecordNotFoundError,
    UnderlyingStoreError,
    UnknownTableError,
)
from pgdesk.sanitize import UNSET
from pgdesk.search import SearchFilter, SearchOperator


def test_list_table_names_is_sorted(gateway):
    assert gateway.list_table_names() == ["audit", "vp-sql-databases", "vp-v10-apps"]


def test_list_tables_carries_categories(gateway):
    assert gateway.list_tables() == [
        {"name": "audit", "category": "iis"},
        {"name": "vp-sql-databases", "category": "sql"},
        {"name": "vp-v10-apps", "category": "iis"},
    ]


def test_table_stats(gateway):
    stats = {item["name"]: item for item in gateway.table_stats()}
    assert stats["vp-sql-databases"]["row_count"] == 2
    assert stats["vp-sql-databases"]["category"] == "sql"
    assert stats["audit"]["size"] == "16 kB"


def test_list_columns(gateway):
    columns = gateway.list_columns("vp-v10-apps")
    assert [column["name"] for column in columns] == [
        "id",
        "hostname",
        "site_name",
        "app_name",
        "created_at",
    ]
    assert columns[0] == {"name": "id", "type": "integer", "nullable": False, "default": None}


def test_get_table_data_returns_columns_in_order(gateway, fake_db):
    data = gateway.get_table_data("vp-sql-databases")
    assert data["columns"] == ["id", "hostname", "db_name", "owner", "size_mb"]
    assert [row["db_name"] for row in data["rows"]] == ["ACT", "PROD"]
    sql, _ = fake_db.statements("SELECT * FROM")[0]
    assert sql == 'SELECT * FROM "public"."vp-sql-databases" LIMIT 1000'


def test_get_table_data_caps_rows(gateway, fake_db):
    fake_db.tables["audit"]["rows"] = [
        {"event": f"e{i}", "logged_at": None} for i in range(1500)
    ]
    data = gateway.get_table_data("audit")
    assert len(data["rows"]) == 1000


def test_get_table_data_uses_configured_schema(fake_db):
    store = ConnectionStore()
    store.set_database(fake_db, make_settings(schema="inventory"))
    PostgresGatewayService(store).get_table_data("audit")
    assert fake_db.statements("SELECT * FROM")[0][0].startswith('SELECT * FROM "inventory"."audit"')


def test_unknown_table_is_rejected_before_any_select(gateway, fake_db):
    with pytest.raises(UnknownTableError) as excinfo:
        gateway.get_table_data('apps"; DROP TABLE users; --')
    assert excinfo.value.status_code == 404
    assert fake_db.statements("SELECT * FROM") == []
    assert fake_db.statements("DROP") == []


def test_operations_require_a_connection():
    service = PostgresGatewayService(ConnectionStore())
    with pytest.raises(NoConnectionError):
        service.list_table_names()
    with pytest.raises(NoConnectionError):
        service.create_record("audit", {"event": "x"})


def test_create_record_strips_id_and_internal_fields(gateway, fake_db):
    result = gateway.create_record(
        "vp-v10-apps",
        {"id": 7, "_tableName": "vp-v10-apps", "app_name": "NewApp", "created_at": ""},
    )
    assert result == {"success": True, "id": 101}
    sql, params = fake_db.statements("INSERT")[0]
    assert sql == (
        'INSERT INTO "public"."vp-v10-apps" ("app_name", "created_at") '
        'VALUES (%s, %s) RETURNING "id"'
    )
    assert params == ["NewApp", None]


def test_create_record_normalizes_dates(gateway, fake_db):
    gateway.create_record("vp-v10-apps", {"created_at": "2024-01-15"})
    _, params = fake_db.statements("INSERT")[0]
    assert params == ["2024-01-15T00:00:00.000Z"]


def test_create_record_without_id_column(gateway, fake_db):
    assert gateway.create_record("audit", {"event": "login"}) == {"success": True}
    sql, _ = fake_db.statements("INSERT")[0]
    assert "RETURNING" not in sql


def test_create_record_binds_objects_as_json(gateway, fake_db):
    gateway.create_record("audit", {"event": {"kind": "login"}})
    _, params = fake_db.statements("INSERT")[0]
    assert isinstance(params[0], Jsonb)


def test_create_record_translates_driver_errors(gateway, fake_db):
    fake_db.fail_with = psycopg.DatabaseError('null value in column "hostname"')
    with pytest.raises(UnderlyingStoreError) as excinfo:
        gateway.create_record("vp-v10-apps", {"app_name": "x"})
    assert excinfo.value.message == 'null value in column "hostname"'
    assert excinfo.value.details["type"] == "DatabaseError"


def test_update_record_writes_only_supplied_fields(gateway, fake_db):
    result = gateway.update_record(
        "vp-v10-apps", "2", {"app_name": "Renamed", "site_name": None, "hostname": UNSET}
    )
    assert result == {"success": True}
    sql, params = fake_db.statements("UPDATE")[0]
    assert sql == (
        'UPDATE "public"."vp-v10-apps" SET "app_name" = %s, "site_name" = %s WHERE "id" = %s'
    )
    assert params == ["Renamed", None, "2"]


def test_update_record_with_nothing_to_change_issues_no_sql(gateway, fake_db):
    assert gateway.update_record("vp-v10-apps", 1, {"id": 1, "_tableName": "x"}) == {
        "success": True
    }
    assert fake_db.statements("UPDATE") == []


def test_update_record_sanitizes_values(gateway, fake_db):
    gateway.update_record("vp-v10-apps", 1, {"created_at": "garbage", "app_name": ""})
    _, params = fake_db.statements("UPDATE")[0]
    assert params == [None, None, 1]


def test_update_missing_record_raises_not_found(gateway, fake_db):
    fake_db.update_rowcount = 0
    with pytest.raises(RecordNotFoundError) as excinfo:
        gateway.update_record("vp-v10-apps", 999, {"app_name": "x"})
    assert excinfo.value.message == "Record not found"


def test_search_rows_applies_filters(gateway):
    filters = [SearchFilter(SearchOperator.CONTAINS, "prod", column="hostname")]
    result = gateway.search_rows("vp-sql-databases", filters)
    assert [row["db_name"] for row in result["rows"]] == ["PROD"]
    assert result["columns"][0] == "id"


def test_search_rows_global_search(gateway):
    result = gateway.search_rows("vp-v10-apps", [], "criticalapp")
    assert [row["id"] for row in result["rows"]] == [2]


def test_export_csv(gateway):
    content = gateway.export_table("vp-sql-databases", "csv").decode("utf-8")
    lines = content.strip().splitlines()
    assert lines[0] == "id,hostname,db_name,owner,size_mb"
    assert lines[1] == "1,VP-SQL-DEV,ACT,sa,1930"


def test_export_xlsx(gateway):
    content = gateway.export_table("vp-sql-databases", "xlsx")
    sheet = openpyxl.load_workbook(io.BytesIO(content)).active
    assert sheet.title == "vp-sql-databases"
    assert [cell.value for cell in sheet[1]] == ["id", "hostname", "db_name", "owner", "size_mb"]
    assert sheet.max_row == 3


def test_csv_template(gateway):
    assert gateway.csv_template("audit").decode("utf-8").strip() == "event,logged_at"


def test_import_csv_inserts_every_row(gateway, fake_db):
    payload = b"hostname,app_name,created_at\nH1,App1,2024-01-15\nH2,App2,\n"
    result = gateway.import_csv("vp-v10-apps", payload)
    assert result == {"total_rows": 2, "success_rows": 2, "error_rows": 0, "errors": []}
    inserts = fake_db.statements("INSERT")
    assert [params for _, params in inserts] == [
        ["H1", "App1", "2024-01-15T00:00:00.000Z"],
        ["H2", "App2", None],
    ]


def test_import_csv_reports_row_errors(gateway, fake_db):
    fake_db.fail_with = psycopg.DatabaseError("duplicate key")
    result = gateway.import_csv("audit", b"event\na\nb\n")
    assert result["success_rows"] == 0
    assert result["errors"] == ["Row 1: duplicate key", "Row 2: duplicate key"]


def test_import_csv_rejects_empty_payload(gateway):
    with pytest.raises(ImportFormatError):
        gateway.import_csv("audit", b"   ")


def test_import_csv_checks_table_first(gateway):
    with pytest.raises(UnknownTableError):
        gateway.import_csv("missing", b"a\n1\n")


def test_ensure_users_table_seeds_admin(gateway, fake_db):
    result = gateway.ensure_users_table()
    assert result["success"] is True
    assert fake_db.statements("CREATE TABLE IF NOT EXISTS USERS")
    _, params = fake_db.statements("INSERT")[0]
    assert list(params) == ["admin", "admin@example.com", "admin"]


def test_test_connection_reports_failures_in_body():
    factory = StubDatabaseFactory(fail_hosts={"down.example"})
    service = PostgresGatewayService(ConnectionStore(database_factory=factory))
    result = service.test_connection(make_settings(host="down.example"))
    assert result["success"] is False
    assert "down.example" in result["error"]
    assert factory.created[0].close_calls == 1


def test_test_connection_does_not_touch_active_connection(gateway, fake_db):
    factory = StubDatabaseFactory()
    gateway.connection_store._database_factory = factory
    assert gateway.test_connection(make_settings(host="other")) == {"success": True}
    assert gateway.connection_store.get_database() is fake_db


def test_connect_validates_before_network():
    factory = StubDatabaseFactory()
    service = PostgresGatewayService(ConnectionStore(database_factory=factory))
    with pytest.raises(ConfigurationError):
        service.connect(make_settings(host=""))
    assert factory.created == []


def test_connect_and_disconnect():
    factory = StubDatabaseFactory()
    store = ConnectionStore(database_factory=factory)
    service = PostgresGatewayService(store)
    assert service.connect(make_settings()) == {"success": True}
    assert store.is_connected
    assert service.disconnect() == {"success": True}
    assert not store.is_connected
    assert factory.created[0].closed


def test_fake_database_records_statements():
    db = FakeDatabase({"t": {"columns": ["a"], "rows": [{"a": 1}]}})
    db.query('SELECT * FROM "public"."t" LIMIT 1000')
    assert len(db.executed) == 1


def test_writes_to_unknown_tables_are_rejected(gateway, fake_db):
    with pytest.raises(UnknownTableError):
        gateway.create_record("missing", {"a": 1})
    with pytest.raises(UnknownTableError):
        gateway.update_record("missing", 1, {"a": 1})
    assert fake_db.statements("INSERT") == []
    assert fake_db.statements("UPDATE") == []


def test_binary_values_are_returned_as_hex(gateway, fake_db):
    fake_db.tables["blobs"] = {
        "columns": ["id", "payload"],
        "rows": [{"id": 1, "payload": b"\x89PNG\xff\x00"}, {"id": 2, "payload": None}],
    }
    data = gateway.get_table_data("blobs")
    assert data["rows"] == [{"id": 1, "payload": "\\x89504e47ff00"}, {"id": 2, "payload": None}]
    assert fake_db.tables["blobs"]["rows"][0]["payload"] == b"\x89PNG\xff\x00"
