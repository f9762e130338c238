from __future__ import annotations

from typing import Iterable, Optional, Sequence


def quote_identifier(name: str) -> str:
    """Return ``name`` as a double-quoted PostgreSQL identifier, doubling embedded quotes."""
    if name is None or "\x00" in name:
        raise ValueError("identifier must be a string without NUL characters")
    return '"' + name.replace('"', '""') + '"'


def format_identifier(schema: Optional[str], table: str) -> str:
    """Return ``"schema"."table"`` (or just ``"table"`` when no schema is given)."""
    if schema:
        return f"{quote_identifier(schema)}.{quote_identifier(table)}"
    return quote_identifier(table)


def column_list(columns: Iterable[str]) -> str:
    return ", ".join(quote_identifier(column) for column in columns)


def build_select_sql(table_expression: str, *, limit: Optional[int] = None) -> str:
    """Build an unfiltered ``SELECT *`` with an optional integer ``LIMIT``."""
    query = f"SELECT * FROM {table_expression}"
    if limit is not None:
        query += f" LIMIT {int(limit)}"
    return query


def build_insert_sql(
    table_expression: str,
    columns: Sequence[str],
    *,
    returning: Optional[str] = None,
) -> str:
    """
    Build a parameterized ``INSERT`` naming exactly ``columns``.

    An empty column list produces ``INSERT ... DEFAULT VALUES`` so the table
    defaults (or its NOT NULL constraints) decide the outcome.
    """
    if columns:
        placeholders = ", ".join(["%s"] * len(columns))
        query = f"INSERT INTO {table_expression} ({column_list(columns)}) VALUES ({placeholders})"
    else:
        query = f"INSERT INTO {table_expression} DEFAULT VALUES"
    if returning:
        query += f" RETURNING {quote_identifier(returning)}"
    return query


def build_update_sql(table_expression: str, columns: Sequence[str], *, key: str = "id") -> str:
    """
    Build ``UPDATE ... SET "a" = %s, "b" = %s WHERE "key" = %s``.

    Parameters bind in column order followed by the key value.
    """
    if not columns:
        raise ValueError("columns must not be empty when building an update")
    assignments = ", ".join(f"{quote_identifier(column)} = %s" for column in columns)
    return f"UPDATE {table_expression} SET {assignments} WHERE {quote_identifier(key)} = %s"
