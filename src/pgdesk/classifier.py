"""Group tables into IIS application inventories and SQL server inventories."""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Optional


class TableCategory(str, Enum):
    IIS = "iis"
    SQL = "sql"


DEFAULT_CATEGORY = TableCategory.IIS

# Matches vp-v9-, vp-v10-, vp-v11-, ...
_VERSIONED_PREFIX_RE = re.compile(r"^vp-v\d+-", re.IGNORECASE)
_INFRA_PREFIX_RE = re.compile(r"^vp-sql-", re.IGNORECASE)
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")

IIS_COLUMN_KEYWORDS = frozenset(
    {
        "site_name",
        "site_id",
        "app_name",
        "app_pool",
        "pool_state",
        "pool_name",
        "runtime",
        "version_socle",
        "binding",
        "bindings",
        "physical_path",
        "virtual_path",
        "responsable",
    }
)

SQL_COLUMN_KEYWORDS = frozenset(
    {
        "db_name",
        "database_name",
        "owner",
        "state",
        "size_mb",
        "mdver",
        "collation",
        "recovery_model",
        "compatibility_level",
        "instance_name",
        "login_name",
    }
)

_IIS_NAME_TOKENS = frozenset({"iis", "app", "apps", "application", "applications", "site", "sites"})
_SQL_NAME_TOKENS = frozenset({"sql", "db", "database", "databases", "instance", "instances"})


def _score_columns(columns: Iterable[str]) -> tuple[int, int]:
    iis = sql = 0
    for column in columns:
        key = (column or "").strip().lower()
        if key in IIS_COLUMN_KEYWORDS:
            iis += 1
        if key in SQL_COLUMN_KEYWORDS:
            sql += 1
    return iis, sql


def _name_tokens(name: str) -> set[str]:
    return {token for token in _TOKEN_SPLIT_RE.split(name.lower()) if token}


def classify_table(name: str, columns: Optional[Iterable[str]] = None) -> TableCategory:
    """
    Return the category for ``name``.

    Prefix conventions are authoritative. Column keywords come next, then
    keywords found in the name itself, then :data:`DEFAULT_CATEGORY`.
    """
    name = name or ""
    if _VERSIONED_PREFIX_RE.match(name):
        return TableCategory.IIS
    if _INFRA_PREFIX_RE.match(name):
        return TableCategory.SQL

    if columns is not None:
        iis_score, sql_score = _score_columns(columns)
        if iis_score > sql_score:
            return TableCategory.IIS
        if sql_score > iis_score:
            return TableCategory.SQL

    tokens = _name_tokens(name)
    sql_hit = bool(tokens & _SQL_NAME_TOKENS)
    iis_hit = bool(tokens & _IIS_NAME_TOKENS)
    if sql_hit and not iis_hit:
        return TableCategory.SQL
    if iis_hit and not sql_hit:
        return TableCategory.IIS

    return DEFAULT_CATEGORY
