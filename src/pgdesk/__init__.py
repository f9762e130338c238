from .classifier import TableCategory, classify_table
from .database import Database, is_mutating
from .errors import (
    ConfigurationError,
    DatabaseConnectionError,
    GatewayError,
    ImportFormatError,
    NoConnectionError,
    RecordNotFoundError,
    UnderlyingStoreError,
    UnknownTableError,
)
from .sanitize import UNSET, clean_fields, is_date_column, sanitize_value
from .search import SearchFilter, SearchOperator, filter_rows
from .sql_utils import (
    build_insert_sql,
    build_select_sql,
    build_update_sql,
    format_identifier,
    quote_identifier,
)

__version__ = "0.1.0"

__all__ = [
    "Database",
    "is_mutating",
    # Classification
    "TableCategory",
    "classify_table",
    # Sanitizing
    "UNSET",
    "sanitize_value",
    "clean_fields",
    "is_date_column",
    # Search
    "SearchFilter",
    "SearchOperator",
    "filter_rows",
    # SQL utilities
    "quote_identifier",
    "format_identifier",
    "build_select_sql",
    "build_insert_sql",
    "build_update_sql",
    # Errors
    "GatewayError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "NoConnectionError",
    "UnknownTableError",
    "RecordNotFoundError",
    "UnderlyingStoreError",
    "ImportFormatError",
]
