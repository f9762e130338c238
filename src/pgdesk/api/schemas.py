from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from pgdesk.classifier import TableCategory
from pgdesk.search import SearchFilter, SearchOperator

from .connection_store import ConnectionSettings


class ConnectionConfig(BaseModel):
    """Connection form as posted by the dashboard (``ssl``/``useTLS`` accepted for TLS)."""

    host: str = ""
    port: int = 5432
    database: str = ""
    username: str = Field(default="", validation_alias=AliasChoices("username", "user"))
    password: str = ""
    use_tls: bool = Field(
        default=False, validation_alias=AliasChoices("use_tls", "useTLS", "ssl")
    )
    tls_verify: bool = Field(
        default=False, validation_alias=AliasChoices("tls_verify", "tlsVerify")
    )
    tls_root_cert: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("tls_root_cert", "tlsRootCert")
    )
    db_schema: str = Field(default="public", validation_alias=AliasChoices("schema", "db_schema"))

    model_config = ConfigDict(extra="ignore")

    def to_settings(self) -> ConnectionSettings:
        return ConnectionSettings(
            host=self.host.strip(),
            port=self.port,
            database=self.database.strip(),
            username=self.username.strip(),
            password=self.password,
            use_tls=self.use_tls,
            tls_verify=self.tls_verify,
            tls_root_cert=self.tls_root_cert,
            schema=self.db_schema.strip(),
        )


class OperationResult(BaseModel):
    success: bool
    error: Optional[str] = None


class CreateResult(BaseModel):
    success: bool
    id: Optional[Any] = None


class TableDescriptor(BaseModel):
    name: str
    category: TableCategory


class TableStats(BaseModel):
    name: str
    category: TableCategory
    row_count: int
    size: Optional[str] = None


class ColumnInfo(BaseModel):
    name: str
    type: str
    nullable: bool = True
    default: Optional[str] = None


class RecordSet(BaseModel):
    columns: list[str]
    rows: list[dict[str, Any]]


class SearchFilterIn(BaseModel):
    column: Optional[str] = None
    operator: SearchOperator = SearchOperator.CONTAINS
    value: str = ""
    second_value: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("second_value", "secondValue")
    )

    model_config = ConfigDict(extra="ignore")

    def to_filter(self) -> SearchFilter:
        return SearchFilter(
            operator=self.operator,
            value=self.value,
            column=self.column or None,
            second_value=self.second_value,
        )


class SearchRequest(BaseModel):
    filters: list[SearchFilterIn] = Field(default_factory=list)
    global_search: str = Field(
        default="", validation_alias=AliasChoices("global_search", "globalSearch")
    )

    model_config = ConfigDict(extra="forbid")


class ImportResult(BaseModel):
    total_rows: int
    success_rows: int
    error_rows: int
    errors: list[str]


class UsersTableResult(BaseModel):
    success: bool
    message: str


class HealthStatus(BaseModel):
    status: str
    timestamp: str
