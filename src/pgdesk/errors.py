"""Exception hierarchy raised by the gateway and rendered by the HTTP layer."""

from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for every error the gateway reports to its callers."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @classmethod
    def from_driver(cls, exc: Exception) -> "GatewayError":
        """Wrap a driver exception, keeping its message verbatim."""
        details: dict[str, Any] = {"type": type(exc).__name__}
        sqlstate = getattr(exc, "sqlstate", None)
        if sqlstate:
            details["sqlstate"] = sqlstate
        return cls(str(exc).strip() or type(exc).__name__, details=details)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ConfigurationError(GatewayError):
    """Required connection settings are missing or malformed."""

    status_code = 400


class DatabaseConnectionError(GatewayError):
    """Transport or authentication failure while opening or using a pool."""

    status_code = 502


class NoConnectionError(GatewayError):
    status_code = 400

    def __init__(self, message: str = "No database connection") -> None:
        super().__init__(message)


class UnknownTableError(GatewayError):
    """Table name is not part of the live table list for the active schema."""

    status_code = 404

    def __init__(self, table: str) -> None:
        super().__init__(f"Table '{table}' does not exist", details={"table": table})
        self.table = table


class RecordNotFoundError(GatewayError):
    status_code = 404

    def __init__(self, table: str, record_id: Any) -> None:
        super().__init__("Record not found", details={"table": table, "id": str(record_id)})
        self.table = table
        self.record_id = record_id


class UnderlyingStoreError(GatewayError):
    """Driver-level failure surfaced with the driver's own message."""

    status_code = 500


class ImportFormatError(GatewayError):
    status_code = 400
