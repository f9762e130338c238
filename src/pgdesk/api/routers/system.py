from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..dependencies import get_gateway_service
from ..schemas import HealthStatus, UsersTableResult
from ..services import GatewayService

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health", response_model=HealthStatus)
def health() -> HealthStatus:
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return HealthStatus(status="OK", timestamp=timestamp.replace("+00:00", "Z"))


@router.post("/create-users-table", response_model=UsersTableResult)
def create_users_table(service: GatewayService = Depends(get_gateway_service)) -> UsersTableResult:
    """Create the ``users`` table when missing and seed the default admin account."""
    return service.ensure_users_table()
