from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from starlette.concurrency import run_in_threadpool

from pgdesk.transfer import EXPORT_FORMATS, export_filename

from ..dependencies import get_gateway_service
from ..schemas import (
    ColumnInfo,
    CreateResult,
    ImportResult,
    OperationResult,
    RecordSet,
    SearchRequest,
    TableDescriptor,
    TableStats,
)
from ..services import GatewayService

router = APIRouter(prefix="/api/tables", tags=["tables"])


def _download(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache, no-store, must-revalidate",
        },
    )


@router.get("", response_model=list[str])
def list_tables(service: GatewayService = Depends(get_gateway_service)) -> list[str]:
    """List table names of the active schema in alphabetical order."""
    return service.list_table_names()


@router.get("/descriptors", response_model=list[TableDescriptor])
def list_table_descriptors(
    service: GatewayService = Depends(get_gateway_service),
) -> list[TableDescriptor]:
    """List tables together with their IIS/SQL category."""
    return service.list_tables()


@router.get("/stats", response_model=list[TableStats])
def table_stats(service: GatewayService = Depends(get_gateway_service)) -> list[TableStats]:
    """Estimated row counts and on-disk sizes per table."""
    return service.table_stats()


@router.get("/{table}/columns", response_model=list[ColumnInfo])
def list_columns(
    table: str, service: GatewayService = Depends(get_gateway_service)
) -> list[ColumnInfo]:
    return service.list_columns(table)


@router.get("/{table}/data", response_model=RecordSet)
def get_table_data(table: str, service: GatewayService = Depends(get_gateway_service)) -> RecordSet:
    """Return the ordered column list and up to 1000 rows."""
    return service.get_table_data(table)


@router.post("/{table}/search", response_model=RecordSet)
def search_table(
    table: str,
    payload: SearchRequest,
    service: GatewayService = Depends(get_gateway_service),
) -> RecordSet:
    """Filter the fetched rows with column filters and a global search string."""
    filters = [item.to_filter() for item in payload.filters]
    return service.search_rows(table, filters, payload.global_search)


@router.post("/{table}/records", response_model=CreateResult, response_model_exclude_none=True)
def create_record(
    table: str,
    fields: dict[str, Any] = Body(...),
    service: GatewayService = Depends(get_gateway_service),
) -> CreateResult:
    """Insert a record; ``id`` and ``_``-prefixed fields in the body are ignored."""
    return service.create_record(table, fields)


@router.put(
    "/{table}/records/{record_id}",
    response_model=OperationResult,
    response_model_exclude_none=True,
)
def update_record(
    table: str,
    record_id: str,
    fields: dict[str, Any] = Body(...),
    service: GatewayService = Depends(get_gateway_service),
) -> OperationResult:
    """
    Update only the supplied fields of one record.

    Explicit ``null`` values are written; omitted fields are left alone.
    """
    return service.update_record(table, record_id, fields)


@router.get("/{table}/export")
def export_table(
    table: str,
    fmt: Literal["csv", "xlsx"] = Query(default="csv", alias="format"),
    service: GatewayService = Depends(get_gateway_service),
) -> Response:
    content = service.export_table(table, fmt)
    return _download(content, EXPORT_FORMATS[fmt][0], export_filename(table, fmt))


@router.get("/{table}/template")
def csv_template(table: str, service: GatewayService = Depends(get_gateway_service)) -> Response:
    """Header-only CSV for preparing an import."""
    content = service.csv_template(table)
    filename = f"{table}_template.csv".encode("ascii", "ignore").decode("ascii")
    return _download(content, EXPORT_FORMATS["csv"][0], filename)


@router.post("/{table}/import", response_model=ImportResult)
async def import_csv(
    table: str,
    request: Request,
    service: GatewayService = Depends(get_gateway_service),
) -> ImportResult:
    """Insert every row of the raw CSV request body, reporting per-row failures."""
    payload = await request.body()
    return await run_in_threadpool(service.import_csv, table, payload)
