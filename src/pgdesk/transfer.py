"""CSV/Excel export and CSV import for table data."""

from __future__ import annotations

import datetime as dt
import io
import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from .errors import GatewayError, ImportFormatError

logger = logging.getLogger("pgdesk.transfer")

EXPORT_FORMATS = {
    "csv": ("text/csv; charset=utf-8", "csv"),
    "xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
}


def export_filename(table: str, fmt: str, today: Optional[dt.date] = None) -> str:
    """``<table>_<YYYY-MM-DD>.<ext>``, ASCII-only for Content-Disposition."""
    today = today or dt.date.today()
    filename = f"{table}_{today.isoformat()}.{EXPORT_FORMATS[fmt][1]}"
    return filename.encode("ascii", "ignore").decode("ascii")


def records_to_frame(columns: Sequence[str], rows: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(list(rows), columns=list(columns) or None)


def export_csv(columns: Sequence[str], rows: Sequence[Mapping[str, Any]]) -> bytes:
    frame = records_to_frame(columns, rows)
    return frame.to_csv(index=False).encode("utf-8")


def _excel_value(value: Any) -> Any:
    if isinstance(value, dt.datetime) and value.tzinfo is not None:
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if value is None or isinstance(value, (str, int, float, bool, dt.date, dt.time)):
        return value
    return str(value)


def export_xlsx(
    columns: Sequence[str], rows: Sequence[Mapping[str, Any]], *, title: str = "export"
) -> bytes:
    """
    Write one worksheet with a styled header row and one row per record.

    Worksheet titles are capped at Excel's 31 character limit.
    """
    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    ws_name = title if len(title) <= 31 else title[:28] + "..."
    worksheet.title = ws_name.replace("/", "_").replace("\\", "_") or "export"

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center")
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)

    for col, header in enumerate(columns, 1):
        cell = worksheet.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        cell.border = border

    for row_idx, record in enumerate(rows, 2):
        for col, column in enumerate(columns, 1):
            cell = worksheet.cell(row=row_idx, column=col, value=_excel_value(record.get(column)))
            cell.border = border

    # Auto-adjust column widths, min 10 and max 50 characters
    for col, column in enumerate(columns, 1):
        lengths = [len(str(column))]
        lengths.extend(
            len(str(record.get(column))) for record in rows if record.get(column) is not None
        )
        worksheet.column_dimensions[openpyxl.utils.get_column_letter(col)].width = min(
            max(max(lengths) + 2, 10), 50
        )
    worksheet.freeze_panes = "A2"

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_records(
    columns: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    fmt: str,
    *,
    title: str = "export",
) -> bytes:
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    logger.info(f"Exporting {len(rows)} rows of '{title}' as {fmt}")
    if fmt == "xlsx":
        return export_xlsx(columns, rows, title=title)
    return export_csv(columns, rows)


def csv_template(columns: Sequence[str]) -> bytes:
    """Header-only CSV naming every column of a table."""
    return pd.DataFrame(columns=list(columns)).to_csv(index=False).encode("utf-8")


def _blank(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, float) and pd.isna(value))


def read_csv_records(payload: bytes) -> list[dict[str, Any]]:
    """
    Parse an uploaded CSV into records, keeping every cell as text.

    Empty cells become ``None``; the sanitizer applies the usual coercions
    when the records are inserted.
    """
    if not payload or not payload.strip():
        raise ImportFormatError("CSV file is empty")
    try:
        frame = pd.read_csv(
            io.BytesIO(payload),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            encoding="utf-8-sig",
        )
    except ValueError as exc:
        raise ImportFormatError(f"Could not parse CSV: {exc}") from exc

    frame.columns = [str(column).strip() for column in frame.columns]
    records = []
    for record in frame.to_dict(orient="records"):
        records.append({key: (None if _blank(value) else value) for key, value in record.items()})
    return records


def import_records(
    records: Sequence[Mapping[str, Any]],
    create: Callable[[Mapping[str, Any]], Any],
) -> dict[str, Any]:
    """Insert ``records`` one by one, collecting ``Row N: message`` for failures."""
    errors: list[str] = []
    success = 0
    for index, record in enumerate(records, 1):
        try:
            create(record)
            success += 1
        except GatewayError as exc:
            errors.append(f"Row {index}: {exc.message}")
    result = {
        "total_rows": len(records),
        "success_rows": success,
        "error_rows": len(errors),
        "errors": errors,
    }
    logger.info(
        f"Import finished: {success}/{len(records)} rows inserted, {len(errors)} failed"
    )
    return result
