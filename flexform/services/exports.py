from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from openpyxl import Workbook

from flexform.services.export_pdf import PdfLine, build_pdf_bytes

_LOG = logging.getLogger("flexform.exports")

EXPORT_FORMATS = {
    "csv": ("csv", "text/csv; charset=utf-8"),
    "excel": ("xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    "pdf": ("pdf", "application/pdf"),
}
PRETTY_DATE_FIELDS = {"submitted_at", "created_at"}
DATA_SHEET_TITLE = "FLEX-FORM Data"
INFO_SHEET_TITLE = "Export Info"
PDF_VALUE_LIMIT = 60


@dataclass
class ExportFile:
    filename: str
    media_type: str
    content: bytes


def is_sensitive_column(name: str) -> bool:
    return "encrypted" in name or "hash" in name or name == "audit_log"


def visible_columns(records: Iterable[dict[str, Any]]) -> list[str]:
    columns: dict[str, None] = {}
    for record in records:
        for key in record.keys():
            if not is_sensitive_column(str(key)):
                columns.setdefault(str(key), None)
    return list(columns.keys())


def strip_sensitive(record: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if not is_sensitive_column(str(k))}


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def prettify_timestamp(value: Any) -> Any:
    if not isinstance(value, str) or not value.strip():
        return value
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M")


def _display_value(column: str, value: Any) -> Any:
    if column in PRETTY_DATE_FIELDS:
        return prettify_timestamp(value)
    return value


def export_csv(records: list[dict[str, Any]]) -> bytes:
    columns = visible_columns(records)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(columns)
    for record in records:
        writer.writerow([_cell_text(record.get(col)) for col in columns])
    return buffer.getvalue().encode("utf-8")


def export_excel(
    records: list[dict[str, Any]],
    *,
    exported_by: str,
    department: str | None = None,
    exported_at: datetime | None = None,
) -> bytes:
    columns = visible_columns(records)
    wb = Workbook()
    ws = wb.active
    ws.title = DATA_SHEET_TITLE
    ws.append(columns)
    for record in records:
        row = []
        for col in columns:
            value = _display_value(col, record.get(col))
            row.append(value if isinstance(value, (int, float, bool)) or value is None else _cell_text(value))
        ws.append(row)

    info = wb.create_sheet(INFO_SHEET_TITLE)
    info.append(["Property", "Value"])
    info.append(["Export Date", (exported_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M")])
    info.append(["Total Records", len(records)])
    info.append(["Exported By", exported_by])
    info.append(["Department", department or ""])
    info.append(["Source", "FLEX-FORM System"])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_pdf(
    records: list[dict[str, Any]],
    *,
    exported_by: str,
    exported_at: datetime | None = None,
) -> bytes:
    columns = visible_columns(records)
    generated = (exported_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M")
    lines = [
        PdfLine("FLEX-FORM Data Export", size=16, gap_after=6),
        PdfLine(f"Generated: {generated}", size=12),
        PdfLine(f"Records: {len(records)}", size=12),
        PdfLine(f"User: {exported_by}", size=12, gap_after=10),
    ]
    for index, record in enumerate(records, start=1):
        lines.append(PdfLine(f"Record {index}:", size=10))
        for col in columns:
            value = record.get(col)
            if value is None or value == "":
                continue
            text = _cell_text(_display_value(col, value))
            if len(text) > PDF_VALUE_LIMIT:
                text = text[:PDF_VALUE_LIMIT] + "..."
            lines.append(PdfLine(f"{col}: {text}", size=9, indent=5))
        lines[-1].gap_after = 5
    return build_pdf_bytes(lines)


def export_records(
    records: list[dict[str, Any]],
    fmt: str,
    *,
    exported_by: str,
    department: str | None = None,
    now: datetime | None = None,
) -> ExportFile:
    key = str(fmt or "").strip().lower()
    if key not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    if not records:
        raise ValueError("No data available to export")

    stamp = now or datetime.now(timezone.utc)
    ext, media_type = EXPORT_FORMATS[key]
    if key == "csv":
        content = export_csv(records)
    elif key == "excel":
        content = export_excel(records, exported_by=exported_by, department=department, exported_at=stamp)
    else:
        content = export_pdf(records, exported_by=exported_by, exported_at=stamp)
    _LOG.info("export built format=%s records=%s bytes=%s", key, len(records), len(content))
    return ExportFile(filename=f"flexform_export_{stamp.date().isoformat()}.{ext}", media_type=media_type, content=content)
