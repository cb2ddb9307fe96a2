from __future__ import annotations

import io
import zipfile
from datetime import date
from typing import Any, Iterable, Iterator, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import ValidationError
from .acl import CallerScope
from .constants import CADET, DISTRICT_ADMIN, STATE_ADMIN
from .fields import header_token
from .records import EntryKind

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_HEADER_FONT = Font(bold=True, color="FFFFFF")
_HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")


def _header_map(kind: EntryKind, header_row: Iterable[Any]) -> dict[int, str]:
    """Column index -> field key for every header that names an allowed field."""

    lookup: dict[str, str] = {}
    for spec in kind.fields:
        for alias in (spec.key, spec.attr, spec.label):
            lookup[header_token(alias)] = spec.key
    mapping: dict[int, str] = {}
    for index, header in enumerate(header_row):
        key = lookup.get(header_token(header))
        if key and key not in mapping.values():
            mapping[index] = key
    return mapping


def read_rows(kind: EntryKind, data: bytes) -> list[tuple[int, dict[str, Any]]]:
    """Parse an .xlsx upload into ``(row_number, {field_key: value})`` pairs.

    Row numbers match what the user sees in Excel (the header is row 1).
    Completely empty rows are skipped.
    """

    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError):
        raise ValidationError("Could not read Excel file") from None
    try:
        ws = wb.active
        rows: Iterator[tuple] = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            raise ValidationError("Spreadsheet is empty")
        mapping = _header_map(kind, header)
        if not mapping:
            raise ValidationError("Spreadsheet header does not name any known column")
        parsed = []
        for row_number, row in enumerate(rows, start=2):
            if not row or all(cell is None or str(cell).strip() == "" for cell in row):
                continue
            parsed.append(
                (
                    row_number,
                    {key: row[index] for index, key in mapping.items() if index < len(row)},
                )
            )
        return parsed
    finally:
        wb.close()


def _cell(value: Any) -> Any:
    if isinstance(value, date):
        return value.strftime("%d-%m-%Y")
    return value


def build_export(kind: EntryKind, records: Iterable[Any]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = f"{kind.label} Entries"

    specs = list(kind.fields)
    headers = ["Entry ID"] + [spec.label for spec in specs]
    if kind.name == CADET:
        headers.append("Status")
    headers += ["Form File", "Created At"]
    ws.append(headers)

    for record in records:
        row = [record.entry_id] + [_cell(getattr(record, spec.attr)) for spec in specs]
        if kind.name == CADET:
            row.append(record.status)
        created = record.created_at.strftime("%d-%m-%Y %H:%M") if record.created_at else None
        row += [record.form_file_name, created]
        ws.append(row)

    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center")

    for col_idx in range(1, len(headers) + 1):
        max_len = max(
            len(str(ws.cell(row=r, column=col_idx).value or "")) for r in range(1, ws.max_row + 1)
        )
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max(max_len + 2, 10), 40)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def export_filename(kind: EntryKind, scope: CallerScope, today: Optional[date] = None) -> str:
    today = today or date.today()
    stamp = today.isoformat()
    if scope.role == DISTRICT_ADMIN and scope.district:
        prefix = scope.district.replace(" ", "_")
        return f"{prefix}_{kind.label}_{stamp}.xlsx"
    if scope.role == STATE_ADMIN and scope.state:
        prefix = scope.state.replace(" ", "_")
        return f"{prefix}_{kind.label}_{stamp}.xlsx"
    return f"All_{kind.label}_Applications_{stamp}.xlsx"
