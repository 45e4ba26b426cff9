"""
Report export — computed report data as XLSX workbook or CSV text.

Both formats carry the same rows: one summary block, then one row per
dimension in the template's declared order.
"""

import csv
import io
import logging

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.reports.types import AUXILIARY_STATS, ComputedReportData

logger = logging.getLogger(__name__)

BAND_FILLS = {
    "low": PatternFill(start_color="EF4444", end_color="EF4444", fill_type="solid"),
    "mid": PatternFill(start_color="F59E0B", end_color="F59E0B", fill_type="solid"),
    "high": PatternFill(start_color="10B981", end_color="10B981", fill_type="solid"),
}
WHITE_FONT = Font(color="FFFFFF", bold=True)
HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

DIMENSION_HEADERS = ["dimension", "value", "responses", *AUXILIARY_STATS]

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIMETYPE = "text/csv"


def _dimension_rows(data: ComputedReportData, order: list[str]) -> list[list]:
    names = [n for n in order if n in data.dimensions]
    names += [n for n in data.dimensions if n not in names]
    rows = []
    for name in names:
        dim = data.dimensions[name]
        rows.append([name, dim.value, dim.responses, *(dim.stats.get(k) for k in AUXILIARY_STATS)])
    return rows


def _band(value, low: float, high: float) -> str:
    if value is None or high == low:
        return "low"
    normalized = (value - low) / (high - low)
    if normalized < 0.33:
        return "low"
    if normalized < 0.67:
        return "mid"
    return "high"


def _apply_header_style(ws, row: int, col_count: int) -> None:
    """Apply dark-header styling to an Excel row (1-indexed)."""
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value is not None:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 12)


def export_report_xlsx(
    title: str,
    data: ComputedReportData,
    order: list[str],
    score_scale: tuple[float, float] = (0.0, 100.0),
) -> bytes:
    """Styled workbook: "Summary" sheet plus one "Dimensions" sheet."""
    wb = Workbook()

    # ── Sheet 1: Summary ──────────────────────────────────────────────
    ws = wb.active
    ws.title = "Summary"
    ws.merge_cells("A1:D1")
    ws["A1"] = title
    ws["A1"].font = Font(size=16, bold=True)

    summary = [
        ("Responses", data.response_count),
        ("Completion Rate", data.completion_rate),
        ("Overall Score", data.overall_score),
    ]
    for offset, (label, value) in enumerate(summary):
        row = 3 + offset
        ws.cell(row=row, column=1, value=label).font = Font(bold=True)
        ws.cell(row=row, column=2, value=value)
    ws.cell(row=4, column=2).number_format = "0.00%"
    _auto_width(ws)

    # ── Sheet 2: Dimensions ───────────────────────────────────────────
    ws2 = wb.create_sheet("Dimensions")
    for col, header in enumerate(DIMENSION_HEADERS, 1):
        ws2.cell(row=1, column=col, value=header)
    _apply_header_style(ws2, 1, len(DIMENSION_HEADERS))

    low, high = score_scale
    for row_idx, row in enumerate(_dimension_rows(data, order), 2):
        for col, value in enumerate(row, 1):
            cell = ws2.cell(row=row_idx, column=col, value=value)
            cell.border = THIN_BORDER
        value_cell = ws2.cell(row=row_idx, column=2)
        value_cell.fill = BAND_FILLS[_band(row[1], low, high)]
        value_cell.font = WHITE_FONT
    _auto_width(ws2)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf.getvalue()


def export_report_csv(data: ComputedReportData, order: list[str]) -> str:
    """Flat CSV: summary lines, a blank line, then the dimension table."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["response_count", data.response_count])
    writer.writerow(["completion_rate", data.completion_rate])
    writer.writerow(["overall_score", "" if data.overall_score is None else data.overall_score])
    writer.writerow([])
    writer.writerow(DIMENSION_HEADERS)
    for row in _dimension_rows(data, order):
        writer.writerow(["" if v is None else v for v in row])
    return buf.getvalue()
