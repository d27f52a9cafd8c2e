"""
Indicator performance reports and their Excel / Word exports.

build_report() produces one row per indicator (approved actual vs target);
export_excel() and export_docx() write that table to a styled workbook or
a Word document. Both exporters accept a path or a binary buffer, so the
Streamlit page can offer the file as a download without touching disk.
"""

import io
import logging
from pathlib import Path
from typing import IO

import pandas as pd
from docx import Document
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .config import PROGRAM_NAME, REPORTING_PERIOD
from .dashboard import get_indicator_summary
from .loaders.utils import utc_now
from .transforms import build_fact_data_points

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "indicator_id", "indicator_name", "unit", "actual", "target",
    "variance", "variance_pct", "achievement_pct", "rag", "submissions",
]

REPORT_HEADERS = {
    "indicator_name": "Indicator",
    "unit": "Unit",
    "actual": "Actual",
    "target": "Target",
    "variance": "Variance",
    "variance_pct": "Variance %",
    "achievement_pct": "Achievement %",
    "rag": "RAG",
    "submissions": "Submissions",
}

RAG_FILLS = {
    "green": PatternFill(start_color="27AE60", end_color="27AE60", fill_type="solid"),
    "amber": PatternFill(start_color="F39C12", end_color="F39C12", fill_type="solid"),
    "red": PatternFill(start_color="E74C3C", end_color="E74C3C", fill_type="solid"),
    "grey": PatternFill(start_color="95A5A6", end_color="95A5A6", fill_type="solid"),
}
HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
WHITE_FONT = Font(color="FFFFFF", bold=True)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


def build_report(
    data_points: list[dict],
    projects: list[dict],
    countries: list[dict],
    indicators: list[dict],
    period: str = REPORTING_PERIOD,
    country_id: int | None = None,
    project_id: int | None = None,
    indicator_ids: list[int] | None = None,
) -> pd.DataFrame:
    """Approved totals vs target per indicator for one period.

    Parameters
    ----------
    data_points, projects, countries, indicators : Entity lists.
    period : Reporting period ("2024-Q1").
    country_id, project_id : Optional scope filters.
    indicator_ids : Restrict to these indicators (all when None).

    Returns
    -------
    DataFrame with columns REPORT_COLUMNS.
    """
    fact = build_fact_data_points(data_points, projects, countries, indicators)
    if not fact.empty:
        if country_id is not None:
            fact = fact[fact["country_id"] == country_id]
        if project_id is not None:
            fact = fact[fact["project_id"] == project_id]

    selected = [i for i in indicators if indicator_ids is None or i["id"] in indicator_ids]
    summary = get_indicator_summary(fact, selected, period)
    if summary.empty:
        return pd.DataFrame(columns=REPORT_COLUMNS)

    target = pd.to_numeric(summary["target"], errors="coerce")
    actual = pd.to_numeric(summary["actual"], errors="coerce")
    summary["achievement_pct"] = (actual / target.where(target > 0) * 100).round(1)

    logger.info("Built report for %s with %d indicators", period, len(summary))
    return summary[REPORT_COLUMNS]


def _report_title(title: str | None, period: str | None) -> str:
    return title or f"{PROGRAM_NAME} Indicator Report - {period or REPORTING_PERIOD}"


def _display(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, float):
        return round(value, 1)
    return value


def export_excel(
    report: pd.DataFrame,
    destination: str | Path | IO | None = None,
    title: str | None = None,
    period: str | None = None,
) -> io.BytesIO | Path:
    """Write the report to a styled workbook.

    Returns the path written, or a rewound BytesIO when destination is None.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Indicator Report"

    columns = list(REPORT_HEADERS)
    last_col = get_column_letter(len(columns))
    ws.merge_cells(f"A1:{last_col}1")
    ws["A1"] = _report_title(title, period)
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = f"Generated: {utc_now().strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")

    header_row = 4
    for col, key in enumerate(columns, 1):
        cell = ws.cell(row=header_row, column=col, value=REPORT_HEADERS[key])
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER

    for offset, record in enumerate(report.to_dict(orient="records"), 1):
        row = header_row + offset
        for col, key in enumerate(columns, 1):
            value = _display(record.get(key))
            if key == "rag":
                value = str(value or "grey").upper()
            cell = ws.cell(row=row, column=col, value=value)
            cell.border = THIN_BORDER
            if key == "rag":
                cell.fill = RAG_FILLS.get(str(record.get("rag")), RAG_FILLS["grey"])
                cell.font = WHITE_FONT
                cell.alignment = Alignment(horizontal="center")

    for col, key in enumerate(columns, 1):
        width = 32 if key == "indicator_name" else 14
        ws.column_dimensions[get_column_letter(col)].width = width

    if destination is None:
        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)
        return buffer

    wb.save(destination)
    logger.info("Exported Excel report with %d rows", len(report))
    return Path(destination) if isinstance(destination, (str, Path)) else destination


def export_docx(
    report: pd.DataFrame,
    destination: str | Path | IO | None = None,
    title: str | None = None,
    metrics: dict | None = None,
    period: str | None = None,
) -> io.BytesIO | Path:
    """Write the report (and optional headline metrics) to a Word document."""
    doc = Document()
    doc.add_heading(_report_title(title, period), level=1)
    doc.add_paragraph(f"Generated: {utc_now().strftime('%Y-%m-%d %H:%M UTC')}")

    if metrics:
        doc.add_heading("Headline Metrics", level=2)
        highlights = [
            ("People reached", f"{metrics.get('total_people_reached', 0):,.0f}"),
            ("Women participants", f"{metrics.get('total_women_participants', 0):,.0f}"),
            ("Female participation", f"{metrics.get('female_participation_rate', 0)}%"),
            ("Loans disbursed (USD)", f"{metrics.get('total_loans_value', 0):,.0f}"),
            ("Training sessions", f"{metrics.get('total_training_sessions', 0):,.0f}"),
            ("Average growth", f"{metrics.get('growth_rate', 0) * 100:.1f}%"),
        ]
        for label, value in highlights:
            doc.add_paragraph(f"{label}: {value}", style="List Bullet")

        anomalies = metrics.get("anomalies") or []
        if anomalies:
            doc.add_heading("Anomalies", level=2)
            for a in anomalies:
                doc.add_paragraph(
                    f"{a['region']}: {a['value']:,.0f} ({a['direction']} average, z={a['z_score']})",
                    style="List Bullet",
                )

    doc.add_heading("Indicator Performance", level=2)
    columns = list(REPORT_HEADERS)
    table = doc.add_table(rows=1, cols=len(columns))
    table.style = "Table Grid"
    for idx, key in enumerate(columns):
        table.rows[0].cells[idx].text = REPORT_HEADERS[key]

    for record in report.to_dict(orient="records"):
        cells = table.add_row().cells
        for idx, key in enumerate(columns):
            value = _display(record.get(key))
            cells[idx].text = "" if value is None else str(value)

    if destination is None:
        buffer = io.BytesIO()
        doc.save(buffer)
        buffer.seek(0)
        return buffer

    doc.save(destination)
    logger.info("Exported Word report with %d rows", len(report))
    return Path(destination) if isinstance(destination, (str, Path)) else destination
