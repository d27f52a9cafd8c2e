"""
Loaders for bulk data-point imports.

CSV files are read with pandas; Excel workbooks (.xlsx) are read with
openpyxl, taking the first non-empty row of the active sheet as the header.
Every cell is returned as a stripped string so that validation sees the
values exactly as typed.
"""

import csv
import io
import logging
from pathlib import Path
from typing import IO

import openpyxl
import pandas as pd

from ..config import IMPORT_FIELDS, REQUIRED_IMPORT_FIELDS
from ..errors import ImportFileError
from .utils import normalise_date, period_for_date, safe_float, to_snake_case

logger = logging.getLogger(__name__)

_CSV_SUFFIXES = {".csv", ".txt"}
_EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


def _cell_text(val) -> str:
    if val is None:
        return ""
    return str(val).replace('"', "").strip()


def _drop_blank_rows(rows: list[dict]) -> list[dict]:
    return [row for row in rows if any(v for v in row.values())]


def load_import_csv(source: str | Path | IO) -> dict:
    """Load a CSV upload.

    Returns
    -------
    {"headers": [...], "data": [{header: value, ...}, ...]}
    """
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError as exc:
        raise ImportFileError("File is empty") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ImportFileError(f"Failed to parse file: {exc}") from exc

    headers = [_cell_text(h) for h in df.columns]
    df.columns = headers
    rows = [
        {h: _cell_text(v) for h, v in record.items()}
        for record in df.to_dict(orient="records")
    ]
    return {"headers": headers, "data": _drop_blank_rows(rows)}


def load_import_excel(source: str | Path | IO) -> dict:
    """Load an Excel upload from the active sheet."""
    try:
        wb = openpyxl.load_workbook(source, data_only=True, read_only=True)
    except Exception as exc:
        logger.exception("Failed to open import workbook")
        raise ImportFileError(f"Failed to read file: {exc}") from exc

    try:
        ws = wb.active
        rows_iter = ws.iter_rows(values_only=True)

        headers: list[str] = []
        for raw in rows_iter:
            if raw and any(v is not None and str(v).strip() for v in raw):
                headers = [_cell_text(v) for v in raw]
                break

        if not headers:
            raise ImportFileError("File is empty")

        rows = []
        for raw in rows_iter:
            values = list(raw or ())
            record = {}
            for idx, header in enumerate(headers):
                if not header:
                    continue
                val = values[idx] if idx < len(values) else None
                if hasattr(val, "strftime"):
                    val = val.strftime("%Y-%m-%d")
                record[header] = _cell_text(val)
            rows.append(record)
    finally:
        wb.close()

    headers = [h for h in headers if h]
    return {"headers": headers, "data": _drop_blank_rows(rows)}


def load_import_file(source: str | Path | IO | bytes, filename: str | None = None) -> dict:
    """Dispatch on file extension to the CSV or Excel loader."""
    name = filename or (str(source) if isinstance(source, (str, Path)) else "")
    suffix = Path(name).suffix.lower()

    if isinstance(source, bytes):
        source = io.BytesIO(source)

    if suffix in _CSV_SUFFIXES:
        result = load_import_csv(source)
    elif suffix in _EXCEL_SUFFIXES:
        result = load_import_excel(source)
    else:
        raise ImportFileError(
            f"Unsupported file type '{suffix or name}'. Please use CSV or Excel (.xlsx) files."
        )

    if not result["data"]:
        raise ImportFileError("File is empty")

    logger.info("Loaded %d import rows from %s", len(result["data"]), name or "upload")
    return result


def suggest_mappings(headers: list[str]) -> dict[str, str | None]:
    """Map each upload header to an import field by snake-cased name."""
    mappings: dict[str, str | None] = {}
    for header in headers:
        key = to_snake_case(header)
        if key == "date":
            key = "reporting_date"
        mappings[header] = key if key in IMPORT_FIELDS else None
    return mappings


def _find_by_name(items: list[dict], name: str) -> dict | None:
    wanted = name.strip().lower()
    return next((i for i in items if str(i.get("name", "")).lower() == wanted), None)


def validate_import_rows(
    rows: list[dict],
    mappings: dict[str, str | None],
    reference: dict[str, list[dict]],
) -> dict:
    """Validate raw upload rows against reference lists.

    Parameters
    ----------
    rows : Raw rows from load_import_file()["data"].
    mappings : {upload header: import field} (see suggest_mappings).
    reference : {"indicators": [...], "countries": [...], "projects": [...]}.

    Returns
    -------
    {"valid_rows": [...], "errors": [{"row", "message"}], "warnings": [...]}

    Row numbers are spreadsheet rows: the first data row is row 2.
    Missing or unknown indicators and non-numeric values are errors;
    unknown countries/projects and bad dates are warnings.
    """
    field_to_header = {field: header for header, field in mappings.items() if field}
    indicators = reference.get("indicators", [])
    countries = reference.get("countries", [])
    projects = reference.get("projects", [])

    valid_rows = []
    errors = []
    warnings = []

    def cell(row: dict, field: str) -> str:
        header = field_to_header.get(field)
        return str(row.get(header, "") or "").strip() if header else ""

    for index, row in enumerate(rows):
        row_number = index + 2
        validated: dict = {}
        has_errors = False

        for field in REQUIRED_IMPORT_FIELDS:
            if not cell(row, field):
                label = "indicator name" if field == "indicator" else field
                errors.append({"row": row_number, "message": f"Missing {label}"})
                has_errors = True

        indicator_name = cell(row, "indicator")
        if indicator_name:
            indicator = _find_by_name(indicators, indicator_name)
            if indicator is None:
                errors.append({"row": row_number, "message": f"Unknown indicator: {indicator_name}"})
                has_errors = True
            else:
                validated["indicator"] = indicator["name"]
                validated["indicator_id"] = indicator["id"]

        raw_value = cell(row, "value")
        if raw_value:
            value = safe_float(raw_value)
            if value is None:
                errors.append({"row": row_number, "message": f"Invalid numeric value: {raw_value}"})
                has_errors = True
            else:
                validated["value"] = value

        country_name = cell(row, "country")
        if country_name:
            country = _find_by_name(countries, country_name)
            if country is None:
                warnings.append({
                    "row": row_number,
                    "message": f"Unknown country: {country_name}. Will use selected country.",
                })
            else:
                validated["country"] = country["name"]
                validated["country_id"] = country["id"]

        project_name = cell(row, "project")
        if project_name:
            project = _find_by_name(projects, project_name)
            if project is None:
                warnings.append({
                    "row": row_number,
                    "message": f"Unknown project: {project_name}. Will use selected project.",
                })
            else:
                validated["project"] = project["name"]
                validated["project_id"] = project["id"]

        date_str = cell(row, "reporting_date")
        if date_str:
            date = normalise_date(date_str)
            if date is None:
                warnings.append({
                    "row": row_number,
                    "message": f"Invalid date format: {date_str}. Will use current date.",
                })
            else:
                validated["reporting_date"] = date.strftime("%Y-%m-%d")
                validated["period"] = period_for_date(date)

        notes = cell(row, "notes")
        if notes:
            validated["notes"] = notes

        if not has_errors:
            valid_rows.append(validated)

    logger.info(
        "Validated %d import rows: %d valid, %d errors, %d warnings",
        len(rows), len(valid_rows), len(errors), len(warnings),
    )
    return {"valid_rows": valid_rows, "errors": errors, "warnings": warnings}


def build_template_csv(sample_rows: list[dict[str, str]]) -> str:
    """Render sample rows as a quoted CSV template."""
    if not sample_rows:
        raise ValueError("Template needs at least one sample row")
    headers = list(sample_rows[0].keys())
    df = pd.DataFrame(sample_rows, columns=headers).fillna("")
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
