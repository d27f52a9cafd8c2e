"""
Shared utilities for data ingestion: date and period normalisation,
numeric coercion, column renaming.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(ts: datetime) -> str:
    """Format an aware datetime as an ISO-8601 string with a Z suffix."""
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def parse_timestamp(val: Any) -> pd.Timestamp | None:
    """Parse an ISO string (or datetime) into a UTC pd.Timestamp.

    Returns None for missing or unparseable values.
    """
    if val is None or val == "":
        return None
    try:
        ts = pd.Timestamp(val)
    except (ValueError, TypeError):
        logger.warning("Could not parse timestamp: %s", val)
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def normalise_date(val: Any) -> pd.Timestamp | None:
    """Convert Excel serial number, string or datetime to pd.Timestamp.

    Excel serial numbers use the 1899-12-30 epoch. Native datetime objects
    are cast directly. Returns None for unparseable values.
    """
    if val is None or val == "":
        return None
    if isinstance(val, pd.Timestamp):
        return val
    if isinstance(val, (int, float)):
        try:
            return pd.Timestamp("1899-12-30") + pd.Timedelta(days=int(val))
        except (ValueError, OverflowError):
            logger.warning("Could not convert serial number %s to date", val)
            return None
    try:
        ts = pd.Timestamp(str(val).strip())
    except (ValueError, TypeError):
        logger.warning("Could not parse date value: %s", val)
        return None
    return None if pd.isna(ts) else ts


def period_for_date(val: Any) -> str | None:
    """Return the quarterly reporting period ("2024-Q1") containing a date."""
    ts = normalise_date(val)
    if ts is None:
        return None
    return f"{ts.year}-Q{(ts.month - 1) // 3 + 1}"


def to_snake_case(name: str) -> str:
    """Convert a column name to snake_case.

    Handles spaces, parentheses, slashes, and percent signs.
    """
    s = str(name).strip()
    s = s.replace("%", "pct").replace("/", "_per_").replace("(", "").replace(")", "")
    s = s.replace("-", "_").replace(".", "_")
    s = re.sub(r"[^a-zA-Z0-9]+", "_", s)
    # CamelCase to snake_case
    s = re.sub(r"([a-z])([A-Z])", r"\1_\2", s)
    s = s.lower().strip("_")
    s = re.sub(r"_+", "_", s)
    return s


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for non-numeric values."""
    if val is None:
        return None
    if isinstance(val, bool):
        return None
    if isinstance(val, str):
        val = val.strip().replace(",", "")
        if val.startswith("=") or not val:
            return None
        if val.endswith("%"):
            val = val[:-1]
        try:
            return float(val)
        except ValueError:
            return None
    try:
        result = float(val)
    except (ValueError, TypeError):
        return None
    return None if pd.isna(result) else result
