"""
Data transforms: flatten and merge entity lists into fact and dimension
tables, resolve related names, and scope data to a selected country.
"""

import logging
import math
from datetime import datetime

import pandas as pd

from .config import DEFAULT_PRIORITY, DEFAULT_QUALITY_SCORE
from .loaders.utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

FACT_DATA_POINT_COLUMNS = [
    "id", "project_id", "indicator_id", "value", "period", "status",
    "priority", "quality_score", "submitted_by", "submitted_at",
    "project_name", "country_id", "country_name", "country_code",
    "indicator_name", "indicator_unit", "indicator_type",
]


def _index(items: list[dict]) -> dict:
    return {item["id"]: item for item in items}


def filter_by_country(
    countries: list[dict],
    projects: list[dict],
    data_points: list[dict],
    selected_country: str | None,
) -> dict:
    """Scope projects and data points to one country by its code.

    Returns
    -------
    {"country": matched country or None, "projects": [...], "data_points": [...]}

    With no selection, or a code that matches no country, projects and data
    points are returned unfiltered and "country" is None.
    """
    result = {"country": None, "projects": projects, "data_points": data_points}
    if not selected_country:
        return result

    wanted = selected_country.lower()
    country = next((c for c in countries if str(c.get("code", "")).lower() == wanted), None)
    if country is None:
        logger.warning("No country with code '%s'; showing all countries", selected_country)
        return result

    scoped_projects = [p for p in projects if p.get("country_id") == country["id"]]
    project_ids = {p["id"] for p in scoped_projects}
    result["country"] = country
    result["projects"] = scoped_projects
    result["data_points"] = [dp for dp in data_points if dp.get("project_id") in project_ids]
    return result


def days_between(start, end: datetime | None = None) -> int:
    """Whole days from start to end, rounded up; 0 when start is missing."""
    start_ts = parse_timestamp(start)
    if start_ts is None:
        return 0
    end_ts = parse_timestamp(end or utc_now())
    seconds = abs((end_ts - start_ts).total_seconds())
    return math.ceil(seconds / 86400)


def enrich_data_point(
    data_point: dict,
    projects: list[dict],
    countries: list[dict],
    indicators: list[dict],
    now: datetime | None = None,
) -> dict:
    """Copy of a data point with related names and queue defaults filled in."""
    project = next((p for p in projects if p["id"] == data_point.get("project_id")), None)
    indicator = next((i for i in indicators if i["id"] == data_point.get("indicator_id")), None)
    country = None
    if project is not None:
        country = next((c for c in countries if c["id"] == project.get("country_id")), None)

    enriched = dict(data_point)
    enriched["project_name"] = project["name"] if project else "Unknown"
    enriched["country_id"] = country["id"] if country else None
    enriched["country_name"] = country["name"] if country else "Unknown"
    enriched["indicator_name"] = indicator["name"] if indicator else "Unknown"
    enriched["indicator_unit"] = indicator.get("unit") if indicator else None
    enriched["priority"] = data_point.get("priority") or DEFAULT_PRIORITY
    if data_point.get("quality_score") is None:
        enriched["quality_score"] = DEFAULT_QUALITY_SCORE
    enriched["days_since_submission"] = days_between(data_point.get("submitted_at"), now)
    return enriched


def build_fact_data_points(
    data_points: list[dict],
    projects: list[dict],
    countries: list[dict],
    indicators: list[dict],
) -> pd.DataFrame:
    """Flatten data points into a fact table with resolved names.

    Returns
    -------
    fact_data_point DataFrame with columns FACT_DATA_POINT_COLUMNS.
    Values are float64; unknown projects/indicators leave name columns NaN.
    """
    if not data_points:
        logger.warning("No data points; returning empty fact_data_point")
        return pd.DataFrame(columns=FACT_DATA_POINT_COLUMNS).astype({"value": "float64"})

    project_idx = _index(projects)
    country_idx = _index(countries)
    indicator_idx = _index(indicators)

    rows = []
    for dp in data_points:
        project = project_idx.get(dp.get("project_id"), {})
        country = country_idx.get(project.get("country_id"), {})
        indicator = indicator_idx.get(dp.get("indicator_id"), {})
        rows.append({
            "id": dp.get("id"),
            "project_id": dp.get("project_id"),
            "indicator_id": dp.get("indicator_id"),
            "value": dp.get("value"),
            "period": dp.get("period"),
            "status": dp.get("status"),
            "priority": dp.get("priority") or DEFAULT_PRIORITY,
            "quality_score": dp.get("quality_score", DEFAULT_QUALITY_SCORE),
            "submitted_by": dp.get("submitted_by"),
            "submitted_at": dp.get("submitted_at"),
            "project_name": project.get("name"),
            "country_id": project.get("country_id"),
            "country_name": country.get("name"),
            "country_code": country.get("code"),
            "indicator_name": indicator.get("name"),
            "indicator_unit": indicator.get("unit"),
            "indicator_type": indicator.get("type"),
        })

    df = pd.DataFrame(rows, columns=FACT_DATA_POINT_COLUMNS)
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    df["quality_score"] = pd.to_numeric(df["quality_score"], errors="coerce").fillna(
        DEFAULT_QUALITY_SCORE
    )
    logger.info("Built fact_data_point with %d rows", len(df))
    return df


def build_dim_project(
    projects: list[dict],
    countries: list[dict],
    as_of: pd.Timestamp | None = None,
) -> pd.DataFrame:
    """Build project dimension table with reach and timeline progress.

    Returns
    -------
    dim_project DataFrame with columns:
        project_id, project_name, country_id, country_name, status,
        risk_level, budget, target_reach, current_reach, progress_pct,
        timeline_pct, start_date, end_date
    """
    columns = [
        "project_id", "project_name", "country_id", "country_name", "status",
        "risk_level", "budget", "target_reach", "current_reach", "progress_pct",
        "timeline_pct", "start_date", "end_date",
    ]
    if not projects:
        return pd.DataFrame(columns=columns)

    as_of = as_of or pd.Timestamp(utc_now().date())
    country_idx = _index(countries)

    rows = []
    for p in projects:
        target = p.get("target_reach") or 1
        current = p.get("current_reach") or 0
        start = pd.to_datetime(p.get("start_date"), errors="coerce")
        end = pd.to_datetime(p.get("end_date"), errors="coerce")

        timeline_pct = 0
        if pd.notna(start) and pd.notna(end) and end > start:
            elapsed = (as_of - start).total_seconds()
            total = (end - start).total_seconds()
            timeline_pct = max(0, min(100, round(elapsed / total * 100)))

        rows.append({
            "project_id": p["id"],
            "project_name": p.get("name"),
            "country_id": p.get("country_id"),
            "country_name": country_idx.get(p.get("country_id"), {}).get("name"),
            "status": p.get("status") or "active",
            "risk_level": p.get("risk_level") or "low",
            "budget": p.get("budget"),
            "target_reach": p.get("target_reach"),
            "current_reach": current,
            "progress_pct": min(100, round(current / target * 100)),
            "timeline_pct": timeline_pct,
            "start_date": start,
            "end_date": end,
        })

    dim = pd.DataFrame(rows, columns=columns)
    logger.info("Built dim_project with %d rows", len(dim))
    return dim


def build_dim_country(countries: list[dict]) -> pd.DataFrame:
    """Country dimension table with female participation share."""
    columns = [
        "country_id", "country_name", "code", "status", "region", "population",
        "total_reach", "women_participants", "female_share_pct",
    ]
    if not countries:
        return pd.DataFrame(columns=columns)

    dim = pd.DataFrame([
        {
            "country_id": c["id"],
            "country_name": c.get("name"),
            "code": c.get("code"),
            "status": c.get("status"),
            "region": c.get("region"),
            "population": c.get("population"),
            "total_reach": c.get("total_reach") or 0,
            "women_participants": c.get("women_participants") or 0,
        }
        for c in countries
    ])
    reach = dim["total_reach"].astype(float)
    dim["female_share_pct"] = (
        (dim["women_participants"] / reach.where(reach > 0)) * 100
    ).round(1).fillna(0.0)
    return dim[columns]
