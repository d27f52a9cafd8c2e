"""
Dashboard-ready output functions.

These are the primary entry points for the Streamlit front end. Each
function returns plain dicts or DataFrames suitable for rendering cards,
charts, and tables. DashboardData wraps the async load of the four
collections the headline metrics are computed from.
"""

import asyncio
import logging

import pandas as pd

from .config import INDICATOR_REGISTRY, REPORTING_PERIOD
from .errors import MelError
from .kpis import calc_variance, calculate_metrics, classify_performance
from .transforms import build_dim_project, filter_by_country

logger = logging.getLogger(__name__)

INDICATOR_SUMMARY_COLUMNS = [
    "indicator_id", "indicator_name", "unit", "type", "actual", "target",
    "variance", "variance_pct", "rag", "submissions",
]


class DashboardData:
    """Loads countries, projects, data points and indicators, then derives metrics.

    Usage:
        dash = DashboardData(services, selected_country="KH")
        await dash.load()
        dash.metrics["total_people_reached"]
    """

    def __init__(self, services, selected_country: str | None = None):
        self.services = services
        self.selected_country = selected_country
        self.data: dict[str, list] = {
            "countries": [],
            "projects": [],
            "data_points": [],
            "indicators": [],
        }
        self.metrics: dict | None = None
        self.loading = False
        self.error: str | None = None
        self.refresh_token: int | None = None

    async def load(self) -> dict:
        self.loading = True
        self.error = None
        try:
            countries, projects, data_points, indicators = await asyncio.gather(
                self.services.countries.get_all(),
                self.services.projects.get_all(),
                self.services.data_points.get_all(),
                self.services.indicators.get_all(),
            )
        except MelError as exc:
            logger.exception("Dashboard data loading failed")
            self.error = str(exc)
            return self.data
        finally:
            self.loading = False

        scoped = filter_by_country(countries, projects, data_points, self.selected_country)
        self.data = {
            "countries": countries,
            "projects": scoped["projects"],
            "data_points": scoped["data_points"],
            "indicators": indicators,
        }
        self.metrics = calculate_metrics(
            countries, projects, data_points, indicators, self.selected_country
        )
        return self.data

    async def refetch(self) -> dict:
        return await self.load()

    async def sync(self, refresh_token: int) -> bool:
        """Reload when the store's refresh token has moved; True if reloaded."""
        if refresh_token == self.refresh_token and self.metrics is not None:
            return False
        await self.load()
        self.refresh_token = refresh_token
        return True

    async def set_country(self, selected_country: str | None) -> dict:
        self.selected_country = selected_country
        return await self.load()


def get_indicator_summary(
    fact: pd.DataFrame,
    indicators: list[dict],
    period: str = REPORTING_PERIOD,
) -> pd.DataFrame:
    """One row per indicator: approved actual vs target with RAG.

    Counts and currency sum across projects; percentage indicators average.

    Returns
    -------
    DataFrame with columns INDICATOR_SUMMARY_COLUMNS.
    """
    if fact.empty or not indicators:
        logger.warning("No data for indicator summary in period '%s'", period)
        return pd.DataFrame(columns=INDICATOR_SUMMARY_COLUMNS)

    period_df = fact[(fact["period"] == period) & (fact["status"] == "approved")]

    rows = []
    for ind in indicators:
        registry = INDICATOR_REGISTRY.get(ind["id"], {})
        ind_type = ind.get("type") or registry.get("type", "number")
        values = period_df.loc[period_df["indicator_id"] == ind["id"], "value"].dropna()

        if values.empty:
            actual = None
        elif ind_type == "percentage":
            actual = round(float(values.mean()), 1)
        else:
            actual = float(values.sum())

        target = ind.get("target")
        if actual is not None and target is not None:
            variance, variance_pct = calc_variance(actual, target)
            rag = classify_performance(
                actual,
                target,
                registry.get("direction", "higher_is_better"),
                registry.get("amber_band", 5.0),
            )
        else:
            variance, variance_pct, rag = None, None, "grey"

        rows.append({
            "indicator_id": ind["id"],
            "indicator_name": ind.get("name"),
            "unit": ind.get("unit") or registry.get("unit"),
            "type": ind_type,
            "actual": actual,
            "target": target,
            "variance": variance,
            "variance_pct": variance_pct,
            "rag": rag,
            "submissions": int(len(values)),
        })

    return pd.DataFrame(rows, columns=INDICATOR_SUMMARY_COLUMNS)


def get_available_periods(fact: pd.DataFrame) -> list[str]:
    """Return sorted list of available period strings for UI dropdowns."""
    if fact.empty:
        return []
    return sorted(fact["period"].dropna().unique().tolist())


def get_project_status_summary(
    projects: list[dict],
    countries: list[dict],
    fact: pd.DataFrame,
) -> pd.DataFrame:
    """Project table for display: reach progress, timeline and pending items.

    Returns
    -------
    dim_project columns plus data_points and pending_review counts.
    """
    dim = build_dim_project(projects, countries)
    if dim.empty:
        return dim

    if fact.empty:
        dim["data_points"] = 0
        dim["pending_review"] = 0
        return dim

    counts = fact.groupby("project_id").agg(
        data_points=("id", "count"),
        pending_review=("status", lambda s: int(s.isin(["submitted", "in_review"]).sum())),
    ).reset_index()

    merged = dim.merge(counts, on="project_id", how="left")
    merged[["data_points", "pending_review"]] = (
        merged[["data_points", "pending_review"]].fillna(0).astype(int)
    )
    return merged


def get_country_summary(metrics: dict) -> pd.DataFrame:
    """Country performance chart data as a DataFrame, highest reach first."""
    columns = ["name", "reach", "target", "performance", "has_anomaly"]
    rows = metrics.get("country_data") or []
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows)[columns]


def get_growth_series(metrics: dict, historical: list[str], projected: list[str]) -> pd.DataFrame:
    """Historical and projected people-reached values for the trend chart."""
    actual = metrics.get("historical_quarterly") or []
    forecast = metrics.get("projected_values") or []
    rows = [
        {"period": p, "value": v, "series": "actual"}
        for p, v in zip(historical, actual)
    ]
    rows += [
        {"period": p, "value": v, "series": "projected"}
        for p, v in zip(projected, forecast)
    ]
    return pd.DataFrame(rows, columns=["period", "value", "series"])
