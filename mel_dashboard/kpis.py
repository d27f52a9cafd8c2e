"""
KPI computation functions — pure functions with no side effects.

Provides variance calculation, RAG classification, quarter-over-quarter
growth, forward projection, anomaly detection and the headline dashboard
metrics. Metrics are always recomputed from the current approved data
points; nothing here is cached.
"""

import logging

import numpy as np
import pandas as pd

from .config import (
    ANOMALY_Z_THRESHOLD,
    COUNTRY_GROWTH_TARGET,
    DEFAULT_QUALITY_SCORE,
    HISTORICAL_PERIODS,
    LOANS_DISBURSED_ID,
    PENDING_STATUSES,
    PEOPLE_TRAINED_ID,
    PROJECTION_FLOORS,
    REPORTING_PERIOD,
    TRAINING_SESSIONS_ID,
    WOMEN_PARTICIPANTS_ID,
)
from .transforms import build_fact_data_points, filter_by_country

logger = logging.getLogger(__name__)

# Countries shown on the country performance chart
_MAX_CHART_COUNTRIES = 8


def calc_variance(actual: float, target: float) -> tuple[float, float | None]:
    """Return (absolute_variance, pct_variance).

    pct_variance is None if target == 0.
    """
    absolute = actual - target
    if target == 0:
        return absolute, None
    pct = (absolute / target) * 100
    return absolute, pct


def classify_performance(
    actual: float,
    target: float,
    direction: str,
    amber_band_pct: float = 5.0,
) -> str:
    """Return 'green', 'amber', or 'red' RAG classification.

    Logic
    -----
    - direction='higher_is_better':
        green  if actual >= target
        amber  if actual >= target * (1 - amber_band_pct/100)
        red    otherwise

    - direction='lower_is_better':
        green  if actual <= target
        amber  if actual <= target * (1 + amber_band_pct/100)
        red    otherwise
    """
    if pd.isna(actual) or pd.isna(target):
        return "grey"

    if target == 0:
        return "grey"

    if direction == "higher_is_better":
        if actual >= target:
            return "green"
        threshold = target * (1 - amber_band_pct / 100)
        if actual >= threshold:
            return "amber"
        return "red"
    else:  # lower_is_better
        if actual <= target:
            return "green"
        threshold = target * (1 + amber_band_pct / 100)
        if actual <= threshold:
            return "amber"
        return "red"


def calculate_growth_rate(values: list[float]) -> tuple[list[float], float]:
    """Quarter-over-quarter fractional change and its average.

    A step from a zero value counts as 0 growth. Fewer than two values
    give no rates and an average of 0.

    >>> calculate_growth_rate([100, 150, 225])
    ([0.5, 0.5], 0.5)
    """
    rates = []
    for prev, curr in zip(values, values[1:]):
        rates.append((curr - prev) / prev if prev else 0.0)
    avg = sum(rates) / len(rates) if rates else 0.0
    return rates, avg


def project_forward(
    last_value: float,
    avg_growth: float,
    floors: tuple[float, ...] = PROJECTION_FLOORS,
) -> list[int]:
    """Project one value per floor, compounding from last_value.

    Each step grows by max(avg_growth, floor), so projections never assume
    less than the floor even when the history is flat or shrinking.
    """
    projected = []
    current = last_value
    for floor in floors:
        current = current * (1 + max(avg_growth, floor))
        projected.append(int(round(current)))
    return projected


def sum_indicator(
    fact: pd.DataFrame,
    indicator_id: int,
    period: str = REPORTING_PERIOD,
) -> float:
    """Sum approved values for one indicator in one period."""
    if fact.empty:
        return 0
    mask = (
        (fact["indicator_id"] == indicator_id)
        & (fact["status"] == "approved")
        & (fact["period"] == period)
    )
    total = fact.loc[mask, "value"].sum()
    return total.item() if hasattr(total, "item") else total


def historical_series(
    fact: pd.DataFrame,
    indicator_id: int = PEOPLE_TRAINED_ID,
    periods: list[str] = HISTORICAL_PERIODS,
) -> list[float]:
    """Approved totals for an indicator, one per period in order."""
    return [sum_indicator(fact, indicator_id, p) for p in periods]


def country_performance(
    fact: pd.DataFrame,
    indicator_id: int = PEOPLE_TRAINED_ID,
    period: str = REPORTING_PERIOD,
) -> dict[str, float]:
    """Approved indicator totals per country name for one period."""
    if fact.empty:
        return {}
    mask = (
        (fact["indicator_id"] == indicator_id)
        & (fact["status"] == "approved")
        & (fact["period"] == period)
        & fact["country_name"].notna()
    )
    grouped = fact.loc[mask].groupby("country_name")["value"].sum()
    return {name: value.item() if hasattr(value, "item") else value for name, value in grouped.items()}


def detect_anomalies(
    performance: dict[str, float],
    period: str = REPORTING_PERIOD,
    z_threshold: float = ANOMALY_Z_THRESHOLD,
) -> list[dict]:
    """Flag countries whose value is far from the cross-country mean.

    Needs at least three countries and a non-zero spread; otherwise
    nothing is flagged.
    """
    if len(performance) < 3:
        return []

    values = np.array(list(performance.values()), dtype=float)
    std = values.std()
    if std == 0:
        return []
    mean = values.mean()

    anomalies = []
    for name, value in performance.items():
        z = (value - mean) / std
        if abs(z) > z_threshold:
            anomalies.append({
                "region": name,
                "period": period,
                "value": value,
                "z_score": round(float(z), 2),
                "direction": "above" if z > 0 else "below",
            })
    return anomalies


def build_country_data(
    countries: list[dict],
    performance: dict[str, float],
    anomalies: list[dict],
    total_people_reached: float,
) -> list[dict]:
    """Per-country chart rows for active countries, highest reach first."""
    active = [c for c in countries if c.get("status") == "active"]
    anomaly_regions = {a["region"] for a in anomalies}
    average = total_people_reached / len(countries) if countries else 0

    rows = []
    for c in active[:_MAX_CHART_COUNTRIES]:
        reach = performance.get(c["name"]) or c.get("total_reach") or 0
        rows.append({
            "name": c["name"],
            "reach": reach,
            "has_anomaly": c["name"] in anomaly_regions,
            "performance": "high" if reach > average else "normal",
            "target": int(round(reach * COUNTRY_GROWTH_TARGET)),
        })
    return sorted(rows, key=lambda r: r["reach"], reverse=True)


def calculate_metrics(
    countries: list[dict],
    projects: list[dict],
    data_points: list[dict],
    indicators: list[dict],
    selected_country: str | None = None,
) -> dict:
    """Return the flat KPI dict behind the dashboard cards and charts.

    Parameters
    ----------
    countries, projects, data_points, indicators : Full entity lists.
    selected_country : Optional country code; scopes projects and data
        points to that country.

    Returns
    -------
    Dict with keys:
        total_people_reached, total_women_participants,
        female_participation_rate, total_loans_value,
        total_training_sessions, active_countries, active_projects,
        historical_quarterly, growth_rates, growth_rate, projected_values,
        country_performance, country_data, anomalies, avg_quality_score,
        pending_approvals, period
    """
    scoped = filter_by_country(countries, projects, data_points, selected_country)
    scoped_projects = scoped["projects"]
    fact = build_fact_data_points(scoped["data_points"], projects, countries, indicators)

    total_people = sum_indicator(fact, PEOPLE_TRAINED_ID)
    total_women = sum_indicator(fact, WOMEN_PARTICIPANTS_ID)
    female_rate = round(total_women / total_people * 100, 1) if total_people > 0 else 0

    historical = historical_series(fact)
    rates, avg_growth = calculate_growth_rate(historical)
    last_value = historical[-1] if historical else 0
    projected = project_forward(last_value, avg_growth)

    performance = country_performance(fact)
    anomalies = detect_anomalies(performance)

    if selected_country and scoped["country"] is None:
        country_data = []
    elif scoped["country"] is not None:
        country_data = build_country_data([scoped["country"]], performance, anomalies, total_people)
    else:
        country_data = build_country_data(countries, performance, anomalies, total_people)

    if fact.empty:
        avg_quality = DEFAULT_QUALITY_SCORE
        pending = 0
    else:
        current = fact[(fact["status"] == "approved") & (fact["period"] == REPORTING_PERIOD)]
        avg_quality = (
            int(round(current["quality_score"].mean())) if not current.empty else DEFAULT_QUALITY_SCORE
        )
        pending = int(fact["status"].isin(PENDING_STATUSES).sum())

    metrics = {
        "period": REPORTING_PERIOD,
        "total_people_reached": total_people,
        "total_women_participants": total_women,
        "female_participation_rate": female_rate,
        "total_loans_value": sum_indicator(fact, LOANS_DISBURSED_ID),
        "total_training_sessions": sum_indicator(fact, TRAINING_SESSIONS_ID),
        "active_countries": 1 if selected_country else sum(
            1 for c in countries if c.get("status") == "active"
        ),
        "active_projects": sum(1 for p in scoped_projects if p.get("status") == "active"),
        "historical_quarterly": historical,
        "growth_rates": rates,
        "growth_rate": avg_growth,
        "projected_values": projected,
        "country_performance": performance,
        "country_data": country_data,
        "anomalies": anomalies,
        "avg_quality_score": avg_quality,
        "pending_approvals": pending,
    }
    logger.info(
        "Calculated metrics for %s: %s people reached, %d anomalies",
        selected_country or "all countries", total_people, len(anomalies),
    )
    return metrics
