"""
Simulated data generator for the MEL dashboard.

Generates approved quarterly data points per project with steady growth and
noise around a per-indicator base value. All values are synthetic; they
exist to give charts and tests a realistic multi-period series.
"""

import numpy as np
import pandas as pd

from .config import DEFAULT_PRIORITY, HISTORICAL_PERIODS, INDICATOR_REGISTRY
from .loaders.utils import normalise_date

# ---------------------------------------------------------------------------
# Typical per-project quarterly values
# ---------------------------------------------------------------------------
_BASE_PARAMS = {
    1: {"base": 900, "std": 60},        # people trained
    2: {"base": 560, "std": 45},        # women participants
    3: {"base": 90, "std": 12},         # jobs created
    4: {"base": 60_000, "std": 4_000},  # loans disbursed
    5: {"base": 93, "std": 1.5},        # repayment rate
    6: {"base": 6, "std": 0.8},         # portfolio at risk
    7: {"base": 28, "std": 3},          # training sessions
}

_REVIEWER = "Anwesha MEL Lead"
_SUBMITTER = "Field Officer"


def _period_end(period: str) -> str:
    year, quarter = period.split("-Q")
    month = int(quarter) * 3
    day = 31 if month in (3, 12) else 30
    return f"{year}-{month:02d}-{day:02d}"


def generate_data_points(
    projects: list[dict],
    indicators: list[dict],
    periods: list[str] = HISTORICAL_PERIODS,
    seed: int = 42,
    quarterly_growth: float = 0.08,
    start_id: int = 1000,
) -> list[dict]:
    """Generate approved data points for every active project and indicator.

    Counts grow by quarterly_growth each period; percentage indicators
    only vary around their base. Same seed, same output.
    """
    rng = np.random.default_rng(seed)
    active = [p for p in projects if p.get("status", "active") == "active"]

    rows = []
    next_id = start_id
    for p_idx, project in enumerate(active):
        scale = 0.6 + 0.1 * (p_idx % 5)
        for indicator in indicators:
            params = _BASE_PARAMS.get(indicator["id"])
            if params is None:
                continue
            is_pct = INDICATOR_REGISTRY.get(indicator["id"], {}).get("type") == "percentage"

            for q_idx, period in enumerate(periods):
                if is_pct:
                    value = params["base"] + rng.normal(0, params["std"])
                    value = round(float(np.clip(value, 0, 100)), 1)
                else:
                    trend = params["base"] * scale * (1 + quarterly_growth) ** q_idx
                    value = max(0, int(round(trend + rng.normal(0, params["std"] * scale))))

                reporting_date = _period_end(period)
                submitted = normalise_date(reporting_date) + pd.Timedelta(days=int(rng.integers(2, 10)))
                approved = submitted + pd.Timedelta(days=int(rng.integers(1, 5)))
                submitted_at = submitted.strftime("%Y-%m-%dT09:00:00Z")
                approved_at = approved.strftime("%Y-%m-%dT15:00:00Z")

                rows.append({
                    "id": next_id,
                    "project_id": project["id"],
                    "indicator_id": indicator["id"],
                    "value": value,
                    "period": period,
                    "reporting_date": reporting_date,
                    "submitted_by": _SUBMITTER,
                    "submitted_at": submitted_at,
                    "status": "approved",
                    "priority": DEFAULT_PRIORITY,
                    "quality_score": int(np.clip(rng.normal(88, 5), 50, 100)),
                    "notes": None,
                    "approved_by": _REVIEWER,
                    "approved_at": approved_at,
                    "rejected_by": None,
                    "rejected_at": None,
                    "rejection_reason": None,
                    "rejection_count": 0,
                    "reviewed_by": None,
                    "reviewed_at": None,
                    "changes_requested_count": 0,
                    "feedback": None,
                    "audit_trail": [
                        {"action": "submitted", "user": _SUBMITTER,
                         "timestamp": submitted_at, "comment": "Data submitted for review"},
                        {"action": "approved", "user": _REVIEWER,
                         "timestamp": approved_at, "comment": "Data approved for dashboard integration"},
                    ],
                })
                next_id += 1

    return rows
