"""
Approval queue: filtering, sorting and reviewer insights.

All functions are pure and operate on enriched data point dicts (see
transforms.enrich_data_point). Filters use "all" (or a missing key) to mean
"no filter":

    {"status": "submitted", "priority": "all", "submitter": "all",
     "date_range": "week", "quality_threshold": 80}
"""

import logging
from datetime import datetime

from .config import (
    DATE_RANGE_DAYS,
    DEFAULT_QUALITY_SCORE,
    OVERDUE_AFTER_DAYS,
    QUEUE_DATE_FIELDS,
)
from .loaders.utils import parse_timestamp, utc_now
from .transforms import days_between

logger = logging.getLogger(__name__)

PRIORITIES = ("high", "medium", "low")

# (label, inclusive lower bound) from best to worst
QUALITY_BANDS = (
    ("excellent", 90),
    ("good", 75),
    ("fair", 60),
    ("poor", None),
)

# Submitters with more pending items than this suggest a capacity problem
HIGH_LOAD_THRESHOLD = 10


def _quality(item: dict) -> float:
    return item.get("quality_score") or DEFAULT_QUALITY_SCORE


def _is_active(value) -> bool:
    return value not in (None, "", "all")


# ---------------------------------------------------------------------------
# Filter / sort
# ---------------------------------------------------------------------------

def filter_queue(
    items: list[dict],
    filters: dict | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Return the items matching every active filter, in their original order.

    date_range keeps items submitted within the cutoff ("today" = 1 day,
    "week" = 7, "month" = 30), counting partial days as whole days.
    Unknown date ranges fall back to the monthly cutoff.
    """
    filters = filters or {}
    result = list(items)

    status = filters.get("status")
    if _is_active(status):
        result = [i for i in result if i.get("status") == status]

    priority = filters.get("priority")
    if _is_active(priority):
        result = [i for i in result if i.get("priority") == priority]

    submitter = filters.get("submitter")
    if _is_active(submitter):
        result = [i for i in result if i.get("submitted_by") == submitter]

    threshold = filters.get("quality_threshold")
    if threshold:
        result = [i for i in result if _quality(i) >= threshold]

    date_range = filters.get("date_range")
    if _is_active(date_range):
        cutoff = DATE_RANGE_DAYS.get(date_range, DATE_RANGE_DAYS["month"])
        now = now or utc_now()
        result = [
            i for i in result
            if i.get("submitted_at") and days_between(i["submitted_at"], now) <= cutoff
        ]

    return result


def _sort_key(item: dict, field: str):
    value = item.get(field)
    if field in QUEUE_DATE_FIELDS:
        return parse_timestamp(value)
    if isinstance(value, str):
        return value.lower()
    return value


def sort_queue(
    items: list[dict],
    sort_by: str | None = None,
    sort_order: str = "desc",
) -> list[dict]:
    """Sort items by one field; ties keep their input order.

    Date fields compare as timestamps, strings case-insensitively.
    Items missing the field always go last.
    """
    if not sort_by:
        return list(items)

    present = []
    missing = []
    for item in items:
        key = _sort_key(item, sort_by)
        (missing if key is None else present).append((key, item))

    present.sort(key=lambda pair: pair[0], reverse=(sort_order != "asc"))
    return [item for _, item in present] + [item for _, item in missing]


class QueueSelector:
    """Memoised filter+sort over the approval queue.

    Recomputes when the item list (by identity), the filters or the sort
    settings change. With a date_range filter active the current minute is
    part of the key, so cached results age out as time passes.
    """

    def __init__(self):
        self._key = None
        self._result: list[dict] = []
        self.computations = 0

    def select(
        self,
        items: list[dict],
        filters: dict | None = None,
        sort_by: str | None = None,
        sort_order: str = "desc",
        now: datetime | None = None,
    ) -> list[dict]:
        as_of = None
        if _is_active((filters or {}).get("date_range")):
            now = (now or utc_now()).replace(second=0, microsecond=0)
            as_of = now
        key = (
            id(items), len(items), tuple(sorted((filters or {}).items())),
            sort_by, sort_order, as_of,
        )
        if key != self._key:
            self._result = sort_queue(filter_queue(items, filters, now), sort_by, sort_order)
            self._key = key
            self.computations += 1
        return self._result


# ---------------------------------------------------------------------------
# Breakdowns
# ---------------------------------------------------------------------------

def priority_breakdown(items: list[dict]) -> dict[str, int]:
    return {p: sum(1 for i in items if i.get("priority") == p) for p in PRIORITIES}


def quality_band(score: float) -> str:
    for label, lower in QUALITY_BANDS:
        if lower is None or score >= lower:
            return label
    return QUALITY_BANDS[-1][0]


def quality_breakdown(items: list[dict]) -> dict[str, int]:
    counts = {label: 0 for label, _ in QUALITY_BANDS}
    for item in items:
        counts[quality_band(_quality(item))] += 1
    return counts


def overdue_count(items: list[dict], after_days: int = OVERDUE_AFTER_DAYS) -> int:
    return sum(1 for i in items if (i.get("days_since_submission") or 0) > after_days)


def average_quality(items: list[dict]) -> int:
    if not items:
        return DEFAULT_QUALITY_SCORE
    return int(round(sum(_quality(i) for i in items) / len(items)))


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

def calculate_average_response_time(items: list[dict]) -> int:
    """Average days between submission and review, over reviewed items."""
    durations = []
    for item in items:
        submitted = parse_timestamp(item.get("submitted_at"))
        reviewed = parse_timestamp(item.get("reviewed_at"))
        if submitted is None or reviewed is None:
            continue
        durations.append((reviewed - submitted).total_seconds())
    if not durations:
        return 0
    return int(round(sum(durations) / len(durations) / 86400))


def categorize_action(action: str) -> str:
    """Group an audit action into a broad category."""
    action = action or ""
    if "submit" in action:
        return "submission"
    if "approve" in action:
        return "approval"
    if "reject" in action:
        return "rejection"
    if "review" in action:
        return "review"
    if "change" in action:
        return "modification"
    return "other"


def calculate_action_duration(
    timestamp: str,
    audit_trail: list[dict],
    now: datetime | None = None,
) -> int:
    """Hours from this action until the next one (or until now)."""
    action_time = parse_timestamp(timestamp)
    if action_time is None:
        return 0
    for entry in audit_trail:
        entry_time = parse_timestamp(entry.get("timestamp"))
        if entry_time is not None and entry_time > action_time:
            return int(round((entry_time - action_time).total_seconds() / 3600))
    end = parse_timestamp(now or utc_now())
    return int(round((end - action_time).total_seconds() / 3600))


def analyze_submission_times(items: list[dict]) -> dict:
    """Top three submission hours (UTC) across the queue."""
    hour_counts = [0] * 24
    for item in items:
        ts = parse_timestamp(item.get("submitted_at"))
        if ts is not None:
            hour_counts[ts.hour] += 1

    ranked = sorted(
        ({"hour": hour, "count": count} for hour, count in enumerate(hour_counts)),
        key=lambda h: h["count"],
        reverse=True,
    )
    return {
        "peak_hours": ranked[:3],
        "total_submissions": len(items),
        "avg_per_hour": round(len(items) / 24, 1),
    }


def analyze_quality_trend(items: list[dict]) -> dict:
    """Compare the quality of the older and newer halves of the queue."""
    ordered = sorted(
        (i for i in items if parse_timestamp(i.get("submitted_at")) is not None),
        key=lambda i: parse_timestamp(i["submitted_at"]),
    )
    if len(ordered) < 2:
        return {"trend": "stable", "change": 0}

    half = len(ordered) // 2
    first = ordered[:half]
    second = ordered[half:]
    change = (
        sum(_quality(i) for i in second) / len(second)
        - sum(_quality(i) for i in first) / len(first)
    )

    trend = "stable"
    if change > 5:
        trend = "improving"
    elif change < -5:
        trend = "declining"
    return {"trend": trend, "change": round(change, 1)}


def generate_queue_recommendations(
    items: list[dict],
    submitter_load: dict[str, int],
) -> list[dict]:
    recommendations = []

    busy = [name for name, count in submitter_load.items() if count > HIGH_LOAD_THRESHOLD]
    if busy:
        recommendations.append({
            "type": "capacity",
            "priority": "high",
            "message": f"{len(busy)} submitters have high pending volumes. "
                       "Consider additional review capacity.",
            "action": "Allocate more reviewers or implement batch processing",
        })

    low_quality = sum(1 for i in items if _quality(i) < 70)
    if items and low_quality > len(items) * 0.3:
        recommendations.append({
            "type": "quality",
            "priority": "medium",
            "message": f"{low_quality} items have low quality scores. "
                       "Data entry training may be needed.",
            "action": "Implement validation training for high-volume submitters",
        })

    overdue = overdue_count(items)
    if overdue:
        recommendations.append({
            "type": "timeliness",
            "priority": "high",
            "message": f"{overdue} items are overdue for review. SLA targets may be at risk.",
            "action": "Prioritize overdue items and review approval workflow efficiency",
        })

    return recommendations


def _top_counts(counts: dict[str, int], limit: int = 5) -> list[dict]:
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [{"name": name, "count": count} for name, count in ranked[:limit]]


def queue_insights(items: list[dict]) -> dict:
    """Bottlenecks, timing, quality trend and recommendations for the queue."""
    submitter_load: dict[str, int] = {}
    indicator_load: dict[str, int] = {}
    for item in items:
        submitter = item.get("submitted_by") or "Unknown"
        indicator = item.get("indicator_name") or "Unknown"
        submitter_load[submitter] = submitter_load.get(submitter, 0) + 1
        indicator_load[indicator] = indicator_load.get(indicator, 0) + 1

    return {
        "bottlenecks": {
            "top_submitters": _top_counts(submitter_load),
            "top_indicators": _top_counts(indicator_load),
        },
        "time_analysis": analyze_submission_times(items),
        "quality_trend": analyze_quality_trend(items),
        "recommendations": generate_queue_recommendations(items, submitter_load),
    }
