"""
Data quality checks for submitted indicator values.

Rules are per-indicator dicts (see fixtures/validation_rules.json):

    range_check          {"min", "max"}
    variance_threshold   max % change from the previous period's value
    logical_consistency  comparisons against related indicators
    quality_thresholds   {"timeliness" (days late allowed), "accuracy", "consistency"}

Quality score starts at 100 and loses up to 30 for completeness, 25 for
timeliness, 25 for consistency and 20 for accuracy.
"""

import logging

from .config import DEFAULT_QUALITY_SCORE
from .loaders.utils import safe_float

logger = logging.getLogger(__name__)

LOW_QUALITY_SCORE = 70
HIGH_QUALITY_SCORE = 90

# Score movement (points) that counts as a trend
_TREND_BAND = 5


def _variance_pct(value: float, previous: float) -> float:
    return abs((value - previous) / previous) * 100


def calculate_quality_score(rules: dict, value, context: dict | None = None) -> int:
    """Score a value 0-100 from completeness, timeliness, consistency and accuracy.

    Parameters
    ----------
    rules : Validation rules for the indicator.
    value : Submitted value (None or "" counts as incomplete).
    context : Optional keys previous_value, days_late, submission_date,
        validation_errors.
    """
    context = context or {}
    score = 100.0
    numeric = safe_float(value)

    if not numeric:
        score -= 30

    timeliness = (rules.get("quality_thresholds") or {}).get("timeliness")
    if context.get("submission_date") and timeliness:
        days_late = context.get("days_late") or 0
        if days_late > timeliness:
            score -= min(25, days_late * 2)

    previous = context.get("previous_value")
    threshold = rules.get("variance_threshold")
    if previous and threshold and numeric is not None:
        variance = _variance_pct(numeric, previous)
        if variance > threshold:
            score -= min(25, variance / 4)

    errors = context.get("validation_errors") or []
    if errors:
        score -= min(20, len(errors) * 5)

    return max(0, int(round(score)))


def validate_value(rules: dict | None, value, context: dict | None = None) -> dict:
    """Check a value against an indicator's rules.

    Returns
    -------
    {"is_valid": bool, "errors": [str, ...], "quality_score": int | None}

    With no rules every value is valid and no score is computed.
    """
    if not rules:
        return {"is_valid": True, "errors": [], "quality_score": None}

    context = context or {}
    errors: list[str] = []
    numeric = safe_float(value)

    if numeric is None:
        errors.append(f"Invalid numeric value: {value}")
    else:
        bounds = rules.get("range_check") or {}
        if bounds.get("min") is not None and numeric < bounds["min"]:
            errors.append(f"Value must be at least {bounds['min']}")
        if bounds.get("max") is not None and numeric > bounds["max"]:
            errors.append(f"Value cannot exceed {bounds['max']}")

        previous = context.get("previous_value")
        threshold = rules.get("variance_threshold")
        if previous and threshold:
            variance = _variance_pct(numeric, previous)
            if variance > threshold:
                errors.append(
                    f"Variance of {variance:.1f}% exceeds threshold of {threshold}%"
                )

        related = context.get("related_values") or {}
        for rule in rules.get("logical_consistency") or []:
            other = related.get(rule.get("related_indicator_id"))
            if other is None:
                continue
            operator = rule.get("operator")
            if operator == "less_than_or_equal" and numeric > other:
                errors.append(
                    rule.get("description")
                    or "Value must be less than or equal to related indicator"
                )
            elif operator == "greater_than" and numeric <= other:
                errors.append(
                    rule.get("description") or "Value must be greater than related indicator"
                )

    score = calculate_quality_score(rules, value, context)
    return {"is_valid": not errors, "errors": errors, "quality_score": score}


def quality_insights(submissions: list[dict]) -> dict:
    """Summarise the quality scores of a set of submissions.

    Compares the last three scores with the three before them to decide
    whether quality is improving, declining or stable.
    """
    if not submissions:
        return {
            "average_quality": 0,
            "trend_direction": "stable",
            "common_issues": [],
            "recommendations": [],
            "total_submissions": 0,
            "high_quality_rate": 0.0,
        }

    scores = [s.get("quality_score") or DEFAULT_QUALITY_SCORE for s in submissions]
    average = sum(scores) / len(scores)

    recent = scores[-3:]
    older = scores[-6:-3]
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older) if older else recent_avg

    trend = "stable"
    if recent_avg > older_avg + _TREND_BAND:
        trend = "improving"
    elif recent_avg < older_avg - _TREND_BAND:
        trend = "declining"

    issues = []
    low = [s for s in scores if s < LOW_QUALITY_SCORE]
    if len(low) > len(scores) * 0.3:
        issues.append("High variance from previous periods")
    late = [s for s in submissions if (s.get("days_late") or 0) > 2]
    if len(late) > len(submissions) * 0.2:
        issues.append("Late submissions affecting timeliness scores")

    recommendations = []
    if average < 80:
        recommendations.append("Consider additional validation checks before submission")
    if trend == "declining":
        recommendations.append("Review recent data entry processes for consistency")
    if "Late submissions affecting timeliness scores" in issues:
        recommendations.append("Implement submission deadline reminders")

    high = sum(1 for s in scores if s >= HIGH_QUALITY_SCORE)
    return {
        "average_quality": int(round(average)),
        "trend_direction": trend,
        "common_issues": issues,
        "recommendations": recommendations,
        "total_submissions": len(submissions),
        "high_quality_rate": round(high / len(submissions) * 100, 1),
    }
