"""
Data point approval workflow.

Manages data point status transitions with:
  - Transition validation (DATA_POINT_TRANSITIONS)
  - Side effects (approve -> stamp approved_by/at, reject -> rejection_count, ...)
  - Append-only audit trail, one entry per successful transition

Graph:
    draft -> submitted -> in_review -> approved
                                    -> rejected          -> draft
                                    -> changes_requested -> draft

Approved is terminal. Approve, reject and request_changes are also allowed
straight from submitted, so a reviewer can decide without opening a review.

Usage:
    from mel_dashboard.workflow import transition_data_point

    result = transition_data_point(record, "reject", "Anwesha", comment="Totals off")
"""

import logging
from datetime import datetime

from .errors import TransitionError, ValidationError
from .loaders.utils import to_iso, utc_now

logger = logging.getLogger(__name__)

DATA_POINT_TRANSITIONS: dict[str, dict] = {
    "submit": {
        "from": ("draft", "rejected", "changes_requested"),
        "to": "submitted",
        "audit_action": "submitted",
    },
    "mark_in_review": {
        "from": ("submitted",),
        "to": "in_review",
        "audit_action": "in_review",
    },
    "approve": {
        "from": ("submitted", "in_review"),
        "to": "approved",
        "audit_action": "approved",
    },
    "reject": {
        "from": ("submitted", "in_review"),
        "to": "draft",
        "audit_action": "rejected",
    },
    "request_changes": {
        "from": ("submitted", "in_review"),
        "to": "draft",
        "audit_action": "changes_requested",
    },
}

# Actions that must carry a non-empty comment
_COMMENT_REQUIRED = {
    "reject": "A reason is required to reject a data point",
    "request_changes": "Feedback is required to request changes",
}

_DEFAULT_COMMENTS = {
    "submit": "Data submitted for review",
    "mark_in_review": "Review started",
    "approve": "Data approved for dashboard integration",
}


def validate_transition(record: dict, action: str) -> dict:
    """Validate whether an action is valid for the record's current state.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    current = record.get("status")
    rule = DATA_POINT_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": current, "to": None,
                "reason": f"Unknown action: {action}"}

    if current not in rule["from"]:
        return {"valid": False, "from": current, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{current}'"}

    return {"valid": True, "from": current, "to": rule["to"], "reason": None}


def allowed_actions(record: dict) -> list[str]:
    """Actions that are valid from the record's current status."""
    return [a for a in DATA_POINT_TRANSITIONS if validate_transition(record, a)["valid"]]


def append_audit_entry(
    record: dict,
    action: str,
    user: str,
    comment: str | None = None,
    timestamp: str | None = None,
) -> dict:
    """Append one entry to the record's audit trail and return it."""
    entry = {
        "action": action,
        "user": user,
        "timestamp": timestamp or to_iso(utc_now()),
        "comment": comment or "",
    }
    record.setdefault("audit_trail", []).append(entry)
    return entry


def transition_data_point(
    record: dict,
    action: str,
    user: str,
    *,
    comment: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Execute a data point workflow transition in place.

    Args:
        record: Data point dict (mutated)
        action: One of DATA_POINT_TRANSITIONS
        user: Name of the person performing the action
        comment: Reason/feedback; required for reject and request_changes
        now: Transition time (defaults to the current UTC time)

    Returns:
        {"id", "previous_status", "new_status", "action", "audit_entry"}

    Raises:
        ValidationError, TransitionError
    """
    if action in _COMMENT_REQUIRED and not (comment or "").strip():
        raise ValidationError(_COMMENT_REQUIRED[action])

    check = validate_transition(record, action)
    if not check["valid"]:
        raise TransitionError(record.get("id"), action, record.get("status"), check["reason"])

    rule = DATA_POINT_TRANSITIONS[action]
    stamp = to_iso(now or utc_now())
    previous = record.get("status")
    feedback = (comment or "").strip()
    comment = feedback or _DEFAULT_COMMENTS.get(action, "")

    if action == "submit":
        record["submitted_by"] = user
        record["submitted_at"] = stamp
    elif action == "mark_in_review":
        record["reviewed_by"] = user
        record["reviewed_at"] = stamp
    elif action == "approve":
        record["approved_by"] = user
        record["approved_at"] = stamp
        record["feedback"] = feedback or None
    elif action == "reject":
        record["rejected_by"] = user
        record["rejected_at"] = stamp
        record["rejection_reason"] = comment
        record["rejection_count"] = (record.get("rejection_count") or 0) + 1
    elif action == "request_changes":
        record["reviewed_by"] = user
        record["reviewed_at"] = stamp
        record["feedback"] = comment
        record["changes_requested_count"] = (record.get("changes_requested_count") or 0) + 1

    record["status"] = rule["to"]
    entry = append_audit_entry(record, rule["audit_action"], user, comment, stamp)

    logger.info(
        "Data point %s: %s by %s (%s -> %s)",
        record.get("id"), action, user, previous, rule["to"],
    )
    return {
        "id": record.get("id"),
        "previous_status": previous,
        "new_status": rule["to"],
        "action": action,
        "audit_entry": entry,
    }
