"""
Data point service: CRUD, queries and the approval workflow.

Workflow calls look the record up first (unknown id -> NotFoundError), then
delegate to workflow.transition_data_point, which refuses empty reasons and
invalid transitions before anything is mutated.
"""

import logging
from datetime import datetime

from ..config import DEFAULT_PRIORITY, DEFAULT_QUALITY_SCORE, PENDING_STATUSES
from ..errors import ValidationError
from ..loaders.utils import period_for_date, to_iso, utc_now
from ..transforms import enrich_data_point
from ..workflow import append_audit_entry, transition_data_point
from .base import CrudService, coerce_id

logger = logging.getLogger(__name__)

# Set only by workflow transitions, never by a plain update
WORKFLOW_FIELDS = frozenset({
    "status", "audit_trail",
    "submitted_by", "submitted_at",
    "approved_by", "approved_at",
    "rejected_by", "rejected_at", "rejection_reason", "rejection_count",
    "reviewed_by", "reviewed_at", "changes_requested_count", "feedback",
})


class DataPointService(CrudService):
    entity = "DataPoint"
    table = "data_points"

    async def update(self, record_id, data: dict) -> dict:
        """Update editable fields; status and review stamps go through the workflow calls."""
        blocked = sorted(WORKFLOW_FIELDS.intersection(data))
        if blocked:
            raise ValidationError(
                f"Cannot update workflow fields directly: {', '.join(blocked)}"
            )
        fields = dict(data)
        for key in ("project_id", "indicator_id"):
            if key in fields:
                fields[key] = coerce_id(fields[key])
                if fields[key] is None:
                    raise ValidationError(f"Invalid {key.replace('_id', '')} id")
        return await super().update(record_id, fields)

    def _new_record(self, data: dict) -> dict:
        project_id = coerce_id(data.get("project_id"))
        indicator_id = coerce_id(data.get("indicator_id"))
        if project_id is None:
            raise ValidationError("Project is required")
        if indicator_id is None:
            raise ValidationError("Indicator is required")
        if data.get("value") is None or data.get("value") == "":
            raise ValidationError("Value is required")

        now = data.get("submitted_at") or to_iso(utc_now())
        submitted_by = data.get("submitted_by") or "Unknown"
        record = {
            "period": data.get("period") or period_for_date(data.get("reporting_date") or now),
            "reporting_date": None,
            "submitted_by": submitted_by,
            "submitted_at": now,
            "status": "submitted",
            "priority": DEFAULT_PRIORITY,
            "quality_score": DEFAULT_QUALITY_SCORE,
            "notes": None,
            "approved_by": None,
            "approved_at": None,
            "rejected_by": None,
            "rejected_at": None,
            "rejection_reason": None,
            "rejection_count": 0,
            "reviewed_by": None,
            "reviewed_at": None,
            "changes_requested_count": 0,
            "feedback": None,
        }
        record.update({k: v for k, v in data.items() if k not in ("audit_trail", "status")})
        record["project_id"] = project_id
        record["indicator_id"] = indicator_id
        record["audit_trail"] = []
        append_audit_entry(record, "submitted", submitted_by, "Data submitted for review", now)
        return record

    # ── Queries ──────────────────────────────────────────────────────────

    async def get_by_project(self, project_id) -> list[dict]:
        wanted = coerce_id(project_id)
        return await self._query(lambda dp: dp.get("project_id") == wanted)

    async def get_by_indicator(self, indicator_id) -> list[dict]:
        wanted = coerce_id(indicator_id)
        return await self._query(lambda dp: dp.get("indicator_id") == wanted)

    async def get_by_period(self, period: str) -> list[dict]:
        return await self._query(lambda dp: dp.get("period") == period)

    async def get_by_country(self, country_id) -> list[dict]:
        wanted = coerce_id(country_id)
        project_ids = {
            p["id"] for p in self.store.table("projects") if p.get("country_id") == wanted
        }
        return await self._query(lambda dp: dp.get("project_id") in project_ids)

    # ── Workflow ─────────────────────────────────────────────────────────

    async def _transition(self, record_id, action: str, user: str, comment: str | None = None) -> dict:
        await self._delay("workflow")
        record = self._find(record_id)
        transition_data_point(record, action, user, comment=comment)
        return self._copy(record)

    async def submit(self, record_id, user: str) -> dict:
        return await self._transition(record_id, "submit", user)

    async def mark_in_review(self, record_id, reviewer: str) -> dict:
        return await self._transition(record_id, "mark_in_review", reviewer)

    async def approve(self, record_id, approver: str, feedback: str = "") -> dict:
        return await self._transition(record_id, "approve", approver, feedback)

    async def reject(self, record_id, reason: str, rejector: str) -> dict:
        return await self._transition(record_id, "reject", rejector, reason)

    async def request_changes(self, record_id, feedback: str, reviewer: str) -> dict:
        return await self._transition(record_id, "request_changes", reviewer, feedback)

    # ── Review queue ─────────────────────────────────────────────────────

    async def get_pending_review(self, now: datetime | None = None) -> list[dict]:
        """Submitted and in-review data points with related names resolved."""
        await self._delay("queue")
        projects = self.store.table("projects")
        countries = self.store.table("countries")
        indicators = self.store.table("indicators")
        return [
            enrich_data_point(self._copy(dp), projects, countries, indicators, now)
            for dp in self.rows
            if dp.get("status") in PENDING_STATUSES
        ]

    async def get_approval_stats(self) -> dict:
        """Counts by workflow status plus rejection/change-request totals."""
        await self._delay("statistics")
        rows = self.rows
        counts = {
            status: sum(1 for dp in rows if dp.get("status") == status)
            for status in ("draft", "submitted", "in_review", "approved")
        }
        decided = counts["approved"] + sum(dp.get("rejection_count") or 0 for dp in rows)
        return {
            "total": len(rows),
            "pending": counts["submitted"] + counts["in_review"],
            **counts,
            "total_rejections": sum(dp.get("rejection_count") or 0 for dp in rows),
            "total_changes_requested": sum(dp.get("changes_requested_count") or 0 for dp in rows),
            "approval_rate": round(counts["approved"] / decided * 100, 1) if decided else 0.0,
        }
