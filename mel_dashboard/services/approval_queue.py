"""
Approval queue service: queue views, statistics, bulk decisions and history.

Bulk operations dispatch one workflow call per id concurrently and collect
every outcome; a failing item never stops the others and nothing is rolled
back.
"""

import asyncio
import logging
from datetime import datetime

from .. import approval_queue as queue
from ..errors import MelError
from .data_points import DataPointService

logger = logging.getLogger(__name__)


def _summarise(item_ids: list, outcomes: list) -> dict:
    results = []
    for item_id, outcome in zip(item_ids, outcomes):
        if isinstance(outcome, MelError):
            results.append({"item_id": item_id, "success": False, "error": str(outcome)})
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results.append({"item_id": item_id, "success": True, "result": outcome})

    success = sum(1 for r in results if r["success"])
    return {
        "total_processed": len(item_ids),
        "success_count": success,
        "failure_count": len(results) - success,
        "results": results,
    }


class ApprovalQueueService:
    def __init__(self, data_points: DataPointService):
        self.data_points = data_points
        self.store = data_points.store

    async def get_approval_queue(
        self,
        filters: dict | None = None,
        now: datetime | None = None,
    ) -> list[dict]:
        """Pending items after filtering, sorted when filters carry sort_by."""
        filters = filters or {}
        items = await self.data_points.get_pending_review(now)
        items = queue.filter_queue(items, filters, now)
        if filters.get("sort_by"):
            items = queue.sort_queue(items, filters["sort_by"], filters.get("sort_order", "desc"))
        return items

    async def get_approval_statistics(self, now: datetime | None = None) -> dict:
        stats, pending = await asyncio.gather(
            self.data_points.get_approval_stats(),
            self.data_points.get_pending_review(now),
        )
        return {
            **stats,
            "priority_breakdown": queue.priority_breakdown(pending),
            "quality_breakdown": queue.quality_breakdown(pending),
            "avg_response_time": queue.calculate_average_response_time(pending),
            "overdue_items": queue.overdue_count(pending),
            "avg_quality_score": queue.average_quality(pending),
        }

    async def bulk_approve(self, item_ids: list, approver: str, feedback: str = "") -> dict:
        await self.data_points._delay("bulk")
        outcomes = await asyncio.gather(
            *(self.data_points.approve(i, approver, feedback) for i in item_ids),
            return_exceptions=True,
        )
        summary = _summarise(item_ids, outcomes)
        logger.info(
            "Bulk approve by %s: %d/%d succeeded",
            approver, summary["success_count"], summary["total_processed"],
        )
        return summary

    async def bulk_reject(self, item_ids: list, rejector: str, reason: str) -> dict:
        await self.data_points._delay("bulk")
        outcomes = await asyncio.gather(
            *(self.data_points.reject(i, reason, rejector) for i in item_ids),
            return_exceptions=True,
        )
        summary = _summarise(item_ids, outcomes)
        logger.info(
            "Bulk reject by %s: %d/%d succeeded",
            rejector, summary["success_count"], summary["total_processed"],
        )
        return summary

    async def get_approval_history(self, data_point_id, now: datetime | None = None) -> dict:
        """Audit trail, most recent first, with user roles and durations."""
        data_point = await self.data_points.get_by_id(data_point_id)
        users = {u["name"]: u for u in self.store.table("users")}
        indicator = next(
            (i for i in self.store.table("indicators") if i["id"] == data_point.get("indicator_id")),
            None,
        )

        trail = data_point.get("audit_trail") or []
        history = [
            {
                **entry,
                "user_role": users.get(entry.get("user"), {}).get("role", "Unknown"),
                "action_type": queue.categorize_action(entry.get("action")),
                "duration_hours": queue.calculate_action_duration(entry.get("timestamp"), trail, now),
            }
            for entry in trail
        ]
        history.reverse()

        return {
            "data_point_id": data_point["id"],
            "indicator_name": indicator["name"] if indicator else "Unknown",
            "current_status": data_point.get("status"),
            "history": history,
        }

    async def get_queue_insights(self, now: datetime | None = None) -> dict:
        pending = await self.data_points.get_pending_review(now)
        return queue.queue_insights(pending)
