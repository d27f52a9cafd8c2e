"""Notification service: unread queries, read state and dismissal."""

import logging

from ..loaders.utils import to_iso, utc_now
from .base import CrudService

logger = logging.getLogger(__name__)


class NotificationService(CrudService):
    entity = "Notification"
    table = "notifications"

    def _new_record(self, data):
        record = {
            "type": "info",
            "title": "",
            "message": "",
            "priority": "medium",
            "is_read": False,
            "created_at": to_iso(utc_now()),
            "entity_id": None,
            "entity_type": None,
            "action_required": False,
            "metadata": {},
        }
        record.update(data)
        return record

    async def get_unread(self) -> list[dict]:
        return await self._query(lambda n: not n.get("is_read"))

    async def mark_as_read(self, notification_id) -> dict:
        await self._delay("update")
        notification = self._find(notification_id)
        notification["is_read"] = True
        return self._copy(notification)

    async def mark_all_as_read(self) -> list[dict]:
        await self._delay("update")
        for notification in self.rows:
            notification["is_read"] = True
        logger.info("Marked %d notifications as read", len(self.rows))
        return self._copy(self.rows)

    async def dismiss(self, notification_id) -> dict:
        return await self.delete(notification_id)
