"""
Base class for the async mock services.

Every public call sleeps for its configured latency (SERVICE_DELAYS_MS,
scaled by DELAY_SCALE) before touching the store, and returns deep copies
so callers can never mutate store rows by accident.
"""

import asyncio
import copy
import logging

from .. import config
from ..errors import NotFoundError
from .store import MockStore

logger = logging.getLogger(__name__)


def coerce_id(value) -> int | None:
    """Parse an entity id the way a form or URL would pass it."""
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class CrudService:
    """get_all / get_by_id / create / update / delete over one store table."""

    entity = "Record"
    table = ""

    def __init__(self, store: MockStore, delay_scale: float | None = None):
        self.store = store
        self.delay_scale = config.DELAY_SCALE if delay_scale is None else delay_scale

    async def _delay(self, operation: str) -> None:
        ms = config.SERVICE_DELAYS_MS.get(operation, 0) * self.delay_scale
        if ms > 0:
            await asyncio.sleep(ms / 1000)

    @property
    def rows(self) -> list[dict]:
        return self.store.table(self.table)

    def _find(self, record_id) -> dict:
        wanted = coerce_id(record_id)
        for row in self.rows:
            if row["id"] == wanted:
                return row
        raise NotFoundError(self.entity, record_id)

    @staticmethod
    def _copy(rows):
        return copy.deepcopy(rows)

    def _new_record(self, data: dict) -> dict:
        """Hook for subclasses to fill defaults on create."""
        return dict(data)

    # ── CRUD ─────────────────────────────────────────────────────────────

    async def get_all(self) -> list[dict]:
        await self._delay("get_all")
        return self._copy(self.rows)

    async def get_by_id(self, record_id) -> dict:
        await self._delay("get_by_id")
        return self._copy(self._find(record_id))

    async def create(self, data: dict) -> dict:
        await self._delay("create")
        record = self._new_record(data)
        record["id"] = self.store.next_id(self.table)
        self.rows.append(record)
        logger.info("Created %s %s", self.entity, record["id"])
        return self._copy(record)

    async def update(self, record_id, data: dict) -> dict:
        await self._delay("update")
        record = self._find(record_id)
        record.update({k: v for k, v in data.items() if k != "id"})
        return self._copy(record)

    async def delete(self, record_id) -> dict:
        await self._delay("delete")
        record = self._find(record_id)
        self.rows.remove(record)
        logger.info("Deleted %s %s", self.entity, record["id"])
        return self._copy(record)

    async def _query(self, predicate) -> list[dict]:
        await self._delay("query")
        return self._copy([row for row in self.rows if predicate(row)])
