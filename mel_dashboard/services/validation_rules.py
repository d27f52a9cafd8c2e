"""Validation rules service: per-indicator rule sets and value checks."""

import copy
import logging

from ..errors import NotFoundError
from ..loaders.utils import to_iso, utc_now
from ..validation import quality_insights, validate_value
from .base import CrudService, coerce_id

logger = logging.getLogger(__name__)


class ValidationRulesService(CrudService):
    """Rules live in a dict keyed by indicator id rather than a list."""

    entity = "ValidationRules"
    table = "validation_rules"

    @property
    def rules(self) -> dict[int, dict]:
        return self.store.table(self.table)

    async def get_all(self) -> dict[int, dict]:
        await self._delay("statistics")
        return copy.deepcopy(self.rules)

    async def get_by_indicator_id(self, indicator_id) -> dict | None:
        await self._delay("get_by_id")
        rules = self.rules.get(coerce_id(indicator_id))
        return copy.deepcopy(rules) if rules is not None else None

    async def create(self, indicator_id, rules: dict) -> dict:
        await self._delay("create")
        stamp = to_iso(utc_now())
        record = {**rules, "created_at": stamp, "updated_at": stamp}
        self.rules[coerce_id(indicator_id)] = record
        logger.info("Created validation rules for indicator %s", indicator_id)
        return copy.deepcopy(record)

    async def update(self, indicator_id, rules: dict) -> dict:
        await self._delay("update")
        key = coerce_id(indicator_id)
        if key not in self.rules:
            raise NotFoundError(self.entity, indicator_id, key="indicator id")
        self.rules[key] = {**self.rules[key], **rules, "updated_at": to_iso(utc_now())}
        return copy.deepcopy(self.rules[key])

    async def delete(self, indicator_id) -> dict:
        await self._delay("delete")
        key = coerce_id(indicator_id)
        if key not in self.rules:
            raise NotFoundError(self.entity, indicator_id, key="indicator id")
        return self.rules.pop(key)

    async def get_by_id(self, indicator_id) -> dict:
        rules = await self.get_by_indicator_id(indicator_id)
        if rules is None:
            raise NotFoundError(self.entity, indicator_id, key="indicator id")
        return rules

    async def validate_value(self, indicator_id, value, context: dict | None = None) -> dict:
        await self._delay("validate_value")
        return validate_value(self.rules.get(coerce_id(indicator_id)), value, context)

    async def get_quality_insights(self, indicator_id, submissions: list[dict] | None = None) -> dict:
        """Quality summary for an indicator's submissions (all stored ones by default)."""
        await self._delay("statistics")
        if submissions is None:
            wanted = coerce_id(indicator_id)
            submissions = [
                dp for dp in self.store.table("data_points") if dp.get("indicator_id") == wanted
            ]
        return quality_insights(submissions)
