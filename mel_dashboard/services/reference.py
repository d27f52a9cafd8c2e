"""Reference-data services: countries, projects, indicators, users, organizations."""

import logging

from ..errors import NotFoundError, ValidationError
from ..permissions import permissions_for_role
from .base import CrudService, coerce_id

logger = logging.getLogger(__name__)


class CountryService(CrudService):
    entity = "Country"
    table = "countries"

    def _new_record(self, data):
        if not data.get("name") or not data.get("code"):
            raise ValidationError("Country name and code are required")
        record = {
            "status": "active",
            "population": 0,
            "region": None,
            "total_reach": 0,
            "women_participants": 0,
            "active_projects": 0,
        }
        record.update(data)
        return record

    async def get_by_code(self, code: str) -> dict:
        await self._delay("get_by_id")
        wanted = str(code or "").lower()
        for row in self.rows:
            if str(row.get("code", "")).lower() == wanted:
                return self._copy(row)
        raise NotFoundError(self.entity, code, key="code")


class ProjectService(CrudService):
    entity = "Project"
    table = "projects"

    def _new_record(self, data):
        if not data.get("name") or coerce_id(data.get("country_id")) is None:
            raise ValidationError("Project name and country are required")
        record = {
            "description": "",
            "budget": 0,
            "target_reach": 0,
            "current_reach": 0,
            "status": "active",
            "risk_level": "low",
            "start_date": None,
            "end_date": None,
        }
        record.update(data)
        record["country_id"] = coerce_id(data["country_id"])
        return record

    async def get_by_country(self, country_id) -> list[dict]:
        wanted = coerce_id(country_id)
        return await self._query(lambda p: p.get("country_id") == wanted)


class IndicatorService(CrudService):
    entity = "Indicator"
    table = "indicators"

    def _new_record(self, data):
        if not data.get("name"):
            raise ValidationError("Indicator name is required")
        record = {"category": None, "unit": None, "type": "number",
                  "target": 0, "baseline": 0, "frequency": "quarterly"}
        record.update(data)
        return record

    async def get_by_category(self, category: str) -> list[dict]:
        return await self._query(lambda i: i.get("category") == category)


class UserService(CrudService):
    entity = "User"
    table = "users"

    def _new_record(self, data):
        if not data.get("name") or not data.get("email"):
            raise ValidationError("User name and email are required")
        record = {"role": "External", "country_id": None, "status": "active", "last_login": None}
        record.update(data)
        if not record.get("permissions"):
            record["permissions"] = permissions_for_role(record["role"])
        return record

    async def get_by_role(self, role: str) -> list[dict]:
        return await self._query(lambda u: u.get("role") == role)

    async def get_by_country(self, country_id) -> list[dict]:
        wanted = coerce_id(country_id)
        return await self._query(lambda u: u.get("country_id") == wanted)


class OrganizationService(CrudService):
    entity = "Organization"
    table = "organizations"

    def _new_record(self, data):
        if not data.get("name"):
            raise ValidationError("Organization name is required")
        record = {"type": None, "country_id": None, "status": "active"}
        record.update(data)
        return record
