"""
Bulk import service: parse an upload, validate rows, create data points.

Typical flow:

    parsed = await service.parse_file(content, "q1.csv")
    checked = await service.validate_data(parsed["data"], parsed["mappings"])
    summary = await service.import_rows(checked["valid_rows"], user="Sokha Chan")
"""

import asyncio
import logging
from pathlib import Path
from typing import IO

from ..config import TEMPLATE_SAMPLE_ROWS
from ..errors import MelError, ValidationError
from ..loaders.bulk_import import (
    build_template_csv,
    load_import_file,
    suggest_mappings,
    validate_import_rows,
)
from .data_points import DataPointService

logger = logging.getLogger(__name__)


class BulkImportService:
    def __init__(self, data_points: DataPointService):
        self.data_points = data_points
        self.store = data_points.store

    async def parse_file(self, source: str | Path | IO | bytes, filename: str | None = None) -> dict:
        """Read a CSV or Excel upload.

        Returns
        -------
        {"headers": [...], "data": [...], "mappings": {header: field}}

        Raises ImportFileError for empty, unreadable or unsupported files.
        """
        await self.data_points._delay("parse_file")
        parsed = load_import_file(source, filename)
        parsed["mappings"] = suggest_mappings(parsed["headers"])
        return parsed

    async def validate_data(
        self,
        rows: list[dict],
        mappings: dict[str, str | None],
        reference: dict[str, list[dict]] | None = None,
    ) -> dict:
        await self.data_points._delay("validate_data")
        if reference is None:
            reference = {
                "indicators": self.store.table("indicators"),
                "countries": self.store.table("countries"),
                "projects": self.store.table("projects"),
            }
        return validate_import_rows(rows, mappings, reference)

    async def _import_one(self, row: dict, user: str, defaults: dict) -> dict:
        data = {**defaults, **{k: v for k, v in row.items() if v is not None}}
        if data.get("project_id") is None:
            raise ValidationError("No project given and no default project selected")
        data["submitted_by"] = user
        for key in ("indicator", "country", "project", "country_id"):
            data.pop(key, None)
        return await self.data_points.create(data)

    async def import_rows(
        self,
        valid_rows: list[dict],
        user: str,
        defaults: dict | None = None,
    ) -> dict:
        """Create one submitted data point per row, concurrently.

        defaults supplies fields (typically project_id) for rows that lack
        them. Failed rows are reported, successful ones are kept.
        """
        defaults = defaults or {}
        outcomes = await asyncio.gather(
            *(self._import_one(row, user, defaults) for row in valid_rows),
            return_exceptions=True,
        )

        results = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, MelError):
                results.append({"index": index, "success": False, "error": str(outcome)})
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append({"index": index, "success": True, "id": outcome["id"]})

        success = sum(1 for r in results if r["success"])
        logger.info("Imported %d of %d rows for %s", success, len(valid_rows), user)
        return {
            "total_processed": len(valid_rows),
            "success_count": success,
            "failure_count": len(valid_rows) - success,
            "results": results,
        }

    def build_template(self) -> str:
        """CSV template text with headers and two sample rows."""
        return build_template_csv(TEMPLATE_SAMPLE_ROWS)
