"""
In-memory store backing the mock services.

Holds mutable deep copies of the JSON fixtures. Services mutate the tables
directly; there is no locking, so concurrent writers to the same record
resolve as last-write-wins.
"""

import copy
import logging
from pathlib import Path

from ..config import FIXTURE_FILES
from ..loaders.fixtures import load_all_fixtures

logger = logging.getLogger(__name__)


class MockStore:
    """Mutable entity tables keyed by fixture name."""

    def __init__(self, fixtures: dict | None = None, fixtures_dir: Path | None = None):
        if fixtures is None:
            fixtures = load_all_fixtures(fixtures_dir)
        self._source = {name: fixtures.get(name, self._empty(name)) for name in FIXTURE_FILES}
        self.tables: dict = {}
        self.reset()

    @staticmethod
    def _empty(name: str):
        return {} if name == "validation_rules" else []

    def reset(self) -> None:
        """Discard all changes and reload from the original fixtures."""
        self.tables = copy.deepcopy(self._source)
        logger.debug("Mock store reset (%d tables)", len(self.tables))

    def table(self, name: str):
        return self.tables[name]

    def next_id(self, name: str) -> int:
        return max((row["id"] for row in self.tables[name]), default=0) + 1
