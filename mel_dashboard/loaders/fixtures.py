"""
Loader for the static JSON fixtures that back the mock services.

Each fixture is a JSON array of entity dicts (validation rules are a JSON
object keyed by indicator id).
"""

import json
import logging
from pathlib import Path

from ..config import FIXTURE_FILES, FIXTURES_DIR

logger = logging.getLogger(__name__)


def load_fixture(name: str, fixtures_dir: Path | None = None):
    """Load one named fixture.

    Parameters
    ----------
    name : Key of config.FIXTURE_FILES (e.g. "data_points").
    fixtures_dir : Directory override; defaults to the packaged fixtures.
    """
    if name not in FIXTURE_FILES:
        raise KeyError(f"Unknown fixture: {name}")

    path = (fixtures_dir or FIXTURES_DIR) / FIXTURE_FILES[name]
    try:
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError):
        logger.exception("Failed to read fixture: %s", path)
        raise

    if name == "validation_rules":
        data = {int(k): v for k, v in data.items()}

    logger.info("Loaded %d %s from %s", len(data), name, path.name)
    return data


def load_all_fixtures(fixtures_dir: Path | None = None) -> dict:
    """Load every fixture into a dict keyed by fixture name."""
    return {name: load_fixture(name, fixtures_dir) for name in FIXTURE_FILES}
