"""Data ingestion loaders for MEL fixtures and bulk-import uploads."""

from .fixtures import load_fixture, load_all_fixtures
from .bulk_import import load_import_file, load_import_csv, load_import_excel
from .bulk_import import suggest_mappings, validate_import_rows, build_template_csv

__all__ = [
    "load_fixture",
    "load_all_fixtures",
    "load_import_file",
    "load_import_csv",
    "load_import_excel",
    "suggest_mappings",
    "validate_import_rows",
    "build_template_csv",
]
