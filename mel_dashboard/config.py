"""
Configuration: indicator registry, fixture paths, workflow and aggregation constants.

INDICATOR_REGISTRY maps each indicator id to its display type, unit,
evaluation direction and amber-band tolerance (percentage points).
"""

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# File paths
# ---------------------------------------------------------------------------
FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"

FIXTURE_FILES: dict[str, str] = {
    "countries": "countries.json",
    "projects": "projects.json",
    "indicators": "indicators.json",
    "data_points": "data_points.json",
    "users": "users.json",
    "organizations": "organizations.json",
    "notifications": "notifications.json",
    "validation_rules": "validation_rules.json",
}

# ---------------------------------------------------------------------------
# Program identity
# ---------------------------------------------------------------------------
PROGRAM_NAME = "Good Return MEL"

# ---------------------------------------------------------------------------
# Headline indicators
# ---------------------------------------------------------------------------
PEOPLE_TRAINED_ID = 1
WOMEN_PARTICIPANTS_ID = 2
LOANS_DISBURSED_ID = 4
TRAINING_SESSIONS_ID = 7

# direction: "higher_is_better" or "lower_is_better"
# type: "number", "currency" or "percentage"
# amber_band: percentage-point tolerance for amber classification
INDICATOR_REGISTRY: dict[int, dict] = {
    PEOPLE_TRAINED_ID: {
        "type": "number",
        "unit": "people",
        "direction": "higher_is_better",
        "amber_band": 10.0,
    },
    WOMEN_PARTICIPANTS_ID: {
        "type": "number",
        "unit": "people",
        "direction": "higher_is_better",
        "amber_band": 10.0,
    },
    3: {
        "type": "number",
        "unit": "jobs",
        "direction": "higher_is_better",
        "amber_band": 15.0,
    },
    LOANS_DISBURSED_ID: {
        "type": "currency",
        "unit": "USD",
        "direction": "higher_is_better",
        "amber_band": 10.0,
    },
    5: {
        "type": "percentage",
        "unit": "%",
        "direction": "higher_is_better",
        "amber_band": 5.0,
    },
    6: {
        "type": "percentage",
        "unit": "%",
        "direction": "lower_is_better",
        "amber_band": 2.0,
    },
    TRAINING_SESSIONS_ID: {
        "type": "number",
        "unit": "sessions",
        "direction": "higher_is_better",
        "amber_band": 10.0,
    },
}

# ---------------------------------------------------------------------------
# Reporting periods
# ---------------------------------------------------------------------------
REPORTING_PERIOD = "2024-Q1"
HISTORICAL_PERIODS = ["2023-Q2", "2023-Q3", "2023-Q4", "2024-Q1"]
PROJECTED_PERIODS = ["2024-Q2", "2024-Q3", "2024-Q4"]

# Minimum growth assumed for each projected period
PROJECTION_FLOORS = (0.02, 0.03, 0.05)

# Countries whose reach differs from the mean by more than this many
# standard deviations are flagged as anomalies
ANOMALY_Z_THRESHOLD = 1.5

# Country growth target shown next to current reach
COUNTRY_GROWTH_TARGET = 1.15

# ---------------------------------------------------------------------------
# Approval workflow
# ---------------------------------------------------------------------------
DATA_POINT_STATUSES = (
    "draft",
    "submitted",
    "in_review",
    "approved",
    "rejected",
    "changes_requested",
)
PENDING_STATUSES = ("submitted", "in_review")

DEFAULT_QUALITY_SCORE = 85
DEFAULT_PRIORITY = "medium"
OVERDUE_AFTER_DAYS = 3

# Approval-queue date-range filter -> cutoff in days
DATE_RANGE_DAYS: dict[str, int] = {
    "today": 1,
    "week": 7,
    "month": 30,
}

QUEUE_DATE_FIELDS = ("submitted_at", "reviewed_at")

DEFAULT_QUEUE_FILTERS: dict[str, object] = {
    "status": "all",
    "priority": "all",
    "submitter": "all",
    "date_range": "all",
}

# ---------------------------------------------------------------------------
# Users & permissions
# ---------------------------------------------------------------------------
ROLES = ("Super Admin", "Country Manager", "Project Officer", "Executive", "External")

ROLE_PERMISSIONS: dict[str, list[str]] = {
    "Super Admin": ["all"],
    "Country Manager": ["data_entry", "view_country", "export_reports", "approve_data"],
    "Project Officer": ["data_entry", "view_project"],
    "Executive": ["view_dashboard", "view_reports"],
    "External": ["view_dashboard", "view_reports"],
}

# ---------------------------------------------------------------------------
# Simulated service latency (milliseconds)
# ---------------------------------------------------------------------------
SERVICE_DELAYS_MS: dict[str, int] = {
    "get_all": 300,
    "get_by_id": 250,
    "query": 300,
    "create": 400,
    "update": 350,
    "delete": 300,
    "workflow": 300,
    "queue": 300,
    "statistics": 200,
    "bulk": 500,
    "parse_file": 800,
    "validate_data": 1000,
    "validate_value": 100,
}

# MEL_DELAY_SCALE=0 disables artificial latency
DELAY_SCALE = float(os.environ.get("MEL_DELAY_SCALE", "1.0"))

# ---------------------------------------------------------------------------
# Bulk import
# ---------------------------------------------------------------------------
IMPORT_FIELDS = ("indicator", "value", "country", "project", "reporting_date", "notes")
REQUIRED_IMPORT_FIELDS = ("indicator", "value")

TEMPLATE_SAMPLE_ROWS: list[dict[str, str]] = [
    {
        "Indicator": "People Trained",
        "Value": "120",
        "Country": "Cambodia",
        "Project": "Women's Financial Literacy Program",
        "Reporting Date": "2024-03-31",
        "Notes": "Quarterly training cohort",
    },
    {
        "Indicator": "Women Participants",
        "Value": "84",
        "Country": "Cambodia",
        "Project": "Women's Financial Literacy Program",
        "Reporting Date": "2024-03-31",
        "Notes": "",
    },
]
