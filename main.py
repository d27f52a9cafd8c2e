"""
Good Return MEL — End-to-end analytics pipeline.

Loads the fixtures through the mock services, derives dashboard metrics,
runs one approval-queue round trip, and prints smoke-test summaries.

Usage:
    MEL_DELAY_SCALE=0 python main.py
"""

import asyncio
import logging
import sys
import tempfile
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from mel_dashboard.config import (
    HISTORICAL_PERIODS,
    PROJECTED_PERIODS,
    REPORTING_PERIOD,
)
from mel_dashboard.dashboard import (
    DashboardData,
    get_available_periods,
    get_country_summary,
    get_growth_series,
    get_indicator_summary,
    get_project_status_summary,
)
from mel_dashboard.handlers import approve_item, bulk_approve_items, load_approval_queue
from mel_dashboard.reports import build_report, export_docx, export_excel
from mel_dashboard.services import MelServices
from mel_dashboard.simulator import generate_data_points
from mel_dashboard.state import MelStore
from mel_dashboard.transforms import build_fact_data_points

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_pipeline() -> None:
    """Run the full analytics pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  GOOD RETURN MEL — Monitoring, Evaluation & Learning Dashboard")
    print("  Analytics Pipeline Smoke Test")
    print("=" * 70)
    print()

    services = MelServices()
    store = MelStore()

    # ------------------------------------------------------------------
    # 1. Load dashboard data
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING DASHBOARD DATA")
    print("-" * 40)

    dash = DashboardData(services)
    await dash.sync(store.refresh_token)
    if dash.error:
        logger.error("Dashboard failed to load: %s", dash.error)
        return
    data = dash.data
    for name, rows in data.items():
        print(f"  {name:12s} {len(rows)} rows")

    # ------------------------------------------------------------------
    # 2. Fact tables & headline metrics
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] FACT TABLES & HEADLINE METRICS")
    print("-" * 40)

    fact = build_fact_data_points(
        data["data_points"], data["projects"], data["countries"], data["indicators"]
    )
    print(f"\nfact_data_point: {len(fact)} rows")
    print(f"Available periods: {get_available_periods(fact)}")

    metrics = dash.metrics
    print(f"\nHeadline metrics — {REPORTING_PERIOD}:")
    for key in (
        "total_people_reached", "total_women_participants", "female_participation_rate",
        "total_loans_value", "total_training_sessions", "active_countries",
        "active_projects", "avg_quality_score", "pending_approvals",
    ):
        print(f"  {key:28s} {metrics[key]}")

    print("\nGrowth (people reached):")
    print(get_growth_series(metrics, HISTORICAL_PERIODS, PROJECTED_PERIODS).to_string(index=False))

    print("\nCountry performance:")
    print(get_country_summary(metrics).to_string(index=False))
    if metrics["anomalies"]:
        print(f"\nAnomalies: {metrics['anomalies']}")

    print("\nIndicator summary:")
    print(get_indicator_summary(fact, data["indicators"]).to_string(index=False))

    print("\nProject status:")
    projects = get_project_status_summary(data["projects"], data["countries"], fact)
    print(projects[["project_name", "status", "progress_pct", "pending_review"]].to_string(index=False))

    # ------------------------------------------------------------------
    # 3. Approval queue round trip
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] APPROVAL QUEUE")
    print("-" * 40)

    queue = await load_approval_queue(services, store)
    print(f"\nPending items: {len(queue)}")
    for item in queue:
        print(f"  #{item['id']:<4} {item['status']:10s} {item['indicator_name']:22s} "
              f"{item['country_name']:18s} q={item['quality_score']}")

    before = metrics["total_people_reached"]
    first = queue[0]["id"] if queue else None
    approved = await approve_item(services, store, first, "Checked against attendance sheets", dash)
    bulk = await bulk_approve_items(services, store, [item["id"] for item in queue[1:]] + [9999], "", dash)
    print(f"\nApproved #{first}: {approved['status'] if approved else store.state['error']}")
    print(f"Bulk approve: {bulk['success_count']} ok, {bulk['failure_count']} failed")
    print(f"People reached: {before} -> {dash.metrics['total_people_reached']}")

    stats = await services.approval_queue.get_approval_statistics()
    print(f"\nApproval statistics: {stats}")

    # ------------------------------------------------------------------
    # 4. Reports
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] REPORTS")
    print("-" * 40)

    report = build_report(
        await services.data_points.get_all(), data["projects"], data["countries"], data["indicators"]
    )
    print(report.to_string(index=False))
    out_dir = Path(tempfile.mkdtemp(prefix="mel_report_"))
    xlsx = export_excel(report, out_dir / "indicator_report.xlsx")
    docx = export_docx(report, out_dir / "indicator_report.docx", metrics=dash.metrics)
    print(f"\nWrote {xlsx} and {docx}")

    # ------------------------------------------------------------------
    # 5. Acceptance criteria verification
    # ------------------------------------------------------------------
    print("\n")
    print("[ 5 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    check1 = before == 11600
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] People reached {REPORTING_PERIOD} = {before} (expect 11600)")

    check2 = len(metrics["historical_quarterly"]) == len(HISTORICAL_PERIODS)
    print(f"  [{'PASS' if check2 else 'FAIL'}] Historical series has {len(metrics['historical_quarterly'])} periods")

    check3 = bulk["success_count"] + bulk["failure_count"] == bulk["total_processed"]
    print(f"  [{'PASS' if check3 else 'FAIL'}] Bulk counts add up to {bulk['total_processed']}")

    check4 = not store.state["approval_queue"]["items"]
    print(f"  [{'PASS' if check4 else 'FAIL'}] Approval queue emptied after approvals")

    simulated = generate_data_points(data["projects"], data["indicators"])
    print(f"  [INFO] Simulator generated {len(simulated)} synthetic historical data points")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


def main() -> None:
    asyncio.run(run_pipeline())


if __name__ == "__main__":
    main()
