"""
UI-boundary handler tests: permissions, state updates and error surfacing.

The default store user is the Super Admin; country-manager tests use Sokha
Chan, who may only act on Cambodian data points (only id 34 is pending).
"""
import pytest

from mel_dashboard import handlers
from mel_dashboard.dashboard import DashboardData
from mel_dashboard.state import MelStore, action, initial_state


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture()
def manager_store(country_manager):
    return MelStore(initial_state(country_manager))


def _queue_ids(store):
    return [i["id"] for i in store.state["approval_queue"]["items"]]


# ═════════════════════════════════════════════════════════════════════════
# APPROVAL QUEUE
# ═════════════════════════════════════════════════════════════════════════

class TestLoadApprovalQueue:
    async def test_admin_sees_everything_newest_first(self, services, store, now):
        items = await handlers.load_approval_queue(services, store, now)
        assert [i["id"] for i in items] == [33, 32, 36, 35, 34]
        assert store.state["approval_queue"]["loading"] is False

    async def test_country_manager_sees_own_country(self, services, manager_store, now):
        await handlers.load_approval_queue(services, manager_store, now)
        assert _queue_ids(manager_store) == [34]

    async def test_store_filters_applied(self, services, store, now):
        store.dispatch(action("set_approval_queue_filters", {"priority": "high"}))
        await handlers.load_approval_queue(services, store, now)
        assert sorted(_queue_ids(store)) == [32, 34]


class TestDecisions:
    async def test_approve_removes_item_and_bumps_refresh(self, services, store, now):
        await handlers.load_approval_queue(services, store, now)
        updated = await handlers.approve_item(services, store, 32, "Verified")

        assert updated["status"] == "approved"
        assert 32 not in _queue_ids(store)
        assert store.refresh_token == 1
        assert store.state["error"] is None

    async def test_country_manager_denied_outside_country(self, services, manager_store):
        result = await handlers.approve_item(services, manager_store, 32)
        assert result is None
        assert "does not have permission for 'approve_data'" in manager_store.state["error"]
        record = await services.data_points.get_by_id(32)
        assert record["status"] == "submitted"

    async def test_country_manager_allowed_in_country(self, services, manager_store, now):
        await handlers.load_approval_queue(services, manager_store, now)
        result = await handlers.approve_item(services, manager_store, 34)
        assert result["approved_by"] == "Sokha Chan"
        assert _queue_ids(manager_store) == []

    async def test_reject_requires_reason(self, services, store, now):
        await handlers.load_approval_queue(services, store, now)
        result = await handlers.reject_item(services, store, 33, "")
        assert result is None
        assert store.state["error"] == "A reason is required to reject a data point"
        assert 33 in _queue_ids(store)
        assert store.refresh_token == 0

    async def test_request_changes(self, services, store, now):
        await handlers.load_approval_queue(services, store, now)
        result = await handlers.request_item_changes(services, store, 36, "Add district breakdown")
        assert result["status"] == "draft"
        assert 36 not in _queue_ids(store)

    async def test_start_review_keeps_item_with_new_entry(self, services, store, now):
        await handlers.load_approval_queue(services, store, now)
        await handlers.start_item_review(services, store, 33)
        item = next(i for i in store.state["approval_queue"]["items"] if i["id"] == 33)
        assert item["status"] == "in_review"
        assert item["audit_trail"][-1]["action"] == "in_review"

    async def test_unknown_item(self, services, store):
        result = await handlers.approve_item(services, store, 9999)
        assert result is None
        assert store.state["error"] == "DataPoint with Id 9999 not found"

    async def test_dashboard_metrics_refreshed(self, services, store):
        dashboard = DashboardData(services)
        await dashboard.load()
        assert dashboard.metrics["total_people_reached"] == 11600

        await handlers.approve_item(services, store, 32, dashboard=dashboard)
        assert store.state["dashboard"]["metrics"]["total_people_reached"] == 13400
        assert dashboard.refresh_token == store.refresh_token


class TestBulkDecisions:
    async def test_partial_failure_counts_every_item(self, services, manager_store, now):
        await handlers.load_approval_queue(services, manager_store, now)
        summary = await handlers.bulk_approve_items(services, manager_store, [32, 34, 9999])

        assert summary["total_processed"] == 3
        assert summary["success_count"] == 1
        assert summary["failure_count"] == 2
        assert manager_store.state["error"] == "2 of 3 items could not be processed"
        assert manager_store.refresh_token == 1

        denied = next(r for r in summary["results"] if r["item_id"] == 32)
        assert denied["success"] is False

    async def test_bulk_reject_all_succeed(self, services, store, now):
        await handlers.load_approval_queue(services, store, now)
        summary = await handlers.bulk_reject_items(services, store, [32, 33], "Duplicate submission")
        assert summary["success_count"] == 2
        assert _queue_ids(store) == [36, 35, 34]
        assert store.state["error"] is None

    async def test_bulk_all_fail_does_not_refresh(self, services, store):
        summary = await handlers.bulk_reject_items(services, store, [32, 33], "")
        assert summary["failure_count"] == 2
        assert store.refresh_token == 0


# ═════════════════════════════════════════════════════════════════════════
# NOTIFICATIONS / DATA ENTRY
# ═════════════════════════════════════════════════════════════════════════

class TestNotificationHandlers:
    async def test_load_sorted_newest_first(self, services, store):
        items = await handlers.load_notifications(services, store)
        assert [n["id"] for n in items] == [1, 2, 3, 4, 6, 5]
        assert store.unread_count == 4

    async def test_mark_read_and_dismiss(self, services, store):
        await handlers.load_notifications(services, store)
        await handlers.mark_notification_read(services, store, 1)
        assert store.unread_count == 3

        assert await handlers.dismiss_notification(services, store, 2) is True
        assert store.unread_count == 2
        assert len(store.state["notifications"]["items"]) == 5

    async def test_mark_all_read(self, services, store):
        await handlers.load_notifications(services, store)
        await handlers.mark_all_notifications_read(services, store)
        assert store.unread_count == 0

    async def test_dismiss_unknown(self, services, store):
        assert await handlers.dismiss_notification(services, store, 99) is False
        assert store.state["error"] == "Notification with Id 99 not found"


class TestSubmitDataPoint:
    async def test_submit_in_own_country(self, services, manager_store):
        created = await handlers.submit_data_point(
            services, manager_store,
            {"project_id": "1", "indicator_id": "3", "value": 42, "reporting_date": "2024-03-31"},
        )
        assert created["status"] == "submitted"
        assert created["submitted_by"] == "Sokha Chan"
        assert created["indicator_id"] == 3

    async def test_submit_outside_country_denied(self, services, manager_store):
        created = await handlers.submit_data_point(
            services, manager_store, {"project_id": 5, "indicator_id": 1, "value": 10},
        )
        assert created is None
        assert "data_entry" in manager_store.state["error"]

    async def test_missing_value(self, services, store):
        created = await handlers.submit_data_point(services, store, {"project_id": 1, "indicator_id": 1})
        assert created is None
        assert store.state["error"] == "Value is required"
