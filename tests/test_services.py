"""
Async mock service tests.

Tests cover:
  - CRUD and lookups for reference data
  - Data point creation defaults and workflow calls
  - Approval statistics, bulk decisions and history
  - Notifications and validation rules
  - Store reset
"""
import pytest

from mel_dashboard.errors import NotFoundError, TransitionError, ValidationError


# ═════════════════════════════════════════════════════════════════════════
# REFERENCE DATA
# ═════════════════════════════════════════════════════════════════════════

class TestReferenceServices:
    async def test_get_all_returns_copies(self, services):
        countries = await services.countries.get_all()
        countries[0]["name"] = "Changed"
        again = await services.countries.get_by_id(1)
        assert again["name"] == "Cambodia"

    async def test_get_by_id_accepts_string_id(self, services):
        project = await services.projects.get_by_id("3")
        assert project["name"] == "Digital Banking for Island Communities"

    async def test_get_by_id_not_found(self, services):
        with pytest.raises(NotFoundError, match="Project with Id 99 not found"):
            await services.projects.get_by_id(99)

    async def test_country_by_code_case_insensitive(self, services):
        country = await services.countries.get_by_code("fj")
        assert country["name"] == "Fiji"

    async def test_country_by_unknown_code(self, services):
        with pytest.raises(NotFoundError, match="Country with code XX not found"):
            await services.countries.get_by_code("XX")

    async def test_projects_by_country(self, services):
        projects = await services.projects.get_by_country(1)
        assert [p["id"] for p in projects] == [1, 2]

    async def test_indicators_by_category(self, services):
        finance = await services.indicators.get_by_category("Finance")
        assert [i["id"] for i in finance] == [4, 5, 6]

    async def test_users_by_role(self, services):
        managers = await services.users.get_by_role("Country Manager")
        assert {u["name"] for u in managers} == {"Sokha Chan", "Mere Tuilagi"}

    async def test_new_user_gets_role_permissions(self, services):
        user = await services.users.create(
            {"name": "Tevita Lolo", "email": "tevita@example.org", "role": "Project Officer"}
        )
        assert user["id"] == 8
        assert user["permissions"] == ["data_entry", "view_project"]

    async def test_create_requires_fields(self, services):
        with pytest.raises(ValidationError):
            await services.countries.create({"name": "Tonga"})

    async def test_update_ignores_id(self, services):
        updated = await services.organizations.update(1, {"id": 50, "status": "inactive"})
        assert updated["id"] == 1
        assert updated["status"] == "inactive"

    async def test_delete(self, services):
        await services.organizations.delete(1)
        remaining = await services.organizations.get_all()
        assert len(remaining) == 4


# ═════════════════════════════════════════════════════════════════════════
# DATA POINTS
# ═════════════════════════════════════════════════════════════════════════

class TestDataPointService:
    async def test_create_fills_defaults(self, services):
        created = await services.data_points.create({
            "project_id": "1",
            "indicator_id": 1,
            "value": 250,
            "reporting_date": "2024-03-31",
            "submitted_by": "Sokha Chan",
        })
        assert created["id"] == 39
        assert created["project_id"] == 1
        assert created["status"] == "submitted"
        assert created["period"] == "2024-Q1"
        assert created["priority"] == "medium"
        assert created["quality_score"] == 85
        assert [e["action"] for e in created["audit_trail"]] == ["submitted"]

    async def test_create_requires_value(self, services):
        with pytest.raises(ValidationError, match="Value is required"):
            await services.data_points.create({"project_id": 1, "indicator_id": 1})

    async def test_update_refuses_workflow_fields(self, services):
        before = await services.data_points.get_by_id(32)
        with pytest.raises(ValidationError, match="audit_trail, status"):
            await services.data_points.update(32, {"status": "approved", "audit_trail": []})
        after = await services.data_points.get_by_id(32)
        assert after == before
        assert after["status"] == "submitted"

    async def test_update_refuses_review_stamps(self, services):
        with pytest.raises(ValidationError, match="approved_by"):
            await services.data_points.update(32, {"notes": "ok", "approved_by": "Sokha Chan"})
        assert (await services.data_points.get_by_id(32))["notes"] != "ok"

    async def test_update_editable_fields_keeps_workflow_state(self, services):
        before = await services.data_points.get_by_id(32)
        updated = await services.data_points.update(32, {"value": 1900, "notes": "Corrected count"})
        assert updated["value"] == 1900
        assert updated["notes"] == "Corrected count"
        assert updated["status"] == before["status"]
        assert updated["audit_trail"] == before["audit_trail"]

    async def test_update_bad_project_id(self, services):
        with pytest.raises(ValidationError, match="Invalid project id"):
            await services.data_points.update(32, {"project_id": "abc"})

    async def test_queries(self, services):
        by_country = await services.data_points.get_by_country(4)
        assert {dp["id"] for dp in by_country} >= {32, 33}
        assert all(dp["project_id"] == 5 for dp in by_country)

        q1 = await services.data_points.get_by_period("2024-Q1")
        assert all(dp["period"] == "2024-Q1" for dp in q1)

    async def test_approve_pending(self, services):
        approved = await services.data_points.approve(32, "Anwesha MEL Lead", "Verified")
        assert approved["status"] == "approved"
        assert approved["approved_by"] == "Anwesha MEL Lead"
        assert approved["audit_trail"][-1]["action"] == "approved"

    async def test_approve_unknown_id(self, services):
        with pytest.raises(NotFoundError, match="DataPoint with Id 9999 not found"):
            await services.data_points.approve(9999, "Anwesha MEL Lead")

    async def test_approve_approved_is_refused(self, services):
        with pytest.raises(TransitionError):
            await services.data_points.approve(1, "Anwesha MEL Lead")

    @pytest.mark.parametrize("reason", ["", "  "])
    async def test_reject_with_empty_reason_changes_nothing(self, services, reason):
        before = await services.data_points.get_by_id(32)
        with pytest.raises(ValidationError):
            await services.data_points.reject(32, reason, "Anwesha MEL Lead")
        after = await services.data_points.get_by_id(32)
        assert after == before

    async def test_reject_then_resubmit(self, services):
        rejected = await services.data_points.reject(35, "Attendance sheets missing", "Anwesha MEL Lead")
        assert rejected["status"] == "draft"
        assert rejected["rejection_reason"] == "Attendance sheets missing"

        resubmitted = await services.data_points.submit(35, "Budi Santoso")
        assert resubmitted["status"] == "submitted"
        assert [e["action"] for e in resubmitted["audit_trail"]][-2:] == ["rejected", "submitted"]

    async def test_request_changes(self, services):
        result = await services.data_points.request_changes(36, "Split by province", "Anwesha MEL Lead")
        assert result["status"] == "draft"
        assert result["feedback"] == "Split by province"

    async def test_pending_review_is_enriched(self, services, now):
        pending = await services.data_points.get_pending_review(now)
        assert [dp["id"] for dp in pending] == [32, 33, 34, 35, 36]
        first = pending[0]
        assert first["country_name"] == "Papua New Guinea"
        assert first["indicator_name"] == "People Trained"
        assert first["days_since_submission"] == 2

    async def test_approval_stats(self, services):
        stats = await services.data_points.get_approval_stats()
        assert stats["total"] == 38
        assert stats["pending"] == 5
        assert stats["approved"] == 31
        assert stats["draft"] == 2
        assert stats["total_rejections"] == 1
        assert stats["total_changes_requested"] == 1
        assert stats["approval_rate"] == 96.9


# ═════════════════════════════════════════════════════════════════════════
# APPROVAL QUEUE
# ═════════════════════════════════════════════════════════════════════════

class TestApprovalQueueService:
    async def test_queue_filters_and_sorts(self, services, now):
        items = await services.approval_queue.get_approval_queue(
            {"status": "submitted", "sort_by": "quality_score", "sort_order": "asc"}, now
        )
        assert [i["id"] for i in items] == [35, 32, 33]

    async def test_statistics(self, services, now):
        stats = await services.approval_queue.get_approval_statistics(now)
        assert stats["pending"] == 5
        assert stats["priority_breakdown"] == {"high": 2, "medium": 2, "low": 1}
        assert stats["overdue_items"] == 2
        assert stats["avg_quality_score"] == 81
        assert stats["avg_response_time"] == 1

    async def test_bulk_approve_partial_failure(self, services):
        summary = await services.approval_queue.bulk_approve([32, 9999, 33], "Anwesha MEL Lead")
        assert summary["total_processed"] == 3
        assert summary["success_count"] == 2
        assert summary["failure_count"] == 1
        assert summary["success_count"] + summary["failure_count"] == summary["total_processed"]

        failed = [r for r in summary["results"] if not r["success"]]
        assert failed == [{"item_id": 9999, "success": False, "error": "DataPoint with Id 9999 not found"}]

        stats = await services.data_points.get_approval_stats()
        assert stats["approved"] == 33

    async def test_bulk_reject_requires_reason(self, services):
        summary = await services.approval_queue.bulk_reject([32, 33], "Anwesha MEL Lead", "")
        assert summary["success_count"] == 0
        assert summary["failure_count"] == 2
        pending = await services.data_points.get_pending_review()
        assert len(pending) == 5

    async def test_bulk_reject(self, services):
        summary = await services.approval_queue.bulk_reject([34, 36], "Anwesha MEL Lead", "Recount needed")
        assert summary["success_count"] == 2
        for result in summary["results"]:
            assert result["result"]["status"] == "draft"

    async def test_history_most_recent_first(self, services, now):
        history = await services.approval_queue.get_approval_history(37, now)
        assert history["indicator_name"] == "Jobs Created"
        assert history["current_status"] == "draft"
        assert [h["action"] for h in history["history"]] == ["rejected", "submitted"]
        assert history["history"][0]["user_role"] == "Super Admin"
        assert history["history"][1]["action_type"] == "submission"
        assert history["history"][1]["duration_hours"] == 54

    async def test_queue_insights(self, services, now):
        insights = await services.approval_queue.get_queue_insights(now)
        assert insights["time_analysis"]["total_submissions"] == 5


# ═════════════════════════════════════════════════════════════════════════
# NOTIFICATIONS / VALIDATION RULES / STORE
# ═════════════════════════════════════════════════════════════════════════

class TestNotificationService:
    async def test_unread(self, services):
        unread = await services.notifications.get_unread()
        assert [n["id"] for n in unread] == [1, 2, 3, 6]

    async def test_mark_as_read(self, services):
        await services.notifications.mark_as_read(1)
        unread = await services.notifications.get_unread()
        assert len(unread) == 3

    async def test_mark_all_as_read(self, services):
        await services.notifications.mark_all_as_read()
        assert await services.notifications.get_unread() == []

    async def test_dismiss(self, services):
        await services.notifications.dismiss(4)
        with pytest.raises(NotFoundError):
            await services.notifications.get_by_id(4)


class TestValidationRulesService:
    async def test_rules_by_indicator(self, services):
        rules = await services.validation_rules.get_by_indicator_id(1)
        assert rules["range_check"] == {"min": 0, "max": 10000}
        assert await services.validation_rules.get_by_indicator_id(7) is None

    async def test_get_by_id_missing(self, services):
        with pytest.raises(NotFoundError):
            await services.validation_rules.get_by_id(7)

    async def test_create_and_update(self, services):
        created = await services.validation_rules.create(7, {"range_check": {"min": 0, "max": 100}})
        assert created["created_at"] == created["updated_at"]
        updated = await services.validation_rules.update(7, {"variance_threshold": 30})
        assert updated["range_check"] == {"min": 0, "max": 100}
        assert updated["variance_threshold"] == 30

    async def test_update_missing(self, services):
        with pytest.raises(NotFoundError):
            await services.validation_rules.update(6, {"variance_threshold": 30})

    async def test_validate_value(self, services):
        result = await services.validation_rules.validate_value(1, 20000)
        assert result["is_valid"] is False
        unchecked = await services.validation_rules.validate_value(7, 20000)
        assert unchecked["is_valid"] is True

    async def test_quality_insights_for_stored_submissions(self, services):
        insights = await services.validation_rules.get_quality_insights(1)
        assert insights["total_submissions"] > 0


class TestStoreReset:
    async def test_reset_discards_changes(self, services, mock_store):
        await services.data_points.approve(32, "Anwesha MEL Lead")
        mock_store.reset()
        record = await services.data_points.get_by_id(32)
        assert record["status"] == "submitted"
