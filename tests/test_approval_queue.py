"""
Approval queue filter, sort, breakdown and insight tests.

The queue is the five pending fixture data points (ids 32-36), enriched
as of 2024-04-02 12:00 UTC.
"""
from datetime import timedelta

import pytest

from mel_dashboard.approval_queue import (
    QueueSelector,
    analyze_quality_trend,
    average_quality,
    calculate_action_duration,
    calculate_average_response_time,
    categorize_action,
    filter_queue,
    overdue_count,
    priority_breakdown,
    quality_breakdown,
    queue_insights,
    sort_queue,
)
from mel_dashboard.transforms import enrich_data_point


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture()
def queue(data, now):
    return [
        enrich_data_point(dp, data["projects"], data["countries"], data["indicators"], now)
        for dp in data["data_points"]
        if dp["status"] in ("submitted", "in_review")
    ]


def _ids(items):
    return [i["id"] for i in items]


# ═════════════════════════════════════════════════════════════════════════
# FILTERS
# ═════════════════════════════════════════════════════════════════════════

class TestFilterQueue:
    def test_no_filters_keeps_everything(self, queue, now):
        assert _ids(filter_queue(queue, {}, now)) == [32, 33, 34, 35, 36]

    def test_all_means_no_filter(self, queue, now):
        filters = {"status": "all", "priority": "all", "submitter": "all", "date_range": "all"}
        assert len(filter_queue(queue, filters, now)) == 5

    def test_status_filter_is_idempotent(self, queue, now):
        once = filter_queue(queue, {"status": "submitted"}, now)
        twice = filter_queue(once, {"status": "submitted"}, now)
        assert _ids(once) == _ids(twice) == [32, 33, 35]

    def test_priority(self, queue, now):
        assert _ids(filter_queue(queue, {"priority": "high"}, now)) == [32, 34]

    def test_submitter(self, queue, now):
        assert _ids(filter_queue(queue, {"submitter": "Grace Kila"}, now)) == [32, 33]

    def test_quality_threshold(self, queue, now):
        assert _ids(filter_queue(queue, {"quality_threshold": 80}, now)) == [33, 34, 36]

    @pytest.mark.parametrize("date_range,expected", [("today", 0), ("week", 5), ("month", 5)])
    def test_date_range(self, queue, now, date_range, expected):
        assert len(filter_queue(queue, {"date_range": date_range}, now)) == expected

    def test_combined(self, queue, now):
        filters = {"status": "submitted", "priority": "high", "quality_threshold": 70}
        assert _ids(filter_queue(queue, filters, now)) == [32]


# ═════════════════════════════════════════════════════════════════════════
# SORTING
# ═════════════════════════════════════════════════════════════════════════

class TestSortQueue:
    def test_quality_ascending(self, queue):
        assert _ids(sort_queue(queue, "quality_score", "asc")) == [35, 32, 33, 34, 36]

    def test_submitted_at_descending(self, queue):
        assert _ids(sort_queue(queue, "submitted_at", "desc")) == [33, 32, 36, 35, 34]

    def test_strings_case_insensitive(self):
        items = [{"id": 1, "submitted_by": "bob"}, {"id": 2, "submitted_by": "Alice"}]
        assert _ids(sort_queue(items, "submitted_by", "asc")) == [2, 1]

    def test_missing_values_last(self):
        items = [{"id": 1}, {"id": 2, "quality_score": 50}, {"id": 3, "quality_score": 90}]
        assert _ids(sort_queue(items, "quality_score", "desc")) == [3, 2, 1]
        assert _ids(sort_queue(items, "quality_score", "asc")) == [2, 3, 1]

    def test_ties_keep_input_order(self):
        items = [{"id": i, "priority": "high"} for i in (4, 2, 9)]
        assert _ids(sort_queue(items, "priority", "desc")) == [4, 2, 9]

    def test_no_sort_field(self, queue):
        assert _ids(sort_queue(queue, None)) == _ids(queue)


class TestQueueSelector:
    def test_memoised_until_inputs_change(self, queue, now):
        selector = QueueSelector()
        first = selector.select(queue, {"status": "submitted"}, "quality_score", "asc", now)
        second = selector.select(queue, {"status": "submitted"}, "quality_score", "asc", now)
        assert first is second
        assert selector.computations == 1

        third = selector.select(queue, {"status": "in_review"}, "quality_score", "asc", now)
        assert _ids(third) == [34, 36]
        assert selector.computations == 2

    def test_new_item_list_recomputes(self, queue, now):
        selector = QueueSelector()
        selector.select(queue, {}, None, "desc", now)
        selector.select(queue[:2], {}, None, "desc", now)
        assert selector.computations == 2

    def test_date_range_result_ages_out(self, queue, now):
        selector = QueueSelector()
        fresh = selector.select(queue, {"date_range": "week"}, None, "desc", now)
        assert _ids(fresh) == [32, 33, 34, 35, 36]

        selector.select(queue, {"date_range": "week"}, None, "desc", now + timedelta(seconds=20))
        assert selector.computations == 1

        stale = selector.select(queue, {"date_range": "week"}, None, "desc", now + timedelta(days=30))
        assert stale == []
        assert selector.computations == 2

    def test_time_ignored_without_date_range(self, queue, now):
        selector = QueueSelector()
        selector.select(queue, {"status": "submitted"}, None, "desc", now)
        selector.select(queue, {"status": "submitted"}, None, "desc", now + timedelta(days=30))
        assert selector.computations == 1


# ═════════════════════════════════════════════════════════════════════════
# BREAKDOWNS AND INSIGHTS
# ═════════════════════════════════════════════════════════════════════════

class TestBreakdowns:
    def test_priority(self, queue):
        assert priority_breakdown(queue) == {"high": 2, "medium": 2, "low": 1}

    def test_quality_bands(self, queue):
        assert quality_breakdown(queue) == {"excellent": 2, "good": 2, "fair": 0, "poor": 1}

    def test_overdue(self, queue):
        assert overdue_count(queue) == 2

    def test_average_quality(self, queue):
        assert average_quality(queue) == 81
        assert average_quality([]) == 85


class TestInsights:
    def test_average_response_time_in_days(self, queue):
        assert calculate_average_response_time(queue) == 1

    @pytest.mark.parametrize("action,category", [
        ("submitted", "submission"),
        ("approved", "approval"),
        ("rejected", "rejection"),
        ("in_review", "review"),
        ("changes_requested", "modification"),
        ("exported", "other"),
    ])
    def test_categorize_action(self, action, category):
        assert categorize_action(action) == category

    def test_action_duration_until_next_entry(self):
        trail = [
            {"timestamp": "2024-03-29T04:00:00Z"},
            {"timestamp": "2024-03-30T08:00:00Z"},
        ]
        assert calculate_action_duration("2024-03-29T04:00:00Z", trail) == 28

    def test_last_action_runs_until_now(self, now):
        trail = [{"timestamp": "2024-04-02T06:00:00Z"}]
        assert calculate_action_duration("2024-04-02T06:00:00Z", trail, now) == 6

    def test_quality_trend(self, queue):
        assert analyze_quality_trend(queue) == {"trend": "improving", "change": 10.5}

    def test_queue_insights(self, queue):
        insights = queue_insights(queue)
        assert insights["bottlenecks"]["top_submitters"][0] == {"name": "Grace Kila", "count": 2}
        assert insights["time_analysis"]["total_submissions"] == 5
        types = [r["type"] for r in insights["recommendations"]]
        assert types == ["timeliness"]
