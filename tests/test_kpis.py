"""
KPI computation tests.

Tests cover:
  - Variance and RAG classification
  - Growth rate and forward projection
  - Anomaly detection
  - Headline metrics from the packaged fixtures and small hand-built sets
"""
import pytest

from mel_dashboard.kpis import (
    calc_variance,
    calculate_growth_rate,
    calculate_metrics,
    classify_performance,
    detect_anomalies,
    project_forward,
)


class TestVarianceAndRag:
    def test_variance(self):
        assert calc_variance(110, 100) == (10, 10.0)

    def test_variance_zero_target(self):
        assert calc_variance(5, 0) == (5, None)

    @pytest.mark.parametrize("actual,expected", [(100, "green"), (96, "amber"), (90, "red")])
    def test_higher_is_better(self, actual, expected):
        assert classify_performance(actual, 100, "higher_is_better", 5.0) == expected

    @pytest.mark.parametrize("actual,expected", [(5, "green"), (5.05, "amber"), (9.5, "red")])
    def test_lower_is_better(self, actual, expected):
        assert classify_performance(actual, 5, "lower_is_better", 2.0) == expected

    def test_zero_target_is_grey(self):
        assert classify_performance(10, 0, "higher_is_better") == "grey"


class TestGrowth:
    def test_constant_growth(self):
        rates, avg = calculate_growth_rate([100, 150, 225])
        assert rates == [0.5, 0.5]
        assert avg == 0.5

    def test_zero_previous_value_counts_as_no_growth(self):
        rates, avg = calculate_growth_rate([0, 100, 150])
        assert rates == [0.0, 0.5]
        assert avg == 0.25

    @pytest.mark.parametrize("values", [[], [100]])
    def test_too_few_values(self, values):
        assert calculate_growth_rate(values) == ([], 0.0)

    def test_projection_uses_floor_when_growth_is_low(self):
        assert project_forward(1000, 0.0) == [1020, 1051, 1103]

    def test_projection_compounds_average_growth(self):
        assert project_forward(1000, 0.1) == [1100, 1210, 1331]


class TestAnomalies:
    def test_outlier_flagged(self):
        perf = {"A": 100, "B": 100, "C": 100, "D": 100, "E": 100, "F": 1000}
        anomalies = detect_anomalies(perf)
        assert len(anomalies) == 1
        assert anomalies[0]["region"] == "F"
        assert anomalies[0]["direction"] == "above"

    def test_fewer_than_three_countries(self):
        assert detect_anomalies({"A": 1, "B": 1000}) == []

    def test_no_spread(self):
        assert detect_anomalies({"A": 5, "B": 5, "C": 5}) == []


class TestCalculateMetrics:
    def test_minimal_example(self):
        data_points = [
            {"id": 1, "indicator_id": 1, "value": 100, "period": "2024-Q1", "status": "approved"},
            {"id": 2, "indicator_id": 2, "value": 40, "period": "2024-Q1", "status": "approved"},
        ]
        metrics = calculate_metrics([], [], data_points, [])
        assert metrics["total_people_reached"] == 100
        assert metrics["female_participation_rate"] == 40.0

    def test_unapproved_and_other_periods_ignored(self):
        data_points = [
            {"id": 1, "indicator_id": 1, "value": 100, "period": "2024-Q1", "status": "approved"},
            {"id": 2, "indicator_id": 1, "value": 500, "period": "2024-Q1", "status": "submitted"},
            {"id": 3, "indicator_id": 1, "value": 700, "period": "2023-Q4", "status": "approved"},
        ]
        metrics = calculate_metrics([], [], data_points, [])
        assert metrics["total_people_reached"] == 100
        assert metrics["pending_approvals"] == 1

    def test_no_people_means_zero_rate(self):
        metrics = calculate_metrics([], [], [], [])
        assert metrics["total_people_reached"] == 0
        assert metrics["female_participation_rate"] == 0
        assert metrics["avg_quality_score"] == 85
        assert metrics["projected_values"] == [0, 0, 0]

    def test_fixture_headline_metrics(self, data):
        metrics = calculate_metrics(
            data["countries"], data["projects"], data["data_points"], data["indicators"]
        )
        assert metrics["total_people_reached"] == 11600
        assert metrics["total_women_participants"] == 6950
        assert metrics["female_participation_rate"] == 59.9
        assert metrics["total_loans_value"] == 745000
        assert metrics["total_training_sessions"] == 335
        assert metrics["active_countries"] == 6
        assert metrics["active_projects"] == 6
        assert metrics["pending_approvals"] == 5
        assert metrics["avg_quality_score"] == 89
        assert metrics["historical_quarterly"] == [7100, 7800, 8400, 11600]
        assert metrics["anomalies"] == []

    def test_fixture_growth_and_projection(self, data):
        metrics = calculate_metrics(
            data["countries"], data["projects"], data["data_points"], data["indicators"]
        )
        expected_avg = (700 / 7100 + 600 / 7800 + 3200 / 8400) / 3
        assert metrics["growth_rate"] == pytest.approx(expected_avg)
        assert metrics["projected_values"][0] == round(11600 * (1 + expected_avg))
        assert metrics["projected_values"] == sorted(metrics["projected_values"])

    def test_country_data_sorted_by_reach(self, data):
        metrics = calculate_metrics(
            data["countries"], data["projects"], data["data_points"], data["indicators"]
        )
        reach = [row["reach"] for row in metrics["country_data"]]
        assert reach == sorted(reach, reverse=True)
        names = {row["name"] for row in metrics["country_data"]}
        assert "Timor-Leste" not in names
        cambodia = next(r for r in metrics["country_data"] if r["name"] == "Cambodia")
        assert cambodia["reach"] == 3900
        assert cambodia["target"] == round(3900 * 1.15)

    def test_selected_country(self, data):
        metrics = calculate_metrics(
            data["countries"], data["projects"], data["data_points"], data["indicators"], "kh"
        )
        assert metrics["total_people_reached"] == 3900
        assert metrics["total_women_participants"] == 2650
        assert metrics["active_countries"] == 1
        assert metrics["active_projects"] == 2
        assert [r["name"] for r in metrics["country_data"]] == ["Cambodia"]

    def test_unknown_country_leaves_data_unfiltered(self, data):
        metrics = calculate_metrics(
            data["countries"], data["projects"], data["data_points"], data["indicators"], "XX"
        )
        assert metrics["total_people_reached"] == 11600
        assert metrics["country_data"] == []
