"""
Tests for fleet availability calculations (services/availability.py)
"""

import pytest
from datetime import datetime

from services.availability import (
    aggregate_by_period,
    availability_by_aircraft,
    availability_status,
    calculate_availability,
    calculate_fleet_availability,
    calculate_fmc_hours,
    summarize_availability,
    validate_downtime_hours,
    validate_pos_hours,
)


def record(aircraft_id, day, pos, fmc):
    return {"aircraft_id": aircraft_id, "date": day, "pos_hours": pos, "fmc_hours": fmc}


class TestAvailability:

    def test_ratio(self):
        assert calculate_availability(24, 18) == 75.0

    def test_zero_pos_is_zero(self):
        assert calculate_availability(0, 0) == 0.0

    def test_capped_at_100(self):
        assert calculate_availability(10, 12) == 100.0

    @pytest.mark.parametrize("pos,s,u,supply,expected", [
        (24, 0, 0, 0, 24),
        (24, 4, 2, 1, 17),
        (24, 20, 10, 0, 0),
        (12, 3, 0, None, 9),
    ])
    def test_fmc_derivation(self, pos, s, u, supply, expected):
        assert calculate_fmc_hours(pos, s, u, supply) == expected

    def test_downtime_validation(self):
        assert validate_downtime_hours(24, 10, 10, 4)
        assert not validate_downtime_hours(24, 10, 10, 5)

    def test_pos_validation(self):
        assert validate_pos_hours(0)
        assert validate_pos_hours(24)
        assert not validate_pos_hours(24.5)
        assert not validate_pos_hours(-1)

    def test_status_bands(self):
        assert availability_status(92.0) == "green"
        assert availability_status(85.0) == "green"
        assert availability_status(75.0) == "amber"
        assert availability_status(69.99) == "red"
        assert availability_status(80.0, warning_threshold=75, critical_threshold=60) == "green"


class TestFleetAggregation:

    def test_fleet_figure_sums_hours_before_ratio(self):
        records = [
            record("a1", datetime(2025, 1, 1), 24, 24),
            record("a2", datetime(2025, 1, 1), 2, 0),
        ]
        # averaging per-aircraft percentages would give 50
        assert calculate_fleet_availability(records) == round(24 / 26 * 100, 2)

    def test_summary(self):
        summary = summarize_availability([
            record("a1", datetime(2025, 1, 1), 24, 18),
            record("a1", datetime(2025, 1, 2), 24, 24),
        ])
        assert summary == {
            "total_pos_hours": 48.0,
            "total_fmc_hours": 42.0,
            "availability_percentage": 87.5,
        }

    def test_aggregate_by_month(self):
        records = [
            record("a1", datetime(2025, 1, 1), 24, 12),
            record("a1", datetime(2025, 1, 2), 24, 24),
            record("a1", datetime(2025, 2, 1), 24, 24),
        ]
        rows = aggregate_by_period(records, "month")

        assert [r["period"] for r in rows] == ["2025-02", "2025-01"]
        assert rows[1]["record_count"] == 2
        assert rows[1]["availability_percentage"] == 75.0

    def test_aggregate_by_year_and_day_labels(self):
        records = [record("a1", datetime(2024, 12, 31), 24, 24)]
        assert aggregate_by_period(records, "year")[0]["period"] == "2024"
        assert aggregate_by_period(records, "day")[0]["period"] == "2024-12-31"

    def test_unknown_period_rejected(self):
        with pytest.raises(ValueError):
            aggregate_by_period([], "week")

    def test_by_aircraft_sorted_best_first(self):
        rows = availability_by_aircraft([
            record("a1", datetime(2025, 1, 1), 24, 12),
            record("a2", datetime(2025, 1, 1), 24, 24),
        ])
        assert [r["aircraft_id"] for r in rows] == ["a2", "a1"]


class TestAvailabilityProperties:

    @pytest.mark.parametrize("pos", [0, 0.5, 8, 23.75, 24])
    def test_monotonic_and_bounded(self, pos):
        previous = -1.0
        for step in range(0, 50):
            value = calculate_availability(pos, step * 0.5)
            assert 0.0 <= value <= 100.0
            assert value >= previous
            previous = value

    @pytest.mark.parametrize("pos", [0, 1, 12, 24])
    def test_fmc_within_pos(self, pos):
        for s in (0, 3, 12, 30):
            for u in (0, 5, 24):
                fmc = calculate_fmc_hours(pos, s, u, 0)
                assert 0 <= fmc <= pos
