"""Unit tests for day-of-week schedule rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from newsdesk.services.schedule import (
    compute_schedule_rules,
    compute_time_frame_hours,
    day_name,
    generate_cron_expression,
    parse_time,
    should_run,
)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]


@dataclass
class _Schedule:
    day_of_week: list[str] = field(default_factory=list)
    time: str = "09:00"
    timezone: str = "America/New_York"


class TestTimeFrame:
    """Test lookback windows derived from the selected days."""

    @pytest.mark.parametrize(
        ("current_day", "expected"),
        [("monday", 72), ("tuesday", 24), ("friday", 24)],
    )
    def test_weekday_schedule(self, current_day: str, expected: int) -> None:
        """Test that Monday covers the weekend on a weekday schedule."""
        assert compute_time_frame_hours(WEEKDAYS, current_day) == expected

    def test_single_day_is_a_full_week(self) -> None:
        """Test that a weekly schedule looks back seven days."""
        assert compute_time_frame_hours(["thursday"], "thursday") == 168

    def test_no_days_defaults_to_a_day(self) -> None:
        """Test the 24 hour fallback."""
        assert compute_time_frame_hours([], "monday") == 24

    def test_unknown_current_day_defaults_to_a_day(self) -> None:
        """Test the fallback for an unrecognized day name."""
        assert compute_time_frame_hours(WEEKDAYS, "someday") == 24

    def test_custom_schedule_rules(self) -> None:
        """Test that a custom schedule reports its longest gap."""
        # Act
        rules = compute_schedule_rules(["monday", "thursday"])

        # Assert
        assert rules.schedule_pattern == "custom"
        assert rules.time_frame_hours == 96
        assert "Monday: 96h" in rules.day_explanation
        assert "Thursday: 72h" in rules.day_explanation

    def test_weekday_schedule_rules(self) -> None:
        """Test the weekday pattern label."""
        rules = compute_schedule_rules(WEEKDAYS)

        assert rules.schedule_pattern == "weekdays"
        assert rules.time_frame_hours == 24


class TestCronExpression:
    """Test the display cron string stored on sequences."""

    def test_selected_days(self) -> None:
        """Test that days map to Sunday-first indices."""
        assert generate_cron_expression(["friday", "monday"], "07:30") == "30 7 * * 1,5"

    def test_every_day_collapses(self) -> None:
        """Test that all seven days render as ``*``."""
        days = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

        assert generate_cron_expression(days, "09:00") == "0 9 * * *"

    def test_invalid_time_raises(self) -> None:
        """Test that a malformed time is refused."""
        with pytest.raises(ValueError):
            parse_time("25:00")


class TestShouldRun:
    """Test the send window check used by the distribution cron."""

    def test_runs_within_window_in_sequence_timezone(self) -> None:
        """Test that 09:03 New York time on a Monday is due."""
        # Arrange: 2024-01-08 is a Monday; 14:03 UTC is 09:03 EST.
        schedule = _Schedule(day_of_week=["monday"], time="09:00")
        now = datetime(2024, 1, 8, 14, 3, tzinfo=UTC)

        # Act / Assert
        assert should_run(schedule, now) is True

    def test_outside_window_is_not_due(self) -> None:
        """Test that ten minutes late is outside the window."""
        schedule = _Schedule(day_of_week=["monday"], time="09:00")
        now = datetime(2024, 1, 8, 14, 10, tzinfo=UTC)

        assert should_run(schedule, now) is False

    def test_other_day_is_not_due(self) -> None:
        """Test that the local day must be selected."""
        schedule = _Schedule(day_of_week=["tuesday"], time="09:00")
        now = datetime(2024, 1, 8, 14, 0, tzinfo=UTC)

        assert should_run(schedule, now) is False

    def test_unknown_timezone_falls_back(self) -> None:
        """Test that an invalid zone uses the default zone instead of failing."""
        schedule = _Schedule(day_of_week=["monday"], time="09:00", timezone="Mars/Olympus")
        now = datetime(2024, 1, 8, 14, 0, tzinfo=UTC)

        assert should_run(schedule, now) is True

    def test_day_name_is_sunday_first(self) -> None:
        """Test the weekday naming."""
        assert day_name(datetime(2024, 1, 7, tzinfo=UTC)) == "sunday"
