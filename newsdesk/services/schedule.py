"""Day-of-week scheduling rules shared by ingestion and distribution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Final, Literal, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DAY_ORDER: Final[tuple[str, ...]] = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)
WEEKDAYS: Final[frozenset[str]] = frozenset(DAY_ORDER[1:6])

# A scheduled send fires when the trigger lands within this many minutes of its time.
SEND_WINDOW_MINUTES = 5

DEFAULT_TIMEZONE = "America/New_York"


class Schedulable(Protocol):
    day_of_week: list[str]
    time: str
    timezone: str


def parse_time(value: str) -> tuple[int, int]:
    """``"HH:MM"`` to ``(hour, minute)``; raises ``ValueError`` when malformed."""
    hours, _, minutes = value.strip().partition(":")
    hour, minute = int(hours), int(minutes or 0)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour, minute


def day_name(moment: datetime) -> str:
    # Python weekdays start on Monday; DAY_ORDER starts on Sunday.
    return DAY_ORDER[(moment.weekday() + 1) % 7]


def _zone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(DEFAULT_TIMEZONE)


def compute_time_frame_hours(selected_days: list[str], current_day: str) -> int:
    """Hours back to the previous selected day (24 when it cannot be told)."""
    try:
        current = DAY_ORDER.index(current_day.lower())
    except ValueError:
        return 24

    selected = {DAY_ORDER.index(day.lower()) for day in selected_days if day.lower() in DAY_ORDER}
    if not selected:
        return 24

    for offset in range(1, 8):
        if (current - offset) % 7 in selected:
            return offset * 24
    return 24


SchedulePattern = Literal["daily", "weekdays", "weekly", "custom"]


@dataclass(frozen=True)
class ScheduleRules:
    time_frame_hours: int
    time_frame_label: str
    schedule_pattern: SchedulePattern
    day_explanation: str


def compute_schedule_rules(selected_days: list[str]) -> ScheduleRules:
    """Human-readable lookback rules for a set of send days."""
    days = [day.lower() for day in selected_days]
    if not days:
        return ScheduleRules(
            24,
            "past 24 hours",
            "daily",
            "No days selected. Defaults to daily with 24-hour lookback.",
        )
    if len(set(days)) == 7:
        return ScheduleRules(
            24,
            "past 24 hours (72 hours on Mondays)",
            "daily",
            "Daily schedule: articles from the past 24 hours. "
            "On Monday, covers the weekend (72 hours).",
        )
    if set(days) == WEEKDAYS:
        return ScheduleRules(
            24,
            "past 24 hours (72 hours on Mondays)",
            "weekdays",
            "Weekday schedule: articles from the past 24 hours. "
            "On Monday, covers Sat + Sun + Mon (72 hours).",
        )
    if len(days) == 1:
        return ScheduleRules(
            168,
            "past 7 days",
            "weekly",
            f"Weekly on {days[0].capitalize()}: articles from the entire past week (168 hours).",
        )

    per_day = {day: compute_time_frame_hours(days, day) for day in days}
    max_hours = max(per_day.values())
    breakdown = ", ".join(f"{day.capitalize()}: {hours}h" for day, hours in per_day.items())
    return ScheduleRules(
        max_hours,
        f"varies by day (up to {max_hours} hours)",
        "custom",
        f"Custom schedule. Lookback per day: {breakdown}.",
    )


def generate_cron_expression(days: list[str], time: str) -> str:
    hour, minute = parse_time(time)
    indices = sorted({DAY_ORDER.index(day.lower()) for day in days if day.lower() in DAY_ORDER})
    if len(indices) in (0, 7):
        return f"{minute} {hour} * * *"
    return f"{minute} {hour} * * {','.join(str(index) for index in indices)}"


def should_run(schedule: Schedulable, now: datetime) -> bool:
    """True when ``now`` is a scheduled day and within the send window of its time."""
    local = now.astimezone(_zone(schedule.timezone))
    days = {day.lower() for day in schedule.day_of_week or []}
    if day_name(local) not in days:
        return False
    try:
        hour, minute = parse_time(schedule.time or "")
    except ValueError:
        return False
    scheduled = hour * 60 + minute
    current = local.hour * 60 + local.minute
    return abs(current - scheduled) <= SEND_WINDOW_MINUTES
