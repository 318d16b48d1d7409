"""Trailing-week summary for the home dashboard.

Pure functions over contributions and goals. No side effects, no DB access.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from nest_egg.clock import Calendar
from nest_egg.models import Contribution, Goal, WeekStats

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

WINDOW = timedelta(days=7)


def week_start(now: datetime) -> datetime:
    """Earliest instant counted in the week ending at ``now``."""
    return now - WINDOW


def daily_totals(contributions: Iterable[Contribution], calendar: Calendar) -> list[Decimal]:
    """Summed amounts per local weekday, Monday first."""
    sums = [Decimal("0")] * 7
    for c in contributions:
        sums[calendar.weekday(c.at)] += c.amount
    return sums


def best_weekday(contributions: Sequence[Contribution], calendar: Calendar) -> str:
    """Name of the weekday with the highest total; "" if there is no activity.

    Ties go to the earliest weekday (Monday first).
    """
    if not contributions:
        return ""
    sums = daily_totals(contributions, calendar)
    active = {calendar.weekday(c.at) for c in contributions}
    best = max(sorted(active), key=lambda idx: sums[idx])
    return WEEKDAY_NAMES[best]


def reference_goal(goals: Iterable[Goal]) -> Goal | None:
    """First fixed goal with a positive target, in catalog order."""
    return next((g for g in goals if g.has_target), None)


def compute_week_stats(
    contributions: Iterable[Contribution],
    goals: Iterable[Goal],
    now: datetime,
    calendar: Calendar,
) -> WeekStats:
    start = week_start(now)
    recent = [c for c in contributions if c.at >= start]
    total = sum((c.amount for c in recent), Decimal("0"))
    best_day = best_weekday(recent, calendar)

    goal = reference_goal(goals)
    if goal is None:
        return WeekStats(total_added=total, percent_to_goal=0.0, best_day=best_day)

    remaining = max(Decimal("0"), goal.target - goal.saved)
    if remaining > 0:
        pct = float(min(Decimal("1"), max(Decimal("0"), total / remaining)))
    else:
        pct = 1.0
    return WeekStats(total_added=total, percent_to_goal=pct, best_day=best_day)
