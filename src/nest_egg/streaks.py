"""Streak tracking and freeze logic for nest-egg."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from nest_egg.clock import Calendar
from nest_egg.errors import OutOfOrderContributionError

logger = logging.getLogger(__name__)

MAX_FREEZE_TOKENS = 3


@dataclass
class StreakState:
    current_streak_days: int = 0
    last_contribution_at: datetime | None = None
    freeze_tokens: int = 0  # available freezes (max 3)
    last_freeze_grant_month: tuple[int, int] | None = None  # (year, month)


class StreakTracker:
    """Day-granular streak with freeze tokens that forgive one missed day.

    Contributions must be registered in non-decreasing time order.
    """

    def __init__(self, state: StreakState, calendar: Calendar) -> None:
        self.state = state
        self.calendar = calendar

    @property
    def current_streak_days(self) -> int:
        return self.state.current_streak_days

    @property
    def freeze_tokens(self) -> int:
        return self.state.freeze_tokens

    def register_contribution(self, at: datetime) -> None:
        """Update the streak for one contribution made at ``at``.

        Rules:
        - First ever contribution: streak = 1
        - Same local day as the last one: streak unchanged
        - Next day: streak + 1
        - One missed day and a freeze token left: spend the token, streak + 1
        - Anything else: streak resets to 1
        """
        at = self.calendar.localize(at)
        state = self.state
        last = state.last_contribution_at
        if last is None:
            state.current_streak_days = 1
            state.last_contribution_at = at
            return

        if at < last:
            raise OutOfOrderContributionError(at, last)

        diff = self.calendar.days_between(last, at)
        if diff == 0:
            pass
        elif diff == 1:
            state.current_streak_days += 1
        elif diff == 2 and state.freeze_tokens > 0:
            state.freeze_tokens -= 1
            state.current_streak_days += 1
            logger.info("Freeze token used, %d left", state.freeze_tokens)
        else:
            logger.debug("Streak of %d broken after %d days", state.current_streak_days, diff)
            state.current_streak_days = 1
        state.last_contribution_at = at

    def grant_monthly_freeze(self, now: datetime) -> bool:
        """Grant one freeze token per calendar month, up to 3 held.

        Returns True when this call opened a new grant month.
        """
        month = self.calendar.month_key(now)
        if self.state.last_freeze_grant_month == month:
            return False
        self.state.freeze_tokens = min(self.state.freeze_tokens + 1, MAX_FREEZE_TOKENS)
        self.state.last_freeze_grant_month = month
        return True


def streak_state_to_dict(state: StreakState) -> dict:
    month = state.last_freeze_grant_month
    return {
        "currentStreakDays": state.current_streak_days,
        "lastContributionInstant": (
            state.last_contribution_at.isoformat() if state.last_contribution_at else None
        ),
        "freezeTokens": state.freeze_tokens,
        "lastFreezeGrantMonth": f"{month[0]:04d}-{month[1]:02d}" if month else None,
    }


def _parse_month(raw: str | None) -> tuple[int, int] | None:
    """Parse a YYYY-MM string."""
    if raw is None:
        return None
    year, month = raw.split("-")
    if not 1 <= int(month) <= 12:
        raise ValueError(f"month out of range: {raw}")
    return (int(year), int(month))


def _parse_instant(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        raise ValueError(f"instant without time zone: {raw}")
    return parsed


def streak_state_from_dict(data: object) -> StreakState:
    """Decode persisted streak state. Returns a zero state if malformed."""
    if not isinstance(data, dict):
        if data is not None:
            logger.warning("Ignoring malformed streak state: %r", data)
        return StreakState()
    try:
        return StreakState(
            current_streak_days=max(0, int(data.get("currentStreakDays", 0))),
            last_contribution_at=_parse_instant(data.get("lastContributionInstant")),
            freeze_tokens=min(max(0, int(data.get("freezeTokens", 0))), MAX_FREEZE_TOKENS),
            last_freeze_grant_month=_parse_month(data.get("lastFreezeGrantMonth")),
        )
    except (TypeError, ValueError, AttributeError) as exc:
        logger.warning("Ignoring malformed streak state: %s", exc)
        return StreakState()
