"""Badge definitions and unlock evaluation for nest-egg."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from nest_egg.clock import Calendar
from nest_egg.ledger import Ledger
from nest_egg.models import Contribution, Evolution, Goal, Rarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BadgeDef:
    code: str
    title: str
    description: str
    rarity: Rarity
    evolution: Evolution  # stage the badge starts at when first unlocked


BADGES: list[BadgeDef] = [
    BadgeDef(
        code="first_contribution",
        title="First Add",
        description="Make your first add.",
        rarity=Rarity.COMMON,
        evolution=Evolution.CHICK,
    ),
    BadgeDef(
        code="streak_7",
        title="One Week Streak",
        description="Add for 7 days in a row.",
        rarity=Rarity.RARE,
        evolution=Evolution.HEN,
    ),
    BadgeDef(
        code="ten_contributions",
        title="Ten Adds",
        description="Make 10 adds in total.",
        rarity=Rarity.COMMON,
        evolution=Evolution.CHICK,
    ),
    BadgeDef(
        code="late_night",
        title="Lunar Night",
        description="Add between 00:00 and 01:00.",
        rarity=Rarity.EPIC,
        evolution=Evolution.HEN,
    ),
    BadgeDef(
        code="generous_tuesday",
        title="Generous Tuesday",
        description="Add on a Tuesday.",
        rarity=Rarity.RARE,
        evolution=Evolution.HEN,
    ),
    BadgeDef(
        code="lucky_777",
        title="Lucky Me",
        description="Add an amount ending with 777.",
        rarity=Rarity.EPIC,
        evolution=Evolution.GOLDEN,
    ),
    BadgeDef(
        code="palindrome_date",
        title="Palindrome Date",
        description="Add on a palindrome date.",
        rarity=Rarity.LEGENDARY,
        evolution=Evolution.GOLDEN,
    ),
    BadgeDef(
        code="morning_saver",
        title="Morning Saver",
        description="Add between 06:00 and 09:00.",
        rarity=Rarity.COMMON,
        evolution=Evolution.CHICK,
    ),
    BadgeDef(
        code="evening_saver",
        title="Evening Saver",
        description="Add between 20:00 and midnight.",
        rarity=Rarity.COMMON,
        evolution=Evolution.CHICK,
    ),
    BadgeDef(
        code="quarter_25",
        title="Quarter Way",
        description="Reach 25% of a fixed goal.",
        rarity=Rarity.COMMON,
        evolution=Evolution.CHICK,
    ),
    BadgeDef(
        code="quarter_50",
        title="Halfway There",
        description="Reach 50% of a fixed goal.",
        rarity=Rarity.RARE,
        evolution=Evolution.CHICK,
    ),
    BadgeDef(
        code="quarter_75",
        title="Almost There",
        description="Reach 75% of a fixed goal.",
        rarity=Rarity.EPIC,
        evolution=Evolution.HEN,
    ),
    BadgeDef(
        code="goal_complete",
        title="Goal Completed",
        description="Reach 100% of a fixed goal.",
        rarity=Rarity.LEGENDARY,
        evolution=Evolution.GOLDEN,
    ),
]

BADGES_BY_CODE: dict[str, BadgeDef] = {b.code: b for b in BADGES}


@dataclass
class EvaluationContext:
    event: Contribution
    streak_days: int
    contribution_count: int  # all contributions ever, including ``event``
    goal: Goal | None  # goal the event is linked to, with its current saved total
    calendar: Calendar

    @property
    def hour(self) -> int:
        return self.calendar.local_hour(self.event.at)

    def goal_progress(self) -> Decimal | None:
        if self.goal is None or not self.goal.has_target:
            return None
        return self.goal.saved / self.goal.target


def _is_palindrome_date(ctx: EvaluationContext) -> bool:
    s = ctx.calendar.local_date(ctx.event.at).strftime("%Y%m%d")
    return s == s[::-1]


def _ends_with_777(amount: Decimal) -> bool:
    whole = int(amount)  # truncates toward zero
    return whole >= 0 and whole % 1000 == 777


def _progress_at_least(threshold: str) -> Callable[[EvaluationContext], bool]:
    def check(ctx: EvaluationContext) -> bool:
        progress = ctx.goal_progress()
        return progress is not None and progress >= Decimal(threshold)

    return check


RULES: list[tuple[str, Callable[[EvaluationContext], bool]]] = [
    ("first_contribution", lambda ctx: ctx.contribution_count == 1),
    ("ten_contributions", lambda ctx: ctx.contribution_count >= 10),
    ("streak_7", lambda ctx: ctx.streak_days >= 7),
    ("late_night", lambda ctx: ctx.hour == 0),
    ("morning_saver", lambda ctx: 6 <= ctx.hour < 9),
    ("evening_saver", lambda ctx: 20 <= ctx.hour < 24),
    ("generous_tuesday", lambda ctx: ctx.calendar.weekday(ctx.event.at) == 1),
    ("palindrome_date", _is_palindrome_date),
    ("lucky_777", lambda ctx: _ends_with_777(ctx.event.amount)),
    ("quarter_25", _progress_at_least("0.25")),
    ("quarter_50", _progress_at_least("0.50")),
    ("quarter_75", _progress_at_least("0.75")),
    ("goal_complete", _progress_at_least("1.00")),
]


def matching_codes(ctx: EvaluationContext) -> list[str]:
    """Return the codes of every rule the context satisfies, in rule order."""
    return [code for code, check in RULES if check(ctx)]


def target_evolution(streak_days: int) -> Evolution:
    """Streak gates evolution: 7+ days hen, 30+ days golden."""
    if streak_days >= 30:
        return Evolution.GOLDEN
    if streak_days >= 7:
        return Evolution.HEN
    return Evolution.CHICK


class AchievementEvaluator:
    """Applies badge rules for one contribution and writes unlocks to the ledger.

    Safe to call repeatedly with the same event: an unlock time is set once
    and evolution only ever moves up.
    """

    def __init__(self, ledger: Ledger, calendar: Calendar) -> None:
        self.ledger = ledger
        self.calendar = calendar

    def evaluate(self, event: Contribution, streak_days: int) -> set[str]:
        """Return codes newly unlocked or upgraded by this call."""
        ctx = EvaluationContext(
            event=event,
            streak_days=streak_days,
            contribution_count=self.ledger.contribution_count(),
            goal=self.ledger.goal(event.goal_id),
            calendar=self.calendar,
        )
        changed: set[str] = set()
        for code in matching_codes(ctx):
            if self._unlock(code, event):
                changed.add(code)
        changed |= self._upgrade_evolutions(target_evolution(streak_days))
        return changed

    def _unlock(self, code: str, event: Contribution) -> bool:
        badge = self.ledger.badge(code)
        if badge is not None and badge.obtained:
            return False
        # A badge reset after unlocking keeps the stage it had reached.
        evolution = None if badge is not None else BADGES_BY_CODE[code].evolution
        self.ledger.set_badge_obtained(code, at=event.at, evolution=evolution)
        logger.info("Badge unlocked: %s", code)
        return True

    def _upgrade_evolutions(self, target: Evolution) -> set[str]:
        upgraded: set[str] = set()
        for badge in self.ledger.badges():
            if not badge.obtained or badge.evolution.rank >= target.rank:
                continue
            self.ledger.set_badge_obtained(badge.code, at=badge.obtained_at, evolution=target)
            logger.info("Badge %s evolved to %s", badge.code, target.value)
            upgraded.add(badge.code)
        return upgraded
