"""The savings engine: contribution pipeline, activation, and queries.

Flow for every contribution, manual or automatic:

    ledger write -> streak update -> badge rules -> evolution pass -> persist

The host decides when to call ``activate`` (launch, foreground, periodic
tick). Calls must be serialized by the host; nothing here locks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from uuid import UUID

from nest_egg.achievements import BADGES, AchievementEvaluator
from nest_egg.clock import Calendar, Clock
from nest_egg.errors import OutOfOrderContributionError
from nest_egg.ledger import Ledger, StateRepository
from nest_egg.models import Contribution, Goal, Tag, WeekStats
from nest_egg.scheduler import AutoContributionRule, Frequency, Scheduler
from nest_egg.streaks import StreakState, StreakTracker
from nest_egg.weekly import compute_week_stats, week_start

logger = logging.getLogger(__name__)

QUICK_PRESETS = (Decimal("500"), Decimal("1000"))


@dataclass
class ActivationResult:
    freeze_granted: bool = False
    auto_deposits: list[Contribution] = field(default_factory=list)
    badges: set[str] = field(default_factory=set)


class SavingsEngine:
    def __init__(self, ledger: Ledger, repository: StateRepository, clock: Clock) -> None:
        self.ledger = ledger
        self.repository = repository
        self.clock = clock
        self.calendar = Calendar(clock.tz)

        self.ledger.register_badges(BADGES)
        self.streaks = StreakTracker(repository.load_streak_state(), self.calendar)
        self.evaluator = AchievementEvaluator(ledger, self.calendar)
        self.scheduler = Scheduler(ledger, self.calendar, repository.load_rules())

    @property
    def streak(self) -> StreakState:
        """Snapshot of the current streak state."""
        return replace(self.streaks.state)

    # ── Pipeline ─────────────────────────────────────────────────────────────

    def activate(self, now: datetime | None = None) -> ActivationResult:
        """Run on app launch/resume: grant this month's freeze, then catch up auto-deposits."""
        now = self.calendar.localize(now or self.clock.now())
        result = ActivationResult()
        result.freeze_granted = self.streaks.grant_monthly_freeze(now)
        if result.freeze_granted:
            logger.info("Freeze token granted, %d held", self.streaks.freeze_tokens)

        def on_recorded(contribution: Contribution) -> None:
            # last_applied must be stored before anything else can fail,
            # or a restart would deposit this occurrence again.
            self.repository.save_rules(self.scheduler.rules)
            result.badges |= self._process(contribution, catch_up=True)
            self._save()

        result.auto_deposits = self.scheduler.apply_due(now, on_recorded=on_recorded)
        self._save()
        return result

    def record_contribution(
        self,
        amount: Decimal,
        goal_id: UUID | None = None,
        note: str | None = None,
        tag: Tag = Tag.OTHER,
        at: datetime | None = None,
    ) -> tuple[Contribution, set[str]]:
        """Write a manual contribution to the ledger and run it through the pipeline."""
        at = self.calendar.localize(at or self.clock.now())
        last = self.streaks.state.last_contribution_at
        if last is not None and at < last:
            raise OutOfOrderContributionError(at, last)
        contribution = self.ledger.record_contribution(Decimal(amount), goal_id, note, tag, at)
        return contribution, self.process_contribution(contribution)

    def process_contribution(self, contribution: Contribution) -> set[str]:
        """React to a contribution already stored in the ledger.

        Raises OutOfOrderContributionError if it predates the last one seen.
        The contribution stays in the ledger in that case and the streak is
        left untouched, so the caller owns reconciling the two.
        """
        badges = self._process(contribution, catch_up=False)
        self._save()
        return badges

    def _process(self, contribution: Contribution, catch_up: bool) -> set[str]:
        last = self.streaks.state.last_contribution_at
        if catch_up and last is not None and contribution.at < last:
            logger.debug(
                "Auto-deposit at %s predates last contribution, streak unchanged",
                contribution.at.isoformat(),
            )
        else:
            self.streaks.register_contribution(contribution.at)
        badges = self.evaluator.evaluate(contribution, self.streaks.current_streak_days)
        logger.debug(
            "Processed contribution %s: streak=%d badges=%s",
            contribution.id, self.streaks.current_streak_days, sorted(badges),
        )
        return badges

    def _save(self) -> None:
        self.repository.save_streak_state(self.streaks.state)
        self.repository.save_rules(self.scheduler.rules)

    # ── Auto-contributions ───────────────────────────────────────────────────

    @property
    def auto_rules(self) -> list[AutoContributionRule]:
        return self.scheduler.rules

    def set_auto_contribution(
        self,
        goal_id: UUID,
        amount: Decimal,
        frequency: Frequency | str,
        start_date: datetime | None = None,
    ) -> AutoContributionRule:
        rule = self.scheduler.set_rule(goal_id, amount, frequency, start_date or self.clock.now())
        self.repository.save_rules(self.scheduler.rules)
        return rule

    def remove_auto_contribution(self, goal_id: UUID) -> bool:
        removed = self.scheduler.remove_rule(goal_id)
        if removed:
            self.repository.save_rules(self.scheduler.rules)
        return removed

    # ── Queries ──────────────────────────────────────────────────────────────

    def week_stats(self, now: datetime | None = None) -> WeekStats:
        now = self.calendar.localize(now or self.clock.now())
        return compute_week_stats(
            self.ledger.contributions_since(week_start(now)),
            self.ledger.goals(),
            now,
            self.calendar,
        )

    def reset_badge(self, code: str) -> None:
        self.ledger.reset_badge(code)

    # ── Quick-add helpers ────────────────────────────────────────────────────

    @staticmethod
    def quick_presets() -> tuple[Decimal, ...]:
        return QUICK_PRESETS

    @staticmethod
    def ten_percent_of(goal: Goal) -> Decimal | None:
        """10% of a fixed goal's target, rounded down to a whole unit."""
        if not goal.has_target:
            return None
        return (goal.target * Decimal("0.10")).quantize(Decimal("1"), rounding=ROUND_DOWN)

    @staticmethod
    def remainder_to_target(goal: Goal) -> Decimal | None:
        """What is left to reach a fixed goal, rounded down; 0 once reached."""
        if not goal.has_target:
            return None
        remaining = goal.target - goal.saved
        if remaining <= 0:
            return Decimal("0")
        return remaining.quantize(Decimal("1"), rounding=ROUND_DOWN)
