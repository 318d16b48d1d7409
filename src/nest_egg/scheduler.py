"""Recurring auto-contributions with catch-up after missed periods."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from uuid import UUID

from nest_egg.clock import Calendar
from nest_egg.errors import InvalidRuleError
from nest_egg.ledger import Ledger
from nest_egg.models import Contribution, Tag

logger = logging.getLogger(__name__)

AUTO_DEPOSIT_NOTE = "Auto-deposit"


class Frequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass
class AutoContributionRule:
    goal_id: UUID
    amount: Decimal
    frequency: Frequency
    start_date: datetime
    last_applied: datetime | None = None  # last occurrence actually deposited


def due_occurrences(
    rule: AutoContributionRule, up_to: datetime, calendar: Calendar
) -> list[datetime]:
    """Every occurrence after the last applied one (or the start), up to and including ``up_to``."""
    start = calendar.localize(rule.last_applied or rule.start_date)
    up_to = calendar.localize(up_to)
    if start > up_to:
        return []

    result: list[datetime] = []
    current = calendar.add_period(start, rule.frequency)
    while current <= up_to:
        result.append(current)
        current = calendar.add_period(current, rule.frequency)
    return result


def next_due(rule: AutoContributionRule, calendar: Calendar) -> datetime:
    """The next instant this rule will deposit at."""
    return calendar.add_period(rule.last_applied or rule.start_date, rule.frequency)


class Scheduler:
    """Holds at most one rule per goal and materializes due occurrences."""

    def __init__(
        self,
        ledger: Ledger,
        calendar: Calendar,
        rules: Iterable[AutoContributionRule] = (),
    ) -> None:
        self.ledger = ledger
        self.calendar = calendar
        self._rules: list[AutoContributionRule] = []
        for rule in rules:
            self._replace(rule)

    @property
    def rules(self) -> list[AutoContributionRule]:
        return list(self._rules)

    def rule_for(self, goal_id: UUID) -> AutoContributionRule | None:
        return next((r for r in self._rules if r.goal_id == goal_id), None)

    def set_rule(
        self,
        goal_id: UUID,
        amount: Decimal,
        frequency: Frequency | str,
        start_date: datetime,
    ) -> AutoContributionRule:
        """Create the rule for a goal, replacing (and forgetting) any previous one."""
        try:
            amount = Decimal(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidRuleError(f"Amount is not a number: {amount!r}", goal_id) from None
        if not amount.is_finite() or amount <= 0:
            raise InvalidRuleError(f"Amount must be positive, got {amount}", goal_id)
        try:
            frequency = Frequency(frequency)
        except ValueError:
            raise InvalidRuleError(f"Unknown frequency: {frequency!r}", goal_id) from None
        if self.ledger.goal(goal_id) is None:
            raise InvalidRuleError(f"Unknown goal: {goal_id}", goal_id)

        rule = AutoContributionRule(
            goal_id=goal_id,
            amount=amount,
            frequency=frequency,
            start_date=self.calendar.localize(start_date),
        )
        self._replace(rule)
        logger.info("Auto-contribution set: %s %s to goal %s", frequency.value, amount, goal_id)
        return rule

    def remove_rule(self, goal_id: UUID) -> bool:
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.goal_id != goal_id]
        return len(self._rules) != before

    def _replace(self, rule: AutoContributionRule) -> None:
        self._rules = [r for r in self._rules if r.goal_id != rule.goal_id]
        self._rules.append(rule)

    def pending(self, now: datetime) -> list[tuple[AutoContributionRule, datetime]]:
        """All due occurrences across rules, oldest first (ties keep rule order)."""
        due = [
            (rule, at)
            for rule in self._rules
            for at in due_occurrences(rule, now, self.calendar)
        ]
        due.sort(key=lambda pair: pair[1])
        return due

    def apply_due(
        self,
        now: datetime,
        on_recorded: Callable[[Contribution], object] | None = None,
    ) -> list[Contribution]:
        """Deposit every due occurrence through the ledger, in time order.

        ``on_recorded`` sees each contribution before the next one is written.
        """
        recorded: list[Contribution] = []
        for rule, at in self.pending(now):
            contribution = self.ledger.record_contribution(
                rule.amount, rule.goal_id, AUTO_DEPOSIT_NOTE, Tag.OTHER, at
            )
            rule.last_applied = at
            recorded.append(contribution)
            logger.info("Auto-deposit of %s to goal %s at %s", rule.amount, rule.goal_id, at.isoformat())
            if on_recorded is not None:
                on_recorded(contribution)
        return recorded


def rules_to_list(rules: Sequence[AutoContributionRule]) -> list[dict]:
    return [
        {
            "goalId": str(rule.goal_id),
            "amount": str(rule.amount),
            "frequency": rule.frequency.value,
            "startDate": rule.start_date.isoformat(),
            "lastApplied": rule.last_applied.isoformat() if rule.last_applied else None,
        }
        for rule in rules
    ]


def _rule_from_dict(data: dict) -> AutoContributionRule:
    amount = Decimal(data["amount"])
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"non-positive amount {amount}")
    start_date = datetime.fromisoformat(data["startDate"])
    last_applied = datetime.fromisoformat(data["lastApplied"]) if data.get("lastApplied") else None
    for instant in (start_date, last_applied):
        if instant is not None and instant.tzinfo is None:
            raise ValueError(f"instant without time zone: {instant}")
    return AutoContributionRule(
        goal_id=UUID(data["goalId"]),
        amount=amount,
        frequency=Frequency(data["frequency"]),
        start_date=start_date,
        last_applied=last_applied,
    )


def rules_from_list(data: object) -> list[AutoContributionRule]:
    """Decode persisted rules, skipping entries that cannot be read."""
    if not isinstance(data, list):
        if data is not None:
            logger.warning("Ignoring malformed auto-contribution rules: %r", data)
        return []
    rules: dict[UUID, AutoContributionRule] = {}
    for entry in data:
        try:
            rule = _rule_from_dict(entry)
        except (KeyError, TypeError, ValueError, InvalidOperation, AttributeError) as exc:
            logger.warning("Skipping malformed auto-contribution rule %r: %s", entry, exc)
            continue
        rules.pop(rule.goal_id, None)
        rules[rule.goal_id] = rule
    return list(rules.values())
