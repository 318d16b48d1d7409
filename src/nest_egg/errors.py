"""Typed exceptions for nest-egg.

    NestEggError
    +-- InvalidRuleError
    +-- GoalNotFoundError
    +-- OutOfOrderContributionError

Malformed persisted state is not an error: it is recovered with defaults.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID


class NestEggError(Exception):
    """Base class for every error the engine reports to its host."""

    code: str = "NEST_EGG_ERROR"


class InvalidRuleError(NestEggError):
    """An auto-contribution rule was created with bad parameters."""

    code = "INVALID_RULE"

    def __init__(self, message: str, goal_id: UUID | None = None) -> None:
        self.goal_id = goal_id
        super().__init__(message)


class GoalNotFoundError(NestEggError):
    code = "GOAL_NOT_FOUND"

    def __init__(self, goal_ref: str) -> None:
        self.goal_ref = goal_ref
        super().__init__(f"Goal not found: {goal_ref}")


class OutOfOrderContributionError(NestEggError):
    """A contribution was registered before the last one the streak has seen."""

    code = "OUT_OF_ORDER_CONTRIBUTION"

    def __init__(self, at: datetime, last: datetime) -> None:
        self.at = at
        self.last = last
        super().__init__(
            f"Contribution at {at.isoformat()} is earlier than the last registered "
            f"contribution at {last.isoformat()}"
        )
