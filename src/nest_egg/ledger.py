"""Collaborator contracts the engine is written against.

The engine reads goals and contributions from a Ledger and writes badge
unlocks and auto-deposits back to it. Its own state (streak, auto rules)
goes through a StateRepository. ``nest_egg.db.Database`` implements both.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from nest_egg.models import Badge, Contribution, Evolution, Goal, Tag

if TYPE_CHECKING:
    from nest_egg.achievements import BadgeDef
    from nest_egg.scheduler import AutoContributionRule
    from nest_egg.streaks import StreakState


class Ledger(Protocol):
    def record_contribution(
        self,
        amount: Decimal,
        goal_id: UUID | None,
        note: str | None,
        tag: Tag,
        at: datetime,
    ) -> Contribution: ...

    def goals(self) -> list[Goal]: ...

    def goal(self, goal_id: UUID | None) -> Goal | None: ...

    def contribution_count(self) -> int: ...

    def contributions_since(self, instant: datetime) -> list[Contribution]: ...

    def register_badges(self, catalog: Iterable[BadgeDef]) -> None: ...

    def badges(self) -> list[Badge]: ...

    def badge(self, code: str) -> Badge | None: ...

    def set_badge_obtained(
        self, code: str, at: datetime, evolution: Evolution | None = None
    ) -> None: ...

    def reset_badge(self, code: str) -> None: ...


class StateRepository(Protocol):
    def load_streak_state(self) -> StreakState: ...

    def save_streak_state(self, state: StreakState) -> None: ...

    def load_rules(self) -> list[AutoContributionRule]: ...

    def save_rules(self, rules: Sequence[AutoContributionRule]) -> None: ...
