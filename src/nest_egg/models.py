"""Core data types shared by the ledger and the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4


class GoalType(str, Enum):
    FIXED = "fixed"
    UNCAPPED = "uncapped"


class Tag(str, Enum):
    SALARY = "salary"
    CASHBACK = "cashback"
    COINS = "coins"
    GIFT = "gift"
    OTHER = "other"


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Evolution(str, Enum):
    CHICK = "chick"
    HEN = "hen"
    GOLDEN = "golden"

    @property
    def rank(self) -> int:
        return list(Evolution).index(self)


@dataclass
class Goal:
    name: str
    type: GoalType = GoalType.FIXED
    target: Decimal | None = None  # None for uncapped goals
    saved: Decimal = Decimal("0")
    deadline: date | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def has_target(self) -> bool:
        return self.type == GoalType.FIXED and self.target is not None and self.target > 0

    def progress(self) -> float:
        """Saved/target clamped to 0.0-1.0; 0.0 for goals without a target."""
        if not self.has_target:
            return 0.0
        return float(min(max(self.saved / self.target, Decimal("0")), Decimal("1")))


@dataclass(frozen=True)
class Contribution:
    at: datetime
    amount: Decimal  # positive = deposit
    goal_id: UUID | None = None
    note: str | None = None
    tag: Tag = Tag.OTHER
    id: UUID = field(default_factory=uuid4)


@dataclass
class Badge:
    code: str
    title: str
    description: str
    rarity: Rarity
    evolution: Evolution
    obtained_at: datetime | None = None

    @property
    def obtained(self) -> bool:
        return self.obtained_at is not None


@dataclass
class WeekStats:
    total_added: Decimal = Decimal("0")
    percent_to_goal: float = 0.0
    best_day: str = ""  # e.g. "Tuesday"
