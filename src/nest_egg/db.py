"""SQLite database layer for nest-egg.

Implements both the Ledger (goals, contributions, badges) and the engine's
StateRepository (streak state and auto rules, stored as JSON in ``profile``).
"""

import json
import logging
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

from nest_egg.achievements import BadgeDef
from nest_egg.models import Badge, Contribution, Evolution, Goal, GoalType, Rarity, Tag
from nest_egg.scheduler import AutoContributionRule, rules_from_list, rules_to_list
from nest_egg.streaks import StreakState, streak_state_from_dict, streak_state_to_dict

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".nest-egg" / "data.db"

STREAK_STATE_KEY = "streak_state"
AUTO_RULES_KEY = "auto_rules"


def _instant_to_db(dt: datetime) -> str:
    """UTC with a fixed layout so that string order is time order."""
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _instant_from_db(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None


def _decimal_from_db(raw: str | None) -> Decimal | None:
    return Decimal(raw) if raw is not None else None


class Database:
    """SQLite database manager with WAL mode."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.init_db()

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS goals (
                position INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT UNIQUE NOT NULL,
                name TEXT NOT NULL,
                type TEXT NOT NULL DEFAULT 'fixed',
                target TEXT,
                saved TEXT NOT NULL DEFAULT '0',
                deadline TEXT
            );

            CREATE TABLE IF NOT EXISTS contributions (
                id TEXT PRIMARY KEY,
                at TEXT NOT NULL,
                amount TEXT NOT NULL,
                goal_id TEXT,
                note TEXT,
                tag TEXT NOT NULL DEFAULT 'other'
            );

            CREATE INDEX IF NOT EXISTS idx_contributions_at ON contributions (at);

            CREATE TABLE IF NOT EXISTS badges (
                position INTEGER PRIMARY KEY AUTOINCREMENT,
                code TEXT UNIQUE NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                rarity TEXT NOT NULL DEFAULT 'common',
                evolution TEXT NOT NULL DEFAULT 'chick',
                obtained_at TEXT
            );

            CREATE TABLE IF NOT EXISTS profile (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)
        self.conn.commit()

    # ── Profile ──────────────────────────────────────────────────────────────

    def get_profile(self, key: str) -> str | None:
        """Get a profile value by key."""
        row = self.conn.execute(
            "SELECT value FROM profile WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_profile(self, key: str, value: str) -> None:
        """Set a profile value (upsert)."""
        self.conn.execute(
            "INSERT INTO profile (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, str(value)),
        )
        self.conn.commit()

    def _get_json(self, key: str) -> object:
        raw = self.get_profile(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Profile key %s does not hold valid JSON", key)
            return None

    # ── StateRepository ──────────────────────────────────────────────────────

    def load_streak_state(self) -> StreakState:
        return streak_state_from_dict(self._get_json(STREAK_STATE_KEY))

    def save_streak_state(self, state: StreakState) -> None:
        self.set_profile(STREAK_STATE_KEY, json.dumps(streak_state_to_dict(state)))

    def load_rules(self) -> list[AutoContributionRule]:
        return rules_from_list(self._get_json(AUTO_RULES_KEY))

    def save_rules(self, rules: Sequence[AutoContributionRule]) -> None:
        self.set_profile(AUTO_RULES_KEY, json.dumps(rules_to_list(rules)))

    # ── Goals ────────────────────────────────────────────────────────────────

    def create_goal(
        self,
        name: str,
        goal_type: GoalType = GoalType.FIXED,
        target: Decimal | None = None,
        deadline: date | None = None,
    ) -> Goal:
        """Add a goal at the end of the catalog. Uncapped goals never keep a target."""
        goal = Goal(
            id=uuid4(),
            name=name,
            type=goal_type,
            target=target if goal_type == GoalType.FIXED else None,
            saved=Decimal("0"),
            deadline=deadline,
        )
        self.conn.execute(
            "INSERT INTO goals (id, name, type, target, saved, deadline) VALUES (?, ?, ?, ?, ?, ?)",
            (
                str(goal.id),
                goal.name,
                goal.type.value,
                str(goal.target) if goal.target is not None else None,
                str(goal.saved),
                goal.deadline.isoformat() if goal.deadline else None,
            ),
        )
        self.conn.commit()
        return goal

    def delete_goal(self, goal_id: UUID) -> None:
        """Delete a goal; its contributions stay in history, detached."""
        self.conn.execute("DELETE FROM goals WHERE id = ?", (str(goal_id),))
        self.conn.execute(
            "UPDATE contributions SET goal_id = NULL WHERE goal_id = ?", (str(goal_id),)
        )
        self.conn.commit()

    @staticmethod
    def _goal_from_row(row: sqlite3.Row) -> Goal:
        return Goal(
            id=UUID(row["id"]),
            name=row["name"],
            type=GoalType(row["type"]),
            target=_decimal_from_db(row["target"]),
            saved=Decimal(row["saved"]),
            deadline=date.fromisoformat(row["deadline"]) if row["deadline"] else None,
        )

    def goals(self) -> list[Goal]:
        """Return all goals in creation order."""
        rows = self.conn.execute("SELECT * FROM goals ORDER BY position").fetchall()
        return [self._goal_from_row(row) for row in rows]

    def goal(self, goal_id: UUID | None) -> Goal | None:
        if goal_id is None:
            return None
        row = self.conn.execute(
            "SELECT * FROM goals WHERE id = ?", (str(goal_id),)
        ).fetchone()
        return self._goal_from_row(row) if row else None

    def goal_by_name(self, name: str) -> Goal | None:
        row = self.conn.execute(
            "SELECT * FROM goals WHERE name = ? ORDER BY position LIMIT 1", (name,)
        ).fetchone()
        return self._goal_from_row(row) if row else None

    def total_saved(self) -> Decimal:
        return sum((g.saved for g in self.goals()), Decimal("0"))

    # ── Contributions ────────────────────────────────────────────────────────

    def record_contribution(
        self,
        amount: Decimal,
        goal_id: UUID | None,
        note: str | None,
        tag: Tag,
        at: datetime,
    ) -> Contribution:
        """Store a contribution and apply it to the linked goal's balance (floored at 0)."""
        contribution = Contribution(
            at=at, amount=Decimal(amount), goal_id=goal_id, note=note, tag=Tag(tag)
        )
        self.conn.execute(
            "INSERT INTO contributions (id, at, amount, goal_id, note, tag) VALUES (?, ?, ?, ?, ?, ?)",
            (
                str(contribution.id),
                _instant_to_db(at),
                str(contribution.amount),
                str(goal_id) if goal_id else None,
                note,
                contribution.tag.value,
            ),
        )
        goal = self.goal(goal_id)
        if goal is not None:
            saved = max(Decimal("0"), goal.saved + contribution.amount)
            self.conn.execute(
                "UPDATE goals SET saved = ? WHERE id = ?", (str(saved), str(goal.id))
            )
        self.conn.commit()
        return contribution

    @staticmethod
    def _contribution_from_row(row: sqlite3.Row) -> Contribution:
        return Contribution(
            id=UUID(row["id"]),
            at=_instant_from_db(row["at"]),
            amount=Decimal(row["amount"]),
            goal_id=UUID(row["goal_id"]) if row["goal_id"] else None,
            note=row["note"],
            tag=Tag(row["tag"]),
        )

    def contribution_count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM contributions").fetchone()[0]

    def contributions_since(self, instant: datetime) -> list[Contribution]:
        """Contributions at or after ``instant``, oldest first."""
        rows = self.conn.execute(
            "SELECT * FROM contributions WHERE at >= ? ORDER BY at",
            (_instant_to_db(instant),),
        ).fetchall()
        return [self._contribution_from_row(row) for row in rows]

    def recent_contributions(
        self,
        limit: int = 50,
        goal_id: UUID | None = None,
        tag: Tag | None = None,
    ) -> list[Contribution]:
        """Most recent contributions first, optionally filtered by goal and tag."""
        clauses: list[str] = []
        params: list = []
        if goal_id is not None:
            clauses.append("goal_id = ?")
            params.append(str(goal_id))
        if tag is not None:
            clauses.append("tag = ?")
            params.append(Tag(tag).value)
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        rows = self.conn.execute(
            f"SELECT * FROM contributions {where}ORDER BY at DESC LIMIT ?",
            (*params, limit),
        ).fetchall()
        return [self._contribution_from_row(row) for row in rows]

    # ── Badges ───────────────────────────────────────────────────────────────

    def register_badges(self, catalog: Iterable[BadgeDef]) -> None:
        """Add catalog entries that are not stored yet. Existing progress is kept."""
        self.conn.executemany(
            "INSERT INTO badges (code, title, description, rarity, evolution) VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(code) DO UPDATE SET title = excluded.title, "
            "description = excluded.description, rarity = excluded.rarity",
            [
                (b.code, b.title, b.description, b.rarity.value, b.evolution.value)
                for b in catalog
            ],
        )
        self.conn.commit()

    @staticmethod
    def _badge_from_row(row: sqlite3.Row) -> Badge:
        return Badge(
            code=row["code"],
            title=row["title"],
            description=row["description"],
            rarity=Rarity(row["rarity"]),
            evolution=Evolution(row["evolution"]),
            obtained_at=_instant_from_db(row["obtained_at"]),
        )

    def badges(self) -> list[Badge]:
        rows = self.conn.execute("SELECT * FROM badges ORDER BY position").fetchall()
        return [self._badge_from_row(row) for row in rows]

    def badge(self, code: str) -> Badge | None:
        row = self.conn.execute("SELECT * FROM badges WHERE code = ?", (code,)).fetchone()
        return self._badge_from_row(row) if row else None

    def set_badge_obtained(
        self, code: str, at: datetime, evolution: Evolution | None = None
    ) -> None:
        """Mark a badge obtained. An existing unlock time is never overwritten."""
        cursor = self.conn.execute(
            "UPDATE badges SET obtained_at = COALESCE(obtained_at, ?), "
            "evolution = COALESCE(?, evolution) WHERE code = ?",
            (_instant_to_db(at), evolution.value if evolution else None, code),
        )
        if cursor.rowcount == 0:
            logger.warning("Unknown badge code: %s", code)
        self.conn.commit()

    def reset_badge(self, code: str) -> None:
        """Clear a badge's unlock time. Its evolution stage is kept."""
        self.conn.execute("UPDATE badges SET obtained_at = NULL WHERE code = ?", (code,))
        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
