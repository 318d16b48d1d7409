"""Tests for the MCP server tool functions."""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from nest_egg.clock import DeterministicClock
from nest_egg.db import Database
from nest_egg.engine import SavingsEngine
from nest_egg.mcp_server import get_auto_rules, get_badges, get_streak, get_week_stats
from nest_egg.models import GoalType

UTC = timezone.utc


class _KeepOpen(Database):
    """Database whose close() is a no-op so the fixture can keep using it."""

    def close(self) -> None:
        pass


@pytest.fixture
def db(tmp_path):
    database = _KeepOpen(db_path=tmp_path / "test.db")
    yield database
    Database.close(database)


@pytest.fixture
def engine(db):
    return SavingsEngine(db, db, DeterministicClock(datetime.now(UTC)))


class TestGetStreak:
    @patch("nest_egg.mcp_server._get_db")
    def test_empty(self, mock_get_db, db):
        mock_get_db.return_value = db
        assert get_streak() == {
            "current_streak_days": 0, "freeze_tokens": 0, "last_contribution_at": None,
        }

    @patch("nest_egg.mcp_server._get_db")
    def test_after_contribution(self, mock_get_db, db, engine):
        engine.record_contribution(Decimal("5"))
        mock_get_db.return_value = db
        result = get_streak()
        assert result["current_streak_days"] == 1
        assert result["last_contribution_at"] is not None


class TestGetBadges:
    @patch("nest_egg.mcp_server._get_db")
    def test_counts(self, mock_get_db, db, engine):
        engine.record_contribution(Decimal("5"))
        mock_get_db.return_value = db
        result = get_badges()
        assert result["total_count"] == 13
        assert result["obtained_count"] >= 1
        first = next(b for b in result["badges"] if b["code"] == "first_contribution")
        assert first["obtained"] is True
        assert first["rarity"] == "common"


class TestGetWeekStats:
    @patch("nest_egg.mcp_server._get_engine")
    @patch("nest_egg.mcp_server._get_db")
    def test_totals_are_strings(self, mock_get_db, mock_get_engine, db, engine):
        engine.record_contribution(Decimal("12.50"))
        mock_get_db.return_value = db
        mock_get_engine.return_value = engine
        result = get_week_stats()
        assert result["total_added"] == "12.50"
        assert result["percent_to_goal"] == 0.0


class TestGetAutoRules:
    @patch("nest_egg.mcp_server._get_engine")
    @patch("nest_egg.mcp_server._get_db")
    def test_lists_rules(self, mock_get_db, mock_get_engine, db, engine):
        goal = db.create_goal("Car", GoalType.UNCAPPED)
        engine.set_auto_contribution(goal.id, Decimal("25"), "monthly")
        mock_get_db.return_value = db
        mock_get_engine.return_value = engine
        result = get_auto_rules()
        assert result["count"] == 1
        assert result["rules"][0]["goal"] == "Car"
        assert result["rules"][0]["frequency"] == "monthly"
