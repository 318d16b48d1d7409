"""Tests for the savings engine pipeline."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from nest_egg.clock import DeterministicClock
from nest_egg.db import Database
from nest_egg.engine import SavingsEngine
from nest_egg.errors import InvalidRuleError, OutOfOrderContributionError
from nest_egg.models import Evolution, Goal, GoalType, Tag
from nest_egg.scheduler import AUTO_DEPOSIT_NOTE, Frequency

UTC = timezone.utc
START = datetime(2024, 1, 3, 12, 0, tzinfo=UTC)  # Wednesday


@pytest.fixture
def db(tmp_path):
    """Create a temporary database for testing."""
    database = Database(db_path=tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def clock():
    return DeterministicClock(START)


@pytest.fixture
def engine(db, clock):
    return SavingsEngine(db, db, clock)


class TestConstruction:
    def test_registers_badge_catalog(self, engine, db):
        assert len(db.badges()) == 13

    def test_fresh_state(self, engine):
        assert engine.streak.current_streak_days == 0
        assert engine.auto_rules == []

    def test_streak_is_a_snapshot(self, engine):
        engine.streak.current_streak_days = 99
        assert engine.streak.current_streak_days == 0


class TestRecordContribution:
    def test_first_contribution(self, engine, db):
        contribution, badges = engine.record_contribution(Decimal("20"))
        assert contribution.at == START
        assert badges == {"first_contribution"}
        assert engine.streak.current_streak_days == 1
        assert db.load_streak_state().current_streak_days == 1

    def test_late_night_tuesday_lucky_example(self, engine):
        at = datetime(2024, 1, 2, 0, 30, tzinfo=UTC)
        _, badges = engine.record_contribution(Decimal("1777"), at=at)
        assert {"late_night", "generous_tuesday", "lucky_777"} <= badges
        assert engine.streak.current_streak_days == 1

    def test_lucky_amount_does_not_change_streak_logic(self, engine):
        engine.record_contribution(Decimal("10"), at=START)
        engine.record_contribution(Decimal("1777"), at=START + timedelta(days=1))
        engine.record_contribution(Decimal("10"), at=START + timedelta(days=4))
        assert engine.streak.current_streak_days == 1

    def test_seven_day_streak_evolves_badges(self, engine, db):
        for day in range(7):
            engine.record_contribution(Decimal("5"), at=START + timedelta(days=day))
        assert engine.streak.current_streak_days == 7
        assert db.badge("streak_7").obtained
        assert db.badge("first_contribution").evolution == Evolution.HEN

    def test_goal_link_unlocks_progress(self, engine, db):
        goal = db.create_goal("Bike", GoalType.FIXED, target=Decimal("200"))
        _, badges = engine.record_contribution(Decimal("120"), goal_id=goal.id)
        assert {"quarter_25", "quarter_50"} <= badges
        assert db.goal(goal.id).saved == Decimal("120")

    def test_out_of_order_rejected_before_ledger_write(self, engine, db):
        engine.record_contribution(Decimal("5"), at=START)
        with pytest.raises(OutOfOrderContributionError):
            engine.record_contribution(Decimal("5"), at=START - timedelta(days=1))
        assert db.contribution_count() == 1

    def test_process_out_of_order_keeps_ledger_row(self, engine, db):
        engine.record_contribution(Decimal("5"), at=START)
        stale = db.record_contribution(Decimal("7"), None, None, Tag.OTHER, START - timedelta(days=1))
        with pytest.raises(OutOfOrderContributionError):
            engine.process_contribution(stale)
        assert db.contribution_count() == 2
        assert engine.streak.last_contribution_at == START
        assert db.load_streak_state().current_streak_days == 1

    def test_naive_time_is_local(self, engine):
        contribution, _ = engine.record_contribution(Decimal("5"), at=datetime(2024, 1, 3, 7, 0))
        assert contribution.at.tzinfo is not None


class TestActivate:
    def test_grants_freeze_once_per_month(self, engine):
        assert engine.activate().freeze_granted is True
        assert engine.activate().freeze_granted is False
        assert engine.streak.freeze_tokens == 1

    def test_freeze_granted_before_gap(self, engine, clock):
        engine.record_contribution(Decimal("5"), at=datetime(2024, 1, 30, 12, tzinfo=UTC))
        clock.set_time(datetime(2024, 2, 1, 9, tzinfo=UTC))
        engine.activate()
        engine.record_contribution(Decimal("5"))
        assert engine.streak.current_streak_days == 2
        assert engine.streak.freeze_tokens == 0

    def test_auto_deposit_catch_up(self, engine, db, clock):
        goal = db.create_goal("Fund", GoalType.FIXED, target=Decimal("1000"))
        rule = engine.set_auto_contribution(goal.id, Decimal("50"), Frequency.WEEKLY)
        clock.advance(days=23)
        result = engine.activate()
        assert [c.at for c in result.auto_deposits] == [START + timedelta(days=d) for d in (7, 14, 21)]
        assert all(c.note == AUTO_DEPOSIT_NOTE for c in result.auto_deposits)
        assert engine.auto_rules[0].last_applied == START + timedelta(days=21)
        assert rule.goal_id == goal.id
        assert db.goal(goal.id).saved == Decimal("150")
        assert "first_contribution" in result.badges

    def test_auto_deposits_feed_streak(self, engine, db, clock):
        goal = db.create_goal("Fund", GoalType.UNCAPPED)
        engine.set_auto_contribution(goal.id, Decimal("50"), Frequency.WEEKLY)
        clock.advance(days=7)
        engine.activate()
        assert engine.streak.current_streak_days == 1
        assert engine.streak.last_contribution_at == START + timedelta(days=7)

    def test_stale_auto_deposit_skips_streak(self, engine, db, clock):
        goal = db.create_goal("Fund", GoalType.UNCAPPED)
        engine.set_auto_contribution(goal.id, Decimal("50"), Frequency.WEEKLY)
        engine.record_contribution(Decimal("5"), at=START + timedelta(days=9))
        clock.advance(days=10)
        result = engine.activate()
        assert len(result.auto_deposits) == 1
        assert engine.streak.last_contribution_at == START + timedelta(days=9)

    def test_failure_mid_catch_up_does_not_duplicate(self, engine, db, clock, monkeypatch):
        goal = db.create_goal("Fund", GoalType.UNCAPPED)
        engine.set_auto_contribution(goal.id, Decimal("50"), Frequency.WEEKLY)
        clock.advance(days=23)

        evaluate = engine.evaluator.evaluate
        calls = []

        def flaky(contribution, streak_days):
            calls.append(contribution.at)
            if len(calls) == 2:
                raise RuntimeError("badge pass failed")
            return evaluate(contribution, streak_days)

        monkeypatch.setattr(engine.evaluator, "evaluate", flaky)
        with pytest.raises(RuntimeError):
            engine.activate()

        SavingsEngine(db, db, clock).activate()
        ats = [c.at for c in db.contributions_since(START)]
        assert ats == [START + timedelta(days=d) for d in (7, 14, 21)]
        assert db.goal(goal.id).saved == Decimal("150")
        assert db.load_rules()[0].last_applied == START + timedelta(days=21)

    def test_rules_persist_across_engines(self, db, clock):
        goal = db.create_goal("Fund", GoalType.UNCAPPED)
        SavingsEngine(db, db, clock).set_auto_contribution(goal.id, Decimal("10"), "weekly")
        clock.advance(days=14)
        reloaded = SavingsEngine(db, db, clock)
        assert len(reloaded.activate().auto_deposits) == 2
        again = SavingsEngine(db, db, clock)
        assert again.activate().auto_deposits == []
        assert again.auto_rules[0].last_applied == START + timedelta(days=14)

    def test_remove_auto_contribution(self, engine, db):
        goal = db.create_goal("Fund", GoalType.UNCAPPED)
        engine.set_auto_contribution(goal.id, Decimal("10"), "monthly")
        assert engine.remove_auto_contribution(goal.id) is True
        assert db.load_rules() == []
        assert engine.remove_auto_contribution(goal.id) is False

    def test_invalid_rule(self, engine, db):
        goal = db.create_goal("Fund", GoalType.UNCAPPED)
        with pytest.raises(InvalidRuleError):
            engine.set_auto_contribution(goal.id, Decimal("0"), "weekly")
        assert db.load_rules() == []


class TestWeekStats:
    def test_example(self, engine, clock):
        engine.record_contribution(Decimal("100"), at=datetime(2024, 1, 1, 10, tzinfo=UTC))
        engine.record_contribution(Decimal("400"), at=datetime(2024, 1, 2, 10, tzinfo=UTC))
        stats = engine.week_stats()
        assert stats.total_added == Decimal("500")
        assert stats.best_day == "Tuesday"

    def test_reference_goal(self, engine, db):
        db.create_goal("Float", GoalType.UNCAPPED)
        goal = db.create_goal("Phone", GoalType.FIXED, target=Decimal("1000"))
        engine.record_contribution(Decimal("250"), goal_id=goal.id)
        # remaining is 750 after the deposit
        assert engine.week_stats().percent_to_goal == pytest.approx(250 / 750)

    def test_does_not_mutate(self, engine, db):
        engine.record_contribution(Decimal("100"))
        before = (db.contribution_count(), db.load_streak_state())
        engine.week_stats()
        assert (db.contribution_count(), db.load_streak_state()) == before


class TestHelpers:
    def test_quick_presets(self):
        assert SavingsEngine.quick_presets() == (Decimal("500"), Decimal("1000"))

    def test_ten_percent(self):
        assert SavingsEngine.ten_percent_of(Goal(name="g", target=Decimal("1299"))) == Decimal("129")
        assert SavingsEngine.ten_percent_of(Goal(name="g", type=GoalType.UNCAPPED)) is None

    def test_remainder(self):
        goal = Goal(name="g", target=Decimal("1000"), saved=Decimal("250.75"))
        assert SavingsEngine.remainder_to_target(goal) == Decimal("749")
        goal.saved = Decimal("1200")
        assert SavingsEngine.remainder_to_target(goal) == Decimal("0")

    def test_reset_badge(self, engine, db):
        engine.record_contribution(Decimal("1"))
        engine.reset_badge("first_contribution")
        assert not db.badge("first_contribution").obtained
