"""CLI commands for nest-egg."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfoNotFoundError

from rich.logging import RichHandler

from nest_egg.achievements import BADGES_BY_CODE
from nest_egg.clock import SystemClock
from nest_egg.config import get_db_path, get_timezone, set_timezone
from nest_egg.db import Database
from nest_egg.display import (
    console,
    print_activation_result,
    print_auto_rules,
    print_badges,
    print_contribution_result,
    print_dashboard,
    print_error,
    print_goals,
    print_history,
    print_week,
)
from nest_egg.engine import SavingsEngine
from nest_egg.errors import GoalNotFoundError, NestEggError
from nest_egg.models import GoalType, Tag
from nest_egg.scheduler import Frequency, next_due
from nest_egg.weekly import WEEKDAY_NAMES, daily_totals, week_start


def _decimal(raw: str) -> Decimal:
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {raw}") from None
    if not value.is_finite():
        raise argparse.ArgumentTypeError(f"not a number: {raw}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="nest-egg",
        description="Savings tracker with streaks, badges and auto-deposits",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("dashboard", help="Show main dashboard")
    add_p = subparsers.add_parser("add", help="Record a contribution")
    amount_src = add_p.add_mutually_exclusive_group()
    amount_src.add_argument("amount", type=_decimal, nargs="?", default=None)
    amount_src.add_argument(
        "--preset", type=_decimal, choices=SavingsEngine.quick_presets(), default=None,
        help="Quick-add amount",
    )
    amount_src.add_argument("--ten-percent", action="store_true", help="10%% of the goal's target")
    amount_src.add_argument("--remainder", action="store_true", help="Whatever is left to reach the goal")
    add_p.add_argument("--goal", "-g", default=None, help="Goal name")
    add_p.add_argument("--note", "-n", default=None)
    add_p.add_argument("--tag", "-t", choices=[t.value for t in Tag], default=Tag.OTHER.value)
    add_p.add_argument("--at", default=None, help="ISO-8601 time (default: now)")
    subparsers.add_parser("goals", help="List goals")
    goal_p = subparsers.add_parser("goal-add", help="Create a goal")
    goal_p.add_argument("name")
    goal_p.add_argument("--target", type=_decimal, default=None, help="Fixed target (omit for uncapped)")
    goal_p.add_argument("--deadline", type=date.fromisoformat, default=None)
    goal_rm = subparsers.add_parser("goal-delete", help="Delete a goal, keeping its history")
    goal_rm.add_argument("name")
    history_p = subparsers.add_parser("history", help="List contributions, newest first")
    history_p.add_argument("--goal", "-g", default=None, help="Only this goal")
    history_p.add_argument("--tag", "-t", choices=[t.value for t in Tag], default=None)
    history_p.add_argument("--limit", "-l", type=int, default=20)
    subparsers.add_parser("badges", help="List all badges")
    badge_rm = subparsers.add_parser("badge-reset", help="Lock a badge again")
    badge_rm.add_argument("code", choices=sorted(BADGES_BY_CODE))
    subparsers.add_parser("week", help="Last 7 days summary")
    subparsers.add_parser("tick", help="Apply due auto-deposits and monthly freeze grant")
    auto_p = subparsers.add_parser("auto", help="Recurring auto-contributions")
    auto_sub = auto_p.add_subparsers(dest="auto_command")
    auto_set = auto_sub.add_parser("set", help="Set the auto-contribution for a goal")
    auto_set.add_argument("goal")
    auto_set.add_argument("amount", type=_decimal)
    auto_set.add_argument("--every", choices=[f.value for f in Frequency], default=Frequency.WEEKLY.value)
    auto_set.add_argument("--start", default=None, help="ISO-8601 start (default: now)")
    auto_rm = auto_sub.add_parser("remove", help="Remove the auto-contribution for a goal")
    auto_rm.add_argument("goal")
    auto_sub.add_parser("list", help="List auto-contributions")
    config_p = subparsers.add_parser("config", help="Change settings")
    config_p.add_argument("--timezone", required=True, help="IANA zone name, e.g. Europe/Berlin")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def build_engine(db: Database) -> SavingsEngine:
    return SavingsEngine(db, db, SystemClock(get_timezone()))


def main() -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(args.verbose)
    command = args.command or "dashboard"

    if command == "config":
        try:
            set_timezone(args.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            print_error(f"Unknown time zone: {args.timezone}")
            sys.exit(1)
        console.print(f"Time zone set to [bold]{args.timezone}[/]")
        return

    db = Database(get_db_path())
    try:
        engine = build_engine(db)
        # Every session starts with an activation so catch-up and freeze grants
        # land before anything else touches the streak.
        activation = do_tick(engine, quiet=command != "tick")
        if command == "dashboard":
            do_dashboard(engine, db)
        elif command == "add":
            do_add(
                engine, db, args.amount, goal=args.goal, note=args.note, tag=args.tag, at=args.at,
                preset=args.preset, ten_percent=args.ten_percent, remainder=args.remainder,
            )
        elif command == "goals":
            print_goals(db.goals())
        elif command == "goal-add":
            do_goal_add(db, args.name, target=args.target, deadline=args.deadline)
        elif command == "goal-delete":
            do_goal_delete(engine, db, args.name)
        elif command == "history":
            do_history(engine, db, goal=args.goal, tag=args.tag, limit=args.limit)
        elif command == "badges":
            print_badges(db.badges())
        elif command == "badge-reset":
            do_badge_reset(engine, db, args.code)
        elif command == "week":
            do_week(engine, db)
        elif command == "tick":
            pass
        elif command == "auto":
            auto_cmd = getattr(args, "auto_command", None)
            if auto_cmd == "set":
                do_auto_set(engine, db, args.goal, args.amount, args.every, start=args.start)
            elif auto_cmd == "remove":
                do_auto_remove(engine, db, args.goal)
            else:
                do_auto_list(engine, db)
        if command != "tick" and (activation["auto_deposits"] or activation["badges"]):
            print_activation_result(activation)
    except NestEggError as exc:
        print_error(str(exc))
        sys.exit(1)
    finally:
        db.close()


def _parse_instant(raw: str | None, engine: SavingsEngine) -> datetime | None:
    if raw is None:
        return None
    try:
        return engine.calendar.localize(datetime.fromisoformat(raw))
    except ValueError:
        raise NestEggError(f"Invalid ISO-8601 time: {raw}") from None


def _require_goal(db: Database, name: str):
    goal = db.goal_by_name(name)
    if goal is None:
        raise GoalNotFoundError(name)
    return goal


def _badge_titles(codes: set[str]) -> list[str]:
    return [BADGES_BY_CODE[c].title for c in sorted(codes) if c in BADGES_BY_CODE]


def do_tick(engine: SavingsEngine, quiet: bool = False) -> dict:
    """Host activation: monthly freeze grant, then auto-deposit catch-up."""
    result = engine.activate()
    summary = {
        "freeze_granted": result.freeze_granted,
        "auto_deposits": len(result.auto_deposits),
        "badges": _badge_titles(result.badges),
    }
    if not quiet:
        print_activation_result(summary)
    return summary


def do_dashboard(engine: SavingsEngine, db: Database) -> dict:
    streak = engine.streak
    recent = sorted(
        (b for b in db.badges() if b.obtained), key=lambda b: b.obtained_at, reverse=True
    )
    data = {
        "total_saved": db.total_saved(),
        "current_streak": streak.current_streak_days,
        "freeze_tokens": streak.freeze_tokens,
        "week": engine.week_stats(),
        "recent_badges": recent[:3],
    }
    print_dashboard(data)
    return data


def _quick_amount(goal, preset, ten_percent: bool, remainder: bool) -> Decimal:
    if preset is not None:
        return Decimal(preset)
    if goal is None or not goal.has_target:
        raise NestEggError("--ten-percent and --remainder need a --goal with a target")
    if ten_percent:
        amount = SavingsEngine.ten_percent_of(goal)
    else:
        amount = SavingsEngine.remainder_to_target(goal)
    if amount <= 0:
        raise NestEggError(f"Nothing to add to {goal.name}")
    return amount


def do_add(
    engine: SavingsEngine,
    db: Database,
    amount: Decimal | None = None,
    goal: str | None = None,
    note: str | None = None,
    tag: str = Tag.OTHER.value,
    at: str | None = None,
    preset: Decimal | None = None,
    ten_percent: bool = False,
    remainder: bool = False,
) -> dict:
    """Record a manual contribution and report streak and badge changes.

    The amount is given directly or picked by one of the quick-add options.
    """
    goal_obj = _require_goal(db, goal) if goal else None
    if amount is None:
        if preset is None and not ten_percent and not remainder:
            raise NestEggError("Give an amount, --preset, --ten-percent or --remainder")
        amount = _quick_amount(goal_obj, preset, ten_percent, remainder)
    contribution, badges = engine.record_contribution(
        amount,
        goal_id=goal_obj.id if goal_obj else None,
        note=note.strip() if note else None,
        tag=Tag(tag),
        at=_parse_instant(at, engine),
    )
    result = {
        "amount": contribution.amount,
        "goal": goal_obj.name if goal_obj else None,
        "current_streak": engine.streak.current_streak_days,
        "badges": _badge_titles(badges),
    }
    print_contribution_result(result)
    return result


def do_goal_add(
    db: Database, name: str, target: Decimal | None = None, deadline: date | None = None
) -> dict:
    if target is not None and target <= 0:
        raise NestEggError("Target must be positive")
    goal_type = GoalType.FIXED if target is not None else GoalType.UNCAPPED
    goal = db.create_goal(name, goal_type, target=target, deadline=deadline)
    console.print(f"[green]Goal created:[/] [bold]{goal.name}[/]")
    return {"id": str(goal.id), "name": goal.name, "type": goal.type.value}


def do_goal_delete(engine: SavingsEngine, db: Database, name: str) -> dict:
    """Delete a goal and its auto-contribution. Past contributions stay, unlinked."""
    goal_obj = _require_goal(db, name)
    rule_removed = engine.remove_auto_contribution(goal_obj.id)
    db.delete_goal(goal_obj.id)
    console.print(f"Goal deleted: [bold]{goal_obj.name}[/]")
    return {"name": goal_obj.name, "auto_rule_removed": rule_removed}


def do_history(
    engine: SavingsEngine,
    db: Database,
    goal: str | None = None,
    tag: str | None = None,
    limit: int = 20,
) -> list[dict]:
    goal_obj = _require_goal(db, goal) if goal else None
    contributions = db.recent_contributions(
        limit=limit,
        goal_id=goal_obj.id if goal_obj else None,
        tag=Tag(tag) if tag else None,
    )
    names = {g.id: g.name for g in db.goals()}
    rows = [
        {
            "at": engine.calendar.localize(c.at).strftime("%Y-%m-%d %H:%M"),
            "amount": c.amount,
            "goal": names.get(c.goal_id),
            "tag": c.tag.value,
            "note": c.note,
        }
        for c in contributions
    ]
    print_history(rows)
    return rows


def do_badge_reset(engine: SavingsEngine, db: Database, code: str) -> dict:
    badge = db.badge(code)
    if badge is None:
        raise NestEggError(f"Unknown badge: {code}")
    engine.reset_badge(code)
    console.print(f"Badge locked again: [bold]{badge.title}[/]")
    return {"code": code, "was_obtained": badge.obtained}


def do_week(engine: SavingsEngine, db: Database) -> dict:
    now = engine.clock.now()
    stats = engine.week_stats(now)
    totals = daily_totals(db.contributions_since(week_start(now)), engine.calendar)
    print_week(stats, totals, WEEKDAY_NAMES)
    return {"total_added": stats.total_added, "percent_to_goal": stats.percent_to_goal, "best_day": stats.best_day}


def do_auto_set(
    engine: SavingsEngine,
    db: Database,
    goal: str,
    amount: Decimal,
    every: str,
    start: str | None = None,
) -> dict:
    goal_obj = _require_goal(db, goal)
    rule = engine.set_auto_contribution(
        goal_obj.id, amount, Frequency(every), start_date=_parse_instant(start, engine)
    )
    console.print(
        f"[green]Auto-contribution set:[/] {rule.amount} {rule.frequency.value} to [bold]{goal_obj.name}[/]"
    )
    return {"goal": goal_obj.name, "amount": rule.amount, "frequency": rule.frequency.value}


def do_auto_remove(engine: SavingsEngine, db: Database, goal: str) -> dict:
    goal_obj = _require_goal(db, goal)
    removed = engine.remove_auto_contribution(goal_obj.id)
    if removed:
        console.print(f"Auto-contribution removed for [bold]{goal_obj.name}[/]")
    else:
        console.print(f"[dim]No auto-contribution for {goal_obj.name}[/]")
    return {"removed": removed}


def do_auto_list(engine: SavingsEngine, db: Database) -> list[dict]:
    rows = []
    for rule in engine.auto_rules:
        goal = db.goal(rule.goal_id)
        rows.append({
            "goal": goal.name if goal else str(rule.goal_id),
            "amount": rule.amount,
            "frequency": rule.frequency.value,
            "last_applied": rule.last_applied.date().isoformat() if rule.last_applied else None,
            "next_due": next_due(rule, engine.calendar).date().isoformat(),
        })
    print_auto_rules(rows)
    return rows
