"""MCP server for nest-egg.

Exposes savings progress as read-only MCP tools.
Run via: python3 -m nest_egg.mcp_server
"""
from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(name="nest-egg")


def _get_db():
    from nest_egg.config import get_db_path
    from nest_egg.db import Database
    return Database(get_db_path())


def _get_engine(db):
    from nest_egg.clock import SystemClock
    from nest_egg.config import get_timezone
    from nest_egg.engine import SavingsEngine
    return SavingsEngine(db, db, SystemClock(get_timezone()))


@mcp.tool()
def get_streak() -> dict[str, Any]:
    """Get the current saving streak and freeze tokens."""
    db = _get_db()
    try:
        state = db.load_streak_state()
        return {
            "current_streak_days": state.current_streak_days,
            "freeze_tokens": state.freeze_tokens,
            "last_contribution_at": (
                state.last_contribution_at.isoformat() if state.last_contribution_at else None
            ),
        }
    finally:
        db.close()


@mcp.tool()
def get_week_stats() -> dict[str, Any]:
    """Get totals for the last 7 days and progress toward the first fixed goal."""
    db = _get_db()
    try:
        stats = _get_engine(db).week_stats()
        return {
            "total_added": str(stats.total_added),
            "percent_to_goal": stats.percent_to_goal,
            "best_day": stats.best_day,
        }
    finally:
        db.close()


@mcp.tool()
def get_badges() -> dict[str, Any]:
    """Get all badges with rarity, evolution stage and unlock time."""
    db = _get_db()
    try:
        result = [
            {
                "code": b.code, "title": b.title, "description": b.description,
                "rarity": b.rarity.value, "evolution": b.evolution.value,
                "obtained": b.obtained,
                "obtained_at": b.obtained_at.isoformat() if b.obtained_at else None,
            }
            for b in db.badges()
        ]
        return {"badges": result, "obtained_count": sum(1 for b in result if b["obtained"]),
                "total_count": len(result)}
    finally:
        db.close()


@mcp.tool()
def get_auto_rules() -> dict[str, Any]:
    """Get recurring auto-contributions with their next due time."""
    db = _get_db()
    try:
        from nest_egg.scheduler import next_due
        engine = _get_engine(db)
        rules = []
        for rule in engine.auto_rules:
            goal = db.goal(rule.goal_id)
            rules.append({
                "goal": goal.name if goal else str(rule.goal_id),
                "amount": str(rule.amount), "frequency": rule.frequency.value,
                "last_applied": rule.last_applied.isoformat() if rule.last_applied else None,
                "next_due": next_due(rule, engine.calendar).isoformat(),
            })
        return {"rules": rules, "count": len(rules)}
    finally:
        db.close()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
