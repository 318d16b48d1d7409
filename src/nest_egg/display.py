"""Rich terminal display for nest-egg."""

from __future__ import annotations

from decimal import Decimal

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

_RARITY_COLORS: dict[str, str] = {
    "common": "grey70",
    "rare": "deep_sky_blue1",
    "epic": "purple",
    "legendary": "gold1",
}

_EVOLUTION_ICONS: dict[str, str] = {
    "chick": "\U0001f423",
    "hen": "\U0001f414",
    "golden": "\U0001f31f",
}


def format_amount(amount: Decimal) -> str:
    """Plain grouped amount: 1234.5 -> '1,234.50', 500 -> '500'."""
    if amount == amount.to_integral_value():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


def _progress_bar(ratio: float, width: int = 20) -> str:
    """Render a progress bar as text: [████████░░░░░░░░░░░░]."""
    ratio = min(max(ratio, 0.0), 1.0)
    filled = int(ratio * width)
    return "[" + "█" * filled + "░" * (width - filled) + "]"


def print_dashboard(data: dict) -> None:
    """Print the home dashboard: balance, streak, week stats, recent badges."""
    lines: list[str] = [""]
    lines.append(f"  [bold green]Saved: {format_amount(data.get('total_saved', Decimal('0')))}[/]")
    lines.append("")
    lines.append(
        f"  \U0001f525 Streak: {data.get('current_streak', 0)} days  |  "
        f"❄️  Freezes: {data.get('freeze_tokens', 0)}/3"
    )

    week = data.get("week")
    if week is not None:
        lines.append("")
        lines.append("  [bold]This Week:[/]")
        lines.append(f"  Added: {format_amount(week.total_added)}")
        lines.append(f"  {_progress_bar(week.percent_to_goal)} {int(week.percent_to_goal * 100)}% to goal")
        if week.best_day:
            lines.append(f"  Best day: {week.best_day}")

    recent = data.get("recent_badges", [])
    if recent:
        lines.append("")
        lines.append("  [bold]Recent Badges:[/]")
        for badge in recent[:3]:
            icon = _EVOLUTION_ICONS.get(badge.evolution.value, "")
            lines.append(f"  {icon} {badge.title} ({badge.description})")

    lines.append("")
    console.print(Panel("\n".join(lines), title="[bold]NEST EGG[/]", box=box.ROUNDED, width=50))


def print_goals(goals: list) -> None:
    if not goals:
        console.print("[dim]No goals yet. Add one with: nest-egg goal-add NAME --target 1000[/]")
        return
    table = Table(title="Goals", box=box.SIMPLE_HEAVY)
    table.add_column("Name", style="bold")
    table.add_column("Saved", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Progress")
    table.add_column("Deadline", style="dim")
    for goal in goals:
        target = format_amount(goal.target) if goal.has_target else "-"
        progress = f"{_progress_bar(goal.progress(), 10)} {int(goal.progress() * 100)}%" if goal.has_target else ""
        deadline = goal.deadline.isoformat() if goal.deadline else ""
        table.add_row(goal.name, format_amount(goal.saved), target, progress, deadline)
    console.print(table)


def print_badges(badges: list) -> None:
    """Print the full badge collection, obtained first."""
    table = Table(title="Badges", box=box.SIMPLE_HEAVY)
    table.add_column("", width=2)
    table.add_column("Badge", style="bold")
    table.add_column("Rarity")
    table.add_column("Stage")
    table.add_column("Obtained", style="dim")
    ordered = sorted(badges, key=lambda b: (not b.obtained, b.title))
    for badge in ordered:
        color = _RARITY_COLORS.get(badge.rarity.value, "white")
        if badge.obtained:
            mark = "✅"
            stage = f"{_EVOLUTION_ICONS.get(badge.evolution.value, '')} {badge.evolution.value.capitalize()}"
            obtained = badge.obtained_at.date().isoformat()
        else:
            mark = "\U0001f512"
            stage = ""
            obtained = ""
        table.add_row(
            mark,
            f"{badge.title}\n[dim]{badge.description}[/]",
            f"[{color}]{badge.rarity.value.capitalize()}[/]",
            stage,
            obtained,
        )
    console.print(table)
    unlocked = sum(1 for b in badges if b.obtained)
    console.print(f"  {unlocked}/{len(badges)} badges collected")


def print_week(stats, totals: list[Decimal], weekday_names: tuple[str, ...]) -> None:
    """Print the trailing-week summary with a per-weekday breakdown."""
    table = Table(title="Last 7 Days", box=box.SIMPLE)
    table.add_column("Day")
    table.add_column("Added", justify="right")
    for name, total in zip(weekday_names, totals):
        style = "bold green" if name == stats.best_day else ""
        table.add_row(name, format_amount(total), style=style)
    console.print(table)
    console.print(f"  Total: [bold]{format_amount(stats.total_added)}[/]")
    console.print(f"  {_progress_bar(stats.percent_to_goal)} {int(stats.percent_to_goal * 100)}% of remaining goal")


def print_auto_rules(rows: list[dict]) -> None:
    if not rows:
        console.print("[dim]No auto-contributions set.[/]")
        return
    table = Table(title="Auto-Contributions", box=box.SIMPLE_HEAVY)
    table.add_column("Goal", style="bold")
    table.add_column("Amount", justify="right")
    table.add_column("Every")
    table.add_column("Last Applied", style="dim")
    table.add_column("Next Due")
    for row in rows:
        table.add_row(
            row["goal"],
            format_amount(row["amount"]),
            row["frequency"],
            row["last_applied"] or "never",
            row["next_due"],
        )
    console.print(table)


def print_history(rows: list[dict]) -> None:
    """Print contributions, newest first."""
    if not rows:
        console.print("[dim]No contributions found.[/]")
        return
    table = Table(title="History", box=box.SIMPLE_HEAVY)
    table.add_column("When", style="dim")
    table.add_column("Amount", justify="right")
    table.add_column("Goal", style="bold")
    table.add_column("Tag")
    table.add_column("Note")
    for row in rows:
        style = "red" if row["amount"] < 0 else ""
        table.add_row(
            row["at"],
            format_amount(row["amount"]),
            row["goal"] or "-",
            row["tag"],
            row["note"] or "",
            style=style,
        )
    console.print(table)


def print_contribution_result(result: dict) -> None:
    console.print(
        f"[green]Added {format_amount(result['amount'])}[/]"
        + (f" to [bold]{result['goal']}[/]" if result.get("goal") else "")
    )
    console.print(f"  \U0001f525 Streak: {result['current_streak']} days")
    _print_new_badges(result.get("badges", []))


def print_activation_result(result: dict) -> None:
    if result.get("freeze_granted"):
        console.print("❄️  New freeze token granted for this month")
    count = result.get("auto_deposits", 0)
    if count:
        console.print(f"[green]{count} auto-deposit(s) applied[/]")
    else:
        console.print("[dim]No auto-deposits due.[/]")
    _print_new_badges(result.get("badges", []))


def _print_new_badges(titles: list[str]) -> None:
    for title in titles:
        console.print(f"  \U0001f389 [bold yellow]{title}[/]")


def print_error(message: str) -> None:
    console.print(f"[red]{message}[/]")
