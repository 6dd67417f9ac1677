"""
Energy Today — command-line entry point.

Run:
    python main.py numerology "John Smith" --birth 24/03/2512
    python main.py log meditation
    python main.py streaks
    python main.py freeze --reason "travel day"
    python main.py freeze-status
    python main.py date 15/01/2567 --locale th
    python main.py energy record 72 64 strong
    python main.py energy trend --days 30
    python main.py watch          # daily digest on a UTC schedule
"""
import argparse
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone

from apscheduler.schedulers.blocking import BlockingScheduler
from loguru import logger
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

import config
from core.energy_history import EnergyHistory
from core.era_calendar import current_years, day_key, format_dual_era, parse_flexible_date, utcnow
from core.numerology import analyze_name, full_numerology_report
from core.streak_recovery import StreakRecovery
from core.streaks import StreakTracker, is_milestone, next_milestone, streak_badge, streak_message
from db.storage import KeyValueStore, StorageError, open_store

console = Console()


@dataclass
class App:
    store: KeyValueStore
    streaks: StreakTracker
    recovery: StreakRecovery
    history: EnergyHistory


def build_app(store: KeyValueStore, clock=utcnow) -> App:
    recovery = StreakRecovery(store, clock=clock)
    return App(
        store=store,
        streaks=StreakTracker(store, recovery=recovery, clock=clock),
        recovery=recovery,
        history=EnergyHistory(store, clock=clock),
    )


# ── Console display ────────────────────────────────────────────────────────────

def _kv_table() -> Table:
    table = Table(box=box.ROUNDED, show_header=False, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="bold")
    return table


def cmd_numerology(args, app: App):
    if args.birth:
        today = utcnow().date()
        report = full_numerology_report(args.name, args.birth, today)
    else:
        report = analyze_name(args.name).as_dict()

    table = _kv_table()
    table.add_row("Expression", f"{report['expression_number']}  {report['expression_meaning']}")
    table.add_row("Soul Urge",  f"{report['soul_urge_number']}  {report['soul_urge_meaning']}")
    table.add_row("Personality", f"{report['personality_number']}  {report['personality_meaning']}")
    if args.birth:
        table.add_row("", "")
        table.add_row("Born",          format_dual_era(parse_flexible_date(args.birth)))
        table.add_row("Life Path",     str(report["life_path_number"]))
        table.add_row("Personal Year", str(report["personal_year_number"]))
        table.add_row("UDN",           str(report["universal_day_number"]))

    console.print(Panel(table, title=f"[bold]Numerology — {args.name}[/bold]",
                        border_style="cyan", expand=False))


def cmd_date(args, app: App):
    d = parse_flexible_date(args.text)
    years = current_years()
    console.print(f"{format_dual_era(d, args.locale)}")
    console.print(f"[dim]Canonical: {d.isoformat()}  |  Now: {years.low} CE / {years.high} BE[/dim]")


def cmd_log(args, app: App):
    try:
        rec = app.streaks.log_activity(args.category)
    except StorageError as e:
        logger.error(f"Could not save {args.category} log: {e}")
        console.print("[red]Your log was not saved. Please try again.[/red]")
        return 1

    console.print(f"{streak_badge(rec.current_streak)}  {streak_message(rec.current_streak, args.category)}")
    if is_milestone(rec.current_streak):
        console.print(f"[bold green]Milestone: {rec.current_streak} days![/bold green]")
    else:
        console.print(f"[dim]Next milestone: {next_milestone(rec.current_streak)} days[/dim]")
    return 0


def cmd_streaks(args, app: App):
    streaks = app.streaks.get_all_streaks()
    if not streaks:
        console.print("[dim]No streaks yet. Log an activity to start one.[/dim]")
        return

    table = Table(box=box.ROUNDED)
    for col in ("Category", "Current", "Longest", "Last log", "Total", "Next"):
        table.add_column(col)
    for category, rec in sorted(streaks.items()):
        table.add_row(
            f"{streak_badge(rec.current_streak)} {category}",
            str(rec.current_streak),
            str(rec.longest_streak),
            rec.last_log_date or "-",
            str(rec.total_logs),
            str(next_milestone(rec.current_streak)),
        )
    console.print(table)


def cmd_freeze(args, app: App):
    result = app.recovery.freeze(reason=args.reason)
    color = "green" if result.success else "yellow"
    console.print(f"[{color}]{result.message}[/{color}]")
    return 0 if result.success else 1


def cmd_freeze_status(args, app: App):
    try:
        stats = app.recovery.freeze_stats()
    except StorageError as e:
        logger.error(f"Could not load freeze status: {e}")
        console.print("[red]Freeze status is unavailable right now. Please try again.[/red]")
        return 1

    table = _kv_table()
    table.add_row("Remaining",   str(stats.freezes_remaining))
    table.add_row("This month",  str(stats.freezes_this_month))
    table.add_row("All time",    str(stats.total_freezes_used))
    table.add_row("Last freeze", stats.last_freeze_date or "-")
    table.add_row("Resets on",   stats.next_reset_date)
    console.print(Panel(table, title="[bold]Streak Freezes[/bold]", border_style="blue", expand=False))


def cmd_energy(args, app: App):
    if args.energy_command == "record":
        try:
            entry = app.history.record(args.user, args.env, args.alignment)
        except StorageError as e:
            logger.error(f"Could not save energy entry: {e}")
            console.print("[red]Your energy entry was not saved. Please try again.[/red]")
            return 1
        console.print(f"Recorded {entry.date}: user {entry.user_energy:.0f}, "
                      f"environment {entry.environmental_energy:.0f} ({entry.alignment})")
        return

    t = app.history.trend(args.days)
    color = {"improving": "green", "declining": "red"}.get(t.trend, "white")
    table = _kv_table()
    table.add_row("Trend",        f"[{color}]{t.trend}[/{color}]")
    table.add_row("Avg user",     f"{t.average_user_energy:.1f}")
    table.add_row("Avg env",      f"{t.average_environmental_energy:.1f}")
    table.add_row("Slope",        "-" if t.slope is None else f"{t.slope:+.2f}/day")
    table.add_row("Alignment",    f"{t.strong_days} strong / {t.moderate_days} moderate / "
                                  f"{t.challenging_days} challenging")
    table.add_row("Days",         str(t.days_recorded))
    console.print(Panel(table, title=f"[bold]Energy — last {args.days} days[/bold]",
                        border_style=color, expand=False))


# ── Daily digest ───────────────────────────────────────────────────────────────

def daily_digest(app: App):
    """Log streaks still open for today, the freeze budget and the energy trend."""
    logger.info(f"=== Daily digest — {datetime.now(timezone.utc).isoformat()} ===")

    try:
        at_risk = app.streaks.at_risk()
        stats = app.recovery.freeze_stats()
        t = app.history.trend()
    except StorageError as e:
        logger.error(f"Daily digest skipped: {e}")
        return []

    if at_risk:
        logger.warning(f"Streaks at risk today: {', '.join(sorted(at_risk))}")
    else:
        logger.info("No streaks at risk.")

    logger.info(f"Freezes remaining this month: {stats.freezes_remaining} (resets {stats.next_reset_date})")
    logger.info(f"Energy trend: {t.trend} over {t.days_recorded} day(s)")
    return at_risk


def cmd_watch(args, app: App):
    daily_digest(app)

    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        daily_digest,
        trigger="cron",
        hour=config.DIGEST_HOUR_UTC,
        args=[app],
        id="daily_digest",
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduler started — digest daily at {config.DIGEST_HOUR_UTC:02d}:00 UTC.")
    logger.info("Press Ctrl+C to stop.")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Digest stopped by user.")


# ── Entry point ────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Energy Today — numerology, streaks and energy trends")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("numerology", help="Name numbers (and date numbers with --birth)")
    p.add_argument("name")
    p.add_argument("--birth", default=None, help="Birth date, e.g. 1969-03-24 or 24/03/2512")
    p.set_defaults(func=cmd_numerology)

    p = sub.add_parser("date", help="Parse a date and show it in both eras")
    p.add_argument("text")
    p.add_argument("--locale", default="en", choices=["en", "th"])
    p.set_defaults(func=cmd_date)

    p = sub.add_parser("log", help="Log today's activity for a habit category")
    p.add_argument("category", choices=config.STREAK_CATEGORIES)
    p.set_defaults(func=cmd_log)

    p = sub.add_parser("streaks", help="Show all streaks")
    p.set_defaults(func=cmd_streaks)

    p = sub.add_parser("freeze", help="Spend this month's freeze on today")
    p.add_argument("--reason", default=None)
    p.set_defaults(func=cmd_freeze)

    p = sub.add_parser("freeze-status", help="Show freeze budget")
    p.set_defaults(func=cmd_freeze_status)

    p = sub.add_parser("energy", help="Record or summarize daily energy")
    energy = p.add_subparsers(dest="energy_command", required=True)
    r = energy.add_parser("record")
    r.add_argument("user", type=float)
    r.add_argument("env", type=float)
    r.add_argument("alignment", choices=["strong", "moderate", "challenging"])
    t = energy.add_parser("trend")
    t.add_argument("--days", type=int, default=config.TREND_WINDOW_DAYS)
    p.set_defaults(func=cmd_energy)

    p = sub.add_parser("watch", help="Run the daily digest on a schedule")
    p.set_defaults(func=cmd_watch)

    return parser


def setup_logging():
    os.makedirs(config.LOG_DIR, exist_ok=True)
    logger.remove()
    logger.add(
        sys.stderr,
        level=config.LOG_LEVEL,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    logger.add(
        os.path.join(config.LOG_DIR, "energy_today_{time:YYYY-MM-DD}.log"),
        rotation="1 day",
        retention="30 days",
        level="DEBUG",
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    logger.debug(f"Command '{args.command}' on {day_key(utcnow())}")
    try:
        app = build_app(open_store())
        return args.func(args, app) or 0
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return 2
    except StorageError as e:
        logger.error(f"Storage unavailable: {e}")
        console.print(f"[red]Storage unavailable: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
