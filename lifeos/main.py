"""LifeOS application entry point.

Supports two modes:
  - GUI mode (default): launches the system tray app and web dashboard
  - CLI mode: prints a report to stdout

Usage:
    python -m lifeos.main              # GUI mode
    python -m lifeos.main --daily      # today's focus summary
    python -m lifeos.main --weekly     # this week's focus summary
    python -m lifeos.main --agenda     # upcoming calendar events
    python -m lifeos.main --profile    # XP, level and focus totals
    python -m lifeos.main --export     # this week's .docx report
"""

import argparse
import logging
import os
from datetime import date, datetime, time, timedelta

from lifeos.core.agenda import build_agenda
from lifeos.core.config import get_default_config_path, get_timer_settings, load_config
from lifeos.core.recurrence import DEFAULT_MAX_INSTANCES
from lifeos.persistence.store import LifeStore
from lifeos.reporting.exporter import ReportExporter
from lifeos.reporting.formatter import TextFormatter
from lifeos.reporting.summary import FocusSummaryGenerator


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="lifeos",
        description="LifeOS: focus timer, XP and calendar",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--daily",
        action="store_true",
        help="Print today's focus summary and exit",
    )
    group.add_argument(
        "--weekly",
        action="store_true",
        help="Print this week's focus summary and exit",
    )
    group.add_argument(
        "--agenda",
        action="store_true",
        help="Print upcoming calendar events and exit",
    )
    group.add_argument(
        "--profile",
        action="store_true",
        help="Print XP, level and focus totals and exit",
    )
    group.add_argument(
        "--export",
        action="store_true",
        help="Write this week's focus report (.docx) and exit",
    )
    return parser


def _open_store(config: dict) -> LifeStore:
    db_path = os.path.expanduser(config.get("database_path", "~/.lifeos/lifeos.db"))
    store = LifeStore(db_path)
    store.init_db()
    return store


def _print_daily_summary(config: dict) -> None:
    store = _open_store(config)
    try:
        settings = get_timer_settings(config)
        generator = FocusSummaryGenerator(store, settings.xp_per_minute)
        print(TextFormatter.format_daily(generator.daily_summary(date.today())))
    finally:
        store.close()


def _print_weekly_summary(config: dict) -> None:
    store = _open_store(config)
    try:
        settings = get_timer_settings(config)
        generator = FocusSummaryGenerator(store, settings.xp_per_minute)
        start_date = date.today() - timedelta(days=date.today().weekday())
        print(TextFormatter.format_weekly(generator.weekly_summary(start_date)))
    finally:
        store.close()


def _print_agenda(config: dict) -> None:
    """Print events from today through the configured ``agenda_days``."""
    calendar_cfg = config.get("calendar", {}) or {}
    days = int(calendar_cfg.get("agenda_days", 7))
    max_instances = int(calendar_cfg.get("max_instances", DEFAULT_MAX_INSTANCES))

    store = _open_store(config)
    try:
        start = datetime.combine(date.today(), time.min)
        instances = build_agenda(store, start, start + timedelta(days=days), max_instances)
        print(TextFormatter.format_agenda(instances))
    finally:
        store.close()


def _print_profile(config: dict) -> None:
    store = _open_store(config)
    try:
        print(TextFormatter.format_profile(store.get_profile()))
    finally:
        store.close()


def _export_weekly_report(config: dict) -> str:
    """Write this week's .docx report into the configured output directory."""
    report_cfg = config.get("report", {}) or {}
    output_dir = os.path.expanduser(report_cfg.get("output_directory", "~/lifeos-reports"))
    start_date = date.today() - timedelta(days=date.today().weekday())
    output_path = os.path.join(output_dir, f"lifeos-week-{start_date.isoformat()}.docx")

    store = _open_store(config)
    try:
        settings = get_timer_settings(config)
        summary = FocusSummaryGenerator(store, settings.xp_per_minute).weekly_summary(start_date)
        path = ReportExporter().export_weekly(summary, report_cfg.get("user_name", ""), output_path)
    finally:
        store.close()
    print(f"Report written to {path}")
    return path


def main(args: list[str] | None = None) -> None:
    """Entry point for LifeOS.

    When *args* is ``None`` the arguments are read from ``sys.argv``.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = build_parser()
    parsed = parser.parse_args(args)

    config_path = get_default_config_path()
    config = load_config(str(config_path))

    if parsed.daily:
        _print_daily_summary(config)
    elif parsed.weekly:
        _print_weekly_summary(config)
    elif parsed.agenda:
        _print_agenda(config)
    elif parsed.profile:
        _print_profile(config)
    elif parsed.export:
        _export_weekly_report(config)
    else:
        # GUI mode: import here to avoid pulling in pystray for CLI usage
        from lifeos.ui.app import LifeOSApp

        app = LifeOSApp(str(config_path))
        app.start()


if __name__ == "__main__":
    main()
