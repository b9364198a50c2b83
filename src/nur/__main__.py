from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import ConfigManager
from .services.reminders import InMemoryDelivery
from .session import PrayerSession
from .timeutils import format_prayer_time


def _default_log_path() -> Path:
    return Path.home() / ".cache" / "nur" / "nur.log"


def setup_logging(level: str, log_path: Path | None = None) -> None:
    path = log_path or _default_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(path),
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def print_today(manager: ConfigManager) -> int:
    config = manager.load()
    for message in manager.errors():
        print(f"config: {message}")
    session = PrayerSession.create(config, InMemoryDelivery(), config_manager=manager)
    schedule = session.refresh()
    if schedule is None:
        print(f"Could not load prayer times: {session.last_error or 'no location configured'}")
        return 1
    print(f"{schedule.location.display_name} · {schedule.day.isoformat()} · {schedule.hijri_date}")
    for name, moment in schedule.all_prayers():
        print(f"  {name:<8} {format_prayer_time(moment)}")
    for reminder in session.reminders.pending():
        print(f"  reminder {reminder.fire_at:%H:%M}  {reminder.body}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="nur", description="Daily prayer times and reminders")
    parser.add_argument("--config", type=Path, help="Path to config.toml")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--once", action="store_true", help="Print today's schedule and exit")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    manager = ConfigManager(args.config)
    if args.once:
        return print_today(manager)

    from .tui.app import NurApp

    NurApp(config_manager=manager).run()
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
