from __future__ import annotations

import asyncio
from datetime import datetime

from textual.app import App, ComposeResult  # type: ignore[import]
from textual.binding import Binding  # type: ignore[import]
from textual.containers import Horizontal, Vertical  # type: ignore[import]
from textual.widgets import DataTable, Footer, Header, Static  # type: ignore[import]

from ..config import ConfigManager, NurConfig
from ..errors import describe_error
from ..models import PrayerSchedule, timing_display_name
from ..services.reminders import APSchedulerDelivery
from ..session import PrayerSession
from ..timeutils import format_compact_time_until, format_prayer_time, format_time_until


def status_text(session: PrayerSession, now: datetime) -> str:
    schedule = session.today
    if schedule is None:
        if session.last_error is not None:
            return describe_error(session.last_error)
        return "Prayer times are not loaded yet."
    upcoming = schedule.next_prayer(now)
    if upcoming is None:
        return "All prayers for today have passed."
    name, moment = upcoming
    remaining = schedule.remaining_count(now)
    return f"Next: {name} {format_time_until(moment, now)} · {remaining} remaining today"


def schedule_rows(
    schedule: PrayerSchedule,
    session: PrayerSession,
    now: datetime,
) -> list[tuple[str, str, str, str]]:
    current = schedule.current_prayer(now)
    prefs = session.config.reminders
    rows = []
    for name, moment in schedule.all_prayers():
        marker = "▶ " if current and current[0] == name else ""
        if prefs.is_enabled(name):
            reminder = timing_display_name(prefs.lead_minutes(name))
        else:
            reminder = "Off"
        state = "passed" if schedule.has_passed(name, now) else format_compact_time_until(moment, now)
        rows.append((f"{marker}{name}", format_prayer_time(moment), reminder, state))
    return rows


class NurApp(App):
    CSS = """
    Screen {
        background: $surface;
    }

    .panel {
        border: round $accent;
        padding: 1 2;
        background: $boost;
        layout: vertical;
    }

    .panel-title {
        text-style: bold;
    }
    """

    BINDINGS = [
        Binding("r", "refresh", "Refresh"),
        Binding("f", "force_refresh", "Refetch"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, config_manager: ConfigManager | None = None, session: PrayerSession | None = None) -> None:
        super().__init__()
        self.config_manager = config_manager or ConfigManager()
        self._delivery: APSchedulerDelivery | None = None
        if session is None:
            config: NurConfig = self.config_manager.load()
            self._delivery = APSchedulerDelivery(self._on_alert)
            session = PrayerSession.create(config, self._delivery, config_manager=self.config_manager)
        self.session = session
        self.title_line = Static("Prayer Times", classes="panel-title")
        self.status_line = Static("")
        self.table: DataTable | None = None
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        self.table = DataTable(zebra_stripes=True, id="prayer-table")
        yield Horizontal(
            Vertical(self.title_line, self.status_line, self.table, classes="panel"),
        )
        yield Footer()

    async def on_mount(self) -> None:
        assert self.table is not None
        self.table.add_columns("Prayer", "Time", "Reminder", "")
        for message in self.config_manager.errors():
            self.notify(message, title="Configuration", severity="warning")
        if self._delivery is not None:
            self._delivery.start()
        self._unsubscribe = self.session.clock.subscribe(self._on_tick)
        await self._refresh(force=False)
        self.session.clock.start()

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self.session.stop()
        if self._delivery is not None:
            self._delivery.shutdown()

    async def action_refresh(self) -> None:
        await self._refresh(force=False)

    async def action_force_refresh(self) -> None:
        await self._refresh(force=True)

    async def _refresh(self, force: bool) -> None:
        self.status_line.update("Loading prayer times…")
        loop = asyncio.get_running_loop()
        # Network and cache I/O stay off the event loop.
        await loop.run_in_executor(None, lambda: self.session.refresh(force=force))
        self.render_schedule(self.session.now())

    def _on_tick(self, now: datetime) -> None:
        self.call_from_thread(self.render_schedule, now)

    def _on_alert(self, title: str, body: str) -> None:
        self.call_from_thread(self.notify, body, title=title, timeout=30)

    def render_schedule(self, now: datetime) -> None:
        schedule = self.session.today
        if schedule is not None:
            location = schedule.location.display_name or schedule.location.coordinate_string
            self.title_line.update(f"{location} · {schedule.day:%A, %B %d, %Y} · {schedule.hijri_date}")
        self.status_line.update(status_text(self.session, now))
        if self.table is None:
            return
        self.table.clear()
        if schedule is None:
            return
        for row in schedule_rows(schedule, self.session, now):
            self.table.add_row(*row)
