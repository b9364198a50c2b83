from __future__ import annotations

from datetime import datetime, timedelta
import logging
from threading import Lock
from typing import Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from ..errors import SchedulingError, SchedulingErrorKind
from ..models import PrayerSchedule, ScheduledReminder
from ..timeutils import local_now

logger = logging.getLogger(__name__)


class ReminderPreferencesLike(Protocol):
    def is_enabled(self, prayer: str) -> bool:
        ...

    def lead_minutes(self, prayer: str) -> int:
        ...


class ReminderDelivery(Protocol):
    """Timed alert capability supplied by the host platform."""

    def schedule(self, identifier: str, title: str, body: str, fire_at: datetime) -> None:
        ...

    def cancel(self, identifier: str) -> None:
        ...

    def cancel_all(self) -> None:
        ...


def reminder_title(prayer: str) -> str:
    return f"{prayer} Prayer"


def reminder_body(prayer: str, lead_minutes: int, user_name: str = "") -> str:
    if lead_minutes == 0:
        text = f"{prayer} prayer now"
    else:
        text = f"{prayer} prayer in {lead_minutes} minutes"
    user_name = user_name.strip()
    return f"{user_name}, {text}" if user_name else text


class InMemoryDelivery:
    """Keeps registered alerts in a dict; used headless and in tests."""

    def __init__(self) -> None:
        self.alerts: dict[str, tuple[str, str, datetime]] = {}

    def schedule(self, identifier: str, title: str, body: str, fire_at: datetime) -> None:
        self.alerts[identifier] = (title, body, fire_at)

    def cancel(self, identifier: str) -> None:
        self.alerts.pop(identifier, None)

    def cancel_all(self) -> None:
        self.alerts.clear()


AlertHandler = Callable[[str, str], None]


class APSchedulerDelivery:
    """Fire alerts in-process with one APScheduler date job per reminder."""

    JOB_PREFIX = "reminder:"

    def __init__(
        self,
        handler: AlertHandler,
        scheduler: BackgroundScheduler | None = None,
        misfire_grace_seconds: int = 60,
    ) -> None:
        self.handler = handler
        self.scheduler = scheduler or BackgroundScheduler()
        self.misfire_grace_seconds = misfire_grace_seconds

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def schedule(self, identifier: str, title: str, body: str, fire_at: datetime) -> None:
        self.scheduler.add_job(
            self.handler,
            trigger=DateTrigger(run_date=fire_at),
            id=self.JOB_PREFIX + identifier,
            args=[title, body],
            replace_existing=True,
            misfire_grace_time=self.misfire_grace_seconds,
            coalesce=True,
            max_instances=1,
        )

    def cancel(self, identifier: str) -> None:
        try:
            self.scheduler.remove_job(self.JOB_PREFIX + identifier)
        except JobLookupError:
            pass

    def cancel_all(self) -> None:
        for job in self.scheduler.get_jobs():
            if not job.id.startswith(self.JOB_PREFIX):
                continue
            try:
                self.scheduler.remove_job(job.id)
            except JobLookupError:
                pass


class ReminderScheduler:
    """Turn a prayer schedule and preferences into registered reminders.

    Every ``materialize`` call cancels everything first and rebuilds the full
    set, so a stale schedule or preference state never leaves orphans.
    """

    def __init__(self, delivery: ReminderDelivery, clock: Callable[[], datetime] = local_now) -> None:
        self.delivery = delivery
        self.clock = clock
        self.last_failures: dict[str, SchedulingError] = {}
        self.last_cancel_error: SchedulingError | None = None
        self._registered: dict[str, ScheduledReminder] = {}
        self._lock = Lock()

    def build(
        self,
        schedule: PrayerSchedule,
        preferences: ReminderPreferencesLike,
        user_name: str = "",
        now: datetime | None = None,
    ) -> list[ScheduledReminder]:
        moment = now or self.clock()
        reminders: list[ScheduledReminder] = []
        for prayer, prayer_time in schedule.all_prayers():
            if not preferences.is_enabled(prayer):
                continue
            lead = max(0, int(preferences.lead_minutes(prayer)))
            fire_at = prayer_time - timedelta(minutes=lead)
            if fire_at <= moment:
                logger.debug("Skipping past-due %s reminder (%s)", prayer, fire_at)
                continue
            reminders.append(
                ScheduledReminder(
                    prayer=prayer,
                    fire_at=fire_at,
                    title=reminder_title(prayer),
                    body=reminder_body(prayer, lead, user_name),
                    lead_minutes=lead,
                )
            )
        return reminders

    def materialize(
        self,
        schedule: PrayerSchedule,
        preferences: ReminderPreferencesLike,
        user_name: str = "",
        now: datetime | None = None,
    ) -> list[ScheduledReminder]:
        with self._lock:
            try:
                self._cancel_all_locked()
            except SchedulingError as exc:
                # Identifiers are stable, so registering below still replaces old alerts.
                self.last_cancel_error = exc
                logger.warning("Could not cancel previous reminders: %s", exc.detail)
            else:
                self.last_cancel_error = None
            failures: dict[str, SchedulingError] = {}
            registered: list[ScheduledReminder] = []
            for reminder in self.build(schedule, preferences, user_name, now):
                try:
                    self.delivery.schedule(reminder.identifier, reminder.title, reminder.body, reminder.fire_at)
                except Exception as exc:
                    failures[reminder.prayer] = SchedulingError(
                        SchedulingErrorKind.DELIVERY_UNAVAILABLE, reminder.prayer, str(exc)
                    )
                    logger.warning("Could not schedule %s reminder: %s", reminder.prayer, exc)
                    continue
                self._registered[reminder.identifier] = reminder
                registered.append(reminder)
            self.last_failures = failures
        logger.info("Scheduled %d prayer reminder(s) for %s", len(registered), schedule.day)
        return registered

    def cancel_all(self) -> None:
        with self._lock:
            self._cancel_all_locked()

    def cancel(self, prayer: str) -> list[str]:
        with self._lock:
            identifiers = [key for key, item in self._registered.items() if item.prayer == prayer]
            for identifier in identifiers:
                try:
                    self.delivery.cancel(identifier)
                except Exception as exc:
                    raise SchedulingError(SchedulingErrorKind.DELIVERY_UNAVAILABLE, prayer, str(exc)) from exc
                self._registered.pop(identifier, None)
        if identifiers:
            logger.info("Cancelled %s reminder", prayer)
        return identifiers

    def pending(self) -> list[ScheduledReminder]:
        with self._lock:
            return sorted(self._registered.values(), key=lambda item: item.fire_at)

    def _cancel_all_locked(self) -> None:
        self._registered.clear()
        try:
            self.delivery.cancel_all()
        except Exception as exc:
            raise SchedulingError(SchedulingErrorKind.DELIVERY_UNAVAILABLE, "all", str(exc)) from exc
