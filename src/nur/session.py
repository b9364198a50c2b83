from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
import logging
from typing import Callable

from .clock import ScheduleClock
from .config import ConfigManager, NurConfig
from .errors import RangeFetchCancelled, TimingSourceError
from .models import CalculationMethod, Location, PrayerSchedule, ScheduledReminder
from .services.cache import ScheduleCache
from .services.geolocation import GeoLocator
from .services.provider import ScheduleProvider
from .services.reminders import ReminderDelivery, ReminderScheduler
from .services.timing_source import AladhanClient
from .timeutils import local_now

logger = logging.getLogger(__name__)


class PrayerSession:
    """Single owner of today's schedule, its reminders and the minute clock."""

    def __init__(
        self,
        config: NurConfig,
        provider: ScheduleProvider,
        reminders: ReminderScheduler,
        *,
        geolocator: GeoLocator | None = None,
        config_manager: ConfigManager | None = None,
        tz: tzinfo | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.reminders = reminders
        self.geolocator = geolocator
        self.config_manager = config_manager
        self.tz = tz
        self._now = now or (lambda: local_now(tz))
        self.today: PrayerSchedule | None = None
        self.last_error: Exception | None = None
        self.clock = ScheduleClock(
            loaded_day=lambda: self.today.day if self.today else None,
            on_rollover=lambda _day: self.refresh(),
            tz=tz,
            now=self._now,
        )

    @classmethod
    def create(
        cls,
        config: NurConfig,
        delivery: ReminderDelivery,
        *,
        config_manager: ConfigManager | None = None,
        cache: ScheduleCache | None = None,
        geolocator: GeoLocator | None = None,
        tz: tzinfo | None = None,
    ) -> "PrayerSession":
        settings = config.prayer_settings
        source = AladhanClient(base_url=settings.base_url, timeout=settings.request_timeout, tz=tz)
        provider = ScheduleProvider(
            source,
            cache or ScheduleCache(tz=tz),
            max_cache_days=settings.cache_days,
            strict_range=settings.strict_range,
            tz=tz,
        )
        return cls(
            config,
            provider,
            ReminderScheduler(delivery, clock=lambda: local_now(tz)),
            geolocator=geolocator or GeoLocator(),
            config_manager=config_manager,
            tz=tz,
        )

    def now(self) -> datetime:
        return self._now()

    @property
    def method(self) -> CalculationMethod:
        return self.config.prayer_settings.calculation_method

    @property
    def hijri_date(self) -> str:
        return self.today.hijri_date if self.today else ""

    def location(self) -> Location | None:
        configured = self.config.location.to_location()
        if configured is not None:
            settings = self.config.location
            if settings.auto_update and settings.use_geolocation and not configured.is_manual:
                return self._follow_device(configured)
            return configured
        if not self.config.location.use_geolocation or self.geolocator is None:
            return None
        detected = self.geolocator.detect()
        if detected is None:
            return None
        self.config.location.remember(detected.location, detected.country_code)
        if detected.country_code and self.method is CalculationMethod.default():
            self.config.prayer_settings.calculation_method = CalculationMethod.recommended(detected.country_code)
        logger.info("Detected location %s", detected.location.display_name or detected.location.coordinate_string)
        self._save()
        return detected.location

    def _follow_device(self, configured: Location) -> Location:
        """Re-detect a non-manual location, keeping it unless it moved significantly."""
        if self.geolocator is None:
            return configured
        detected = self.geolocator.detect()
        if detected is None or not configured.has_significant_change(detected.location):
            return configured
        logger.info(
            "Location moved from %s to %s",
            configured.coordinate_string,
            detected.location.coordinate_string,
        )
        self.config.location.remember(detected.location, detected.country_code)
        self._save()
        return detected.location

    def refresh(self, *, force: bool = False) -> PrayerSchedule | None:
        location = self.location()
        if location is None:
            logger.warning("No location configured; skipping prayer time refresh")
            return None
        now = self._now()
        try:
            schedule = self.provider.get_today(location, self.method, now=now, force=force)
        except TimingSourceError as exc:
            self.last_error = exc
            logger.error("Failed to fetch prayer times: %s", exc)
            return None
        self.last_error = None
        self.today = schedule
        self.schedule_reminders(now)
        return schedule

    def schedule_reminders(self, now: datetime | None = None) -> list[ScheduledReminder]:
        if self.today is None:
            return []
        return self.reminders.materialize(
            self.today,
            self.config.reminders,
            self.config.user_name,
            now=now or self._now(),
        )

    def _range(self, days: int) -> list[PrayerSchedule]:
        location = self.location()
        if location is None:
            return []
        start = self._now().date()
        try:
            return self.provider.get_range(start, start + timedelta(days=days - 1), location, self.method)
        except (TimingSourceError, RangeFetchCancelled) as exc:
            self.last_error = exc
            logger.error("Failed to load %d-day prayer times: %s", days, exc)
            return []

    def week(self) -> list[PrayerSchedule]:
        return self._range(7)

    def month(self) -> list[PrayerSchedule]:
        return self._range(30)

    def current_prayer(self, now: datetime | None = None) -> tuple[str, datetime] | None:
        if self.today is None:
            return None
        return self.today.current_prayer(now or self._now())

    def next_prayer(self, now: datetime | None = None) -> tuple[str, datetime] | None:
        if self.today is None:
            return None
        return self.today.next_prayer(now or self._now())

    def remaining_count(self, now: datetime | None = None) -> int:
        if self.today is None:
            return 0
        return self.today.remaining_count(now or self._now())

    def update_preferences(
        self,
        *,
        enabled: dict[str, bool] | None = None,
        lead_minutes: dict[str, int] | None = None,
        user_name: str | None = None,
    ) -> list[ScheduledReminder]:
        prefs = self.config.reminders
        for prayer, value in (enabled or {}).items():
            prefs.set_enabled(prayer, value)
        for prayer, minutes in (lead_minutes or {}).items():
            prefs.set_lead_minutes(prayer, minutes)
        if user_name is not None:
            self.config.user_name = user_name
        self._save()
        return self.schedule_reminders()

    def update_location(self, location: Location, country_code: str = "") -> bool:
        """Switch location; returns True when schedules were refreshed.

        Device-detected moves under the significant distance are ignored.
        """
        current = self.config.location.to_location()
        if current is not None and not location.is_manual and not current.has_significant_change(location):
            logger.debug("Ignoring minor location change to %s", location.coordinate_string)
            return False
        self.config.location.remember(location, country_code)
        self._save()
        self.refresh()
        return True

    def update_method(self, method: CalculationMethod) -> PrayerSchedule | None:
        if method is self.method and self.today is not None:
            return self.today
        self.config.prayer_settings.calculation_method = method
        self._save()
        # The cache is keyed by day and place only, so bypass it.
        return self.refresh(force=True)

    def start(self) -> None:
        if self.today is None:
            self.refresh()
        self.clock.start()

    def stop(self) -> None:
        self.clock.stop()

    def _save(self) -> None:
        if self.config_manager is not None:
            self.config_manager.save(self.config)
