from __future__ import annotations

from concurrent.futures import Future
from datetime import date, datetime, tzinfo
import logging
from threading import Event, Lock

from ..errors import CacheError, RangeFetchCancelled, TimingSourceError
from ..models import CalculationMethod, Location, PrayerSchedule
from ..timeutils import day_of, iter_days, local_now
from .cache import ScheduleCache
from .timing_source import TimingSource

logger = logging.getLogger(__name__)

MAX_CACHE_DAYS = 30

_FetchKey = tuple[date, float, float]


class ScheduleProvider:
    """Cache-then-fetch resolution of prayer schedules.

    Concurrent requests for the same day and coordinates share one network
    call. Old cache entries are evicted at most once per calendar day.
    """

    def __init__(
        self,
        source: TimingSource,
        cache: ScheduleCache,
        *,
        max_cache_days: int = MAX_CACHE_DAYS,
        strict_range: bool = True,
        tz: tzinfo | None = None,
    ) -> None:
        self.source = source
        self.cache = cache
        self.max_cache_days = max(1, max_cache_days)
        self.strict_range = strict_range
        self.tz = tz
        self.last_cache_error: CacheError | None = None
        self._inflight: dict[_FetchKey, Future] = {}
        self._inflight_lock = Lock()
        self._last_eviction: date | None = None

    def get_today(
        self,
        location: Location,
        method: CalculationMethod,
        *,
        now: datetime | None = None,
        force: bool = False,
    ) -> PrayerSchedule:
        moment = now or local_now(self.tz)
        self._maybe_evict(moment)
        return self.get_schedule(day_of(moment, self.tz), location, method, force=force)

    def get_schedule(
        self,
        day: date,
        location: Location,
        method: CalculationMethod,
        *,
        force: bool = False,
    ) -> PrayerSchedule:
        if not force:
            cached = self._read_cache(day, location)
            if cached is not None:
                logger.debug("Cache hit for %s", day)
                return cached
        return self._fetch_coalesced(day, location, method)

    def get_range(
        self,
        start: date,
        end: date,
        location: Location,
        method: CalculationMethod,
        *,
        cancel: Event | None = None,
        strict: bool | None = None,
    ) -> list[PrayerSchedule]:
        """Resolve every day from ``start`` to ``end`` inclusive, in order.

        In strict mode the first failing day aborts the range and its error
        propagates. Otherwise failing days are logged and left out.
        """
        strict = self.strict_range if strict is None else strict
        schedules: list[PrayerSchedule] = []
        for day in iter_days(start, end):
            if cancel is not None and cancel.is_set():
                raise RangeFetchCancelled(schedules)
            try:
                schedules.append(self.get_schedule(day, location, method))
            except TimingSourceError as exc:
                if strict:
                    raise
                logger.warning("Skipping %s in range fetch: %s", day, exc)
        return schedules

    def _read_cache(self, day: date, location: Location) -> PrayerSchedule | None:
        try:
            return self.cache.get(day, location)
        except CacheError as exc:
            self.last_cache_error = exc
            logger.warning("Schedule cache read failed for %s, fetching instead: %s", day, exc)
            return None

    def _fetch_coalesced(self, day: date, location: Location, method: CalculationMethod) -> PrayerSchedule:
        key: _FetchKey = (day, location.latitude, location.longitude)
        with self._inflight_lock:
            pending = self._inflight.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._inflight[key] = pending
        assert pending is not None
        if not owner:
            logger.debug("Joining in-flight fetch for %s", day)
            return pending.result()
        try:
            schedule = self.source.fetch(day, location, method)
        except BaseException as exc:
            pending.set_exception(exc)
            raise
        else:
            pending.set_result(schedule)
            self._write_cache(schedule)
            return schedule
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)

    def _write_cache(self, schedule: PrayerSchedule) -> None:
        try:
            self.cache.put(schedule)
        except CacheError as exc:
            # The fetched schedule is still returned to the caller.
            self.last_cache_error = exc
            logger.warning("Could not cache schedule for %s: %s", schedule.day, exc)

    def _maybe_evict(self, now: datetime) -> None:
        today = day_of(now, self.tz)
        if self._last_eviction == today:
            return
        self._last_eviction = today
        try:
            self.cache.evict_older_than(self.max_cache_days, now=now)
        except CacheError as exc:
            self.last_cache_error = exc
            logger.warning("Schedule cache eviction failed: %s", exc)
