from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any

from ..errors import CacheError, CacheErrorKind, InvalidScheduleError
from ..models import Location, PrayerSchedule
from ..timeutils import day_of, local_now

logger = logging.getLogger(__name__)


def default_cache_path() -> Path:
    return Path.home() / ".cache" / "nur" / "prayer_times.json"


class ScheduleCache:
    """JSON-file store holding one prayer schedule per (day, coordinates).

    The file is read lazily on first access. Entries keep insertion order so
    the most recently stored schedule for a day is the last one in the map.
    """

    def __init__(self, path: Path | None = None, tz: tzinfo | None = None) -> None:
        self.path = path or default_cache_path()
        self.tz = tz
        self._lock = Lock()
        self._entries: dict[str, dict[str, Any]] | None = None

    @staticmethod
    def _key(day: date, location: Location) -> str:
        # 30 and 30.0 (and -0.0 and 0.0) must share a key.
        lat = float(location.latitude) + 0.0
        lon = float(location.longitude) + 0.0
        return f"{day.isoformat()}:{lat!r}:{lon!r}"

    def _ensure_loaded_locked(self) -> dict[str, dict[str, Any]]:
        if self._entries is not None:
            return self._entries
        if not self.path.exists():
            self._entries = {}
            return self._entries
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CacheError(CacheErrorKind.UNAVAILABLE, str(exc)) from exc
        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as exc:
            # Start over so the next put rewrites a clean file.
            self._entries = {}
            raise CacheError(CacheErrorKind.CORRUPT, f"{self.path}: {exc}") from exc
        if not isinstance(data, dict):
            self._entries = {}
            raise CacheError(CacheErrorKind.CORRUPT, f"{self.path}: expected an object")
        self._entries = data
        return self._entries

    def _persist_locked(self, entries: dict[str, dict[str, Any]]) -> None:
        payload = json.dumps(entries, indent=2)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise CacheError(CacheErrorKind.UNAVAILABLE, str(exc)) from exc

    def get(self, day: date | datetime, location: Location | None = None) -> PrayerSchedule | None:
        target = day_of(day, self.tz)
        prefix = f"{target.isoformat()}:"
        with self._lock:
            entries = self._ensure_loaded_locked()
            if location is not None:
                record = entries.get(self._key(target, location))
            else:
                matches = [value for key, value in entries.items() if key.startswith(prefix)]
                record = matches[-1] if matches else None
        if record is None:
            return None
        try:
            return PrayerSchedule.from_record(record)
        except (KeyError, TypeError, ValueError, InvalidScheduleError) as exc:
            raise CacheError(CacheErrorKind.CORRUPT, f"bad record for {target}: {exc}") from exc

    def put(self, schedule: PrayerSchedule) -> None:
        key = self._key(schedule.day, schedule.location)
        with self._lock:
            try:
                entries = self._ensure_loaded_locked()
            except CacheError as exc:
                if exc.kind is not CacheErrorKind.CORRUPT:
                    raise
                logger.warning("Discarding corrupt schedule cache %s", self.path)
                entries = self._entries if self._entries is not None else {}
            # Upsert moves the entry to the end so it counts as most recent.
            entries.pop(key, None)
            entries[key] = schedule.to_record()
            self._persist_locked(entries)
        logger.debug("Cached schedule for %s at %s", schedule.day, schedule.location.coordinate_string)

    def evict_older_than(self, max_age_days: int, now: datetime | None = None) -> int:
        today = day_of(now or local_now(self.tz), self.tz)
        cutoff = today - timedelta(days=max_age_days)
        with self._lock:
            entries = self._ensure_loaded_locked()
            stale = []
            for key, record in entries.items():
                try:
                    record_day = date.fromisoformat(str(record.get("date") or key.split(":", 1)[0]))
                except (AttributeError, ValueError):
                    stale.append(key)
                    continue
                if record_day < cutoff:
                    stale.append(key)
            if not stale:
                return 0
            for key in stale:
                entries.pop(key, None)
            self._persist_locked(entries)
        logger.info("Evicted %d cached schedule(s) older than %s", len(stale), cutoff)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ensure_loaded_locked())
