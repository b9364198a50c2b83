from __future__ import annotations

from datetime import date, datetime, time, tzinfo
import logging
from typing import Any, Protocol

import httpx

from ..errors import InvalidScheduleError, TimingSourceError, TimingSourceErrorKind
from ..models import CalculationMethod, Location, PrayerSchedule
from ..timeutils import combine_local, parse_hhmm, sanitize_time

logger = logging.getLogger(__name__)

ALADHAN_API = "https://api.aladhan.com/v1/timings"

# Noon keeps the request timestamp inside the same calendar day in nearby zones.
_REQUEST_ANCHOR = time(12, 0)


class TimingSource(Protocol):
    def fetch(self, day: date, location: Location, method: CalculationMethod) -> PrayerSchedule:
        ...


class AladhanClient:
    """Fetch one day's schedule from the Aladhan ``timings`` endpoint."""

    def __init__(
        self,
        base_url: str = ALADHAN_API,
        timeout: float = 10.0,
        tz: tzinfo | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.tz = tz
        self._client = client

    def request_params(self, day: date, location: Location, method: CalculationMethod) -> tuple[str, dict[str, Any]]:
        if not location.is_valid():
            raise TimingSourceError(
                TimingSourceErrorKind.INVALID_REQUEST,
                f"coordinates out of range: {location.latitude}, {location.longitude}",
            )
        try:
            method_code = CalculationMethod(method).api_value
        except ValueError as exc:
            raise TimingSourceError(TimingSourceErrorKind.INVALID_REQUEST, f"unknown method {method!r}") from exc
        timestamp = int(combine_local(day, _REQUEST_ANCHOR, self.tz).timestamp())
        params = {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "method": method_code,
        }
        return f"{self.base_url}/{timestamp}", params

    def fetch(self, day: date, location: Location, method: CalculationMethod) -> PrayerSchedule:
        url, params = self.request_params(day, location, method)
        logger.info("Fetching prayer times for %s (%s)", day, location.display_name or location.coordinate_string)
        try:
            if self._client is not None:
                response = self._client.get(url, params=params, timeout=self.timeout)
            else:
                response = httpx.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TimingSourceError(
                TimingSourceErrorKind.UNREACHABLE, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TimingSourceError(TimingSourceErrorKind.UNREACHABLE, str(exc) or type(exc).__name__) from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise TimingSourceError(TimingSourceErrorKind.BAD_RESPONSE, "response is not JSON") from exc
        return self.parse_payload(payload, day, location)

    def parse_payload(self, payload: Any, day: date, location: Location) -> PrayerSchedule:
        try:
            data = payload["data"]
            timings = data["timings"]
            hijri = data["date"]["hijri"]
            hijri_date = f"{hijri['day']} {hijri['month']['en']} {hijri['year']}"
            moments = {
                name: self._parse_time(timings[name.capitalize()], day)
                for name in ("fajr", "dhuhr", "asr", "maghrib", "isha")
            }
        except (KeyError, TypeError) as exc:
            raise TimingSourceError(TimingSourceErrorKind.BAD_RESPONSE, f"missing field {exc}") from exc
        try:
            return PrayerSchedule(day=day, location=location, hijri_date=hijri_date, **moments)
        except InvalidScheduleError as exc:
            raise TimingSourceError(TimingSourceErrorKind.BAD_RESPONSE, str(exc)) from exc

    def _parse_time(self, value: Any, day: date) -> datetime:
        if not isinstance(value, str):
            raise TimingSourceError(TimingSourceErrorKind.BAD_RESPONSE, f"time is not a string: {value!r}")
        try:
            moment = parse_hhmm(sanitize_time(value))
        except ValueError as exc:
            raise TimingSourceError(TimingSourceErrorKind.BAD_RESPONSE, str(exc)) from exc
        return combine_local(day, moment, self.tz)
