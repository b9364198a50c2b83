from __future__ import annotations

from datetime import date, datetime
import unittest
from zoneinfo import ZoneInfo

import httpx

from nur.errors import TimingSourceError, TimingSourceErrorKind
from nur.models import CalculationMethod, Location
from nur.services.timing_source import AladhanClient

TZ = ZoneInfo("Europe/London")
LONDON = Location(latitude=51.5074, longitude=-0.1278, city="London", country="United Kingdom")
DAY = date(2024, 3, 15)


def aladhan_payload(**timings: str) -> dict:
    values = {
        "Fajr": "04:55",
        "Sunrise": "06:13",
        "Dhuhr": "12:14",
        "Asr": "15:21",
        "Maghrib": "18:07",
        "Isha": "19:30",
    }
    values.update(timings)
    return {
        "code": 200,
        "status": "OK",
        "data": {
            "timings": values,
            "date": {
                "hijri": {
                    "day": "5",
                    "month": {"number": 9, "en": "Ramaḍān", "ar": "رمضان"},
                    "year": "1445",
                }
            },
        },
    }


class AladhanClientTests(unittest.TestCase):
    def _client(self, handler) -> AladhanClient:
        transport = httpx.MockTransport(handler)
        return AladhanClient(
            base_url="https://api.example.test/v1/timings",
            tz=TZ,
            client=httpx.Client(transport=transport),
        )

    def test_builds_request_and_parses_schedule(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=aladhan_payload())

        schedule = self._client(handler).fetch(DAY, LONDON, CalculationMethod.MUSLIM_WORLD_LEAGUE)

        request = seen[0]
        timestamp = int(request.url.path.rsplit("/", 1)[1])
        self.assertEqual(datetime.fromtimestamp(timestamp, TZ).date(), DAY)
        self.assertEqual(request.url.params["method"], "3")
        self.assertEqual(float(request.url.params["latitude"]), LONDON.latitude)
        self.assertEqual(float(request.url.params["longitude"]), LONDON.longitude)

        self.assertEqual(schedule.day, DAY)
        self.assertEqual(schedule.location, LONDON)
        self.assertEqual(schedule.fajr, datetime(2024, 3, 15, 4, 55, tzinfo=TZ))
        self.assertEqual(schedule.isha, datetime(2024, 3, 15, 19, 30, tzinfo=TZ))
        self.assertEqual(schedule.hijri_date, "5 Ramaḍān 1445")

    def test_strips_timezone_annotation(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=aladhan_payload(Fajr="04:55 (GMT)", Isha="19:30 (GMT)"))

        schedule = self._client(handler).fetch(DAY, LONDON, CalculationMethod.ISNA)

        self.assertEqual((schedule.fajr.hour, schedule.fajr.minute), (4, 55))
        self.assertEqual((schedule.isha.hour, schedule.isha.minute), (19, 30))

    def test_malformed_time_fails_whole_fetch(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=aladhan_payload(Asr="3:2x"))

        with self.assertRaises(TimingSourceError) as ctx:
            self._client(handler).fetch(DAY, LONDON, CalculationMethod.ISNA)
        self.assertIs(ctx.exception.kind, TimingSourceErrorKind.BAD_RESPONSE)

    def test_missing_hijri_is_bad_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            payload = aladhan_payload()
            del payload["data"]["date"]
            return httpx.Response(200, json=payload)

        with self.assertRaises(TimingSourceError) as ctx:
            self._client(handler).fetch(DAY, LONDON, CalculationMethod.ISNA)
        self.assertIs(ctx.exception.kind, TimingSourceErrorKind.BAD_RESPONSE)

    def test_out_of_order_times_are_bad_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=aladhan_payload(Isha="00:15"))

        with self.assertRaises(TimingSourceError) as ctx:
            self._client(handler).fetch(DAY, LONDON, CalculationMethod.ISNA)
        self.assertIs(ctx.exception.kind, TimingSourceErrorKind.BAD_RESPONSE)

    def test_non_json_body_is_bad_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        with self.assertRaises(TimingSourceError) as ctx:
            self._client(handler).fetch(DAY, LONDON, CalculationMethod.ISNA)
        self.assertIs(ctx.exception.kind, TimingSourceErrorKind.BAD_RESPONSE)

    def test_http_error_status_is_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"code": 503})

        with self.assertRaises(TimingSourceError) as ctx:
            self._client(handler).fetch(DAY, LONDON, CalculationMethod.ISNA)
        self.assertIs(ctx.exception.kind, TimingSourceErrorKind.UNREACHABLE)

    def test_timeout_is_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with self.assertRaises(TimingSourceError) as ctx:
            self._client(handler).fetch(DAY, LONDON, CalculationMethod.ISNA)
        self.assertIs(ctx.exception.kind, TimingSourceErrorKind.UNREACHABLE)

    def test_invalid_coordinates_rejected_before_request(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=aladhan_payload())

        with self.assertRaises(TimingSourceError) as ctx:
            self._client(handler).fetch(DAY, Location(latitude=95.0, longitude=0.0), CalculationMethod.ISNA)
        self.assertIs(ctx.exception.kind, TimingSourceErrorKind.INVALID_REQUEST)
        self.assertEqual(calls, [])

    def test_unknown_method_code_rejected(self) -> None:
        client = self._client(lambda request: httpx.Response(200, json=aladhan_payload()))

        with self.assertRaises(TimingSourceError) as ctx:
            client.fetch(DAY, LONDON, 6)  # type: ignore[arg-type]
        self.assertIs(ctx.exception.kind, TimingSourceErrorKind.INVALID_REQUEST)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
