from datetime import date, datetime, time, timedelta, timezone
import unittest
from zoneinfo import ZoneInfo

from nur.timeutils import (
    combine_local,
    day_of,
    format_compact_time_until,
    format_prayer_time,
    format_time_until,
    iter_days,
    parse_hhmm,
    sanitize_time,
)

TZ = ZoneInfo("Asia/Jakarta")


class TimeUtilsTest(unittest.TestCase):
    def test_parse_hhmm(self) -> None:
        self.assertEqual(parse_hhmm("05:30"), time(5, 30))
        self.assertEqual(parse_hhmm(" 19:07 "), time(19, 7))

    def test_parse_hhmm_rejects_garbage(self) -> None:
        for value in ("0530", "5.45", "ab:cd", "24:00", "12:60", ""):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_hhmm(value)

    def test_sanitize_time_strips_zone_annotation(self) -> None:
        self.assertEqual(sanitize_time("04:41 (WIB)"), "04:41")
        self.assertEqual(sanitize_time("04:41"), "04:41")

    def test_combine_local_is_aware(self) -> None:
        moment = combine_local(date(2024, 3, 11), time(4, 41), TZ)
        self.assertEqual(moment.utcoffset(), timedelta(hours=7))
        self.assertIsNotNone(combine_local(date(2024, 3, 11), time(4, 41)).tzinfo)

    def test_day_of_uses_zone(self) -> None:
        late_utc = datetime(2024, 3, 11, 18, 30, tzinfo=timezone.utc)
        self.assertEqual(day_of(late_utc, TZ), date(2024, 3, 12))
        self.assertEqual(day_of(date(2024, 3, 11)), date(2024, 3, 11))

    def test_iter_days_is_inclusive(self) -> None:
        days = list(iter_days(date(2024, 2, 28), date(2024, 3, 1)))
        self.assertEqual(days, [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)])
        self.assertEqual(list(iter_days(date(2024, 3, 2), date(2024, 3, 1))), [])

    def test_format_prayer_time(self) -> None:
        self.assertEqual(format_prayer_time(datetime(2024, 3, 11, 4, 41, tzinfo=TZ)), "4:41 AM")
        self.assertEqual(format_prayer_time(datetime(2024, 3, 11, 18, 5, tzinfo=TZ)), "6:05 PM")

    def test_format_time_until(self) -> None:
        now = datetime(2024, 3, 11, 12, 0, tzinfo=TZ)
        self.assertEqual(format_time_until(now, now), "now")
        self.assertEqual(format_time_until(now + timedelta(seconds=30), now), "in less than a minute")
        self.assertEqual(format_time_until(now + timedelta(minutes=1), now), "in 1 minute")
        self.assertEqual(format_time_until(now + timedelta(hours=2), now), "in 2 hours")
        self.assertEqual(format_time_until(now + timedelta(hours=1, minutes=34), now), "in 1 hour 34 minutes")

    def test_format_compact_time_until(self) -> None:
        now = datetime(2024, 3, 11, 12, 0, tzinfo=TZ)
        self.assertEqual(format_compact_time_until(now - timedelta(minutes=1), now), "now")
        self.assertEqual(format_compact_time_until(now + timedelta(seconds=20), now), "<1m")
        self.assertEqual(format_compact_time_until(now + timedelta(minutes=45), now), "45m")
        self.assertEqual(format_compact_time_until(now + timedelta(hours=3), now), "3h")
        self.assertEqual(format_compact_time_until(now + timedelta(hours=2, minutes=34), now), "2h 34m")


if __name__ == "__main__":
    unittest.main()
