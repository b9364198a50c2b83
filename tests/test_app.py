from datetime import date, datetime
import unittest
from zoneinfo import ZoneInfo

from nur.config import NurConfig
from nur.errors import TimingSourceError, TimingSourceErrorKind
from nur.models import Location, PrayerSchedule
from nur.tui.app import schedule_rows, status_text

TZ = ZoneInfo("Europe/Istanbul")
DAY = date(2024, 6, 1)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(DAY.year, DAY.month, DAY.day, hour, minute, tzinfo=TZ)


SCHEDULE = PrayerSchedule(
    day=DAY,
    location=Location(41.0082, 28.9784, "Istanbul", "Turkey"),
    fajr=at(3, 25),
    dhuhr=at(13, 5),
    asr=at(17, 0),
    maghrib=at(20, 30),
    isha=at(22, 20),
)


class StubSession:
    def __init__(self, today=None, last_error=None) -> None:
        self.today = today
        self.last_error = last_error
        self.config = NurConfig.default()


class StatusTextTest(unittest.TestCase):
    def test_next_prayer_summary(self) -> None:
        text = status_text(StubSession(SCHEDULE), at(15, 30))
        self.assertEqual(text, "Next: Asr in 1 hour 30 minutes · 3 remaining today")

    def test_after_isha(self) -> None:
        self.assertEqual(status_text(StubSession(SCHEDULE), at(23, 0)), "All prayers for today have passed.")

    def test_error_message(self) -> None:
        error = TimingSourceError(TimingSourceErrorKind.UNREACHABLE, "timeout")
        text = status_text(StubSession(last_error=error), at(12, 0))
        self.assertEqual(text, "Could not reach the prayer times service. Check your connection.")

    def test_not_loaded(self) -> None:
        self.assertEqual(status_text(StubSession(), at(12, 0)), "Prayer times are not loaded yet.")


class ScheduleRowsTest(unittest.TestCase):
    def test_rows_mark_current_and_reminder_state(self) -> None:
        session = StubSession(SCHEDULE)
        session.config.reminders.set_enabled("Fajr", False)
        session.config.reminders.set_lead_minutes("Dhuhr", 10)

        rows = schedule_rows(SCHEDULE, session, at(14, 0))

        self.assertEqual(rows[0], ("Fajr", "3:25 AM", "Off", "passed"))
        self.assertEqual(rows[1][0], "▶ Dhuhr")
        self.assertEqual(rows[1][1], "1:05 PM")
        self.assertEqual(rows[1][3], "passed")
        self.assertEqual(rows[2][3], "3h")
        self.assertEqual(rows[4], ("Isha", "10:20 PM", "At prayer time", "8h 20m"))


if __name__ == "__main__":
    unittest.main()
