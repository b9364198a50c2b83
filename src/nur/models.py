from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
import math

from .errors import InvalidScheduleError, UnknownPrayerError

PRAYER_NAMES: tuple[str, ...] = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

NOTIFICATION_TIMING_OPTIONS: tuple[int, ...] = (0, 5, 10, 15)

EARTH_RADIUS_KM = 6371.0
SIGNIFICANT_DISTANCE_KM = 50.0


def timing_display_name(minutes: int) -> str:
    if minutes == 0:
        return "At prayer time"
    return f"{minutes} minutes before"


@dataclass(frozen=True, slots=True)
class Location:
    latitude: float
    longitude: float
    city: str = ""
    country: str = ""
    is_manual: bool = False

    @property
    def display_name(self) -> str:
        if not self.country:
            return self.city
        return f"{self.city}, {self.country}"

    @property
    def coordinate_string(self) -> str:
        lat_dir = "N" if self.latitude >= 0 else "S"
        lon_dir = "E" if self.longitude >= 0 else "W"
        return f"{abs(self.latitude):.4f}°{lat_dir}, {abs(self.longitude):.4f}°{lon_dir}"

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    def same_place(self, other: Location | None) -> bool:
        if other is None:
            return False
        return self.latitude == other.latitude and self.longitude == other.longitude

    def distance_to(self, other: Location) -> float:
        """Great-circle distance in kilometres (haversine)."""
        lat1 = math.radians(self.latitude)
        lat2 = math.radians(other.latitude)
        d_lat = lat2 - lat1
        d_lon = math.radians(other.longitude - self.longitude)
        a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
        return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    def has_significant_change(self, other: Location) -> bool:
        return self.distance_to(other) > SIGNIFICANT_DISTANCE_KM

    def to_dict(self) -> dict[str, object]:
        return {
            "lat": self.latitude,
            "lon": self.longitude,
            "city": self.city,
            "country": self.country,
            "is_manual": self.is_manual,
        }

    @classmethod
    def from_dict(cls, values: dict[str, object]) -> "Location":
        return cls(
            latitude=float(values["lat"]),  # type: ignore[arg-type]
            longitude=float(values["lon"]),  # type: ignore[arg-type]
            city=str(values.get("city", "")),
            country=str(values.get("country", "")),
            is_manual=bool(values.get("is_manual", False)),
        )


class CalculationMethod(int, Enum):
    JAFARI = 0
    KARACHI = 1
    ISNA = 2
    MUSLIM_WORLD_LEAGUE = 3
    UMM_AL_QURA = 4
    EGYPTIAN = 5
    TEHRAN = 7
    GULF = 8
    KUWAIT = 9
    QATAR = 10
    SINGAPORE = 11
    FRANCE = 12
    TURKEY = 13
    RUSSIA = 14

    @property
    def api_value(self) -> int:
        return int(self.value)

    @property
    def display_name(self) -> str:
        return _METHOD_TEXT[self][0]

    @property
    def short_name(self) -> str:
        return _METHOD_TEXT[self][1]

    @property
    def description(self) -> str:
        return _METHOD_TEXT[self][2]

    @classmethod
    def default(cls) -> "CalculationMethod":
        return cls.MUSLIM_WORLD_LEAGUE

    @classmethod
    def from_value(cls, value: int | str | None) -> "CalculationMethod":
        try:
            return cls(int(value))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return cls.default()

    @classmethod
    def recommended(cls, country_code: str) -> "CalculationMethod":
        return _COUNTRY_METHODS.get(country_code.strip().upper(), cls.default())


_METHOD_TEXT: dict[CalculationMethod, tuple[str, str, str]] = {
    CalculationMethod.MUSLIM_WORLD_LEAGUE: ("Muslim World League", "MWL", "Widely used globally, moderate approach"),
    CalculationMethod.ISNA: ("Islamic Society of North America (ISNA)", "ISNA", "Used primarily in North America"),
    CalculationMethod.EGYPTIAN: ("Egyptian General Authority of Survey", "Egyptian", "Used in Egypt and surrounding regions"),
    CalculationMethod.UMM_AL_QURA: ("Umm Al-Qura University, Makkah", "Umm Al-Qura", "Official method used in Saudi Arabia"),
    CalculationMethod.KARACHI: ("University of Islamic Sciences, Karachi", "Karachi", "Used in Pakistan and parts of South Asia"),
    CalculationMethod.TEHRAN: ("Institute of Geophysics, University of Tehran", "Tehran", "Used in Iran"),
    CalculationMethod.JAFARI: ("Shia Ithna-Ashari, Leva Institute, Qum", "Jafari", "Used by Shia communities"),
    CalculationMethod.GULF: ("Gulf Region", "Gulf", "Used in Gulf countries"),
    CalculationMethod.KUWAIT: ("Kuwait", "Kuwait", "Official method for Kuwait"),
    CalculationMethod.QATAR: ("Qatar", "Qatar", "Official method for Qatar"),
    CalculationMethod.SINGAPORE: ("Majlis Ugama Islam Singapura, Singapore", "Singapore", "Official method for Singapore"),
    CalculationMethod.FRANCE: ("Union Organization Islamic de France", "France", "Official method for France"),
    CalculationMethod.TURKEY: ("Diyanet İşleri Başkanlığı, Turkey", "Turkey", "Official method for Turkey"),
    CalculationMethod.RUSSIA: ("Spiritual Administration of Muslims of Russia", "Russia", "Official method for Russia"),
}

_COUNTRY_METHODS: dict[str, CalculationMethod] = {
    "US": CalculationMethod.ISNA,
    "CA": CalculationMethod.ISNA,
    "EG": CalculationMethod.EGYPTIAN,
    "SA": CalculationMethod.UMM_AL_QURA,
    "PK": CalculationMethod.KARACHI,
    "IN": CalculationMethod.KARACHI,
    "BD": CalculationMethod.KARACHI,
    "IR": CalculationMethod.TEHRAN,
    "KW": CalculationMethod.KUWAIT,
    "QA": CalculationMethod.QATAR,
    "SG": CalculationMethod.SINGAPORE,
    "FR": CalculationMethod.FRANCE,
    "TR": CalculationMethod.TURKEY,
    "RU": CalculationMethod.RUSSIA,
    "AE": CalculationMethod.GULF,
    "OM": CalculationMethod.GULF,
    "BH": CalculationMethod.GULF,
}


@dataclass(frozen=True, slots=True)
class PrayerSchedule:
    """One day's five prayer timestamps for a location.

    Timestamps are timezone-aware and strictly increasing in prayer order.
    All queries take an explicit ``now`` so they stay pure.
    """

    day: date
    location: Location
    fajr: datetime
    dhuhr: datetime
    asr: datetime
    maghrib: datetime
    isha: datetime
    hijri_date: str = ""

    def __post_init__(self) -> None:
        prayers = self.all_prayers()
        if any(moment.tzinfo is None for _, moment in prayers):
            raise InvalidScheduleError("Prayer timestamps must be timezone-aware")
        for (name, earlier), (later_name, later) in zip(prayers, prayers[1:]):
            if not earlier < later:
                raise InvalidScheduleError(
                    f"{later_name} ({later:%H:%M}) must come after {name} ({earlier:%H:%M})"
                )

    def all_prayers(self) -> list[tuple[str, datetime]]:
        return [
            ("Fajr", self.fajr),
            ("Dhuhr", self.dhuhr),
            ("Asr", self.asr),
            ("Maghrib", self.maghrib),
            ("Isha", self.isha),
        ]

    def time_of(self, name: str) -> datetime:
        for prayer, moment in self.all_prayers():
            if prayer == name:
                return moment
        raise UnknownPrayerError(name)

    def current_prayer(self, now: datetime) -> tuple[str, datetime] | None:
        if now < self.fajr:
            return None
        passed = [item for item in self.all_prayers() if item[1] <= now]
        return passed[-1]

    def next_prayer(self, now: datetime) -> tuple[str, datetime] | None:
        for item in self.all_prayers():
            if item[1] > now:
                return item
        return None

    def remaining_count(self, now: datetime) -> int:
        return sum(1 for _, moment in self.all_prayers() if moment > now)

    def has_passed(self, name: str, now: datetime) -> bool:
        # Unknown names are reported as not passed rather than raising.
        try:
            return self.time_of(name) <= now
        except UnknownPrayerError:
            return False

    def to_record(self) -> dict[str, object]:
        record: dict[str, object] = {
            "date": self.day.isoformat(),
            "location": self.location.to_dict(),
        }
        for name, moment in self.all_prayers():
            record[name.lower()] = moment.isoformat()
        record["hijri_date"] = self.hijri_date
        return record

    @classmethod
    def from_record(cls, record: dict[str, object]) -> "PrayerSchedule":
        def moment(key: str) -> datetime:
            return datetime.fromisoformat(str(record[key]))

        return cls(
            day=date.fromisoformat(str(record["date"])),
            location=Location.from_dict(record["location"]),  # type: ignore[arg-type]
            fajr=moment("fajr"),
            dhuhr=moment("dhuhr"),
            asr=moment("asr"),
            maghrib=moment("maghrib"),
            isha=moment("isha"),
            hijri_date=str(record.get("hijri_date", "")),
        )


@dataclass(frozen=True, slots=True)
class ScheduledReminder:
    prayer: str
    fire_at: datetime
    title: str
    body: str
    lead_minutes: int = 0
    identifier: str = field(default="")

    def __post_init__(self) -> None:
        if not self.identifier:
            object.__setattr__(self, "identifier", reminder_id(self.prayer, self.fire_at))


def reminder_id(prayer: str, fire_at: datetime) -> str:
    return f"{prayer}_{int(fire_at.timestamp())}"
