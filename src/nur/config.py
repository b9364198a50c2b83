from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import tomllib

from .models import PRAYER_NAMES, CalculationMethod, Location
from .services.timing_source import ALADHAN_API


def _default_config_root() -> Path:
    return Path.home() / ".config" / "nur"


def _float_or_none(value: object) -> float | None:
    if value in (None, "", "nan"):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


@dataclass(slots=True)
class LocationSettings:
    city: str = ""
    country: str = ""
    country_code: str = ""
    latitude: float | None = None
    longitude: float | None = None
    is_manual: bool = False
    use_geolocation: bool = True
    auto_update: bool = False

    def to_location(self) -> Location | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Location(
            latitude=self.latitude,
            longitude=self.longitude,
            city=self.city,
            country=self.country,
            is_manual=self.is_manual,
        )

    def remember(self, location: Location, country_code: str = "") -> None:
        self.latitude = location.latitude
        self.longitude = location.longitude
        self.city = location.city
        self.country = location.country
        self.is_manual = location.is_manual
        if country_code:
            self.country_code = country_code


@dataclass(slots=True)
class ReminderPreferences:
    enabled_prayers: dict[str, bool] = field(default_factory=lambda: {name: True for name in PRAYER_NAMES})
    notification_timings: dict[str, int] = field(default_factory=lambda: {name: 0 for name in PRAYER_NAMES})

    def is_enabled(self, prayer: str) -> bool:
        return self.enabled_prayers.get(prayer, True)

    def lead_minutes(self, prayer: str) -> int:
        return max(0, self.notification_timings.get(prayer, 0))

    def set_enabled(self, prayer: str, enabled: bool) -> None:
        self.enabled_prayers[prayer] = enabled

    def set_lead_minutes(self, prayer: str, minutes: int) -> None:
        if minutes < 0:
            raise ValueError(f"Lead time must not be negative: {minutes}")
        self.notification_timings[prayer] = minutes

    @property
    def enabled_count(self) -> int:
        return sum(1 for name in PRAYER_NAMES if self.is_enabled(name))

    @classmethod
    def from_dict(cls, enabled: dict[str, object], timings: dict[str, object]) -> "ReminderPreferences":
        prefs = cls()
        for name, value in enabled.items():
            if not isinstance(value, bool):
                raise ValueError(f"enabled_prayers.{name} must be true or false")
            prefs.enabled_prayers[name] = value
        for name, value in timings.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"notification_timings.{name} must be a non-negative integer")
            prefs.notification_timings[name] = value
        return prefs


@dataclass(slots=True)
class PrayerSettings:
    calculation_method: CalculationMethod = CalculationMethod.MUSLIM_WORLD_LEAGUE
    cache_days: int = 30
    request_timeout: float = 10.0
    base_url: str = ALADHAN_API
    strict_range: bool = True


@dataclass(slots=True)
class NurConfig:
    location: LocationSettings
    prayer_settings: PrayerSettings
    reminders: ReminderPreferences
    user_name: str = ""

    @classmethod
    def default(cls) -> "NurConfig":
        return cls(
            location=LocationSettings(),
            prayer_settings=PrayerSettings(),
            reminders=ReminderPreferences(),
        )

    def to_dict(self) -> dict:
        return {
            "user": {"name": self.user_name},
            "location": {
                "city": self.location.city,
                "country": self.location.country,
                "country_code": self.location.country_code,
                "latitude": self.location.latitude,
                "longitude": self.location.longitude,
                "is_manual": self.location.is_manual,
                "use_geolocation": self.location.use_geolocation,
                "auto_update": self.location.auto_update,
            },
            "prayer_settings": {
                "calculation_method": self.prayer_settings.calculation_method.api_value,
                "cache_days": self.prayer_settings.cache_days,
                "request_timeout": self.prayer_settings.request_timeout,
                "base_url": self.prayer_settings.base_url,
                "strict_range": self.prayer_settings.strict_range,
            },
            "enabled_prayers": dict(self.reminders.enabled_prayers),
            "notification_timings": dict(self.reminders.notification_timings),
        }


def _toml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class ConfigManager:
    """Simple TOML configuration loader."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path = config_path or (_default_config_root() / "config.toml")
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self._errors: list[str] = []

    def errors(self) -> list[str]:
        return list(self._errors)

    def load(self) -> NurConfig:
        self._errors.clear()
        if not self.config_path.exists():
            config = NurConfig.default()
            self._write(config)
            return config

        try:
            with self.config_path.open("rb") as handle:
                raw = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            self._errors.append(f"Invalid config file, using defaults: {exc}")
            return NurConfig.default()

        location_cfg = raw.get("location", {})
        settings_cfg = raw.get("prayer_settings", {})

        method_value = settings_cfg.get("calculation_method", CalculationMethod.default().api_value)
        method = CalculationMethod.from_value(method_value)
        if str(method.api_value) != str(method_value).strip():
            self._errors.append(f"Unknown calculation_method {method_value!r}, using {method.display_name}")

        try:
            cache_days = max(1, int(settings_cfg.get("cache_days", 30)))
        except (TypeError, ValueError):
            self._errors.append("Invalid prayer_settings.cache_days, using 30")
            cache_days = 30

        try:
            timeout = float(settings_cfg.get("request_timeout", 10.0))
        except (TypeError, ValueError):
            self._errors.append("Invalid prayer_settings.request_timeout, using 10 seconds")
            timeout = 10.0

        try:
            reminders = ReminderPreferences.from_dict(
                raw.get("enabled_prayers", {}),
                raw.get("notification_timings", {}),
            )
        except ValueError as exc:
            self._errors.append(f"Invalid reminder preferences: {exc}")
            reminders = ReminderPreferences()

        return NurConfig(
            location=LocationSettings(
                city=str(location_cfg.get("city", "")),
                country=str(location_cfg.get("country", "")),
                country_code=str(location_cfg.get("country_code", "")),
                latitude=_float_or_none(location_cfg.get("latitude")),
                longitude=_float_or_none(location_cfg.get("longitude")),
                is_manual=bool(location_cfg.get("is_manual", False)),
                use_geolocation=bool(location_cfg.get("use_geolocation", True)),
                auto_update=bool(location_cfg.get("auto_update", False)),
            ),
            prayer_settings=PrayerSettings(
                calculation_method=method,
                cache_days=cache_days,
                request_timeout=timeout,
                base_url=str(settings_cfg.get("base_url", ALADHAN_API)),
                strict_range=bool(settings_cfg.get("strict_range", True)),
            ),
            reminders=reminders,
            user_name=str(raw.get("user", {}).get("name", "")),
        )

    def _write(self, config: NurConfig) -> None:
        data = config.to_dict()
        loc = data["location"]
        lines = ["[user]", f"name = {_toml_string(data['user']['name'])}", "", "[location]"]
        lines.append(f"city = {_toml_string(loc['city'])}")
        lines.append(f"country = {_toml_string(loc['country'])}")
        lines.append(f"country_code = {_toml_string(loc['country_code'])}")
        if loc["latitude"] is not None:
            lines.append(f"latitude = {loc['latitude']}")
        if loc["longitude"] is not None:
            lines.append(f"longitude = {loc['longitude']}")
        lines.append(f"is_manual = {str(loc['is_manual']).lower()}")
        lines.append(f"use_geolocation = {str(loc['use_geolocation']).lower()}")
        lines.append(f"auto_update = {str(loc['auto_update']).lower()}")
        settings = data["prayer_settings"]
        lines.extend([
            "",
            "[prayer_settings]",
            f"calculation_method = {settings['calculation_method']}",
            f"cache_days = {settings['cache_days']}",
            f"request_timeout = {settings['request_timeout']}",
            f"base_url = {_toml_string(settings['base_url'])}",
            f"strict_range = {str(settings['strict_range']).lower()}",
            "",
            "[enabled_prayers]",
        ])
        for prayer, value in data["enabled_prayers"].items():
            lines.append(f"{prayer} = {str(value).lower()}")
        lines.extend(["", "[notification_timings]"])
        for prayer, value in data["notification_timings"].items():
            lines.append(f"{prayer} = {value}")
        self.config_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    def save(self, config: NurConfig) -> None:
        self._write(config)
