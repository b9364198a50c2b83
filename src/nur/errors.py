from __future__ import annotations

from enum import Enum
from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .models import PrayerSchedule


class CacheErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    CORRUPT = "corrupt"


class TimingSourceErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    UNREACHABLE = "unreachable"
    BAD_RESPONSE = "bad_response"


class SchedulingErrorKind(str, Enum):
    DELIVERY_UNAVAILABLE = "delivery_unavailable"


class CacheError(RuntimeError):
    def __init__(self, kind: CacheErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class TimingSourceError(RuntimeError):
    def __init__(self, kind: TimingSourceErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class SchedulingError(RuntimeError):
    def __init__(self, kind: SchedulingErrorKind, prayer: str, detail: str = "") -> None:
        self.kind = kind
        self.prayer = prayer
        self.detail = detail
        super().__init__(f"{prayer}: {kind.value}" + (f" ({detail})" if detail else ""))


class InvalidScheduleError(ValueError):
    pass


class UnknownPrayerError(KeyError):
    pass


class RangeFetchCancelled(RuntimeError):
    def __init__(self, completed: Sequence["PrayerSchedule"]) -> None:
        self.completed = list(completed)
        super().__init__(f"Range fetch cancelled after {len(self.completed)} day(s)")


_MESSAGES: dict[Enum, str] = {
    CacheErrorKind.UNAVAILABLE: "Saved prayer times could not be accessed.",
    CacheErrorKind.CORRUPT: "Saved prayer times were damaged and will be refreshed.",
    TimingSourceErrorKind.INVALID_REQUEST: "The location or calculation method is not valid.",
    TimingSourceErrorKind.UNREACHABLE: "Could not reach the prayer times service. Check your connection.",
    TimingSourceErrorKind.BAD_RESPONSE: "The prayer times service returned unexpected data.",
    SchedulingErrorKind.DELIVERY_UNAVAILABLE: "Reminders could not be scheduled.",
}


def describe_error(exc: BaseException) -> str:
    """Short user-facing message for a structured error."""
    kind = getattr(exc, "kind", None)
    if kind in _MESSAGES:
        return _MESSAGES[kind]
    if isinstance(exc, RangeFetchCancelled):
        return "Loading was cancelled."
    return "Something went wrong while updating prayer times."
