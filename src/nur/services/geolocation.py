from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import httpx

from ..models import Location

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DetectedLocation:
    location: Location
    country_code: str = ""


class GeoLocator:
    """Resolve the user's approximate location via an IP geolocation service."""

    def __init__(
        self,
        endpoint: str = "https://ipapi.co/json/",
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    def detect(self) -> DetectedLocation | None:
        try:
            if self._client is not None:
                response = self._client.get(self.endpoint, timeout=self.timeout)
            else:
                response = httpx.get(self.endpoint, timeout=self.timeout)
            response.raise_for_status()
            data: dict[str, Any] = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Location detection failed: %s", exc)
            return None

        lat = data.get("latitude", data.get("lat"))
        lon = data.get("longitude", data.get("lon"))
        if lat is None or lon is None:
            return None
        city = data.get("city") or data.get("region") or ""
        country = data.get("country_name") or data.get("country") or ""
        country_code = data.get("country_code") or data.get("countryCode") or ""
        try:
            location = Location(
                latitude=float(lat),
                longitude=float(lon),
                city=str(city),
                country=str(country),
                is_manual=False,
            )
        except (TypeError, ValueError):
            return None
        if not location.is_valid():
            return None
        return DetectedLocation(location=location, country_code=str(country_code).upper())
