"""Bridge between asynchronous geo collaborators and the dialog draft.

Collaborators are plain async callables:
- geocoder(text) -> Coordinates | None
- locator() -> Coordinates
Every failure (timeout, HTTP error, bad payload, no match) surfaces as GeoFailed.
"""

import asyncio
import logging
import os
from typing import Awaitable, Callable, Optional

import httpx

from core.errors import GeoFailed
from core.models import Coordinates

logger = logging.getLogger("intake_api.geo")

Geocoder = Callable[[str], Awaitable[Optional[Coordinates]]]
Locator = Callable[[], Awaitable[Coordinates]]

DEFAULT_TIMEOUT = 5.0
DEFAULT_WAIT = 2.0


def _env_float(name: str, default: float) -> float:
    v = os.environ.get(name)
    if v is None or v.strip() == "":
        return default
    try:
        return max(0.0, float(v.strip()))
    except ValueError:
        return default


def geocode_timeout() -> float:
    return _env_float("GEOCODE_TIMEOUT", DEFAULT_TIMEOUT)


def geocode_wait() -> float:
    """How long a confirmation waits for an in-flight geocode before submitting without coords."""
    return _env_float("GEOCODE_WAIT", DEFAULT_WAIT)


def parse_coordinates(lat, lng) -> Coordinates:
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        raise ValueError(f"invalid coordinates: {lat!r}, {lng!r}") from None
    if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0):
        raise ValueError(f"coordinates out of range: {lat_f}, {lng_f}")
    return Coordinates(lat=lat_f, lng=lng_f)


class GeoBridge:
    def __init__(
        self,
        geocoder: Optional[Geocoder] = None,
        locator: Optional[Locator] = None,
        timeout: Optional[float] = None,
    ):
        self.geocoder = geocoder
        self.locator = locator
        self.timeout = timeout if timeout is not None else geocode_timeout()

    @property
    def can_geocode(self) -> bool:
        return self.geocoder is not None

    @property
    def can_locate(self) -> bool:
        return self.locator is not None

    @staticmethod
    def label_for(coords: Coordinates) -> str:
        return f"{coords.lat:.4f}, {coords.lng:.4f}"

    async def _bounded(self, what: str, awaitable) -> Coordinates:
        try:
            result = await asyncio.wait_for(awaitable, timeout=self.timeout)
        except GeoFailed:
            raise
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", what, self.timeout)
            raise GeoFailed(f"{what} timed out") from None
        except (httpx.HTTPError, OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("%s failed: %s", what, e)
            raise GeoFailed(f"{what} failed: {e}") from e
        if result is None:
            raise GeoFailed(f"{what} found no match")
        if not isinstance(result, Coordinates):
            raise GeoFailed(f"{what} returned {type(result).__name__}, expected Coordinates")
        return result

    async def geocode(self, text: str) -> Coordinates:
        if self.geocoder is None:
            raise GeoFailed("no geocoder configured")
        coords = await self._bounded("geocoding", self.geocoder(text))
        logger.info("geocoded text=%r lat=%s lng=%s", text[:80], coords.lat, coords.lng)
        return coords

    async def locate(self) -> Coordinates:
        if self.locator is None:
            raise GeoFailed("device location unavailable")
        return await self._bounded("geolocation", self.locator())
