"""Nominatim-compatible geocoder over httpx. Enabled when GEOCODER_URL is set."""

import logging
import os
from typing import Optional

import httpx

from core.models import Coordinates
from geo.bridge import geocode_timeout

logger = logging.getLogger("intake_api.geo.nominatim")

DEFAULT_USER_AGENT = "resq-intake/0.1"


class NominatimGeocoder:
    """async (text) -> Coordinates | None using GET {base_url}/search?q=...&format=json&limit=1."""

    def __init__(
        self,
        base_url: str,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout if timeout is not None else geocode_timeout()
        self._client = client

    async def _get(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        return await client.get(
            f"{self.base_url}/search",
            params={"q": text, "format": "json", "limit": 1},
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
        )

    async def __call__(self, text: str) -> Optional[Coordinates]:
        if not text or not text.strip():
            return None
        if self._client is not None:
            r = await self._get(self._client, text.strip())
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await self._get(client, text.strip())
        r.raise_for_status()
        results = r.json()
        if not results:
            logger.info("nominatim no results q=%r", text[:80])
            return None
        first = results[0]
        return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))


def geocoder_from_env() -> Optional[NominatimGeocoder]:
    """Geocoder if GEOCODER_URL is set, else None (locations stay text-only)."""
    url = (os.environ.get("GEOCODER_URL") or "").strip()
    if not url:
        return None
    user_agent = (os.environ.get("GEOCODER_USER_AGENT") or "").strip() or DEFAULT_USER_AGENT
    return NominatimGeocoder(url, user_agent=user_agent)
