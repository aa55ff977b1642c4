"""Tests for geo: bridge failure conversion and timeouts, coordinate parsing, Nominatim adapter."""

import asyncio

import httpx
import pytest

from core.errors import GeoFailed
from core.models import Coordinates
from geo.bridge import GeoBridge, geocode_wait, parse_coordinates
from geo.nominatim import NominatimGeocoder, geocoder_from_env


def _nominatim(handler) -> NominatimGeocoder:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NominatimGeocoder("https://geo.example/", user_agent="test-agent", client=client)


class TestParseCoordinates:
    def test_valid(self):
        assert parse_coordinates("51.5", -0.12) == Coordinates(51.5, -0.12)

    @pytest.mark.parametrize("lat,lng", [(91, 0), (0, -181), ("north", 0), (None, 1)])
    def test_invalid(self, lat, lng):
        with pytest.raises(ValueError):
            parse_coordinates(lat, lng)


class TestGeoBridge:
    def test_label(self):
        assert GeoBridge.label_for(Coordinates(51.50741, -0.1278)) == "51.5074, -0.1278"

    def test_no_collaborators(self):
        bridge = GeoBridge()
        assert bridge.can_geocode is False
        assert bridge.can_locate is False
        with pytest.raises(GeoFailed):
            asyncio.run(bridge.geocode("Elm Road"))
        with pytest.raises(GeoFailed):
            asyncio.run(bridge.locate())

    def test_no_match_is_failure(self):
        async def geocoder(text):
            return None

        with pytest.raises(GeoFailed, match="no match"):
            asyncio.run(GeoBridge(geocoder=geocoder).geocode("nowhere"))

    def test_timeout_is_failure(self):
        async def locator():
            await asyncio.sleep(5)

        with pytest.raises(GeoFailed, match="timed out"):
            asyncio.run(GeoBridge(locator=locator, timeout=0.01).locate())

    def test_success(self):
        async def geocoder(text):
            return Coordinates(1.0, 2.0)

        assert asyncio.run(GeoBridge(geocoder=geocoder).geocode("Elm Road")) == Coordinates(1.0, 2.0)

    def test_wait_from_env(self, monkeypatch):
        monkeypatch.setenv("GEOCODE_WAIT", "0.5")
        assert geocode_wait() == 0.5
        monkeypatch.setenv("GEOCODE_WAIT", "soon")
        assert geocode_wait() == 2.0


class TestNominatimGeocoder:
    def test_first_result_parsed(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["q"] = request.url.params["q"]
            seen["ua"] = request.headers["User-Agent"]
            return httpx.Response(200, json=[{"lat": "40.7128", "lon": "-74.0060"}, {"lat": "0", "lon": "0"}])

        coords = asyncio.run(_nominatim(handler)("123 Main Street"))
        assert coords == Coordinates(40.7128, -74.006)
        assert seen == {"path": "/search", "q": "123 Main Street", "ua": "test-agent"}

    def test_empty_result_is_none(self):
        coords = asyncio.run(_nominatim(lambda request: httpx.Response(200, json=[]))("Atlantis"))
        assert coords is None

    def test_http_error_becomes_geo_failed_via_bridge(self):
        geocoder = _nominatim(lambda request: httpx.Response(503))
        with pytest.raises(GeoFailed):
            asyncio.run(GeoBridge(geocoder=geocoder).geocode("Elm Road"))

    def test_from_env(self, monkeypatch):
        monkeypatch.delenv("GEOCODER_URL", raising=False)
        assert geocoder_from_env() is None
        monkeypatch.setenv("GEOCODER_URL", "https://nominatim.example")
        geocoder = geocoder_from_env()
        assert isinstance(geocoder, NominatimGeocoder)
        assert geocoder.base_url == "https://nominatim.example"
