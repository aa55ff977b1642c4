"""Geo enrichment: bounded geocoding/geolocation bridge and the Nominatim adapter."""

from geo.bridge import GeoBridge, parse_coordinates
from geo.nominatim import NominatimGeocoder, geocoder_from_env

__all__ = [
    "GeoBridge",
    "parse_coordinates",
    "NominatimGeocoder",
    "geocoder_from_env",
]
