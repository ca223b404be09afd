"""
Reverse-geocoding client.

Looks up a human place name for a coordinate using the BigDataCloud
client-side endpoint (no API key needed):
    https://api.bigdatacloud.net/data/reverse-geocode-client

Only three optional fields of the response are used: ``city`` (or
``locality``), ``principalSubdivision`` and ``countryCode``.

Usage
-----
    from relmap.ingest.geocode_client import ReverseGeocoder
    geocoder = ReverseGeocoder()
    result = geocoder(30.97, -100.43)
    print(result.label)        # "Sonora, Texas, US"
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import requests

from ..config import DEFAULT_GEOCODE_URL
from ..errors import EnrichmentError
from . import fetch_with_retry

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeocodeResult:
    """Place name parts for one coordinate.  Any part may be empty."""
    city: str = ""
    subdivision: str = ""
    country_code: str = ""

    @property
    def label(self) -> str:
        return ", ".join(p for p in (self.city, self.subdivision, self.country_code) if p)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_geocode_response(data: Any) -> GeocodeResult:
    if not isinstance(data, Mapping):
        raise EnrichmentError("reverse-geocode response is not an object")
    return GeocodeResult(
        city=_text(data.get("city")) or _text(data.get("locality")),
        subdivision=_text(data.get("principalSubdivision")),
        country_code=_text(data.get("countryCode")),
    )


class ReverseGeocoder:
    """Blocking reverse-geocode lookups; run them off the UI thread."""

    def __init__(
        self,
        url: str = DEFAULT_GEOCODE_URL,
        timeout: float = 10.0,
        language: str = "en",
    ):
        self.url = url
        self.timeout = timeout
        self.language = language

    def lookup(self, lat: float, lon: float) -> GeocodeResult:
        params = {
            "latitude": lat,
            "longitude": lon,
            "localityLanguage": self.language,
        }
        try:
            resp = fetch_with_retry(self.url, params=params, timeout=self.timeout, retries=1)
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            log.warning("Reverse geocode failed for %.4f,%.4f: %s", lat, lon, exc)
            raise EnrichmentError(str(exc)) from exc

        result = parse_geocode_response(data)
        log.debug("Reverse geocode %.4f,%.4f → %r", lat, lon, result.label)
        return result

    __call__ = lookup
