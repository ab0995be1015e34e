from __future__ import annotations

import logging
import os
from typing import Optional, Protocol

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .cache import Cache, cache_key
from .types import Coordinate


logger = logging.getLogger(__name__)

NOMINATIM_SEARCH = "https://nominatim.openstreetmap.org/search"
USER_AGENT = os.environ.get(
    "PHOTO_ROUTE_UA",
    "photo-route/0.1 (+https://example.com; contact: local)",
)
DEFAULT_COUNTRY_CODES = os.environ.get("PHOTO_ROUTE_COUNTRY_CODES", "kr")
# Nominatim usage policy: at most one request per second
MIN_REQUEST_INTERVAL = 1.0


class GeocodingError(RuntimeError):
    pass


class Geocoder(Protocol):
    def geocode(self, query: str) -> Optional[Coordinate]:
        ...


class NominatimGeocoder:
    """Forward geocoder backed by the public Nominatim search API.

    Responses (including empty ones) are cached on disk, so recomputing a
    route never queries the same road twice.
    """

    def __init__(
        self,
        cache: Optional[Cache] = None,
        countrycodes: Optional[str] = DEFAULT_COUNTRY_CODES,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cache = cache or Cache()
        self.countrycodes = countrycodes.lower() if countrycodes else None
        self.timeout = timeout
        self.session = session or requests.Session()

    def geocode(self, query: str) -> Optional[Coordinate]:
        query = " ".join(query.split())
        if not query:
            return None
        key = cache_key("nominatim_search", query.lower(), self.countrycodes or "")
        cached = self.cache.get(key)
        if cached is not None:
            return Coordinate(**cached[0]) if cached else None

        try:
            data = self._search(query)
        except requests.RequestException as e:
            raise GeocodingError(f"Nominatim search failed for {query!r}: {e}") from e

        results: list[dict] = []
        for item in data:
            try:
                results.append({"latitude": float(item["lat"]), "longitude": float(item["lon"])})
            except (KeyError, TypeError, ValueError):
                continue
        self.cache.set(key, results)
        if not results:
            logger.info("Nominatim returned nothing for %r", query)
            return None
        return Coordinate(**results[0])

    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=20),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _search(self, query: str) -> list:
        self.cache.throttle("nominatim", MIN_REQUEST_INTERVAL)
        params = {
            "q": query,
            "format": "jsonv2",
            "limit": 1,
        }
        if self.countrycodes:
            params["countrycodes"] = self.countrycodes
        logger.debug("Nominatim search %s", params)
        resp = self.session.get(
            NOMINATIM_SEARCH,
            params=params,
            headers={"User-Agent": USER_AGENT, "Accept-Language": "ko,en"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            raise GeocodingError(f"Unexpected Nominatim payload: {type(data).__name__}")
        return data
