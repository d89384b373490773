"""Forward geocoding of (city, country) pairs using OpenStreetMap Nominatim.

Requests go through a single throttled session so that a batch never exceeds
Nominatim's one-request-per-second usage policy. Results are looked up in and
written to a GeocodeCache; failed lookups are never cached so the next run
retries them.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import requests

from domain.models import safe_number
from services.geocode_cache import GeocodeCache
from settings import settings

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()
_MIN_INTERVAL_SEC = settings.NOMINATIM_MIN_INTERVAL
_logged_ua = False

FALLBACK_UA = "postcard-travel-points/0.1 (contact: example@example.com)"

# (city, country_code) -> (lat, lng) | None
Geocoder = Callable[[str, str], Optional[Tuple[float, float]]]


def _redact_email(ua: str) -> str:
    if "@" not in ua:
        return ua
    return re.sub(r"\S+@\S+", "<redacted>", ua)


def build_headers(user_agent: Optional[str] = None, referer: Optional[str] = None) -> dict[str, str]:
    ua = user_agent or settings.NOMINATIM_USER_AGENT
    if not ua:
        logger.warning(
            "NOMINATIM_USER_AGENT not set in environment; using fallback UA. "
            "This may violate Nominatim usage policy."
        )
        ua = FALLBACK_UA
    headers = {"User-Agent": ua, "Accept": "application/json"}
    ref = referer or settings.NOMINATIM_REFERER
    if ref:
        headers["Referer"] = ref
    return headers


def _throttled_get(
    url: str,
    *,
    params: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
    min_interval: Optional[float] = None,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    interval = _MIN_INTERVAL_SEC if min_interval is None else min_interval
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < interval:
            time.sleep(interval - delta)
        _last_request_ts = time.time()
    return _session.get(url, params=params, headers=headers, timeout=timeout)


class NominatimGeocoder:
    """Callable geocoder: `geocode(city, country_code) -> (lat, lng) | None`."""

    def __init__(
        self,
        base_url: str = NOMINATIM_SEARCH_URL,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
        timeout: float = 10.0,
        min_interval: Optional[float] = None,
    ):
        self.base_url = base_url
        self.headers = build_headers(user_agent, referer)
        self.timeout = timeout
        self.min_interval = min_interval

    @classmethod
    def from_settings(cls, cfg) -> "NominatimGeocoder":
        return cls(
            user_agent=cfg.NOMINATIM_USER_AGENT,
            referer=cfg.NOMINATIM_REFERER,
            min_interval=cfg.NOMINATIM_MIN_INTERVAL,
        )

    def geocode(self, city: str, country_code: str) -> Optional[Tuple[float, float]]:
        global _logged_ua
        if not _logged_ua:
            logger.debug("Nominatim User-Agent: %s", _redact_email(self.headers["User-Agent"]))
            _logged_ua = True

        params = {
            "format": "jsonv2",
            "limit": "1",
            "addressdetails": "0",
            "countrycodes": country_code.strip().lower(),
            "q": city,
        }
        try:
            resp = _throttled_get(
                self.base_url,
                params=params,
                headers=self.headers,
                timeout=self.timeout,
                min_interval=self.min_interval,
            )
        except requests.RequestException as exc:
            logger.warning("Nominatim search error for %s %s: %s", country_code, city, exc)
            return None

        if not resp.ok:
            logger.warning("Nominatim search HTTP %s for %s %s", resp.status_code, country_code, city)
            return None

        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning("Nominatim search JSON error for %s %s: %s", country_code, city, exc)
            return None

        first = data[0] if isinstance(data, list) and data else None
        if not isinstance(first, dict):
            return None
        lat = safe_number(first.get("lat"))
        lng = safe_number(first.get("lon"))
        if lat is None or lng is None:
            logger.warning("Nominatim returned unusable coordinates for %s %s", country_code, city)
            return None
        return lat, lng

    __call__ = geocode


@dataclass(frozen=True)
class LookupOutcome:
    coords: Optional[Tuple[float, float]]
    from_network: bool = False


def lookup_coordinates(
    city: str,
    country_code: str,
    cache: GeocodeCache,
    geocoder: Optional[Geocoder],
) -> LookupOutcome:
    """Resolve coordinates cache-first; a network hit is written back to the cache."""
    cached = cache.get(country_code, city)
    if cached:
        logger.debug("[GEOCODE] cache hit %s %s", country_code, city)
        return LookupOutcome(cached, from_network=False)
    if geocoder is None:
        return LookupOutcome(None)

    logger.info("[GEOCODE] cache miss %s %s; querying Nominatim", country_code, city)
    hit = geocoder(city, country_code)
    if not hit:
        return LookupOutcome(None, from_network=True)
    cache.put(country_code, city, hit[0], hit[1])
    return LookupOutcome(hit, from_network=True)
