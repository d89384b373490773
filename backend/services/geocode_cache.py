"""
JSON-file cache of forward geocoding results.

Keyed by `"<CC>:<normalized city>"`; values are `{lat, lng, city, countryCode}`.
Entries are never expired: a stale coordinate has to be fixed by editing the file.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from domain.models import safe_number
from services.normalize import country_city_key, normalize_country_code
from storage.json_store import read_json, write_json

logger = logging.getLogger(__name__)


class GeocodeCache:
    def __init__(self, path: Optional[str] = None, entries: Optional[Dict[str, Any]] = None):
        self.path = Path(path) if path else None
        self._entries: Dict[str, Any] = dict(entries or {})
        self.dirty = False

    @classmethod
    def load(cls, path: str) -> "GeocodeCache":
        data = read_json(path, {})
        if not isinstance(data, dict):
            logger.warning("[GEOCODE] cache file %s is not a JSON object; starting empty", path)
            data = {}
        return cls(path, data)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, country_code: str, city: str) -> Optional[Tuple[float, float]]:
        """Cached (lat, lng) for the place, only if both are finite numbers."""
        entry = self._entries.get(country_city_key(country_code, city))
        if not isinstance(entry, dict):
            return None
        lat = safe_number(entry.get("lat"))
        lng = safe_number(entry.get("lng"))
        if lat is None or lng is None:
            return None
        return lat, lng

    def put(self, country_code: str, city: str, lat: float, lng: float) -> None:
        key = country_city_key(country_code, city)
        self._entries[key] = {
            "lat": lat,
            "lng": lng,
            "city": city,
            "countryCode": normalize_country_code(country_code),
        }
        self.dirty = True
        logger.debug("[GEOCODE] cache store %s", key)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._entries)

    def save(self, path: Optional[str] = None) -> Path:
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("GeocodeCache has no path to save to")
        write_json(target, self._entries)
        self.dirty = False
        return target
