"""ISO 3166-1 alpha-2 code -> English country name, backed by geonamescache."""
from __future__ import annotations

from functools import lru_cache
from typing import Dict, Optional

import geonamescache


@lru_cache(maxsize=1)
def _country_names() -> Dict[str, str]:
    gc = geonamescache.GeonamesCache()
    names: Dict[str, str] = {}
    for iso2, payload in gc.get_countries().items():
        name = (payload.get("name") or "").strip()
        if name:
            names[iso2.upper()] = name
    return names


def country_name(country_code: Optional[str]) -> Optional[str]:
    """Return the English name for a 2-letter code, or None when unknown."""
    if not country_code:
        return None
    return _country_names().get(country_code.strip().upper())
