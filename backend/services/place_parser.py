"""
Derive a (country, city) place from a postcard's public id.

Postcards are uploaded as `<CC>_<CityTokens...>_<suffix>`, e.g.
`Countries/FR_Paris_ynppct` or `PT_VilaNova-de-Gaia_x81k`. The last token
is the random suffix the media host appends and carries no meaning.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from domain.models import PlaceCandidate

logger = logging.getLogger(__name__)

# Legacy or colloquial codes used in older uploads.
COUNTRY_CODE_ALIASES = {
    "UK": "GB",
    "KO": "KR",
}

_COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")
_CAMEL_RE = re.compile(r"([a-z])([A-Z])")
_WS_RE = re.compile(r"\s+")


def split_camel(token: str) -> str:
    return _CAMEL_RE.sub(r"\1 \2", token)


def resolve_country_code(raw: str) -> Optional[str]:
    code = raw.strip().upper()
    code = COUNTRY_CODE_ALIASES.get(code, code)
    return code if _COUNTRY_CODE_RE.match(code) else None


def parse_place(identifier: Optional[str]) -> Optional[PlaceCandidate]:
    """Return the place encoded in `identifier`, or None if it doesn't follow the convention."""
    base = str(identifier or "").split("/")[-1]
    parts = [p for p in base.split("_") if p]
    if len(parts) < 2:
        logger.debug("cannot parse place from %r: too few tokens", identifier)
        return None

    country_code = resolve_country_code(parts[0])
    if country_code is None:
        logger.debug("cannot parse place from %r: bad country code %r", identifier, parts[0])
        return None

    city_parts = parts[1:-1]
    if not city_parts:
        logger.debug("cannot parse place from %r: no city tokens", identifier)
        return None

    city = " ".join(split_camel(p) for p in city_parts)
    city = _WS_RE.sub(" ", city.replace("-", " ")).strip()
    if not city:
        return None
    return PlaceCandidate(country_code=country_code, city=city)
