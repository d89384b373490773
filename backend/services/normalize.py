"""
Comparison keys for city and country text.

Every match the reconciler makes is an equality test between keys produced
here, so the registry side and the freshly parsed side must both go through
these helpers.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Optional

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Local-language spellings mapped to the common English form (keys are already normalized).
CITY_KEY_ALIASES = {
    "lisboa": "lisbon",
    "munchen": "munich",
    "koln": "cologne",
    "praha": "prague",
    "wien": "vienna",
    "roma": "rome",
    "firenze": "florence",
    "venezia": "venice",
    "napoli": "naples",
    "milano": "milan",
    "torino": "turin",
    "bruxelles": "brussels",
    "brussel": "brussels",
    "kobenhavn": "copenhagen",
    "warszawa": "warsaw",
    "moskva": "moscow",
    "athina": "athens",
    "sevilla": "seville",
    "den haag": "the hague",
}


def strip_diacritics(value: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFKD", str(value or ""))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _normalize_words(value: Optional[str]) -> list[str]:
    text = strip_diacritics(value).lower().replace("&", " and ")
    return [w for w in _NON_ALNUM_RE.split(text) if w]


def normalize_country_name(value: Optional[str]) -> str:
    return " ".join(_normalize_words(value))


def normalize_city_key(value: Optional[str]) -> str:
    key = " ".join(_normalize_words(value))
    return CITY_KEY_ALIASES.get(key, key)


def normalize_country_code(value: Optional[str]) -> str:
    return str(value or "").strip().upper()


def slugify(value: Optional[str]) -> str:
    """Hyphen-joined form of the normalized text, used for identifiers."""
    return "-".join(_normalize_words(value))


def country_city_key(country_code: Optional[str], city: Optional[str]) -> str:
    """`CC:normalized city` key used by both the registry index and the geocode cache."""
    return f"{normalize_country_code(country_code)}:{normalize_city_key(city)}"


def travel_point_id(country_code: str, city: str) -> str:
    return f"{country_code.strip().lower()}-{slugify(city)}"
