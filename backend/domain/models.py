"""
Core domain models for the postcard travel-point pipeline.
These are framework-agnostic and shared by the services and scripts.
"""
from dataclasses import dataclass, field
from datetime import datetime
import math
from typing import Any, Dict, List, Optional, Set


# Keys owned by TravelPoint; anything else found in the registry file is kept in `extra`.
TRAVEL_POINT_KEYS = (
    "id",
    "city",
    "countryCode",
    "countryName",
    "lat",
    "lng",
    "postcardId",
    "description",
    "sourceFolder",
)


def _clean_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def safe_number(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class RemoteResource:
    """
    One image record in the media host.

    Only `identifier`, `folder_path`, `tags`, `metadata` and `created_at` matter
    to the travel-point reconciler; the rest feeds the listing/gallery tools.
    """
    identifier: str
    folder_path: str = ""
    tags: Set[str] = field(default_factory=set)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    context: Dict[str, Any] = field(default_factory=dict)
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    bytes: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteResource":
        metadata = data.get("metadata")
        context = data.get("context")
        custom = context.get("custom") if isinstance(context, dict) else None
        return cls(
            identifier=str(data.get("public_id") or ""),
            folder_path=data.get("asset_folder") or data.get("folder") or "",
            tags=set(data.get("tags") or []),
            metadata=metadata if isinstance(metadata, dict) else {},
            created_at=_parse_timestamp(data.get("created_at")),
            context=custom if isinstance(custom, dict) else {},
            format=data.get("format"),
            width=data.get("width"),
            height=data.get("height"),
            bytes=data.get("bytes"),
        )

    def meta_str(self, key: str) -> Optional[str]:
        """Trimmed, non-empty string metadata value (None otherwise)."""
        return _clean_str(self.metadata.get(key))

    @property
    def is_hidden(self) -> bool:
        return "hidden" in self.tags


@dataclass(frozen=True)
class PlaceCandidate:
    """A (country, city) pair parsed from a resource identifier."""
    country_code: str
    city: str


@dataclass
class TravelPoint:
    """
    A place marker on the travel map.

    `source_folder` records which batch created or last auto-updated the point;
    points without it are legacy or hand-curated.
    """
    id: str
    city: str
    country_code: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    country_name: Optional[str] = None
    postcard_id: Optional[str] = None
    description: Optional[str] = None
    source_folder: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_coordinates(self) -> bool:
        return safe_number(self.lat) is not None and safe_number(self.lng) is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TravelPoint":
        country_code = _clean_str(data.get("countryCode"))
        return cls(
            id=_clean_str(data.get("id")) or "",
            city=_clean_str(data.get("city")) or "",
            country_code=country_code.upper() if country_code else "",
            lat=safe_number(data.get("lat")),
            lng=safe_number(data.get("lng")),
            country_name=_clean_str(data.get("countryName")),
            postcard_id=_clean_str(data.get("postcardId")),
            description=data.get("description") if isinstance(data.get("description"), str) else None,
            source_folder=_clean_str(data.get("sourceFolder")),
            extra={k: v for k, v in data.items() if k not in TRAVEL_POINT_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "city": self.city,
            "countryCode": self.country_code,
            "countryName": self.country_name,
            "lat": self.lat,
            "lng": self.lng,
            "postcardId": self.postcard_id,
            "description": self.description,
            "sourceFolder": self.source_folder,
        }
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out


@dataclass
class ReconcileStats:
    processed: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    geocoded: int = 0
    pruned: int = 0


@dataclass
class ReconcileResult:
    """Output of one reconciliation run."""
    points: List[TravelPoint]
    stats: ReconcileStats
    warnings: List[str] = field(default_factory=list)
