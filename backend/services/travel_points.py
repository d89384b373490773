"""
Travel-point registry reconciliation.

Merges a batch of media-host resources (one folder query) into the persisted
list of travel points:

- each resource's public id is parsed into a (country, city) place;
- the place is matched against the registry by point id (from the resource's
  `placeId` metadata), by postcard id, by country+city, and finally by city
  alone among points this batch created earlier;
- coordinates come from the matched point, the geocode cache, or Nominatim;
- points this batch owns are refreshed from the new data, other points keep
  their hand-edited fields;
- optionally, points whose postcard vanished from the batch are pruned.

Re-running on the same batch and registry yields the same registry.
"""
from __future__ import annotations

import dataclasses
import logging
from collections import OrderedDict, defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from domain.models import (
    PlaceCandidate,
    ReconcileResult,
    ReconcileStats,
    RemoteResource,
    TravelPoint,
)
from services.countries import country_name
from services.geocode_cache import GeocodeCache
from services.geocoding import Geocoder, lookup_coordinates
from services.normalize import (
    country_city_key,
    normalize_city_key,
    strip_diacritics,
    travel_point_id,
)
from services.place_parser import parse_place

logger = logging.getLogger(__name__)

MAX_CONFLICT_SAMPLES = 6


def folder_key(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class RefreshPolicy:
    """
    Decides whether a matched point may be overwritten with freshly parsed data.

    The default only lets a batch rewrite points it produced itself, so a re-run
    can fix its own earlier parsing mistakes but never touches points curated
    by hand or produced by another folder.
    """

    def allows_refresh(self, point: TravelPoint, batch_label: str) -> bool:
        src = folder_key(point.source_folder)
        return bool(src) and src == folder_key(batch_label)


class _RegistryIndex:
    """Lookup tables over the current points; values are point ids."""

    def __init__(self, batch_label: str):
        self.batch_key = folder_key(batch_label)
        self.points: "OrderedDict[str, TravelPoint]" = OrderedDict()
        self.by_postcard: Dict[str, str] = {}
        self.by_country_city: Dict[str, str] = {}
        self.by_city_in_batch: Dict[str, str] = {}
        # Counted once from the starting registry; points created during the
        # run do not make the city-only fallback available.
        self.batch_city_counts: Dict[str, int] = defaultdict(int)

    def load(self, points: Iterable[TravelPoint], warnings: List[str]) -> None:
        for point in points:
            if not point.id:
                if not (point.country_code and point.city):
                    warnings.append(f"Dropped registry entry without id, city or country: {point.to_dict()}")
                    continue
                point = dataclasses.replace(point, id=travel_point_id(point.country_code, point.city))
            if point.id in self.points:
                warnings.append(f"Dropped duplicate registry id: {point.id}")
                continue
            self.points[point.id] = point
            self._index(point, initial=True)

    def _index(self, point: TravelPoint, initial: bool = False) -> None:
        if point.postcard_id:
            self.by_postcard[point.postcard_id] = point.id
        if point.country_code and point.city:
            self.by_country_city[country_city_key(point.country_code, point.city)] = point.id
        if point.city and self.batch_key and folder_key(point.source_folder) == self.batch_key:
            city_key = normalize_city_key(point.city)
            if initial:
                self.batch_city_counts[city_key] += 1
                self.by_city_in_batch.setdefault(city_key, point.id)
            else:
                self.by_city_in_batch[city_key] = point.id

    def get(self, point_id: Optional[str]) -> Optional[TravelPoint]:
        if not point_id:
            return None
        return self.points.get(point_id)

    def free_id(self, base: str) -> str:
        """`base`, or `base-2`, `base-3`, ... when an unrelated point holds it."""
        if base not in self.points:
            return base
        n = 2
        while f"{base}-{n}" in self.points:
            n += 1
        return f"{base}-{n}"

    def store(self, point: TravelPoint, replaces: Optional[TravelPoint] = None) -> None:
        if replaces is not None and replaces.id != point.id:
            self.points.pop(replaces.id, None)
        self.points[point.id] = point
        self._index(point)

    def find_match(
        self,
        resource: RemoteResource,
        candidate: PlaceCandidate,
        warnings: List[str],
    ) -> Optional[TravelPoint]:
        """Probe the lookup keys in priority order."""
        place_id = resource.meta_str("placeId")
        match = (
            (self.get(place_id) if place_id else None)
            or self.get(self.by_postcard.get(resource.identifier))
            or self.get(self.by_country_city.get(country_city_key(candidate.country_code, candidate.city)))
        )
        if match:
            return match

        city_key = normalize_city_key(candidate.city)
        count = self.batch_city_counts.get(city_key, 0)
        if count == 1:
            return self.get(self.by_city_in_batch.get(city_key))
        if count > 1:
            warnings.append(
                f"Ambiguous city-only match for '{city_key}' ({count} points in this folder); "
                f"not correcting country for {resource.identifier}"
            )
        return None


def _merge_existing(
    existing: TravelPoint,
    point_id: str,
    candidate: PlaceCandidate,
    resource: RemoteResource,
    coords: Tuple[float, float],
    batch_label: str,
    refresh: bool,
) -> TravelPoint:
    name = country_name(candidate.country_code)
    if refresh:
        city = candidate.city
        code = candidate.country_code
        cname = name or existing.country_name
        postcard_id = resource.identifier
    else:
        city = existing.city or candidate.city
        code = existing.country_code or candidate.country_code
        cname = existing.country_name or name
        postcard_id = existing.postcard_id or resource.identifier
    description = existing.description if existing.description is not None else resource.meta_str("desc")
    return dataclasses.replace(
        existing,
        id=point_id,
        city=city,
        country_code=code.upper(),
        country_name=cname,
        lat=coords[0],
        lng=coords[1],
        postcard_id=postcard_id,
        description=description,
        source_folder=batch_label,
    )


def _new_point(
    point_id: str,
    candidate: PlaceCandidate,
    resource: RemoteResource,
    coords: Tuple[float, float],
    batch_label: str,
) -> TravelPoint:
    return TravelPoint(
        id=point_id,
        city=candidate.city,
        country_code=candidate.country_code,
        country_name=country_name(candidate.country_code),
        lat=coords[0],
        lng=coords[1],
        postcard_id=resource.identifier,
        description=resource.meta_str("desc"),
        source_folder=batch_label,
    )


def find_city_conflicts(pairings: Dict[str, List[Tuple[str, str]]]) -> List[str]:
    """Warn about city keys that were parsed with more than one country code."""
    warnings: List[str] = []
    for city_key, entries in pairings.items():
        if len(entries) < 2:
            continue
        codes = {code for _, code in entries}
        if len(codes) <= 1:
            continue
        sample = ", ".join(f"{code}:{identifier}" for identifier, code in entries[:MAX_CONFLICT_SAMPLES])
        warnings.append(f"Conflicting country codes for city '{city_key}': {sample}")
    return warnings


def prune_points(
    points: Sequence[TravelPoint],
    batch_label: str,
    batch_identifiers: Set[str],
) -> List[TravelPoint]:
    """
    Drop points made stale by this batch.

    A point this batch owns is dropped when its postcard is no longer in the
    batch. A legacy point (no provenance) is dropped when its postcard is gone
    and another point from this batch now covers the same city.
    """
    batch = folder_key(batch_label)
    kept: List[TravelPoint] = []
    for p in points:
        src = folder_key(p.source_folder)
        if src and src == batch and p.postcard_id and p.postcard_id not in batch_identifiers:
            logger.info("Pruning stale point %s (postcard %s no longer in %s)", p.id, p.postcard_id, batch_label)
            continue
        kept.append(p)

    batch_cities: Dict[str, Set[str]] = defaultdict(set)
    for p in kept:
        if p.city and folder_key(p.source_folder) == batch:
            batch_cities[normalize_city_key(p.city)].add(p.id)

    out: List[TravelPoint] = []
    for p in kept:
        if (
            not folder_key(p.source_folder)
            and p.postcard_id
            and p.postcard_id not in batch_identifiers
            and p.city
            and batch_cities.get(normalize_city_key(p.city), set()) - {p.id}
        ):
            logger.info("Pruning legacy point %s superseded by a %s point", p.id, batch_label)
            continue
        out.append(p)
    return out


def sort_points(points: Iterable[TravelPoint]) -> List[TravelPoint]:
    return sorted(points, key=lambda p: (p.country_code or "", strip_diacritics(p.city).casefold()))


def reconcile(
    resources: Sequence[RemoteResource],
    existing_points: Sequence[TravelPoint],
    cache: GeocodeCache,
    batch_label: str,
    *,
    geocoder: Optional[Geocoder] = None,
    no_geocode: bool = False,
    prune: bool = False,
    limit: Optional[int] = None,
    policy: Optional[RefreshPolicy] = None,
) -> ReconcileResult:
    """Merge `resources` from one folder batch into `existing_points`."""
    policy = policy or RefreshPolicy()
    stats = ReconcileStats()
    warnings: List[str] = []

    index = _RegistryIndex(batch_label)
    index.load(existing_points, warnings)

    picked = list(resources if limit is None else resources[:limit])
    stats.processed = len(picked)

    batch_identifiers: Set[str] = set()
    pairings: Dict[str, List[Tuple[str, str]]] = defaultdict(list)

    for resource in picked:
        if not resource.identifier:
            continue
        batch_identifiers.add(resource.identifier)

        candidate = parse_place(resource.identifier)
        if candidate is None:
            stats.skipped += 1
            warnings.append(f"Skip (cannot parse place): {resource.identifier}")
            continue
        pairings[normalize_city_key(candidate.city)].append((resource.identifier, candidate.country_code))

        existing = index.find_match(resource, candidate, warnings)
        point_id = (
            resource.meta_str("placeId")
            or (existing.id if existing else None)
            or travel_point_id(candidate.country_code, candidate.city)
        )

        coords: Optional[Tuple[float, float]] = None
        if existing is not None and existing.has_coordinates:
            coords = (float(existing.lat), float(existing.lng))
        if coords is None and not no_geocode:
            outcome = lookup_coordinates(candidate.city, candidate.country_code, cache, geocoder)
            coords = outcome.coords
            if coords and outcome.from_network:
                stats.geocoded += 1
            elif coords is None:
                warnings.append(
                    f"Geocode failed: {candidate.country_code} {candidate.city} ({resource.identifier})"
                )

        if coords is None:
            stats.skipped += 1
            continue

        if existing is not None:
            refresh = policy.allows_refresh(existing, batch_label)
            point = _merge_existing(existing, point_id, candidate, resource, coords, batch_label, refresh)
            index.store(point, replaces=existing)
            stats.updated += 1
        else:
            taken = index.get(point_id)
            if taken is not None:
                point_id = index.free_id(point_id)
                warnings.append(
                    f"Id {taken.id} already used by {taken.city or '?'} ({taken.country_code or '?'}); "
                    f"new point for {resource.identifier} stored as {point_id}"
                )
            point = _new_point(point_id, candidate, resource, coords, batch_label)
            index.store(point)
            stats.added += 1

    warnings.extend(find_city_conflicts(pairings))

    points = list(index.points.values())
    without_coords = [p for p in points if not p.has_coordinates]
    for p in without_coords:
        warnings.append(f"Dropped point without coordinates: {p.id}")
    points = [p for p in points if p.has_coordinates]

    if prune:
        before = len(points)
        points = prune_points(points, batch_label, batch_identifiers)
        stats.pruned = before - len(points)

    return ReconcileResult(points=sort_points(points), stats=stats, warnings=warnings)
