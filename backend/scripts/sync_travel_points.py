"""Sync the travel-point registry with a media-host folder.

Usage:
    python -m scripts.sync_travel_points [Countries] [--write] [--no-geocode] [--prune] [--limit N]
        [--points PATH] [--cache PATH]

Postcards named `<CC>_<City>_<suffix>` are turned into map points. Without
--write this is a dry run: everything is computed and reported, nothing is
written. --write also prunes points whose postcard left the folder.
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from dotenv import load_dotenv

from domain.errors import ConfigurationError, MediaHostError
from domain.models import ReconcileResult
from services.geocode_cache import GeocodeCache
from services.geocoding import NominatimGeocoder
from services.media_host import MediaHostClient, build_expression, build_folder_paths
from services.travel_points import reconcile
from settings import load_settings
from storage.json_store import load_travel_points, save_travel_points

logger = logging.getLogger("sync_travel_points")

DEFAULT_FOLDER = "Countries"
MAX_WARNINGS_SHOWN = 20


def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value!r}")
    if n < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value!r}")
    return n


def build_parser(default_points: str, default_cache: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync travel points from postcard filenames.")
    parser.add_argument("folder_pos", nargs="?", default=None, metavar="FOLDER", help="Media folder to scan.")
    parser.add_argument("--folder", default=None, help=f"Media folder to scan (default: {DEFAULT_FOLDER}).")
    parser.add_argument("--write", action="store_true", help="Write the registry and cache (implies --prune).")
    parser.add_argument("--dry-run", action="store_true", help="Compute and report only (default without --write).")
    parser.add_argument("--no-geocode", action="store_true", help="Skip coordinate lookups (cache and Nominatim); only points with stored coordinates are kept.")
    parser.add_argument("--prune", action="store_true", help="Drop stale points even in a dry run.")
    parser.add_argument("--limit", type=_non_negative_int, default=None, help="Process at most N resources.")
    parser.add_argument("--points", default=default_points, help="Travel-point registry JSON file.")
    parser.add_argument("--cache", default=default_cache, help="Geocode cache JSON file.")
    return parser


def report(
    result: ReconcileResult,
    folder: str,
    folder_paths: List[str],
    limit: Optional[int],
    no_geocode: bool,
    prune: bool,
) -> None:
    stats = result.stats
    logger.info("Cloudinary folder query: %s", folder)
    logger.info("Expanded paths: %s", ", ".join(folder_paths))
    logger.info("Processed images: %d%s", stats.processed, f" (limit={limit})" if limit is not None else "")
    logger.info(
        "Travel points: %d (added %d, updated %d, skipped %d)",
        len(result.points),
        stats.added,
        stats.updated,
        stats.skipped,
    )
    if not no_geocode:
        logger.info("Geocoded (new): %d", stats.geocoded)
    if prune:
        logger.info("Prune enabled: %d stale auto-points removed.", stats.pruned)
    if result.warnings:
        logger.info("Warnings:")
        for warning in result.warnings[:MAX_WARNINGS_SHOWN]:
            logger.info("- %s", warning)
        if len(result.warnings) > MAX_WARNINGS_SHOWN:
            logger.info("(and %d more)", len(result.warnings) - MAX_WARNINGS_SHOWN)


def main(argv: Optional[list[str]] = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    load_dotenv()
    cfg = load_settings()

    parser = build_parser(cfg.TRAVEL_POINTS_PATH, cfg.GEOCODE_CACHE_PATH)
    args = parser.parse_args(argv)

    folder = (args.folder or args.folder_pos or DEFAULT_FOLDER).strip()
    dry_run = args.dry_run or not args.write
    prune = args.prune or args.write
    no_geocode = args.no_geocode or not cfg.GEOCODING_ENABLED
    if prune and args.limit is not None:
        logger.warning("--limit with pruning: points for unprocessed postcards will be pruned too.")

    try:
        client = MediaHostClient.from_settings(cfg)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1

    folder_paths = build_folder_paths(folder, cfg.GALLERY_ROOT)
    # Hidden postcards still mark a place on the map, so no tag filter here.
    expression = build_expression(folder_paths)
    try:
        resources = client.fetch_all(expression)
    except MediaHostError as exc:
        logger.error("sync-travel-points failed: %s", exc)
        return 1

    points = load_travel_points(args.points)
    cache = GeocodeCache.load(args.cache)
    geocoder = None if no_geocode else NominatimGeocoder.from_settings(cfg)

    result = reconcile(
        resources,
        points,
        cache,
        folder,
        geocoder=geocoder,
        no_geocode=no_geocode,
        prune=prune,
        limit=args.limit,
    )
    report(result, folder, folder_paths, args.limit, no_geocode, prune)

    if dry_run:
        logger.info("Dry run (no files written). Use --write to update JSON files.")
        return 0

    logger.info("Wrote: %s", save_travel_points(args.points, result.points))
    logger.info("Wrote: %s", cache.save(args.cache))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
