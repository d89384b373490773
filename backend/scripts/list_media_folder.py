"""List the images of a media-host folder.

Usage:
    python -m scripts.list_media_folder [Countries] [--json] [--count] [--limit 50]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from domain.errors import ConfigurationError, MediaHostError
from domain.models import RemoteResource
from services.gallery import summarize_by_folder
from services.media_host import MediaHostClient, build_expression, build_folder_paths
from settings import load_settings

logger = logging.getLogger("list_media_folder")


def _pick(resource: RemoteResource) -> dict:
    return {
        "public_id": resource.identifier,
        "folder": resource.folder_path or None,
        "bytes": resource.bytes,
        "created_at": resource.created_at.isoformat() if resource.created_at else None,
        "format": resource.format,
        "width": resource.width,
        "height": resource.height,
        "tags": sorted(resource.tags),
        "metadata": resource.metadata,
        "context": resource.context,
    }


def _row(resource: RemoteResource) -> str:
    title = resource.meta_str("name") or resource.context.get("caption") or ""
    return " | ".join(
        [
            resource.identifier,
            resource.folder_path,
            resource.created_at.isoformat() if resource.created_at else "",
            str(resource.bytes or ""),
            resource.meta_str("placeId") or "",
            str(title),
            resource.meta_str("desc") or "",
        ]
    )


def main(argv: Optional[list[str]] = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    load_dotenv()
    cfg = load_settings()

    parser = argparse.ArgumentParser(description="List images in a media-host folder.")
    parser.add_argument("folder", nargs="?", default="Countries")
    parser.add_argument("--json", action="store_true", help="Print every resource as JSON.")
    parser.add_argument("--count", "--summary", dest="count", action="store_true", help="Only print per-folder totals.")
    parser.add_argument("--limit", type=int, default=50, help="Rows to show in table mode.")
    args = parser.parse_args(argv)

    try:
        client = MediaHostClient.from_settings(cfg)
        folder_paths = build_folder_paths(args.folder, cfg.GALLERY_ROOT)
        resources = client.fetch_all(build_expression(folder_paths))
    except (ConfigurationError, MediaHostError) as exc:
        logger.error("Cloudinary query failed: %s", exc)
        return 1

    if args.json:
        payload = {
            "folderArg": args.folder,
            "folderPaths": folder_paths,
            "total": len(resources),
            "items": [_pick(r) for r in resources],
        }
        sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False))
        sys.stdout.write("\n")
        return 0

    logger.info("Folder query: %s", args.folder)
    logger.info("Expanded paths: %s", ", ".join(folder_paths))
    logger.info("Total images: %d", len(resources))

    if args.count:
        for row in summarize_by_folder(resources):
            logger.info("%6d  %s", row["total"], row["folder"])
        return 0

    limit = max(args.limit, 0)
    logger.info("public_id | folder | created_at | bytes | placeId | title | desc")
    for resource in resources[:limit]:
        logger.info("%s", _row(resource))
    if len(resources) > limit:
        logger.info("(Showing first %d. Use --json for full output, or --limit N.)", limit)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
