"""
Gallery manifest builder.

Flattens media-host resources into the `gallery.json` document the static
site reads: resources grouped by folder, each with display text and three
delivery URLs (preview, grid, thumbnail).
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from domain.models import RemoteResource

DELIVERY_BASE = "https://res.cloudinary.com"

PREVIEW_TRANSFORM = "f_auto,q_auto/c_limit,w_1200"
GRID_TRANSFORM = "f_auto,q_auto/c_limit,w_720"
THUMB_TRANSFORM = "f_auto,q_auto/c_fill,g_auto,h_360,w_480"


def delivery_url(cloud_name: str, public_id: str, transform: str) -> str:
    return f"{DELIVERY_BASE}/{cloud_name}/image/upload/{transform}/{public_id}"


def _first_text(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def gallery_item(resource: RemoteResource, cloud_name: str) -> Dict[str, Any]:
    meta_name = resource.meta_str("name")
    meta_desc = resource.meta_str("desc")
    author = _first_text(resource.metadata.get("author"), resource.context.get("author"))
    return {
        "public_id": resource.identifier,
        "format": resource.format,
        "width": resource.width,
        "height": resource.height,
        "bytes": resource.bytes,
        "folder": resource.folder_path,
        "tags": sorted(resource.tags),
        "title": meta_name or _first_text(resource.context.get("caption")),
        "description": meta_desc or _first_text(resource.context.get("alt")),
        "url": delivery_url(cloud_name, resource.identifier, PREVIEW_TRANSFORM),
        "grid": delivery_url(cloud_name, resource.identifier, GRID_TRANSFORM),
        "thumb": delivery_url(cloud_name, resource.identifier, THUMB_TRANSFORM),
        "metadata": {"name": meta_name, "desc": meta_desc, "author": author},
    }


def build_gallery(
    resources: Iterable[RemoteResource],
    cloud_name: str,
    gallery_root: str,
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Group visible resources by folder; `hidden`-tagged ones are left out."""
    folders: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    total = 0
    for resource in resources:
        if resource.is_hidden:
            continue
        folders.setdefault(resource.folder_path, []).append(gallery_item(resource, cloud_name))
        total += 1
    stamp = generated_at or datetime.now(timezone.utc)
    return {
        "generatedAt": stamp.isoformat(),
        "cloudName": cloud_name,
        "root": gallery_root,
        "total": total,
        "folders": folders,
    }


def summarize_by_folder(resources: Iterable[RemoteResource]) -> List[Dict[str, Any]]:
    """Per-folder counts, largest first."""
    counts: Dict[str, int] = {}
    for resource in resources:
        folder = resource.folder_path or "(unknown)"
        counts[folder] = counts.get(folder, 0) + 1
    rows = [{"folder": folder, "total": total} for folder, total in counts.items()]
    return sorted(rows, key=lambda r: r["total"], reverse=True)
