"""
JSON artifact storage.

The registry, geocode cache and gallery are small human-edited JSON files that
are read once at the start of a run and written once at the end.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List, Union

from domain.models import TravelPoint

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_json(path: PathLike, fallback: Any) -> Any:
    """Load JSON from `path`; a missing or unreadable file yields `fallback`."""
    p = Path(path)
    if not p.exists():
        return fallback
    try:
        with open(p, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s (%s); using empty data", p, exc)
        return fallback


def write_json(path: PathLike, value: Any) -> Path:
    """
    Write `value` as 2-space indented JSON with a trailing newline.

    The file is replaced atomically so an interrupted run never leaves a
    half-written registry behind.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(p.parent), prefix=f".{p.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_name, p)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return p


def load_travel_points(path: PathLike) -> List[TravelPoint]:
    data = read_json(path, [])
    if not isinstance(data, list):
        logger.warning("%s does not hold a JSON array; treating registry as empty", path)
        return []
    return [TravelPoint.from_dict(item) for item in data if isinstance(item, dict)]


def save_travel_points(path: PathLike, points: List[TravelPoint]) -> Path:
    return write_json(path, [p.to_dict() for p in points])
