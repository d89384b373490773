"""Install a mock gallery JSON for offline development.

Usage:
    python -m scripts.use_mock [mock-data/sample.json] [--target public/gallery.json]
"""

from __future__ import annotations

import argparse
import json
import logging
import shutil
from pathlib import Path
from typing import Optional

logger = logging.getLogger("use_mock")


def install_mock(mock_path: Path, target: Path) -> Path:
    """Validate `mock_path` as JSON and copy it to `target`."""
    if not mock_path.exists():
        raise FileNotFoundError(f"Mock file not found: {mock_path}")
    with open(mock_path, "r", encoding="utf-8") as f:
        json.load(f)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(mock_path, target)
    return target


def main(argv: Optional[list[str]] = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Copy a mock gallery JSON into place.")
    parser.add_argument("mock", nargs="?", default=str(Path("mock-data") / "sample.json"))
    parser.add_argument("--target", default=str(Path("public") / "gallery.json"))
    args = parser.parse_args(argv)

    try:
        target = install_mock(Path(args.mock), Path(args.target))
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 1
    except ValueError as exc:
        logger.error("Mock JSON is invalid: %s", exc)
        return 1
    logger.info("Mock gallery copied to %s", target)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
