"""Build gallery.json from every visible image under the gallery root.

Usage:
    python -m scripts.build_gallery [--out src/data/gallery.json]
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from dotenv import load_dotenv

from domain.errors import ConfigurationError, MediaHostError
from services.gallery import build_gallery
from services.media_host import MediaHostClient, gallery_expression
from settings import load_settings
from storage.json_store import write_json

logger = logging.getLogger("build_gallery")


def main(argv: Optional[list[str]] = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    load_dotenv()
    cfg = load_settings()

    parser = argparse.ArgumentParser(description="Build the gallery JSON from the media host.")
    parser.add_argument("--out", default=cfg.GALLERY_OUTPUT_PATH, help="Output JSON path.")
    args = parser.parse_args(argv)

    try:
        client = MediaHostClient.from_settings(cfg)
        resources = client.fetch_all(gallery_expression(cfg.GALLERY_ROOT))
    except (ConfigurationError, MediaHostError) as exc:
        logger.error("Error building gallery: %s", exc)
        return 1

    gallery = build_gallery(resources, cfg.CLOUDINARY_CLOUD_NAME, cfg.GALLERY_ROOT)
    path = write_json(args.out, gallery)
    logger.info("Gallery JSON generated: %s (%d images in %d folders)", path, gallery["total"], len(gallery["folders"]))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
