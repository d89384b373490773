"""
Cloudinary search client.

Only the Admin API search endpoint is used: `search(expression)` returns one
page of raw resources plus the cursor for the next page.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import requests

from domain.errors import ConfigurationError, MediaHostError
from domain.models import RemoteResource
from settings import Settings

logger = logging.getLogger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"
MAX_RESULTS_PER_PAGE = 500
SEARCH_FIELDS = ("metadata", "context", "tags")


def build_folder_paths(folder: str, gallery_root: str) -> List[str]:
    """A bare folder name is also looked up under the gallery root."""
    folder = folder.strip()
    if "/" in folder:
        return [folder]
    return [folder, f"{gallery_root}/{folder}"]


def build_expression(paths: Sequence[str], exclude_hidden: bool = False) -> str:
    clauses: List[str] = []
    for p in paths:
        clauses.append(f'asset_folder:"{p}"')
        clauses.append(f'folder:"{p}"')
        clauses.append(f'asset_folder:"{p}/*"')
        clauses.append(f'folder:"{p}/*"')
    expression = f"({' OR '.join(clauses)}) AND resource_type:image"
    if exclude_hidden:
        expression += " AND -tags=hidden"
    return expression


def gallery_expression(gallery_root: str) -> str:
    """Every visible image below the gallery root."""
    return (
        f'(asset_folder:"{gallery_root}/*" OR folder:"{gallery_root}/*") '
        "AND resource_type:image AND -tags=hidden"
    )


class MediaHostClient:
    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.cloud_name = cloud_name
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (api_key, api_secret)

    @classmethod
    def from_settings(cls, cfg: Settings) -> "MediaHostClient":
        if not cfg.has_media_credentials:
            raise ConfigurationError(
                "Missing Cloudinary credentials. Set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, "
                "CLOUDINARY_API_SECRET (e.g. via a local .env file)."
            )
        return cls(
            cfg.CLOUDINARY_CLOUD_NAME,
            cfg.CLOUDINARY_API_KEY,
            cfg.CLOUDINARY_API_SECRET,
            timeout=cfg.MEDIA_HOST_TIMEOUT,
        )

    @property
    def search_url(self) -> str:
        return f"{CLOUDINARY_API_BASE}/{self.cloud_name}/resources/search"

    def search(
        self,
        expression: str,
        next_cursor: Optional[str] = None,
        max_results: int = MAX_RESULTS_PER_PAGE,
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """Fetch one page of raw resources; raises MediaHostError on any failure."""
        body: Dict[str, Any] = {
            "expression": expression,
            "sort_by": [{"created_at": "desc"}],
            "max_results": max_results,
            "with_field": list(SEARCH_FIELDS),
        }
        if next_cursor:
            body["next_cursor"] = next_cursor
        try:
            resp = self.session.post(self.search_url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise MediaHostError(f"Cloudinary search request failed: {exc}") from exc
        if not resp.ok:
            raise MediaHostError(
                f"Cloudinary search returned HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MediaHostError(f"Cloudinary search returned invalid JSON: {exc}") from exc
        return list(payload.get("resources") or []), payload.get("next_cursor") or None

    def iter_pages(self, expression: str) -> Iterator[List[Dict[str, Any]]]:
        cursor: Optional[str] = None
        while True:
            page, cursor = self.search(expression, next_cursor=cursor)
            logger.debug("Fetched %d resources (next_cursor=%s)", len(page), cursor)
            yield page
            if not cursor:
                break

    def fetch_all(self, expression: str) -> List[RemoteResource]:
        resources: List[RemoteResource] = []
        for page in self.iter_pages(expression):
            resources.extend(RemoteResource.from_api(item) for item in page)
        return resources
