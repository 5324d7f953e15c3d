# src/app/services/asset_resolver.py
"""
Turns media references into byte-readable local assets.
"""
from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from src.app.domain.errors import ResolutionError
from src.app.domain.models import MediaKind, MediaPage, MediaReference, ResolvedAsset
from src.app.infra.media.base import MediaIndex

logger = logging.getLogger(__name__)

# Portrait ratio above which an asset is treated as a phone screenshot
SCREENSHOT_MIN_RATIO = 1.5

EXTENSION_TO_CONTENT_TYPE = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
}
CONTENT_TYPE_TO_EXTENSION = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/gif": "gif",
    "image/bmp": "bmp",
}
DEFAULT_CONTENT_TYPE = "image/jpeg"


def normalize_file_locator(locator: str) -> Path:
    """
    Accept file:// URIs and bare paths (share sheets hand over paths
    without a scheme).
    """
    if locator.startswith("file://"):
        return Path(unquote(urlparse(locator).path))
    return Path(locator)


def _content_type_for(path: Path, declared: Optional[str]) -> tuple[str, str]:
    if declared and declared.lower() in CONTENT_TYPE_TO_EXTENSION:
        content_type = declared.lower()
        return content_type, CONTENT_TYPE_TO_EXTENSION[content_type]

    suffix = path.suffix.lower()
    if suffix in EXTENSION_TO_CONTENT_TYPE:
        return EXTENSION_TO_CONTENT_TYPE[suffix], suffix.lstrip(".").replace("jpeg", "jpg")

    guessed, _ = mimetypes.guess_type(path.name)
    if guessed in CONTENT_TYPE_TO_EXTENSION:
        return guessed, CONTENT_TYPE_TO_EXTENSION[guessed]

    return DEFAULT_CONTENT_TYPE, "jpg"


class AssetResolver:
    def __init__(self, media_index: Optional[MediaIndex] = None):
        self._index = media_index

    def resolve(self, reference: MediaReference) -> ResolvedAsset:
        """
        Resolve a media reference to a readable local asset.

        Raises:
            ResolutionError: If the asset cannot be located or read
        """
        if reference.kind == MediaKind.LIBRARY:
            path = self._lookup_library_asset(reference.locator)
        else:
            path = normalize_file_locator(reference.locator)

        if not path.is_file():
            raise ResolutionError(reference.locator, "File does not exist")

        content_type, extension = _content_type_for(path, reference.mime_type)
        asset = ResolvedAsset(path=path, content_type=content_type, extension=extension)

        try:
            data = asset.read_bytes()
        except OSError as error:
            raise ResolutionError(reference.locator, f"Unreadable: {error}") from error
        if not data:
            raise ResolutionError(reference.locator, "File is empty")

        logger.debug("Resolved %s -> %s (%s, %d bytes)", reference.locator, path, content_type, len(data))
        return asset

    def _lookup_library_asset(self, asset_id: str) -> Path:
        if self._index is None:
            raise ResolutionError(asset_id, "No media index configured")

        path = self._index.lookup(asset_id)
        if path is None:
            raise ResolutionError(asset_id, "Asset not found in media index")
        return path

    def list_screenshots(self, limit: int = 50, after: Optional[str] = None) -> MediaPage:
        """
        Recent assets that look like phone screenshots.

        The ratio filter is a heuristic; the cursor still walks the
        unfiltered index so pagination stays stable.
        """
        if self._index is None:
            return MediaPage(assets=[], has_more=False)

        page = self._index.list_assets(limit=limit, after=after)
        screenshots = [asset for asset in page.assets if asset.aspect_ratio > SCREENSHOT_MIN_RATIO]
        logger.info(
            "Filtered screenshots: original=%d, kept=%d, ratio>%.1f",
            len(page.assets),
            len(screenshots),
            SCREENSHOT_MIN_RATIO,
        )
        return MediaPage(assets=screenshots, has_more=page.has_more, end_cursor=page.end_cursor)
