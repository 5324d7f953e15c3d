# src/app/infra/media/directory_index.py
"""
Media index backed by a local directory of images.
Locators are random tokens minted per scan, so they are only valid for the
lifetime of this index instance.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Optional

from PIL import Image, UnidentifiedImageError

from src.app.domain.models import MediaAsset, MediaPage
from src.app.infra.media.base import MediaIndex

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".heic", ".gif", ".bmp"}


class DirectoryMediaIndex(MediaIndex):
    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._lock = Lock()
        self._by_id: dict[str, MediaAsset] = {}
        self._by_path: dict[Path, str] = {}

    def lookup(self, asset_id: str) -> Optional[Path]:
        asset = self._by_id.get(asset_id)
        if asset is None:
            return None
        if not asset.path.is_file():
            logger.warning("Indexed asset disappeared: id=%s, path=%s", asset_id, asset.path)
            return None
        return asset.path

    def list_assets(self, limit: int = 50, after: Optional[str] = None) -> MediaPage:
        assets = self._scan()

        start = 0
        if after:
            ids = [asset.asset_id for asset in assets]
            start = ids.index(after) + 1 if after in ids else len(ids)

        page = assets[start:start + limit]
        has_more = start + limit < len(assets)
        end_cursor = page[-1].asset_id if page else None
        return MediaPage(assets=page, has_more=has_more, end_cursor=end_cursor)

    def _scan(self) -> list[MediaAsset]:
        if not self.root.is_dir():
            logger.warning("Media library directory missing: %s", self.root)
            return []

        with self._lock:
            assets: list[MediaAsset] = []
            for path in self.root.rglob("*"):
                if not path.is_file() or path.suffix.lower() not in IMAGE_SUFFIXES:
                    continue
                asset = self._index_file(path)
                if asset is not None:
                    assets.append(asset)

        assets.sort(key=lambda asset: asset.created_at, reverse=True)
        return assets

    def _index_file(self, path: Path) -> Optional[MediaAsset]:
        asset_id = self._by_path.get(path)
        if asset_id is not None and asset_id in self._by_id:
            return self._by_id[asset_id]

        try:
            with Image.open(path) as image:
                width, height = image.size
        except (UnidentifiedImageError, OSError) as error:
            logger.debug("Skipping unreadable image %s: %s", path, error)
            return None

        asset_id = secrets.token_hex(8)
        asset = MediaAsset(
            asset_id=asset_id,
            path=path,
            width=width,
            height=height,
            created_at=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
        )
        self._by_id[asset_id] = asset
        self._by_path[path] = asset_id
        return asset
