# src/app/infra/media/base.py
"""
Abstract interface for the platform photo index.
Library assets are addressed by opaque locators; only the index can turn
them into a readable path.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from src.app.domain.models import MediaPage


class MediaIndex(ABC):
    @abstractmethod
    def lookup(self, asset_id: str) -> Optional[Path]:
        """
        Resolve an asset locator to a concrete local path.

        Returns:
            The path, or None if the index has no entry (e.g. the asset
            was deleted after it was selected)
        """
        pass

    @abstractmethod
    def list_assets(self, limit: int = 50, after: Optional[str] = None) -> MediaPage:
        """
        Enumerate photo assets, newest capture first.

        Args:
            limit: Page size
            after: Cursor returned as end_cursor by the previous page
        """
        pass
