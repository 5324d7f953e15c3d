from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

# Settings() is built at import time by src.app.config
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

from fakes import write_image  # noqa: E402


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    def _make(name: str = "shot.png", width: int = 108, height: int = 234, fmt: str = "PNG") -> Path:
        return write_image(tmp_path / name, width, height, fmt)

    return _make
