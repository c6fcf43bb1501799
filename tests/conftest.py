from __future__ import annotations

from pathlib import Path
from textwrap import dedent
from typing import Callable

import pytest

from htmldocs_server.config import reset_settings


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for name in ("HTMDOCS_API_KEY", "HTMDOCS_TEMPLATES_ROOT", "HTMDOCS_PORT", "PORT"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def write_document() -> Callable[[Path, str, str], Path]:
    def _write(root: Path, relative: str, source: str) -> Path:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(source).lstrip(), encoding="utf-8")
        return path

    return _write
