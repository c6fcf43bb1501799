"""Headless Chromium conversion of rendered markup into PDF bytes."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..page_config import PageConfig, is_standard_size, parse_custom_size

__all__ = ["PdfRenderer", "PlaywrightPdfRenderer", "build_pdf_options"]

logger = logging.getLogger(__name__)


class PdfRenderer(Protocol):
    async def render(
        self, *, base_url: str, html: str, page_config: PageConfig
    ) -> bytes:  # pragma: no cover - protocol
        ...


def build_pdf_options(page_config: PageConfig) -> dict[str, Any]:
    """Translate a page configuration into ``Page.pdf`` keyword arguments."""

    options: dict[str, Any] = {"print_background": True}
    if is_standard_size(page_config.size):
        options["format"] = page_config.size
    else:
        custom = parse_custom_size(page_config.size)
        options["width"] = custom.width
        options["height"] = custom.height
    options["landscape"] = page_config.is_landscape
    return options


class PlaywrightPdfRenderer:
    """Launch a browser per document and print the page to PDF."""

    def __init__(self, **launch_options: Any) -> None:
        self._launch_options = launch_options

    async def render(self, *, base_url: str, html: str, page_config: PageConfig) -> bytes:
        from playwright.async_api import async_playwright  # browser stack is optional at import time

        options = build_pdf_options(page_config)
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(**self._launch_options)
            try:
                page = await browser.new_page()
                await page.goto(base_url)
                await page.set_content(html, wait_until="networkidle")
                payload = await page.pdf(**options)
            finally:
                await browser.close()
        logger.debug("Printed %d byte PDF (%s)", len(payload), page_config)
        return payload
