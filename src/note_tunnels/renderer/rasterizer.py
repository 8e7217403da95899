"""Rasterizer: captures a rendered surface into a fixed-scale bitmap.

The surface is anything that knows its layout size and can produce a
screenshot at a given scale.  The default implementation drives headless
Chromium through Playwright; tests substitute an in-memory fake.
"""

from __future__ import annotations

import io
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

from PIL import Image

from note_tunnels.exceptions import RenderError

logger = logging.getLogger(__name__)

CAPTURE_SCALE = 2.0
BACKGROUND = "#ffffff"


class RenderedSurface(Protocol):
    layout_size: tuple[int, int]    # (width, height) in CSS px

    async def capture(self, scale: float) -> Image.Image: ...


async def rasterize(
    surface: RenderedSurface,
    *,
    scale: float = CAPTURE_SCALE,
    background: str = BACKGROUND,
) -> Image.Image:
    """Capture ``surface`` at ``scale`` onto a solid ``background``.

    Returns:
        An RGB image of exactly ``(round(w * scale), round(h * scale))``
        pixels, where ``(w, h)`` is the surface's layout size.

    Raises:
        RenderError: If the surface cannot be captured.
    """
    width, height = surface.layout_size
    expected = (round(width * scale), round(height * scale))
    if expected[0] == 0 or expected[1] == 0:
        logger.debug("Empty surface (%dx%d), nothing to capture", width, height)
        return Image.new("RGB", expected, background)

    try:
        shot = await surface.capture(scale)
    except RenderError:
        raise
    except Exception as exc:
        raise RenderError(f"Could not capture rendered note: {exc}") from exc

    if shot.size != expected:
        logger.debug("Capture was %s, resampling to %s", shot.size, expected)
        shot = shot.resize(expected, Image.LANCZOS)

    bitmap = Image.new("RGB", expected, background)
    if shot.mode in ("RGBA", "LA", "P"):
        rgba = shot.convert("RGBA")
        bitmap.paste(rgba, (0, 0), rgba)
    else:
        bitmap.paste(shot.convert("RGB"), (0, 0))
    return bitmap


class PlaywrightSurface:
    """A loaded HTML page in headless Chromium.

    Use ``PlaywrightSurface.open(html)`` as an async context manager; the
    browser is closed when the block exits.
    """

    def __init__(self, browser, html: str, layout_size: tuple[int, int]):
        self._browser = browser
        self._html = html
        self.layout_size = layout_size

    @classmethod
    @asynccontextmanager
    async def open(cls, html: str, width_px: int = 900) -> AsyncIterator[PlaywrightSurface]:
        """Launch Chromium, lay out ``html`` and yield the surface.

        Raises:
            RenderError: If the browser cannot start or the page cannot load.
        """
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import async_playwright

        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch()
                try:
                    layout = await cls._measure(browser, html, width_px)
                    logger.debug("Laid out note at %dx%d px", *layout)
                    yield cls(browser, html, layout)
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise RenderError(f"Browser rendering failed: {exc}") from exc

    @staticmethod
    async def _measure(browser, html: str, width_px: int) -> tuple[int, int]:
        page = await browser.new_page(viewport={"width": width_px, "height": 600})
        try:
            await page.set_content(html, wait_until="networkidle")
            width, height = await page.evaluate(
                "() => [document.documentElement.scrollWidth,"
                " document.documentElement.scrollHeight]"
            )
            return int(width), int(height)
        finally:
            await page.close()

    async def capture(self, scale: float) -> Image.Image:
        """Full-page screenshot at ``scale`` with a transparent background."""
        width, height = self.layout_size
        context = await self._browser.new_context(
            viewport={"width": width, "height": max(height, 1)},
            device_scale_factor=scale,
        )
        try:
            page = await context.new_page()
            await page.set_content(self._html, wait_until="networkidle")
            png = await page.screenshot(full_page=True, omit_background=True, type="png")
        finally:
            await context.close()
        return Image.open(io.BytesIO(png))
