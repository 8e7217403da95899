"""Note → PDF pipeline: render, rasterize, paginate, assemble."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncContextManager, Callable

from PIL import Image

from note_tunnels.exceptions import RenderError
from note_tunnels.renderer.note_renderer import ARTICLE_WIDTH_PX, render_note_html
from note_tunnels.renderer.pdf_engine import assemble_pdf
from note_tunnels.renderer.rasterizer import (
    BACKGROUND,
    CAPTURE_SCALE,
    PlaywrightSurface,
    RenderedSurface,
    rasterize,
)
from note_tunnels.tunnels.models import PDFOptions

logger = logging.getLogger(__name__)

SurfaceFactory = Callable[[str], AsyncContextManager[RenderedSurface]]


class PDFGenerator:
    """Produces PDF bytes from notes.

    Args:
        surface_factory: Turns an HTML page into a RenderedSurface context
            manager. Defaults to headless Chromium.
        scale: Capture scale (2.0 = twice the layout resolution).
        background: Solid color behind the captured page.
    """

    def __init__(
        self,
        surface_factory: SurfaceFactory = PlaywrightSurface.open,
        *,
        scale: float = CAPTURE_SCALE,
        background: str = BACKGROUND,
    ):
        self.surface_factory = surface_factory
        self.scale = scale
        self.background = background

    async def generate_from_file(self, path: Path, options: PDFOptions) -> bytes:
        """Read a Markdown note from disk and convert it.

        Raises:
            RenderError: If the note cannot be read or rendered.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RenderError(f"Could not read note {path}: {exc}") from exc
        return await self.generate_from_markdown(text, path.stem, options)

    async def generate_from_markdown(
        self, markdown_text: str, title: str, options: PDFOptions,
    ) -> bytes:
        html = render_note_html(
            markdown_text,
            title=title,
            options=options,
            width_px=ARTICLE_WIDTH_PX,
            background=self.background,
        )
        async with self.surface_factory(html) as surface:
            bitmap = await self._capture(surface)
        # The surface (and its browser) is closed before slicing and encoding.
        return assemble_pdf(bitmap, options)

    async def generate_from_surface(
        self, surface: RenderedSurface, options: PDFOptions,
    ) -> bytes:
        bitmap = await self._capture(surface)
        return assemble_pdf(bitmap, options)

    async def _capture(self, surface: RenderedSurface) -> Image.Image:
        bitmap = await rasterize(surface, scale=self.scale, background=self.background)
        logger.debug("Captured %dx%d bitmap", bitmap.width, bitmap.height)
        return bitmap
