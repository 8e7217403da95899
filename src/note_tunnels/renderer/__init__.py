"""Document rendering package: turns notes into paginated PDFs.

Markdown is rendered to HTML (Jinja2), laid out and captured by headless
Chromium (Playwright), then sliced onto pages with PyMuPDF.
"""

from __future__ import annotations

from note_tunnels.renderer.paginator import PX_PER_PT, PageLayout, Slice, paginate
from note_tunnels.renderer.pdf_engine import assemble_pdf, count_pages, page_size
from note_tunnels.renderer.pdf_generator import PDFGenerator
from note_tunnels.renderer.rasterizer import PlaywrightSurface, rasterize

__all__ = [
    "PX_PER_PT",
    "PageLayout",
    "Slice",
    "paginate",
    "assemble_pdf",
    "count_pages",
    "page_size",
    "PDFGenerator",
    "PlaywrightSurface",
    "rasterize",
]
