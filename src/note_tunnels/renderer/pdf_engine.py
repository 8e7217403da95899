"""PyMuPDF-based document assembler: places bitmap slices on PDF pages."""

from __future__ import annotations

import io
import logging

import fitz  # pymupdf
from PIL import Image

from note_tunnels.exceptions import DocumentError, ValidationError
from note_tunnels.renderer.paginator import PageLayout, paginate
from note_tunnels.tunnels.models import PDFOptions

logger = logging.getLogger(__name__)

# ── Page sizes in points (72pt = 1in), portrait ──────────────────────

PAGE_SIZES_PT = {
    "a4": (595.28, 841.89),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
}


def page_size(fmt: str, orientation: str) -> tuple[float, float]:
    """Return (width, height) in points for a format and orientation."""
    try:
        width, height = PAGE_SIZES_PT[fmt]
    except KeyError:
        raise ValidationError(f"Unknown page format: {fmt!r}") from None
    if orientation == "landscape":
        return height, width
    return width, height


def content_area(options: PDFOptions) -> tuple[float, float]:
    """Page size minus the margin on both sides of each axis."""
    width, height = page_size(options.format, options.orientation)
    return width - options.margin_pt * 2, height - options.margin_pt * 2


def _encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def assemble_pdf(bitmap: Image.Image, options: PDFOptions) -> bytes:
    """Lay ``bitmap`` out over as many pages as it needs.

    The first page always exists, so an empty bitmap still yields a
    one-page document.

    Args:
        bitmap: The rasterized note.
        options: Page format, orientation and margin.

    Returns:
        The complete PDF as bytes.

    Raises:
        ValidationError: If the margins leave no content area.
        DocumentError: If the PDF could not be built.
    """
    page_w, page_h = page_size(options.format, options.orientation)
    content_w, content_h = content_area(options)
    layout = paginate(bitmap.width, bitmap.height, content_w, content_h)

    try:
        data = _write_pages(bitmap, layout, options.margin_pt, page_w, page_h)
    except Exception as exc:
        raise DocumentError(f"Could not build PDF: {exc}") from exc

    logger.info("PDF assembled: %dx%d px -> %d page(s), %d bytes",
                bitmap.width, bitmap.height, layout.page_count, len(data))
    return data


def _write_pages(
    bitmap: Image.Image,
    layout: PageLayout,
    margin: float,
    page_w: float,
    page_h: float,
) -> bytes:
    doc = fitz.open()
    try:
        page = doc.new_page(width=page_w, height=page_h)
        for index, piece in enumerate(layout.slices):
            if index:
                page = doc.new_page(width=page_w, height=page_h)
            band = bitmap.crop(
                (0, piece.top_px, bitmap.width, piece.top_px + piece.height_px)
            )
            rect = fitz.Rect(
                margin, margin, margin + layout.width_pt, margin + piece.height_pt,
            )
            page.insert_image(rect, stream=_encode_png(band), keep_proportion=False)
        return doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()


def count_pages(pdf_bytes: bytes) -> int | None:
    """Count pages in a PDF byte string. Returns None on failure."""
    from pypdf import PdfReader
    from pypdf.errors import PdfReadError

    try:
        return len(PdfReader(io.BytesIO(pdf_bytes)).pages)
    except (PdfReadError, ValueError):
        logger.warning("Could not count pages in %d-byte PDF", len(pdf_bytes))
        return None
