"""Slice geometry for fitting a tall bitmap onto fixed-size pages.

Pagination is purely image based: the bitmap is scaled so its width fills
the page content width, then cut into horizontal bands of
``segment_height_px`` source pixels, one band per page.  No text reflow.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from note_tunnels.exceptions import ValidationError

PX_PER_PT = 96 / 72  # CSS px per typographic point


@dataclass(frozen=True)
class Slice:
    top_px: int         # first source row of the band
    height_px: int      # number of source rows
    height_pt: float    # height the band occupies on its page


@dataclass(frozen=True)
class PageLayout:
    width_pt: float                     # placed width of every slice
    slices: list[Slice] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        """Pages in the final document (an empty layout still has one page)."""
        return max(1, len(self.slices))


def segment_height_px(page_height_pt: float) -> int:
    """Source pixels that make up one full page band, never less than 1."""
    return max(1, math.floor(page_height_pt * PX_PER_PT))


def paginate(
    width_px: int,
    height_px: int,
    page_width_pt: float,
    page_height_pt: float,
) -> PageLayout:
    """Compute the page slices for a ``width_px`` x ``height_px`` bitmap.

    Args:
        width_px: Bitmap width in pixels.
        height_px: Bitmap height in pixels.
        page_width_pt: Page content width (page minus both margins).
        page_height_pt: Page content height (page minus both margins).

    Returns:
        PageLayout whose slices cover rows ``0..height_px`` exactly once,
        in order.  An empty bitmap gives no slices.

    Raises:
        ValidationError: If the content area is not positive.
    """
    if page_width_pt <= 0 or page_height_pt <= 0:
        raise ValidationError(
            "Margins leave no room on the page "
            f"({page_width_pt:.1f} x {page_height_pt:.1f} pt)"
        )
    if width_px <= 0 or height_px <= 0:
        return PageLayout(width_pt=page_width_pt)

    scaled_total_height_pt = page_width_pt * (height_px / width_px)
    if scaled_total_height_pt <= page_height_pt:
        return PageLayout(
            width_pt=page_width_pt,
            slices=[Slice(0, height_px, scaled_total_height_pt)],
        )

    segment = segment_height_px(page_height_pt)
    slices = []
    offset = 0
    while offset < height_px:
        band = min(segment, height_px - offset)
        # A short final band keeps the per-pixel scale of the full ones.
        slices.append(Slice(offset, band, page_height_pt * band / segment))
        offset += band
    return PageLayout(width_pt=page_width_pt, slices=slices)
