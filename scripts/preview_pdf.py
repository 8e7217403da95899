"""Render an exported note PDF to PNGs for eyeballing page breaks.

Writes one image per page plus sheet.png, where the pages are stacked
top to bottom with a red rule at each break.  A slice that was cut in the
wrong place shows up as a line of text split across the rule.

Usage:
    source venv/bin/activate
    python scripts/preview_pdf.py ".tunnels-temp/Meeting notes.pdf"
    python scripts/preview_pdf.py note.pdf --out output/preview --dpi 100

Outputs to output/preview/ by default:
    page_1.png, page_2.png, ...
    sheet.png
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import fitz  # pymupdf
from PIL import Image, ImageDraw

DEFAULT_OUT = Path("output") / "preview"
DPI = 120
RULE = (220, 40, 40)


def render_pages(pdf_path: Path, dpi: int = DPI) -> list[Image.Image]:
    """Render each page of a PDF to a PIL Image."""
    zoom = dpi / 72
    matrix = fitz.Matrix(zoom, zoom)
    with fitz.open(str(pdf_path)) as doc:
        return [
            Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
            for pix in (page.get_pixmap(matrix=matrix) for page in doc)
        ]


def make_sheet(pages: list[Image.Image], rule_px: int = 3) -> Image.Image:
    """Stack pages vertically with a colored rule between them."""
    width = max(p.width for p in pages)
    height = sum(p.height for p in pages) + rule_px * (len(pages) - 1)
    sheet = Image.new("RGB", (width, height), (255, 255, 255))
    draw = ImageDraw.Draw(sheet)

    y = 0
    for i, page in enumerate(pages):
        sheet.paste(page, (0, y))
        y += page.height
        if i < len(pages) - 1:
            draw.rectangle([0, y, width - 1, y + rule_px - 1], fill=RULE)
            y += rule_px
    return sheet


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("pdf", type=Path)
    parser.add_argument("--out", type=Path, default=DEFAULT_OUT)
    parser.add_argument("--dpi", type=int, default=DPI)
    args = parser.parse_args(argv)

    if not args.pdf.exists():
        print(f"Not found: {args.pdf}")
        return 1

    pages = render_pages(args.pdf, args.dpi)
    args.out.mkdir(parents=True, exist_ok=True)
    print(f"{args.pdf}: {len(pages)} page(s)")

    for i, page in enumerate(pages, start=1):
        path = args.out / f"page_{i}.png"
        page.save(str(path))
        print(f"  Saved: {path}")

    sheet_path = args.out / "sheet.png"
    make_sheet(pages).save(str(sheet_path))
    print(f"  Saved: {sheet_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
