"""Markdown note → print-ready HTML.

This is the default document renderer: it turns note text into a
standalone HTML page that a RenderedSurface can lay out and capture.
"""

from __future__ import annotations

import logging

import markdown

from note_tunnels.renderer.filters import setup_jinja_env
from note_tunnels.tunnels.models import PDFOptions

logger = logging.getLogger(__name__)

ARTICLE_WIDTH_PX = 900
BACKGROUND = "#ffffff"


def strip_yaml_frontmatter(text: str) -> str:
    """Drop a leading ``---`` … ``---`` block.

    Text without a frontmatter block, or with one that is never closed,
    is returned unchanged.
    """
    if not text.startswith("---"):
        return text
    lines = text.split("\n")
    if lines[0].strip() != "---":
        return text
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            return "\n".join(lines[i + 1:])
    return text


def markdown_to_html(text: str) -> str:
    """Convert Markdown to an HTML fragment."""
    # A fresh parser per call; markdown.Markdown instances keep state.
    md_parser = markdown.Markdown(extensions=["extra", "fenced_code"])
    return md_parser.convert(text)


def render_note_html(
    markdown_text: str,
    *,
    title: str,
    options: PDFOptions,
    width_px: int = ARTICLE_WIDTH_PX,
    background: str = BACKGROUND,
) -> str:
    """Render a note to a complete HTML document.

    Args:
        markdown_text: Raw note contents.
        title: Used for the document <title>.
        options: ``include_frontmatter`` decides whether the leading YAML
            block is kept.
        width_px: Width of the article column in CSS px.
        background: Page background color.

    Returns:
        The HTML page as a string.
    """
    if not options.include_frontmatter:
        markdown_text = strip_yaml_frontmatter(markdown_text)
    body = markdown_to_html(markdown_text)
    env = setup_jinja_env()
    html = env.get_template("note.html").render(
        title=title,
        body=body,
        width_px=width_px,
        background=background,
    )
    logger.debug("Rendered %s: %d chars of HTML", title, len(html))
    return html
