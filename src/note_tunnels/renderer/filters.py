"""Jinja2 template filters and environment setup."""

from __future__ import annotations

import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def css_color(value: str) -> str:
    """Pass through a #rgb/#rrggbb color, falling back to white."""
    if isinstance(value, str) and _HEX_COLOR.match(value):
        return value
    return "#ffffff"


def setup_jinja_env() -> Environment:
    """Create and configure the Jinja2 template environment."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["css_color"] = css_color
    return env
