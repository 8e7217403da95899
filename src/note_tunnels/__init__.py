"""note_tunnels: export notes to PDF and deliver them to HTTP endpoints."""

from __future__ import annotations

from note_tunnels.version import __version__

__all__ = ["__version__"]
