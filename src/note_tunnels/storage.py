"""Settings persistence: tunnels, PDF options and request policy.

Settings live in a single JSON file (``~/.note-tunnels/config.json`` by
default, or ``$NOTE_TUNNELS_CONFIG``).  Loading is forgiving: a missing or
unreadable file yields the defaults, and malformed records are dropped
with a warning.  Saving is not: a failed write raises StorageError.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from note_tunnels.exceptions import StorageError, TunnelsError
from note_tunnels.tunnels.models import PDFOptions, RequestPolicy, Tunnel
from note_tunnels.tunnels.registry import (
    set_default,
    validate_headers,
    validate_name,
    validate_url,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "NOTE_TUNNELS_CONFIG"


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".note-tunnels" / "config.json"


def _load_tunnels(records: object) -> list[Tunnel]:
    """Parse persisted tunnel records, keeping at most one default.

    Records go through the same checks as ``TunnelRegistry.create``; one
    that would be rejected there is skipped here.
    """
    if not isinstance(records, list):
        return []
    tunnels = []
    for record in records:
        try:
            tunnel = Tunnel.from_dict(record)
            validate_name(tunnel.name)
            validate_url(tunnel.url)
            validate_headers(tunnel.headers)
        except (TunnelsError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Skipping malformed tunnel record %r: %s", record, exc)
            continue
        tunnels.append(tunnel)
    defaults = [t for t in tunnels if t.is_default]
    if len(defaults) > 1:
        logger.warning("%d tunnels marked default; keeping %s",
                       len(defaults), defaults[0].name)
        tunnels = set_default(tunnels, defaults[0].id)
    return tunnels


class SettingsStore:
    """In-memory settings with explicit load/save to a JSON file."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else default_config_path()
        self._tunnels: list[Tunnel] = []
        self._pdf = PDFOptions()
        self._request = RequestPolicy()
        self._debug = False

    # ── Persistence ───────────────────────────────────────────────────

    def load(self) -> None:
        """Read settings from disk, falling back to defaults section by section."""
        data = self._read_file()

        self._tunnels = _load_tunnels(data.get("tunnels"))
        try:
            self._pdf = PDFOptions.from_dict(data.get("pdf") or {})
        except (TunnelsError, TypeError, ValueError):
            logger.warning("Invalid PDF settings in %s; using defaults", self.path)
            self._pdf = PDFOptions()
        try:
            self._request = RequestPolicy.from_dict(data.get("request") or {})
        except (TunnelsError, TypeError, ValueError):
            logger.warning("Invalid request settings in %s; using defaults", self.path)
            self._request = RequestPolicy()
        self._debug = bool(data.get("debug", False))

        logger.debug("Loaded %d tunnel(s) from %s", len(self._tunnels), self.path)

    def _read_file(self) -> dict:
        try:
            if self.path.exists():
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    return data
                logger.warning("Ignoring settings file %s: not a JSON object", self.path)
        except (OSError, ValueError):
            logger.warning("Could not read settings from %s", self.path, exc_info=True)
        return {}

    def save(self) -> None:
        """Write settings to disk with 0600 permissions (headers may hold secrets).

        Raises:
            StorageError: If the file cannot be written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
            self.path.chmod(0o600)
        except OSError as exc:
            raise StorageError(f"Could not save settings to {self.path}: {exc}") from exc

    def to_dict(self) -> dict:
        return {
            "tunnels": [t.to_dict() for t in self._tunnels],
            "pdf": self._pdf.to_dict(),
            "request": self._request.to_dict(),
            "debug": self._debug,
        }

    # ── Accessors ─────────────────────────────────────────────────────

    def get_tunnels(self) -> list[Tunnel]:
        return list(self._tunnels)

    def set_tunnels(self, tunnels: list[Tunnel]) -> None:
        self._tunnels = list(tunnels)

    def get_pdf_options(self) -> PDFOptions:
        return self._pdf

    def set_pdf_options(self, options: PDFOptions) -> None:
        self._pdf = options

    def get_request_policy(self) -> RequestPolicy:
        return self._request

    def set_request_policy(self, policy: RequestPolicy) -> None:
        self._request = policy

    def get_debug(self) -> bool:
        return self._debug

    def set_debug(self, value: bool) -> None:
        self._debug = bool(value)
