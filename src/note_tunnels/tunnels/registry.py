"""Tunnel registry: validated CRUD over the user's delivery destinations.

The registry never mutates a Tunnel in place.  Every operation reads the
full list from the store, computes the next list, and hands it back in a
single ``set_tunnels`` call, so no caller can observe a half-applied
change (in particular, never two default tunnels).

Persistence is the store's business: callers decide when to ``save()``.
"""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import replace
from typing import Mapping, Optional, Protocol, Sequence
from urllib.parse import urlsplit

from note_tunnels.exceptions import NotFoundError, ValidationError
from note_tunnels.tunnels.models import METHODS, Tunnel, utc_timestamp

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"name", "url", "method", "headers", "description", "is_default"}
_IMMUTABLE_FIELDS = {"id", "created_at"}
_HEADER_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


class TunnelStore(Protocol):
    def get_tunnels(self) -> list[Tunnel]: ...

    def set_tunnels(self, tunnels: list[Tunnel]) -> None: ...


# ── Validation ───────────────────────────────────────────────────────

def validate_name(name: object) -> str:
    """Return the trimmed name, or raise ValidationError if it is blank."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required")
    return name.strip()


def validate_url(url: object) -> str:
    """Return the trimmed URL if it is an absolute http(s) URL.

    Raises:
        ValidationError: For malformed URLs and any other scheme.
    """
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("Invalid URL")
    url = url.strip()
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a malformed port
    except ValueError as exc:
        raise ValidationError("Invalid URL") from exc
    if parts.scheme not in ("http", "https"):
        raise ValidationError("URL must be http or https")
    if not parts.hostname:
        raise ValidationError("Invalid URL")
    return url


def validate_method(method: object) -> str:
    if not isinstance(method, str) or method.strip().upper() not in METHODS:
        raise ValidationError(f"Method must be one of: {', '.join(METHODS)}")
    return method.strip().upper()


def validate_headers(headers: Optional[Mapping[str, str]]) -> dict[str, str]:
    """Copy headers into a plain dict that can go on the wire as-is.

    Names must be non-empty ASCII tokens (no whitespace, control
    characters or ``:``); values must be ASCII text without line breaks.

    Raises:
        ValidationError: For the first header that breaks those rules.
    """
    if headers is None:
        return {}
    if not isinstance(headers, Mapping):
        raise ValidationError("Headers must be a mapping of name to value")
    cleaned: dict[str, str] = {}
    for name, value in headers.items():
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Header names must not be empty")
        name = name.strip()
        if not _HEADER_NAME.fullmatch(name):
            raise ValidationError(
                f"Invalid header name {name!r}: use ASCII letters, digits and -"
            )
        if not isinstance(value, str):
            raise ValidationError(f"Header {name!r} must have a string value")
        if not value.isascii() or not value.isprintable():
            raise ValidationError(
                f"Header {name!r} must be plain ASCII text without line breaks"
            )
        cleaned[name] = value
    return cleaned


def _validate_description(description: object) -> str:
    if description is None:
        return ""
    if not isinstance(description, str):
        raise ValidationError("Description must be text")
    return description.strip()


# ── Pure list transformations ────────────────────────────────────────

def set_default(tunnels: Sequence[Tunnel], tunnel_id: Optional[str]) -> list[Tunnel]:
    """Return a new list where only ``tunnel_id`` (if present) is the default.

    An unknown or ``None`` id clears every default.
    """
    return [replace(t, is_default=(t.id == tunnel_id)) for t in tunnels]


def new_tunnel_id() -> str:
    """16-character url-safe id."""
    return secrets.token_urlsafe(12)


# ── Registry ─────────────────────────────────────────────────────────

class TunnelRegistry:
    """CRUD over the store's tunnel list with a single-default invariant."""

    def __init__(self, store: TunnelStore):
        self.store = store

    def list(self) -> list[Tunnel]:
        return list(self.store.get_tunnels())

    def get(self, tunnel_id: str) -> Tunnel:
        for tunnel in self.store.get_tunnels():
            if tunnel.id == tunnel_id:
                return tunnel
        raise NotFoundError(f"Tunnel not found: {tunnel_id}")

    def default(self) -> Optional[Tunnel]:
        return next((t for t in self.store.get_tunnels() if t.is_default), None)

    def create(
        self,
        name: str,
        url: str,
        *,
        method: str = "POST",
        headers: Optional[Mapping[str, str]] = None,
        description: str = "",
        is_default: bool = False,
    ) -> Tunnel:
        """Validate and append a new tunnel.

        Returns:
            The created Tunnel (with its fresh id and creation timestamp).

        Raises:
            ValidationError: If any field is invalid.
        """
        tunnel = Tunnel(
            id=new_tunnel_id(),
            name=validate_name(name),
            url=validate_url(url),
            method=validate_method(method),
            headers=validate_headers(headers),
            description=_validate_description(description),
            created_at=utc_timestamp(),
        )
        tunnels = [*self.store.get_tunnels(), tunnel]
        if is_default:
            tunnels = set_default(tunnels, tunnel.id)
            tunnel = tunnels[-1]
        self.store.set_tunnels(tunnels)
        logger.info("Created tunnel %s (%s)", tunnel.name, tunnel.id)
        return tunnel

    def update(self, tunnel_id: str, **changes) -> Tunnel:
        """Apply ``changes`` to one tunnel, re-validating only those fields.

        Raises:
            NotFoundError: If ``tunnel_id`` is not in the registry.
            ValidationError: If a field is invalid, immutable or unknown.
        """
        immutable = _IMMUTABLE_FIELDS.intersection(changes)
        if immutable:
            raise ValidationError(f"Cannot change {', '.join(sorted(immutable))}")
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown tunnel fields: {', '.join(sorted(unknown))}")

        tunnels = self.store.get_tunnels()
        index = next((i for i, t in enumerate(tunnels) if t.id == tunnel_id), None)
        if index is None:
            raise NotFoundError(f"Tunnel not found: {tunnel_id}")

        validated: dict = {}
        if "name" in changes:
            validated["name"] = validate_name(changes["name"])
        if "url" in changes:
            validated["url"] = validate_url(changes["url"])
        if "method" in changes:
            validated["method"] = validate_method(changes["method"])
        if "headers" in changes:
            validated["headers"] = validate_headers(changes["headers"])
        if "description" in changes:
            validated["description"] = _validate_description(changes["description"])

        next_tunnels = list(tunnels)
        next_tunnels[index] = replace(tunnels[index], **validated)
        if changes.get("is_default") is True:
            next_tunnels = set_default(next_tunnels, tunnel_id)
        elif "is_default" in changes:
            next_tunnels[index] = replace(next_tunnels[index], is_default=False)

        self.store.set_tunnels(next_tunnels)
        return next_tunnels[index]

    def remove(self, tunnel_id: str) -> None:
        tunnels = self.store.get_tunnels()
        remaining = [t for t in tunnels if t.id != tunnel_id]
        if len(remaining) != len(tunnels):
            logger.info("Removed tunnel %s", tunnel_id)
        self.store.set_tunnels(remaining)

    def set_default(self, tunnel_id: Optional[str]) -> None:
        self.store.set_tunnels(set_default(self.store.get_tunnels(), tunnel_id))

    def mark_used(self, tunnel_id: str) -> None:
        """Stamp ``last_used`` with the current time; unknown ids are ignored."""
        tunnels = self.store.get_tunnels()
        if not any(t.id == tunnel_id for t in tunnels):
            return
        now = utc_timestamp()
        self.store.set_tunnels([
            replace(t, last_used=now) if t.id == tunnel_id else t
            for t in tunnels
        ])
