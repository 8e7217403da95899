"""Custom exception hierarchy for note_tunnels."""

from __future__ import annotations


class TunnelsError(Exception):
    """Base exception for all note_tunnels errors."""


class ValidationError(TunnelsError, ValueError):
    """Invalid tunnel fields or configuration values."""


class NotFoundError(TunnelsError):
    """A tunnel id that is not in the registry."""


class RenderError(TunnelsError):
    """The note could not be rendered or captured into a bitmap."""


class DocumentError(TunnelsError):
    """The PDF document could not be assembled."""


class TransportError(TunnelsError):
    """A delivery attempt that did not complete (timeout, abort, connection)."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class ApplicationError(TunnelsError):
    """The endpoint answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class StorageError(TunnelsError):
    """Settings could not be written to disk."""
