"""Data models for tunnels, PDF options and deliveries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from note_tunnels.exceptions import ValidationError

METHODS = ("POST", "PUT")
PDF_FORMATS = ("a4", "letter", "legal")
PDF_ORIENTATIONS = ("portrait", "landscape")


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds, e.g. 2026-10-19T08:30:00.123Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class Tunnel:
    id: str
    name: str
    url: str
    created_at: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    description: str = ""
    last_used: Optional[str] = None
    is_default: bool = False

    def to_dict(self) -> dict:
        """Flat record in the persisted (camelCase) shape."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "method": self.method,
            "headers": dict(self.headers),
            "createdAt": self.created_at,
            "lastUsed": self.last_used,
            "isDefault": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Tunnel:
        """Build a Tunnel from a persisted record, defaulting missing fields.

        Raises:
            ValidationError: If the record has no id.
        """
        tunnel_id = data.get("id")
        if not tunnel_id or not isinstance(tunnel_id, str):
            raise ValidationError("Tunnel record has no id")
        method = str(data.get("method") or "POST").upper()
        headers = data.get("headers") or {}
        return cls(
            id=tunnel_id,
            name=str(data.get("name") or ""),
            url=str(data.get("url") or ""),
            created_at=str(data.get("createdAt") or utc_timestamp()),
            method=method if method in METHODS else "POST",
            headers={str(k): str(v) for k, v in dict(headers).items()},
            description=str(data.get("description") or ""),
            last_used=data.get("lastUsed") or None,
            is_default=bool(data.get("isDefault", False)),
        )


@dataclass(frozen=True)
class PDFOptions:
    format: str = "a4"                  # "a4", "letter" or "legal"
    orientation: str = "portrait"       # "portrait" or "landscape"
    margin_pt: float = 54.0             # points (1/72 inch), all four sides
    include_frontmatter: bool = True    # keep the leading YAML block

    def __post_init__(self):
        if self.format not in PDF_FORMATS:
            raise ValidationError(
                f"Unknown page format: {self.format!r}. "
                f"Expected one of: {', '.join(PDF_FORMATS)}"
            )
        if self.orientation not in PDF_ORIENTATIONS:
            raise ValidationError(
                f"Unknown orientation: {self.orientation!r}. "
                f"Expected 'portrait' or 'landscape'."
            )
        if self.margin_pt < 0:
            raise ValidationError("Margin must not be negative")

    def to_dict(self) -> dict:
        return {
            "format": self.format,
            "orientation": self.orientation,
            "marginPt": self.margin_pt,
            "includeFrontmatter": self.include_frontmatter,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PDFOptions:
        defaults = cls()
        return cls(
            format=data.get("format", defaults.format),
            orientation=data.get("orientation", defaults.orientation),
            margin_pt=float(data.get("marginPt", defaults.margin_pt)),
            include_frontmatter=bool(
                data.get("includeFrontmatter", defaults.include_frontmatter)
            ),
        )


@dataclass(frozen=True)
class RequestPolicy:
    timeout_ms: int = 15000
    retries: int = 1

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValidationError("Timeout must be positive")
        if self.retries < 0:
            raise ValidationError("Retries must not be negative")

    def to_dict(self) -> dict:
        return {"timeoutMs": self.timeout_ms, "retries": self.retries}

    @classmethod
    def from_dict(cls, data: dict) -> RequestPolicy:
        defaults = cls()
        return cls(
            timeout_ms=int(data.get("timeoutMs", defaults.timeout_ms)),
            retries=int(data.get("retries", defaults.retries)),
        )


@dataclass(frozen=True)
class DeliveryRequest:
    """One outgoing delivery. Built per call and never persisted."""
    pdf_bytes: bytes
    filename: str           # e.g. "Meeting notes.pdf"
    title: str              # note title, sent as the "title" field
    path: str               # originating note path, sent as the "path" field
    timeout_ms: int = 15000
    retries: int = 1
    debug: bool = False

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValidationError("Timeout must be positive")
        if self.retries < 0:
            raise ValidationError("Retries must not be negative")


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    timestamp: str                      # completion time, not request time
    data: Optional[str] = None          # response body on success
    error: Optional[str] = None         # short message on failure

    @classmethod
    def ok(cls, data: str) -> DeliveryResult:
        return cls(success=True, data=data, timestamp=utc_timestamp())

    @classmethod
    def failure(cls, error: str) -> DeliveryResult:
        return cls(success=False, error=error, timestamp=utc_timestamp())

    def to_dict(self) -> dict:
        result: dict = {"success": self.success, "timestamp": self.timestamp}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        return result
