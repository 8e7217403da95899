"""Tunnel package: registry, models and delivery client."""

from note_tunnels.tunnels.client import DeliveryClient
from note_tunnels.tunnels.models import (
    DeliveryRequest,
    DeliveryResult,
    PDFOptions,
    RequestPolicy,
    Tunnel,
)
from note_tunnels.tunnels.registry import TunnelRegistry, set_default

__all__ = [
    "DeliveryClient",
    "DeliveryRequest",
    "DeliveryResult",
    "PDFOptions",
    "RequestPolicy",
    "Tunnel",
    "TunnelRegistry",
    "set_default",
]
