"""Delivery client: sends a generated PDF to a tunnel endpoint.

Each attempt runs inside its own timeout window; attempts that fail at
the transport layer (timeout, dropped connection, protocol error) are
retried immediately.  A response that arrives with a non-2xx status is
an answer, not a transport failure: it is returned as a failed
DeliveryResult straight away.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from note_tunnels.exceptions import ApplicationError, TransportError
from note_tunnels.tunnels.models import DeliveryRequest, DeliveryResult, Tunnel

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


class DeliveryClient:
    """Async HTTP client for tunnel deliveries."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(follow_redirects=True)

    # -- Public API ---------------------------------------------------------

    async def send_to_tunnel(
        self, tunnel: Tunnel, request: DeliveryRequest,
    ) -> DeliveryResult:
        """Deliver ``request`` to ``tunnel``.

        Returns:
            A successful result carrying the response body, or a failed
            result for a non-2xx status.

        Raises:
            TransportError: If every attempt failed at the transport layer.
                The last attempt's error is the one raised.
        """
        log = logger.info if request.debug else logger.debug
        log("Sending %s via %s %s (timeout %dms, retries %d)",
            request.filename, tunnel.method, tunnel.url,
            request.timeout_ms, request.retries)

        try:
            result = await self._try_with_retries(
                lambda: self._attempt(tunnel, request), request.retries,
            )
        except ApplicationError as exc:
            result = DeliveryResult.failure(str(exc))

        log("Response from %s: %s", tunnel.name, result)
        return result

    # -- Retry / timeout ----------------------------------------------------

    async def _try_with_retries(
        self,
        fn: Callable[[], Awaitable[DeliveryResult]],
        retries: int,
    ) -> DeliveryResult:
        """Run ``fn`` up to ``retries + 1`` times, retrying only TransportError.

        The error of the final attempt is re-raised with ``attempts`` set.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await fn()
            except TransportError as exc:
                exc.attempts = attempt
                if attempt > retries:
                    raise
                logger.warning("Delivery attempt %d/%d failed (%s), retrying",
                               attempt, retries + 1, exc)

    async def _attempt(self, tunnel: Tunnel, request: DeliveryRequest) -> DeliveryResult:
        """One request inside a fresh timeout window.

        The window is disarmed when the block exits, whichever way it exits.
        Cancellation of the calling task itself is not converted and
        propagates as ``asyncio.CancelledError``.
        """
        try:
            async with asyncio.timeout(request.timeout_ms / 1000):
                return await self._do_request(tunnel, request)
        except TimeoutError as exc:
            raise TransportError(
                f"Request timed out after {request.timeout_ms}ms"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {str(exc) or type(exc).__name__}") from exc

    # -- HTTP ---------------------------------------------------------------

    async def _do_request(self, tunnel: Tunnel, request: DeliveryRequest) -> DeliveryResult:
        response = await self.client.request(
            tunnel.method,
            tunnel.url,
            headers=dict(tunnel.headers),
            files={"file": (request.filename, request.pdf_bytes, PDF_MEDIA_TYPE)},
            data={"title": request.title, "path": request.path},
            timeout=None,
        )
        body = response.text
        logger.debug("Response: %d (%d bytes)", response.status_code, len(response.content))
        if not response.is_success:
            raise ApplicationError(response.status_code, body or response.reason_phrase)
        return DeliveryResult.ok(body)

    # -- Cleanup ------------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()
