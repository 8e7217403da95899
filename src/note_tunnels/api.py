"""Application facade over the registry, PDF pipeline and delivery client.

Every public method returns a dict with at least {"success": bool}; on
failure it also carries a short "error" message and an "error_type" for
the caller to branch on.  Nothing here raises for user-level errors.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from note_tunnels.exceptions import (
    DocumentError,
    NotFoundError,
    RenderError,
    StorageError,
    TransportError,
    ValidationError,
)
from note_tunnels.renderer.pdf_generator import PDFGenerator
from note_tunnels.storage import SettingsStore
from note_tunnels.tunnels.client import DeliveryClient
from note_tunnels.tunnels.models import DeliveryRequest, Tunnel
from note_tunnels.tunnels.registry import TunnelRegistry

logger = logging.getLogger(__name__)

TEMP_DIR_NAME = ".tunnels-temp"


class TunnelsAPI:
    """Bridge between the command surface and the tunnels backend."""

    def __init__(
        self,
        store: Optional[SettingsStore] = None,
        generator: Optional[PDFGenerator] = None,
        client: Optional[DeliveryClient] = None,
        output_dir: Optional[Path] = None,
    ) -> None:
        if store is None:
            store = SettingsStore()
            store.load()
        self.store = store
        self.registry = TunnelRegistry(store)
        self.generator = generator or PDFGenerator()
        self._client = client
        self.output_dir = Path(output_dir) if output_dir else Path.cwd()

    @staticmethod
    def _classify_error(error: Exception) -> str:
        """Classify an exception for the "error_type" field."""
        if isinstance(error, ValidationError):
            return "validation"
        if isinstance(error, NotFoundError):
            return "not_found"
        if isinstance(error, (RenderError, DocumentError)):
            return "render"
        if isinstance(error, TransportError):
            return "network"
        if isinstance(error, StorageError):
            return "storage"
        return "internal"

    def _failure(self, error: Exception) -> dict:
        return {"success": False, "error": str(error),
                "error_type": self._classify_error(error)}

    def _get_client(self) -> DeliveryClient:
        if self._client is None:
            self._client = DeliveryClient()
        return self._client

    # ── Tunnels ───────────────────────────────────────────────────────

    def list_tunnels(self) -> dict:
        return {"success": True,
                "tunnels": [t.to_dict() for t in self.registry.list()]}

    def create_tunnel(self, name: str, url: str, **fields) -> dict:
        """Create a tunnel; accepts method, headers, description, is_default."""
        try:
            tunnel = self.registry.create(name, url, **fields)
            self.store.save()
            return {"success": True, "tunnel": tunnel.to_dict()}
        except (ValidationError, StorageError) as e:
            return self._failure(e)
        except TypeError as e:
            return {"success": False, "error": str(e), "error_type": "validation"}

    def update_tunnel(self, tunnel_id: str, **changes) -> dict:
        try:
            tunnel = self.registry.update(tunnel_id, **changes)
            self.store.save()
            return {"success": True, "tunnel": tunnel.to_dict()}
        except (ValidationError, NotFoundError, StorageError) as e:
            return self._failure(e)

    def remove_tunnel(self, tunnel_id: str) -> dict:
        try:
            self.registry.remove(tunnel_id)
            self.store.save()
            return {"success": True}
        except StorageError as e:
            return self._failure(e)

    def set_default_tunnel(self, tunnel_id: Optional[str]) -> dict:
        try:
            self.registry.set_default(tunnel_id)
            self.store.save()
            default = self.registry.default()
            return {"success": True,
                    "default": default.to_dict() if default else None}
        except StorageError as e:
            return self._failure(e)

    def choose_tunnel(self, tunnel_id: Optional[str] = None) -> Optional[Tunnel]:
        """Pick the delivery target.

        An explicit id wins; otherwise the default tunnel, otherwise the
        only tunnel.  Returns None when the caller has to choose.

        Raises:
            NotFoundError: If an explicit ``tunnel_id`` is unknown.
        """
        if tunnel_id:
            return self.registry.get(tunnel_id)
        default = self.registry.default()
        if default:
            return default
        tunnels = self.registry.list()
        if len(tunnels) == 1:
            return tunnels[0]
        return None

    # ── Export / Send ─────────────────────────────────────────────────

    async def export_pdf(self, note_path: str) -> dict:
        """Generate a PDF for a note and save it under .tunnels-temp/."""
        try:
            note = Path(note_path)
            pdf_bytes = await self.generator.generate_from_file(
                note, self.store.get_pdf_options(),
            )
            out_dir = self.output_dir / TEMP_DIR_NAME
            out_dir.mkdir(parents=True, exist_ok=True)
            out_path = out_dir / f"{note.stem}.pdf"
            out_path.write_bytes(pdf_bytes)
            logger.info("PDF generated: %s (%d bytes)", out_path, len(pdf_bytes))
            return {"success": True, "path": str(out_path), "size": len(pdf_bytes)}
        except (RenderError, DocumentError, ValidationError) as e:
            return self._failure(e)
        except OSError as e:
            logger.exception("Could not write PDF")
            return {"success": False, "error": f"Could not write PDF: {e}",
                    "error_type": "storage"}

    async def send_note(self, note_path: str, tunnel_id: Optional[str] = None) -> dict:
        """Generate a note's PDF and deliver it to a tunnel.

        Returns the DeliveryResult fields plus the tunnel used.  Transport
        failures that survive every retry come back as
        ``error_type == "network"``.
        """
        try:
            tunnel = self.choose_tunnel(tunnel_id)
        except NotFoundError as e:
            return self._failure(e)
        if tunnel is None:
            if not self.registry.list():
                return {"success": False, "error": "No tunnels configured",
                        "error_type": "validation"}
            return {"success": False, "error": "Several tunnels configured; "
                    "pick one or set a default", "error_type": "validation"}

        note = Path(note_path)
        try:
            pdf_bytes = await self.generator.generate_from_file(
                note, self.store.get_pdf_options(),
            )
        except (RenderError, DocumentError, ValidationError) as e:
            logger.error("PDF generation failed for %s: %s", note, e)
            return self._failure(e)

        policy = self.store.get_request_policy()
        request = DeliveryRequest(
            pdf_bytes=pdf_bytes,
            filename=f"{note.stem}.pdf",
            title=note.stem,
            path=str(note_path),
            timeout_ms=policy.timeout_ms,
            retries=policy.retries,
            debug=self.store.get_debug(),
        )

        try:
            result = await self._get_client().send_to_tunnel(tunnel, request)
        except TransportError as e:
            logger.error("Delivery to %s failed after %d attempt(s): %s",
                         tunnel.name, e.attempts, e)
            response = self._failure(e)
        else:
            response = result.to_dict()
        finally:
            self.registry.mark_used(tunnel.id)

        try:
            self.store.save()
        except StorageError:
            logger.warning("Could not record last use of %s", tunnel.name, exc_info=True)

        response["tunnel"] = tunnel.name
        return response

    # ── Cleanup ───────────────────────────────────────────────────────

    async def cleanup(self) -> None:
        """Close the HTTP client, if one was opened."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
