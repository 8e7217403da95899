"""Tests for TunnelsAPI: the dict-returning facade."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from note_tunnels.api import TEMP_DIR_NAME, TunnelsAPI
from note_tunnels.exceptions import (
    RenderError,
    StorageError,
    TransportError,
    ValidationError,
)
from note_tunnels.storage import SettingsStore
from note_tunnels.tunnels.models import DeliveryResult, RequestPolicy


class FakeGenerator:
    def __init__(self, pdf=b"%PDF-fake", error=None):
        self.pdf = pdf
        self.error = error
        self.calls = []

    async def generate_from_file(self, path, options):
        self.calls.append((Path(path), options))
        if self.error:
            raise self.error
        return self.pdf


class FakeClient:
    def __init__(self, result=None, error=None):
        self.result = result or DeliveryResult.ok("received")
        self.error = error
        self.sent = []
        self.closed = False

    async def send_to_tunnel(self, tunnel, request):
        self.sent.append((tunnel, request))
        if self.error:
            raise self.error
        return self.result

    async def aclose(self):
        self.closed = True


@pytest.fixture
def store(tmp_path):
    return SettingsStore(tmp_path / "config.json")


@pytest.fixture
def note(tmp_path):
    path = tmp_path / "vault" / "Meeting.md"
    path.parent.mkdir()
    path.write_text("# Meeting\n")
    return path


def _api(store, tmp_path, generator=None, client=None):
    return TunnelsAPI(
        store=store,
        generator=generator or FakeGenerator(),
        client=client or FakeClient(),
        output_dir=tmp_path,
    )


class TestClassifyError:
    @pytest.mark.parametrize("error, expected", [
        (ValidationError("x"), "validation"),
        (RenderError("x"), "render"),
        (TransportError("x"), "network"),
        (StorageError("x"), "storage"),
        (RuntimeError("x"), "internal"),
    ])
    def test_types(self, error, expected):
        assert TunnelsAPI._classify_error(error) == expected


class TestTunnelCrud:
    def test_create_persists(self, store, tmp_path):
        api = _api(store, tmp_path)
        result = api.create_tunnel("Inbox", "https://in.example", headers={"X-Key": "k"})

        assert result["success"] is True
        assert result["tunnel"]["headers"] == {"X-Key": "k"}
        reloaded = SettingsStore(store.path)
        reloaded.load()
        assert [t.name for t in reloaded.get_tunnels()] == ["Inbox"]

    def test_create_invalid_url(self, store, tmp_path):
        result = _api(store, tmp_path).create_tunnel("Inbox", "ftp://in.example")
        assert result["success"] is False
        assert result["error_type"] == "validation"
        assert not store.path.exists()

    def test_create_with_non_ascii_header_then_send(self, store, tmp_path, note):
        client = FakeClient()
        api = _api(store, tmp_path, client=client)

        created = api.create_tunnel("A", "https://example.com",
                                    headers={"Authorization": "Bearer café"})
        sent = asyncio.run(api.send_note(str(note)))

        assert created["success"] is False
        assert created["error_type"] == "validation"
        assert sent == {"success": False, "error": "No tunnels configured",
                        "error_type": "validation"}
        assert client.sent == []

    def test_stored_tunnel_with_non_ascii_header_is_not_sent(self, tmp_path, note):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"tunnels": [{
            "id": "t1", "name": "A", "url": "https://example.com",
            "headers": {"Authorization": "Bearer café"},
        }]}))
        store = SettingsStore(path)
        store.load()
        client = FakeClient()

        result = asyncio.run(_api(store, tmp_path, client=client).send_note(str(note)))

        assert result["error"] == "No tunnels configured"
        assert client.sent == []

    def test_create_unknown_keyword(self, store, tmp_path):
        result = _api(store, tmp_path).create_tunnel("Inbox", "https://x", color="red")
        assert result["error_type"] == "validation"

    def test_update_and_not_found(self, store, tmp_path):
        api = _api(store, tmp_path)
        tunnel_id = api.create_tunnel("Inbox", "https://in.example")["tunnel"]["id"]

        updated = api.update_tunnel(tunnel_id, name="Archive", method="put")
        assert updated["tunnel"]["name"] == "Archive"
        assert updated["tunnel"]["method"] == "PUT"

        missing = api.update_tunnel("nope", name="x")
        assert missing["error_type"] == "not_found"

    def test_remove_and_list(self, store, tmp_path):
        api = _api(store, tmp_path)
        tunnel_id = api.create_tunnel("Inbox", "https://in.example")["tunnel"]["id"]
        assert api.remove_tunnel(tunnel_id) == {"success": True}
        assert api.list_tunnels() == {"success": True, "tunnels": []}

    def test_set_and_clear_default(self, store, tmp_path):
        api = _api(store, tmp_path)
        first = api.create_tunnel("A", "https://a.example")["tunnel"]["id"]
        api.create_tunnel("B", "https://b.example")

        assert api.set_default_tunnel(first)["default"]["id"] == first
        assert api.set_default_tunnel(None)["default"] is None

    def test_save_failure_reported(self, store, tmp_path, monkeypatch):
        api = _api(store, tmp_path)

        def broken_save():
            raise StorageError("read-only")

        monkeypatch.setattr(store, "save", broken_save)
        result = api.create_tunnel("Inbox", "https://in.example")
        assert result == {"success": False, "error": "read-only", "error_type": "storage"}


class TestChooseTunnel:
    def test_no_tunnels(self, store, tmp_path):
        assert _api(store, tmp_path).choose_tunnel() is None

    def test_single_tunnel(self, store, tmp_path):
        api = _api(store, tmp_path)
        api.create_tunnel("Only", "https://only.example")
        assert api.choose_tunnel().name == "Only"

    def test_default_wins(self, store, tmp_path):
        api = _api(store, tmp_path)
        api.create_tunnel("A", "https://a.example")
        api.create_tunnel("B", "https://b.example", is_default=True)
        assert api.choose_tunnel().name == "B"

    def test_several_without_default(self, store, tmp_path):
        api = _api(store, tmp_path)
        api.create_tunnel("A", "https://a.example")
        api.create_tunnel("B", "https://b.example")
        assert api.choose_tunnel() is None

    def test_explicit_id(self, store, tmp_path):
        api = _api(store, tmp_path)
        a = api.create_tunnel("A", "https://a.example")["tunnel"]["id"]
        api.create_tunnel("B", "https://b.example", is_default=True)
        assert api.choose_tunnel(a).name == "A"


class TestExportPdf:
    def test_writes_into_temp_dir(self, store, tmp_path, note):
        generator = FakeGenerator(pdf=b"%PDF-1.7 data")
        result = asyncio.run(_api(store, tmp_path, generator=generator).export_pdf(str(note)))

        out = tmp_path / TEMP_DIR_NAME / "Meeting.pdf"
        assert result == {"success": True, "path": str(out), "size": 13}
        assert out.read_bytes() == b"%PDF-1.7 data"
        assert generator.calls[0][1] == store.get_pdf_options()

    def test_render_failure(self, store, tmp_path, note):
        generator = FakeGenerator(error=RenderError("browser missing"))
        result = asyncio.run(_api(store, tmp_path, generator=generator).export_pdf(str(note)))

        assert result["error_type"] == "render"
        assert not (tmp_path / TEMP_DIR_NAME).exists()


class TestSendNote:
    def test_no_tunnels_configured(self, store, tmp_path, note):
        client = FakeClient()
        result = asyncio.run(_api(store, tmp_path, client=client).send_note(str(note)))

        assert result["success"] is False
        assert result["error"] == "No tunnels configured"
        assert client.sent == []

    def test_ambiguous_target(self, store, tmp_path, note):
        api = _api(store, tmp_path)
        api.create_tunnel("A", "https://a.example")
        api.create_tunnel("B", "https://b.example")
        result = asyncio.run(api.send_note(str(note)))
        assert "pick one" in result["error"]

    def test_unknown_tunnel_id(self, store, tmp_path, note):
        api = _api(store, tmp_path)
        api.create_tunnel("A", "https://a.example")
        result = asyncio.run(api.send_note(str(note), "missing"))
        assert result["error_type"] == "not_found"

    def test_builds_request_from_note_and_policy(self, store, tmp_path, note):
        client = FakeClient()
        api = _api(store, tmp_path, client=client)
        api.create_tunnel("Inbox", "https://in.example")
        store.set_request_policy(RequestPolicy(timeout_ms=2500, retries=4))
        store.set_debug(True)

        result = asyncio.run(api.send_note(str(note)))

        assert result["success"] is True
        assert result["data"] == "received"
        assert result["tunnel"] == "Inbox"
        tunnel, request = client.sent[0]
        assert tunnel.name == "Inbox"
        assert request.filename == "Meeting.pdf"
        assert request.title == "Meeting"
        assert request.path == str(note)
        assert request.pdf_bytes == b"%PDF-fake"
        assert (request.timeout_ms, request.retries, request.debug) == (2500, 4, True)

    def test_marks_tunnel_used_and_saves(self, store, tmp_path, note):
        api = _api(store, tmp_path)
        api.create_tunnel("Inbox", "https://in.example")

        asyncio.run(api.send_note(str(note)))

        reloaded = SettingsStore(store.path)
        reloaded.load()
        assert reloaded.get_tunnels()[0].last_used is not None

    def test_application_failure_is_passed_through(self, store, tmp_path, note):
        client = FakeClient(result=DeliveryResult.failure("HTTP 401: denied"))
        api = _api(store, tmp_path, client=client)
        api.create_tunnel("Inbox", "https://in.example")

        result = asyncio.run(api.send_note(str(note)))

        assert result["success"] is False
        assert result["error"] == "HTTP 401: denied"
        assert store.get_tunnels()[0].last_used is not None

    def test_transport_failure_is_network_error(self, store, tmp_path, note):
        error = TransportError("Network error: refused", attempts=2)
        api = _api(store, tmp_path, client=FakeClient(error=error))
        api.create_tunnel("Inbox", "https://in.example")

        result = asyncio.run(api.send_note(str(note)))

        assert result["error_type"] == "network"
        assert result["error"] == "Network error: refused"
        assert result["tunnel"] == "Inbox"
        assert store.get_tunnels()[0].last_used is not None

    def test_generation_failure_skips_delivery(self, store, tmp_path, note):
        client = FakeClient()
        api = _api(store, tmp_path, generator=FakeGenerator(error=RenderError("boom")),
                   client=client)
        api.create_tunnel("Inbox", "https://in.example")

        result = asyncio.run(api.send_note(str(note)))

        assert result["error_type"] == "render"
        assert client.sent == []
        assert store.get_tunnels()[0].last_used is None

    def test_cleanup_closes_client(self, store, tmp_path):
        client = FakeClient()
        api = _api(store, tmp_path, client=client)
        asyncio.run(api.cleanup())
        assert client.closed is True
