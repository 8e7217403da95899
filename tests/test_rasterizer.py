"""Tests for the rasterizer using an in-memory surface."""

from __future__ import annotations

import asyncio

import pytest
from PIL import Image

from note_tunnels.exceptions import RenderError
from note_tunnels.renderer.rasterizer import rasterize


class FakeSurface:
    """Surface whose capture is a transparent image with one opaque pixel."""

    def __init__(self, width, height, fail=None, capture_size=None):
        self.layout_size = (width, height)
        self.fail = fail
        self.capture_size = capture_size
        self.captures = []

    async def capture(self, scale):
        self.captures.append(scale)
        if self.fail:
            raise self.fail
        w, h = self.layout_size
        size = self.capture_size or (round(w * scale), round(h * scale))
        image = Image.new("RGBA", size, (0, 0, 0, 0))
        image.putpixel((0, 0), (10, 20, 30, 255))
        return image


class TestRasterize:
    def test_default_scale_doubles_dimensions(self):
        surface = FakeSurface(450, 300)
        bitmap = asyncio.run(rasterize(surface))
        assert bitmap.size == (900, 600)
        assert surface.captures == [2.0]

    def test_custom_scale(self):
        bitmap = asyncio.run(rasterize(FakeSurface(100, 50), scale=3))
        assert bitmap.size == (300, 150)

    def test_transparent_areas_get_background(self):
        bitmap = asyncio.run(rasterize(FakeSurface(10, 10), background="#00ff00"))
        assert bitmap.mode == "RGB"
        assert bitmap.getpixel((5, 5)) == (0, 255, 0)
        assert bitmap.getpixel((0, 0)) == (10, 20, 30)

    def test_surface_not_modified(self):
        surface = FakeSurface(20, 10)
        asyncio.run(rasterize(surface))
        assert surface.layout_size == (20, 10)

    def test_off_by_one_capture_resampled(self):
        surface = FakeSurface(100, 100, capture_size=(201, 199))
        bitmap = asyncio.run(rasterize(surface))
        assert bitmap.size == (200, 200)

    def test_empty_surface_skips_capture(self):
        surface = FakeSurface(100, 0)
        bitmap = asyncio.run(rasterize(surface))
        assert bitmap.size == (200, 0)
        assert surface.captures == []

    def test_capture_failure_is_render_error(self):
        surface = FakeSurface(10, 10, fail=RuntimeError("GPU lost"))
        with pytest.raises(RenderError, match="GPU lost"):
            asyncio.run(rasterize(surface))

    def test_render_error_passes_through(self):
        original = RenderError("page crashed")
        surface = FakeSurface(10, 10, fail=original)
        with pytest.raises(RenderError) as exc_info:
            asyncio.run(rasterize(surface))
        assert exc_info.value is original
