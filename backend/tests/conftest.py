"""
Pytest configuration and fixtures for vectorizer tests
"""
import io
from types import SimpleNamespace

import numpy as np
import pytest
from PIL import Image


@pytest.fixture
def make_raster():
    """Build a RasterImage from an (h, w, 4) uint8 array"""
    from podvector.vectorizer.preprocess import RasterImage

    def _make(pixels):
        pixels = np.ascontiguousarray(pixels, dtype=np.uint8)
        h, w = pixels.shape[:2]
        return RasterImage(width=w, height=h, pixels=pixels)

    return _make


@pytest.fixture
def white_canvas():
    def _canvas(w, h):
        return np.full((h, w, 4), 255, dtype=np.uint8)

    return _canvas


@pytest.fixture
def circle_pixels(white_canvas):
    """300x300 white canvas, black disc of radius 100 centred at (150, 150)"""
    px = white_canvas(300, 300)
    yy, xx = np.ogrid[:300, :300]
    disc = (xx - 150) ** 2 + (yy - 150) ** 2 <= 100 ** 2
    px[disc, :3] = 0
    return px


@pytest.fixture
def to_png():
    def _encode(pixels, mode=None):
        img = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
        if mode:
            img = img.convert(mode)
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    return _encode


@pytest.fixture
def fake_job():
    return SimpleNamespace(id="test-job")


@pytest.fixture
def test_settings(tmp_path):
    """Settings with an isolated temp root and keying off"""
    from podvector.config import Settings

    return Settings(
        tmp_root=tmp_path / "jobs",
        key_dark_background=False,
        remote_api_id=None,
        remote_api_secret=None,
    )


class FakeEngine:
    """Engine double: records the call order and either fails or returns SVG"""

    def __init__(self, engine_id, tier, calls, error=None, svg=None, touch_workdir=False):
        self._engine_id = engine_id
        self._tier = tier
        self.calls = calls
        self.error = error
        self.svg = svg
        self.touch_workdir = touch_workdir

    @property
    def engine_id(self):
        return self._engine_id

    @property
    def tier(self):
        return self._tier

    def is_available(self):
        return self.error is None

    async def run(self, job):
        self.calls.append(self._engine_id)
        if self.touch_workdir:
            (job.workdir / "scratch.txt").write_text("x")
        if self.error is not None:
            raise self.error
        return self.svg


@pytest.fixture
def fake_engine():
    return FakeEngine


@pytest.fixture
def valid_svg():
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10" viewBox="0 0 10 10">'
        '<path d="M 0 0 L 10 0 L 10 10 Z" fill="black"/></svg>'
    )
