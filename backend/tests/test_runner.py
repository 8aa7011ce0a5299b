"""
Tests for the end-to-end vectorization job
"""
import base64

import pytest

pytestmark = pytest.mark.asyncio


class TestVectorizeImage:

    async def test_circle_end_to_end(self, circle_pixels, to_png, test_settings):
        from podvector.pipeline.engines import LocalTraceEngine
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.svg import DATA_URL_PREFIX
        from podvector.vectorizer.trace import TraceOptions

        result = await vectorize_image(
            to_png(circle_pixels),
            TraceOptions(threshold=180, speckle_suppression_size=5),
            EngineSelector([LocalTraceEngine()]),
            settings=test_settings,
        )

        svg = result.encoded.svg_data
        assert result.engine_id == "local"
        assert 'fill="none"' in svg
        assert 'style="background-color: transparent;"' in svg
        assert svg.count("<path") == 1
        assert result.metrics.path_count == 1
        assert result.encoded.svg_url.startswith(DATA_URL_PREFIX)
        decoded = base64.b64decode(result.encoded.svg_url[len(DATA_URL_PREFIX):]).decode("utf-8")
        assert decoded == svg

        payload = result.to_payload()
        assert set(payload) == {"svgUrl", "svgData", "engine", "attempts", "metrics"}
        assert payload["metrics"]["path_count"] == 1

    async def test_light_art_on_keyed_background(self, to_png, test_settings):
        import numpy as np
        from podvector.pipeline.engines import LocalTraceEngine
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.trace import TraceOptions

        px = np.zeros((100, 100, 4), dtype=np.uint8)
        px[..., 3] = 255
        px[30:70, 30:70, :3] = 255
        result = await vectorize_image(
            to_png(px),
            TraceOptions.from_settings(test_settings),
            EngineSelector([LocalTraceEngine()]),
            key_background=True,
            settings=test_settings,
        )

        assert result.keyed_pixels == 100 * 100 - 40 * 40
        assert result.metrics.foreground == "alpha"
        assert result.metrics.path_count == 1
        assert "30.00 30.00" in result.encoded.svg_data
        assert "70.00 70.00" in result.encoded.svg_data

    async def test_keyed_circle_keeps_its_outline(self, circle_pixels, to_png, test_settings):
        from podvector.pipeline.engines import LocalTraceEngine
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.trace import TraceOptions

        result = await vectorize_image(
            to_png(circle_pixels),
            TraceOptions(),
            EngineSelector([LocalTraceEngine()]),
            key_background=True,
            settings=test_settings,
        )

        # opaque canvas with the keyed disc cut out of it
        assert result.keyed_pixels > 0
        assert result.metrics.foreground == "alpha"
        assert result.metrics.path_count == 2

    async def test_explicit_luminance_survives_keying(self, circle_pixels, to_png, test_settings):
        from podvector.pipeline.engines import LocalTraceEngine
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.trace import TraceOptions

        result = await vectorize_image(
            to_png(circle_pixels),
            TraceOptions(foreground="luminance"),
            EngineSelector([LocalTraceEngine()]),
            key_background=True,
            settings=test_settings,
        )

        assert result.metrics.foreground == "luminance"
        assert result.metrics.path_count == 0

    async def test_decode_error_skips_engines(self, fake_engine, test_settings, valid_svg):
        from podvector.errors import DecodeError
        from podvector.pipeline.engines import Tier
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.trace import TraceOptions

        calls = []
        selector = EngineSelector([fake_engine("remote", Tier.REMOTE, calls, svg=valid_svg)])
        with pytest.raises(DecodeError):
            await vectorize_image(b"not an image", TraceOptions(), selector, settings=test_settings)
        assert calls == []

    async def test_invalid_engine_output(self, fake_engine, white_canvas, to_png, test_settings):
        from podvector.errors import InvalidVectorOutput
        from podvector.pipeline.engines import Tier
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.trace import TraceOptions

        selector = EngineSelector([fake_engine("remote", Tier.REMOTE, [], svg="<html>oops</html>")])
        with pytest.raises(InvalidVectorOutput):
            await vectorize_image(to_png(white_canvas(8, 8)), TraceOptions(), selector, settings=test_settings)

    async def test_existing_transparency_not_duplicated(self, fake_engine, white_canvas, to_png, test_settings):
        from podvector.pipeline.engines import Tier
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.trace import TraceOptions

        svg = '<svg fill="none" width="8" height="8" viewBox="0 0 8 8"><path d="M 0 0 L 8 0 L 8 8 Z"/></svg>'
        selector = EngineSelector([fake_engine("remote", Tier.REMOTE, [], svg=svg)])
        result = await vectorize_image(to_png(white_canvas(8, 8)), TraceOptions(), selector, settings=test_settings)

        assert result.encoded.svg_data.count('fill="none"') == 1
        assert result.encoded.svg_data.count("background-color: transparent") == 1


class TestTempCleanup:
    """Scratch directories never outlive a job"""

    async def test_cleanup_after_success(self, fake_engine, white_canvas, to_png, test_settings, valid_svg):
        from podvector.errors import ExternalToolFailure
        from podvector.pipeline.engines import Tier
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.trace import TraceOptions

        selector = EngineSelector([
            fake_engine("cli:modern", Tier.CLI, [], error=ExternalToolFailure("no output"), touch_workdir=True),
            fake_engine("remote", Tier.REMOTE, [], svg=valid_svg, touch_workdir=True),
        ])
        await vectorize_image(to_png(white_canvas(8, 8)), TraceOptions(), selector, settings=test_settings)

        assert list(test_settings.tmp_root.iterdir()) == []

    async def test_cleanup_after_failure(self, fake_engine, white_canvas, to_png, test_settings):
        from podvector.errors import ExternalToolFailure, RemoteTimeout, VectorizationFailed
        from podvector.pipeline.engines import Tier
        from podvector.pipeline.runner import vectorize_image
        from podvector.pipeline.selector import EngineSelector
        from podvector.vectorizer.trace import TraceOptions

        selector = EngineSelector([
            fake_engine("cli:legacy", Tier.CLI, [], error=ExternalToolFailure("no output"), touch_workdir=True),
            fake_engine("remote", Tier.REMOTE, [], error=RemoteTimeout("30s"), touch_workdir=True),
        ])
        with pytest.raises(VectorizationFailed) as exc_info:
            await vectorize_image(to_png(white_canvas(8, 8)), TraceOptions(), selector, settings=test_settings)

        assert exc_info.value.status_code == 504
        assert list(test_settings.tmp_root.iterdir()) == []


async def test_check_svg():
    from podvector.errors import InvalidVectorOutput
    from podvector.pipeline.runner import check_svg

    check_svg("<svg>" + " " * 10 + "<g/>" * 20 + "</svg>")
    with pytest.raises(InvalidVectorOutput):
        check_svg("<svg/>")
    with pytest.raises(InvalidVectorOutput):
        check_svg("x" * 200)
