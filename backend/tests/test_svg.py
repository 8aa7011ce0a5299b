"""
Tests for SVG post-processing and result encoding
"""
import base64


BARE = '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"><path d="M0 0L5 5Z"/></svg>'


class TestEnsureTransparency:

    def test_adds_both_declarations(self):
        from podvector.vectorizer.svg import NO_FILL, TRANSPARENT_STYLE, VectorDocument, ensure_transparency

        out = ensure_transparency(BARE)
        doc = VectorDocument(out)

        assert doc.has_no_fill
        assert doc.has_transparent_background
        assert out.count(NO_FILL) == 1
        assert out.count(TRANSPARENT_STYLE) == 1
        # only the root element gained attributes
        assert out.replace(f"{NO_FILL} ", "").replace(f"{TRANSPARENT_STYLE} ", "") == BARE

    def test_idempotent(self):
        from podvector.vectorizer.svg import ensure_transparency

        once = ensure_transparency(BARE)
        assert ensure_transparency(once) == once

    def test_existing_fill_none_not_duplicated(self):
        from podvector.vectorizer.svg import TRANSPARENT_STYLE, ensure_transparency

        src = '<svg fill="none" width="4" height="4"><rect width="4" height="4"/></svg>'
        out = ensure_transparency(src)

        assert out.count('fill="none"') == 1
        assert out.count(TRANSPARENT_STYLE) == 1

    def test_existing_background_style_kept(self):
        from podvector.vectorizer.svg import ensure_transparency

        src = '<svg style="background-color: transparent;" width="4" height="4"></svg>'
        out = ensure_transparency(src)

        assert out.count("background-color") == 1
        assert 'fill="none"' in out


    def test_existing_root_style_is_extended(self):
        from podvector.vectorizer.svg import ensure_transparency

        out = ensure_transparency('<svg style="fill:red" width="1" height="1"></svg>')
        root = out[:out.index(">") + 1]

        assert root.count("style=") == 1
        assert 'style="background-color: transparent; fill:red"' in root
        assert root.count("fill=") == 1
        assert ensure_transparency(out) == out

    def test_single_quoted_root_style(self):
        from podvector.vectorizer.svg import ensure_transparency

        out = ensure_transparency("<svg style='opacity: 0.5' width='1' height='1'></svg>")
        root = out[:out.index(">") + 1]

        assert root.count("style=") == 1
        assert 'style="background-color: transparent; opacity: 0.5"' in root
        assert ensure_transparency(out) == out

    def test_existing_root_fill_is_replaced(self):
        from podvector.vectorizer.svg import ensure_transparency

        out = ensure_transparency('<svg fill="black" width="4" height="4"><path d="M0 0" fill-rule="evenodd"/></svg>')
        root = out[:out.index(">") + 1]

        assert root.count("fill=") == 1
        assert 'fill="none"' in root
        assert 'fill="black"' not in out
        assert 'fill-rule="evenodd"' in out

    def test_uppercase_root(self):
        from podvector.pipeline.runner import check_svg
        from podvector.vectorizer.svg import VectorDocument, ensure_transparency

        src = '<SVG xmlns="http://www.w3.org/2000/svg" width="10" height="10"><path d="M0 0L5 5Z"/></SVG>'
        check_svg(src)
        out = ensure_transparency(src)
        doc = VectorDocument(out)

        assert out.startswith("<SVG ")
        assert doc.has_no_fill
        assert doc.has_transparent_background

    def test_xml_prolog_left_alone(self):
        from podvector.vectorizer.svg import ensure_transparency

        src = '<?xml version="1.0"?>\n<svg width="2" height="2"><g/></svg>'
        out = ensure_transparency(src)
        assert out.startswith('<?xml version="1.0"?>\n<svg style=')


class TestEnsureViewbox:

    def test_adds_viewbox_from_size(self):
        from podvector.vectorizer.svg import ensure_viewbox

        out = ensure_viewbox('<svg width="120" height="80"><g/></svg>')
        assert 'viewBox="0 0 120 80"' in out

    def test_existing_viewbox_untouched(self):
        from podvector.vectorizer.svg import ensure_viewbox

        src = '<svg viewBox="0 0 5 5" width="10" height="10"></svg>'
        assert ensure_viewbox(src) == src

    def test_uppercase_root(self):
        from podvector.vectorizer.svg import ensure_viewbox

        out = ensure_viewbox('<SVG width="12" height="6"></SVG>')
        assert out == '<SVG viewBox="0 0 12 6" width="12" height="6"></SVG>'

    def test_no_size_no_change(self):
        from podvector.vectorizer.svg import ensure_viewbox

        assert ensure_viewbox("<svg><g/></svg>") == "<svg><g/></svg>"


class TestEncodeResult:

    def test_data_url_round_trip(self):
        from podvector.vectorizer.svg import DATA_URL_PREFIX, encode_result

        svg = '<svg width="1" height="1"><text>é</text></svg>'
        result = encode_result(svg)

        assert result.svg_data == svg
        assert result.svg_url.startswith(DATA_URL_PREFIX)
        payload = result.svg_url[len(DATA_URL_PREFIX):]
        assert base64.b64decode(payload).decode("utf-8") == svg


def test_paths_to_svg_header():
    from podvector.vectorizer.svg import paths_to_svg

    cmds = [("M", [(0.0, 0.0)]), ("L", [(4.0, 0.0)]), ("L", [(4.0, 3.0)]), ("Z", [])]
    svg = paths_to_svg([cmds], 8, 6)

    assert svg.startswith('<svg xmlns="http://www.w3.org/2000/svg" width="8" height="6" viewBox="0 0 8 6"')
    assert 'd="M 0.00 0.00 L 4.00 0.00 L 4.00 3.00 Z"' in svg
    assert svg.endswith("</svg>")


def test_trace_metrics_json_is_stable():
    import json
    from podvector.vectorizer.metrics import TraceMetrics

    m = TraceMetrics(node_count=12, path_count=2, width=30, height=20, speckles_suppressed=1)
    assert json.loads(m.to_json()) == m.to_dict()
    assert m.to_json() == TraceMetrics(**m.to_dict()).to_json()
