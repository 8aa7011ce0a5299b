# backend/podvector/vectorizer/svg.py
import base64
import logging
import re
from dataclasses import dataclass
from xml.sax.saxutils import escape, quoteattr

logger = logging.getLogger(__name__)

NO_FILL = 'fill="none"'
TRANSPARENT_STYLE = 'style="background-color: transparent;"'
DATA_URL_PREFIX = "data:image/svg+xml;base64,"


def _fmt(v):
    return f"{v:.2f}"


def path_data(cmds):
    d = []
    for op, pts in cmds:
        coords = ", ".join(f"{_fmt(x)} {_fmt(y)}" for x, y in pts)
        d.append(f"{op} {coords}" if coords else op)
    return " ".join(d)


def paths_to_svg(paths, width:int, height:int, fill_color=None, background_color=None)->str:
    """
    Serialize fitted contours into one SVG document.

    All contours share a single <path> with evenodd filling so holes cut
    through their parents. No contours means no <path> at all.
    """
    header = f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox="0 0 {width} {height}" version="1.1">'
    body = []
    if background_color:
        body.append(f'<rect x="0" y="0" width="100%" height="100%" fill={quoteattr(background_color)}/>')
    d = " ".join(path_data(cmds) for cmds in paths if cmds)
    if d:
        fill = quoteattr(fill_color or "black")
        body.append(f'<path d="{escape(d)}" stroke="none" fill={fill} fill-rule="evenodd"/>')
    footer = "</svg>"
    return header + "".join(body) + footer


@dataclass
class VectorDocument:
    markup: str

    @property
    def has_no_fill(self) -> bool:
        return NO_FILL in self.markup

    @property
    def has_transparent_background(self) -> bool:
        return 'style="background' in self.markup

    @property
    def path_count(self) -> int:
        return self.markup.count("<path")


# root element, matched without regard to case like the output sanity check
_ROOT_RE = re.compile(r"<svg\b[^>]*>", re.IGNORECASE)
_FILL_ATTR_RE = re.compile(r"""\sfill\s*=\s*(["']).*?\1""", re.DOTALL)
_STYLE_ATTR_RE = re.compile(r"""\sstyle\s*=\s*(["'])(.*?)\1""", re.DOTALL)


def _patch_root(svg_text, patch):
    m = _ROOT_RE.search(svg_text)
    if not m:
        return svg_text
    return svg_text[:m.start()] + patch(m.group(0)) + svg_text[m.end():]


def _insert_attr(tag, attr):
    # tag starts with "<svg" in whatever case the producer used
    return f"{tag[:4]} {attr}{tag[4:]}"


def _set_no_fill(tag):
    m = _FILL_ATTR_RE.search(tag)
    if m:
        return f"{tag[:m.start()]} {NO_FILL}{tag[m.end():]}"
    return _insert_attr(tag, NO_FILL)


def _add_transparent_style(tag):
    m = _STYLE_ATTR_RE.search(tag)
    if m:
        existing = m.group(2).strip().replace('"', "&quot;")
        merged = f'style="background-color: transparent; {existing}"'
        return f"{tag[:m.start()]} {merged}{tag[m.end():]}"
    return _insert_attr(tag, TRANSPARENT_STYLE)


def ensure_transparency(svg_text: str) -> str:
    """
    Make sure the root element declares no default fill and a transparent
    background. Each declaration is only added when its substring is absent,
    so running this twice changes nothing the second time.

    A root `fill` is overwritten and a root `style` is extended rather than
    repeated, so the element never carries the same attribute twice.
    """
    out = svg_text
    if not VectorDocument(out).has_no_fill:
        out = _patch_root(out, _set_no_fill)
        logger.debug("Added fill=\"none\" attribute to SVG")
    if not VectorDocument(out).has_transparent_background:
        out = _patch_root(out, _add_transparent_style)
        logger.debug("Added transparent background style to SVG")
    return out


_WIDTH_RE = re.compile(r'<svg[^>]*?\swidth="([^"]+)"', re.IGNORECASE)
_HEIGHT_RE = re.compile(r'<svg[^>]*?\sheight="([^"]+)"', re.IGNORECASE)


def ensure_viewbox(svg_text: str) -> str:
    """Add a viewBox built from width/height when a document has none."""
    if "viewBox" in svg_text:
        return svg_text
    w = _WIDTH_RE.search(svg_text)
    h = _HEIGHT_RE.search(svg_text)
    if not (w and h):
        return svg_text
    viewbox = f'viewBox="0 0 {w.group(1)} {h.group(1)}"'
    logger.debug("Added %s to SVG", viewbox)
    return _patch_root(svg_text, lambda tag: _insert_attr(tag, viewbox))


@dataclass(frozen=True)
class EncodedResult:
    svg_url: str
    svg_data: str


def encode_result(svg_text: str) -> EncodedResult:
    b64 = base64.b64encode(svg_text.encode("utf-8")).decode("ascii")
    return EncodedResult(svg_url=DATA_URL_PREFIX + b64, svg_data=svg_text)
