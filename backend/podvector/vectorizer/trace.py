# backend/podvector/vectorizer/trace.py
"""
In-process bitmap tracer.

threshold -> boundary following -> speckle suppression -> curve fitting -> SVG

Boundaries are followed along pixel edges (lattice corners, not pixel
centres), keeping the region on the left. After each boundary is traced its
interior is XOR-ed out of a working copy of the bitmap, so holes inside a
region show up as regions of their own on the next scan and are emitted as
separate subpaths, cut out by the evenodd fill rule.
"""
import dataclasses
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from podvector.errors import TraceFailure
from .fit import fit_contour, node_count
from .metrics import TraceMetrics
from .preprocess import RasterImage
from .simplify import simplify_contour
from .svg import paths_to_svg

logger = logging.getLogger(__name__)

# auto: alpha once dark background was keyed away, luminance otherwise
FOREGROUND_MODES = ("auto", "luminance", "alpha")
ALPHA_CUTOFF = 128
# RDP epsilon (px) for polygon mode; curve tolerance is added on top
BASE_EPSILON = 1.0


@dataclass(frozen=True)
class TraceOptions:
    threshold: int = 180
    speckle_suppression_size: int = 5
    curve_optimization_tolerance: float = 0.2
    use_curves: bool = True
    fill_color: Optional[str] = None
    background_color: Optional[str] = None
    foreground: str = "auto"
    corner_angle: float = 70.0

    def __post_init__(self):
        if not 0 <= self.threshold <= 255:
            raise ValueError(f"threshold must be within 0-255, got {self.threshold}")
        if self.speckle_suppression_size < 0:
            raise ValueError("speckle_suppression_size must be >= 0")
        if self.curve_optimization_tolerance < 0:
            raise ValueError("curve_optimization_tolerance must be >= 0")
        if self.foreground not in FOREGROUND_MODES:
            raise ValueError(f"foreground must be one of {FOREGROUND_MODES}")
        if not 0 < self.corner_angle <= 180:
            raise ValueError("corner_angle must be within (0, 180]")

    @classmethod
    def from_settings(cls, settings, **overrides) -> "TraceOptions":
        values = dict(
            threshold=settings.trace_threshold,
            speckle_suppression_size=settings.trace_speckle_size,
            curve_optimization_tolerance=settings.trace_opt_tolerance,
            use_curves=settings.trace_use_curves,
            fill_color=settings.trace_fill_color,
            background_color=settings.trace_background_color,
            foreground=settings.trace_foreground,
            corner_angle=settings.trace_corner_angle,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def resolve_foreground(self, keyed: bool) -> "TraceOptions":
        """Pin an `auto` foreground to a concrete mode for this raster."""
        if self.foreground != "auto":
            return self
        return dataclasses.replace(self, foreground="alpha" if keyed else "luminance")

    @property
    def epsilon(self) -> float:
        if self.use_curves:
            return BASE_EPSILON + self.curve_optimization_tolerance
        return BASE_EPSILON


@dataclass
class Contour:
    points: List[Tuple[int, int]]  # lattice corners, implicitly closed
    area: int
    sign: bool  # True: outer edge of a foreground region, False: hole


@dataclass
class TraceResult:
    svg: str
    metrics: TraceMetrics


def binarize(raster: RasterImage, threshold: int, foreground: str = "luminance") -> np.ndarray:
    """
    Boolean foreground mask.

    luminance: alpha is composited over white first, so keyed pixels read
    as background; foreground is luminance < threshold.
    alpha: every opaque pixel is foreground.
    """
    px = raster.pixels
    if foreground == "alpha":
        return px[..., 3] >= ALPHA_CUTOFF
    rgb = px[..., :3].astype(np.float32)
    alpha = px[..., 3:4].astype(np.float32) / 255.0
    rgb = 255.0 + (rgb - 255.0) * alpha
    lum = 0.2126 * rgb[..., 0] + 0.7152 * rgb[..., 1] + 0.0722 * rgb[..., 2]
    return lum < threshold


def _pixel(bm: np.ndarray, x: int, y: int) -> bool:
    h, w = bm.shape
    if 0 <= x < w and 0 <= y < h:
        return bool(bm[y, x])
    return False


def _follow_boundary(bm: np.ndarray, x0: int, y0: int, sign: bool) -> Contour:
    # start at the top-left corner of the first pixel, heading down its left edge
    x, y = x0, y0
    dx, dy = 0, 1
    points = []
    area = 0
    while True:
        points.append((x, y))
        x += dx
        y += dy
        area += x * dy
        if x == x0 and y == y0:
            break

        ahead_left = _pixel(bm, x + (dx + dy - 1) // 2, y + (dy - dx - 1) // 2)
        ahead_right = _pixel(bm, x + (dx - dy - 1) // 2, y + (dy + dx - 1) // 2)

        if ahead_right and not ahead_left:
            # diagonal pair: outer boundaries join it, holes split it
            if sign:
                dx, dy = -dy, dx
            else:
                dx, dy = dy, -dx
        elif ahead_right:
            dx, dy = -dy, dx
        elif not ahead_left:
            dx, dy = dy, -dx

    return Contour(points=points, area=abs(area), sign=sign)


def _xor_interior(bm: np.ndarray, contour: Contour) -> None:
    pts = contour.points
    xa = pts[0][0]
    y1 = pts[-1][1]
    for x, y in pts:
        if y != y1:
            row = min(y, y1)
            lo, hi = min(x, xa), max(x, xa)
            bm[row, lo:hi] ^= True
            y1 = y


def find_contours(bitmap: np.ndarray, speckle_size: int = 0) -> Tuple[List[Contour], int]:
    """
    Decompose a boolean bitmap into closed boundary contours.

    Regions are found in row-major order. Contours whose area is not larger
    than `speckle_size` are dropped; returns (kept contours, dropped count).
    """
    work = np.array(bitmap, dtype=bool, order="C", copy=True)
    h, w = work.shape
    flat = work.reshape(-1)
    kept: List[Contour] = []
    dropped = 0
    pos = 0
    while pos < flat.size:
        offset = int(np.argmax(flat[pos:]))
        if not flat[pos + offset]:
            break
        pos += offset
        y, x = divmod(pos, w)
        contour = _follow_boundary(work, x, y, bool(bitmap[y, x]))
        _xor_interior(work, contour)
        if flat[pos]:
            raise TraceFailure(f"boundary at ({x}, {y}) did not clear its start pixel")
        if contour.area > speckle_size:
            kept.append(contour)
        else:
            dropped += 1
    return kept, dropped


def trace_raster(raster: RasterImage, options: TraceOptions) -> TraceResult:
    """
    Trace a raster into an SVG document.

    Identical input and options always give byte-identical output. Any
    failure is reported as TraceFailure so the caller can fall back.
    An `auto` foreground that nobody resolved traces by luminance.
    """
    options = options.resolve_foreground(keyed=False)
    try:
        bitmap = binarize(raster, options.threshold, options.foreground)
        contours, dropped = find_contours(bitmap, options.speckle_suppression_size)

        paths = []
        for contour in contours:
            vertices = simplify_contour(contour.points, options.epsilon)
            cmds = fit_contour(vertices, options.use_curves, options.corner_angle)
            if cmds:
                paths.append(cmds)

        svg = paths_to_svg(
            paths,
            raster.width,
            raster.height,
            fill_color=options.fill_color,
            background_color=options.background_color,
        )
    except TraceFailure:
        raise
    except Exception as e:
        raise TraceFailure(f"local trace failed: {e}") from e

    metrics = TraceMetrics(
        node_count=sum(node_count(p) for p in paths),
        path_count=len(paths),
        width=raster.width,
        height=raster.height,
        speckles_suppressed=dropped,
        foreground=options.foreground,
    )
    logger.info(
        "Traced %dx%d bitmap: %d contours, %d nodes, %d speckles suppressed",
        raster.width, raster.height, metrics.path_count, metrics.node_count, dropped,
    )
    return TraceResult(svg=svg, metrics=metrics)
