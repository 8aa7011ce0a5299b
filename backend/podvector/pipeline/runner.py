# backend/podvector/pipeline/runner.py

"""
End-to-end job: decode -> key dark background -> pick engine -> sanity
check -> transparency fix-up -> data URL.

The caller (FastAPI endpoint or CLI) only needs to call:
    await vectorize_image(image_bytes, options, selector)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from podvector.config import settings as default_settings
from podvector.errors import InvalidVectorOutput
from podvector.vectorizer.metrics import TraceMetrics
from podvector.vectorizer.preprocess import decode_image, key_dark_pixels
from podvector.vectorizer.svg import (
    EncodedResult,
    VectorDocument,
    encode_result,
    ensure_transparency,
)
from podvector.vectorizer.trace import TraceOptions
from .job import Job
from .selector import EngineAttempt, EngineSelector

logger = logging.getLogger(__name__)


@dataclass
class VectorizationResult:
    encoded: EncodedResult
    engine_id: str
    attempts: List[EngineAttempt]
    metrics: Optional[TraceMetrics] = None
    keyed_pixels: int = 0

    def to_payload(self) -> dict:
        return {
            "svgUrl": self.encoded.svg_url,
            "svgData": self.encoded.svg_data,
            "engine": self.engine_id,
            "attempts": [a.to_dict() for a in self.attempts],
            "metrics": self.metrics.to_dict() if self.metrics else None,
        }


def check_svg(svg_text: str, min_length: int = 50) -> None:
    """Minimal sanity check to catch non-SVG or truncated output."""
    if "<svg" not in svg_text.lower():
        raise InvalidVectorOutput("engine output has no <svg> root")
    if len(svg_text.strip()) < min_length:
        raise InvalidVectorOutput(f"engine output is only {len(svg_text.strip())} chars")


def _prepare(job: Job, key_background: bool, darkness: int, max_dimension: int) -> None:
    job.raster = decode_image(job.image_bytes, max_dimension=max_dimension)
    if key_background:
        job.keyed_pixels = key_dark_pixels(job.raster, darkness=darkness)
    # keyed pixels composite to white, so luminance would lose light-on-dark art
    job.options = job.options.resolve_foreground(keyed=job.keyed_pixels > 0)


async def vectorize_image(
    image_bytes: bytes,
    options: TraceOptions,
    selector: EngineSelector,
    key_background: Optional[bool] = None,
    settings=None,
) -> VectorizationResult:
    settings = settings or default_settings
    if key_background is None:
        key_background = settings.key_dark_background

    with Job(image_bytes, options, tmp_root=settings.tmp_root) as job:
        logger.info("Job %s: %d KB, key_background=%s", job.id, len(image_bytes) // 1024, key_background)

        await asyncio.to_thread(
            _prepare, job, key_background, settings.darkness_threshold, settings.max_image_dimension
        )

        selection = await selector.select(job)
        check_svg(selection.svg, settings.min_svg_length)

        job.document = VectorDocument(ensure_transparency(selection.svg))
        encoded = encode_result(job.document.markup)

        logger.info("Job %s: done via %s, %d bytes of SVG", job.id, selection.engine_id, len(encoded.svg_data))
        return VectorizationResult(
            encoded=encoded,
            engine_id=selection.engine_id,
            attempts=selection.attempts,
            metrics=job.metrics,
            keyed_pixels=job.keyed_pixels,
        )
