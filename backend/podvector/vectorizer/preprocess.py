# backend/podvector/vectorizer/preprocess.py
import io
import logging
from dataclasses import dataclass

import numpy as np
import cv2
from PIL import Image

from podvector.errors import DecodeError, ImageTooLarge

logger = logging.getLogger(__name__)


@dataclass
class RasterImage:
    """Row-major RGBA pixel buffer, exclusively owned by one job."""
    width: int
    height: int
    pixels: np.ndarray  # (height, width, 4) uint8


def _to_rgba(img: np.ndarray) -> np.ndarray:
    # OpenCV hands back BGR(A) / grey, 8 or 16 bit depending on the source
    if img.dtype == np.uint16:
        img = (img // 257).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    channels = img.shape[2]
    if channels == 1:
        return cv2.cvtColor(img[..., 0], cv2.COLOR_GRAY2RGBA)
    if channels == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    if channels == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    raise DecodeError(f"unsupported channel count: {channels}")


def decode_image(image_bytes: bytes, max_dimension: int = 8192) -> RasterImage:
    """
    Decode uploaded bytes into an RGBA RasterImage.
    Raises DecodeError if the payload is not an image we can read.
    """
    if not image_bytes:
        raise DecodeError("empty image payload")

    nparr = np.frombuffer(image_bytes, np.uint8)
    try:
        img = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeError(f"could not decode input image: {e}") from e
    if img is None:
        raise DecodeError("could not decode input image")

    h, w = img.shape[:2]
    if max(h, w) > max_dimension:
        raise ImageTooLarge(
            f"image is {w}x{h}, limit {max_dimension}px",
            limit=f"{max_dimension}px per side",
        )

    pixels = np.ascontiguousarray(_to_rgba(img))
    return RasterImage(width=w, height=h, pixels=pixels)


def key_dark_pixels(raster: RasterImage, darkness: int = 30) -> int:
    """
    Make near-black pixels fully transparent.

    Every pixel whose R, G and B are all below `darkness` gets alpha 0;
    nothing else in the buffer changes. Mutates `raster` in place and
    returns how many pixels were keyed.
    """
    rgb = raster.pixels[..., :3]
    dark = np.all(rgb < darkness, axis=-1)
    raster.pixels[..., 3][dark] = 0
    keyed = int(dark.sum())
    logger.debug("Keyed %d of %d pixels to transparent", keyed, raster.width * raster.height)
    return keyed


def encode_png(raster: RasterImage) -> bytes:
    """PNG bytes of the current buffer, used as the upload for the external tiers."""
    buf = io.BytesIO()
    Image.fromarray(raster.pixels).save(buf, format="PNG")
    return buf.getvalue()
