"""
Error taxonomy for the vectorization pipeline.

Every error carries the HTTP status it maps to and a short public message.
`str(err)` holds the internal detail and is only ever logged.
"""
from typing import List, Optional


class VectorizationError(Exception):
    """Base class for all pipeline errors"""

    status_code = 500
    public_message = "Vectorization failed"

    def public_details(self) -> Optional[str]:
        return None


class DecodeError(VectorizationError):
    """Input bytes could not be decoded into a raster image. Never retried."""

    status_code = 400
    public_message = "Invalid image format or corrupted image file"

    def public_details(self) -> Optional[str]:
        return "image problem: the upload could not be decoded as PNG or JPEG"


class ImageTooLarge(VectorizationError):
    status_code = 413
    public_message = "File too large"

    def __init__(self, message: str, limit: str):
        super().__init__(message)
        self.limit = limit

    def public_details(self) -> Optional[str]:
        return f"image problem: maximum allowed is {self.limit}"


class TraceFailure(VectorizationError):
    """Tier 1 (in-process tracer) failed"""


class ExternalToolUnavailable(VectorizationError):
    """Tier 2 executable is missing from PATH"""


class ExternalToolFailure(VectorizationError):
    """Tier 2 ran but produced no usable output"""


class RemoteTimeout(VectorizationError):
    status_code = 504
    public_message = "Vectorization timed out"


class RemoteAPIError(VectorizationError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class InvalidVectorOutput(VectorizationError):
    public_message = "Invalid SVG received"

    def public_details(self) -> Optional[str]:
        return "service problem: the vectorization engine returned invalid data"


class VectorizationFailed(VectorizationError):
    """Every engine failed; keeps the attempt log for diagnostics."""

    public_message = "Vectorization failed with all available methods"

    def __init__(self, attempts: List):
        self.attempts = list(attempts)
        summary = "; ".join(
            f"{a.engine_id}: {a.error_detail}" for a in self.attempts
        )
        super().__init__(f"all engines failed ({summary or 'no engines configured'})")
        last = self.attempts[-1].error if self.attempts else None
        if isinstance(last, RemoteTimeout):
            self.status_code = 504
            self.public_message = RemoteTimeout.public_message

    def public_details(self) -> Optional[str]:
        tried = ", ".join(
            f"{a.engine_id} ({type(a.error).__name__ if a.error else 'failed'})"
            for a in self.attempts
        )
        return f"service problem: tried {tried or 'no engines'}"
