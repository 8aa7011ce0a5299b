# backend/podvector/main.py

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from podvector.config import settings
from podvector.errors import VectorizationError
from podvector.pipeline.engines import probe_cli_tool
from podvector.pipeline.runner import vectorize_image
from podvector.pipeline.selector import EngineSelector, build_selector
from podvector.vectorizer.trace import TraceOptions

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Background removal / enhancement live in external services; the app only
# calls whatever coroutine it is given.
ImageTransform = Callable[[bytes], Awaitable[bytes]]


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    content = {"error": error}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def create_app(
    selector: Optional[EngineSelector] = None,
    background_remover: Optional[ImageTransform] = None,
    enhancer: Optional[ImageTransform] = None,
) -> FastAPI:
    """Create and configure FastAPI application"""

    selector = selector or build_selector(settings)

    app = FastAPI(title="POD Vectorizer API")

    # Allow frontend origin to call API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VectorizationError)
    async def vectorization_error_handler(request: Request, exc: VectorizationError):
        # str(exc) may hold temp paths or tool output, keep it in the logs only
        logger.error("Vectorization error (%s): %s", type(exc).__name__, exc)
        return _error(exc.status_code, exc.public_message, exc.public_details())

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/vectorize/engines")
    async def engines():
        """Which engines could run right now, in fallback order."""
        cli = await asyncio.to_thread(probe_cli_tool, settings.cli_command)
        return {
            "engines": [
                {"id": e.engine_id, "tier": e.tier.value, "available": e.is_available()}
                for e in selector.engines
            ],
            "cli": cli,
        }

    @app.post("/vectorize")
    async def vectorize(
        image: Optional[UploadFile] = File(None),
        file: Optional[UploadFile] = File(None),
        removeBackground: bool = Form(False),
        enhanceImage: bool = Form(False),
        keyBackground: Optional[bool] = Form(None),
        threshold: Optional[int] = Form(None),
        speckleSize: Optional[int] = Form(None),
        optTolerance: Optional[float] = Form(None),
        useCurves: Optional[bool] = Form(None),
        foreground: Optional[str] = Form(None),
    ):
        """
        Main vectorization endpoint.

        - Accepts: multipart/form-data with 'image' (or 'file') plus optional trace options
        - Returns: JSON { "svgUrl": "data:image/svg+xml;base64,...", "svgData": "<svg ...>" }
        """
        upload = image or file
        if upload is None:
            return _error(400, "No image file provided")

        try:
            image_bytes = await upload.read()
            if not image_bytes:
                return _error(400, "Empty file upload")
            if len(image_bytes) > settings.max_upload_bytes:
                limit_mb = settings.max_upload_bytes // (1024 * 1024)
                return _error(413, "File too large", f"Maximum file size is {limit_mb}MB")

            logger.info("Processing image: %s, Size: %d KB", upload.filename, len(image_bytes) // 1024)

            try:
                options = TraceOptions.from_settings(
                    settings,
                    threshold=threshold,
                    speckle_suppression_size=speckleSize,
                    curve_optimization_tolerance=optTolerance,
                    use_curves=useCurves,
                    foreground=foreground,
                )
            except ValueError as e:
                return _error(400, "Invalid vectorization options", str(e))

            image_bytes = await _apply_collaborator(
                "background removal", removeBackground, background_remover, image_bytes
            )
            image_bytes = await _apply_collaborator(
                "enhancement", enhanceImage, enhancer, image_bytes
            )

            result = await vectorize_image(
                image_bytes, options, selector, key_background=keyBackground, settings=settings
            )
            return JSONResponse(result.to_payload())
        except VectorizationError:
            # rendered by the exception handler so status codes are preserved
            raise
        except Exception:
            # Catch-all for unexpected errors, so the frontend gets a clean message
            logger.exception("Internal server error during vectorization")
            return _error(500, "Internal server error", "An unexpected error occurred")

    return app


async def _apply_collaborator(
    name: str, requested: bool, transform: Optional[ImageTransform], image_bytes: bytes
) -> bytes:
    if not requested:
        return image_bytes
    if transform is None:
        logger.warning("Image %s requested but no service is configured, skipping", name)
        return image_bytes
    logger.info("Running image %s before vectorization", name)
    return await transform(image_bytes)


app = create_app()


# For local dev (inside backend directory):
#   uvicorn podvector.main:app --reload --host 0.0.0.0 --port 8000
