# backend/podvector/pipeline/job.py

"""
Per-request job state.

A Job owns exactly one RasterImage and one VectorDocument, plus a scratch
directory that is only created when an engine asks for it. Leaving the
`with` block removes the directory on every exit path, including errors and
task cancellation.
"""

import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Optional

from podvector.vectorizer.metrics import TraceMetrics
from podvector.vectorizer.preprocess import RasterImage, encode_png
from podvector.vectorizer.svg import VectorDocument
from podvector.vectorizer.trace import TraceOptions

logger = logging.getLogger(__name__)


class Job:
    def __init__(
        self,
        image_bytes: bytes,
        options: TraceOptions,
        tmp_root: Optional[Path] = None,
    ):
        self.id = uuid.uuid4().hex
        self.image_bytes = image_bytes
        self.options = options
        self.raster: Optional[RasterImage] = None
        self.document: Optional[VectorDocument] = None
        self.metrics: Optional[TraceMetrics] = None
        self.keyed_pixels = 0
        self._tmp_root = Path(tmp_root) if tmp_root else None
        self._workdir: Optional[Path] = None
        self._upload: Optional[bytes] = None

    @property
    def workdir(self) -> Path:
        """Job-scoped temp directory, unique per job id."""
        if self._workdir is None:
            root = None
            if self._tmp_root is not None:
                self._tmp_root.mkdir(parents=True, exist_ok=True)
                root = str(self._tmp_root)
            self._workdir = Path(tempfile.mkdtemp(prefix=f"podvector-{self.id}-", dir=root))
            logger.debug("Job %s: created workdir %s", self.id, self._workdir)
        return self._workdir

    @property
    def has_workdir(self) -> bool:
        return self._workdir is not None

    def upload_png(self) -> bytes:
        """Image handed to the external tiers: the keyed buffer when decoded, else the raw upload."""
        if self._upload is None:
            if self.raster is not None:
                self._upload = encode_png(self.raster)
            else:
                self._upload = self.image_bytes
        return self._upload

    def cleanup(self) -> None:
        if self._workdir is None:
            return
        shutil.rmtree(self._workdir, ignore_errors=True)
        if self._workdir.exists():
            logger.warning("Job %s: could not fully remove %s", self.id, self._workdir)
        self._workdir = None

    def __enter__(self) -> "Job":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cleanup()
        return False
