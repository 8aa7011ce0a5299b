# backend/podvector/pipeline/engines.py

"""
Vectorization engines, one per fallback tier.

- Tier 1 LocalTraceEngine: in-process tracer, no network, no subprocess
- Tier 2 CliExportEngine: external export tool, one engine per invocation syntax
- Tier 3 RemoteApiEngine: remote vectorization API over HTTPS

Engines signal failure by raising; the selector decides what happens next.
"""

import asyncio
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from podvector.errors import (
    ExternalToolFailure,
    ExternalToolUnavailable,
    RemoteAPIError,
    RemoteTimeout,
    TraceFailure,
)
from podvector.vectorizer.svg import ensure_viewbox
from podvector.vectorizer.trace import trace_raster

logger = logging.getLogger(__name__)


class Tier(str, Enum):
    LOCAL = "local"
    CLI = "cli"
    REMOTE = "remote"


class VectorEngine(ABC):
    """Base class for vectorization engines"""

    @property
    @abstractmethod
    def engine_id(self) -> str:
        pass

    @property
    @abstractmethod
    def tier(self) -> Tier:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Cheap static check (binary on PATH, credentials set, ...)"""
        pass

    @abstractmethod
    async def run(self, job) -> str:
        """Return SVG text for the job or raise a tier error"""
        pass


# =============================================================================
# Tier 1: in-process tracer
# =============================================================================

class LocalTraceEngine(VectorEngine):
    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    @property
    def engine_id(self) -> str:
        return "local"

    @property
    def tier(self) -> Tier:
        return Tier.LOCAL

    def is_available(self) -> bool:
        return self.enabled

    async def run(self, job) -> str:
        if not self.enabled:
            raise TraceFailure("local trace engine is disabled")
        if job.raster is None:
            raise TraceFailure("no decoded raster to trace")
        # CPU bound; keep it off the event loop
        result = await asyncio.to_thread(trace_raster, job.raster, job.options)
        job.metrics = result.metrics
        return result.svg


# =============================================================================
# Tier 2: external export tool
# =============================================================================

def output_written(path: Path) -> bool:
    """Exit codes of export tools are unreliable; trust the artifact instead."""
    return path.is_file() and path.stat().st_size > 0


@dataclass(frozen=True)
class InvocationStrategy:
    """One command-line syntax of the export tool"""
    name: str
    args_template: Tuple[str, ...]
    success_predicate: Callable[[Path], bool] = output_written

    def build_args(self, command: str, input_path: Path, output_path: Path) -> List[str]:
        return [
            arg.format(command=command, input=input_path, output=output_path)
            for arg in self.args_template
        ]


# 1.0+ flag syntax
MODERN_SYNTAX = InvocationStrategy(
    name="modern",
    args_template=(
        "{command}",
        "--export-filename={output}",
        "--export-type=svg",
        "--export-plain-svg",
        "{input}",
    ),
)

# pre-1.0 positional syntax
LEGACY_SYNTAX = InvocationStrategy(
    name="legacy",
    args_template=("{command}", "-f", "{input}", "-l", "{output}", "--export-plain-svg"),
)

DEFAULT_STRATEGIES = (MODERN_SYNTAX, LEGACY_SYNTAX)


class CliExportEngine(VectorEngine):
    def __init__(
        self,
        strategy: InvocationStrategy,
        command: str = "inkscape",
        timeout: float = 60.0,
        popen: Callable = subprocess.Popen,
    ):
        self.strategy = strategy
        self.command = command
        self.timeout = timeout
        self._popen = popen

    @property
    def engine_id(self) -> str:
        return f"cli:{self.strategy.name}"

    @property
    def tier(self) -> Tier:
        return Tier.CLI

    def is_available(self) -> bool:
        return shutil.which(self.command) is not None

    async def run(self, job) -> str:
        workdir = job.workdir
        input_path = workdir / "input.png"
        output_path = workdir / f"output-{self.strategy.name}.svg"
        if not input_path.exists():
            input_path.write_bytes(job.upload_png())

        args = self.strategy.build_args(self.command, input_path, output_path)
        logger.info("Job %s: running %s export: %s", job.id, self.strategy.name, " ".join(args))

        try:
            proc = self._popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(workdir),
            )
        except FileNotFoundError as e:
            raise ExternalToolUnavailable(f"{self.command}: command not found") from e
        except OSError as e:
            raise ExternalToolFailure(f"{self.command} could not be started: {e}") from e

        try:
            _, err = await asyncio.to_thread(proc.communicate, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            await asyncio.to_thread(proc.communicate)
            raise ExternalToolFailure(f"{self.command} timed out after {self.timeout}s") from e
        except asyncio.CancelledError:
            # the job's workdir is removed next; the child must not outlive it
            logger.warning("Job %s: cancelled, killing %s", job.id, self.engine_id)
            proc.kill()
            proc.wait()
            raise

        if not self.strategy.success_predicate(output_path):
            err = err or b""
            msg = err.decode("utf-8", "ignore") if isinstance(err, (bytes, bytearray)) else str(err)
            raise ExternalToolFailure(
                f"{self.engine_id} wrote no output (exit {proc.returncode}): {msg.strip()[:500]}"
            )
        if proc.returncode != 0:
            logger.warning(
                "Job %s: %s exited %s but wrote output, accepting it",
                job.id, self.engine_id, proc.returncode,
            )

        return output_path.read_text(encoding="utf-8", errors="replace")


def probe_cli_tool(command: str, timeout: float = 10.0) -> Dict[str, Optional[str]]:
    """Report whether the export tool is installed and which version it is."""
    if shutil.which(command) is None:
        return {"command": command, "installed": False, "version": None}
    try:
        proc = subprocess.run(
            [command, "--version"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Version probe for %s failed: %s", command, e)
        return {"command": command, "installed": False, "version": None}
    version = proc.stdout.decode("utf-8", "ignore").strip() or None
    return {"command": command, "installed": proc.returncode == 0, "version": version}


# =============================================================================
# Tier 3: remote vectorization API
# =============================================================================

class RemoteApiEngine(VectorEngine):
    def __init__(
        self,
        url: str,
        api_id: Optional[str] = None,
        api_secret: Optional[str] = None,
        simplify: float = 0.3,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_id = api_id
        self.api_secret = api_secret
        self.simplify = simplify
        self.timeout = timeout
        self._transport = transport

    @property
    def engine_id(self) -> str:
        return "remote"

    @property
    def tier(self) -> Tier:
        return Tier.REMOTE

    def is_available(self) -> bool:
        return bool(self.url and self.api_id and self.api_secret)

    async def run(self, job) -> str:
        if not self.is_available():
            raise RemoteAPIError("remote API credentials not configured")
        try:
            # hard cap over the whole exchange; cancels the request on expiry
            return await asyncio.wait_for(self._post(job), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise RemoteTimeout(f"remote API gave no answer within {self.timeout}s") from e

    async def _post(self, job) -> str:
        files = {"image": ("image.png", job.upload_png(), "image/png")}
        data = {"simplify": str(self.simplify), "transparent": "true"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self.url,
                    files=files,
                    data=data,
                    auth=(self.api_id, self.api_secret),
                )
            except httpx.TimeoutException as e:
                raise RemoteTimeout(f"remote API timed out: {e}") from e
            except httpx.HTTPError as e:
                raise RemoteAPIError(f"remote API request failed: {e}") from e

        if not response.is_success:
            raise RemoteAPIError(_describe_remote_error(response), status=response.status_code)

        logger.info("Job %s: remote API returned %d bytes", job.id, len(response.content))
        return ensure_viewbox(response.text)


def _describe_remote_error(response: httpx.Response) -> str:
    status = response.status_code
    if status == 413:
        message = "Image is too large for vectorization"
    elif status == 429:
        message = "Rate limit exceeded"
    elif status in (401, 403):
        message = "API authentication failed"
    else:
        message = "Error from vectorization service"
        try:
            body = response.json()
        except ValueError:
            body = None
        err = body.get("error") if isinstance(body, dict) else None
        if isinstance(err, str):
            message = err
        elif isinstance(err, dict) and err.get("message"):
            message = f"Error {err.get('code', 'unknown')}: {err['message']}"
    return f"{message} (HTTP {status})"
