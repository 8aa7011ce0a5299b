# backend/podvector/pipeline/selector.py

"""
Fallback coordinator.

Engines are tried strictly in the order given. Every engine is attempted and
recorded, even one known to be unavailable, so the attempt log always shows
the whole path a job took. The first success wins; if none succeeds the job
fails with VectorizationFailed carrying that log.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from podvector.errors import (
    DecodeError,
    ExternalToolFailure,
    ExternalToolUnavailable,
    InvalidVectorOutput,
    RemoteAPIError,
    RemoteTimeout,
    TraceFailure,
    VectorizationFailed,
)
from .engines import (
    DEFAULT_STRATEGIES,
    CliExportEngine,
    LocalTraceEngine,
    RemoteApiEngine,
    Tier,
    VectorEngine,
)

logger = logging.getLogger(__name__)

# errors that move the job on to the next engine
FALLBACK_ERRORS = (
    TraceFailure,
    ExternalToolUnavailable,
    ExternalToolFailure,
    RemoteTimeout,
    RemoteAPIError,
)


@dataclass
class EngineAttempt:
    engine_id: str
    tier: Tier
    succeeded: bool
    error_detail: Optional[str] = None
    error: Optional[BaseException] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {
            "engine": self.engine_id,
            "tier": self.tier.value,
            "succeeded": self.succeeded,
        }


@dataclass
class Selection:
    svg: str
    engine_id: str
    attempts: List[EngineAttempt]


class EngineSelector:
    def __init__(self, engines: Sequence[VectorEngine]):
        self.engines = list(engines)

    async def select(self, job) -> Selection:
        attempts: List[EngineAttempt] = []

        for engine in self.engines:
            logger.info("Job %s: trying %s (%s tier)", job.id, engine.engine_id, engine.tier.value)
            try:
                svg = await engine.run(job)
            except (DecodeError, InvalidVectorOutput):
                raise
            except FALLBACK_ERRORS as e:
                logger.warning("Job %s: %s failed, falling back: %s", job.id, engine.engine_id, e)
                attempts.append(EngineAttempt(engine.engine_id, engine.tier, False, str(e), e))
                continue
            except Exception as e:
                logger.exception("Job %s: %s raised unexpectedly", job.id, engine.engine_id)
                attempts.append(
                    EngineAttempt(engine.engine_id, engine.tier, False, f"{type(e).__name__}: {e}", e)
                )
                continue

            attempts.append(EngineAttempt(engine.engine_id, engine.tier, True))
            logger.info("Job %s: vectorized with %s", job.id, engine.engine_id)
            return Selection(svg=svg, engine_id=engine.engine_id, attempts=attempts)

        last = attempts[-1].error if attempts else None
        raise VectorizationFailed(attempts) from last


def build_selector(settings, transport=None) -> EngineSelector:
    """Default tier order: local, cli:modern, cli:legacy, remote."""
    engines: List[VectorEngine] = [LocalTraceEngine(enabled=settings.local_engine_enabled)]
    engines.extend(
        CliExportEngine(strategy, command=settings.cli_command, timeout=settings.cli_timeout)
        for strategy in DEFAULT_STRATEGIES
    )
    engines.append(
        RemoteApiEngine(
            url=settings.remote_url,
            api_id=settings.remote_api_id,
            api_secret=settings.remote_api_secret,
            simplify=settings.remote_simplify,
            timeout=settings.remote_timeout,
            transport=transport,
        )
    )
    return EngineSelector(engines)
