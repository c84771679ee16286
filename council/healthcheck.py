"""Judge connectivity checks, run before an evaluation batch.

Each seat's adapter gets one short ping with no persona system prompt, so
JSON response modes stay off and the check costs a handful of tokens.
"""

import asyncio
import logging
import time
from dataclasses import dataclass

from council.providers.base import JudgeAdapter

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


@dataclass
class JudgeHealth:
    judge_id: str
    provider: str
    model: str
    ok: bool
    latency_sec: float = 0.0
    error: str = ""


async def check_judge(judge_id: str, adapter: JudgeAdapter) -> JudgeHealth:
    """Ping one seat's provider. Never raises."""
    health = JudgeHealth(judge_id=judge_id, provider=adapter.name(), model=adapter.model_string(), ok=False)
    start = time.monotonic()
    try:
        text, _ = await asyncio.wait_for(
            adapter.complete("", _PING_PROMPT, timeout_sec=_TIMEOUT_SEC),
            timeout=_TIMEOUT_SEC,
        )
    except Exception as exc:
        health.error = str(exc) or exc.__class__.__name__
        logger.debug("Health check failed for %s (%s): %s", judge_id, health.provider, health.error)
        return health

    health.latency_sec = time.monotonic() - start
    if not text.strip():
        health.error = "Empty reply"
        return health
    health.ok = True
    return health


async def run_health_checks(adapters: dict[str, JudgeAdapter]) -> list[JudgeHealth]:
    """Ping every seat in parallel; results are sorted by judge id."""
    results = await asyncio.gather(*(check_judge(j, a) for j, a in adapters.items()))
    return sorted(results, key=lambda h: h.judge_id)
