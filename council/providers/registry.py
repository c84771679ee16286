"""Map configured providers to adapter classes and build one adapter per seat."""

import logging

from config.config_loader import AppConfig
from council.errors import ConfigurationError
from council.models import JudgePersona
from council.providers.anthropic import AnthropicJudge
from council.providers.base import JudgeAdapter
from council.providers.gemini import GeminiJudge
from council.providers.openai_provider import OpenAIJudge
from council.providers.xai import XAIJudge

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[JudgeAdapter]] = {
    "openai": OpenAIJudge,
    "gemini": GeminiJudge,
    "grok": XAIJudge,
    "claude": AnthropicJudge,
}


def build_adapters(
    config: AppConfig,
    personas: list[JudgePersona],
) -> tuple[dict[str, JudgeAdapter], list[str]]:
    """Build one adapter per seat.

    A seat whose provider is unknown or lacks credentials is not fatal: it is
    returned in the absent list and the round runs with the remaining seats.

    Returns:
        (adapters keyed by judge_id, absent judge_ids)
    """
    adapters: dict[str, JudgeAdapter] = {}
    absent: list[str] = []
    for persona in personas:
        cls = PROVIDER_CLASSES.get(persona.provider_kind)
        if cls is None:
            logger.warning("Provider '%s' unknown, seat %s absent", persona.provider_kind, persona.judge_id)
            absent.append(persona.judge_id)
            continue
        try:
            adapters[persona.judge_id] = cls(config.models[persona.provider_kind], config.prompts)
        except ConfigurationError as exc:
            logger.warning("Seat %s absent: %s", persona.judge_id, exc)
            absent.append(persona.judge_id)
    return adapters, absent
