"""Council seats: a closed set of persona archetypes bound to providers."""

import logging
from enum import Enum

from config.config_loader import AppConfig
from council.errors import ConfigurationError
from council.models import JudgePersona
from council.prompts import build_system_prompt

logger = logging.getLogger(__name__)


class Archetype(str, Enum):
    """Evaluation rubrics a seat can hold. Rubric text lives in settings.yaml."""

    TECHNICAL = "technical"
    IMPACT = "impact"
    CREATIVE = "creative"


def build_personas(config: AppConfig) -> list[JudgePersona]:
    """Build one JudgePersona per configured seat, in configuration order.

    Raises:
        ConfigurationError: On an unknown archetype or a missing rubric.
    """
    personas: list[JudgePersona] = []
    for judge in config.judges:
        try:
            archetype = Archetype(judge.archetype)
        except ValueError as exc:
            allowed = ", ".join(a.value for a in Archetype)
            raise ConfigurationError(
                f"Judge {judge.judge_id} has unknown archetype {judge.archetype!r} (expected one of {allowed})"
            ) from exc

        rubric = config.prompts.personas.get(archetype.value)
        if not rubric:
            raise ConfigurationError(f"No rubric configured for archetype {archetype.value!r}")

        personas.append(
            JudgePersona(
                judge_id=judge.judge_id,
                judge_name=judge.judge_name,
                provider_kind=judge.provider,
                archetype=archetype.value,
                system_prompt=build_system_prompt(config.prompts, judge.judge_name, rubric),
                native_content_types=tuple(judge.native_content_types),
            )
        )
    logger.debug("Council seats: %s", [p.judge_id for p in personas])
    return personas
