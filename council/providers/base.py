"""Abstract base for all judge responder adapters."""

import logging
import os
import time
from abc import ABC, abstractmethod

from config.config_loader import ModelConfig, PromptsConfig
from council.errors import ConfigurationError, JudgeTransportError
from council.models import JudgePersona, RawJudgeOutput, SubmissionContext
from council.prompts import build_evaluation_prompt, uses_native_retrieval

logger = logging.getLogger(__name__)

# Re-exported so adapters and callers share one name for transport failures.
ProviderError = JudgeTransportError


class JudgeAdapter(ABC):
    """One model-provider call behind a uniform, provider-agnostic interface.

    Subclasses implement only `complete`; prompt assembly, timing and the
    RawJudgeOutput envelope live here so every provider is called the same way.
    """

    def __init__(self, config: ModelConfig, prompts: PromptsConfig) -> None:
        self._config = config
        self._prompts = prompts
        self._api_key = os.environ.get(config.api_key_env, "").strip()
        if not self._api_key:
            raise ConfigurationError(
                f"[{config.name}] Missing API key: {config.api_key_env}",
                details={"provider": config.name, "api_key_env": config.api_key_env},
            )

    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        return self._config.name

    def model_string(self) -> str:
        """Return the actual model identifier string."""
        return self._config.model

    @property
    def timeout_sec(self) -> float:
        return float(self._config.timeout_sec)

    def _sampling_kwargs(self) -> dict:
        if self._config.temperature is None:
            return {}
        return {"temperature": self._config.temperature}

    async def evaluate(
        self,
        persona: JudgePersona,
        context: SubmissionContext,
        peer_summaries: list[str] | None = None,
        *,
        timeout_sec: float | None = None,
    ) -> RawJudgeOutput:
        """Ask this provider to judge the submission as `persona`.

        Args:
            persona: The seat being evaluated for (fixed rubric in its system prompt).
            context: Request-scoped submission context (screened notes only).
            peer_summaries: Condensed findings from other judges, if any.
            timeout_sec: Per-call timeout; defaults to the model's configured timeout.

        Returns:
            RawJudgeOutput with the unparsed response text.

        Raises:
            JudgeTransportError: On API failure, timeout, or empty response.
        """
        prompt = build_evaluation_prompt(self._prompts, persona, context, peer_summaries)
        attachment_url = None
        if context.content_type == "video" and uses_native_retrieval(persona, context):
            attachment_url = context.submission_url

        start = time.monotonic()
        content, token_count = await self.complete(
            persona.system_prompt,
            prompt,
            timeout_sec=timeout_sec or self.timeout_sec,
            attachment_url=attachment_url,
        )
        latency = time.monotonic() - start

        logger.info(
            "%s judged %s as %s: %.2fs, %s tokens",
            self._config.name,
            context.project_id,
            persona.judge_name,
            latency,
            token_count,
        )

        return RawJudgeOutput(
            judge_id=persona.judge_id,
            judge_name=persona.judge_name,
            provider_kind=persona.provider_kind,
            model=self._config.model,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        prompt: str,
        *,
        timeout_sec: float,
        attachment_url: str | None = None,
    ) -> tuple[str, int | None]:
        """Send one prompt to the provider.

        Args:
            system_prompt: Persona system prompt (may be empty for pings).
            prompt: The user-turn prompt text.
            timeout_sec: Hard timeout for this call.
            attachment_url: Media URL for providers that ingest it natively.

        Returns:
            (response_text, token_count or None)

        Raises:
            JudgeTransportError: On API failure, timeout, or empty response.
        """
        ...
