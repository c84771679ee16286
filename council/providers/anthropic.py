"""Anthropic Claude judge adapter using anthropic SDK with native async."""

import asyncio

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig, PromptsConfig
from council.providers.base import JudgeAdapter, ProviderError


class AnthropicJudge(JudgeAdapter):
    """Anthropic Claude judge via anthropic SDK."""

    def __init__(self, config: ModelConfig, prompts: PromptsConfig) -> None:
        super().__init__(config, prompts)
        self._client = anthropic_sdk.AsyncAnthropic(api_key=self._api_key)

    async def complete(
        self,
        system_prompt: str,
        prompt: str,
        *,
        timeout_sec: float,
        attachment_url: str | None = None,
    ) -> tuple[str, int | None]:
        kwargs = self._sampling_kwargs()
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._config.model,
                    max_tokens=self._config.max_tokens,
                    messages=[{"role": "user", "content": prompt}],
                    **kwargs,
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {timeout_sec}s", timed_out=True) from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        if not response.content:
            raise ProviderError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        return "\n".join(text_blocks), token_count
