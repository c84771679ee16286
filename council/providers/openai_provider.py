"""OpenAI judge adapter using openai SDK with native async."""

import asyncio

from openai import AsyncOpenAI

from config.config_loader import ModelConfig, PromptsConfig
from council.providers.base import JudgeAdapter, ProviderError


class OpenAIJudge(JudgeAdapter):
    """OpenAI judge via openai SDK, JSON-object response mode."""

    _response_format: dict | None = {"type": "json_object"}

    def __init__(self, config: ModelConfig, prompts: PromptsConfig) -> None:
        super().__init__(config, prompts)
        self._client = self._make_client()

    def _make_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=self._api_key)

    async def complete(
        self,
        system_prompt: str,
        prompt: str,
        *,
        timeout_sec: float,
        attachment_url: str | None = None,
    ) -> tuple[str, int | None]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = self._sampling_kwargs()
        if self._response_format is not None and system_prompt:
            kwargs["response_format"] = self._response_format

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=messages,
                    max_tokens=self._config.max_tokens,
                    **kwargs,
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {timeout_sec}s", timed_out=True) from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        return choice.message.content, token_count
