"""Gemini judge adapter using google-genai SDK with native async."""

import asyncio

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig, PromptsConfig
from council.providers.base import JudgeAdapter, ProviderError


class GeminiJudge(JudgeAdapter):
    """Google Gemini judge via google-genai SDK.

    Gemini ingests video URLs natively, so when the round's content is video
    and the seat allows it, the URL is attached as a file part.
    """

    def __init__(self, config: ModelConfig, prompts: PromptsConfig) -> None:
        super().__init__(config, prompts)
        self._client = genai.Client(api_key=self._api_key)

    async def complete(
        self,
        system_prompt: str,
        prompt: str,
        *,
        timeout_sec: float,
        attachment_url: str | None = None,
    ) -> tuple[str, int | None]:
        if attachment_url:
            contents = [
                genai_types.Part.from_uri(file_uri=attachment_url, mime_type="video/mp4"),
                genai_types.Part.from_text(text=prompt),
            ]
        else:
            contents = prompt

        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=contents,
                    config=genai_types.GenerateContentConfig(
                        system_instruction=system_prompt or None,
                        max_output_tokens=self._config.max_tokens,
                        temperature=self._config.temperature,
                        response_mime_type="application/json" if system_prompt else None,
                    ),
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {timeout_sec}s", timed_out=True) from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        return response.text, token_count
