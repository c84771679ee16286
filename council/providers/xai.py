"""xAI Grok judge adapter using openai SDK (OpenAI-compatible API)."""

from openai import AsyncOpenAI

from config.config_loader import ModelConfig, PromptsConfig
from council.errors import ConfigurationError
from council.providers.openai_provider import OpenAIJudge


class XAIJudge(OpenAIJudge):
    """xAI Grok judge via OpenAI-compatible API.

    Grok does not reliably honour JSON mode, so no response_format is sent and
    its output goes through the normalizer's fallback strategies more often.
    """

    _response_format = None

    def __init__(self, config: ModelConfig, prompts: PromptsConfig) -> None:
        if not config.base_url:
            raise ConfigurationError(f"[{config.name}] base_url is required for xAI provider")
        super().__init__(config, prompts)

    def _make_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=self._api_key, base_url=self._config.base_url)
