"""Adapter and registry tests with mocked SDK clients; no real API calls."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.config_loader import ModelConfig
from council.errors import ConfigurationError
from council.providers.anthropic import AnthropicJudge
from council.providers.base import ProviderError
from council.providers.gemini import GeminiJudge
from council.providers.openai_provider import OpenAIJudge
from council.providers.registry import build_adapters
from council.providers.xai import XAIJudge


def _openai_response(text: str | None, tokens: int = 42):
    message = SimpleNamespace(content=text)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message)],
        usage=SimpleNamespace(total_tokens=tokens),
    )


@pytest.fixture
def openai_config() -> ModelConfig:
    return ModelConfig("openai", "openai", "gpt-4o", "TEST_OPENAI_KEY", 45, 1024, temperature=0.7)


@pytest.fixture
def grok_config() -> ModelConfig:
    return ModelConfig("grok", "openai", "grok-2-1212", "TEST_GROK_KEY", 45, 1024, base_url="https://api.x.ai/v1")


def test_missing_api_key_raises(openai_config, sample_prompts_config, monkeypatch):
    monkeypatch.delenv("TEST_OPENAI_KEY", raising=False)
    with pytest.raises(ConfigurationError, match="TEST_OPENAI_KEY"):
        OpenAIJudge(openai_config, sample_prompts_config)


def test_xai_requires_base_url(grok_config, sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_GROK_KEY", "xai-test")
    grok_config.base_url = None
    with pytest.raises(ConfigurationError, match="base_url"):
        XAIJudge(grok_config, sample_prompts_config)


async def test_openai_sends_json_mode_and_system(openai_config, sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    judge = OpenAIJudge(openai_config, sample_prompts_config)
    create = AsyncMock(return_value=_openai_response('{"vote": true, "reasoning": "ok"}'))
    judge._client = MagicMock()
    judge._client.chat.completions.create = create

    text, tokens = await judge.complete("SYSTEM", "PROMPT", timeout_sec=5)

    assert text == '{"vote": true, "reasoning": "ok"}'
    assert tokens == 42
    kwargs = create.call_args.kwargs
    assert kwargs["messages"][0] == {"role": "system", "content": "SYSTEM"}
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["temperature"] == 0.7


async def test_openai_ping_skips_system_and_json_mode(openai_config, sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    judge = OpenAIJudge(openai_config, sample_prompts_config)
    create = AsyncMock(return_value=_openai_response("OK"))
    judge._client = MagicMock()
    judge._client.chat.completions.create = create

    await judge.complete("", "Reply OK", timeout_sec=5)

    kwargs = create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "Reply OK"}]
    assert "response_format" not in kwargs


async def test_xai_never_sends_json_mode(grok_config, sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_GROK_KEY", "xai-test")
    judge = XAIJudge(grok_config, sample_prompts_config)
    create = AsyncMock(return_value=_openai_response("vote: true"))
    judge._client = MagicMock()
    judge._client.chat.completions.create = create

    await judge.complete("SYSTEM", "PROMPT", timeout_sec=5)

    assert "response_format" not in create.call_args.kwargs


async def test_openai_empty_content_is_transport_error(openai_config, sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    judge = OpenAIJudge(openai_config, sample_prompts_config)
    judge._client = MagicMock()
    judge._client.chat.completions.create = AsyncMock(return_value=_openai_response(None))

    with pytest.raises(ProviderError, match="Empty"):
        await judge.complete("SYSTEM", "PROMPT", timeout_sec=5)


async def test_openai_timeout_is_marked(openai_config, sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    judge = OpenAIJudge(openai_config, sample_prompts_config)

    async def hang(*args, **kwargs):
        await asyncio.sleep(10)

    judge._client = MagicMock()
    judge._client.chat.completions.create = AsyncMock(side_effect=hang)

    with pytest.raises(ProviderError) as excinfo:
        await judge.complete("SYSTEM", "PROMPT", timeout_sec=0.05)
    assert excinfo.value.timed_out is True


async def test_sdk_failure_is_not_a_timeout(openai_config, sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    judge = OpenAIJudge(openai_config, sample_prompts_config)
    judge._client = MagicMock()
    judge._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("401 Unauthorized"))

    with pytest.raises(ProviderError) as excinfo:
        await judge.complete("SYSTEM", "PROMPT", timeout_sec=5)
    assert excinfo.value.timed_out is False
    assert "401" in str(excinfo.value)


async def test_anthropic_joins_text_blocks(sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_ANTHROPIC_KEY", "sk-ant-test")
    config = ModelConfig("claude", "anthropic", "claude-opus-4-20250514", "TEST_ANTHROPIC_KEY", 60, 1024)
    judge = AnthropicJudge(config, sample_prompts_config)
    response = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text='{"vote": true,'),
            SimpleNamespace(type="tool_use", text=None),
            SimpleNamespace(type="text", text='"reasoning": "ok"}'),
        ],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )
    judge._client = MagicMock()
    judge._client.messages.create = AsyncMock(return_value=response)

    text, tokens = await judge.complete("SYSTEM", "PROMPT", timeout_sec=5)

    assert text == '{"vote": true,\n"reasoning": "ok"}'
    assert tokens == 15
    assert judge._client.messages.create.call_args.kwargs["system"] == "SYSTEM"


async def test_gemini_attaches_video(sample_prompts_config, monkeypatch):
    monkeypatch.setenv("TEST_GOOGLE_KEY", "g-test")
    config = ModelConfig("gemini", "google-genai", "gemini-2.5-flash", "TEST_GOOGLE_KEY", 60, 1024)
    judge = GeminiJudge(config, sample_prompts_config)
    response = SimpleNamespace(text='{"vote": true, "reasoning": "ok"}', usage_metadata=None)
    judge._client = MagicMock()
    judge._client.aio.models.generate_content = AsyncMock(return_value=response)

    text, tokens = await judge.complete(
        "SYSTEM", "PROMPT", timeout_sec=5, attachment_url="https://youtu.be/abc"
    )

    assert tokens is None
    contents = judge._client.aio.models.generate_content.call_args.kwargs["contents"]
    assert isinstance(contents, list)
    assert len(contents) == 2


async def test_evaluate_wraps_output(mock_adapter, personas, sample_context):
    raw = await mock_adapter.evaluate(personas[0], sample_context)
    assert raw.judge_id == "code-validator"
    assert raw.provider_kind == "openai"
    assert raw.token_count == 10
    system_prompt, prompt = mock_adapter.complete.call_args.args
    assert system_prompt == personas[0].system_prompt
    assert sample_context.submission_notes in prompt


def test_build_adapters_marks_missing_keys_absent(sample_app_config, personas, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("GROK_API_KEY", "xai-test")
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    adapters, absent = build_adapters(sample_app_config, personas)

    assert set(adapters) == {"code-validator", "chaos-arbiter"}
    assert isinstance(adapters["chaos-arbiter"], XAIJudge)
    assert absent == ["impact-sage"]
