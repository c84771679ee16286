"""Shared pytest fixtures."""

import json
from fractions import Fraction
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    ChannelConfig,
    DefaultsConfig,
    JudgeConfig,
    LedgerConfig,
    ModelConfig,
    PromptsConfig,
    SecurityConfig,
)
from council.models import JudgePersona, SubmissionContext
from council.orchestrator import CouncilOrchestrator
from council.personas import build_personas
from council.providers.base import JudgeAdapter
from council.security import SecurityScreen


def vote_json(approve: bool, reasoning: str = "Looks like real work.") -> str:
    return json.dumps({"vote": approve, "reasoning": reasoning})


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        system="You are {judge_name}.\nRUBRIC: {rubric}",
        evaluation=(
            "<user_submission>\nproject: {project_id}\nurl: {submission_url}\n"
            "type: {content_type}\n<notes>\n{notes}\n</notes>{extracted}\n</user_submission>\n"
            "{native_hint}{peer_block}\n"
            'Respond with {{"vote": true or false, "reasoning": "..."}}'
        ),
        peer_block="\n<peer_insights>\n{peer_summaries}\n</peer_insights>\n",
        native_hints={"video": "Watch the video directly.", "code": "Judge the code from the extracted material."},
        personas={
            "technical": "Strict about code quality.",
            "impact": "Cares about ecosystem value.",
            "creative": "Loves bold ideas.",
        },
    )


@pytest.fixture
def sample_judges() -> list[JudgeConfig]:
    return [
        JudgeConfig("code-validator", "CODE-VALIDATOR", "openai", "technical", ["code"]),
        JudgeConfig("impact-sage", "IMPACT-SAGE", "gemini", "impact", ["video"]),
        JudgeConfig("chaos-arbiter", "CHAOS-ARBITER", "grok", "creative", ["social"]),
    ]


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_prompts_config: PromptsConfig,
    sample_judges: list[JudgeConfig],
) -> AppConfig:
    models = {
        "openai": ModelConfig("openai", "openai", "gpt-4o", "OPENAI_API_KEY", 45, 1024),
        "gemini": ModelConfig("gemini", "google-genai", "gemini-2.5-flash", "GOOGLE_API_KEY", 60, 1024),
        "grok": ModelConfig(
            "grok", "openai", "grok-2-1212", "GROK_API_KEY", 45, 1024, base_url="https://api.x.ai/v1"
        ),
    }
    return AppConfig(
        defaults=DefaultsConfig(
            round_budget_sec=30.0,
            output_dir=tmp_path / "output",
            threshold=Fraction(2, 3),
        ),
        models=models,
        judges=sample_judges,
        prompts=sample_prompts_config,
        security=SecurityConfig(allowed_domains=["github.com", "youtube.com", "youtu.be", "x.com"]),
        channel=ChannelConfig(mode="share"),
        ledger=LedgerConfig(backend="memory"),
        available_providers=set(),
    )


@pytest.fixture
def personas(sample_app_config: AppConfig) -> list[JudgePersona]:
    return build_personas(sample_app_config)


@pytest.fixture
def sample_context() -> SubmissionContext:
    return SubmissionContext(
        project_id="p-42",
        submission_url="https://github.com/blob/bridge-ui",
        submission_notes="Built the bridge UI with wallet connect.",
        content_type="code",
    )


class MockAdapter(JudgeAdapter):
    """Test double JudgeAdapter. Never reads an API key."""

    def __init__(
        self,
        provider_name: str = "mock",
        response_content: str = vote_json(True),
        prompts: PromptsConfig | None = None,
        timeout_sec: int = 30,
    ) -> None:
        # Skip JudgeAdapter.__init__ so no credential is required.
        self._config = ModelConfig(
            name=provider_name,
            sdk="mock",
            model="mock-model",
            api_key_env="MOCK_API_KEY",
            timeout_sec=timeout_sec,
            max_tokens=256,
        )
        self._prompts = prompts or PromptsConfig(system="{judge_name} {rubric}", evaluation="{notes}")
        self._api_key = "test-key"
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        self.complete = AsyncMock(return_value=(response_content, 10))  # type: ignore[method-assign]

    async def complete(  # type: ignore[override]
        self,
        system_prompt: str,
        prompt: str,
        *,
        timeout_sec: float,
        attachment_url: str | None = None,
    ) -> tuple[str, int | None]:
        """Default implementation; replaced by AsyncMock in __init__."""
        return self._response_content, 10


@pytest.fixture
def mock_adapter(sample_prompts_config: PromptsConfig) -> MockAdapter:
    return MockAdapter(prompts=sample_prompts_config)


def make_adapters(
    personas: list[JudgePersona],
    responses: list[str],
    prompts: PromptsConfig | None = None,
) -> dict[str, MockAdapter]:
    """One MockAdapter per persona, answering with the matching response text."""
    return {
        p.judge_id: MockAdapter(p.provider_kind, text, prompts=prompts)
        for p, text in zip(personas, responses)
    }


def make_orchestrator(
    app_config: AppConfig,
    personas: list[JudgePersona],
    adapters: dict[str, JudgeAdapter],
    **kwargs,
) -> CouncilOrchestrator:
    options = {
        "threshold": app_config.defaults.threshold,
        "quorum": app_config.defaults.quorum,
        "round_budget_sec": app_config.defaults.round_budget_sec,
        "channel_mode": app_config.channel.mode,
        "summary_chars": app_config.channel.summary_chars,
    }
    options.update(kwargs)
    return CouncilOrchestrator(personas, adapters, SecurityScreen(app_config.security), **options)
