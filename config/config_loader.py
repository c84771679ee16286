"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from fractions import Fraction
from pathlib import Path

import yaml

from council.errors import ConfigurationError

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_CHANNEL_MODES = ("off", "share", "deliberate")
_RISK_LEVELS = ("low", "medium", "high")
_LEDGER_BACKENDS = ("memory", "sqlite")


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    temperature: float | None = None


@dataclass
class JudgeConfig:
    judge_id: str
    judge_name: str
    provider: str          # key into AppConfig.models
    archetype: str
    native_content_types: list[str] = field(default_factory=list)


@dataclass
class PromptsConfig:
    system: str
    evaluation: str
    peer_block: str = ""
    native_hints: dict[str, str] = field(default_factory=dict)
    personas: dict[str, str] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    round_budget_sec: float
    output_dir: Path
    threshold: Fraction = Fraction(2, 3)
    quorum: int | None = None
    retry_on_timeout: bool = True


@dataclass
class SecurityConfig:
    abort_risk_level: str = "high"
    max_notes_length: int = 2000
    max_special_char_ratio: float = 0.3
    allowed_domains: list[str] = field(default_factory=list)


@dataclass
class ChannelConfig:
    mode: str = "share"
    summary_chars: int = 200


@dataclass
class LedgerConfig:
    backend: str = "memory"
    path: Path | None = None


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class ExtractionConfig:
    enabled: bool = True
    timeout_sec: float = 15.0
    max_chars: int = 8000
    max_files: int = 3
    github_token_env: str = "GITHUB_TOKEN"


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    judges: list[JudgeConfig]
    prompts: PromptsConfig
    security: SecurityConfig = field(default_factory=SecurityConfig)
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    inbox: InboxConfig = field(default_factory=InboxConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    available_providers: set[str] = field(default_factory=set)


def parse_threshold(value: object) -> Fraction:
    """Parse a threshold such as "2/3", 0.5 or "1" into an exact fraction in (0, 1]."""
    try:
        threshold = Fraction(str(value).strip())
    except (ValueError, ZeroDivisionError) as exc:
        raise ConfigurationError(f"Invalid consensus threshold: {value!r}") from exc
    if not 0 < threshold <= 1:
        raise ConfigurationError(f"Consensus threshold must be in (0, 1], got {value!r}")
    return threshold


def _choice(value: str, allowed: tuple[str, ...], what: str) -> str:
    if value not in allowed:
        raise ConfigurationError(f"Invalid {what}: {value!r} (expected one of {', '.join(allowed)})")
    return value


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing and ConfigurationError on
    invalid values. Logs warnings for missing API keys but does not raise;
    those seats are reported absent at round start.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    try:
        return _parse(raw)
    except (KeyError, TypeError) as exc:
        raise ConfigurationError(f"Missing or malformed setting in {settings_path}: {exc}") from exc


def _parse(raw: dict) -> AppConfig:
    defaults_raw = raw["defaults"]
    quorum_raw = defaults_raw.get("quorum")
    defaults = DefaultsConfig(
        round_budget_sec=float(defaults_raw["round_budget_sec"]),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        threshold=parse_threshold(defaults_raw.get("threshold", "2/3")),
        quorum=int(quorum_raw) if quorum_raw is not None else None,
        retry_on_timeout=bool(defaults_raw.get("retry_on_timeout", True)),
    )

    prompts_raw = raw["prompts"]
    personas_raw = raw.get("personas", {})
    prompts = PromptsConfig(
        system=prompts_raw["system"],
        evaluation=prompts_raw["evaluation"],
        peer_block=prompts_raw.get("peer_block", ""),
        native_hints={k: str(v) for k, v in prompts_raw.get("native_hints", {}).items()},
        personas={k: str(v).strip() for k, v in personas_raw.items()},
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        temperature = model_raw.get("temperature")
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
            temperature=float(temperature) if temperature is not None else None,
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    judges: list[JudgeConfig] = []
    for judge_raw in raw["judges"]:
        judge = JudgeConfig(
            judge_id=str(judge_raw["id"]),
            judge_name=str(judge_raw.get("name", judge_raw["id"])),
            provider=str(judge_raw["provider"]),
            archetype=str(judge_raw["archetype"]),
            native_content_types=list(judge_raw.get("native_content_types", [])),
        )
        if judge.provider not in models:
            raise ConfigurationError(f"Judge {judge.judge_id} references unknown provider {judge.provider!r}")
        judges.append(judge)

    if not judges:
        raise ConfigurationError("At least one judge seat must be configured")
    seen_ids = [j.judge_id for j in judges]
    if len(set(seen_ids)) != len(seen_ids):
        raise ConfigurationError(f"Duplicate judge ids: {seen_ids}")
    if defaults.quorum is not None and not 1 <= defaults.quorum <= len(judges):
        raise ConfigurationError(
            f"Quorum must be between 1 and the number of judge seats ({len(judges)}), got {defaults.quorum}"
        )

    security_raw = raw.get("security", {})
    security = SecurityConfig(
        abort_risk_level=_choice(
            str(security_raw.get("abort_risk_level", "high")), _RISK_LEVELS, "abort_risk_level"
        ),
        max_notes_length=int(security_raw.get("max_notes_length", 2000)),
        max_special_char_ratio=float(security_raw.get("max_special_char_ratio", 0.3)),
        allowed_domains=[str(d).lower() for d in security_raw.get("allowed_domains", [])],
    )

    channel_raw = raw.get("channel", {})
    channel = ChannelConfig(
        mode=_choice(str(channel_raw.get("mode", "share")), _CHANNEL_MODES, "channel mode"),
        summary_chars=int(channel_raw.get("summary_chars", 200)),
    )

    ledger_raw = raw.get("ledger", {})
    ledger_path = ledger_raw.get("path")
    ledger = LedgerConfig(
        backend=_choice(str(ledger_raw.get("backend", "memory")), _LEDGER_BACKENDS, "ledger backend"),
        path=Path(ledger_path) if ledger_path else None,
    )

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    extraction_raw = raw.get("extraction", {})
    extraction = ExtractionConfig(
        enabled=bool(extraction_raw.get("enabled", True)),
        timeout_sec=float(extraction_raw.get("timeout_sec", 15)),
        max_chars=int(extraction_raw.get("max_chars", 8000)),
        max_files=int(extraction_raw.get("max_files", 3)),
        github_token_env=str(extraction_raw.get("github_token_env", "GITHUB_TOKEN")),
    )

    return AppConfig(
        defaults=defaults,
        models=models,
        judges=judges,
        prompts=prompts,
        security=security,
        channel=channel,
        ledger=ledger,
        inbox=inbox,
        extraction=extraction,
        available_providers=available_providers,
    )
