"""Turn a judge's free-form response into a Vote.

Parsing is an ordered chain of pure strategies; the first one that yields a
usable (vote, reasoning) pair wins. When every strategy fails the judge
casts a rejection carrying a prefix of its raw text (fail-closed).
"""

import json
import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from council.errors import JudgeOutputParseFailure
from council.models import RawJudgeOutput, Vote

logger = logging.getLogger(__name__)

FALLBACK_REASONING_CHARS = 200
MAX_REASONING_CHARS = 500

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*\n?([\s\S]*?)\n?```")
_VOTE_KEY = re.compile(r"(?<![\w])[\"']?vote[\"']?\s*[:=]\s*[\"']?(true|false)\b", re.IGNORECASE)
_REASONING_KEY = re.compile(r"[\"']?reasoning[\"']?\s*[:=]\s*\"((?:[^\"\\]|\\.)*)\"", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")

# Reasoning is shown to peers and stored; strip anything that reads as a directive.
_OUTPUT_INJECTION_PATTERNS = (
    re.compile(r"ignore\s+(?:all\s+)?previous", re.IGNORECASE),
    re.compile(r"you\s+are\s+now", re.IGNORECASE),
    re.compile(r"system\s*:", re.IGNORECASE),
    re.compile(r"<script>", re.IGNORECASE),
    re.compile(r"<iframe>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"onerror=", re.IGNORECASE),
)

ParseStrategy = Callable[[str], tuple[bool, str]]


def _coerce_vote(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise JudgeOutputParseFailure(f"Vote must be a boolean, got {value!r}")


def _from_mapping(data: Any) -> tuple[bool, str]:
    if not isinstance(data, dict):
        raise JudgeOutputParseFailure("JSON payload is not an object")
    if "vote" not in data:
        raise JudgeOutputParseFailure("JSON payload has no 'vote' key")
    reasoning = data.get("reasoning")
    if not isinstance(reasoning, str):
        raise JudgeOutputParseFailure("Reasoning must be a string")
    return _coerce_vote(data["vote"]), reasoning


def _load(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise JudgeOutputParseFailure(f"Invalid JSON: {exc}") from exc


def parse_strict_json(text: str) -> tuple[bool, str]:
    return _from_mapping(_load(text.strip()))


def parse_fenced_block(text: str) -> tuple[bool, str]:
    for block in _FENCED_BLOCK.findall(text):
        try:
            return _from_mapping(_load(block.strip()))
        except JudgeOutputParseFailure:
            continue
    raise JudgeOutputParseFailure("No fenced JSON block with a vote")


def parse_embedded_object(text: str) -> tuple[bool, str]:
    """Find the first decodable JSON object embedded in surrounding prose."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            data, _ = decoder.raw_decode(text, start)
            return _from_mapping(data)
        except (json.JSONDecodeError, JudgeOutputParseFailure):
            start = text.find("{", start + 1)
    raise JudgeOutputParseFailure("No embedded JSON object with a vote")


def parse_key_regex(text: str) -> tuple[bool, str]:
    vote_match = _VOTE_KEY.search(text)
    if not vote_match:
        raise JudgeOutputParseFailure("No 'vote' key found")
    reasoning_match = _REASONING_KEY.search(text)
    if reasoning_match:
        reasoning = reasoning_match.group(1).replace('\\"', '"')
    else:
        reasoning = text[:FALLBACK_REASONING_CHARS].strip()
    return vote_match.group(1).lower() == "true", reasoning


STRATEGIES: tuple[tuple[str, ParseStrategy], ...] = (
    ("strict_json", parse_strict_json),
    ("fenced_block", parse_fenced_block),
    ("embedded_object", parse_embedded_object),
    ("key_regex", parse_key_regex),
)


def clean_reasoning(reasoning: str) -> str:
    """Filter directive-like phrases, drop control chars, cap length."""
    for pattern in _OUTPUT_INJECTION_PATTERNS:
        if pattern.search(reasoning):
            logger.warning("Potentially manipulated judge output filtered: %s", pattern.pattern)
            reasoning = pattern.sub("[FILTERED]", reasoning)
    reasoning = _CONTROL_CHARS.sub("", reasoning).replace("\n", " ")
    if len(reasoning) > MAX_REASONING_CHARS:
        reasoning = reasoning[: MAX_REASONING_CHARS - 3] + "..."
    return reasoning.strip()


def parse_vote_text(text: str) -> tuple[bool, str, str]:
    """Run the strategy chain. Returns (approve, reasoning, strategy_name). Never raises."""
    for name, strategy in STRATEGIES:
        try:
            approve, reasoning = strategy(text)
        except JudgeOutputParseFailure as exc:
            logger.debug("Strategy %s failed: %s", name, exc)
            continue
        return approve, reasoning, name
    return False, text[:FALLBACK_REASONING_CHARS].strip(), "fail_closed"


def normalize(raw: RawJudgeOutput) -> Vote:
    """Normalize one judge response into a Vote. Unreadable output is a rejection."""
    approve, reasoning, strategy = parse_vote_text(raw.content or "")
    if strategy == "fail_closed":
        logger.warning(
            "Judge %s returned unparseable output, recording fail-closed rejection",
            raw.judge_name,
        )
    elif strategy != "strict_json":
        logger.info("Judge %s output parsed via %s", raw.judge_name, strategy)

    return Vote(
        judge_id=raw.judge_id,
        judge_name=raw.judge_name,
        provider_kind=raw.provider_kind,
        approve=approve,
        reasoning=clean_reasoning(reasoning) or "No reasoning provided",
        timestamp=datetime.now(timezone.utc),
        parse_strategy=strategy,
    )
