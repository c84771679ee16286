"""Security screen: prompt-injection detection and content classification.

Runs once per submission before any judge is called. A finding at or above
the configured abort level disqualifies the submission and the round is
aborted; no sanitized copy is forwarded in that case. Below the abort level
the notes are forwarded with baseline hygiene only (markup brackets and NUL
bytes removed, length capped).
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import unquote_plus, urlsplit

from config.config_loader import SecurityConfig
from council.models import SecurityAnalysis, Submission

logger = logging.getLogger(__name__)

_SEVERITY_ORDER = {"low": 0, "medium": 1, "high": 2}


@dataclass(frozen=True)
class _InjectionPattern:
    label: str
    regex: re.Pattern[str]
    severity: str


def _p(label: str, pattern: str, severity: str) -> _InjectionPattern:
    return _InjectionPattern(label, re.compile(pattern, re.IGNORECASE), severity)


_INJECTION_PATTERNS: tuple[_InjectionPattern, ...] = (
    _p("instruction override", r"ignore\s+(?:all\s+)?(?:previous|all|prior|above)\s+instructions?", "high"),
    _p("role reassignment", r"you\s+are\s+now", "high"),
    _p("system role marker", r"system\s*:", "medium"),
    _p("assistant role marker", r"assistant\s*:", "medium"),
    _p("end-of-input marker", r"---\s*end\s+(?:of\s+)?(?:user\s+)?(?:input|instructions?)", "high"),
    _p("ChatML token", r"<\|im_(?:start|end)\|>", "high"),
    _p("Llama instruction token", r"\[/?INST\]", "high"),
    _p("memory wipe directive", r"forget\s+(?:everything|all|previous)", "medium"),
    _p("new directive", r"new\s+(?:rule|instruction|command)s?", "medium"),
    _p("override directive", r"override\s+(?:previous|all|prior)", "high"),
    _p("disregard directive", r"disregard\s+(?:previous|all|prior)", "high"),
    _p("system tag", r"</?system>", "high"),
    _p("system role assignment", r"role\s*:\s*system", "high"),
)

_BASE64_RUN = re.compile(r"(?:[A-Za-z0-9+/]{4}){10,}(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?")
_SPECIAL_CHARS = re.compile(r"[^a-zA-Z0-9\s.,!?-]")

_CODE_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")
_VIDEO_HOSTS = ("youtube.com", "youtu.be", "vimeo.com", "loom.com")
_SOCIAL_HOSTS = ("twitter.com", "x.com")
_VIDEO_EXTENSIONS = (".mp4", ".mov", ".webm", ".mkv")
_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


def _host_matches(host: str, domains: tuple[str, ...] | list[str]) -> bool:
    return any(host == d or host.endswith(f".{d}") for d in domains)


def classify_content(url: str) -> str:
    """Classify a submission URL as code, video, social, image or generic."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return "generic"
    host = (parts.hostname or "").lower()
    path = parts.path.lower()

    if _host_matches(host, _CODE_HOSTS):
        return "code"
    if _host_matches(host, _VIDEO_HOSTS) or path.endswith(_VIDEO_EXTENSIONS):
        return "video"
    if _host_matches(host, _SOCIAL_HOSTS):
        return "social"
    if path.endswith(_IMAGE_EXTENSIONS):
        return "image"
    return "generic"


def sanitize_notes(notes: str, max_length: int) -> str:
    """Baseline hygiene applied to every forwarded note: no markup brackets, no NULs, capped."""
    cleaned = notes.replace("<", "").replace(">", "").replace("\x00", "")
    return cleaned[:max_length].strip()


def log_security_event(event_type: str, project_id: str, reasons: list[str], text: str = "") -> None:
    """Log a security event. Attacker-controlled text is truncated to 200 chars."""
    logger.warning(
        "[SECURITY][%s] project=%s reasons=%s input=%r",
        event_type,
        project_id,
        reasons,
        text[:200],
    )


class SecurityScreen:
    """Inspects submission URL and notes for adversarial content."""

    def __init__(self, config: SecurityConfig) -> None:
        self._config = config

    def screen(self, submission: Submission) -> SecurityAnalysis:
        reasons: list[str] = []
        risk = "low"

        def record(reason: str, severity: str) -> None:
            nonlocal risk
            reasons.append(reason)
            if _SEVERITY_ORDER[severity] > _SEVERITY_ORDER[risk]:
                risk = severity

        notes = submission.submission_notes or ""
        url = submission.submission_url or ""
        decoded_url = unquote_plus(url)

        for pattern in _INJECTION_PATTERNS:
            if pattern.regex.search(notes):
                record(f"Potential prompt injection in notes: {pattern.label}", pattern.severity)
            if pattern.regex.search(decoded_url):
                record(f"Potential prompt injection in URL: {pattern.label}", pattern.severity)

        self._check_url(url, record)

        max_len = self._config.max_notes_length
        if len(notes) > max_len:
            record(f"Submission notes exceed safe length ({max_len} chars)", "medium")

        if notes:
            ratio = len(_SPECIAL_CHARS.findall(notes)) / len(notes)
            if ratio > self._config.max_special_char_ratio:
                record("Unusually high ratio of special characters", "medium")

        if _BASE64_RUN.search(notes):
            record("Potential base64-encoded content detected", "medium")

        return SecurityAnalysis(
            flagged=bool(reasons),
            reasons=reasons,
            content_type=classify_content(url),
            risk_level=risk,
            sanitized_notes=sanitize_notes(notes, max_len),
        )

    def is_disqualifying(self, analysis: SecurityAnalysis) -> bool:
        """True when the analysis reaches the configured abort level."""
        if not analysis.flagged:
            return False
        return _SEVERITY_ORDER[analysis.risk_level] >= _SEVERITY_ORDER[self._config.abort_risk_level]

    def _check_url(self, url: str, record: Callable[[str, str], None]) -> None:
        try:
            parts = urlsplit(url.strip())
        except ValueError:
            record("Invalid URL format", "high")
            return
        if parts.scheme not in ("http", "https") or not parts.hostname:
            record("Invalid URL format", "high")
            return

        domains = self._config.allowed_domains
        host = parts.hostname.lower()
        if domains and not _host_matches(host, domains):
            record(f"URL from untrusted domain: {host}", "medium")
