"""Dataclasses for the council evaluation pipeline."""

from dataclasses import dataclass, field
from datetime import datetime

from council.errors import SecurityRejection


@dataclass(frozen=True)
class Submission:
    project_id: str
    submission_url: str
    submission_notes: str


@dataclass(frozen=True)
class JudgePersona:
    judge_id: str              # "code-validator", "media-analyst", ...
    judge_name: str            # "CODE-VALIDATOR"
    provider_kind: str         # "openai", "anthropic", "gemini", "grok"
    archetype: str             # "technical", "impact", "creative"
    system_prompt: str
    native_content_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubmissionContext:
    """Everything one round forwards to the judges. Request-scoped."""

    project_id: str
    submission_url: str
    submission_notes: str      # screened notes, never the raw input
    content_type: str          # "code", "video", "social", "image", "generic"
    extracted_content: str = ""  # fetched from the URL, untrusted


@dataclass
class RawJudgeOutput:
    judge_id: str
    judge_name: str
    provider_kind: str
    model: str
    content: str
    latency_sec: float
    token_count: int | None = None


@dataclass
class Vote:
    judge_id: str
    judge_name: str
    provider_kind: str
    approve: bool
    reasoning: str
    timestamp: datetime
    parse_strategy: str = "strict_json"


@dataclass
class Communication:
    sender: str                # judge_id
    recipient: str             # judge_id or "all"
    content_summary: str
    content_type: str
    timestamp: datetime


@dataclass
class SecurityAnalysis:
    flagged: bool
    reasons: list[str]
    content_type: str
    risk_level: str = "low"    # "low", "medium", "high"
    sanitized_notes: str = ""


@dataclass
class Consensus:
    approved: bool
    approval_count: int
    rejection_count: int
    approval_rate: float | None    # None when no votes were received
    inconclusive: bool = False
    votes_received: int = 0
    seats: int = 0


@dataclass
class EvaluationResult:
    project_id: str
    submission_url: str
    votes: list[Vote]
    consensus: Consensus
    security_analysis: SecurityAnalysis
    content_type: str
    communications: list[Communication] = field(default_factory=list)
    failed_judges: list[str] = field(default_factory=list)
    absent_judges: list[str] = field(default_factory=list)
    aborted: bool = False
    duration_sec: float = 0.0

    def raise_for_security(self) -> None:
        """Raise SecurityRejection if the round was aborted by the screen."""
        if self.aborted:
            raise SecurityRejection(self.project_id, self.security_analysis)
