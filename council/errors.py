"""Error taxonomy for council evaluation rounds.

Only SecurityRejection ends a round. Every other error is recovered where it
happens: a failing judge is dropped from the vote set, unparseable output
becomes a fail-closed rejection, and ledger failures are logged on their own
channel.
"""

from typing import Any


class CouncilError(Exception):
    """Base exception for all council errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for transport responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class SecurityRejection(CouncilError):
    """Submission was disqualified by the security screen before any judge ran.

    Terminal: re-running the same submission yields the same rejection.
    """

    def __init__(self, project_id: str, analysis: Any) -> None:
        self.project_id = project_id
        self.analysis = analysis
        reasons = list(getattr(analysis, "reasons", []))
        super().__init__(
            f"Security validation failed for project {project_id}: {', '.join(reasons)}",
            details={
                "project_id": project_id,
                "risk_level": getattr(analysis, "risk_level", "high"),
                "reasons": reasons,
            },
        )


class JudgeTransportError(CouncilError):
    """Raised when a provider call fails (timeout, network, auth, empty body)."""

    def __init__(self, provider_name: str, message: str, *, timed_out: bool = False) -> None:
        self.provider_name = provider_name
        self.timed_out = timed_out
        super().__init__(f"[{provider_name}] {message}", details={"provider": provider_name})


class JudgeOutputParseFailure(CouncilError):
    """A single parse strategy could not read a judge response."""


class ConfigurationError(CouncilError):
    """Required configuration (usually a provider credential) is missing or invalid."""


class PersistenceError(CouncilError):
    """A vote ledger write or read failed."""


class EvaluationNotFoundError(CouncilError):
    """No stored votes exist for the requested project."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(
            f"No evaluation found for project {project_id}",
            details={"project_id": project_id},
        )
