"""Operations exposed to the transport layer: evaluate and consensus."""

import logging

from config.config_loader import AppConfig
from council.errors import EvaluationNotFoundError
from council.ledger import InMemoryVoteLedger, LedgerWriter, SqliteVoteLedger, VoteLedger
from council.models import Consensus, EvaluationResult, Vote
from council.orchestrator import CouncilOrchestrator

logger = logging.getLogger(__name__)


def build_ledger(config: AppConfig) -> VoteLedger:
    if config.ledger.backend == "sqlite" and config.ledger.path is not None:
        ledger = SqliteVoteLedger(config.ledger.path)
        ledger.init_schema()
        return ledger
    return InMemoryVoteLedger()


class CouncilService:
    """Evaluation entry point: runs a round, then records votes best-effort."""

    def __init__(self, orchestrator: CouncilOrchestrator, ledger: VoteLedger) -> None:
        self._orchestrator = orchestrator
        self._ledger = ledger
        self._writer = LedgerWriter(ledger)

    @classmethod
    def from_config(cls, config: AppConfig) -> "CouncilService":
        return cls(CouncilOrchestrator.from_config(config), build_ledger(config))

    @property
    def orchestrator(self) -> CouncilOrchestrator:
        return self._orchestrator

    @property
    def writer(self) -> LedgerWriter:
        return self._writer

    async def evaluate(
        self,
        project_id: str,
        submission_url: str,
        submission_notes: str = "",
    ) -> EvaluationResult:
        """Evaluate a submission and queue its votes for the ledger.

        The returned result does not depend on the ledger write succeeding.
        """
        result = await self._orchestrator.evaluate_submission(project_id, submission_url, submission_notes)
        if result.votes:
            self._writer.submit(project_id, result.votes)
        return result

    def votes(self, project_id: str) -> list[Vote]:
        return self._ledger.get_votes(project_id)

    def consensus(self, project_id: str) -> Consensus:
        """Recompute consensus from the votes currently stored for a project.

        Raises:
            EvaluationNotFoundError: When no votes are stored for the project.
            PersistenceError: When the ledger cannot be read.
        """
        votes = self._ledger.get_votes(project_id)
        if not votes:
            raise EvaluationNotFoundError(project_id)
        return self._orchestrator.compute_consensus(votes)

    async def flush(self) -> None:
        """Wait for queued ledger writes, then stop the writer."""
        await self._writer.close()
