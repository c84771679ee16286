"""Council orchestration: screen, parallel judge calls, inter-judge exchange, consensus."""

import asyncio
import logging
import time
from collections.abc import Awaitable
from fractions import Fraction

from config.config_loader import AppConfig
from council.channel import InterJudgeChannel
from council.consensus import DEFAULT_THRESHOLD, compute_consensus
from council.errors import JudgeTransportError
from council.extractor import ContentExtractor
from council.models import (
    Communication,
    Consensus,
    EvaluationResult,
    JudgePersona,
    RawJudgeOutput,
    Submission,
    SubmissionContext,
    Vote,
)
from council.normalizer import normalize
from council.personas import build_personas
from council.providers.base import JudgeAdapter
from council.providers.registry import build_adapters
from council.security import SecurityScreen, log_security_event

logger = logging.getLogger(__name__)

_RETRY_TIMEOUT_FACTOR = 1.5

JudgeResult = RawJudgeOutput | JudgeTransportError


async def _call_judge(
    adapter: JudgeAdapter,
    persona: JudgePersona,
    context: SubmissionContext,
    peer_summaries: list[str] | None,
    retry_on_timeout: bool,
) -> JudgeResult:
    """Call a single judge, retrying once on timeout with 1.5x the timeout.

    Never raises: returns JudgeTransportError on permanent failure.
    """
    try:
        return await adapter.evaluate(persona, context, peer_summaries)
    except JudgeTransportError as exc:
        if not (exc.timed_out and retry_on_timeout):
            logger.warning("Judge %s failed: %s", persona.judge_name, exc)
            return exc
        retry_timeout = adapter.timeout_sec * _RETRY_TIMEOUT_FACTOR
        logger.warning(
            "Judge %s timed out, retrying with %.0fs (1.5x)",
            persona.judge_name,
            retry_timeout,
        )
    except Exception as exc:
        logger.warning("Judge %s unexpected failure: %s", persona.judge_name, exc)
        return JudgeTransportError(adapter.name(), f"Unexpected error: {exc}")

    try:
        return await adapter.evaluate(persona, context, peer_summaries, timeout_sec=retry_timeout)
    except JudgeTransportError as retry_exc:
        logger.warning("Judge %s failed after retry: %s", persona.judge_name, retry_exc)
        return retry_exc
    except Exception as retry_exc:
        logger.warning("Judge %s unexpected failure after retry: %s", persona.judge_name, retry_exc)
        return JudgeTransportError(adapter.name(), f"Unexpected error on retry: {retry_exc}")


async def _gather_until(
    calls: dict[str, Awaitable[JudgeResult]],
    deadline: float,
) -> dict[str, JudgeResult]:
    """Run all calls concurrently and join on every one of them, or the deadline.

    Calls still pending at the deadline are cancelled and reported as
    timed-out transport errors (non-responses, not rejections).
    """
    if not calls:
        return {}

    tasks = {judge_id: asyncio.ensure_future(call) for judge_id, call in calls.items()}
    remaining = max(0.0, deadline - time.monotonic())
    _, pending = await asyncio.wait(tasks.values(), timeout=remaining)

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    results: dict[str, JudgeResult] = {}
    for judge_id, task in tasks.items():
        if task in pending:
            logger.warning("Judge %s cancelled: round budget exceeded", judge_id)
            results[judge_id] = JudgeTransportError(judge_id, "Cancelled: round budget exceeded", timed_out=True)
        else:
            results[judge_id] = task.result()
    return results


class CouncilOrchestrator:
    """Coordinates one evaluation round per call.

    Holds only static configuration; everything produced during a round lives
    in locals and the returned EvaluationResult, so concurrent rounds never
    share state.
    """

    def __init__(
        self,
        personas: list[JudgePersona],
        adapters: dict[str, JudgeAdapter],
        screen: SecurityScreen,
        *,
        threshold: Fraction = DEFAULT_THRESHOLD,
        quorum: int | None = None,
        round_budget_sec: float = 120.0,
        channel_mode: str = "share",
        summary_chars: int = 200,
        retry_on_timeout: bool = True,
        absent_judges: list[str] | None = None,
        extractor: ContentExtractor | None = None,
    ) -> None:
        self._personas = personas
        self._adapters = adapters
        self._screen = screen
        self._threshold = threshold
        self._quorum = quorum
        self._round_budget_sec = round_budget_sec
        self._channel_mode = channel_mode
        self._summary_chars = summary_chars
        self._retry_on_timeout = retry_on_timeout
        self._absent = list(absent_judges or [])
        self._extractor = extractor

    @classmethod
    def from_config(cls, config: AppConfig) -> "CouncilOrchestrator":
        personas = build_personas(config)
        adapters, absent = build_adapters(config, personas)
        return cls(
            personas,
            adapters,
            SecurityScreen(config.security),
            threshold=config.defaults.threshold,
            quorum=config.defaults.quorum,
            round_budget_sec=config.defaults.round_budget_sec,
            channel_mode=config.channel.mode,
            summary_chars=config.channel.summary_chars,
            retry_on_timeout=config.defaults.retry_on_timeout,
            absent_judges=absent,
            extractor=ContentExtractor(config.extraction) if config.extraction.enabled else None,
        )

    @property
    def personas(self) -> list[JudgePersona]:
        return list(self._personas)

    @property
    def adapters(self) -> dict[str, JudgeAdapter]:
        return dict(self._adapters)

    @property
    def absent_judges(self) -> list[str]:
        return list(self._absent)

    @property
    def seats(self) -> int:
        return len(self._personas)

    def compute_consensus(self, votes: list[Vote]) -> Consensus:
        return compute_consensus(votes, self.seats, self._threshold, self._quorum)

    def _active_personas(self) -> list[JudgePersona]:
        return [p for p in self._personas if p.judge_id in self._adapters]

    async def _run_phase(
        self,
        personas: list[JudgePersona],
        context: SubmissionContext,
        deadline: float,
        channel: InterJudgeChannel | None = None,
    ) -> dict[str, JudgeResult]:
        calls = {
            p.judge_id: _call_judge(
                self._adapters[p.judge_id],
                p,
                context,
                channel.peer_summaries_for(p.judge_id) if channel else None,
                self._retry_on_timeout,
            )
            for p in personas
        }
        return await _gather_until(calls, deadline)

    async def evaluate_submission(
        self,
        project_id: str,
        submission_url: str,
        submission_notes: str,
    ) -> EvaluationResult:
        """Run one full evaluation round.

        Returns:
            EvaluationResult. When the security screen disqualifies the
            submission the result has `aborted=True`, no votes and a rejected
            consensus; no judge is called.
        """
        start = time.monotonic()
        deadline = start + self._round_budget_sec
        submission = Submission(project_id, submission_url, submission_notes or "")

        analysis = self._screen.screen(submission)
        if self._screen.is_disqualifying(analysis):
            log_security_event("injection_attempt", project_id, analysis.reasons, submission.submission_notes)
            return EvaluationResult(
                project_id=project_id,
                submission_url=submission_url,
                votes=[],
                consensus=Consensus(
                    approved=False,
                    approval_count=0,
                    rejection_count=0,
                    approval_rate=None,
                    votes_received=0,
                    seats=self.seats,
                ),
                security_analysis=analysis,
                content_type=analysis.content_type,
                absent_judges=list(self._absent),
                aborted=True,
                duration_sec=time.monotonic() - start,
            )
        if analysis.flagged:
            log_security_event("suspicious_input", project_id, analysis.reasons, submission.submission_notes)

        extracted = ""
        if self._extractor is not None:
            extracted = await self._extractor.extract(submission_url, deadline - time.monotonic())

        context = SubmissionContext(
            project_id=project_id,
            submission_url=submission_url,
            submission_notes=analysis.sanitized_notes,
            content_type=analysis.content_type,
            extracted_content=extracted,
        )

        active = self._active_personas()
        logger.info(
            "Evaluating %s (%s) with %d/%d judges",
            project_id,
            context.content_type,
            len(active),
            self.seats,
        )

        results = await self._run_phase(active, context, deadline)
        votes: list[Vote] = []
        failed: list[str] = []
        for persona in active:
            result = results[persona.judge_id]
            if isinstance(result, RawJudgeOutput):
                votes.append(normalize(result))
            else:
                failed.append(persona.judge_id)

        communications: list[Communication] = []
        if self._channel_mode != "off" and len(votes) > 1:
            channel = InterJudgeChannel(context.content_type, self._summary_chars)
            communications = channel.exchange(votes)
            if self._channel_mode == "deliberate":
                votes = await self._deliberate(votes, context, deadline, channel)

        consensus = self.compute_consensus(votes)
        if consensus.inconclusive:
            logger.warning(
                "Only %d/%d judges voted on %s; below quorum",
                consensus.votes_received,
                self.seats,
                project_id,
            )

        duration = time.monotonic() - start
        logger.info(
            "Evaluation of %s complete in %.2fs: %s (%d approve / %d reject)",
            project_id,
            duration,
            "APPROVED" if consensus.approved else "REJECTED",
            consensus.approval_count,
            consensus.rejection_count,
        )

        return EvaluationResult(
            project_id=project_id,
            submission_url=submission_url,
            votes=votes,
            consensus=consensus,
            security_analysis=analysis,
            content_type=context.content_type,
            communications=communications,
            failed_judges=failed,
            absent_judges=list(self._absent),
            duration_sec=duration,
        )

    async def _deliberate(
        self,
        first_pass: list[Vote],
        context: SubmissionContext,
        deadline: float,
        channel: InterJudgeChannel,
    ) -> list[Vote]:
        """Second pass with peer summaries.

        Only judges that voted in the first pass are asked again. A successful
        second answer replaces that judge's vote; otherwise the first-pass
        vote stands, so the set of voters never changes.
        """
        if time.monotonic() >= deadline:
            logger.warning("No round budget left for deliberation on %s", context.project_id)
            return first_pass

        voters = {v.judge_id for v in first_pass}
        personas = [p for p in self._active_personas() if p.judge_id in voters]
        results = await self._run_phase(personas, context, deadline, channel)

        final: list[Vote] = []
        for vote in first_pass:
            result = results.get(vote.judge_id)
            if isinstance(result, RawJudgeOutput):
                revised = normalize(result)
                if revised.approve != vote.approve:
                    logger.info("Judge %s changed vote after deliberation", vote.judge_name)
                final.append(revised)
            else:
                final.append(vote)
        return final
