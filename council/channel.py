"""Inter-judge channel: one round of condensed finding exchange.

The channel is context enrichment only. It never adds or removes voters;
consensus is computed from final votes alone.
"""

import logging
import re
from datetime import datetime, timezone

from council.models import Communication, Vote

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def summarize(reasoning: str, max_chars: int = 200) -> str:
    """Condense reasoning to whole leading sentences within max_chars."""
    text = " ".join(reasoning.split())
    if len(text) <= max_chars:
        return text

    summary = ""
    for sentence in _SENTENCE_SPLIT.split(text):
        candidate = f"{summary} {sentence}".strip()
        if len(candidate) > max_chars:
            break
        summary = candidate
    if not summary:
        summary = text[: max_chars - 3].rstrip() + "..."
    return summary


class InterJudgeChannel:
    """Directed share log for a single round. Create one per round."""

    def __init__(self, content_type: str, summary_chars: int = 200) -> None:
        self._content_type = content_type
        self._summary_chars = summary_chars
        self._summaries: dict[str, tuple[str, str]] = {}   # judge_id -> (judge_name, summary)
        self._log: list[Communication] = []

    @property
    def communications(self) -> list[Communication]:
        return list(self._log)

    def exchange(self, votes: list[Vote]) -> list[Communication]:
        """Share each judge's condensed finding with every other responding judge.

        Must be called only after all first-phase calls have finished so that
        no judge sees a partial, order-dependent subset of its peers.
        """
        now = datetime.now(timezone.utc)
        new: list[Communication] = []
        for vote in votes:
            summary = summarize(vote.reasoning, self._summary_chars)
            self._summaries[vote.judge_id] = (vote.judge_name, summary)
            for peer in votes:
                if peer.judge_id == vote.judge_id:
                    continue
                new.append(
                    Communication(
                        sender=vote.judge_id,
                        recipient=peer.judge_id,
                        content_summary=summary,
                        content_type=self._content_type,
                        timestamp=now,
                    )
                )
        self._log.extend(new)
        logger.info("Inter-judge exchange: %d directed shares among %d judges", len(new), len(votes))
        return new

    def peer_summaries_for(self, judge_id: str) -> list[str]:
        """Summaries from every judge except `judge_id`, labelled by judge name."""
        return [
            f"{name}: {summary}"
            for other_id, (name, summary) in self._summaries.items()
            if other_id != judge_id
        ]
