"""Unit tests for council/channel.py."""

from datetime import datetime, timezone

from council.channel import InterJudgeChannel, summarize
from council.models import Vote


def _vote(judge_id: str, reasoning: str, approve: bool = True) -> Vote:
    return Vote(judge_id, judge_id.upper(), "openai", approve, reasoning, datetime.now(timezone.utc))


def test_summarize_short_text_unchanged():
    assert summarize("Clean code. Good tests.", 200) == "Clean code. Good tests."


def test_summarize_keeps_whole_sentences():
    text = "First sentence here. Second sentence is a bit longer. Third one."
    assert summarize(text, 45) == "First sentence here."


def test_summarize_truncates_single_long_sentence():
    summary = summarize("a" * 300, 50)
    assert len(summary) == 50
    assert summary.endswith("...")


def test_summarize_collapses_whitespace():
    assert summarize("spread\n\n  out   text", 200) == "spread out text"


def test_exchange_creates_directed_pairs():
    channel = InterJudgeChannel("code")
    votes = [_vote("a", "A says yes."), _vote("b", "B says no.", False), _vote("c", "C says yes.")]
    comms = channel.exchange(votes)

    assert len(comms) == 6
    pairs = {(c.sender, c.recipient) for c in comms}
    assert ("a", "b") in pairs and ("b", "a") in pairs
    assert all(c.sender != c.recipient for c in comms)
    assert all(c.content_type == "code" for c in comms)
    assert channel.communications == comms


def test_exchange_single_vote_shares_nothing():
    channel = InterJudgeChannel("video")
    assert channel.exchange([_vote("a", "Alone.")]) == []


def test_peer_summaries_exclude_self():
    channel = InterJudgeChannel("code")
    channel.exchange([_vote("a", "A finding."), _vote("b", "B finding.")])
    assert channel.peer_summaries_for("a") == ["B: B finding."]
    assert channel.peer_summaries_for("b") == ["A: A finding."]


def test_peer_summaries_before_exchange_is_empty():
    assert InterJudgeChannel("code").peer_summaries_for("a") == []
