"""Reduce a vote set to a single approve/reject decision."""

from fractions import Fraction

from council.models import Consensus, Vote

DEFAULT_THRESHOLD = Fraction(2, 3)


def default_quorum(seats: int) -> int:
    """Strict majority of seats: 1 of 1, 2 of 2, 2 of 3, 3 of 4, 3 of 5."""
    return seats // 2 + 1 if seats > 0 else 1


def compute_consensus(
    votes: list[Vote],
    seats: int,
    threshold: Fraction = DEFAULT_THRESHOLD,
    quorum: int | None = None,
) -> Consensus:
    """Compute consensus over the votes actually received.

    Judges that failed to respond are not in `votes` and do not count toward
    the denominator. The comparison is exact (`Fraction`), so with the default
    2/3 threshold 2-of-3 passes while 1-of-2 and 1-of-3 do not.

    A round with fewer than `quorum` votes is flagged inconclusive but is still
    decided by the votes it has. With zero votes the approval rate is undefined
    (None) and the round is not approved.
    """
    received = len(votes)
    approvals = sum(1 for v in votes if v.approve)
    rejections = received - approvals
    required = quorum if quorum is not None else default_quorum(seats)

    if received == 0:
        return Consensus(
            approved=False,
            approval_count=0,
            rejection_count=0,
            approval_rate=None,
            inconclusive=True,
            votes_received=0,
            seats=seats,
        )

    rate = Fraction(approvals, received)
    inconclusive = received < required
    return Consensus(
        approved=rate >= threshold,
        approval_count=approvals,
        rejection_count=rejections,
        approval_rate=float(rate),
        inconclusive=inconclusive,
        votes_received=received,
        seats=seats,
    )
