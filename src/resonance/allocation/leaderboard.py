"""Leaderboard derivation from a campaign's eligible submissions.

Never persisted: recomputed from the submission log on every request.
"""

from __future__ import annotations

from collections.abc import Iterable

from resonance.domain.models import LeaderboardEntry, Submission


def build_leaderboard(eligible: Iterable[Submission]) -> list[LeaderboardEntry]:
    """Rank creators by aggregate resonance score.

    Args:
        eligible: Eligible submissions for one campaign.

    Returns:
        Entries sorted by total score, highest first; ties keep first-seen order.
    """
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for submission in eligible:
        addr = submission.creator_address
        totals[addr] = totals.get(addr, 0.0) + submission.resonance_score
        counts[addr] = counts.get(addr, 0) + 1

    grand_total = sum(totals.values())
    entries = [
        LeaderboardEntry(
            creator_address=addr,
            total_score=total,
            submission_count=counts[addr],
            percent=total / grand_total if grand_total > 0 else 0.0,
        )
        for addr, total in totals.items()
    ]
    return sorted(entries, key=lambda e: e.total_score, reverse=True)
