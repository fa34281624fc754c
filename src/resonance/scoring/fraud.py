"""Heuristic fraud pre-filter for a batch of submission metrics.

This is a cheap, explainable screen for malformed or spam-like data before
it reaches the payout allocator -- not a full anti-fraud system.  Every
check runs and each failure contributes a reason, so operators see the full
picture in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from resonance.domain.models import Submission

logger = structlog.get_logger()

# Likes per comment above which engagement looks bot-driven
MAX_LIKES_PER_COMMENT = Decimal("10")


@dataclass(frozen=True)
class ProofMetrics:
    """Metrics for one post as seen by the fraud gate.

    Fields are plain ints so that data from any upstream source, including
    negative or missing values, can be screened.

    Attributes:
        post_id: Platform post identifier.
        likes: Like count.
        comments: Comment count.
        shares: Share count.
        views: View count.
        timestamp: Post time as Unix epoch seconds.
    """

    post_id: str
    likes: int
    comments: int
    shares: int
    views: int
    timestamp: float

    @classmethod
    def from_submission(cls, submission: Submission) -> ProofMetrics:
        """Build proof metrics from a stored submission."""
        m = submission.metrics
        return cls(
            post_id=submission.post_id,
            likes=m.likes,
            comments=m.comments,
            shares=m.shares,
            views=m.views,
            timestamp=submission.timestamp.timestamp(),
        )


@dataclass(frozen=True)
class FraudCheckResult:
    """Outcome of a fraud gate run.

    Attributes:
        passed: True when no check failed.
        reasons: Human-readable explanation of each failure.
    """

    passed: bool
    reasons: list[str] = field(default_factory=list)


class FraudGate:
    """Batch-level heuristic checks, each independently disqualifying.

    - No two entries share a post id.
    - Likes-to-comments ratio must not exceed ``max_likes_per_comment`` when
      comments are nonzero.
    - Every timestamp must be strictly positive.
    - No metric may be negative.
    """

    def __init__(self, max_likes_per_comment: Decimal = MAX_LIKES_PER_COMMENT) -> None:
        self.max_likes_per_comment = max_likes_per_comment

    def check(self, batch: Iterable[ProofMetrics]) -> FraudCheckResult:
        """Run every check over *batch*.

        Args:
            batch: Metrics for the posts to screen.

        Returns:
            A ``FraudCheckResult`` listing every failure reason.
        """
        proofs = list(batch)
        reasons: list[str] = []

        seen: set[str] = set()
        for proof in proofs:
            if proof.post_id in seen:
                reasons.append(f"duplicate post id {proof.post_id}")
            seen.add(proof.post_id)

        for proof in proofs:
            if proof.comments > 0 and (
                Decimal(proof.likes) > self.max_likes_per_comment * proof.comments
            ):
                ratio = Decimal(proof.likes) / proof.comments
                reasons.append(
                    f"suspicious likes/comments ratio {ratio:.1f} for post {proof.post_id}"
                )

        for proof in proofs:
            if not proof.timestamp or proof.timestamp <= 0:
                reasons.append(f"missing timestamp for post {proof.post_id}")

        for proof in proofs:
            if min(proof.likes, proof.comments, proof.shares, proof.views) < 0:
                reasons.append(f"negative engagement metrics for post {proof.post_id}")

        if reasons:
            logger.warning("fraud_gate_failed", checked=len(proofs), reasons=reasons)
            return FraudCheckResult(passed=False, reasons=reasons)

        logger.debug("fraud_gate_passed", checked=len(proofs))
        return FraudCheckResult(passed=True)
