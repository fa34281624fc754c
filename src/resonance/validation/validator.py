"""Campaign-specific eligibility enforcement for creator submissions.

Hard rejections (closed campaign, non-participant on a curated campaign,
duplicate post) raise and store nothing.  Soft failures (outside the window,
disallowed platform, low engagement) are recorded as flags: the submission
is stored for the audit trail but kept out of payout math.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from resonance.domain.errors import (
    CampaignNotOpenError,
    DuplicateSubmissionError,
    EligibilityRejection,
    NotAParticipantError,
)
from resonance.domain.models import (
    Campaign,
    EngagementMetrics,
    Participant,
    Submission,
    as_utc,
    utc_now,
)
from resonance.domain.types import OPEN_STATUSES, CampaignKind, CampaignStatus, SubmissionFlag
from resonance.observability.metrics import SUBMISSIONS_TOTAL
from resonance.scoring.engine import (
    DEFAULT_VIEWS,
    RESONANCE_MULTIPLIER,
    compute_resonance,
    engagement_rate,
)
from resonance.scoring.fraud import FraudGate, ProofMetrics

if TYPE_CHECKING:
    from collections.abc import Callable

    from resonance.audit.logger import AuditLogger
    from resonance.store.store import CampaignStore

logger = structlog.get_logger()


def submission_hash(platform: str, post_id: str, campaign_id: str) -> str:
    """Return the deterministic uniqueness hash for a post within a campaign.

    Args:
        platform: Platform name (case-insensitive).
        post_id: Platform post identifier.
        campaign_id: Campaign the post is submitted to.

    Returns:
        A SHA-256 hex digest of the JSON array
        ``[platform, post_id, campaign_id]``, so ids containing any
        separator character never collide.
    """
    key = json.dumps([platform.strip().lower(), post_id.strip(), campaign_id])
    return hashlib.sha256(key.encode()).hexdigest()


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of an accepted (possibly flagged) submission.

    Attributes:
        submission: The stored submission.
        fraud_warnings: Single-post fraud heuristics that fired; informational
            only, the batch gate at verification time is authoritative.
    """

    submission: Submission
    fraud_warnings: list[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return True

    @property
    def resonance_score(self) -> float:
        return self.submission.resonance_score

    @property
    def flags(self) -> tuple[SubmissionFlag, ...]:
        return self.submission.flags


class SubmissionValidator:
    """Validate, score, and record submissions against campaign rules.

    Args:
        store: The campaign store.
        fraud_gate: Gate used for the informational single-post screen.
        multiplier: Resonance score multiplier.
        default_views: View count substituted when a post reports none.
        audit_logger: Optional audit trail writer.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        store: CampaignStore,
        fraud_gate: FraudGate | None = None,
        multiplier: float = RESONANCE_MULTIPLIER,
        default_views: int = DEFAULT_VIEWS,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._fraud_gate = fraud_gate or FraudGate()
        self._multiplier = multiplier
        self._default_views = default_views
        self._audit = audit_logger
        self._clock = clock

    # ------------------------------------------------------------------
    # Joining
    # ------------------------------------------------------------------

    def join(self, campaign_id: str, creator_address: str) -> Participant:
        """Register a creator as a participant of a pending campaign.

        Raises:
            CampaignNotFoundError: If the campaign does not exist.
            CampaignNotOpenError: If the campaign is no longer pending.
            AlreadyJoinedError: If the creator already joined.
        """
        with self._store.locked(campaign_id):
            campaign = self._store.get_campaign(campaign_id)
            if campaign.status != CampaignStatus.PENDING:
                raise CampaignNotOpenError(campaign_id, campaign.status)
            participant = self._store.add_participant(
                Participant(
                    campaign_id=campaign_id,
                    creator_address=creator_address,
                    joined_at=self._clock(),
                )
            )
        if self._audit is not None:
            self._audit.log_participant_joined(campaign_id, creator_address)
        return participant

    def preview(self, metrics: EngagementMetrics) -> tuple[float, float]:
        """Return ``(resonance_score, engagement_rate)`` for *metrics* without storing anything."""
        score = compute_resonance(
            metrics, multiplier=self._multiplier, default_views=self._default_views
        )
        return score, engagement_rate(metrics, default_views=self._default_views)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def accept(
        self,
        campaign_id: str,
        creator_address: str,
        platform: str,
        url: str,
        post_id: str,
        timestamp: datetime,
        metrics: EngagementMetrics,
    ) -> SubmissionResult:
        """Validate and record a submission.

        Checks run in order and the first hard failure wins:

        1. campaign exists and is ``pending`` or ``verifying``
        2. curated campaigns require a prior join
        3. the post was not already submitted to this campaign
        4. timestamp in ``[window_start, deadline]`` else flag ``outsideWindow``
        5. platform in the allowlist (if any) else flag ``invalidPlatform``
        6. engagement rate meets the minimum (if any) else flag ``lowEngagement``
        7. the resonance score is computed regardless of flags

        Raises:
            CampaignNotFoundError: If the campaign does not exist.
            CampaignNotOpenError: If the campaign is paid or refunded.
            NotAParticipantError: If a curated campaign was not joined.
            DuplicateSubmissionError: If the post is already in the log.
        """
        platform = platform.strip().lower()
        unique_hash = submission_hash(platform, post_id, campaign_id)

        try:
            with self._store.locked(campaign_id):
                campaign = self._store.get_campaign(campaign_id)
                self._check_admission(campaign, creator_address, unique_hash)

                flags = self._collect_flags(campaign, platform, timestamp, metrics)
                score = compute_resonance(
                    metrics, multiplier=self._multiplier, default_views=self._default_views
                )
                submission = Submission(
                    campaign_id=campaign_id,
                    creator_address=creator_address,
                    platform=platform,
                    url=url,
                    post_id=post_id,
                    timestamp=timestamp,
                    metrics=metrics,
                    resonance_score=score,
                    unique_hash=unique_hash,
                    flags=flags,
                    created_at=self._clock(),
                )
                self._store.add_submission(submission)

                if campaign.kind == CampaignKind.OPEN and not self._store.is_participant(
                    campaign_id, creator_address
                ):
                    self._store.add_participant(
                        Participant(
                            campaign_id=campaign_id,
                            creator_address=creator_address,
                            joined_at=self._clock(),
                        )
                    )
        except EligibilityRejection as exc:
            SUBMISSIONS_TOTAL.labels(outcome="rejected").inc()
            logger.info(
                "submission_rejected",
                campaign_id=campaign_id,
                creator_address=creator_address,
                reason=exc.reason,
            )
            if self._audit is not None:
                self._audit.log_submission_rejected(
                    campaign_id, creator_address, post_id, exc.reason
                )
            raise

        warnings = self._fraud_gate.check([ProofMetrics.from_submission(submission)]).reasons
        SUBMISSIONS_TOTAL.labels(outcome="flagged" if flags else "accepted").inc()
        logger.info(
            "submission_recorded",
            campaign_id=campaign_id,
            creator_address=creator_address,
            post_id=post_id,
            resonance_score=score,
            flags=[str(f) for f in flags],
        )
        if self._audit is not None:
            self._audit.log_submission(submission)
        return SubmissionResult(submission=submission, fraud_warnings=warnings)

    def _check_admission(self, campaign: Campaign, creator_address: str, unique_hash: str) -> None:
        if campaign.status not in OPEN_STATUSES:
            raise CampaignNotOpenError(campaign.campaign_id, campaign.status)
        if campaign.kind == CampaignKind.CURATED and not self._store.is_participant(
            campaign.campaign_id, creator_address
        ):
            raise NotAParticipantError(campaign.campaign_id, creator_address)
        if self._store.has_submission(campaign.campaign_id, unique_hash):
            raise DuplicateSubmissionError(campaign.campaign_id, unique_hash)

    def _collect_flags(
        self,
        campaign: Campaign,
        platform: str,
        timestamp: datetime,
        metrics: EngagementMetrics,
    ) -> tuple[SubmissionFlag, ...]:
        criteria = campaign.criteria
        posted_at = as_utc(timestamp)
        flags: list[SubmissionFlag] = []

        if not campaign.window_start <= posted_at <= campaign.deadline:
            flags.append(SubmissionFlag.OUTSIDE_WINDOW)

        if criteria.platform_allowlist and platform not in criteria.platform_allowlist:
            flags.append(SubmissionFlag.INVALID_PLATFORM)

        if criteria.min_engagement_rate is not None:
            rate = engagement_rate(metrics, default_views=self._default_views)
            if rate < criteria.min_engagement_rate:
                flags.append(SubmissionFlag.LOW_ENGAGEMENT)

        return tuple(flags)
