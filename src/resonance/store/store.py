"""Campaign store: single source of truth for campaign state.

All mutations for a given campaign id run under that campaign's lock, so a
burst of submissions and a concurrent verification cannot interleave, and two
verifications cannot both mark a campaign paid.  Different campaigns proceed
in parallel.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime

import structlog

from resonance.domain.errors import (
    AlreadyJoinedError,
    AlreadySettledError,
    CampaignNotFoundError,
    DuplicateSubmissionError,
    InputValidationError,
    InvalidTransitionError,
)
from resonance.domain.models import (
    Campaign,
    Participant,
    PayoutReceipt,
    Submission,
    utc_now,
)
from resonance.domain.types import CampaignStatus
from resonance.state_machine.transitions import is_terminal, validate_transition
from resonance.store.repository import CampaignRepository

logger = structlog.get_logger()


class CampaignStore:
    """Own campaign, participant, submission, and payout-receipt records.

    Args:
        repository: Storage backend (``InMemoryRepository`` or
            ``SqliteRepository``).
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        repository: CampaignRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._clock = clock
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self, campaign_id: str) -> Iterator[None]:
        """Hold the per-campaign lock for a read-check-write sequence.

        Re-entrant, so store methods called inside the block re-acquire it
        without deadlocking.
        """
        with self._locks_guard:
            lock = self._locks.setdefault(campaign_id, threading.RLock())
        with lock:
            yield

    def _forget_lock(self, campaign_id: str) -> None:
        # Terminal campaigns reject every write before mutating state
        with self._locks_guard:
            self._locks.pop(campaign_id, None)

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    def create_campaign(self, campaign: Campaign) -> Campaign:
        """Insert a new campaign in ``pending`` status.

        Raises:
            InputValidationError: If the id is taken or the status is not pending.
        """
        if campaign.status != CampaignStatus.PENDING:
            raise InputValidationError("New campaigns must start in 'pending' status")
        with self.locked(campaign.campaign_id):
            if self._repo.get_campaign(campaign.campaign_id) is not None:
                raise InputValidationError(f"Campaign '{campaign.campaign_id}' already exists")
            self._repo.insert_campaign(campaign)
        logger.info(
            "campaign_created",
            campaign_id=campaign.campaign_id,
            kind=campaign.kind,
            budget=str(campaign.budget),
        )
        return campaign

    def get_campaign(self, campaign_id: str) -> Campaign:
        """Return the campaign or raise ``CampaignNotFoundError``."""
        campaign = self._repo.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    def list_campaigns(self, status: CampaignStatus | None = None) -> list[Campaign]:
        """List campaigns, optionally filtered by status."""
        campaigns = self._repo.list_campaigns()
        if status is None:
            return campaigns
        return [c for c in campaigns if c.status == status]

    def update_status(self, campaign_id: str, new_status: CampaignStatus) -> Campaign:
        """Move a campaign one step forward in its lifecycle.

        Raises:
            CampaignNotFoundError: If the campaign does not exist.
            AlreadySettledError: If the campaign is already paid or refunded.
            InvalidTransitionError: For backward or skip transitions.
        """
        with self.locked(campaign_id):
            campaign = self.get_campaign(campaign_id)
            if is_terminal(campaign.status):
                raise AlreadySettledError(campaign_id, campaign.status)
            validate_transition(campaign.status, new_status)
            updated = campaign.model_copy(
                update={"status": new_status, "updated_at": self._clock()}
            )
            self._repo.update_campaign(updated)
        if is_terminal(new_status):
            self._forget_lock(campaign_id)
        logger.info(
            "campaign_status_changed",
            campaign_id=campaign_id,
            from_status=campaign.status,
            to_status=new_status,
        )
        return updated

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def add_participant(self, participant: Participant) -> Participant:
        """Record a creator's membership in a campaign.

        Raises:
            CampaignNotFoundError: If the campaign does not exist.
            AlreadyJoinedError: If the creator already joined.
        """
        with self.locked(participant.campaign_id):
            self.get_campaign(participant.campaign_id)
            if self.is_participant(participant.campaign_id, participant.creator_address):
                raise AlreadyJoinedError(participant.campaign_id, participant.creator_address)
            self._repo.insert_participant(participant)
        logger.info(
            "participant_added",
            campaign_id=participant.campaign_id,
            creator_address=participant.creator_address,
        )
        return participant

    def is_participant(self, campaign_id: str, creator_address: str) -> bool:
        """Return True if the creator has joined the campaign."""
        return self._repo.get_participant(campaign_id, creator_address) is not None

    def get_participants(self, campaign_id: str) -> list[Participant]:
        """Return every participant of a campaign."""
        return self._repo.list_participants(campaign_id)

    def set_participant_eligibility(
        self, campaign_id: str, creator_address: str, is_eligible: bool
    ) -> Participant:
        """Update the only mutable participant field.

        Raises:
            InputValidationError: If the creator is not a participant.
        """
        with self.locked(campaign_id):
            participant = self._repo.get_participant(campaign_id, creator_address)
            if participant is None:
                raise InputValidationError(
                    f"Creator '{creator_address}' is not a participant of '{campaign_id}'"
                )
            updated = participant.model_copy(update={"is_eligible": is_eligible})
            self._repo.update_participant(updated)
        logger.info(
            "participant_eligibility_changed",
            campaign_id=campaign_id,
            creator_address=creator_address,
            is_eligible=is_eligible,
        )
        return updated

    def campaigns_for_creator(self, creator_address: str) -> list[Campaign]:
        """Return every campaign the creator participates in."""
        campaigns = []
        for campaign_id in self._repo.list_campaign_ids_for_creator(creator_address):
            campaign = self._repo.get_campaign(campaign_id)
            if campaign is not None:
                campaigns.append(campaign)
        return campaigns

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def has_submission(self, campaign_id: str, unique_hash: str) -> bool:
        """Return True if the uniqueness hash is already in the campaign log."""
        return self._repo.has_submission_hash(campaign_id, unique_hash)

    def add_submission(self, submission: Submission) -> Submission:
        """Append a submission to the campaign log.

        Raises:
            CampaignNotFoundError: If the campaign does not exist.
            DuplicateSubmissionError: If the uniqueness hash is already stored.
        """
        with self.locked(submission.campaign_id):
            self.get_campaign(submission.campaign_id)
            if self.has_submission(submission.campaign_id, submission.unique_hash):
                raise DuplicateSubmissionError(submission.campaign_id, submission.unique_hash)
            self._repo.insert_submission(submission)
        return submission

    def get_submissions(self, campaign_id: str) -> list[Submission]:
        """Return the full submission log in insertion order, flagged entries included."""
        return self._repo.list_submissions(campaign_id)

    def get_eligible_submissions(self, campaign_id: str) -> list[Submission]:
        """Return the submissions that count toward payout.

        A submission is eligible when it carries no flag, its timestamp lies
        in ``[window_start, deadline]`` (both inclusive), it meets the
        campaign's minimum resonance score, and its creator has not been
        marked ineligible.  When ``max_posts_per_creator`` is set, only each
        creator's first N such submissions (in log order) count.

        Raises:
            CampaignNotFoundError: If the campaign does not exist.
        """
        campaign = self.get_campaign(campaign_id)
        criteria = campaign.criteria
        ineligible = {
            p.creator_address for p in self._repo.list_participants(campaign_id)
            if not p.is_eligible
        }

        eligible: list[Submission] = []
        per_creator: dict[str, int] = {}
        for submission in self._repo.list_submissions(campaign_id):
            if submission.is_flagged:
                continue
            if not campaign.window_start <= submission.timestamp <= campaign.deadline:
                continue
            if (
                criteria.min_resonance_score is not None
                and submission.resonance_score < criteria.min_resonance_score
            ):
                continue
            if submission.creator_address in ineligible:
                continue
            count = per_creator.get(submission.creator_address, 0)
            cap = criteria.max_posts_per_creator
            if cap is not None and count >= cap:
                continue
            per_creator[submission.creator_address] = count + 1
            eligible.append(submission)
        return eligible

    # ------------------------------------------------------------------
    # Payout receipts
    # ------------------------------------------------------------------

    def save_payout_receipt(self, receipt: PayoutReceipt) -> Campaign:
        """Persist the receipt and transition the campaign to ``paid`` atomically.

        Either both writes happen or neither does.

        Raises:
            CampaignNotFoundError: If the campaign does not exist.
            AlreadySettledError: If another caller already settled the campaign.
            InvalidTransitionError: If the campaign is not in ``verifying``.
        """
        with self.locked(receipt.campaign_id):
            campaign = self.get_campaign(receipt.campaign_id)
            if is_terminal(campaign.status):
                raise AlreadySettledError(campaign.campaign_id, campaign.status)
            if campaign.status != CampaignStatus.VERIFYING:
                raise InvalidTransitionError(campaign.status, CampaignStatus.PAID)
            paid = campaign.model_copy(
                update={"status": CampaignStatus.PAID, "updated_at": self._clock()}
            )
            self._repo.settle(paid, receipt)
        self._forget_lock(receipt.campaign_id)
        logger.info(
            "payout_receipt_saved",
            campaign_id=receipt.campaign_id,
            tx_ref=receipt.tx_ref,
            creators=len(receipt.splits),
        )
        return paid

    def get_payout_receipt(self, campaign_id: str) -> PayoutReceipt | None:
        """Return the campaign's receipt, or None if it has not been paid."""
        return self._repo.get_receipt(campaign_id)
