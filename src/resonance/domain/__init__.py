"""Domain types, models, and errors for the verification engine."""

from resonance.domain.errors import (
    AllocationInvariantError,
    AlreadyJoinedError,
    AlreadySettledError,
    CampaignNotFoundError,
    CampaignNotOpenError,
    DuplicateSubmissionError,
    EligibilityRejection,
    InputValidationError,
    InvalidTransitionError,
    NoEligibleCreatorsError,
    NotAParticipantError,
    SettlementError,
    StateConflictError,
    VerifierError,
)
from resonance.domain.models import (
    Campaign,
    CampaignCriteria,
    EngagementMetrics,
    LeaderboardEntry,
    Participant,
    PayoutReceipt,
    PayoutSplit,
    Submission,
)
from resonance.domain.types import (
    OPEN_STATUSES,
    CampaignKind,
    CampaignStatus,
    SubmissionFlag,
)

__all__ = [
    "OPEN_STATUSES",
    "AllocationInvariantError",
    "AlreadyJoinedError",
    "AlreadySettledError",
    "Campaign",
    "CampaignCriteria",
    "CampaignKind",
    "CampaignNotFoundError",
    "CampaignNotOpenError",
    "CampaignStatus",
    "DuplicateSubmissionError",
    "EligibilityRejection",
    "EngagementMetrics",
    "InputValidationError",
    "InvalidTransitionError",
    "LeaderboardEntry",
    "NoEligibleCreatorsError",
    "NotAParticipantError",
    "Participant",
    "PayoutReceipt",
    "PayoutSplit",
    "SettlementError",
    "StateConflictError",
    "Submission",
    "SubmissionFlag",
    "VerifierError",
]
