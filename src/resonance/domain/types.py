"""Domain enumerations for campaigns, submissions, and flags."""

from enum import StrEnum


class CampaignKind(StrEnum):
    """How creators enter a campaign."""

    OPEN = "open"
    CURATED = "curated"


class CampaignStatus(StrEnum):
    """States in the campaign lifecycle."""

    PENDING = "pending"
    VERIFYING = "verifying"
    PAID = "paid"
    REFUNDED = "refunded"


class SubmissionFlag(StrEnum):
    """Flags that keep a stored submission out of payout math."""

    OUTSIDE_WINDOW = "outsideWindow"
    INVALID_PLATFORM = "invalidPlatform"
    LOW_ENGAGEMENT = "lowEngagement"


# Statuses in which submissions are still accepted
OPEN_STATUSES: frozenset[CampaignStatus] = frozenset(
    {CampaignStatus.PENDING, CampaignStatus.VERIFYING}
)
