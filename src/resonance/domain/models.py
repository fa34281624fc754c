"""Pydantic v2 models for campaigns, participants, submissions, and payouts.

Monetary values use Decimal -- float inputs are rejected.  Submissions and
receipts are frozen: the submission log is append-only and a receipt is
written exactly once per campaign.
"""

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from resonance.domain.types import CampaignKind, CampaignStatus, SubmissionFlag

# Precision of the settlement layer's numeric type (8 decimal places)
FIXED_POINT = Decimal("0.00000001")

# Largest value the settlement layer's unsigned 64-bit fixed-point type can hold
MAX_BUDGET = Decimal("184467440737.09551615")


def as_utc(v: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if v.tzinfo is None:
        return v.replace(tzinfo=UTC)
    return v.astimezone(UTC)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


class CampaignCriteria(BaseModel):
    """Eligibility rules a brand attaches to a campaign.

    Every rule is optional; an unset rule admits everything.
    """

    model_config = ConfigDict(frozen=True)

    min_engagement_rate: float | None = None
    platform_allowlist: tuple[str, ...] | None = None
    max_posts_per_creator: int | None = None
    min_resonance_score: float | None = None

    @field_validator("min_engagement_rate", "min_resonance_score")
    @classmethod
    def thresholds_must_not_be_negative(cls, v: float | None) -> float | None:
        """Ensure thresholds are non-negative."""
        if v is not None and v < 0:
            raise ValueError("threshold must not be negative")
        return v

    @field_validator("platform_allowlist")
    @classmethod
    def normalize_platforms(cls, v: tuple[str, ...] | None) -> tuple[str, ...] | None:
        """Lower-case platform names so membership checks are case-insensitive."""
        if v is None:
            return None
        return tuple(p.strip().lower() for p in v if p.strip())

    @field_validator("max_posts_per_creator")
    @classmethod
    def max_posts_must_be_positive(cls, v: int | None) -> int | None:
        """Ensure the per-creator cap is at least 1."""
        if v is not None and v < 1:
            raise ValueError("max_posts_per_creator must be at least 1")
        return v


class Campaign(BaseModel):
    """A brand-funded campaign.

    Status only moves forward (see ``resonance.state_machine``); updates
    produce a new instance via ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    kind: CampaignKind
    budget: Decimal
    deadline: datetime
    window_start: datetime
    criteria: CampaignCriteria = Field(default_factory=CampaignCriteria)
    status: CampaignStatus = CampaignStatus.PENDING
    title: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("budget", mode="before")
    @classmethod
    def reject_float_budget(cls, v: object) -> object:
        """Reject float inputs for budget to prevent precision errors."""
        if isinstance(v, float):
            raise ValueError("Use Decimal or string, not float, for budget")
        return v

    @field_validator("budget")
    @classmethod
    def budget_must_fit_settlement(cls, v: Decimal) -> Decimal:
        """Ensure the budget is positive and representable in 8-decimal fixed point."""
        if v <= 0:
            raise ValueError("budget must be positive")
        if v > MAX_BUDGET:
            raise ValueError(f"budget must not exceed {MAX_BUDGET}")
        if v != v.quantize(FIXED_POINT):
            raise ValueError("budget must have at most 8 decimal places")
        return v

    @field_validator("campaign_id")
    @classmethod
    def campaign_id_must_not_be_empty(cls, v: str) -> str:
        """Ensure campaign_id is not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("campaign_id must not be empty")
        return v

    @field_validator("deadline", "window_start", "created_at", "updated_at")
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        """Store every instant as an aware UTC datetime."""
        return as_utc(v)

    @model_validator(mode="after")
    def window_must_start_before_deadline(self) -> "Campaign":
        """Ensure the eligibility window is not inverted."""
        if self.window_start > self.deadline:
            raise ValueError(
                f"window_start ({self.window_start}) must not be after deadline ({self.deadline})"
            )
        return self


class Participant(BaseModel):
    """A creator's membership in a campaign."""

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    creator_address: str
    joined_at: datetime = Field(default_factory=utc_now)
    is_eligible: bool = True


class EngagementMetrics(BaseModel):
    """Raw engagement counts for a post, as reported upstream."""

    model_config = ConfigDict(frozen=True)

    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    views: int = Field(default=0, ge=0)


class Submission(BaseModel):
    """An accepted entry in a campaign's append-only submission log.

    Flagged submissions are stored for the audit trail but excluded from the
    eligible set.
    """

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    creator_address: str
    platform: str
    url: str
    post_id: str
    timestamp: datetime
    metrics: EngagementMetrics
    resonance_score: float
    unique_hash: str
    flags: tuple[SubmissionFlag, ...] = ()
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp", "created_at")
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        """Store every instant as an aware UTC datetime."""
        return as_utc(v)

    @property
    def is_flagged(self) -> bool:
        """Return True if any disqualifying flag is set."""
        return bool(self.flags)


class PayoutSplit(BaseModel):
    """One creator's share of a campaign budget (8-decimal fixed point)."""

    model_config = ConfigDict(frozen=True)

    creator_address: str
    percent: Decimal
    amount: Decimal


class PayoutReceipt(BaseModel):
    """Record tying a paid campaign to its settlement transaction."""

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    tx_ref: str
    splits: list[PayoutSplit]
    created_at: datetime = Field(default_factory=utc_now)


class LeaderboardEntry(BaseModel):
    """Per-creator standing derived on demand from the submission log."""

    model_config = ConfigDict(frozen=True)

    creator_address: str
    total_score: float
    submission_count: int
    percent: float
