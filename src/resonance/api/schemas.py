"""Request bodies and response serializers for the HTTP surface.

Request fields are camelCase on the wire (``creatorAddress``, ``postId``)
and snake_case in Python.  Monetary values are returned as 8-decimal
fixed-point strings so clients never round-trip them through floats.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from resonance.domain.models import (
    Campaign,
    CampaignCriteria,
    LeaderboardEntry,
    Participant,
    PayoutReceipt,
    PayoutSplit,
    Submission,
)
from resonance.domain.types import CampaignKind
from resonance.settlement.client import format_fixed


class CamelModel(BaseModel):
    """Base for request bodies accepting camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CriteriaBody(CamelModel):
    min_engagement_rate: float | None = None
    platform_allowlist: list[str] | None = None
    max_posts_per_creator: int | None = None
    min_resonance_score: float | None = None

    def to_criteria(self) -> CampaignCriteria:
        return CampaignCriteria(**self.model_dump())


class CreateCampaignRequest(CamelModel):
    """Body of ``POST /campaigns``.

    ``windowStart`` defaults to the creation time and ``campaignId`` to a
    generated UUID.
    """

    kind: CampaignKind
    deadline: datetime
    budget: Decimal
    criteria: CriteriaBody = Field(default_factory=CriteriaBody)
    window_start: datetime | None = None
    campaign_id: str | None = None
    title: str | None = None

    @field_validator("budget", mode="before")
    @classmethod
    def budget_from_json_number(cls, v: Any) -> Any:
        """Parse JSON numbers through their decimal text, never through binary float."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v


class JoinRequest(CamelModel):
    creator_address: str = Field(min_length=1)


class MetricsBody(CamelModel):
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    views: int = Field(default=0, ge=0)


class SubmitRequest(CamelModel):
    """Body of ``POST /campaigns/{id}/submit``."""

    creator_address: str = Field(min_length=1)
    platform: str = Field(min_length=1)
    url: str
    post_id: str = Field(min_length=1)
    timestamp: datetime
    metrics: MetricsBody = Field(default_factory=MetricsBody)


class EligibilityRequest(CamelModel):
    is_eligible: bool


class ScorePreviewRequest(CamelModel):
    metrics: MetricsBody


# ---------------------------------------------------------------------------
# Response serializers
# ---------------------------------------------------------------------------


def campaign_to_dict(campaign: Campaign) -> dict[str, Any]:
    criteria = campaign.criteria
    return {
        "campaignId": campaign.campaign_id,
        "kind": str(campaign.kind),
        "title": campaign.title,
        "budget": format_fixed(campaign.budget),
        "deadline": campaign.deadline.isoformat(),
        "windowStart": campaign.window_start.isoformat(),
        "status": str(campaign.status),
        "criteria": {
            "minEngagementRate": criteria.min_engagement_rate,
            "platformAllowlist": criteria.platform_allowlist,
            "maxPostsPerCreator": criteria.max_posts_per_creator,
            "minResonanceScore": criteria.min_resonance_score,
        },
        "createdAt": campaign.created_at.isoformat(),
        "updatedAt": campaign.updated_at.isoformat(),
    }


def split_to_dict(split: PayoutSplit) -> dict[str, str]:
    return {
        "creatorAddress": split.creator_address,
        "percent": format_fixed(split.percent),
        "amount": format_fixed(split.amount),
    }


def receipt_to_dict(receipt: PayoutReceipt | None) -> dict[str, Any] | None:
    if receipt is None:
        return None
    return {
        "campaignId": receipt.campaign_id,
        "txRef": receipt.tx_ref,
        "splits": [split_to_dict(s) for s in receipt.splits],
        "createdAt": receipt.created_at.isoformat(),
    }


def participant_to_dict(participant: Participant) -> dict[str, Any]:
    return {
        "campaignId": participant.campaign_id,
        "creatorAddress": participant.creator_address,
        "joinedAt": participant.joined_at.isoformat(),
        "isEligible": participant.is_eligible,
    }


def submission_to_dict(submission: Submission) -> dict[str, Any]:
    m = submission.metrics
    return {
        "campaignId": submission.campaign_id,
        "creatorAddress": submission.creator_address,
        "platform": submission.platform,
        "url": submission.url,
        "postId": submission.post_id,
        "timestamp": submission.timestamp.isoformat(),
        "metrics": {"likes": m.likes, "comments": m.comments, "shares": m.shares, "views": m.views},
        "resonanceScore": submission.resonance_score,
        "uniqueHash": submission.unique_hash,
        "flags": [str(f) for f in submission.flags],
        "createdAt": submission.created_at.isoformat(),
    }


def leaderboard_entry_to_dict(entry: LeaderboardEntry) -> dict[str, Any]:
    return {
        "creatorAddress": entry.creator_address,
        "totalScore": entry.total_score,
        "submissionCount": entry.submission_count,
        "percent": entry.percent,
    }
