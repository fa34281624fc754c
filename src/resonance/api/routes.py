"""HTTP routes for campaigns, participants, submissions, and verification.

Handlers reach shared services through ``request.app.state.services``
(``store``, ``validator``, ``scheduler``, optional ``audit_logger``).  Store
and validator calls are synchronous, so those handlers are plain ``def`` and
run in FastAPI's threadpool; verification awaits the settlement layer.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from resonance.allocation.leaderboard import build_leaderboard
from resonance.api.errors import error_body
from resonance.api.schemas import (
    CreateCampaignRequest,
    EligibilityRequest,
    JoinRequest,
    ScorePreviewRequest,
    SubmitRequest,
    campaign_to_dict,
    leaderboard_entry_to_dict,
    participant_to_dict,
    receipt_to_dict,
    submission_to_dict,
)
from resonance.domain.errors import NoEligibleCreatorsError
from resonance.domain.models import Campaign, EngagementMetrics, utc_now
from resonance.domain.types import CampaignStatus
from resonance.scheduler.scheduler import CampaignScheduler
from resonance.store.store import CampaignStore
from resonance.validation.validator import SubmissionValidator

logger = structlog.get_logger()

router = APIRouter()


def _services(request: Request) -> dict[str, Any]:
    services: dict[str, Any] = request.app.state.services
    return services


def _store(request: Request) -> CampaignStore:
    store: CampaignStore = _services(request)["store"]
    return store


def _validator(request: Request) -> SubmissionValidator:
    validator: SubmissionValidator = _services(request)["validator"]
    return validator


def _scheduler(request: Request) -> CampaignScheduler:
    scheduler: CampaignScheduler = _services(request)["scheduler"]
    return scheduler


# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------


@router.post("/campaigns")
def create_campaign(body: CreateCampaignRequest, request: Request) -> dict[str, str]:
    """Create a campaign in ``pending`` status and return its id."""
    now = utc_now()
    campaign = Campaign(
        campaign_id=body.campaign_id or str(uuid.uuid4()),
        kind=body.kind,
        budget=body.budget,
        deadline=body.deadline,
        window_start=body.window_start or now,
        criteria=body.criteria.to_criteria(),
        title=body.title,
        created_at=now,
        updated_at=now,
    )
    _store(request).create_campaign(campaign)
    audit = _services(request).get("audit_logger")
    if audit is not None:
        audit.log_campaign_created(campaign)
    return {"campaignId": campaign.campaign_id}


@router.get("/campaigns")
def list_campaigns(request: Request, status: CampaignStatus | None = None) -> dict[str, Any]:
    """List campaigns, optionally filtered by ``?status=``."""
    campaigns = _store(request).list_campaigns(status)
    return {"campaigns": [campaign_to_dict(c) for c in campaigns]}


@router.get("/campaigns/{campaign_id}")
def get_campaign(campaign_id: str, request: Request) -> dict[str, Any]:
    """Return a campaign together with its payout receipt, if paid."""
    store = _store(request)
    campaign = store.get_campaign(campaign_id)
    return {
        "campaign": campaign_to_dict(campaign),
        "receipt": receipt_to_dict(store.get_payout_receipt(campaign_id)),
    }


# ---------------------------------------------------------------------------
# Participants
# ---------------------------------------------------------------------------


@router.post("/campaigns/{campaign_id}/join")
def join_campaign(campaign_id: str, body: JoinRequest, request: Request) -> dict[str, Any]:
    """Register a creator as a participant."""
    participant = _validator(request).join(campaign_id, body.creator_address)
    return participant_to_dict(participant)


@router.put("/campaigns/{campaign_id}/participants/{creator_address}/eligibility")
def set_eligibility(
    campaign_id: str, creator_address: str, body: EligibilityRequest, request: Request
) -> dict[str, Any]:
    """Include or exclude a participant's submissions from payout."""
    store = _store(request)
    store.get_campaign(campaign_id)
    participant = store.set_participant_eligibility(
        campaign_id, creator_address, body.is_eligible
    )
    return participant_to_dict(participant)


@router.get("/creators/{creator_address}/campaigns")
def creator_campaigns(creator_address: str, request: Request) -> dict[str, Any]:
    """List campaigns the creator participates in."""
    campaigns = _store(request).campaigns_for_creator(creator_address)
    return {"campaigns": [campaign_to_dict(c) for c in campaigns]}


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


@router.post("/campaigns/{campaign_id}/submit")
def submit(campaign_id: str, body: SubmitRequest, request: Request) -> dict[str, Any]:
    """Validate, score, and record a creator's post."""
    result = _validator(request).accept(
        campaign_id=campaign_id,
        creator_address=body.creator_address,
        platform=body.platform,
        url=body.url,
        post_id=body.post_id,
        timestamp=body.timestamp,
        metrics=EngagementMetrics(**body.metrics.model_dump()),
    )
    return {
        "accepted": result.accepted,
        "resonanceScore": result.resonance_score,
        "flags": [str(f) for f in result.flags],
        "fraudWarnings": result.fraud_warnings,
    }


@router.get("/campaigns/{campaign_id}/submissions")
def list_submissions(campaign_id: str, request: Request) -> dict[str, Any]:
    """Return the full submission log, flagged entries included."""
    store = _store(request)
    store.get_campaign(campaign_id)
    return {"submissions": [submission_to_dict(s) for s in store.get_submissions(campaign_id)]}


@router.get("/campaigns/{campaign_id}/leaderboard")
def leaderboard(campaign_id: str, request: Request) -> dict[str, Any]:
    """Rank creators by resonance over the eligible submissions, computed per request."""
    entries = build_leaderboard(_store(request).get_eligible_submissions(campaign_id))
    return {"entries": [leaderboard_entry_to_dict(e) for e in entries]}


@router.post("/score")
def preview_score(body: ScorePreviewRequest, request: Request) -> dict[str, float]:
    """Preview the resonance score and engagement rate for metrics without storing them."""
    score, rate = _validator(request).preview(EngagementMetrics(**body.metrics.model_dump()))
    return {"resonanceScore": score, "engagementRate": rate}


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


@router.post("/campaigns/{campaign_id}/verify", response_model=None)
async def verify_campaign(campaign_id: str, request: Request) -> JSONResponse | dict[str, Any]:
    """Trigger verification now.

    Returns the receipt when paid, ``{"flagged": true, "reasons": [...]}``
    when the fraud gate held the campaign back, and 400
    ``NoEligibleCreators`` when the campaign was refunded.
    """
    outcome = await _scheduler(request).verify(campaign_id)

    if outcome.flagged:
        return {
            "campaignId": campaign_id,
            "status": str(outcome.status),
            "flagged": True,
            "reasons": outcome.reasons,
        }
    if outcome.status == CampaignStatus.REFUNDED:
        body = error_body(
            NoEligibleCreatorsError.reason, f"Campaign '{campaign_id}' had no eligible creators"
        )
        body["status"] = str(outcome.status)
        return JSONResponse(status_code=400, content=body)
    return {
        "campaignId": campaign_id,
        "status": str(outcome.status),
        "flagged": False,
        "receipt": receipt_to_dict(outcome.receipt),
    }
