"""Audit trail models for tracking campaign lifecycle events.

Each entry records what happened, to which campaign and creator, the
campaign status at the time, any settlement transaction reference, and
free-form string metadata.
"""

from enum import StrEnum

from pydantic import BaseModel


class EventType(StrEnum):
    """Types of events tracked in the audit trail."""

    CAMPAIGN_CREATED = "campaign_created"
    PARTICIPANT_JOINED = "participant_joined"
    SUBMISSION_RECORDED = "submission_recorded"
    SUBMISSION_REJECTED = "submission_rejected"
    STATUS_TRANSITION = "status_transition"
    FRAUD_FLAG = "fraud_flag"
    SETTLEMENT = "settlement"
    ERROR = "error"


class AuditEntry(BaseModel):
    """A single audit trail entry.

    All fields except event_type are optional to accommodate different
    event types (e.g., campaign_created has no creator_address).
    """

    event_type: EventType
    campaign_id: str | None = None
    creator_address: str | None = None
    post_id: str | None = None
    campaign_status: str | None = None
    tx_ref: str | None = None
    metadata: dict[str, str] | None = None
