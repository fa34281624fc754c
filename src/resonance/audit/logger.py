"""Convenience class for inserting audit trail entries.

Every campaign lifecycle event is logged: creation, joins, accepted and
rejected submissions, status transitions, fraud flags, settlements, and
errors.  Each method builds a properly structured :class:`AuditEntry` and
inserts it via :func:`insert_audit_entry`.
"""

from __future__ import annotations

import sqlite3
import threading
from typing import TYPE_CHECKING

from resonance.audit.models import AuditEntry, EventType
from resonance.audit.store import insert_audit_entry

if TYPE_CHECKING:
    from resonance.domain.models import Campaign, Submission


class AuditLogger:
    """Typed convenience API for inserting audit entries.

    Each ``log_*`` method fills the fields that event type uses and returns
    the inserted row id.  Writes are serialized so one logger can be shared
    by request threads and the scheduler.

    Args:
        conn: An open SQLite connection to the audit database.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    def _insert(self, entry: AuditEntry) -> int:
        with self._lock:
            return insert_audit_entry(self._conn, entry)

    def log_campaign_created(self, campaign: Campaign) -> int:
        """Log a new campaign.

        Args:
            campaign: The campaign as stored.
        """
        entry = AuditEntry(
            event_type=EventType.CAMPAIGN_CREATED,
            campaign_id=campaign.campaign_id,
            campaign_status=str(campaign.status),
            metadata={
                "kind": str(campaign.kind),
                "budget": str(campaign.budget),
                "deadline": campaign.deadline.isoformat(),
            },
        )
        return self._insert(entry)

    def log_participant_joined(self, campaign_id: str, creator_address: str) -> int:
        """Log a creator joining a campaign."""
        entry = AuditEntry(
            event_type=EventType.PARTICIPANT_JOINED,
            campaign_id=campaign_id,
            creator_address=creator_address,
        )
        return self._insert(entry)

    def log_submission(self, submission: Submission) -> int:
        """Log an accepted submission, including any flags it carries.

        Args:
            submission: The submission appended to the campaign log.
        """
        meta = {
            "platform": submission.platform,
            "resonance_score": f"{submission.resonance_score:.8f}",
        }
        if submission.flags:
            meta["flags"] = ",".join(str(f) for f in submission.flags)

        entry = AuditEntry(
            event_type=EventType.SUBMISSION_RECORDED,
            campaign_id=submission.campaign_id,
            creator_address=submission.creator_address,
            post_id=submission.post_id,
            metadata=meta,
        )
        return self._insert(entry)

    def log_submission_rejected(
        self,
        campaign_id: str,
        creator_address: str,
        post_id: str,
        reason: str,
    ) -> int:
        """Log a submission that was refused outright.

        Args:
            campaign_id: Targeted campaign.
            creator_address: Submitting creator.
            post_id: Platform post identifier.
            reason: Rejection reason code.
        """
        entry = AuditEntry(
            event_type=EventType.SUBMISSION_REJECTED,
            campaign_id=campaign_id,
            creator_address=creator_address,
            post_id=post_id,
            metadata={"reason": reason},
        )
        return self._insert(entry)

    def log_status_transition(self, campaign_id: str, from_status: str, to_status: str) -> int:
        """Log a campaign status change.

        Stores from_status and to_status in metadata.
        """
        entry = AuditEntry(
            event_type=EventType.STATUS_TRANSITION,
            campaign_id=campaign_id,
            campaign_status=to_status,
            metadata={"from_status": from_status, "to_status": to_status},
        )
        return self._insert(entry)

    def log_fraud_flag(self, campaign_id: str, reasons: list[str]) -> int:
        """Log a campaign held back by the fraud gate."""
        entry = AuditEntry(
            event_type=EventType.FRAUD_FLAG,
            campaign_id=campaign_id,
            metadata={"reasons": "; ".join(reasons)},
        )
        return self._insert(entry)

    def log_settlement(
        self,
        campaign_id: str,
        status: str,
        tx_ref: str | None,
        metadata: dict[str, str] | None = None,
    ) -> int:
        """Log a campaign reaching ``paid`` or ``refunded``.

        Args:
            campaign_id: Settled campaign.
            status: Terminal status reached.
            tx_ref: Settlement transaction reference, if any.
            metadata: Additional key-value metadata (e.g. creator count).
        """
        entry = AuditEntry(
            event_type=EventType.SETTLEMENT,
            campaign_id=campaign_id,
            campaign_status=status,
            tx_ref=tx_ref,
            metadata=metadata,
        )
        return self._insert(entry)

    def log_error(
        self,
        campaign_id: str | None,
        error_message: str,
        context: str | None = None,
    ) -> int:
        """Log an error encountered during processing.

        Args:
            campaign_id: Campaign identifier (if available).
            error_message: The error message.
            context: Additional context about where the error occurred.
        """
        meta: dict[str, str] = {"error_message": error_message}
        if context is not None:
            meta["context"] = context

        entry = AuditEntry(
            event_type=EventType.ERROR,
            campaign_id=campaign_id,
            metadata=meta,
        )
        return self._insert(entry)
