"""SQLite-backed campaign repository.

Mirrors the audit store pattern: accepts a sqlite3.Connection, uses
parameterized queries exclusively, and commits synchronously after writes.
Decimal fields survive the round trip because pydantic serializes them as
strings.
"""

from __future__ import annotations

import sqlite3
import threading

from resonance.domain.models import Campaign, Participant, PayoutReceipt, Submission


class SqliteRepository:
    """Persist campaigns, participants, submissions, and receipts in SQLite."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  campaign tables (see ``init_campaign_tables``).
        """
        self._conn = conn
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    def insert_campaign(self, campaign: Campaign) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO campaigns (
                    campaign_id, status, deadline, campaign_json, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    campaign.campaign_id,
                    campaign.status.value,
                    campaign.deadline.isoformat(),
                    campaign.model_dump_json(),
                    campaign.created_at.isoformat(),
                    campaign.updated_at.isoformat(),
                ),
            )
            self._conn.commit()

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT campaign_json FROM campaigns WHERE campaign_id = ?",
                (campaign_id,),
            ).fetchone()
        return Campaign.model_validate_json(row[0]) if row else None

    def list_campaigns(self) -> list[Campaign]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT campaign_json FROM campaigns ORDER BY created_at"
            ).fetchall()
        return [Campaign.model_validate_json(r[0]) for r in rows]

    def update_campaign(self, campaign: Campaign) -> None:
        with self._lock:
            self._update_campaign_row(campaign)
            self._conn.commit()

    def _update_campaign_row(self, campaign: Campaign) -> None:
        self._conn.execute(
            """
            UPDATE campaigns
            SET status = ?, campaign_json = ?, updated_at = ?
            WHERE campaign_id = ?
            """,
            (
                campaign.status.value,
                campaign.model_dump_json(),
                campaign.updated_at.isoformat(),
                campaign.campaign_id,
            ),
        )

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def insert_participant(self, participant: Participant) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO participants (campaign_id, creator_address, participant_json)
                VALUES (?, ?, ?)
                """,
                (
                    participant.campaign_id,
                    participant.creator_address,
                    participant.model_dump_json(),
                ),
            )
            self._conn.commit()

    def get_participant(self, campaign_id: str, creator_address: str) -> Participant | None:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT participant_json FROM participants
                WHERE campaign_id = ? AND creator_address = ?
                """,
                (campaign_id, creator_address),
            ).fetchone()
        return Participant.model_validate_json(row[0]) if row else None

    def list_participants(self, campaign_id: str) -> list[Participant]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT participant_json FROM participants WHERE campaign_id = ?",
                (campaign_id,),
            ).fetchall()
        return [Participant.model_validate_json(r[0]) for r in rows]

    def list_campaign_ids_for_creator(self, creator_address: str) -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT campaign_id FROM participants WHERE creator_address = ?",
                (creator_address,),
            ).fetchall()
        return [r[0] for r in rows]

    def update_participant(self, participant: Participant) -> None:
        with self._lock:
            self._conn.execute(
                """
                UPDATE participants SET participant_json = ?
                WHERE campaign_id = ? AND creator_address = ?
                """,
                (
                    participant.model_dump_json(),
                    participant.campaign_id,
                    participant.creator_address,
                ),
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def insert_submission(self, submission: Submission) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO submissions (
                    campaign_id, creator_address, unique_hash, submission_json
                ) VALUES (?, ?, ?, ?)
                """,
                (
                    submission.campaign_id,
                    submission.creator_address,
                    submission.unique_hash,
                    submission.model_dump_json(),
                ),
            )
            self._conn.commit()

    def has_submission_hash(self, campaign_id: str, unique_hash: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM submissions WHERE campaign_id = ? AND unique_hash = ?",
                (campaign_id, unique_hash),
            ).fetchone()
        return row is not None

    def list_submissions(self, campaign_id: str) -> list[Submission]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT submission_json FROM submissions WHERE campaign_id = ? ORDER BY seq",
                (campaign_id,),
            ).fetchall()
        return [Submission.model_validate_json(r[0]) for r in rows]

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def get_receipt(self, campaign_id: str) -> PayoutReceipt | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT receipt_json FROM payout_receipts WHERE campaign_id = ?",
                (campaign_id,),
            ).fetchone()
        return PayoutReceipt.model_validate_json(row[0]) if row else None

    def settle(self, campaign: Campaign, receipt: PayoutReceipt) -> None:
        """Write the receipt and the paid campaign in a single transaction."""
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO payout_receipts (campaign_id, tx_ref, receipt_json)
                    VALUES (?, ?, ?)
                    """,
                    (receipt.campaign_id, receipt.tx_ref, receipt.model_dump_json()),
                )
                self._update_campaign_row(campaign)
            except sqlite3.Error:
                self._conn.rollback()
                raise
            self._conn.commit()
