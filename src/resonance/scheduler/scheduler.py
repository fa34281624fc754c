"""Deadline-driven campaign verification and settlement.

``verify`` moves a campaign ``pending -> verifying``, screens its eligible
submissions through the fraud gate, allocates the budget, and hands the
result to the settlement layer.  Only a confirmed settlement is persisted:
the receipt and the ``paid`` status are written together, so an abandoned
or failed attempt leaves the campaign in ``verifying`` for a safe retry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from resonance.allocation.allocator import allocate
from resonance.audit.logger import AuditLogger
from resonance.domain.errors import (
    AlreadySettledError,
    NoEligibleCreatorsError,
    SettlementError,
    VerifierError,
)
from resonance.domain.models import (
    Campaign,
    PayoutReceipt,
    PayoutSplit,
    Submission,
    utc_now,
)
from resonance.domain.types import CampaignStatus
from resonance.observability.metrics import CAMPAIGNS_SETTLED, CAMPAIGNS_VERIFYING
from resonance.scoring.fraud import FraudGate, ProofMetrics
from resonance.settlement.client import SettlementClient
from resonance.state_machine.transitions import is_terminal
from resonance.store.store import CampaignStore

logger = structlog.get_logger()

# Default bound on one settlement round-trip (proofs + payout)
DEFAULT_SETTLEMENT_TIMEOUT = 30.0


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of one ``verify`` call.

    Attributes:
        campaign_id: The verified campaign.
        status: Campaign status after the call.
        receipt: The payout receipt when the campaign is ``paid``.
        flagged: True when the fraud gate held the campaign back.
        reasons: Fraud gate failure reasons when flagged.
    """

    campaign_id: str
    status: CampaignStatus
    receipt: PayoutReceipt | None = None
    flagged: bool = False
    reasons: list[str] = field(default_factory=list)


class CampaignScheduler:
    """Run verification for campaigns whose deadline has passed.

    Verification for one campaign is serialized with an ``asyncio.Lock``;
    cross-process races are caught by ``CampaignStore.save_payout_receipt``
    raising ``AlreadySettledError``.

    Args:
        store: The campaign store.
        settlement: Settlement layer client, or ``None`` when not configured.
        fraud_gate: Batch fraud screen applied to the eligible set.
        timeout_seconds: Upper bound on each settlement round-trip.
        audit_logger: Optional audit trail writer.
        clock: Returns the current time; injectable for tests.
        record_score_proofs: Send each eligible submission's score to the
            settlement layer before the payout.
    """

    def __init__(
        self,
        store: CampaignStore,
        settlement: SettlementClient | None,
        fraud_gate: FraudGate | None = None,
        timeout_seconds: float = DEFAULT_SETTLEMENT_TIMEOUT,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], datetime] = utc_now,
        record_score_proofs: bool = True,
    ) -> None:
        self._store = store
        self._settlement = settlement
        self._fraud_gate = fraud_gate or FraudGate()
        self._timeout = timeout_seconds
        self._audit = audit_logger
        self._clock = clock
        self._record_score_proofs = record_score_proofs
        self._locks: dict[str, asyncio.Lock] = {}
        self._flagged: set[str] = set()

    @property
    def flagged_campaigns(self) -> frozenset[str]:
        """Campaign ids currently held back by the fraud gate."""
        return frozenset(self._flagged)

    def _lock_for(self, campaign_id: str) -> asyncio.Lock:
        return self._locks.setdefault(campaign_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify(self, campaign_id: str) -> VerificationOutcome:
        """Verify and settle one campaign.

        Safe to call repeatedly: a ``paid`` campaign returns its existing
        receipt without contacting the settlement layer, and a ``refunded``
        campaign returns its status.

        Raises:
            CampaignNotFoundError: If the campaign does not exist.
            SettlementError: If the settlement layer is unavailable, times
                out, or rejects the transaction.  The campaign stays
                ``verifying``.
            AllocationInvariantError: If the computed split is inconsistent.
        """
        async with self._lock_for(campaign_id):
            outcome = await self._verify_locked(campaign_id)
        if is_terminal(outcome.status):
            # Terminal campaigns short-circuit without mutating state
            self._locks.pop(campaign_id, None)
        return outcome

    async def _verify_locked(self, campaign_id: str) -> VerificationOutcome:
        campaign = await asyncio.to_thread(self._store.get_campaign, campaign_id)
        if campaign.status == CampaignStatus.PAID:
            logger.info("verification_skipped_already_paid", campaign_id=campaign_id)
            return VerificationOutcome(
                campaign_id=campaign_id,
                status=CampaignStatus.PAID,
                receipt=self._store.get_payout_receipt(campaign_id),
            )
        if campaign.status == CampaignStatus.REFUNDED:
            logger.info("verification_skipped_already_refunded", campaign_id=campaign_id)
            return VerificationOutcome(campaign_id=campaign_id, status=CampaignStatus.REFUNDED)

        if campaign.status == CampaignStatus.PENDING:
            campaign = self._transition(campaign, CampaignStatus.VERIFYING)

        eligible = await asyncio.to_thread(self._store.get_eligible_submissions, campaign_id)
        if not eligible:
            return await self._refund(campaign)

        fraud = self._fraud_gate.check(ProofMetrics.from_submission(s) for s in eligible)
        if not fraud.passed:
            self._flagged.add(campaign_id)
            logger.warning(
                "campaign_flagged", campaign_id=campaign_id, reasons=fraud.reasons
            )
            if self._audit is not None:
                self._audit.log_fraud_flag(campaign_id, fraud.reasons)
            return VerificationOutcome(
                campaign_id=campaign_id,
                status=CampaignStatus.VERIFYING,
                flagged=True,
                reasons=fraud.reasons,
            )

        try:
            splits = allocate(eligible, campaign.budget)
        except NoEligibleCreatorsError:
            return await self._refund(campaign)

        tx_ref = await self._settle(campaign, eligible, splits)
        receipt = PayoutReceipt(
            campaign_id=campaign_id,
            tx_ref=tx_ref,
            splits=splits,
            created_at=self._clock(),
        )
        try:
            await asyncio.to_thread(self._store.save_payout_receipt, receipt)
        except AlreadySettledError as exc:
            logger.info(
                "verification_lost_race", campaign_id=campaign_id, status=exc.status
            )
            return VerificationOutcome(
                campaign_id=campaign_id,
                status=exc.status,
                receipt=self._store.get_payout_receipt(campaign_id),
            )

        self._flagged.discard(campaign_id)
        self._record_terminal(
            campaign_id,
            CampaignStatus.PAID,
            tx_ref,
            {"creators": str(len(splits)), "budget": str(campaign.budget)},
        )
        return VerificationOutcome(
            campaign_id=campaign_id, status=CampaignStatus.PAID, receipt=receipt
        )

    def _transition(self, campaign: Campaign, new_status: CampaignStatus) -> Campaign:
        updated = self._store.update_status(campaign.campaign_id, new_status)
        if self._audit is not None:
            self._audit.log_status_transition(
                campaign.campaign_id, str(campaign.status), str(new_status)
            )
        self._refresh_verifying_gauge()
        return updated

    def _refresh_verifying_gauge(self) -> None:
        CAMPAIGNS_VERIFYING.set(len(self._store.list_campaigns(CampaignStatus.VERIFYING)))

    def _record_terminal(
        self,
        campaign_id: str,
        status: CampaignStatus,
        tx_ref: str | None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        CAMPAIGNS_SETTLED.labels(status=str(status)).inc()
        self._refresh_verifying_gauge()
        logger.info("campaign_settled", campaign_id=campaign_id, status=status, tx_ref=tx_ref)
        if self._audit is not None:
            self._audit.log_settlement(campaign_id, str(status), tx_ref, metadata)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def _require_settlement(self, campaign_id: str) -> SettlementClient:
        if self._settlement is None:
            raise SettlementError(
                f"Settlement layer not configured; campaign '{campaign_id}' stays verifying"
            )
        return self._settlement

    async def _settle(
        self,
        campaign: Campaign,
        eligible: list[Submission],
        splits: list[PayoutSplit],
    ) -> str:
        settlement = self._require_settlement(campaign.campaign_id)
        try:
            async with asyncio.timeout(self._timeout):
                if self._record_score_proofs:
                    for submission in eligible:
                        await settlement.submit_score_proof(
                            campaign.campaign_id,
                            submission.creator_address,
                            submission.resonance_score,
                            submission.post_id,
                            submission.timestamp,
                        )
                return await settlement.submit_payout(campaign.campaign_id, splits)
        except TimeoutError as exc:
            self._settlement_failed(campaign.campaign_id, "settlement timed out", "payout")
            raise SettlementError(
                f"Settlement timed out after {self._timeout}s for '{campaign.campaign_id}'"
            ) from exc
        except SettlementError as exc:
            self._settlement_failed(campaign.campaign_id, str(exc), "payout")
            raise

    async def _refund(self, campaign: Campaign) -> VerificationOutcome:
        settlement = self._require_settlement(campaign.campaign_id)
        try:
            async with asyncio.timeout(self._timeout):
                tx_ref = await settlement.submit_refund(campaign.campaign_id)
        except TimeoutError as exc:
            self._settlement_failed(campaign.campaign_id, "refund timed out", "refund")
            raise SettlementError(
                f"Refund timed out after {self._timeout}s for '{campaign.campaign_id}'"
            ) from exc
        except SettlementError as exc:
            self._settlement_failed(campaign.campaign_id, str(exc), "refund")
            raise

        try:
            self._store.update_status(campaign.campaign_id, CampaignStatus.REFUNDED)
        except AlreadySettledError as exc:
            return VerificationOutcome(campaign_id=campaign.campaign_id, status=exc.status)
        if self._audit is not None:
            self._audit.log_status_transition(
                campaign.campaign_id, str(campaign.status), str(CampaignStatus.REFUNDED)
            )
        self._flagged.discard(campaign.campaign_id)
        self._record_terminal(campaign.campaign_id, CampaignStatus.REFUNDED, tx_ref)
        return VerificationOutcome(
            campaign_id=campaign.campaign_id, status=CampaignStatus.REFUNDED
        )

    def _settlement_failed(self, campaign_id: str, message: str, context: str) -> None:
        logger.error("settlement_failed", campaign_id=campaign_id, error=message, stage=context)
        if self._audit is not None:
            self._audit.log_error(campaign_id, message, context=context)

    # ------------------------------------------------------------------
    # Periodic loop
    # ------------------------------------------------------------------

    def due_campaigns(self, now: datetime | None = None) -> list[Campaign]:
        """Return unsettled campaigns whose deadline has passed, excluding flagged ones."""
        now = now or self._clock()
        return [
            c
            for c in self._store.list_campaigns()
            if c.status in (CampaignStatus.PENDING, CampaignStatus.VERIFYING)
            and c.deadline <= now
            and c.campaign_id not in self._flagged
        ]

    async def run_due(self, now: datetime | None = None) -> list[VerificationOutcome]:
        """Verify every due campaign once.

        Failures are logged and left for the next tick.

        Returns:
            Outcomes of the campaigns that verified without error.
        """
        outcomes: list[VerificationOutcome] = []
        for campaign in self.due_campaigns(now):
            try:
                outcomes.append(await self.verify(campaign.campaign_id))
            except VerifierError as exc:
                logger.warning(
                    "scheduled_verification_failed",
                    campaign_id=campaign.campaign_id,
                    reason=exc.reason,
                    error=str(exc),
                )
            except Exception:
                logger.exception(
                    "scheduled_verification_crashed", campaign_id=campaign.campaign_id
                )
        return outcomes

    async def run_periodically(self, interval_seconds: float) -> None:
        """Run ``run_due`` every *interval_seconds* until cancelled."""
        logger.info("scheduler_started", interval_seconds=interval_seconds)
        while True:
            try:
                outcomes = await self.run_due()
                if outcomes:
                    logger.info("scheduler_tick", verified=len(outcomes))
            except Exception:
                logger.exception("scheduler_tick_failed")
            await asyncio.sleep(interval_seconds)
