"""Tests for CampaignStore over both repository backends."""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

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
    CampaignCriteria,
    EngagementMetrics,
    Participant,
    PayoutReceipt,
    PayoutSplit,
    Submission,
)
from resonance.domain.types import CampaignStatus, SubmissionFlag
from resonance.store import (
    CampaignStore,
    InMemoryRepository,
    SqliteRepository,
    init_campaign_tables,
    open_database,
)

WINDOW_START = datetime(2025, 1, 1, tzinfo=UTC)
DEADLINE = datetime(2025, 1, 31, tzinfo=UTC)


@pytest.fixture(params=["memory", "sqlite"])
def backend_store(request: pytest.FixtureRequest) -> Iterator[CampaignStore]:
    """A CampaignStore over each repository implementation."""
    if request.param == "memory":
        yield CampaignStore(InMemoryRepository())
        return
    conn = open_database(":memory:")
    init_campaign_tables(conn)
    yield CampaignStore(SqliteRepository(conn))
    conn.close()


def _submission(
    post_id: str,
    creator: str = "0xabc",
    score: float = 10.0,
    timestamp: datetime | None = None,
    flags: list[SubmissionFlag] | None = None,
) -> Submission:
    return Submission(
        campaign_id="c1",
        creator_address=creator,
        platform="tiktok",
        url=f"https://example.com/{post_id}",
        post_id=post_id,
        timestamp=timestamp or WINDOW_START + timedelta(days=1),
        metrics=EngagementMetrics(likes=10, comments=2, views=1000),
        resonance_score=score,
        unique_hash=f"hash-{post_id}",
        flags=flags or [],
    )


def _receipt(tx_ref: str = "tx-1") -> PayoutReceipt:
    return PayoutReceipt(
        campaign_id="c1",
        tx_ref=tx_ref,
        splits=[
            PayoutSplit(
                creator_address="0xabc", percent=Decimal("1.00000000"), amount=Decimal("900")
            )
        ],
    )


class TestCampaigns:
    def test_create_and_get(
        self, backend_store: CampaignStore, make_campaign: Callable[..., Campaign]
    ):
        campaign = make_campaign()
        backend_store.create_campaign(campaign)
        stored = backend_store.get_campaign("c1")
        assert stored.budget == Decimal("900")
        assert stored.deadline == campaign.deadline
        assert stored.status == CampaignStatus.PENDING

    def test_duplicate_id_rejected(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        with pytest.raises(InputValidationError, match="already exists"):
            backend_store.create_campaign(make_campaign())

    def test_must_start_pending(self, backend_store: CampaignStore, make_campaign):
        campaign = make_campaign().model_copy(update={"status": CampaignStatus.VERIFYING})
        with pytest.raises(InputValidationError):
            backend_store.create_campaign(campaign)

    def test_unknown_campaign(self, backend_store: CampaignStore):
        with pytest.raises(CampaignNotFoundError):
            backend_store.get_campaign("missing")

    def test_list_filters_by_status(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign("c1"))
        backend_store.create_campaign(make_campaign("c2"))
        backend_store.update_status("c2", CampaignStatus.VERIFYING)
        assert {c.campaign_id for c in backend_store.list_campaigns()} == {"c1", "c2"}
        verifying = backend_store.list_campaigns(CampaignStatus.VERIFYING)
        assert [c.campaign_id for c in verifying] == ["c2"]


class TestStatusTransitions:
    def test_forward_transitions(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        backend_store.update_status("c1", CampaignStatus.VERIFYING)
        updated = backend_store.update_status("c1", CampaignStatus.REFUNDED)
        assert updated.status == CampaignStatus.REFUNDED
        assert backend_store.get_campaign("c1").status == CampaignStatus.REFUNDED

    def test_skip_transition_rejected(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        with pytest.raises(InvalidTransitionError):
            backend_store.update_status("c1", CampaignStatus.PAID)
        assert backend_store.get_campaign("c1").status == CampaignStatus.PENDING

    def test_backward_transition_rejected(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        backend_store.update_status("c1", CampaignStatus.VERIFYING)
        with pytest.raises(InvalidTransitionError):
            backend_store.update_status("c1", CampaignStatus.PENDING)

    def test_settled_campaign_reports_already_settled(
        self, backend_store: CampaignStore, make_campaign
    ):
        backend_store.create_campaign(make_campaign())
        backend_store.update_status("c1", CampaignStatus.VERIFYING)
        backend_store.update_status("c1", CampaignStatus.REFUNDED)
        with pytest.raises(AlreadySettledError):
            backend_store.update_status("c1", CampaignStatus.PAID)


class TestParticipants:
    def test_add_and_query(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        backend_store.add_participant(Participant(campaign_id="c1", creator_address="0xabc"))
        assert backend_store.is_participant("c1", "0xabc")
        assert not backend_store.is_participant("c1", "0xdef")
        assert [c.campaign_id for c in backend_store.campaigns_for_creator("0xabc")] == ["c1"]

    def test_add_twice_rejected(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        backend_store.add_participant(Participant(campaign_id="c1", creator_address="0xabc"))
        with pytest.raises(AlreadyJoinedError):
            backend_store.add_participant(Participant(campaign_id="c1", creator_address="0xabc"))

    def test_unknown_campaign(self, backend_store: CampaignStore):
        with pytest.raises(CampaignNotFoundError):
            backend_store.add_participant(Participant(campaign_id="nope", creator_address="0x"))

    def test_eligibility_toggle(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        backend_store.add_participant(Participant(campaign_id="c1", creator_address="0xabc"))
        updated = backend_store.set_participant_eligibility("c1", "0xabc", False)
        assert updated.is_eligible is False
        assert backend_store.get_participants("c1")[0].is_eligible is False

    def test_eligibility_requires_participant(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        with pytest.raises(InputValidationError):
            backend_store.set_participant_eligibility("c1", "0xabc", False)


class TestSubmissions:
    def test_log_keeps_insertion_order(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        for post_id in ("p3", "p1", "p2"):
            backend_store.add_submission(_submission(post_id))
        assert [s.post_id for s in backend_store.get_submissions("c1")] == ["p3", "p1", "p2"]

    def test_duplicate_hash_rejected(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        backend_store.add_submission(_submission("p1"))
        with pytest.raises(DuplicateSubmissionError):
            backend_store.add_submission(_submission("p1", creator="0xother"))
        assert len(backend_store.get_submissions("c1")) == 1

    def test_eligible_excludes_flagged_and_out_of_window(
        self, backend_store: CampaignStore, make_campaign
    ):
        backend_store.create_campaign(make_campaign())
        backend_store.add_submission(_submission("ok"))
        backend_store.add_submission(_submission("edge", timestamp=DEADLINE))
        backend_store.add_submission(
            _submission("late", timestamp=DEADLINE + timedelta(microseconds=1))
        )
        backend_store.add_submission(
            _submission("flagged", flags=[SubmissionFlag.INVALID_PLATFORM])
        )
        eligible = backend_store.get_eligible_submissions("c1")
        assert [s.post_id for s in eligible] == ["ok", "edge"]
        assert len(backend_store.get_submissions("c1")) == 4

    def test_eligible_applies_min_score(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(
            make_campaign(criteria=CampaignCriteria(min_resonance_score=5))
        )
        backend_store.add_submission(_submission("low", score=4.9))
        backend_store.add_submission(_submission("high", score=5.0))
        assert [s.post_id for s in backend_store.get_eligible_submissions("c1")] == ["high"]

    def test_eligible_caps_posts_per_creator(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(
            make_campaign(criteria=CampaignCriteria(max_posts_per_creator=2))
        )
        for post_id in ("a1", "a2", "a3"):
            backend_store.add_submission(_submission(post_id, creator="0xa"))
        backend_store.add_submission(_submission("b1", creator="0xb"))
        eligible = backend_store.get_eligible_submissions("c1")
        assert [s.post_id for s in eligible] == ["a1", "a2", "b1"]

    def test_eligible_excludes_ineligible_participants(
        self, backend_store: CampaignStore, make_campaign
    ):
        backend_store.create_campaign(make_campaign())
        backend_store.add_participant(Participant(campaign_id="c1", creator_address="0xa"))
        backend_store.add_submission(_submission("a1", creator="0xa"))
        backend_store.add_submission(_submission("b1", creator="0xb"))
        backend_store.set_participant_eligibility("c1", "0xa", False)
        assert [s.post_id for s in backend_store.get_eligible_submissions("c1")] == ["b1"]


class TestPayoutReceipts:
    def test_save_marks_paid(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        backend_store.update_status("c1", CampaignStatus.VERIFYING)
        paid = backend_store.save_payout_receipt(_receipt())
        assert paid.status == CampaignStatus.PAID
        assert backend_store.get_campaign("c1").status == CampaignStatus.PAID
        stored = backend_store.get_payout_receipt("c1")
        assert stored is not None
        assert stored.tx_ref == "tx-1"
        assert stored.splits[0].amount == Decimal("900")

    def test_second_save_reports_already_settled(
        self, backend_store: CampaignStore, make_campaign
    ):
        backend_store.create_campaign(make_campaign())
        backend_store.update_status("c1", CampaignStatus.VERIFYING)
        backend_store.save_payout_receipt(_receipt("tx-1"))
        with pytest.raises(AlreadySettledError):
            backend_store.save_payout_receipt(_receipt("tx-2"))
        assert backend_store.get_payout_receipt("c1").tx_ref == "tx-1"

    def test_save_requires_verifying(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        with pytest.raises(InvalidTransitionError):
            backend_store.save_payout_receipt(_receipt())
        assert backend_store.get_payout_receipt("c1") is None

    def test_no_receipt_before_payment(self, backend_store: CampaignStore, make_campaign):
        backend_store.create_campaign(make_campaign())
        assert backend_store.get_payout_receipt("c1") is None
