"""Tests for SubmissionValidator: admission checks, flags, joins, and scoring."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from resonance.domain.errors import (
    AlreadyJoinedError,
    CampaignNotFoundError,
    CampaignNotOpenError,
    DuplicateSubmissionError,
    NotAParticipantError,
)
from resonance.domain.models import Campaign, CampaignCriteria, EngagementMetrics
from resonance.domain.types import CampaignKind, CampaignStatus, SubmissionFlag
from resonance.store import CampaignStore
from resonance.validation import SubmissionValidator, submission_hash

WINDOW_START = datetime(2025, 1, 1, tzinfo=UTC)
DEADLINE = datetime(2025, 1, 31, tzinfo=UTC)


def _submit(
    validator: SubmissionValidator,
    post_id: str = "p1",
    timestamp: datetime | None = None,
    platform: str = "tiktok",
    creator: str = "0xabc",
    metrics: EngagementMetrics | None = None,
    campaign_id: str = "c1",
):
    return validator.accept(
        campaign_id=campaign_id,
        creator_address=creator,
        platform=platform,
        url=f"https://example.com/{post_id}",
        post_id=post_id,
        timestamp=timestamp or WINDOW_START + timedelta(days=3),
        metrics=metrics or EngagementMetrics(likes=100, comments=20, shares=10, views=10000),
    )


class TestSubmissionHash:
    def test_deterministic(self):
        assert submission_hash("tiktok", "p1", "c1") == submission_hash("tiktok", "p1", "c1")

    def test_platform_case_insensitive(self):
        assert submission_hash("TikTok", "p1", "c1") == submission_hash("tiktok", "p1", "c1")

    def test_differs_per_campaign(self):
        assert submission_hash("tiktok", "p1", "c1") != submission_hash("tiktok", "p1", "c2")

    def test_colon_in_ids_does_not_collide(self):
        assert submission_hash("a:b", "c", "c1") != submission_hash("a", "b:c", "c1")
        assert submission_hash("x", "p1:c1", "c2") != submission_hash("x", "p1", "c1:c2")

    def test_colon_bearing_post_ids_are_distinct_submissions(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        _submit(validator, platform="linkedin:urn", post_id="li:activity:1")
        result = _submit(validator, platform="linkedin", post_id="urn:li:activity:1")
        assert result.accepted is True
        assert len(store.get_submissions("c1")) == 2


class TestAdmission:
    def test_unknown_campaign(self, validator: SubmissionValidator):
        with pytest.raises(CampaignNotFoundError):
            _submit(validator)

    def test_accepts_and_scores(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        result = _submit(validator)
        assert result.accepted is True
        assert result.resonance_score == pytest.approx(17.0)
        assert result.flags == ()
        assert len(store.get_submissions("c1")) == 1

    def test_accepts_while_verifying(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        store.update_status("c1", CampaignStatus.VERIFYING)
        assert _submit(validator).accepted is True

    @pytest.mark.parametrize("terminal", [CampaignStatus.PAID, CampaignStatus.REFUNDED])
    def test_rejects_settled_campaign(
        self,
        store: CampaignStore,
        validator: SubmissionValidator,
        make_campaign: Callable[..., Campaign],
        terminal: CampaignStatus,
    ):
        store.create_campaign(make_campaign())
        store.update_status("c1", CampaignStatus.VERIFYING)
        store.update_status("c1", terminal)
        with pytest.raises(CampaignNotOpenError) as exc_info:
            _submit(validator)
        assert exc_info.value.status == terminal

    def test_curated_requires_join(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign(kind=CampaignKind.CURATED))
        with pytest.raises(NotAParticipantError):
            _submit(validator)
        assert store.get_submissions("c1") == []

    def test_curated_accepts_after_join(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign(kind=CampaignKind.CURATED))
        validator.join("c1", "0xabc")
        assert _submit(validator).accepted is True

    def test_duplicate_rejected_and_original_unchanged(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        first = _submit(validator).submission
        with pytest.raises(DuplicateSubmissionError):
            _submit(validator, metrics=EngagementMetrics(likes=1))
        assert store.get_submissions("c1") == [first]

    def test_duplicate_detection_ignores_platform_case(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        _submit(validator, platform="TikTok")
        with pytest.raises(DuplicateSubmissionError):
            _submit(validator, platform="tiktok", creator="0xother")

    def test_not_open_checked_before_duplicate(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        _submit(validator)
        store.update_status("c1", CampaignStatus.VERIFYING)
        store.update_status("c1", CampaignStatus.REFUNDED)
        with pytest.raises(CampaignNotOpenError):
            _submit(validator)

    def test_open_campaign_records_participant(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        _submit(validator)
        _submit(validator, post_id="p2")
        assert [p.creator_address for p in store.get_participants("c1")] == ["0xabc"]


class TestFlags:
    def test_timestamp_equal_to_deadline_is_not_flagged(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        result = _submit(validator, timestamp=DEADLINE)
        assert result.flags == ()
        assert len(store.get_eligible_submissions("c1")) == 1

    def test_timestamp_after_deadline_is_flagged_and_stored(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        result = _submit(validator, timestamp=DEADLINE + timedelta(seconds=1))
        assert result.flags == (SubmissionFlag.OUTSIDE_WINDOW,)
        assert len(store.get_submissions("c1")) == 1
        assert store.get_eligible_submissions("c1") == []

    def test_timestamp_before_window_is_flagged(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        result = _submit(validator, timestamp=WINDOW_START - timedelta(seconds=1))
        assert SubmissionFlag.OUTSIDE_WINDOW in result.flags

    def test_naive_timestamp_treated_as_utc(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        result = _submit(validator, timestamp=datetime(2025, 1, 31))
        assert result.flags == ()

    def test_platform_outside_allowlist_is_flagged(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(
            make_campaign(criteria=CampaignCriteria(platform_allowlist=["instagram"]))
        )
        result = _submit(validator, platform="tiktok")
        assert result.flags == (SubmissionFlag.INVALID_PLATFORM,)

    def test_allowlisted_platform_any_case(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(
            make_campaign(criteria=CampaignCriteria(platform_allowlist=["Instagram"]))
        )
        assert _submit(validator, platform="INSTAGRAM").flags == ()

    def test_low_engagement_is_flagged_but_scored(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(
            make_campaign(criteria=CampaignCriteria(min_engagement_rate=0.05))
        )
        result = _submit(validator)
        assert result.flags == (SubmissionFlag.LOW_ENGAGEMENT,)
        assert result.resonance_score == pytest.approx(17.0)

    def test_multiple_flags_accumulate(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(
            make_campaign(
                criteria=CampaignCriteria(platform_allowlist=["youtube"], min_engagement_rate=1.0)
            )
        )
        result = _submit(validator, timestamp=DEADLINE + timedelta(days=1))
        assert result.flags == (
            SubmissionFlag.OUTSIDE_WINDOW,
            SubmissionFlag.INVALID_PLATFORM,
            SubmissionFlag.LOW_ENGAGEMENT,
        )

    def test_result_flags_cannot_mutate_stored_submission(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        result = _submit(validator)
        assert isinstance(result.flags, tuple)
        with pytest.raises(AttributeError):
            result.flags.append(SubmissionFlag.OUTSIDE_WINDOW)  # type: ignore[attr-defined]
        assert store.get_submissions("c1")[0].flags == ()
        assert len(store.get_eligible_submissions("c1")) == 1


class TestJoin:
    def test_join_pending_campaign(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        participant = validator.join("c1", "0xabc")
        assert participant.is_eligible is True
        assert store.is_participant("c1", "0xabc")

    def test_join_twice_rejected(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        validator.join("c1", "0xabc")
        with pytest.raises(AlreadyJoinedError):
            validator.join("c1", "0xabc")

    def test_join_after_verification_started_rejected(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        store.update_status("c1", CampaignStatus.VERIFYING)
        with pytest.raises(CampaignNotOpenError):
            validator.join("c1", "0xabc")


class TestAuditAndWarnings:
    def test_accept_and_reject_are_audited(self, store: CampaignStore, make_campaign):
        audit = MagicMock()
        validator = SubmissionValidator(store, audit_logger=audit)
        store.create_campaign(make_campaign())

        _submit(validator)
        with pytest.raises(DuplicateSubmissionError):
            _submit(validator)

        audit.log_submission.assert_called_once()
        audit.log_submission_rejected.assert_called_once_with(
            "c1", "0xabc", "p1", "DuplicateSubmission"
        )

    def test_single_post_fraud_warning_is_informational(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        result = _submit(validator, metrics=EngagementMetrics(likes=500, comments=2, views=1000))
        assert result.fraud_warnings
        assert result.flags == ()

    def test_preview_does_not_store(
        self, store: CampaignStore, validator: SubmissionValidator, make_campaign
    ):
        store.create_campaign(make_campaign())
        score, rate = validator.preview(EngagementMetrics(likes=10, views=1000))
        assert score == pytest.approx(10.0)
        assert rate == pytest.approx(0.01)
        assert store.get_submissions("c1") == []
