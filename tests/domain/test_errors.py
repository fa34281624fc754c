"""Tests for the domain exception taxonomy and reason codes."""

import pytest

from resonance.domain.errors import (
    AlreadyJoinedError,
    AlreadySettledError,
    CampaignNotFoundError,
    CampaignNotOpenError,
    DuplicateSubmissionError,
    EligibilityRejection,
    InvalidTransitionError,
    NotAParticipantError,
    SettlementError,
    StateConflictError,
    VerifierError,
)
from resonance.domain.types import CampaignStatus


@pytest.mark.parametrize(
    ("exc", "reason"),
    [
        (CampaignNotOpenError("c1", CampaignStatus.PAID), "CampaignNotOpen"),
        (NotAParticipantError("c1", "0xabc"), "NotAParticipant"),
        (DuplicateSubmissionError("c1", "hash"), "DuplicateSubmission"),
        (AlreadyJoinedError("c1", "0xabc"), "AlreadyJoined"),
        (CampaignNotFoundError("c1"), "CampaignNotFound"),
        (SettlementError("boom"), "SettlementFailure"),
    ],
)
def test_reason_codes(exc: VerifierError, reason: str):
    assert exc.reason == reason


def test_rejections_share_a_base():
    assert isinstance(DuplicateSubmissionError("c1", "h"), EligibilityRejection)
    assert isinstance(NotAParticipantError("c1", "0x"), EligibilityRejection)


def test_state_conflicts_share_a_base():
    exc = InvalidTransitionError(CampaignStatus.PAID, CampaignStatus.PENDING)
    assert isinstance(exc, StateConflictError)
    assert isinstance(AlreadySettledError("c1", CampaignStatus.PAID), StateConflictError)
    assert "paid" in str(exc)
