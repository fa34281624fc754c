"""Domain-specific exception classes for the verification engine.

Every rejection carries a stable ``reason`` code that the HTTP layer returns
verbatim, so clients can branch on it without parsing messages.
"""

from resonance.domain.types import CampaignStatus


class VerifierError(Exception):
    """Base class for all domain errors in the verification engine."""

    reason: str = "VerifierError"


class InputValidationError(VerifierError):
    """Raised when input is malformed or missing required fields."""

    reason = "ValidationError"


class CampaignNotFoundError(VerifierError):
    """Raised when a campaign id does not exist in the store."""

    reason = "CampaignNotFound"

    def __init__(self, campaign_id: str) -> None:
        self.campaign_id = campaign_id
        super().__init__(f"Campaign '{campaign_id}' not found")


class EligibilityRejection(VerifierError):
    """Base class for submissions or joins refused by campaign rules."""

    reason = "EligibilityRejection"


class CampaignNotOpenError(EligibilityRejection):
    """Raised when a campaign no longer accepts joins or submissions.

    Attributes:
        campaign_id: The campaign that was targeted.
        status: The campaign's status at the time of the attempt.
    """

    reason = "CampaignNotOpen"

    def __init__(self, campaign_id: str, status: CampaignStatus) -> None:
        self.campaign_id = campaign_id
        self.status = status
        super().__init__(f"Campaign '{campaign_id}' is not open (status '{status}')")


class NotAParticipantError(EligibilityRejection):
    """Raised when a creator submits to a curated campaign without joining."""

    reason = "NotAParticipant"

    def __init__(self, campaign_id: str, creator_address: str) -> None:
        self.campaign_id = campaign_id
        self.creator_address = creator_address
        super().__init__(
            f"Creator '{creator_address}' has not joined campaign '{campaign_id}'"
        )


class AlreadyJoinedError(EligibilityRejection):
    """Raised when a creator joins the same campaign twice."""

    reason = "AlreadyJoined"

    def __init__(self, campaign_id: str, creator_address: str) -> None:
        self.campaign_id = campaign_id
        self.creator_address = creator_address
        super().__init__(
            f"Creator '{creator_address}' already joined campaign '{campaign_id}'"
        )


class DuplicateSubmissionError(EligibilityRejection):
    """Raised when a (platform, post) pair was already submitted to a campaign."""

    reason = "DuplicateSubmission"

    def __init__(self, campaign_id: str, unique_hash: str) -> None:
        self.campaign_id = campaign_id
        self.unique_hash = unique_hash
        super().__init__(f"Post already submitted to campaign '{campaign_id}'")


class StateConflictError(VerifierError):
    """Base class for conflicts caused by racing or stale caller state."""

    reason = "StateConflict"


class InvalidTransitionError(StateConflictError):
    """Raised when a status change is not a permitted forward transition.

    Attributes:
        current_status: The status the campaign was in.
        new_status: The status that was requested.
    """

    reason = "InvalidTransition"

    def __init__(self, current_status: CampaignStatus, new_status: CampaignStatus) -> None:
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(
            f"Cannot transition campaign from '{current_status}' to '{new_status}'"
        )


class AlreadySettledError(StateConflictError):
    """Raised when a campaign was already paid or refunded by another caller."""

    reason = "AlreadySettled"

    def __init__(self, campaign_id: str, status: CampaignStatus) -> None:
        self.campaign_id = campaign_id
        self.status = status
        super().__init__(f"Campaign '{campaign_id}' is already settled ('{status}')")


class NoEligibleCreatorsError(VerifierError):
    """Raised when an allocation has no creator with a positive score."""

    reason = "NoEligibleCreators"


class SettlementError(VerifierError):
    """Raised when the settlement layer times out or rejects a transaction.

    Retryable: the campaign stays in ``verifying`` and the settlement layer's
    idempotency key prevents a double payout.
    """

    reason = "SettlementFailure"


class AllocationInvariantError(VerifierError):
    """Raised when computed splits violate the sum-to-one post-condition.

    Indicates a bug, never a transient failure.
    """

    reason = "AllocationInvariantViolation"
