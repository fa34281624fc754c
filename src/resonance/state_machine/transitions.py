"""Transition map defining the forward-only campaign lifecycle."""

from resonance.domain.errors import InvalidTransitionError
from resonance.domain.types import CampaignStatus

# All permitted current_status -> next_status moves.
# Any pair not listed here (backward, skip, or self-loop) is invalid.
TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.PENDING: frozenset({CampaignStatus.VERIFYING}),
    CampaignStatus.VERIFYING: frozenset({CampaignStatus.PAID, CampaignStatus.REFUNDED}),
    CampaignStatus.PAID: frozenset(),
    CampaignStatus.REFUNDED: frozenset(),
}

# States with no outgoing transitions.
TERMINAL_STATES: frozenset[CampaignStatus] = frozenset(
    {CampaignStatus.PAID, CampaignStatus.REFUNDED}
)


def is_terminal(status: CampaignStatus) -> bool:
    """Return True if *status* is a settled (terminal) status."""
    return status in TERMINAL_STATES


def get_valid_targets(status: CampaignStatus) -> list[CampaignStatus]:
    """Return a sorted list of statuses reachable in one step from *status*."""
    return sorted(TRANSITIONS[status])


def validate_transition(current: CampaignStatus, new: CampaignStatus) -> None:
    """Validate a single-step status change.

    Args:
        current: The campaign's present status.
        new: The requested status.

    Raises:
        InvalidTransitionError: If the move is not a permitted forward step.
    """
    if new not in TRANSITIONS[current]:
        raise InvalidTransitionError(current, new)
