"""Campaign lifecycle transition validation."""

from resonance.state_machine.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    get_valid_targets,
    is_terminal,
    validate_transition,
)

__all__ = [
    "TERMINAL_STATES",
    "TRANSITIONS",
    "get_valid_targets",
    "is_terminal",
    "validate_transition",
]
