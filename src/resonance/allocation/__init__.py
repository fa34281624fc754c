"""Payout allocation and leaderboard derivation."""

from resonance.allocation.allocator import (
    FIXED_POINT,
    SPLIT_TOLERANCE,
    allocate,
    creator_totals,
    split_totals,
)
from resonance.allocation.leaderboard import build_leaderboard

__all__ = [
    "FIXED_POINT",
    "SPLIT_TOLERANCE",
    "allocate",
    "build_leaderboard",
    "creator_totals",
    "split_totals",
]
