"""Deadline-driven campaign verification and settlement."""

from resonance.scheduler.scheduler import CampaignScheduler, VerificationOutcome

__all__ = [
    "CampaignScheduler",
    "VerificationOutcome",
]
