"""Resilience infrastructure for settlement calls."""

from resonance.resilience.retry import resilient_api_call

__all__ = ["resilient_api_call"]
