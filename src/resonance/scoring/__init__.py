"""Resonance scoring and fraud screening."""

from resonance.scoring.engine import compute_resonance, engagement_rate
from resonance.scoring.fraud import FraudCheckResult, FraudGate, ProofMetrics

__all__ = [
    "FraudCheckResult",
    "FraudGate",
    "ProofMetrics",
    "compute_resonance",
    "engagement_rate",
]
