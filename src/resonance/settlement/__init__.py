"""Settlement-layer client interface and HTTP implementation."""

from resonance.settlement.client import (
    HttpSettlementClient,
    SettlementClient,
    TransientSettlementError,
    format_fixed,
)

__all__ = [
    "HttpSettlementClient",
    "SettlementClient",
    "TransientSettlementError",
    "format_fixed",
]
