"""HTTP surface for the verification engine."""

from resonance.api.errors import register_error_handlers
from resonance.api.routes import router

__all__ = [
    "register_error_handlers",
    "router",
]
