"""Sentry SDK initialization with structlog-sentry bridge.

Provides:
- ``init_sentry(dsn)``: Initialize Sentry SDK.  No-op when *dsn* is empty.
- ``get_sentry_processor()``: structlog processor forwarding ERROR events.

Client-correctable rejections and state conflicts are expected traffic, so
``drop_expected_errors`` keeps them out of Sentry; settlement failures and
allocation invariant violations still get reported.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

from resonance.domain.errors import (
    CampaignNotFoundError,
    EligibilityRejection,
    InputValidationError,
    StateConflictError,
)

_EXPECTED_ERRORS = (
    CampaignNotFoundError,
    EligibilityRejection,
    InputValidationError,
    StateConflictError,
)


def drop_expected_errors(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """Sentry ``before_send`` hook discarding expected domain errors.

    Args:
        event: The Sentry event payload.
        hint: Sentry hint dict; ``exc_info`` holds the raised exception.

    Returns:
        The event unchanged, or ``None`` to drop it.
    """
    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], _EXPECTED_ERRORS):
        return None
    return event


def init_sentry(dsn: str, environment: str = "development") -> None:
    """Initialize Sentry SDK with the given *dsn*.

    Safe to call unconditionally at startup: an empty *dsn* returns
    immediately without touching the SDK.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        environment: Deployment environment tag.
    """
    if not dsn:
        return

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=drop_expected_errors,
        integrations=[
            # structlog-sentry does the capturing; avoid double reports
            LoggingIntegration(event_level=None, level=None),
        ],
    )


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Insert after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
