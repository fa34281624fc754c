"""Retry decorator for settlement-layer calls built on tenacity.

Retries transient failures with exponential backoff and jitter, logs a
warning before each retry and an error on exhaustion, then re-raises the
original exception so callers see the real cause.  Retrying is safe because
every settlement request carries an idempotency key.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def _log_before_sleep(api_name: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retrying API call",
            api_name=api_name,
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep if retry_state.next_action else 0,
            exception=str(exception),
        )

    return before_sleep


def _log_and_reraise(api_name: str) -> Callable[[RetryCallState], Any]:
    def on_exhausted(retry_state: RetryCallState) -> Any:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.error(
            "API call failed after all retries",
            api_name=api_name,
            attempts=retry_state.attempt_number,
            exception=str(exception),
        )
        # Re-raises the last attempt's exception
        return retry_state.outcome.result() if retry_state.outcome else None

    return on_exhausted


def resilient_api_call(
    api_name: str,
    retry_on: tuple[type[BaseException], ...],
    attempts: int = 3,
    initial_wait: float = 1.0,
    max_wait: float = 30.0,
) -> Callable[[F], F]:
    """Create a retry decorator for an API call.

    Args:
        api_name: Human-readable name for the API (used in logs).
        retry_on: Exception types considered transient.  Anything else
            propagates on the first failure.
        attempts: Maximum number of attempts, including the first.
        initial_wait: First backoff delay in seconds.
        max_wait: Upper bound on any single backoff delay.

    Returns:
        A decorator that wraps sync or async callables with retry logic.
    """

    def decorator(func: F) -> F:
        wrapped = retry(
            retry=retry_if_exception_type(retry_on),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=initial_wait, max=max_wait, jitter=initial_wait),
            before_sleep=_log_before_sleep(api_name),
            retry_error_callback=_log_and_reraise(api_name),
        )(func)
        return wrapped  # type: ignore[return-value]

    return decorator
