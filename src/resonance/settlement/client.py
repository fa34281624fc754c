"""Client for the external settlement layer.

The settlement layer records score proofs on-ledger and moves funds.  This
module only consumes it: each operation is "submit a signed state change,
get back a transaction reference".  Every request carries an
``Idempotency-Key`` derived from the campaign id, so a retried or repeated
call can never pay twice.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

import httpx
import structlog

from resonance.domain.errors import SettlementError
from resonance.domain.models import PayoutSplit
from resonance.resilience.retry import resilient_api_call

logger = structlog.get_logger()


class TransientSettlementError(SettlementError):
    """A 5xx response: the settlement layer may succeed on retry."""


class SettlementClient(Protocol):
    """Operations exposed by the settlement layer."""

    async def submit_score_proof(
        self,
        campaign_id: str,
        creator_address: str,
        score: float,
        post_id: str,
        timestamp: datetime,
    ) -> str: ...

    async def submit_payout(self, campaign_id: str, splits: list[PayoutSplit]) -> str: ...

    async def submit_refund(self, campaign_id: str) -> str: ...


def format_fixed(value: Decimal | float) -> str:
    """Render a number with the settlement layer's 8-decimal precision."""
    return f"{Decimal(str(value)):.8f}"


class HttpSettlementClient:
    """Settlement client speaking JSON over HTTP.

    Transport errors and 5xx responses are retried; 4xx responses mean the
    transaction was rejected and fail immediately.  Either way the caller
    receives a ``SettlementError``.

    Args:
        base_url: Root URL of the settlement service.
        api_key: Bearer token sent with every request.
        timeout_seconds: Per-request HTTP timeout.
        retry_attempts: Attempts per request, including the first.
        retry_initial_wait: First backoff delay in seconds.
        http_client: Optional pre-built ``httpx.AsyncClient`` (tests inject a
            ``MockTransport`` here).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        retry_attempts: int = 3,
        retry_initial_wait: float = 1.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout_seconds
        )
        self._post = resilient_api_call(
            "settlement",
            retry_on=(httpx.TransportError, TransientSettlementError),
            attempts=retry_attempts,
            initial_wait=retry_initial_wait,
        )(self._post_once)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _post_once(self, path: str, idempotency_key: str, payload: dict[str, Any]) -> str:
        response = await self._client.post(
            path, json=payload, headers={"Idempotency-Key": idempotency_key}
        )
        if response.status_code >= 500:
            raise TransientSettlementError(
                f"Settlement layer error {response.status_code} on {path}"
            )
        if response.status_code >= 400:
            raise SettlementError(
                f"Settlement layer rejected {path}: {response.status_code} {response.text}"
            )
        try:
            tx_ref = response.json().get("txRef")
        except ValueError as exc:
            raise SettlementError(f"Settlement layer returned invalid JSON for {path}") from exc
        if not tx_ref:
            raise SettlementError(f"Settlement layer returned no txRef for {path}")
        return str(tx_ref)

    async def _submit(self, path: str, idempotency_key: str, payload: dict[str, Any]) -> str:
        try:
            tx_ref = await self._post(path, idempotency_key, payload)
        except SettlementError:
            raise
        except httpx.HTTPError as exc:
            raise SettlementError(f"Settlement layer unreachable on {path}: {exc}") from exc
        logger.info("settlement_submitted", path=path, idempotency_key=idempotency_key, tx_ref=tx_ref)
        return tx_ref

    async def submit_score_proof(
        self,
        campaign_id: str,
        creator_address: str,
        score: float,
        post_id: str,
        timestamp: datetime,
    ) -> str:
        """Record a creator's scored post on the ledger."""
        return await self._submit(
            "/score-proofs",
            f"score:{campaign_id}:{post_id}",
            {
                "campaignId": campaign_id,
                "creatorAddress": creator_address,
                "score": format_fixed(score),
                "postId": post_id,
                "timestamp": format_fixed(timestamp.timestamp()),
            },
        )

    async def submit_payout(self, campaign_id: str, splits: list[PayoutSplit]) -> str:
        """Pay out the campaign budget according to *splits*."""
        return await self._submit(
            "/payouts",
            f"payout:{campaign_id}",
            {
                "campaignId": campaign_id,
                "splits": [
                    {
                        "creatorAddress": s.creator_address,
                        "percent": format_fixed(s.percent),
                        "amount": format_fixed(s.amount),
                    }
                    for s in splits
                ],
            },
        )

    async def submit_refund(self, campaign_id: str) -> str:
        """Return the escrowed budget to the brand."""
        return await self._submit(
            "/refunds", f"refund:{campaign_id}", {"campaignId": campaign_id}
        )
