"""Prometheus metrics instrumentation for the verification engine.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus business metrics.
- ``SUBMISSIONS_TOTAL``: Counter of submissions by outcome
  (``accepted`` / ``flagged`` / ``rejected``).
- ``CAMPAIGNS_SETTLED``: Counter of campaigns reaching ``paid`` or ``refunded``.
- ``CAMPAIGNS_VERIFYING``: Gauge of campaigns currently awaiting settlement.

Business metrics are updated where the events happen, not by polling the store.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

SUBMISSIONS_TOTAL: Counter = Counter(
    "resonance_submissions_total",
    "Creator submissions processed, by outcome",
    ["outcome"],
)

CAMPAIGNS_SETTLED: Counter = Counter(
    "resonance_campaigns_settled_total",
    "Campaigns reaching a terminal status, by status",
    ["status"],
)

CAMPAIGNS_VERIFYING: Gauge = Gauge(
    "resonance_campaigns_verifying",
    "Number of campaigns in verifying status awaiting settlement",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
