"""Shared pytest fixtures for the verification engine test suite."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from resonance.domain.models import Campaign, CampaignCriteria, EngagementMetrics
from resonance.domain.types import CampaignKind
from resonance.store import CampaignStore, InMemoryRepository
from resonance.validation import SubmissionValidator

WINDOW_START = datetime(2025, 1, 1, tzinfo=UTC)
DEADLINE = datetime(2025, 1, 31, tzinfo=UTC)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store() -> CampaignStore:
    """An empty campaign store over an in-memory repository."""
    return CampaignStore(InMemoryRepository())


@pytest.fixture
def make_campaign() -> Callable[..., Campaign]:
    """Factory for campaigns with a January 2025 eligibility window."""

    def _make(
        campaign_id: str = "c1",
        kind: CampaignKind = CampaignKind.OPEN,
        budget: str = "900",
        criteria: CampaignCriteria | None = None,
    ) -> Campaign:
        return Campaign(
            campaign_id=campaign_id,
            kind=kind,
            budget=Decimal(budget),
            deadline=DEADLINE,
            window_start=WINDOW_START,
            criteria=criteria or CampaignCriteria(),
        )

    return _make


@pytest.fixture
def validator(store: CampaignStore) -> SubmissionValidator:
    return SubmissionValidator(store)


@pytest.fixture
def in_window() -> datetime:
    """A timestamp inside the default window."""
    return WINDOW_START + timedelta(days=10)


@pytest.fixture
def sample_metrics() -> EngagementMetrics:
    """Metrics scoring (100 + 2*20 + 3*10) / 10000 * 1000 = 17."""
    return EngagementMetrics(likes=100, comments=20, shares=10, views=10000)
