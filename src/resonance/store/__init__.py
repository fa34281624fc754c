"""Campaign persistence package.

Provides the ``CampaignStore`` service and its pluggable repositories:
in-memory for tests and SQLite for deployments.
"""

from resonance.store.repository import CampaignRepository, InMemoryRepository
from resonance.store.schema import init_campaign_tables, open_database
from resonance.store.sqlite import SqliteRepository
from resonance.store.store import CampaignStore

__all__ = [
    "CampaignRepository",
    "CampaignStore",
    "InMemoryRepository",
    "SqliteRepository",
    "init_campaign_tables",
    "open_database",
]
