"""Storage interface for campaign records and its in-memory implementation.

Repositories are dumb persistence: they never enforce lifecycle rules.
``CampaignStore`` owns the invariants and serializes writes per campaign.
"""

from __future__ import annotations

from typing import Protocol

from resonance.domain.models import Campaign, Participant, PayoutReceipt, Submission


class CampaignRepository(Protocol):
    """Persistence operations required by ``CampaignStore``."""

    def insert_campaign(self, campaign: Campaign) -> None: ...

    def get_campaign(self, campaign_id: str) -> Campaign | None: ...

    def list_campaigns(self) -> list[Campaign]: ...

    def update_campaign(self, campaign: Campaign) -> None: ...

    def insert_participant(self, participant: Participant) -> None: ...

    def get_participant(self, campaign_id: str, creator_address: str) -> Participant | None: ...

    def list_participants(self, campaign_id: str) -> list[Participant]: ...

    def list_campaign_ids_for_creator(self, creator_address: str) -> list[str]: ...

    def update_participant(self, participant: Participant) -> None: ...

    def insert_submission(self, submission: Submission) -> None: ...

    def has_submission_hash(self, campaign_id: str, unique_hash: str) -> bool: ...

    def list_submissions(self, campaign_id: str) -> list[Submission]: ...

    def get_receipt(self, campaign_id: str) -> PayoutReceipt | None: ...

    def settle(self, campaign: Campaign, receipt: PayoutReceipt) -> None:
        """Persist *receipt* and the paid *campaign* as one atomic write."""
        ...


class InMemoryRepository:
    """Dict-backed repository for tests and ``storage_backend=memory``."""

    def __init__(self) -> None:
        self._campaigns: dict[str, Campaign] = {}
        self._participants: dict[str, dict[str, Participant]] = {}
        self._submissions: dict[str, list[Submission]] = {}
        self._receipts: dict[str, PayoutReceipt] = {}

    def insert_campaign(self, campaign: Campaign) -> None:
        self._campaigns[campaign.campaign_id] = campaign
        self._participants.setdefault(campaign.campaign_id, {})
        self._submissions.setdefault(campaign.campaign_id, [])

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        return self._campaigns.get(campaign_id)

    def list_campaigns(self) -> list[Campaign]:
        return list(self._campaigns.values())

    def update_campaign(self, campaign: Campaign) -> None:
        self._campaigns[campaign.campaign_id] = campaign

    def insert_participant(self, participant: Participant) -> None:
        members = self._participants.setdefault(participant.campaign_id, {})
        members[participant.creator_address] = participant

    def get_participant(self, campaign_id: str, creator_address: str) -> Participant | None:
        return self._participants.get(campaign_id, {}).get(creator_address)

    def list_participants(self, campaign_id: str) -> list[Participant]:
        return list(self._participants.get(campaign_id, {}).values())

    def list_campaign_ids_for_creator(self, creator_address: str) -> list[str]:
        return [
            campaign_id
            for campaign_id, members in self._participants.items()
            if creator_address in members
        ]

    def update_participant(self, participant: Participant) -> None:
        self.insert_participant(participant)

    def insert_submission(self, submission: Submission) -> None:
        self._submissions.setdefault(submission.campaign_id, []).append(submission)

    def has_submission_hash(self, campaign_id: str, unique_hash: str) -> bool:
        return any(s.unique_hash == unique_hash for s in self._submissions.get(campaign_id, []))

    def list_submissions(self, campaign_id: str) -> list[Submission]:
        return list(self._submissions.get(campaign_id, []))

    def get_receipt(self, campaign_id: str) -> PayoutReceipt | None:
        return self._receipts.get(campaign_id)

    def settle(self, campaign: Campaign, receipt: PayoutReceipt) -> None:
        self._receipts[receipt.campaign_id] = receipt
        self._campaigns[campaign.campaign_id] = campaign
