"""Campaign assembly — registry, factory and the claim orchestrator."""

from gatedoffer.campaigns.factory import CampaignFactory, new_instance_id
from gatedoffer.campaigns.orchestrator import ClaimOrchestrator
from gatedoffer.campaigns.registry import CampaignRegistry

__all__ = [
    "CampaignFactory",
    "CampaignRegistry",
    "ClaimOrchestrator",
    "new_instance_id",
]
