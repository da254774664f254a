"""Domain models for gated-offer campaigns."""

from gatedoffer.models.activity import ActivityConfig, Criterion, ListingStatus
from gatedoffer.models.campaign import (
    CampaignInstance,
    ClaimReceipt,
    EligibilityConfig,
    FeeBreakdown,
    FeeConfig,
)
from gatedoffer.models.reward import (
    BatchPolicy,
    ClaimRecord,
    DistributionReport,
    RewardConfig,
    RewardMode,
    RewardStats,
)

__all__ = [
    "ActivityConfig",
    "BatchPolicy",
    "CampaignInstance",
    "ClaimReceipt",
    "ClaimRecord",
    "Criterion",
    "DistributionReport",
    "EligibilityConfig",
    "FeeBreakdown",
    "FeeConfig",
    "ListingStatus",
    "RewardConfig",
    "RewardMode",
    "RewardStats",
]
