"""Reward models — distribution config, the claim-once ledger record, stats.

Batch policy is an explicit per-instance setting. Reward variants in the
deployed system disagreed on whether automatic distribution aborts on
the first failure, so neither behaviour is a hidden default:

    ALL_OR_NOTHING  every entry is validated and funding preflighted
                    before any asset moves; one failure aborts the batch.
                    A transfer refused after preflight stops the batch
                    with DistributionAborted; deliveries before it stand
                    and are listed in its report.
    BEST_EFFORT     per-entry StateError / FundingError are recorded in
                    the DistributionReport and the batch continues.

Under both policies users who already claimed are skipped, not failed,
so re-submitting a partially processed list is safe.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from gatedoffer.crypto.hashing import to_address
from gatedoffer.errors import ConfigError

DEFAULT_MAX_BATCH_SIZE = 200


class RewardMode(str, enum.Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class BatchPolicy(str, enum.Enum):
    ALL_OR_NOTHING = "all_or_nothing"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True)
class RewardConfig:
    """Persisted reward configuration.

    ``total_or_expected_count`` is the pool size for the variant: total
    token amount for airdrops, expected winners for raffles, max supply
    for mints, spot count for whitelists.
    """
    name: str
    asset: Any = None
    per_claim_amount: int = 0
    total_or_expected_count: int = 0
    broker: Optional[str] = None
    automatic: bool = False
    distribution_date: int = 0
    claim_start: int = 0
    claim_end: int = 0
    batch_policy: BatchPolicy = BatchPolicy.BEST_EFFORT
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE

    @property
    def mode(self) -> RewardMode:
        return RewardMode.AUTOMATIC if self.automatic else RewardMode.MANUAL

    def validate(self) -> None:
        if not self.name:
            raise ConfigError("Reward name is required")
        if self.per_claim_amount < 0 or self.total_or_expected_count < 0:
            raise ConfigError("Reward amounts cannot be negative")
        if self.automatic and self.distribution_date <= 0:
            raise ConfigError("Automatic distribution needs a distribution date")
        if self.claim_end and self.claim_end < self.claim_start:
            raise ConfigError(
                f"Claim window ends ({self.claim_end}) before it starts ({self.claim_start})"
            )
        if self.max_batch_size <= 0:
            raise ConfigError("max_batch_size must be positive")
        if self.broker is not None:
            try:
                to_address(self.broker)
            except ValueError as exc:
                raise ConfigError(f"Invalid broker: {exc}") from exc


@dataclass
class ClaimRecord:
    """Per-user claim-once record. ``claimed`` never reverts to False."""
    claimed: bool = False
    assigned_asset_id: Optional[int] = None
    amount: int = 0
    claimed_at: Optional[int] = None


@dataclass(frozen=True)
class RewardStats:
    name: str
    reward_type: str
    mode: RewardMode
    distribution_date: int
    active: bool
    claimed_count: int
    claimed_amount: int
    capacity: int
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class DistributionReport:
    """Outcome of one automatic distribution batch."""
    policy: BatchPolicy
    claimed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def claimed_count(self) -> int:
        return len(self.claimed)
