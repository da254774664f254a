"""Activity models — campaign eligibility criteria.

An activity config is persisted with the campaign. Times are unix
seconds; ``0`` means "not set" for ``window_end`` (open ended) and
``snapshot_time`` (use live balances).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from gatedoffer.errors import ConfigError


class ListingStatus(int, enum.Enum):
    """Which held NFTs count towards a hold criterion."""
    ANY = 0
    LISTED = 1
    UNLISTED = 2


@dataclass(frozen=True)
class Criterion:
    """One (asset, threshold) requirement. ``asset`` is a ledger, or None
    for purchase criteria that are tracked entirely by recorded activity."""
    asset: Any
    threshold: int


@dataclass(frozen=True)
class ActivityConfig:
    criteria: tuple[Criterion, ...]
    window_start: int
    window_end: int = 0
    snapshot_time: int = 0
    listing_status: ListingStatus = ListingStatus.ANY
    min_purchase_amount: int = 0

    def validate(self) -> None:
        if not self.criteria:
            raise ConfigError("Activity needs at least one criterion")
        for c in self.criteria:
            if c.threshold <= 0:
                raise ConfigError(f"Criterion threshold must be positive, got {c.threshold}")
        if self.window_start < 0 or self.window_end < 0 or self.snapshot_time < 0:
            raise ConfigError("Activity times cannot be negative")
        if self.window_end and self.window_end < self.window_start:
            raise ConfigError(
                f"Activity window ends ({self.window_end}) before it starts "
                f"({self.window_start})"
            )
        if self.min_purchase_amount < 0:
            raise ConfigError("Minimum purchase amount cannot be negative")

    def in_window(self, now: int) -> bool:
        if now < self.window_start:
            return False
        return not self.window_end or now <= self.window_end
