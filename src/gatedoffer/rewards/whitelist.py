"""Whitelist rewards — numbered spots, no asset moves.

WHITELIST_SPOTS hands a spot to anyone the orchestrator admits until
``total_or_expected_count`` spots are gone (0 means unlimited).
WHITELIST_RAFFLE restricts the spots to drawn winners. The spot number
is recorded as the claim's ``assigned_asset_id``.
"""

from __future__ import annotations

from typing import Iterable

from gatedoffer.models.reward import RewardConfig
from gatedoffer.rewards.base import BaseReward
from gatedoffer.rewards.payouts import SpotPayout


class WhitelistSpotsReward(BaseReward):

    REWARD_TYPE = "WHITELIST_SPOTS"

    def _build_payout(self, config: RewardConfig) -> SpotPayout:
        return SpotPayout(config.total_or_expected_count)

    def whitelisted(self) -> list[str]:
        return [u for u, r in self._ledger.items() if r.claimed]


class WhitelistRaffleReward(WhitelistSpotsReward):

    REWARD_TYPE = "WHITELIST_RAFFLE"
    USES_CLAIMANT_LIST = True

    def _claimant_limit(self, config: RewardConfig) -> int:
        return config.total_or_expected_count

    def _claimant_label(self) -> str:
        return "winners"

    def set_winners(self, caller: str, users: Iterable[str]) -> None:
        self._replace_claimants(caller, users)

    def add_winners(self, caller: str, users: Iterable[str]) -> int:
        return self._add_claimants(caller, users)

    def winner_count(self) -> int:
        return len(self._claimants)

    def check_winner_status(self, user: str) -> bool:
        return self._is_listed(user)
