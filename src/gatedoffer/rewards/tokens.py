"""Token rewards — fixed-amount ERC-20 style payouts from a broker.

TOKEN_AIRDROP pays anyone the orchestrator admits; TOKEN_RAFFLE pays only
the winners the owner has drawn. Both pull ``per_claim_amount`` from the
broker through the allowance granted to the reward, and both cap the
total at ``total_or_expected_count`` when it is set (for the raffle it is
the number of winners).
"""

from __future__ import annotations

from typing import Iterable

from gatedoffer.models.reward import RewardConfig
from gatedoffer.rewards.base import BaseReward
from gatedoffer.rewards.payouts import FungiblePayout


class TokenAirdropReward(BaseReward):

    REWARD_TYPE = "TOKEN_AIRDROP"

    def _build_payout(self, config: RewardConfig) -> FungiblePayout:
        return FungiblePayout(
            config.asset, config.broker, config.per_claim_amount, config.total_or_expected_count
        )


class TokenRaffleReward(BaseReward):
    """Token payout restricted to drawn winners.

    Usage:
        raffle.set_winners(owner, [alice, bob])
        raffle.winner_count()            # 2
        raffle.check_winner_status(bob)  # True
    """

    REWARD_TYPE = "TOKEN_RAFFLE"
    USES_CLAIMANT_LIST = True

    def _build_payout(self, config: RewardConfig) -> FungiblePayout:
        pool = config.per_claim_amount * config.total_or_expected_count
        return FungiblePayout(config.asset, config.broker, config.per_claim_amount, pool)

    def _claimant_limit(self, config: RewardConfig) -> int:
        return config.total_or_expected_count

    def _claimant_label(self) -> str:
        return "winners"

    def add_winners(self, caller: str, users: Iterable[str]) -> int:
        return self._add_claimants(caller, users)

    def set_winners(self, caller: str, users: Iterable[str]) -> None:
        self._replace_claimants(caller, users)

    def winner_count(self) -> int:
        return len(self._claimants)

    def winners(self) -> list[str]:
        return self._claimants.members()

    def check_winner_status(self, user: str) -> bool:
        return self._is_listed(user)
