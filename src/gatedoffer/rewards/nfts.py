"""NFT rewards — transfer from a broker's inventory, or mint on claim.

NFT_AIRDROP     owner-maintained eligible list; broker tokens
NFT_RAFFLE      owner-drawn winners; broker tokens
NFT_MINT        open to anyone admitted; minted up to a max supply

For the broker-backed variants the owner may pin specific token ids to
users with ``assign_token_ids``; everyone else receives the lowest-id
broker token not pinned to someone else.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from gatedoffer.crypto.hashing import to_address
from gatedoffer.models.reward import RewardConfig
from gatedoffer.rewards.base import BaseReward
from gatedoffer.rewards.payouts import MintPayout, NftPayout


class _BrokerNftReward(BaseReward):

    USES_CLAIMANT_LIST = True

    def _build_payout(self, config: RewardConfig) -> NftPayout:
        return NftPayout(config.asset, config.broker, config.total_or_expected_count)

    def _claimant_limit(self, config: RewardConfig) -> int:
        return config.total_or_expected_count

    def assign_token_ids(
        self,
        caller: str,
        users: Sequence[str],
        token_ids: Sequence[int],
    ) -> None:
        self._require_owner(caller)
        addresses = [to_address(u) for u in users]
        with self._lock:
            self._payout.assign(addresses, list(token_ids))

    def assigned_token(self, user: str) -> Optional[int]:
        return self._payout.assigned_token(to_address(user))


class NftAirdropReward(_BrokerNftReward):

    REWARD_TYPE = "NFT_AIRDROP"

    def _claimant_label(self) -> str:
        return "eligible"

    def add_eligible(self, caller: str, user: str) -> bool:
        return self._add_claimants(caller, [user]) == 1

    def add_eligible_batch(self, caller: str, users: Iterable[str]) -> int:
        return self._add_claimants(caller, users)

    def is_eligible(self, user: str) -> bool:
        return self._is_listed(user)

    def eligible_count(self) -> int:
        return len(self._claimants)


class NftRaffleReward(_BrokerNftReward):

    REWARD_TYPE = "NFT_RAFFLE"

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


class NftMintReward(BaseReward):
    """Mints a fresh token per claim; ``total_or_expected_count`` is the max supply.

    The reward id must be registered as a minter on the collection.
    """

    REWARD_TYPE = "NFT_MINT"

    def _build_payout(self, config: RewardConfig) -> MintPayout:
        return MintPayout(config.asset, config.total_or_expected_count)

    def minted(self) -> int:
        return self._payout.minted
