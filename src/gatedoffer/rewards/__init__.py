"""Reward modules — claim-once delivery of tokens, NFTs and whitelist spots."""

from gatedoffer.rewards.base import BaseReward, ClaimantList
from gatedoffer.rewards.nfts import NftAirdropReward, NftMintReward, NftRaffleReward
from gatedoffer.rewards.tokens import TokenAirdropReward, TokenRaffleReward
from gatedoffer.rewards.whitelist import WhitelistRaffleReward, WhitelistSpotsReward

REWARD_TEMPLATES = {
    cls.REWARD_TYPE: cls
    for cls in (
        TokenAirdropReward,
        TokenRaffleReward,
        NftAirdropReward,
        NftRaffleReward,
        NftMintReward,
        WhitelistSpotsReward,
        WhitelistRaffleReward,
    )
}

__all__ = [
    "REWARD_TEMPLATES",
    "BaseReward",
    "ClaimantList",
    "NftAirdropReward",
    "NftMintReward",
    "NftRaffleReward",
    "TokenAirdropReward",
    "TokenRaffleReward",
    "WhitelistRaffleReward",
    "WhitelistSpotsReward",
]
