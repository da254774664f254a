"""Asset ledger interfaces and in-memory reference ledgers."""

from gatedoffer.assets.ledgers import (
    AssetTransferError,
    FungibleLedger,
    InMemoryFungibleLedger,
    InMemoryNftLedger,
    NonFungibleLedger,
)

__all__ = [
    "AssetTransferError",
    "FungibleLedger",
    "InMemoryFungibleLedger",
    "InMemoryNftLedger",
    "NonFungibleLedger",
]
