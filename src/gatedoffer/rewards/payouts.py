"""Payouts — how a reward moves one unit of value to one user.

A reward module owns the claim-once ledger and the claim rules; its
payout owns the asset side. Every payout is called with the reward's
lock held, and raises FundingError before anything moves when the broker
cannot cover the claim. Ledger refusals (AssetTransferError) are
translated to FundingError here, so nothing above this layer sees them.

    FungiblePayout   pull a fixed amount from a broker's allowance
    NftPayout        transfer an assigned or auto-selected token from the broker
    MintPayout       mint a fresh token to the user, up to a max supply
    SpotPayout       hand out numbered whitelist spots, no asset
"""

from __future__ import annotations

from typing import Optional, Sequence

from gatedoffer.assets.ledgers import AssetTransferError, FungibleLedger, NonFungibleLedger
from gatedoffer.crypto.hashing import to_address
from gatedoffer.errors import ConfigError, FundingError


class FungiblePayout:
    """Pull ``amount`` per claim from ``broker`` using the reward's allowance.

    ``pool`` caps the total paid out (0 means the allowance is the only cap).
    """

    def __init__(self, ledger: FungibleLedger, broker: Optional[str], amount: int, pool: int) -> None:
        if ledger is None:
            raise ConfigError("Token rewards need a token ledger")
        if broker is None:
            raise ConfigError("Token rewards need a broker")
        if amount <= 0:
            raise ConfigError("Token rewards need a positive per-claim amount")
        if pool and pool < amount:
            raise ConfigError(f"Reward pool {pool} is smaller than one claim of {amount}")
        self.ledger = ledger
        self.broker = to_address(broker)
        self.amount = amount
        self.pool = pool
        self.paid_out = 0

    def preflight(self, spender: str, users: Sequence[str]) -> None:
        needed = self.amount * len(users)
        if self.pool and self.paid_out + needed > self.pool:
            raise FundingError(
                f"Reward pool exhausted: {self.paid_out} of {self.pool} paid, "
                f"{needed} more requested"
            )
        allowance = self.ledger.allowance(self.broker, spender)
        if allowance < needed:
            raise FundingError(f"Broker allowance {allowance} is below {needed}")
        balance = self.ledger.balance_of(self.broker)
        if balance < needed:
            raise FundingError(f"Broker balance {balance} is below {needed}")

    def deliver(self, spender: str, user: str) -> tuple[Optional[int], int]:
        self.preflight(spender, [user])
        try:
            self.ledger.transfer_from(spender, self.broker, user, self.amount)
        except AssetTransferError as exc:
            raise FundingError(str(exc)) from exc
        self.paid_out += self.amount
        return None, self.amount

    def stats(self) -> dict[str, object]:
        return {
            "token": self.ledger.symbol,
            "amount_per_claim": self.amount,
            "total_amount": self.pool,
            "paid_out": self.paid_out,
        }


class NftPayout:
    """Transfer one NFT per claim from the broker's inventory.

    Tokens pinned to a user with ``assign`` are delivered to that user;
    everyone else gets the lowest-id broker token not pinned to someone.
    The broker must have approved the reward as an operator.
    """

    def __init__(self, ledger: NonFungibleLedger, broker: Optional[str], pool: int) -> None:
        if ledger is None:
            raise ConfigError("NFT rewards need an NFT ledger")
        if broker is None:
            raise ConfigError("NFT rewards need a broker")
        self.ledger = ledger
        self.broker = to_address(broker)
        self.pool = pool
        self.delivered = 0
        self._assignments: dict[str, int] = {}

    def assign(self, users: Sequence[str], token_ids: Sequence[int]) -> None:
        if len(users) != len(token_ids):
            raise ConfigError("assign_token_ids needs one token id per user")
        if len(set(token_ids)) != len(token_ids):
            raise ConfigError("assign_token_ids got the same token id twice")
        taken = {t: u for u, t in self._assignments.items()}
        for user, token_id in zip(users, token_ids):
            holder = taken.get(token_id)
            if holder is not None and holder != user and holder not in users:
                raise ConfigError(f"Token {token_id} is already assigned to {holder}")
        for user, token_id in zip(users, token_ids):
            self._assignments[user] = token_id

    def assigned_token(self, user: str) -> Optional[int]:
        return self._assignments.get(user)

    def preflight(self, spender: str, users: Sequence[str]) -> None:
        """Check the pool, the operator approval and that every user in
        ``users`` can be served: pinned tokens still with the broker, and
        enough unpinned broker tokens for everyone else."""
        if self.pool and self.delivered + len(users) > self.pool:
            raise FundingError(f"NFT pool exhausted: {self.delivered} of {self.pool} delivered")
        if not self.ledger.is_approved_for_all(self.broker, spender):
            raise FundingError(f"Broker {self.broker} has not approved {spender}")
        held = set(self.ledger.tokens_of(self.broker))
        pinned = [self._assignments[u] for u in users if u in self._assignments]
        for token_id in pinned:
            if token_id not in held:
                raise FundingError(f"Assigned token {token_id} is not held by the broker")
        free = len(held - set(self._assignments.values()))
        unpinned = len(users) - len(pinned)
        if free < unpinned:
            raise FundingError(f"Broker has {free} unassigned tokens, {unpinned} needed")

    def deliver(self, spender: str, user: str) -> tuple[Optional[int], int]:
        if self.pool and self.delivered >= self.pool:
            raise FundingError(f"NFT pool exhausted: {self.delivered} of {self.pool} delivered")
        token_id = self._select(user)
        try:
            self.ledger.transfer_from(spender, self.broker, user, token_id)
        except AssetTransferError as exc:
            raise FundingError(str(exc)) from exc
        self.delivered += 1
        self._assignments.pop(user, None)
        return token_id, 1

    def _select(self, user: str) -> int:
        pinned = self._assignments.get(user)
        if pinned is not None:
            if self.ledger.owner_of(pinned) != self.broker:
                raise FundingError(f"Assigned token {pinned} is not held by the broker")
            return pinned
        reserved = set(self._assignments.values())
        for token_id in self.ledger.tokens_of(self.broker):
            if token_id not in reserved:
                return token_id
        raise FundingError(f"Broker {self.broker} has no unassigned tokens left")

    def stats(self) -> dict[str, object]:
        return {
            "collection": self.ledger.symbol,
            "total_amount": self.pool,
            "delivered": self.delivered,
            "assigned_pending": len(self._assignments),
        }


class MintPayout:
    """Mint one token per claim to the user. The reward must be a minter."""

    def __init__(self, ledger: NonFungibleLedger, max_supply: int) -> None:
        if ledger is None:
            raise ConfigError("Mint rewards need an NFT ledger")
        if max_supply <= 0:
            raise ConfigError("Mint rewards need a positive max supply")
        self.ledger = ledger
        self.max_supply = max_supply
        self.minted = 0

    def preflight(self, spender: str, users: Sequence[str]) -> None:
        if self.minted + len(users) > self.max_supply:
            raise FundingError(f"Max supply reached: {self.minted} of {self.max_supply} minted")

    def deliver(self, spender: str, user: str) -> tuple[Optional[int], int]:
        self.preflight(spender, [user])
        try:
            token_id = self.ledger.mint(spender, user)
        except AssetTransferError as exc:
            raise FundingError(str(exc)) from exc
        self.minted += 1
        return token_id, 1

    def stats(self) -> dict[str, object]:
        return {
            "collection": self.ledger.symbol,
            "max_supply": self.max_supply,
            "minted": self.minted,
        }


class SpotPayout:
    """Numbered whitelist spots. ``spots`` of 0 means unlimited."""

    def __init__(self, spots: int) -> None:
        self.spots = spots
        self.assigned = 0

    def preflight(self, spender: str, users: Sequence[str]) -> None:
        if self.spots and self.assigned + len(users) > self.spots:
            raise FundingError(f"Whitelist full: {self.assigned} of {self.spots} spots taken")

    def deliver(self, spender: str, user: str) -> tuple[Optional[int], int]:
        self.preflight(spender, [user])
        self.assigned += 1
        return self.assigned, 1

    def stats(self) -> dict[str, object]:
        return {"spots": self.spots, "assigned": self.assigned}
