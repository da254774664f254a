"""Asset ledgers — the fungible and non-fungible balance primitives.

Ledgers are external collaborators: campaigns only read balances and
move assets through the two protocols below. The in-memory ledgers are
complete reference implementations with ERC-20 / ERC-721 semantics
(allowances, operator approvals, authorised minters). They back the test
suite and local dry runs; a chain-backed ledger implements the same
protocol.

Identities are plain strings. Users and brokers are checksum addresses;
spenders and operators may be campaign instance identities.
"""

from __future__ import annotations

import threading
from typing import Optional, Protocol


class AssetTransferError(Exception):
    """A ledger refused to move an asset (allowance, balance, ownership, minting)."""


class FungibleLedger(Protocol):
    symbol: str

    def balance_of(self, owner: str) -> int:
        ...

    def allowance(self, owner: str, spender: str) -> int:
        ...

    def transfer(self, owner: str, to: str, amount: int) -> None:
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        ...


class NonFungibleLedger(Protocol):
    symbol: str

    def balance_of(self, owner: str) -> int:
        ...

    def owner_of(self, token_id: int) -> Optional[str]:
        ...

    def tokens_of(self, owner: str) -> list[int]:
        ...

    def is_listed(self, token_id: int) -> bool:
        ...

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        ...

    def transfer_from(self, operator: str, owner: str, to: str, token_id: int) -> None:
        ...

    def mint(self, minter: str, to: str, token_id: Optional[int] = None) -> int:
        ...


class InMemoryFungibleLedger:
    """ERC-20 style ledger held in memory.

    Usage:
        token = InMemoryFungibleLedger("RWD")
        token.mint(broker, 1_000)
        token.approve(broker, reward_id, 1_000)
        token.transfer_from(reward_id, broker, user, 20)
    """

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}
        self._lock = threading.RLock()

    def mint(self, to: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        with self._lock:
            self._balances[to] = self._balances.get(to, 0) + amount

    def balance_of(self, owner: str) -> int:
        return self._balances.get(owner, 0)

    def total_supply(self) -> int:
        return sum(self._balances.values())

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Allowance cannot be negative")
        with self._lock:
            self._allowances[(owner, spender)] = amount

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def transfer(self, owner: str, to: str, amount: int) -> None:
        with self._lock:
            self._move(owner, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        """Move ``amount`` from ``owner`` to ``to`` against the spender's allowance."""
        with self._lock:
            allowed = self.allowance(owner, spender)
            if allowed < amount:
                raise AssetTransferError(
                    f"{self.symbol}: allowance {allowed} of {spender} over {owner} "
                    f"is below {amount}"
                )
            self._move(owner, to, amount)
            self._allowances[(owner, spender)] = allowed - amount

    def _move(self, owner: str, to: str, amount: int) -> None:
        if amount <= 0:
            raise AssetTransferError(f"{self.symbol}: transfer amount must be positive")
        balance = self.balance_of(owner)
        if balance < amount:
            raise AssetTransferError(
                f"{self.symbol}: balance {balance} of {owner} is below {amount}"
            )
        self._balances[owner] = balance - amount
        self._balances[to] = self.balance_of(to) + amount


class InMemoryNftLedger:
    """ERC-721 style ledger held in memory.

    Token ids start at 1. Minting is restricted to authorised minters,
    transfers to the owner or an approved operator.
    """

    def __init__(self, symbol: str, admin: Optional[str] = None) -> None:
        self.symbol = symbol
        self._owners: dict[int, str] = {}
        self._operators: set[tuple[str, str]] = set()
        self._minters: set[str] = {admin} if admin else set()
        self._listed: set[int] = set()
        self._next_id = 1
        self._lock = threading.RLock()

    def add_minter(self, minter: str) -> None:
        self._minters.add(minter)

    def mint(self, minter: str, to: str, token_id: Optional[int] = None) -> int:
        with self._lock:
            if minter not in self._minters:
                raise AssetTransferError(f"{self.symbol}: {minter} is not a minter")
            if token_id is None:
                while self._next_id in self._owners:
                    self._next_id += 1
                token_id = self._next_id
            if token_id in self._owners:
                raise AssetTransferError(f"{self.symbol}: token {token_id} already minted")
            self._owners[token_id] = to
            return token_id

    def owner_of(self, token_id: int) -> Optional[str]:
        return self._owners.get(token_id)

    def balance_of(self, owner: str) -> int:
        return sum(1 for o in self._owners.values() if o == owner)

    def tokens_of(self, owner: str) -> list[int]:
        return sorted(t for t, o in self._owners.items() if o == owner)

    def total_supply(self) -> int:
        return len(self._owners)

    def set_approval_for_all(self, owner: str, operator: str, approved: bool) -> None:
        with self._lock:
            if approved:
                self._operators.add((owner, operator))
            else:
                self._operators.discard((owner, operator))

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return (owner, operator) in self._operators

    def set_listed(self, token_id: int, listed: bool) -> None:
        if token_id not in self._owners:
            raise AssetTransferError(f"{self.symbol}: unknown token {token_id}")
        if listed:
            self._listed.add(token_id)
        else:
            self._listed.discard(token_id)

    def is_listed(self, token_id: int) -> bool:
        return token_id in self._listed

    def transfer_from(self, operator: str, owner: str, to: str, token_id: int) -> None:
        with self._lock:
            current = self._owners.get(token_id)
            if current != owner:
                raise AssetTransferError(
                    f"{self.symbol}: token {token_id} is not owned by {owner}"
                )
            if operator != owner and not self.is_approved_for_all(owner, operator):
                raise AssetTransferError(
                    f"{self.symbol}: {operator} is not approved for {owner}"
                )
            self._owners[token_id] = to
            self._listed.discard(token_id)
