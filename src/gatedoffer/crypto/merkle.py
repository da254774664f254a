"""Merkle tree for discount commitments.

Uses keccak-256 with sorted-pair hashing: a parent is
keccak(min(a, b) || max(a, b)). Because sibling order never matters, a
proof is just the list of sibling hashes from leaf to root and
verification does not depend on the leaf's position. Leaves are sorted
before construction so the root is independent of insertion order.
An unpaired node at the end of a level is promoted unchanged.

This is the layout produced by merkletreejs with ``{sort: true}`` and
consumed by OpenZeppelin's MerkleProof.verify.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from gatedoffer.crypto.hashing import discount_leaf, keccak, to_address


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single leaf."""
    leaf: bytes
    siblings: tuple[bytes, ...]
    root: bytes

    def hex_siblings(self) -> list[str]:
        return ["0x" + s.hex() for s in self.siblings]


class MerkleTree:
    """A deterministic sorted-pair Merkle tree.

    Usage:
        tree = MerkleTree()
        tree.add_leaf(leaf_a)
        tree.add_leaf(leaf_b)
        root = tree.compute_root()
        proof = tree.inclusion_proof(leaf_a)
    """

    def __init__(self) -> None:
        self._leaves: list[bytes] = []
        self._tree: list[list[bytes]] = []
        self._computed = False

    def add_leaf(self, leaf: bytes) -> None:
        """Add a 32-byte leaf hash. Must be called before compute_root."""
        if self._computed:
            raise RuntimeError("Tree already computed. Create a new tree.")
        if len(leaf) != 32:
            raise ValueError(f"Leaf must be 32 bytes, got {len(leaf)}")
        self._leaves.append(bytes(leaf))

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    def compute_root(self) -> bytes:
        """Compute the Merkle root.

        If there are no leaves, returns keccak of the empty string.
        """
        if not self._leaves:
            self._tree = [[]]
            self._computed = True
            return keccak(b"")

        current_level = sorted(self._leaves)
        self._tree = [current_level]
        while len(current_level) > 1:
            next_level: list[bytes] = []
            for i in range(0, len(current_level), 2):
                if i + 1 < len(current_level):
                    next_level.append(hash_pair(current_level[i], current_level[i + 1]))
                else:
                    next_level.append(current_level[i])
            self._tree.append(next_level)
            current_level = next_level

        self._computed = True
        return current_level[0]

    def inclusion_proof(self, leaf: bytes) -> Optional[MerkleProof]:
        """Generate an inclusion proof for a leaf.

        Returns None if the leaf is not in the tree.
        Must call compute_root first.
        """
        if not self._computed:
            raise RuntimeError("Must call compute_root before generating proofs")

        leaves = self._tree[0]
        if leaf not in leaves:
            return None

        idx = leaves.index(leaf)
        siblings: list[bytes] = []
        for level in self._tree[:-1]:
            sibling_idx = idx + 1 if idx % 2 == 0 else idx - 1
            if sibling_idx < len(level):
                siblings.append(level[sibling_idx])
            idx //= 2

        return MerkleProof(leaf=leaf, siblings=tuple(siblings), root=self._tree[-1][0])


class MerkleVerifier:
    """Stateless membership check, injectable into the orchestrator."""

    def verify(self, proof: Sequence[bytes], root: bytes, leaf: bytes) -> bool:
        return verify_proof(proof, root, leaf)


class DiscountTree:
    """Builds a discount root over (user, rate) entries and serves proofs.

    Usage:
        tree = DiscountTree([(alice, 1000), (bob, 2000)])
        tree.root
        tree.proof_for(alice, 1000)
    """

    def __init__(self, entries: Iterable[tuple[str, int]]) -> None:
        self._tree = MerkleTree()
        self._entries: dict[str, int] = {}
        for user, rate in entries:
            address = to_address(user)
            if address in self._entries:
                raise ValueError(f"Duplicate discount entry for {address}")
            self._entries[address] = rate
            self._tree.add_leaf(discount_leaf(address, rate))
        self.root = self._tree.compute_root()

    def __len__(self) -> int:
        return len(self._entries)

    def rate_for(self, user: str) -> Optional[int]:
        return self._entries.get(to_address(user))

    def proof_for(self, user: str, discount_rate: int) -> list[bytes]:
        """Sibling path for (user, rate). Raises KeyError if not committed."""
        proof = self._tree.inclusion_proof(discount_leaf(user, discount_rate))
        if proof is None:
            raise KeyError(f"No discount entry for {user} at rate {discount_rate}")
        return list(proof.siblings)


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Order-independent parent hash."""
    if left <= right:
        return keccak(left + right)
    return keccak(right + left)


def verify_proof(proof: Sequence[bytes], root: bytes, leaf: bytes) -> bool:
    """Fold the sibling path over the leaf and compare with the root."""
    computed = bytes(leaf)
    for sibling in proof:
        computed = hash_pair(computed, bytes(sibling))
    return computed == bytes(root)
