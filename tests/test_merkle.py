"""Tests for the discount Merkle tree — proves roots are deterministic,
proofs verify, and any tampering with user, rate or path is detected."""

import pytest

from gatedoffer.crypto.hashing import discount_leaf, keccak
from gatedoffer.crypto.merkle import (
    DiscountTree,
    MerkleTree,
    MerkleVerifier,
    hash_pair,
    verify_proof,
)

A = "0x00000000000000000000000000000000000000a1"
B = "0x00000000000000000000000000000000000000b2"
C = "0x00000000000000000000000000000000000000c3"


def _leaf(byte: int) -> bytes:
    return bytes([byte]) * 32


class TestMerkleTree:
    def test_empty_tree(self) -> None:
        assert MerkleTree().compute_root() == keccak(b"")

    def test_single_leaf_is_root(self) -> None:
        tree = MerkleTree()
        tree.add_leaf(_leaf(1))
        assert tree.compute_root() == _leaf(1)

    def test_deterministic(self) -> None:
        """Same leaves produce same root regardless of insertion order."""
        tree1 = MerkleTree()
        for b in (1, 2, 3):
            tree1.add_leaf(_leaf(b))
        tree2 = MerkleTree()
        for b in (3, 1, 2):
            tree2.add_leaf(_leaf(b))
        assert tree1.compute_root() == tree2.compute_root()

    def test_odd_node_promoted(self) -> None:
        tree = MerkleTree()
        for b in (1, 2, 3):
            tree.add_leaf(_leaf(b))
        expected = hash_pair(hash_pair(_leaf(1), _leaf(2)), _leaf(3))
        assert tree.compute_root() == expected

    def test_inclusion_proof_every_leaf(self) -> None:
        tree = MerkleTree()
        for b in range(1, 6):
            tree.add_leaf(_leaf(b))
        root = tree.compute_root()
        for b in range(1, 6):
            proof = tree.inclusion_proof(_leaf(b))
            assert proof is not None
            assert proof.root == root
            assert verify_proof(proof.siblings, root, _leaf(b))

    def test_missing_leaf_no_proof(self) -> None:
        tree = MerkleTree()
        tree.add_leaf(_leaf(1))
        tree.compute_root()
        assert tree.inclusion_proof(_leaf(9)) is None

    def test_cannot_add_after_compute(self) -> None:
        tree = MerkleTree()
        tree.add_leaf(_leaf(1))
        tree.compute_root()
        with pytest.raises(RuntimeError):
            tree.add_leaf(_leaf(2))

    def test_proof_before_compute_raises(self) -> None:
        tree = MerkleTree()
        tree.add_leaf(_leaf(1))
        with pytest.raises(RuntimeError):
            tree.inclusion_proof(_leaf(1))

    def test_rejects_short_leaf(self) -> None:
        with pytest.raises(ValueError):
            MerkleTree().add_leaf(b"\x01" * 31)

    def test_pair_hash_order_independent(self) -> None:
        assert hash_pair(_leaf(1), _leaf(2)) == hash_pair(_leaf(2), _leaf(1))


class TestDiscountTree:
    def test_scenario_b(self) -> None:
        tree = DiscountTree([(A, 1000), (B, 2000)])
        proof = tree.proof_for(A, 1000)
        verifier = MerkleVerifier()
        assert verifier.verify(proof, tree.root, discount_leaf(A, 1000))
        # Replaying A's path for a different rate fails
        assert not verifier.verify(proof, tree.root, discount_leaf(A, 4000))

    def test_proof_bound_to_user(self) -> None:
        tree = DiscountTree([(A, 1000), (B, 1000)])
        proof = tree.proof_for(A, 1000)
        assert not verify_proof(proof, tree.root, discount_leaf(C, 1000))

    def test_tampered_sibling_fails(self) -> None:
        tree = DiscountTree([(A, 1000), (B, 2000), (C, 3000)])
        proof = tree.proof_for(B, 2000)
        tampered = [bytes([proof[0][0] ^ 1]) + proof[0][1:]] + proof[1:]
        assert not verify_proof(tampered, tree.root, discount_leaf(B, 2000))

    def test_root_independent_of_entry_order(self) -> None:
        first = DiscountTree([(A, 1000), (B, 2000), (C, 3000)])
        second = DiscountTree([(C, 3000), (A, 1000), (B, 2000)])
        assert first.root == second.root

    def test_address_case_does_not_matter(self) -> None:
        tree = DiscountTree([(A.upper().replace("0X", "0x"), 1000)])
        assert tree.rate_for(A) == 1000
        assert verify_proof(tree.proof_for(A, 1000), tree.root, discount_leaf(A, 1000))

    def test_unknown_entry_raises(self) -> None:
        tree = DiscountTree([(A, 1000)])
        with pytest.raises(KeyError):
            tree.proof_for(A, 2000)
        assert tree.rate_for(B) is None

    def test_duplicate_user_rejected(self) -> None:
        with pytest.raises(ValueError):
            DiscountTree([(A, 1000), (A, 2000)])

    def test_leaf_matches_packed_encoding(self) -> None:
        packed = bytes.fromhex(A[2:]) + (1000).to_bytes(32, "big")
        assert discount_leaf(A, 1000) == keccak(packed)
