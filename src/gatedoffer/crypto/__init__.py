"""Cryptographic primitives — packed keccak hashing, discount Merkle trees, eligibility proofs."""

from gatedoffer.crypto.merkle import DiscountTree, MerkleTree, MerkleVerifier
from gatedoffer.crypto.signatures import (
    EligibilityProof,
    EligibilityProofChecker,
    EthereumSignatureVerifier,
    sign_eligibility_proof,
)

__all__ = [
    "DiscountTree",
    "EligibilityProof",
    "EligibilityProofChecker",
    "EthereumSignatureVerifier",
    "MerkleTree",
    "MerkleVerifier",
    "sign_eligibility_proof",
]
