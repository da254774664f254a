"""Eligibility proofs — signed, time-bounded attestations.

An off-system signer attests that a user satisfies a campaign's
criterion at an instant. The wire format matches the EVM side:

    proof   = abi.encode(bytes signature, uint256 timestamp)
    message = keccak256(abi.encodePacked(address user, uint256 timestamp, string activityType))

The signature is an EIP-191 personal-message signature over the 32-byte
message hash (``encode_defunct(primitive=hash)``), the same convention
as ethers' ``signMessage(getBytes(hash))``. Signing and verification
both go through this module so the convention cannot drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError

from gatedoffer.crypto.hashing import eligibility_message_hash, same_address
from gatedoffer.errors import EligibilityFailure

SIGNATURE_LENGTH = 65


@dataclass(frozen=True)
class EligibilityProof:
    """Decoded eligibility proof. Ephemeral, never persisted."""
    signature: bytes
    timestamp: int

    @property
    def is_empty(self) -> bool:
        return len(self.signature) == 0

    def encode(self) -> bytes:
        return encode(["bytes", "uint256"], [self.signature, self.timestamp])

    @staticmethod
    def decode(data: bytes) -> EligibilityProof:
        """Decode the wire format. Raises ValueError on malformed input."""
        try:
            signature, timestamp = decode(["bytes", "uint256"], bytes(data))
        except DecodingError as exc:
            raise ValueError(f"Malformed eligibility proof: {exc}") from exc
        return EligibilityProof(signature=bytes(signature), timestamp=timestamp)


def is_empty_proof(data: bytes) -> bool:
    """True for no bytes at all, or a well-formed proof with no signature.

    Malformed bytes are not empty: they must go through verification so
    the caller sees MALFORMED_PROOF instead of a silent fallback.
    """
    if not data:
        return True
    try:
        return EligibilityProof.decode(data).is_empty
    except ValueError:
        return False


class SignatureVerifier(Protocol):
    """Recovers the signer of a 32-byte message hash."""

    def recover(self, message_hash: bytes, signature: bytes) -> Optional[str]:
        ...


class EthereumSignatureVerifier:
    """secp256k1 recovery under the EIP-191 personal-message convention."""

    def recover(self, message_hash: bytes, signature: bytes) -> Optional[str]:
        """Return the checksum address of the signer, or None if unrecoverable."""
        if len(signature) != SIGNATURE_LENGTH:
            return None
        message = encode_defunct(primitive=bytes(message_hash))
        try:
            return Account.recover_message(message, signature=bytes(signature))
        except (ValueError, ValidationError, BadSignature):
            return None


def sign_eligibility_proof(
    private_key: str | bytes,
    user: str,
    timestamp: int,
    activity_type: str,
) -> bytes:
    """Produce an encoded eligibility proof for ``user`` at ``timestamp``."""
    message_hash = eligibility_message_hash(user, timestamp, activity_type)
    signed = Account.sign_message(encode_defunct(primitive=message_hash), private_key=private_key)
    return EligibilityProof(signature=bytes(signed.signature), timestamp=timestamp).encode()


class EligibilityProofChecker:
    """Shared proof verification, composed into every activity module.

    The checker holds no campaign state: the signing key, validity window
    and activity tag are passed per call so that owner updates on the
    activity take effect immediately.
    """

    def __init__(self, verifier: Optional[SignatureVerifier] = None) -> None:
        self._verifier = verifier or EthereumSignatureVerifier()

    def check(
        self,
        user: str,
        proof: bytes,
        activity_type: str,
        signing_key: Optional[str],
        validity_duration: int,
        now: int,
    ) -> Optional[EligibilityFailure]:
        """Return None if the proof is valid, else the failure reason.

        Order: decode, freshness, signature. Freshness is checked before
        recovery so a stale proof is rejected regardless of who signed it.
        """
        try:
            decoded = EligibilityProof.decode(proof)
        except ValueError:
            return EligibilityFailure.MALFORMED_PROOF
        if decoded.is_empty:
            return EligibilityFailure.MISSING_PROOF
        if decoded.timestamp > now:
            return EligibilityFailure.PROOF_FROM_FUTURE
        if now - decoded.timestamp > validity_duration:
            return EligibilityFailure.PROOF_EXPIRED
        if not signing_key:
            return EligibilityFailure.WRONG_SIGNER

        try:
            message_hash = eligibility_message_hash(user, decoded.timestamp, activity_type)
        except ValueError:
            return EligibilityFailure.MALFORMED_PROOF
        signer = self._verifier.recover(message_hash, decoded.signature)
        if signer is None:
            return EligibilityFailure.INVALID_SIGNATURE
        if not same_address(signer, signing_key):
            return EligibilityFailure.WRONG_SIGNER
        return None
