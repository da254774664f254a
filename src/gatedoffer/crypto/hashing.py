"""Keccak-256 hashing in the Solidity ``abi.encodePacked`` layout.

Both canonical messages in the system are packed keccak hashes so that
proofs produced here verify against an EVM deployment and vice versa:

    eligibility message = keccak256(abi.encodePacked(address user, uint256 timestamp, string activityType))
    discount leaf       = keccak256(abi.encodePacked(address user, uint256 discountRate))
"""

from __future__ import annotations

from web3 import Web3

UINT256_MAX = 2**256 - 1


def to_address(value: str) -> str:
    """Normalise an address to its EIP-55 checksum form.

    Raises ValueError for anything that is not a 20-byte hex address.
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"Not an address: {value!r}")
    return Web3.to_checksum_address(value)


def same_address(left: str, right: str) -> bool:
    """Case-insensitive address equality. Invalid input never matches."""
    try:
        return to_address(left) == to_address(right)
    except ValueError:
        return False


def keccak(data: bytes) -> bytes:
    return bytes(Web3.keccak(data))


def eligibility_message_hash(user: str, timestamp: int, activity_type: str) -> bytes:
    """Hash signed by the eligibility signer for one user at one instant."""
    _check_uint256(timestamp)
    return bytes(
        Web3.solidity_keccak(
            ["address", "uint256", "string"],
            [to_address(user), timestamp, activity_type],
        )
    )


def discount_leaf(user: str, discount_rate: int) -> bytes:
    """Merkle leaf committing a user to a discount rate (basis points)."""
    _check_uint256(discount_rate)
    return bytes(
        Web3.solidity_keccak(["address", "uint256"], [to_address(user), discount_rate])
    )


def _check_uint256(value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= UINT256_MAX:
        raise ValueError(f"Not a uint256: {value!r}")
