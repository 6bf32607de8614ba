"""
Address helpers - EIP-55 checksum normalization

Every address that enters the ledger or a contract goes through
``normalize_address`` so comparisons never depend on the caller's casing:

- Raw:      0x5ff137d4b0fdcd49dca30c7cf57e578a026d2789
- Checksum: 0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789
"""

from __future__ import annotations

from eth_utils import is_hex_address, keccak, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_address(address: str) -> str:
    """
    Convert an address to its EIP-55 checksummed form.

    Raises:
        ValueError: If ``address`` is not a 20-byte hex address
    """
    if not isinstance(address, str) or not is_hex_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def is_valid_address(address: str) -> bool:
    """True if ``address`` is a 20-byte hex address (any casing)."""
    return isinstance(address, str) and is_hex_address(address)


def same_address(a: str, b: str) -> bool:
    """Case-insensitive address equality; invalid input never matches."""
    if not (is_valid_address(a) and is_valid_address(b)):
        return False
    return a.lower() == b.lower()


def derive_address(*parts: bytes) -> str:
    """
    Deterministic contract address from arbitrary seed material.

    Uses the last 20 bytes of keccak256 over the concatenated parts, the way
    CREATE2 derives addresses from deployer, salt and init code hash.
    """
    return to_checksum_address(keccak(b"".join(parts))[-20:])
