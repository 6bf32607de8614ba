"""Utility helpers for secp256k1 keys and EIP-191 recoverable signatures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import keccak

from .address_utils import normalize_address, same_address

# EIP-191 version 0x45 header for a 32-byte payload
SIGNED_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"
SIGNATURE_LENGTH = 65
DIGEST_LENGTH = 32


@dataclass(frozen=True)
class RecoveredSigner:
    """
    Outcome of signer recovery: ``Valid(address)`` or ``Invalid(reason)``.

    An invalid result carries no address, so it can never compare equal to
    an account owner.
    """

    address: Optional[str] = None
    reason: str = ""

    @classmethod
    def valid(cls, address: str) -> "RecoveredSigner":
        return cls(address=normalize_address(address))

    @classmethod
    def invalid(cls, reason: str) -> "RecoveredSigner":
        return cls(address=None, reason=reason)

    @property
    def is_valid(self) -> bool:
        return self.address is not None

    def matches(self, expected: str) -> bool:
        return self.address is not None and same_address(self.address, expected)


def generate_keypair_hex() -> tuple[str, str]:
    """Return ``(private_key_hex, address)`` for a fresh random key."""
    account = Account.create()
    return "0x" + bytes(account.key).hex(), account.address


def address_from_private_key(private_hex: str) -> str:
    return Account.from_key(private_hex).address


def hash_signed_message(digest: bytes) -> bytes:
    """
    Apply the signed-message transform to a 32-byte digest.

    Returns keccak256(prefix || digest), the hash a wallet actually signs
    when asked to sign ``digest`` as a personal message.
    """
    if len(digest) != DIGEST_LENGTH:
        raise ValueError(f"Digest must be {DIGEST_LENGTH} bytes, got {len(digest)}")
    return keccak(SIGNED_MESSAGE_PREFIX + bytes(digest))


def sign_digest(private_hex: str, digest: bytes) -> bytes:
    """Sign ``digest`` as a personal message; returns 65 bytes ``r || s || v``."""
    if len(digest) != DIGEST_LENGTH:
        raise ValueError(f"Digest must be {DIGEST_LENGTH} bytes, got {len(digest)}")
    signed = Account.sign_message(encode_defunct(primitive=bytes(digest)), private_key=private_hex)
    return bytes(signed.signature)


def recover_signer(digest: bytes, signature: bytes) -> RecoveredSigner:
    """
    Recover the address that signed ``digest`` as a personal message.

    Never raises for bad input: wrong lengths, non-bytes values, an
    out-of-range ``v``/``r``/``s`` or a point that cannot be recovered all
    produce ``RecoveredSigner.invalid``.
    """
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_LENGTH:
        return RecoveredSigner.invalid("invalid_digest")
    if not isinstance(signature, (bytes, bytearray)):
        return RecoveredSigner.invalid("invalid_signature_type")
    if len(signature) != SIGNATURE_LENGTH:
        return RecoveredSigner.invalid("invalid_signature_length")

    try:
        address = Account.recover_message(
            encode_defunct(primitive=bytes(digest)),
            signature=bytes(signature),
        )
    except (BadSignature, ValidationError, ValueError, TypeError, IndexError) as e:
        return RecoveredSigner.invalid(f"unrecoverable: {type(e).__name__}")

    return RecoveredSigner.valid(address)
