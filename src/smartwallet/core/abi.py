"""
Minimal contract ABI encoding.

Supports the handful of types the account and the token speak:
``address``, ``uint256``, ``bool`` and dynamic ``bytes``. Head/tail layout
follows the Solidity ABI: static values occupy one 32-byte word in the head,
``bytes`` stores an offset in the head and ``length || padded data`` in the
tail.
"""

from __future__ import annotations

from typing import Any, Sequence

from eth_utils import function_signature_to_4byte_selector

from .address_utils import normalize_address
from .vm.exceptions import AbiDecodingError

WORD = 32
UINT256_MAX = 2**256 - 1


def selector(signature: str) -> bytes:
    """4-byte function selector for e.g. ``"transfer(address,uint256)"``."""
    return function_signature_to_4byte_selector(signature)


def arg_types(signature: str) -> list[str]:
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [t.strip() for t in inner.split(",") if t.strip()]


def _pad(data: bytes) -> bytes:
    remainder = len(data) % WORD
    return data + b"\x00" * ((WORD - remainder) % WORD)


def _encode_static(abi_type: str, value: Any) -> bytes:
    if abi_type == "address":
        return bytes.fromhex(normalize_address(value)[2:]).rjust(WORD, b"\x00")
    if abi_type == "uint256":
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT256_MAX:
            raise ValueError(f"uint256 out of range: {value!r}")
        return value.to_bytes(WORD, "big")
    if abi_type == "bool":
        return (1 if value else 0).to_bytes(WORD, "big")
    raise ValueError(f"Unsupported ABI type: {abi_type}")


def encode_args(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """ABI-encode ``values`` as a tuple of ``types``."""
    if len(types) != len(values):
        raise ValueError(f"Expected {len(types)} values, got {len(values)}")

    head_size = WORD * len(types)
    head = b""
    tail = b""
    for abi_type, value in zip(types, values):
        if abi_type == "bytes":
            data = bytes(value)
            head += (head_size + len(tail)).to_bytes(WORD, "big")
            tail += len(data).to_bytes(WORD, "big") + _pad(data)
        else:
            head += _encode_static(abi_type, value)
    return head + tail


def encode_call(signature: str, *args: Any) -> bytes:
    """Selector followed by the encoded arguments."""
    return selector(signature) + encode_args(arg_types(signature), args)


def _read_word(data: bytes, offset: int) -> int:
    if offset < 0 or offset + WORD > len(data):
        raise AbiDecodingError(f"Calldata too short: need word at {offset}, have {len(data)} bytes")
    return int.from_bytes(data[offset : offset + WORD], "big")


def decode_args(types: Sequence[str], data: bytes) -> list[Any]:
    """
    Decode an ABI-encoded tuple.

    Raises:
        AbiDecodingError: If ``data`` is truncated or a value is out of range
    """
    values: list[Any] = []
    for index, abi_type in enumerate(types):
        word = _read_word(data, index * WORD)
        if abi_type == "address":
            if word >> 160:
                raise AbiDecodingError(f"Dirty high bits in address argument {index}")
            values.append(normalize_address("0x" + word.to_bytes(20, "big").hex()))
        elif abi_type == "uint256":
            values.append(word)
        elif abi_type == "bool":
            if word > 1:
                raise AbiDecodingError(f"Invalid bool in argument {index}")
            values.append(word == 1)
        elif abi_type == "bytes":
            length = _read_word(data, word)
            start = word + WORD
            if start + length > len(data):
                raise AbiDecodingError(
                    f"Bytes argument {index} overruns calldata ({start + length} > {len(data)})"
                )
            values.append(bytes(data[start : start + length]))
        else:
            raise AbiDecodingError(f"Unsupported ABI type: {abi_type}")
    return values


def split_calldata(data: bytes) -> tuple[bytes, bytes]:
    """Split calldata into ``(selector, encoded_args)``."""
    if len(data) < 4:
        raise AbiDecodingError(f"Calldata shorter than a selector ({len(data)} bytes)")
    return bytes(data[:4]), bytes(data[4:])


def encode_error(signature: str, *args: Any) -> bytes:
    """Encode a custom error the same way a call is encoded."""
    return encode_call(signature, *args)
