"""
smartwallet configuration

Values are read once from environment variables at import time. Every
setting has a safe default so the package works out of the box in tests;
malformed values raise ConfigurationError instead of being silently coerced.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"
    DEVNET = "devnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read a non-negative integer setting, accepting decimal or 0x-hex."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw, 0)
    except ValueError:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    return value


def _get_network(env_var: str, default: NetworkType) -> NetworkType:
    raw = os.getenv(env_var, "").strip().lower()
    if not raw:
        return default
    try:
        return NetworkType(raw)
    except ValueError:
        valid = ", ".join(n.value for n in NetworkType)
        raise ConfigurationError(f"{env_var} must be one of: {valid}; got {raw!r}")


def _get_address(env_var: str, default: str) -> str:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    body = raw[2:] if raw.lower().startswith("0x") else raw
    if len(body) != 40:
        raise ConfigurationError(f"{env_var} must be a 20-byte hex address, got {raw!r}")
    try:
        int(body, 16)
    except ValueError:
        raise ConfigurationError(f"{env_var} contains non-hex characters: {raw!r}")
    return "0x" + body


NETWORK = _get_network("SMARTWALLET_NETWORK", NetworkType.DEVNET)

_DEFAULT_CHAIN_IDS = {
    NetworkType.MAINNET: 1,
    NetworkType.TESTNET: 11155111,
    NetworkType.DEVNET: 31337,
}

CHAIN_ID = _get_int("SMARTWALLET_CHAIN_ID", _DEFAULT_CHAIN_IDS[NETWORK], minimum=1)

# Canonical EntryPoint v0.6 deployment address
ENTRY_POINT_ADDRESS = _get_address(
    "SMARTWALLET_ENTRY_POINT", "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
)

# Gas allowance handed to a top-level frame when the caller names none
DEFAULT_CALL_GAS = _get_int("SMARTWALLET_DEFAULT_CALL_GAS", 30_000_000, minimum=1)

# Kept well below the EVM limit of 1024: every ledger frame nests several
# Python frames and must stay inside the interpreter recursion limit
MAX_CALL_DEPTH = _get_int("SMARTWALLET_MAX_CALL_DEPTH", 64, minimum=1)

if NETWORK is NetworkType.MAINNET and CHAIN_ID != 1:
    logger.warning(
        "Mainnet network configured with non-mainnet chain id %s",
        CHAIN_ID,
        extra={"event": "config.chain_id_mismatch", "chain_id": CHAIN_ID},
    )
