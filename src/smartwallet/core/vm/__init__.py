"""
Minimal ledger VM.

Holds balances and deployed contract objects, runs message calls with value
and gas allowances, and rolls a frame back atomically when it faults.
"""

from .context import CallContext, CallResult, LogEntry
from .exceptions import (
    AbiDecodingError,
    CallDepthExceededError,
    CallFailed,
    InsufficientBalanceError,
    OutOfGasError,
    RevertError,
    UnauthorizedCaller,
    VMExecutionError,
)
from .ledger import Ledger

__all__ = [
    "Ledger",
    "CallContext",
    "CallResult",
    "LogEntry",
    "VMExecutionError",
    "RevertError",
    "UnauthorizedCaller",
    "CallFailed",
    "OutOfGasError",
    "CallDepthExceededError",
    "InsufficientBalanceError",
    "AbiDecodingError",
]
