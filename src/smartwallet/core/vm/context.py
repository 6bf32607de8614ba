"""
Execution context handed to every contract frame.

A CallContext knows who called (``sender``), which contract is running
(``address``), how much value came with the call and how much gas the frame
may still burn. Contracts reach the rest of the ledger only through it:
outbound message calls (``call``), nested method invocations (``invoke``)
and event emission (``emit``).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from .exceptions import OutOfGasError

if TYPE_CHECKING:
    from .ledger import Ledger

# Gas schedule (subset of the EVM schedule the contracts here charge)
GAS_CALL = 700
GAS_CALL_VALUE = 9_000
GAS_ECRECOVER = 3_000
GAS_SLOAD = 800
GAS_SSTORE = 20_000
GAS_SSTORE_UPDATE = 5_000
GAS_LOG = 375


@dataclass
class CallResult:
    """Outcome of a message call."""

    success: bool
    return_data: bytes = b""
    gas_used: int = 0
    error: str = ""


@dataclass
class LogEntry:
    """Event emitted by a contract."""

    address: str
    event: str
    args: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass
class CallContext:
    """Per-frame execution context."""

    ledger: "Ledger"
    sender: str
    address: str
    value: int = 0
    gas_limit: int = 0
    gas_used: int = 0
    depth: int = 0

    @property
    def gas_remaining(self) -> int:
        return max(0, self.gas_limit - self.gas_used)

    def use_gas(self, amount: int) -> None:
        """
        Charge ``amount`` gas to this frame.

        Raises:
            OutOfGasError: If the frame's allowance is exhausted
        """
        if amount < 0:
            raise ValueError("Gas amount cannot be negative")
        if self.gas_used + amount > self.gas_limit:
            self.gas_used = self.gas_limit
            raise OutOfGasError(
                f"Out of gas at {self.address}: limit {self.gas_limit}, needed {amount} more"
            )
        self.gas_used += amount

    def _child_gas(self, gas: Optional[int]) -> int:
        if gas is None:
            return self.gas_remaining
        return min(gas, self.gas_remaining)

    def call(
        self,
        to: str,
        value: int = 0,
        data: bytes = b"",
        gas: Optional[int] = None,
    ) -> CallResult:
        """
        Message call from this contract; never raises for callee failure.

        The callee gets ``min(gas, remaining)`` gas (all remaining gas when
        ``gas`` is None); whatever it burns is charged to this frame.
        """
        self.use_gas(GAS_CALL + (GAS_CALL_VALUE if value else 0))
        result = self.ledger.call(
            self.address,
            to,
            value=value,
            data=data,
            gas=self._child_gas(gas),
            depth=self.depth + 1,
        )
        self.gas_used = min(self.gas_limit, self.gas_used + result.gas_used)
        return result

    def invoke(
        self,
        to: str,
        method: str,
        *args: Any,
        value: int = 0,
        gas: Optional[int] = None,
        **kwargs: Any,
    ) -> Any:
        """Invoke a contract method as a nested frame; faults propagate."""
        self.use_gas(GAS_CALL + (GAS_CALL_VALUE if value else 0))
        child_gas = self._child_gas(gas)
        try:
            return self.ledger.invoke(
                self.address,
                to,
                method,
                *args,
                value=value,
                gas=child_gas,
                depth=self.depth + 1,
                **kwargs,
            )
        finally:
            self.gas_used = min(self.gas_limit, self.gas_used + self.ledger.last_gas_used)

    def emit(self, event: str, **args: Any) -> None:
        self.use_gas(GAS_LOG)
        self.ledger.emit(LogEntry(address=self.address, event=event, args=args))
