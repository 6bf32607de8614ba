"""
In-process ledger.

The ledger owns every balance, the deployed contract objects and the event
log. Each frame, whether a raw message call (``call``) or a direct method
invocation (``invoke``), runs against a snapshot: if the frame raises anything at all the
snapshot is restored, so a frame either completes or leaves no trace.

Frames run one at a time and to completion. A contract that calls out hands
control to the callee synchronously; the callee may call back into any
contract, including the caller, within the same depth budget.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .. import config
from ..address_utils import normalize_address
from .context import CallContext, CallResult, LogEntry
from .exceptions import (
    CallDepthExceededError,
    InsufficientBalanceError,
    RevertError,
    VMExecutionError,
)

logger = logging.getLogger(__name__)


@dataclass
class _Snapshot:
    balances: Dict[str, int]
    contract_states: Dict[str, Dict[str, Any]]
    log_length: int


class Ledger:
    """Balances, contracts and events for one chain."""

    def __init__(
        self,
        chain_id: int = config.CHAIN_ID,
        default_gas: int = config.DEFAULT_CALL_GAS,
        max_call_depth: int = config.MAX_CALL_DEPTH,
    ) -> None:
        self.chain_id = chain_id
        self.default_gas = default_gas
        self.max_call_depth = max_call_depth
        self.balances: Dict[str, int] = {}
        self.contracts: Dict[str, Any] = {}
        self.logs: List[LogEntry] = []
        self.last_gas_used = 0

    # ==================== State ====================

    def deploy(self, contract: Any, value: int = 0) -> str:
        """
        Register a contract object at its address.

        Args:
            contract: Object exposing ``address``, ``handle_call``,
                ``snapshot_state`` and ``restore_state``
            value: Initial balance credited to the contract

        Returns:
            Normalized contract address
        """
        address = normalize_address(contract.address)
        if address in self.contracts:
            raise VMExecutionError(f"Contract already deployed at {address}")
        contract.address = address
        self.contracts[address] = contract
        if value:
            self.fund(address, value)

        logger.info(
            "Contract deployed",
            extra={
                "event": "ledger.contract_deployed",
                "address": address[:10],
                "contract_type": type(contract).__name__,
            },
        )
        return address

    def fund(self, address: str, amount: int) -> None:
        """Credit native units out of thin air (genesis allocation, faucets)."""
        if amount < 0:
            raise ValueError("Funding amount cannot be negative")
        address = normalize_address(address)
        self.balances[address] = self.balances.get(address, 0) + amount

    def balance_of(self, address: str) -> int:
        return self.balances.get(normalize_address(address), 0)

    def get_contract(self, address: str) -> Optional[Any]:
        return self.contracts.get(normalize_address(address))

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self.contracts

    def emit(self, entry: LogEntry) -> None:
        self.logs.append(entry)

    def emit_from(self, address: str, event: str, **args: Any) -> None:
        """Record an event on behalf of ``address`` outside any frame context."""
        self.emit(LogEntry(address=normalize_address(address), event=event, args=args))

    def events(self, address: Optional[str] = None, event: Optional[str] = None) -> List[LogEntry]:
        """Filter the event log by emitting contract and/or event name."""
        target = normalize_address(address) if address else None
        return [
            entry
            for entry in self.logs
            if (target is None or entry.address == target)
            and (event is None or entry.event == event)
        ]

    # ==================== Snapshots ====================

    def snapshot(self) -> _Snapshot:
        return _Snapshot(
            balances=dict(self.balances),
            contract_states={
                address: contract.snapshot_state()
                for address, contract in self.contracts.items()
            },
            log_length=len(self.logs),
        )

    def restore(self, snapshot: _Snapshot) -> None:
        self.balances = snapshot.balances
        for address, contract in list(self.contracts.items()):
            state = snapshot.contract_states.get(address)
            if state is None:
                # Deployed inside the reverted frame
                del self.contracts[address]
            else:
                contract.restore_state(state)
        del self.logs[snapshot.log_length:]

    # ==================== Frames ====================

    def _transfer(self, sender: str, to: str, value: int) -> None:
        if value < 0:
            raise VMExecutionError("Transfer value cannot be negative")
        if value == 0:
            return
        available = self.balances.get(sender, 0)
        if available < value:
            raise InsufficientBalanceError(
                f"Insufficient balance: {sender} has {available}, needs {value}"
            )
        self.balances[sender] = available - value
        self.balances[to] = self.balances.get(to, 0) + value

    @staticmethod
    def _frame_address(address: str) -> str:
        try:
            return normalize_address(address)
        except ValueError:
            raise RevertError(b"", f"Invalid address: {address!r}")

    def _run_frame(
        self,
        sender: str,
        to: str,
        value: int,
        gas: Optional[int],
        depth: int,
        body: Callable[[CallContext], Any],
    ) -> Any:
        """
        Run ``body`` in a fresh frame.

        Any exception raised by ``body``, VM fault or not, restores the
        snapshot before it propagates, so a failed frame leaves no trace.
        """
        self.last_gas_used = 0
        ctx = CallContext(
            ledger=self,
            sender=self._frame_address(sender),
            address=self._frame_address(to),
            value=value,
            gas_limit=self.default_gas if gas is None else gas,
            depth=depth,
        )
        if depth > self.max_call_depth:
            raise CallDepthExceededError(f"Call depth {depth} exceeds {self.max_call_depth}")

        snapshot = self.snapshot()
        try:
            self._transfer(ctx.sender, ctx.address, value)
            result = body(ctx)
        except Exception:
            self.restore(snapshot)
            self.last_gas_used = ctx.gas_used
            raise
        self.last_gas_used = ctx.gas_used
        return result

    def call(
        self,
        sender: str,
        to: str,
        value: int = 0,
        data: bytes = b"",
        gas: Optional[int] = None,
        depth: int = 0,
    ) -> CallResult:
        """
        Message call: move ``value`` and run the callee's code, if any.

        Never raises for callee failure. A failed frame is rolled back and
        reported as ``CallResult(success=False)`` with the callee's revert
        data.
        """

        def body(ctx: CallContext) -> bytes:
            contract = self.contracts.get(ctx.address)
            if contract is None:
                return b""
            return contract.handle_call(ctx, bytes(data)) or b""

        try:
            output = self._run_frame(sender, to, value, gas, depth, body)
        except VMExecutionError as e:
            logger.debug(
                "Message call failed",
                extra={
                    "event": "ledger.call_failed",
                    "sender": str(sender)[:10],
                    "to": str(to)[:10],
                    "value": value,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            return CallResult(
                success=False,
                return_data=e.revert_data,
                gas_used=self.last_gas_used,
                error=str(e),
            )
        return CallResult(success=True, return_data=bytes(output), gas_used=self.last_gas_used)

    def invoke(
        self,
        sender: str,
        to: str,
        method: str,
        *args: Any,
        value: int = 0,
        gas: Optional[int] = None,
        depth: int = 0,
        **kwargs: Any,
    ) -> Any:
        """
        Invoke ``method`` on the contract at ``to`` as ``sender``.

        Returns the method's return value. Faults are re-raised after the
        frame's effects have been rolled back.
        """
        self.last_gas_used = 0
        contract = self.contracts.get(self._frame_address(to))
        if contract is None:
            raise VMExecutionError(f"No contract deployed at {to}")
        if method not in contract.external_methods():
            raise VMExecutionError(f"{type(contract).__name__} has no external method {method!r}")
        bound = getattr(contract, method)

        return self._run_frame(
            sender,
            to,
            value,
            gas,
            depth,
            lambda ctx: bound(ctx, *args, **kwargs),
        )

    def send(self, sender: str, to: str, value: int, gas: Optional[int] = None) -> CallResult:
        """Plain value transfer (empty calldata)."""
        return self.call(sender, to, value=value, data=b"", gas=gas)
