"""
Ledger VM exceptions.

Every fault raised while a frame runs derives from VMExecutionError. The
ledger catches VMExecutionError at the frame boundary, restores the state
snapshot taken when the frame started, and either re-raises (direct
invocation) or reports a failed CallResult carrying ``revert_data``
(message call).
"""

from __future__ import annotations


class VMExecutionError(Exception):
    """Base exception for faults that abort a ledger frame."""

    @property
    def revert_data(self) -> bytes:
        """Raw bytes reported to the caller of the failed frame."""
        return b""


class RevertError(VMExecutionError):
    """Explicit revert raised by a contract with a raw revert payload."""

    def __init__(self, revert_data: bytes = b"", message: str = "") -> None:
        self._revert_data = bytes(revert_data)
        super().__init__(message or f"execution reverted (0x{self._revert_data.hex()})")

    @property
    def revert_data(self) -> bytes:
        return self._revert_data


class UnauthorizedCaller(VMExecutionError):
    """Raised when a caller holds none of the roles an operation requires."""

    SIGNATURE = "UnauthorizedCaller(address)"

    def __init__(self, caller: str) -> None:
        self.caller = caller
        super().__init__(f"Unauthorized caller: {caller}")

    @property
    def revert_data(self) -> bytes:
        from ..abi import encode_error

        return encode_error(self.SIGNATURE, self.caller)


class CallFailed(VMExecutionError):
    """
    Raised when an outbound call made on behalf of an account fails.

    ``return_data`` keeps the callee's full raw response; the frame reverts
    with it wrapped as ``CallFailed(bytes)``.
    """

    SIGNATURE = "CallFailed(bytes)"

    def __init__(self, return_data: bytes = b"") -> None:
        self.return_data = bytes(return_data)
        super().__init__(f"Call failed (0x{self.return_data.hex()})")

    @property
    def revert_data(self) -> bytes:
        from ..abi import encode_error

        return encode_error(self.SIGNATURE, self.return_data)


class OutOfGasError(VMExecutionError):
    """Raised when a frame consumes more gas than it was allowed."""
    pass


class CallDepthExceededError(VMExecutionError):
    """Raised when nested calls go past the configured maximum depth."""
    pass


class InsufficientBalanceError(VMExecutionError):
    """Raised when a value transfer exceeds the sender's balance."""
    pass


class AbiDecodingError(VMExecutionError):
    """Raised when calldata cannot be decoded against the expected types."""
    pass
