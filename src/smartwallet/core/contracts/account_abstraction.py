"""
Account Abstraction Implementation (ERC-4337 Style).

Provides a minimal smart contract wallet owned by a single key:
- Signature validation against the owner (EIP-191 signed digests)
- Arbitrary single-call execution by the EntryPoint or the owner
- Prefund payment back to the EntryPoint during validation
- Single-owner ownership transfer

Architecture:
- UserOperation: Struct representing user intent
- EntryPoint: Trusted coordinator that hashes, validates and executes UserOps
- SimpleAccount: The user's smart contract wallet
- AccountFactory: Deterministic deployment of accounts

Security model:
- Only the EntryPoint may call validate_user_op
- Only the EntryPoint or the owner may call execute
- A bad signature is reported as SIG_VALIDATION_FAILED, never raised
- Nonces and replay protection are the EntryPoint's responsibility
- There is no reentrancy lock; callees may call back into the account and
  are subject to the same caller checks as anyone else
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from eth_utils import keccak

from .. import config
from ..abi import decode_args, encode_args, encode_call, encode_error, selector, split_calldata
from ..address_utils import ZERO_ADDRESS, derive_address, normalize_address, same_address
from ..crypto_utils import recover_signer
from ..vm.context import GAS_ECRECOVER, GAS_SSTORE_UPDATE, CallContext, CallResult
from ..vm.exceptions import CallFailed, RevertError, UnauthorizedCaller, VMExecutionError
from .base import Contract

logger = logging.getLogger(__name__)


# ERC-4337 Constants
SIG_VALIDATION_SUCCESS = 0
SIG_VALIDATION_FAILED = 1

EXECUTE_SIGNATURE = "execute(address,uint256,bytes)"
ERR_INVALID_OWNER = "OwnableInvalidOwner(address)"


class CallerRole(Enum):
    """Roles a caller can hold with respect to a SimpleAccount."""
    ENTRY_POINT = "entry_point"
    OWNER = "owner"
    UNAUTHORIZED = "unauthorized"


@dataclass
class UserOperation:
    """
    ERC-4337 UserOperation struct.

    Represents a user's intent to execute a transaction. ``calldata`` is the
    encoded ``execute(address,uint256,bytes)`` call the EntryPoint forwards
    to the account once validation passed.
    """

    sender: str  # Smart account address
    nonce: int = 0
    init_code: bytes = b""
    calldata: bytes = b""
    call_gas_limit: int = 200_000
    verification_gas_limit: int = 100_000
    pre_verification_gas: int = 50_000
    max_fee_per_gas: int = 1_000_000_000  # 1 Gwei
    max_priority_fee_per_gas: int = 1_000_000_000
    paymaster_and_data: bytes = b""
    signature: bytes = b""  # 65-byte r || s || v

    @classmethod
    def for_call(
        cls,
        sender: str,
        dest: str,
        value: int,
        func: bytes,
        nonce: int = 0,
        **kwargs: Any,
    ) -> "UserOperation":
        """Build a UserOp whose calldata is ``execute(dest, value, func)``."""
        return cls(
            sender=normalize_address(sender),
            nonce=nonce,
            calldata=encode_call(EXECUTE_SIGNATURE, dest, value, func),
            **kwargs,
        )

    def pack(self) -> bytes:
        """ABI-pack the UserOp for hashing (without signature)."""
        return encode_args(
            ["address"] + ["uint256"] * 9,
            [
                self.sender,
                self.nonce,
                int.from_bytes(keccak(self.init_code), "big"),
                int.from_bytes(keccak(self.calldata), "big"),
                self.call_gas_limit,
                self.verification_gas_limit,
                self.pre_verification_gas,
                self.max_fee_per_gas,
                self.max_priority_fee_per_gas,
                int.from_bytes(keccak(self.paymaster_and_data), "big"),
            ],
        )

    def hash(self, entry_point: str, chain_id: int) -> bytes:
        """
        Get UserOp hash for signing.

        Binds the packed op to the EntryPoint address and chain id so a
        signature cannot be replayed on another coordinator or chain.
        """
        inner_hash = keccak(self.pack())
        return keccak(
            encode_args(
                ["uint256", "address", "uint256"],
                [int.from_bytes(inner_hash, "big"), entry_point, chain_id],
            )
        )

    def required_prefund(self) -> int:
        """Maximum gas cost the EntryPoint may charge for this op."""
        max_gas = self.verification_gas_limit + self.call_gas_limit + self.pre_verification_gas
        return max_gas * self.max_fee_per_gas

    def decode_call(self) -> Tuple[str, int, bytes]:
        """Decode ``calldata`` back into ``(dest, value, func)``."""
        sel, encoded = split_calldata(self.calldata)
        if sel != selector(EXECUTE_SIGNATURE):
            raise VMExecutionError(f"UserOp calldata is not an execute call (0x{sel.hex()})")
        dest, value, func = decode_args(["address", "uint256", "bytes"], encoded)
        return dest, value, func


class SimpleAccount(Contract):
    """
    Minimal single-owner smart account.

    The EntryPoint address is fixed for the lifetime of the account. The
    owner is the single address whose signature authorizes UserOps; only
    the current owner can hand ownership to someone else.
    """

    ABI: ClassVar[Dict[str, Tuple[str, Optional[str]]]] = {
        EXECUTE_SIGNATURE: ("execute", None),
        "transferOwnership(address)": ("transfer_ownership", None),
        "owner()": ("get_owner", "address"),
        "entryPoint()": ("get_entry_point", "address"),
    }
    EXTERNAL: ClassVar[Tuple[str, ...]] = ("validate_user_op", "receive")

    def __init__(self, entry_point: str, owner: str, address: str = "") -> None:
        entry_point = normalize_address(entry_point)
        owner = normalize_address(owner)
        if entry_point == ZERO_ADDRESS:
            raise VMExecutionError("EntryPoint cannot be the zero address")
        if owner == ZERO_ADDRESS:
            raise VMExecutionError("Owner cannot be the zero address")

        self._entry_point = entry_point
        self.owner = owner
        self.address = normalize_address(address) if address else derive_address(
            b"simple_account:", bytes.fromhex(entry_point[2:]), bytes.fromhex(owner[2:])
        )

    @property
    def entry_point(self) -> str:
        return self._entry_point

    # ==================== IAccount Interface (ERC-4337) ====================

    def validate_user_op(
        self,
        ctx: CallContext,
        user_op: UserOperation,
        user_op_hash: bytes,
        missing_account_funds: int,
    ) -> int:
        """
        Validate UserOperation signature and pay prefund.

        Args:
            ctx: Frame context; ``ctx.sender`` must be the EntryPoint
            user_op: The UserOperation to validate
            user_op_hash: Digest of the UserOp computed by the EntryPoint
            missing_account_funds: Amount to pay back to the EntryPoint

        Returns:
            SIG_VALIDATION_SUCCESS or SIG_VALIDATION_FAILED

        Raises:
            UnauthorizedCaller: If the caller is not the EntryPoint

        Note:
            The prefund is paid whatever the signature outcome: the
            EntryPoint already spent gas on this op.
        """
        self.require_entry_point(ctx.sender)
        if missing_account_funds < 0:
            raise VMExecutionError("missing_account_funds cannot be negative")

        ctx.use_gas(GAS_ECRECOVER)
        validation_data = self.validate_signature(user_op_hash, user_op.signature)
        self.settle_fee(ctx, missing_account_funds)
        return validation_data

    def execute(self, ctx: CallContext, dest: str, value: int, func: bytes) -> None:
        """
        Execute a single call from this account.

        Can only be called by the EntryPoint or the owner.

        Args:
            ctx: Frame context
            dest: Target address
            value: Native value to send
            func: Call data

        Raises:
            UnauthorizedCaller: If the caller is neither EntryPoint nor owner
            CallFailed: If the call fails; carries the callee's raw revert data
        """
        self.require_entry_point_or_owner(ctx.sender)

        result = ctx.call(normalize_address(dest), value=value, data=bytes(func))
        if not result.success:
            logger.warning(
                "Account call failed",
                extra={
                    "event": "account.call_failed",
                    "account": self.address[:10],
                    "dest": dest[:10],
                    "value": value,
                    "return_data": result.return_data.hex(),
                    "error": result.error,
                },
            )
            raise CallFailed(result.return_data)

        logger.debug(
            "Account executed call",
            extra={
                "event": "account.execute",
                "account": self.address[:10],
                "dest": dest[:10],
                "value": value,
                "gas_used": result.gas_used,
            },
        )

    def receive(self, ctx: CallContext) -> None:
        """Accept plain value transfers (EntryPoint refunds, top-ups)."""
        logger.debug(
            "Account received value",
            extra={
                "event": "account.received",
                "account": self.address[:10],
                "sender": ctx.sender[:10],
                "value": ctx.value,
            },
        )

    # ==================== Ownership ====================

    def get_owner(self, ctx: Optional[CallContext] = None) -> str:
        return self.owner

    def get_entry_point(self, ctx: Optional[CallContext] = None) -> str:
        return self._entry_point

    def transfer_ownership(self, ctx: CallContext, new_owner: str) -> None:
        """
        Hand the account to ``new_owner``. Owner only.

        Raises:
            UnauthorizedCaller: If the caller is not the current owner
            RevertError: If ``new_owner`` is the zero address
        """
        self.require_owner(ctx.sender)
        new_owner = normalize_address(new_owner)
        if new_owner == ZERO_ADDRESS:
            raise RevertError(encode_error(ERR_INVALID_OWNER, new_owner), "New owner is the zero address")

        ctx.use_gas(GAS_SSTORE_UPDATE)
        previous_owner = self.owner
        self.owner = new_owner
        ctx.emit("OwnershipTransferred", previous_owner=previous_owner, new_owner=new_owner)

        logger.info(
            "Account ownership transferred",
            extra={
                "event": "account.ownership_transferred",
                "account": self.address[:10],
                "previous_owner": previous_owner[:10],
                "new_owner": new_owner[:10],
            },
        )

    def get_balance(self, ledger: Any) -> int:
        """Native balance held by the account."""
        return ledger.balance_of(self.address)

    # ==================== Access control ====================

    def authorize(self, caller: str) -> CallerRole:
        """Classify ``caller``; the EntryPoint wins if it is also the owner."""
        if same_address(caller, self._entry_point):
            return CallerRole.ENTRY_POINT
        if same_address(caller, self.owner):
            return CallerRole.OWNER
        return CallerRole.UNAUTHORIZED

    def require_entry_point(self, caller: str) -> CallerRole:
        role = self.authorize(caller)
        if role is not CallerRole.ENTRY_POINT:
            self._reject(caller, "entry_point")
        return role

    def require_entry_point_or_owner(self, caller: str) -> CallerRole:
        role = self.authorize(caller)
        if role is CallerRole.UNAUTHORIZED:
            self._reject(caller, "entry_point_or_owner")
        return role

    def require_owner(self, caller: str) -> CallerRole:
        if not same_address(caller, self.owner):
            self._reject(caller, "owner")
        return CallerRole.OWNER

    def _reject(self, caller: str, required: str) -> None:
        logger.warning(
            "Unauthorized caller rejected",
            extra={
                "event": "account.unauthorized_caller",
                "account": self.address[:10],
                "caller": str(caller)[:10],
                "required_role": required,
            },
        )
        raise UnauthorizedCaller(caller)

    # ==================== Signature validation ====================

    def validate_signature(self, user_op_hash: bytes, signature: bytes) -> int:
        """
        Check that ``signature`` is the owner's signature over ``user_op_hash``.

        The digest is wrapped with the signed-message prefix and re-hashed
        before recovery. Malformed or unrecoverable signatures are not
        errors: they simply fail to recover the owner.

        Returns:
            SIG_VALIDATION_SUCCESS if the recovered signer is the owner,
            otherwise SIG_VALIDATION_FAILED
        """
        recovered = recover_signer(user_op_hash, signature)
        if recovered.matches(self.owner):
            logger.debug(
                "Signature validation succeeded",
                extra={
                    "event": "account.signature_validation_success",
                    "account": self.address[:16],
                },
            )
            return SIG_VALIDATION_SUCCESS

        logger.warning(
            "Signature validation failed",
            extra={
                "event": "account.signature_validation_failed",
                "account": self.address[:16],
                "recovered": (recovered.address or "")[:16],
                "reason": recovered.reason or "signer_not_owner",
            },
        )
        return SIG_VALIDATION_FAILED

    # ==================== Prefund ====================

    def settle_fee(self, ctx: CallContext, missing_account_funds: int) -> None:
        """
        Pay ``missing_account_funds`` to the caller (the EntryPoint).

        The transfer gets all remaining gas. Its outcome is deliberately not
        checked: if it fails the EntryPoint sees the shortfall on its own
        deposit and handles it there.
        """
        if missing_account_funds == 0:
            return

        result: CallResult = ctx.call(ctx.sender, value=missing_account_funds, data=b"", gas=None)
        if not result.success:
            logger.warning(
                "Prefund transfer failed",
                extra={
                    "event": "account.prefund_unpaid",
                    "account": self.address[:10],
                    "recipient": ctx.sender[:10],
                    "amount": missing_account_funds,
                    "error": result.error,
                },
            )
            return

        logger.debug(
            "Prefund paid",
            extra={
                "event": "account.prefund_paid",
                "account": self.address[:10],
                "recipient": ctx.sender[:10],
                "amount": missing_account_funds,
            },
        )


@dataclass
class OpResult:
    """Outcome of one UserOperation handled by the EntryPoint."""

    validation_data: int
    success: bool = False
    prefund_paid: int = 0
    actual_gas_used: int = 0
    actual_gas_cost: int = 0
    return_data: bytes = b""
    error: str = ""


@dataclass
class EntryPoint(Contract):
    """
    ERC-4337 EntryPoint (coordinator) for a single ledger.

    Hashes each UserOp, asks the account to validate it and to refund the
    missing prefund, then forwards the op's calldata to the account.
    Deposits are the funds accounts have paid in; nonces are tracked per
    account to reject replays.
    """

    ABI: ClassVar[Dict[str, Tuple[str, Optional[str]]]] = {
        "balanceOf(address)": ("balance_of", "uint256"),
        "getNonce(address)": ("get_nonce", "uint256"),
    }
    EXTERNAL: ClassVar[Tuple[str, ...]] = ("handle_ops", "deposit_to", "withdraw_to", "receive")

    address: str = ""
    chain_id: int = config.CHAIN_ID

    deposits: Dict[str, int] = field(default_factory=dict)
    nonces: Dict[str, int] = field(default_factory=dict)

    total_ops_processed: int = 0

    def __post_init__(self) -> None:
        self.address = normalize_address(self.address or config.ENTRY_POINT_ADDRESS)

    # ==================== Main Entry Point ====================

    def get_user_op_hash(self, user_op: UserOperation) -> bytes:
        return user_op.hash(self.address, self.chain_id)

    def handle_ops(
        self,
        ctx: CallContext,
        ops: List[UserOperation],
        beneficiary: str,
    ) -> List[OpResult]:
        """
        Handle a batch of UserOperations submitted by a bundler.

        Each op is validated by its account (which refunds the missing
        prefund to this contract) and, if the signature checked out,
        executed. A failed signature or a reverting execution does not
        abort the batch. The gas each op actually used is charged to its
        account's deposit and the total is paid to ``beneficiary``.

        Raises:
            RevertError: AA25 on a nonce mismatch, AA91 if ``beneficiary``
                rejects the payment; the whole batch is rolled back
        """
        beneficiary = normalize_address(beneficiary)
        results = []
        for op in ops:
            results.append(self._handle_single_op(ctx, op))
        self.total_ops_processed += len(ops)

        collected = sum(r.actual_gas_cost for r in results)
        if collected:
            payment = ctx.call(beneficiary, value=collected)
            if not payment.success:
                raise RevertError(payment.return_data, "AA91 failed send to beneficiary")

        logger.info(
            "UserOp batch handled",
            extra={
                "event": "entrypoint.batch_handled",
                "bundler": ctx.sender[:10],
                "beneficiary": beneficiary[:10],
                "ops": len(ops),
                "succeeded": sum(1 for r in results if r.success),
                "collected": collected,
            },
        )
        return results

    def _handle_single_op(self, ctx: CallContext, op: UserOperation) -> OpResult:
        sender = normalize_address(op.sender)
        expected_nonce = self.nonces.get(sender, 0)
        if op.nonce != expected_nonce:
            raise RevertError(b"", f"AA25 invalid account nonce: expected {expected_nonce}, got {op.nonce}")

        op_hash = self.get_user_op_hash(op)
        missing_funds = max(0, op.required_prefund() - self.deposits.get(sender, 0))
        deposit_before = self.deposits.get(sender, 0)

        gas_before = ctx.gas_used
        validation_data = ctx.invoke(
            sender,
            "validate_user_op",
            op,
            op_hash,
            missing_funds,
            gas=op.verification_gas_limit,
        )
        self.nonces[sender] = expected_nonce + 1
        prefund_paid = self.deposits.get(sender, 0) - deposit_before

        result = OpResult(validation_data=validation_data, prefund_paid=prefund_paid)
        if validation_data != SIG_VALIDATION_SUCCESS:
            result.error = "AA24 signature error"
            logger.warning(
                "UserOp signature rejected",
                extra={
                    "event": "entrypoint.signature_failed",
                    "sender": sender[:10],
                    "nonce": op.nonce,
                },
            )
        else:
            call: CallResult = ctx.call(sender, value=0, data=op.calldata, gas=op.call_gas_limit)
            result.success = call.success
            result.return_data = call.return_data
            result.error = call.error

        result.actual_gas_used = ctx.gas_used - gas_before + op.pre_verification_gas
        result.actual_gas_cost = self._charge(sender, result.actual_gas_used * op.max_fee_per_gas)

        logger.info(
            "UserOp processed",
            extra={
                "event": "entrypoint.op_processed",
                "sender": sender[:10],
                "success": result.success,
                "gas_used": result.actual_gas_used,
                "gas_cost": result.actual_gas_cost,
            },
        )
        return result

    def _charge(self, account: str, cost: int) -> int:
        """Debit up to ``cost`` from ``account``'s deposit; returns the amount taken."""
        deposit = self.deposits.get(account, 0)
        charged = min(cost, deposit)
        if charged < cost:
            logger.warning(
                "Deposit does not cover gas cost",
                extra={
                    "event": "entrypoint.deposit_short",
                    "sender": account[:10],
                    "cost": cost,
                    "deposit": deposit,
                },
            )
        self.deposits[account] = deposit - charged
        return charged

    # ==================== Deposit Management ====================

    def receive(self, ctx: CallContext) -> None:
        """Value sent here is credited to the sender's deposit."""
        self.deposits[ctx.sender] = self.deposits.get(ctx.sender, 0) + ctx.value

    def deposit_to(self, ctx: CallContext, account: str) -> None:
        account = normalize_address(account)
        self.deposits[account] = self.deposits.get(account, 0) + ctx.value

    def withdraw_to(self, ctx: CallContext, withdraw_address: str, amount: int) -> None:
        """Withdraw from the caller's deposit to ``withdraw_address``."""
        current = self.deposits.get(ctx.sender, 0)
        if amount > current:
            raise RevertError(b"", f"Withdraw amount too large ({amount} > {current})")
        self.deposits[ctx.sender] = current - amount
        result = ctx.call(withdraw_address, value=amount)
        if not result.success:
            raise RevertError(result.return_data, "failed to withdraw")

    def balance_of(self, ctx: Optional[CallContext], account: str) -> int:
        return self.deposits.get(normalize_address(account), 0)

    def get_nonce(self, ctx: Optional[CallContext], sender: str) -> int:
        return self.nonces.get(normalize_address(sender), 0)


@dataclass
class AccountFactory(Contract):
    """
    Factory for deploying SimpleAccounts at deterministic addresses.

    Addresses depend only on factory, owner and salt, so they can be
    computed (and funded) before deployment.
    """

    EXTERNAL: ClassVar[Tuple[str, ...]] = ("create_account",)

    entry_point: str = ""
    address: str = ""

    def __post_init__(self) -> None:
        self.entry_point = normalize_address(self.entry_point)
        if not self.address:
            self.address = derive_address(b"account_factory:", bytes.fromhex(self.entry_point[2:]))
        self.address = normalize_address(self.address)

    def get_address(self, owner: str, salt: int) -> str:
        """Counterfactual address of the account for ``owner`` and ``salt``."""
        owner = normalize_address(owner)
        return derive_address(
            b"\xff",
            bytes.fromhex(self.address[2:]),
            salt.to_bytes(32, "big"),
            bytes.fromhex(owner[2:]),
        )

    def create_account(self, ctx: CallContext, owner: str, salt: int) -> str:
        """
        Deploy (or return the existing) account for ``owner`` and ``salt``.

        Funds sent to the counterfactual address beforehand stay with the
        account.
        """
        address = self.get_address(owner, salt)
        if ctx.ledger.is_contract(address):
            return address

        account = SimpleAccount(entry_point=self.entry_point, owner=owner, address=address)
        ctx.ledger.deploy(account)
        ctx.ledger.emit_from(
            account.address,
            "SimpleAccountInitialized",
            entry_point=account.entry_point,
            owner=account.owner,
        )

        logger.info(
            "Account created",
            extra={
                "event": "factory.account_created",
                "owner": account.owner[:10],
                "address": address[:10],
            },
        )
        return address
