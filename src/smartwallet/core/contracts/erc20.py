"""
ERC20 Token Standard Implementation.

A compact EIP-20 token used as a destination contract for smart account
calls:
- Basic token operations (transfer, approve, transferFrom)
- Minting (open, or restricted to ``owner`` when one is set) and burning
- Metadata (name, symbol, decimals)
- Transfer / Approval events written to the ledger log

Failures revert with OpenZeppelin-style custom errors so callers receive
structured revert data, e.g.
``ERC20InsufficientBalance(address sender, uint256 balance, uint256 needed)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Optional, Tuple

from ..abi import UINT256_MAX, encode_error
from ..address_utils import ZERO_ADDRESS, derive_address, normalize_address, same_address
from ..vm.context import GAS_SLOAD, GAS_SSTORE, GAS_SSTORE_UPDATE, CallContext
from ..vm.exceptions import RevertError
from .base import Contract

logger = logging.getLogger(__name__)

ERR_INSUFFICIENT_BALANCE = "ERC20InsufficientBalance(address,uint256,uint256)"
ERR_INSUFFICIENT_ALLOWANCE = "ERC20InsufficientAllowance(address,uint256,uint256)"
ERR_INVALID_RECEIVER = "ERC20InvalidReceiver(address)"
ERR_INVALID_SPENDER = "ERC20InvalidSpender(address)"
ERR_UNAUTHORIZED_MINTER = "ERC20UnauthorizedMinter(address)"
ERR_EXCEEDED_CAP = "ERC20ExceededCap(uint256,uint256)"


@dataclass
class ERC20Token(Contract):
    """
    ERC20 token with balances and allowances held in contract state.

    Security considerations:
    - 256-bit arithmetic bounds on every amount
    - Zero address checks on receivers and spenders
    - Balance and allowance underflow prevention
    """

    ABI: ClassVar[Dict[str, Tuple[str, Optional[str]]]] = {
        "totalSupply()": ("get_total_supply", "uint256"),
        "decimals()": ("get_decimals", "uint256"),
        "balanceOf(address)": ("balance_of", "uint256"),
        "allowance(address,address)": ("allowance", "uint256"),
        "transfer(address,uint256)": ("transfer", "bool"),
        "approve(address,uint256)": ("approve", "bool"),
        "transferFrom(address,address,uint256)": ("transfer_from", "bool"),
        "mint(address,uint256)": ("mint", None),
        "burn(uint256)": ("burn", None),
    }

    name: str = "Token"
    symbol: str = "TKN"
    decimals: int = 18
    total_supply: int = 0
    address: str = ""

    # Minting is open to anyone when no owner is set
    owner: str = ""

    balances: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[str, Dict[str, int]] = field(default_factory=dict)

    # Supply cap (0 = unlimited)
    max_supply: int = 0

    def __post_init__(self) -> None:
        if self.address:
            self.address = normalize_address(self.address)
        else:
            self.address = derive_address(b"erc20:", self.name.encode(), self.symbol.encode())
        if self.owner:
            self.owner = normalize_address(self.owner)

    # ==================== View Functions ====================

    def get_total_supply(self, ctx: CallContext) -> int:
        return self.total_supply

    def get_decimals(self, ctx: CallContext) -> int:
        return self.decimals

    def balance_of(self, ctx: Optional[CallContext], account: str) -> int:
        """Token balance of ``account``; ``ctx`` may be None for off-ledger reads."""
        return self.balances.get(normalize_address(account), 0)

    def allowance(self, ctx: Optional[CallContext], owner: str, spender: str) -> int:
        return self.allowances.get(normalize_address(owner), {}).get(normalize_address(spender), 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, ctx: CallContext, recipient: str, amount: int) -> bool:
        """
        Move ``amount`` tokens from the caller to ``recipient``.

        Raises:
            RevertError: ERC20InvalidReceiver / ERC20InsufficientBalance
        """
        self._move(ctx, ctx.sender, normalize_address(recipient), amount)
        return True

    def approve(self, ctx: CallContext, spender: str, amount: int) -> bool:
        spender_norm = normalize_address(spender)
        if spender_norm == ZERO_ADDRESS:
            raise RevertError(encode_error(ERR_INVALID_SPENDER, spender_norm))
        self._validate_amount(amount)

        ctx.use_gas(GAS_SSTORE)
        self.allowances.setdefault(ctx.sender, {})[spender_norm] = amount
        ctx.emit("Approval", owner=ctx.sender, spender=spender_norm, value=amount)
        return True

    def transfer_from(self, ctx: CallContext, from_addr: str, to_addr: str, amount: int) -> bool:
        """Move tokens out of ``from_addr`` using the caller's allowance."""
        from_norm = normalize_address(from_addr)
        current_allowance = self.allowance(ctx, from_norm, ctx.sender)
        if current_allowance < amount:
            raise RevertError(
                encode_error(ERR_INSUFFICIENT_ALLOWANCE, ctx.sender, current_allowance, amount)
            )

        # Unlimited allowances are never decremented
        if current_allowance != UINT256_MAX:
            ctx.use_gas(GAS_SSTORE_UPDATE)
            self.allowances[from_norm][ctx.sender] = current_allowance - amount

        self._move(ctx, from_norm, normalize_address(to_addr), amount)
        return True

    # ==================== Minting & Burning ====================

    def mint(self, ctx: CallContext, to: str, amount: int) -> None:
        """
        Create ``amount`` new tokens for ``to``.

        Raises:
            RevertError: If the caller may not mint, the receiver is the zero
                address or the supply cap would be exceeded
        """
        if self.owner and not same_address(ctx.sender, self.owner):
            raise RevertError(encode_error(ERR_UNAUTHORIZED_MINTER, ctx.sender))

        to_norm = normalize_address(to)
        if to_norm == ZERO_ADDRESS:
            raise RevertError(encode_error(ERR_INVALID_RECEIVER, to_norm))
        self._validate_amount(amount)

        new_supply = self.total_supply + amount
        if new_supply > UINT256_MAX or (self.max_supply and new_supply > self.max_supply):
            raise RevertError(encode_error(ERR_EXCEEDED_CAP, min(new_supply, UINT256_MAX), self.max_supply))

        ctx.use_gas(GAS_SSTORE)
        self.total_supply = new_supply
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
        ctx.emit("Transfer", **{"from": ZERO_ADDRESS, "to": to_norm, "value": amount})

        logger.info(
            "ERC20 mint",
            extra={
                "event": "erc20.mint",
                "token": self.symbol,
                "to": to_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            },
        )

    def burn(self, ctx: CallContext, amount: int) -> None:
        self._validate_amount(amount)
        balance = self.balances.get(ctx.sender, 0)
        if balance < amount:
            raise RevertError(encode_error(ERR_INSUFFICIENT_BALANCE, ctx.sender, balance, amount))

        ctx.use_gas(GAS_SSTORE_UPDATE)
        self.balances[ctx.sender] = balance - amount
        self.total_supply -= amount
        ctx.emit("Transfer", **{"from": ctx.sender, "to": ZERO_ADDRESS, "value": amount})

    # ==================== Internal ====================

    def _move(self, ctx: CallContext, sender: str, recipient: str, amount: int) -> None:
        if recipient == ZERO_ADDRESS:
            raise RevertError(encode_error(ERR_INVALID_RECEIVER, recipient))
        self._validate_amount(amount)

        ctx.use_gas(GAS_SLOAD)
        sender_balance = self.balances.get(sender, 0)
        if sender_balance < amount:
            raise RevertError(encode_error(ERR_INSUFFICIENT_BALANCE, sender, sender_balance, amount))

        ctx.use_gas(GAS_SSTORE_UPDATE + GAS_SSTORE)
        self.balances[sender] = sender_balance - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        ctx.emit("Transfer", **{"from": sender, "to": recipient, "value": amount})

        logger.debug(
            "ERC20 transfer",
            extra={
                "event": "erc20.transfer",
                "token": self.symbol,
                "from": sender[:10],
                "to": recipient[:10],
                "amount": amount,
            },
        )

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if amount < 0 or amount > UINT256_MAX:
            raise RevertError(b"", f"ERC20: amount out of range ({amount})")
