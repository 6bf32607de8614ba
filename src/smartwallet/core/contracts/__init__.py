"""
smartwallet contracts.

- SimpleAccount: single-owner ERC-4337 style smart account
- EntryPoint: coordinator that validates and executes UserOperations
- AccountFactory: deterministic account deployment
- ERC20Token: fungible token used as a call destination
"""

from .account_abstraction import (
    EXECUTE_SIGNATURE,
    SIG_VALIDATION_FAILED,
    SIG_VALIDATION_SUCCESS,
    AccountFactory,
    CallerRole,
    EntryPoint,
    OpResult,
    SimpleAccount,
    UserOperation,
)
from .base import Contract
from .erc20 import ERC20Token

__all__ = [
    "Contract",
    # Account Abstraction
    "UserOperation",
    "SimpleAccount",
    "CallerRole",
    "EntryPoint",
    "OpResult",
    "AccountFactory",
    "SIG_VALIDATION_SUCCESS",
    "SIG_VALIDATION_FAILED",
    "EXECUTE_SIGNATURE",
    # Token Standards
    "ERC20Token",
]
