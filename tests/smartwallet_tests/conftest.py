"""
Shared fixtures for smartwallet tests.

Accounts are deployed on a fresh Ledger per test. The coordinator used by
the account-level tests is a plain (code-less) address; the end-to-end tests
deploy a real EntryPoint contract.
"""

import logging

import pytest

from smartwallet.core.contracts.account_abstraction import SimpleAccount
from smartwallet.core.contracts.erc20 import ERC20Token
from smartwallet.core.crypto_utils import generate_keypair_hex
from smartwallet.core.vm.ledger import Ledger

from mock_contracts import COORDINATOR, ONE_ETHER


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handlers and levels a test (or the CLI) put on the package logger."""
    yield
    package_logger = logging.getLogger("smartwallet")
    package_logger.handlers = []
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def ledger():
    return Ledger(chain_id=31337)


@pytest.fixture
def owner_keypair():
    """(private_key_hex, address) of the account owner."""
    return generate_keypair_hex()


@pytest.fixture
def owner_key(owner_keypair):
    return owner_keypair[0]


@pytest.fixture
def owner(owner_keypair):
    return owner_keypair[1]


@pytest.fixture
def other_keypair():
    return generate_keypair_hex()


@pytest.fixture
def account(ledger, owner):
    """SimpleAccount bound to COORDINATOR, funded with 1 ether."""
    account = SimpleAccount(entry_point=COORDINATOR, owner=owner)
    ledger.deploy(account, value=ONE_ETHER)
    return account


@pytest.fixture
def token(ledger):
    """Open-mint ERC20 token used as a call destination."""
    token = ERC20Token(name="Mock Token", symbol="MOCK")
    ledger.deploy(token)
    return token
