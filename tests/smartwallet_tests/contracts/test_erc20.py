"""Tests for the ERC20 token used as a destination contract."""

import pytest

from smartwallet.core.abi import UINT256_MAX, decode_args, encode_call, encode_error
from smartwallet.core.contracts.erc20 import (
    ERR_EXCEEDED_CAP,
    ERR_INSUFFICIENT_ALLOWANCE,
    ERR_INSUFFICIENT_BALANCE,
    ERR_INVALID_RECEIVER,
    ERR_UNAUTHORIZED_MINTER,
    ERC20Token,
)
from smartwallet.core.vm import RevertError

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
CAROL = "0x3333333333333333333333333333333333333333"
ZERO = "0x0000000000000000000000000000000000000000"


@pytest.fixture
def funded_token(ledger, token):
    ledger.invoke(ALICE, token.address, "mint", ALICE, 1000)
    return token


class TestMintAndBurn:
    def test_open_mint(self, ledger, token):
        ledger.invoke(BOB, token.address, "mint", ALICE, 50)

        assert token.balance_of(None, ALICE) == 50
        assert token.get_total_supply(None) == 50
        [entry] = ledger.events(address=token.address, event="Transfer")
        assert entry.args == {"from": ZERO, "to": ALICE, "value": 50}

    def test_restricted_mint(self, ledger):
        token = ERC20Token(name="Owned", symbol="OWN", owner=ALICE)
        ledger.deploy(token)

        with pytest.raises(RevertError) as exc_info:
            ledger.invoke(BOB, token.address, "mint", BOB, 1)

        assert exc_info.value.revert_data == encode_error(ERR_UNAUTHORIZED_MINTER, BOB)
        ledger.invoke(ALICE, token.address, "mint", BOB, 1)
        assert token.balance_of(None, BOB) == 1

    def test_mint_to_zero_rejected(self, ledger, token):
        with pytest.raises(RevertError) as exc_info:
            ledger.invoke(ALICE, token.address, "mint", ZERO, 1)
        assert exc_info.value.revert_data == encode_error(ERR_INVALID_RECEIVER, ZERO)

    def test_supply_cap(self, ledger):
        token = ERC20Token(name="Capped", symbol="CAP", max_supply=100)
        ledger.deploy(token)
        ledger.invoke(ALICE, token.address, "mint", ALICE, 100)

        with pytest.raises(RevertError) as exc_info:
            ledger.invoke(ALICE, token.address, "mint", ALICE, 1)

        assert exc_info.value.revert_data == encode_error(ERR_EXCEEDED_CAP, 101, 100)

    def test_uint256_overflow_rejected(self, ledger, token):
        ledger.invoke(ALICE, token.address, "mint", ALICE, UINT256_MAX)
        with pytest.raises(RevertError):
            ledger.invoke(ALICE, token.address, "mint", ALICE, 1)

    def test_burn(self, ledger, funded_token):
        ledger.invoke(ALICE, funded_token.address, "burn", 400)
        assert funded_token.balance_of(None, ALICE) == 600
        assert funded_token.get_total_supply(None) == 600

    def test_burn_more_than_balance(self, ledger, funded_token):
        with pytest.raises(RevertError) as exc_info:
            ledger.invoke(BOB, funded_token.address, "burn", 1)
        assert exc_info.value.revert_data == encode_error(ERR_INSUFFICIENT_BALANCE, BOB, 0, 1)


class TestTransfers:
    def test_transfer(self, ledger, funded_token):
        assert ledger.invoke(ALICE, funded_token.address, "transfer", BOB, 300) is True
        assert funded_token.balance_of(None, ALICE) == 700
        assert funded_token.balance_of(None, BOB) == 300

    def test_transfer_insufficient_balance(self, ledger, funded_token):
        with pytest.raises(RevertError) as exc_info:
            ledger.invoke(ALICE, funded_token.address, "transfer", BOB, 1001)

        assert exc_info.value.revert_data == encode_error(ERR_INSUFFICIENT_BALANCE, ALICE, 1000, 1001)
        assert funded_token.balance_of(None, ALICE) == 1000

    def test_transfer_to_zero_rejected(self, ledger, funded_token):
        with pytest.raises(RevertError):
            ledger.invoke(ALICE, funded_token.address, "transfer", ZERO, 1)

    def test_approve_and_transfer_from(self, ledger, funded_token):
        ledger.invoke(ALICE, funded_token.address, "approve", BOB, 200)

        ledger.invoke(BOB, funded_token.address, "transfer_from", ALICE, CAROL, 150)

        assert funded_token.allowance(None, ALICE, BOB) == 50
        assert funded_token.balance_of(None, CAROL) == 150

    def test_transfer_from_over_allowance(self, ledger, funded_token):
        ledger.invoke(ALICE, funded_token.address, "approve", BOB, 10)

        with pytest.raises(RevertError) as exc_info:
            ledger.invoke(BOB, funded_token.address, "transfer_from", ALICE, CAROL, 11)

        assert exc_info.value.revert_data == encode_error(ERR_INSUFFICIENT_ALLOWANCE, BOB, 10, 11)

    def test_unlimited_allowance_not_decremented(self, ledger, funded_token):
        ledger.invoke(ALICE, funded_token.address, "approve", BOB, UINT256_MAX)
        ledger.invoke(BOB, funded_token.address, "transfer_from", ALICE, CAROL, 5)
        assert funded_token.allowance(None, ALICE, BOB) == UINT256_MAX


class TestCalldataInterface:
    def test_balance_of_by_calldata(self, ledger, funded_token):
        result = ledger.call(BOB, funded_token.address, data=encode_call("balanceOf(address)", ALICE))
        assert decode_args(["uint256"], result.return_data) == [1000]

    def test_transfer_by_calldata_returns_true(self, ledger, funded_token):
        result = ledger.call(ALICE, funded_token.address, data=encode_call("transfer(address,uint256)", BOB, 1))
        assert decode_args(["bool"], result.return_data) == [True]

    def test_failed_transfer_returns_custom_error(self, ledger, funded_token):
        result = ledger.call(BOB, funded_token.address, data=encode_call("transfer(address,uint256)", ALICE, 1))
        assert not result.success
        assert result.return_data == encode_error(ERR_INSUFFICIENT_BALANCE, BOB, 0, 1)

    def test_plain_transfer_rejected(self, ledger, token):
        ledger.fund(ALICE, 1)
        assert not ledger.send(ALICE, token.address, 1).success
        assert ledger.balance_of(ALICE) == 1
