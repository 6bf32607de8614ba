"""Tests for the smartwallet command line tool."""

import json

import pytest
from click.testing import CliRunner

from smartwallet.cli.main import cli
from smartwallet.core.contracts.account_abstraction import UserOperation
from smartwallet.core.crypto_utils import address_from_private_key, recover_signer

from mock_contracts import COORDINATOR

SENDER = "0x1111111111111111111111111111111111111111"
DEST = "0x2222222222222222222222222222222222222222"
KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
DIGEST = "0x" + "ab" * 32


@pytest.fixture
def runner():
    return CliRunner()


def _invoke(runner, *args, **kwargs):
    result = runner.invoke(cli, list(args), catch_exceptions=False, **kwargs)
    return result, result.stdout.strip()


class TestKeygen:
    def test_json_output(self, runner):
        result, out = _invoke(runner, "keygen", "--json")

        assert result.exit_code == 0
        data = json.loads(out)
        assert address_from_private_key(data["private_key"]) == data["address"]

    def test_table_output(self, runner):
        result, out = _invoke(runner, "keygen")
        assert result.exit_code == 0
        assert "Store the private key securely" in out


class TestOpHash:
    def test_matches_user_operation_hash(self, runner):
        result, out = _invoke(
            runner,
            "op-hash",
            "--sender", SENDER,
            "--dest", DEST,
            "--value", "5",
            "--data", "0xdeadbeef",
            "--nonce", "2",
            "--entry-point", COORDINATOR,
            "--chain-id", "31337",
        )

        expected = UserOperation.for_call(SENDER, DEST, 5, bytes.fromhex("deadbeef"), nonce=2)
        assert result.exit_code == 0
        assert out == "0x" + expected.hash(COORDINATOR, 31337).hex()

    def test_rejects_bad_address(self, runner):
        result = runner.invoke(cli, ["op-hash", "--sender", "0x1234", "--dest", DEST])
        assert result.exit_code == 2
        assert "sender" in result.output

    @pytest.mark.parametrize(
        "option, value",
        [
            ("--value", "-1"),
            ("--value", str(2**256)),
            ("--nonce", "-1"),
            ("--nonce", str(2**256)),
            ("--chain-id", "0"),
        ],
    )
    def test_rejects_out_of_range_integers(self, runner, option, value):
        result = runner.invoke(cli, ["op-hash", "--sender", SENDER, "--dest", DEST, option, value])

        assert result.exit_code == 2
        assert option in result.output
        assert "Traceback" not in result.output

    def test_accepts_uint256_max(self, runner):
        result, out = _invoke(runner, "op-hash", "--sender", SENDER, "--dest", DEST, "--value", str(2**256 - 1))

        assert result.exit_code == 0
        assert len(out) == 66


class TestSignAndRecover:
    def test_round_trip(self, runner):
        _, signature = _invoke(runner, "sign", "--key", KEY, "--digest", DIGEST)
        result, out = _invoke(runner, "recover", "--digest", DIGEST, "--signature", signature)

        assert result.exit_code == 0
        assert out == address_from_private_key(KEY)
        assert len(bytes.fromhex(signature[2:])) == 65
        assert recover_signer(bytes.fromhex(DIGEST[2:]), bytes.fromhex(signature[2:])).matches(out)

    def test_key_from_environment(self, runner):
        result, out = _invoke(runner, "sign", "--digest", DIGEST, env={"SMARTWALLET_OWNER_KEY": KEY})
        assert result.exit_code == 0
        assert out.startswith("0x") and len(out) == 132

    def test_bad_key_reported(self, runner):
        result = runner.invoke(cli, ["sign", "--key", "0x1234", "--digest", DIGEST])
        assert result.exit_code == 1
        assert "Signing failed" in result.output

    def test_short_digest_rejected(self, runner):
        result = runner.invoke(cli, ["sign", "--key", KEY, "--digest", "0xabcd"])
        assert result.exit_code == 2

    def test_malformed_signature_prints_invalid(self, runner):
        result, out = _invoke(runner, "recover", "--digest", DIGEST, "--signature", "0x" + "00" * 64)
        assert result.exit_code == 0
        assert out == "invalid (invalid_signature_length)"

    def test_expect_mismatch_exits_nonzero(self, runner):
        _, signature = _invoke(runner, "sign", "--key", KEY, "--digest", DIGEST)
        result = runner.invoke(
            cli, ["recover", "--digest", DIGEST, "--signature", signature, "--expect", SENDER]
        )
        assert result.exit_code == 1

    def test_expect_match_exits_zero(self, runner):
        _, signature = _invoke(runner, "sign", "--key", KEY, "--digest", DIGEST)
        result, _ = _invoke(
            runner,
            "recover", "--digest", DIGEST, "--signature", signature,
            "--expect", address_from_private_key(KEY).lower(),
        )
        assert result.exit_code == 0
