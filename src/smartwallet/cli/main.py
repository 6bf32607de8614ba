#!/usr/bin/env python3
"""
smartwallet CLI - offline helpers for smart account operations

Commands:
- keygen:  create a new owner key
- op-hash: compute the digest an EntryPoint assigns to an execute UserOp
- sign:    sign a digest as the owner (signed-message transform)
- recover: recover the signer of a digest/signature pair
"""

from __future__ import annotations

import json
import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from smartwallet.core import config
from smartwallet.core.abi import UINT256_MAX
from smartwallet.core.address_utils import is_valid_address, normalize_address
from smartwallet.core.contracts.account_abstraction import UserOperation
from smartwallet.core.crypto_utils import (
    DIGEST_LENGTH,
    generate_keypair_hex,
    recover_signer,
    sign_digest,
)
from smartwallet.core.logging_config import setup_cli_logging

logger = logging.getLogger(__name__)
console = Console()

UINT256 = click.IntRange(min=0, max=UINT256_MAX)


def _parse_hex(value: str, name: str, length: int | None = None) -> bytes:
    body = value[2:] if value.lower().startswith("0x") else value
    try:
        raw = bytes.fromhex(body)
    except ValueError:
        raise click.BadParameter(f"{name} is not valid hex")
    if length is not None and len(raw) != length:
        raise click.BadParameter(f"{name} must be {length} bytes, got {len(raw)}")
    return raw


def _parse_address(value: str, name: str) -> str:
    if not is_valid_address(value):
        raise click.BadParameter(f"{name} is not a 20-byte hex address: {value}")
    return normalize_address(value)


@click.group()
@click.option(
    "--log-level",
    envvar="SMARTWALLET_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Log level for JSON logs written to stderr",
)
def cli(log_level: str) -> None:
    """Smart account signing and hashing tools."""
    setup_cli_logging(level=log_level.upper())


@cli.command("keygen")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def keygen(as_json: bool) -> None:
    """Generate a new owner key."""
    private_key, address = generate_keypair_hex()
    logger.info("Owner key generated", extra={"event": "cli.keygen", "address": address[:10]})
    if as_json:
        click.echo(json.dumps({"address": address, "private_key": private_key}))
        return

    table = Table(title="New owner key")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Address", address)
    table.add_row("Private key", private_key)
    console.print(table)
    console.print("[yellow]Store the private key securely; it controls the account.[/]")


@cli.command("op-hash")
@click.option("--sender", required=True, help="Smart account address")
@click.option("--dest", required=True, help="Call destination address")
@click.option("--value", default=0, type=UINT256, show_default=True, help="Native value to send")
@click.option("--data", "data_hex", default="0x", show_default=True, help="Hex call payload")
@click.option("--nonce", default=0, type=UINT256, show_default=True, help="Account nonce")
@click.option("--entry-point", default=config.ENTRY_POINT_ADDRESS, show_default=True)
@click.option("--chain-id", default=config.CHAIN_ID, type=click.IntRange(min=1, max=UINT256_MAX), show_default=True)
def op_hash(
    sender: str,
    dest: str,
    value: int,
    data_hex: str,
    nonce: int,
    entry_point: str,
    chain_id: int,
) -> None:
    """Compute the UserOp digest for an execute(dest, value, data) call."""
    op = UserOperation.for_call(
        sender=_parse_address(sender, "sender"),
        dest=_parse_address(dest, "dest"),
        value=value,
        func=_parse_hex(data_hex, "data"),
        nonce=nonce,
    )
    digest = op.hash(_parse_address(entry_point, "entry-point"), chain_id)
    click.echo("0x" + digest.hex())


@cli.command("sign")
@click.option("--key", "private_key", envvar="SMARTWALLET_OWNER_KEY", required=True,
              help="Owner private key (or SMARTWALLET_OWNER_KEY)")
@click.option("--digest", required=True, help="32-byte hex digest")
def sign(private_key: str, digest: str) -> None:
    """Sign a digest as a personal message (65-byte r || s || v)."""
    raw_digest = _parse_hex(digest, "digest", DIGEST_LENGTH)
    try:
        signature = sign_digest(private_key, raw_digest)
    except ValueError as e:
        logger.error("Signing failed: %s", e, extra={"event": "cli.sign_failed"})
        raise click.ClickException(f"Signing failed: {e}")
    click.echo("0x" + signature.hex())


@cli.command("recover")
@click.option("--digest", required=True, help="32-byte hex digest")
@click.option("--signature", required=True, help="65-byte hex signature")
@click.option("--expect", default=None, help="Exit with status 1 unless this address signed")
def recover(digest: str, signature: str, expect: str | None) -> None:
    """Recover the signer of a digest; prints 'invalid' for bad signatures."""
    raw_digest = _parse_hex(digest, "digest", DIGEST_LENGTH)
    raw_signature = _parse_hex(signature, "signature")
    recovered = recover_signer(raw_digest, raw_signature)

    if recovered.is_valid:
        click.echo(recovered.address)
    else:
        click.echo(f"invalid ({recovered.reason})")

    if expect is not None and not recovered.matches(_parse_address(expect, "expect")):
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
