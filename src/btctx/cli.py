"""
btctx CLI - derive addresses, build and sign transactions, inspect raw data.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import typer
from loguru import logger
from pydantic import ValidationError

from btctx.config import get_settings
from btctx.crypto import ecdsa, schnorr
from btctx.crypto.curve import public_key, x_only_public_key
from btctx.crypto.errors import CryptoError
from btctx.crypto.keys import zeroizing
from btctx.encoding.address import (
    decode_address,
    p2pkh_address,
    p2sh_p2wpkh_address,
    p2tr_address,
    p2wpkh_address,
)
from btctx.encoding.errors import EncodingError
from btctx.models import UTXO, Network, SelectionStrategy, TransactionError
from btctx.tx.builder import TransactionBuilder
from btctx.tx.signer import TransactionSigner, compute_txid_from_raw

app = typer.Typer(
    name="btctx",
    help="Bitcoin transaction construction and signing",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _parse_hex(value: str, what: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError:
        logger.error(f"Invalid hex for {what}")
        raise typer.Exit(1)


def _load_utxos(path: Path) -> list[UTXO]:
    if not path.exists():
        logger.error(f"UTXO file not found: {path}")
        raise typer.Exit(1)
    try:
        return [UTXO.model_validate(item) for item in json.loads(path.read_text())]
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Invalid UTXO file {path}: {e}")
        raise typer.Exit(1)


def _load_keys(path: Path) -> dict[str, bytes]:
    if not path.exists():
        logger.error(f"Key file not found: {path}")
        raise typer.Exit(1)
    try:
        raw = json.loads(path.read_text())
        return {derivation_path: bytes.fromhex(key) for derivation_path, key in raw.items()}
    except (json.JSONDecodeError, AttributeError, ValueError) as e:
        logger.error(f"Invalid key file {path}: {e}")
        raise typer.Exit(1)


@app.command()
def address(
    private_key: str = typer.Argument(..., help="32-byte private key as hex"),
    address_type: str = typer.Option(
        "p2wpkh", "--type", "-t", help="p2wpkh | p2tr | p2pkh | p2sh-p2wpkh"
    ),
    network: Network = typer.Option(Network.MAINNET, "--network", "-n", help="Bitcoin network"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l"),
) -> None:
    """Derive an address from a raw private key."""
    setup_logging(log_level)

    try:
        with zeroizing(_parse_hex(private_key, "private key")) as key:
            if address_type == "p2wpkh":
                result = p2wpkh_address(public_key(key), network)
            elif address_type == "p2tr":
                result = p2tr_address(x_only_public_key(key), network)
            elif address_type == "p2pkh":
                result = p2pkh_address(public_key(key), network)
            elif address_type == "p2sh-p2wpkh":
                result = p2sh_p2wpkh_address(public_key(key), network)
            else:
                logger.error(f"Unknown address type: {address_type}")
                raise typer.Exit(1)
    except (CryptoError, EncodingError, TransactionError) as e:
        logger.error(f"Failed to derive address: {e}")
        raise typer.Exit(1)

    typer.echo(result)


@app.command("decode-address")
def decode_address_cmd(
    addr: str = typer.Argument(..., help="Address to decode"),
    network: Network | None = typer.Option(None, "--network", "-n", help="Expected network"),
) -> None:
    """Show the script type and scriptPubKey of an address."""
    setup_logging("WARNING")
    try:
        decoded = decode_address(addr, network)
    except TransactionError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    typer.echo(
        json.dumps(
            {
                "address": decoded.address,
                "type": decoded.script_type.value,
                "network": decoded.network.value,
                "script_pubkey": decoded.script_pubkey.hex(),
            },
            indent=2,
        )
    )


@app.command()
def send(
    utxos_file: Path = typer.Option(..., "--utxos", "-u", help="JSON file with UTXOs"),
    keys_file: Path = typer.Option(
        ..., "--keys", "-k", help="JSON file mapping derivation path to private key hex"
    ),
    to_address: str = typer.Option(..., "--to", help="Destination address"),
    amount: int = typer.Option(0, "--amount", "-a", help="Amount in sats"),
    send_all: bool = typer.Option(False, "--all", help="Sweep all UTXOs"),
    change_address: str | None = typer.Option(None, "--change", "-c", help="Change address"),
    fee_rate: float | None = typer.Option(None, "--fee-rate", "-f", help="Fee rate in sat/vB"),
    strategy: SelectionStrategy | None = typer.Option(None, "--strategy", "-s"),
    network: Network | None = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Build and sign a transaction, printing it as JSON."""
    settings = get_settings()
    if network:
        settings.network = network
    setup_logging(log_level or settings.log_level)

    if not send_all and amount <= 0:
        logger.error("Specify --amount or --all")
        raise typer.Exit(1)
    if not send_all and not change_address:
        logger.error("--change is required unless --all is given")
        raise typer.Exit(1)

    utxos = _load_utxos(utxos_file)
    keys = _load_keys(keys_file)

    builder = TransactionBuilder(settings)
    signer = TransactionSigner(max_workers=settings.signing_workers)
    try:
        if send_all:
            tx = builder.build_send_all(utxos, to_address, fee_rate)
        else:
            assert change_address is not None
            tx = builder.build(utxos, to_address, amount, fee_rate, change_address, strategy)
        signed = signer.sign(tx, keys)
    except TransactionError as e:
        logger.error(f"Failed to create transaction: {e}")
        raise typer.Exit(1)

    typer.echo(json.dumps(signed.to_dict(), indent=2))


@app.command()
def txid(raw_hex: str = typer.Argument(..., help="Serialized transaction hex")) -> None:
    """Compute the txid of a serialized transaction."""
    setup_logging("WARNING")
    try:
        typer.echo(compute_txid_from_raw(_parse_hex(raw_hex, "transaction")))
    except TransactionError as e:
        logger.error(str(e))
        raise typer.Exit(1)


@app.command("verify-ecdsa")
def verify_ecdsa(
    msg_hash: str = typer.Argument(..., help="32-byte digest hex"),
    signature: str = typer.Argument(..., help="DER signature hex"),
    pubkey: str = typer.Argument(..., help="Public key hex"),
) -> None:
    """Check an ECDSA signature."""
    setup_logging("WARNING")
    valid = ecdsa.verify(
        _parse_hex(msg_hash, "hash"), _parse_hex(signature, "signature"), _parse_hex(pubkey, "key")
    )
    typer.echo("valid" if valid else "invalid")
    if not valid:
        raise typer.Exit(1)


@app.command("verify-schnorr")
def verify_schnorr(
    msg_hash: str = typer.Argument(..., help="32-byte message hex"),
    signature: str = typer.Argument(..., help="64-byte signature hex"),
    pubkey: str = typer.Argument(..., help="x-only public key hex"),
) -> None:
    """Check a BIP340 signature."""
    setup_logging("WARNING")
    valid = schnorr.verify(
        _parse_hex(msg_hash, "hash"), _parse_hex(signature, "signature"), _parse_hex(pubkey, "key")
    )
    typer.echo("valid" if valid else "invalid")
    if not valid:
        raise typer.Exit(1)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
