"""
Signature digests for SegWit v0 (BIP143) and Taproot key-path (BIP341) inputs.

The per-transaction hash components are computed once and reused for every
input, which keeps signing linear in the number of inputs.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from btctx.constants import SIGHASH_ALL, SIGHASH_DEFAULT
from btctx.crypto.hashes import hash256, sha256, tagged_hash
from btctx.encoding.script import p2wpkh_script_code
from btctx.models import SigningError, UnsupportedSighashError
from btctx.tx.models import TxInput, UnsignedTransaction
from btctx.tx.serialization import encode_varint, serialize_outpoint, serialize_output


def _spent_outputs(inputs: Sequence[TxInput]) -> list[tuple[int, bytes]]:
    spent = []
    for i, inp in enumerate(inputs):
        if inp.utxo is None:
            raise SigningError(f"Input {i} has no spent output attached")
        spent.append((inp.utxo.amount_sats, inp.utxo.script_pubkey))
    return spent


@dataclass(frozen=True)
class Bip143Hashes:
    hash_prevouts: bytes
    hash_sequence: bytes
    hash_outputs: bytes

    @classmethod
    def from_transaction(cls, tx: UnsignedTransaction) -> Bip143Hashes:
        return cls(
            hash_prevouts=hash256(
                b"".join(
                    serialize_outpoint(inp.previous_txid, inp.previous_index) for inp in tx.inputs
                )
            ),
            hash_sequence=hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs)),
            hash_outputs=hash256(b"".join(serialize_output(out) for out in tx.outputs)),
        )


@dataclass(frozen=True)
class Bip341Hashes:
    sha_prevouts: bytes
    sha_amounts: bytes
    sha_scriptpubkeys: bytes
    sha_sequences: bytes
    sha_outputs: bytes

    @classmethod
    def from_transaction(
        cls,
        tx: UnsignedTransaction,
        spent_outputs: Sequence[tuple[int, bytes]] | None = None,
    ) -> Bip341Hashes:
        """
        Args:
            tx: Transaction being signed
            spent_outputs: (amount, scriptPubKey) per input; taken from each
                input's UTXO when omitted

        Raises:
            SigningError: If an input has no spent output information
        """
        if spent_outputs is None:
            spent_outputs = _spent_outputs(tx.inputs)
        if len(spent_outputs) != len(tx.inputs):
            raise SigningError("Spent output count does not match input count")

        return cls(
            sha_prevouts=sha256(
                b"".join(
                    serialize_outpoint(inp.previous_txid, inp.previous_index) for inp in tx.inputs
                )
            ),
            sha_amounts=sha256(b"".join(struct.pack("<q", amount) for amount, _ in spent_outputs)),
            sha_scriptpubkeys=sha256(
                b"".join(encode_varint(len(spk)) + spk for _, spk in spent_outputs)
            ),
            sha_sequences=sha256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs)),
            sha_outputs=sha256(b"".join(serialize_output(out) for out in tx.outputs)),
        )


def segwit_v0_sighash(
    tx: UnsignedTransaction,
    input_index: int,
    hashes: Bip143Hashes | None = None,
    script_code: bytes | None = None,
    amount: int | None = None,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """
    Compute the BIP143 digest for one input.

    Args:
        tx: Transaction being signed
        input_index: Index of the input to sign
        hashes: Precomputed shared components, computed here when omitted
        script_code: scriptCode without length prefix; derived from the
            input's P2WPKH scriptPubKey when omitted
        amount: Value of the spent output; taken from the input's UTXO when omitted
        sighash_type: Only SIGHASH_ALL is supported

    Returns:
        32-byte digest
    """
    if sighash_type != SIGHASH_ALL:
        raise UnsupportedSighashError(f"Unsupported SegWit v0 sighash type: {sighash_type:#x}")
    if not 0 <= input_index < len(tx.inputs):
        raise IndexError(f"Input index {input_index} out of range")

    inp = tx.inputs[input_index]
    if script_code is None or amount is None:
        if inp.utxo is None:
            raise SigningError(f"Input {input_index} has no spent output attached")
        if script_code is None:
            script_code = p2wpkh_script_code(inp.utxo.script_pubkey)
        if amount is None:
            amount = inp.utxo.amount_sats
    if hashes is None:
        hashes = Bip143Hashes.from_transaction(tx)

    preimage = (
        struct.pack("<i", tx.version)
        + hashes.hash_prevouts
        + hashes.hash_sequence
        + serialize_outpoint(inp.previous_txid, inp.previous_index)
        + encode_varint(len(script_code))
        + script_code
        + struct.pack("<q", amount)
        + struct.pack("<I", inp.sequence)
        + hashes.hash_outputs
        + struct.pack("<I", tx.lock_time)
        + struct.pack("<I", sighash_type)
    )
    digest = hash256(preimage)
    logger.debug(f"BIP143 sighash for input {input_index}: {digest.hex()}")
    return digest


def taproot_sighash(
    tx: UnsignedTransaction,
    input_index: int,
    hashes: Bip341Hashes | None = None,
    sighash_type: int = SIGHASH_DEFAULT,
) -> bytes:
    """
    Compute the BIP341 key-path digest for one input.

    Only SIGHASH_DEFAULT and SIGHASH_ALL are supported; both commit to all
    inputs and outputs. No annex, no script path.
    """
    if sighash_type not in (SIGHASH_DEFAULT, SIGHASH_ALL):
        raise UnsupportedSighashError(f"Unsupported Taproot sighash type: {sighash_type:#x}")
    if not 0 <= input_index < len(tx.inputs):
        raise IndexError(f"Input index {input_index} out of range")
    if hashes is None:
        hashes = Bip341Hashes.from_transaction(tx)

    msg = (
        b"\x00"  # epoch
        + bytes([sighash_type])
        + struct.pack("<i", tx.version)
        + struct.pack("<I", tx.lock_time)
        + hashes.sha_prevouts
        + hashes.sha_amounts
        + hashes.sha_scriptpubkeys
        + hashes.sha_sequences
        + hashes.sha_outputs
        + b"\x00"  # spend type: key path, no annex
        + struct.pack("<I", input_index)
    )
    digest = tagged_hash("TapSighash", msg)
    logger.debug(f"BIP341 sighash for input {input_index}: {digest.hex()}")
    return digest
