"""
Transaction data structures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from btctx.constants import DEFAULT_LOCKTIME, SATS_PER_BTC, SEQUENCE_RBF_LOCKTIME, TX_VERSION
from btctx.models import UTXO
from btctx.tx.serialization import (
    compute_txid,
    compute_virtual_size,
    compute_weight,
    serialize_transaction,
)


@dataclass
class TxInput:
    """Transaction input. previous_txid is in internal (little-endian) byte order."""

    previous_txid: bytes
    previous_index: int
    sequence: int = SEQUENCE_RBF_LOCKTIME
    utxo: UTXO | None = None
    script_sig: bytes = b""
    witness: list[bytes] = field(default_factory=list)

    @classmethod
    def from_utxo(cls, utxo: UTXO, sequence: int = SEQUENCE_RBF_LOCKTIME) -> TxInput:
        return cls(
            previous_txid=bytes.fromhex(utxo.txid)[::-1],
            previous_index=utxo.vout,
            sequence=sequence,
            utxo=utxo,
        )

    @property
    def previous_txid_hex(self) -> str:
        """Display-order txid of the spent output."""
        return self.previous_txid[::-1].hex()


@dataclass
class TxOutput:
    """Transaction output."""

    address: str
    amount_sats: int
    script_pubkey: bytes

    @property
    def amount_btc(self) -> Decimal:
        return Decimal(self.amount_sats) / SATS_PER_BTC


@dataclass
class UnsignedTransaction:
    """
    A transaction built from selected UTXOs, awaiting witnesses.

    Weight, size and txid are recomputed from the serialization on each
    access so they stay correct after witnesses are attached.
    """

    inputs: list[TxInput]
    outputs: list[TxOutput]
    fee: int
    version: int = TX_VERSION
    lock_time: int = DEFAULT_LOCKTIME
    change_output_index: int | None = None

    @property
    def total_input_amount(self) -> int:
        return sum(inp.utxo.amount_sats for inp in self.inputs if inp.utxo is not None)

    @property
    def total_output_amount(self) -> int:
        return sum(out.amount_sats for out in self.outputs)

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    @property
    def change_output(self) -> TxOutput | None:
        if self.change_output_index is None:
            return None
        return self.outputs[self.change_output_index]

    def serialize(self, include_witness: bool = True) -> bytes:
        return serialize_transaction(
            self.version, self.inputs, self.outputs, self.lock_time, include_witness
        )

    @property
    def weight(self) -> int:
        return compute_weight(len(self.serialize(include_witness=False)), len(self.serialize()))

    @property
    def virtual_size(self) -> int:
        return compute_virtual_size(self.weight)

    @property
    def fee_rate(self) -> Decimal:
        """Effective sat/vB at the current serialized size."""
        return Decimal(self.fee) / Decimal(self.virtual_size)

    @property
    def txid(self) -> str:
        return compute_txid(self.serialize(include_witness=False))


@dataclass(frozen=True)
class SignedTransaction:
    txid: str
    raw_hex: str
    virtual_size: int
    weight: int
    fee: int

    @property
    def raw_bytes(self) -> bytes:
        return bytes.fromhex(self.raw_hex)

    def to_dict(self) -> dict[str, str | int]:
        return {
            "txid": self.txid,
            "hex": self.raw_hex,
            "vsize": self.virtual_size,
            "weight": self.weight,
            "fee": self.fee,
        }
