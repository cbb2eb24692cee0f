"""
Bitcoin transaction wire format (BIP144) and CompactSize varints.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from btctx.crypto.hashes import hash256
from btctx.models import SerializationError

if TYPE_CHECKING:
    from btctx.tx.models import TxInput, TxOutput

MAX_VARINT = 0xFFFFFFFFFFFFFFFF

# prefix -> (payload width, smallest value that needs this prefix)
_VARINT_FORMS = {0xFD: (2, 0xFD), 0xFE: (4, 0x10000), 0xFF: (8, 0x100000000)}


def encode_varint(value: int) -> bytes:
    """Encode integer as a CompactSize varint (1, 3, 5 or 9 bytes)."""
    if value < 0 or value > MAX_VARINT:
        raise ValueError(f"Varint out of range: {value}")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    return b"\xff" + struct.pack("<Q", value)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """
    Read a CompactSize varint.

    Returns:
        (value, offset just past the varint)

    Raises:
        SerializationError: If data ends before the varint does, or the value
            is not in its shortest encoding
    """
    if offset >= len(data):
        raise SerializationError("Truncated varint")
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset
    width, minimum = _VARINT_FORMS[first]
    if offset + width > len(data):
        raise SerializationError("Truncated varint")
    value = int.from_bytes(data[offset : offset + width], "little")
    if value < minimum:
        raise SerializationError(f"Non-canonical varint for {value}")
    return value, offset + width


def serialize_outpoint(txid_internal: bytes, index: int) -> bytes:
    return txid_internal + struct.pack("<I", index)


def serialize_input(inp: TxInput) -> bytes:
    return (
        serialize_outpoint(inp.previous_txid, inp.previous_index)
        + encode_varint(len(inp.script_sig))
        + inp.script_sig
        + struct.pack("<I", inp.sequence)
    )


def serialize_output(out: TxOutput) -> bytes:
    return (
        struct.pack("<q", out.amount_sats)
        + encode_varint(len(out.script_pubkey))
        + out.script_pubkey
    )


def serialize_witness(stack: Sequence[bytes]) -> bytes:
    result = encode_varint(len(stack))
    for item in stack:
        result += encode_varint(len(item)) + item
    return result


def serialize_transaction(
    version: int,
    inputs: Sequence[TxInput],
    outputs: Sequence[TxOutput],
    lock_time: int,
    include_witness: bool = True,
) -> bytes:
    """
    Serialize a transaction.

    The marker and flag bytes (0x00 0x01) and witness stacks are written only
    when include_witness is set and at least one input carries witness data.
    """
    with_witness = include_witness and any(inp.witness for inp in inputs)

    result = struct.pack("<i", version)
    if with_witness:
        result += b"\x00\x01"

    result += encode_varint(len(inputs))
    for inp in inputs:
        result += serialize_input(inp)

    result += encode_varint(len(outputs))
    for out in outputs:
        result += serialize_output(out)

    if with_witness:
        for inp in inputs:
            result += serialize_witness(inp.witness)

    result += struct.pack("<I", lock_time)
    return result


def compute_weight(non_witness_size: int, full_size: int) -> int:
    return non_witness_size * 3 + full_size


def compute_virtual_size(weight: int) -> int:
    return (weight + 3) // 4


def compute_txid(non_witness_serialization: bytes) -> str:
    """Display-order txid: reversed double-SHA256 of the legacy serialization."""
    return hash256(non_witness_serialization)[::-1].hex()


@dataclass
class ParsedTransaction:
    version: int
    inputs: list[TxInput]
    outputs: list[TxOutput]
    lock_time: int
    has_witness: bool = False
    raw: bytes = field(default=b"", repr=False)

    def serialize(self, include_witness: bool = True) -> bytes:
        return serialize_transaction(
            self.version, self.inputs, self.outputs, self.lock_time, include_witness
        )

    @property
    def txid(self) -> str:
        return compute_txid(self.serialize(include_witness=False))

    @property
    def weight(self) -> int:
        return compute_weight(len(self.serialize(include_witness=False)), len(self.serialize()))


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def take(self, length: int) -> bytes:
        end = self.offset + length
        if end > len(self.data):
            raise SerializationError(
                f"Truncated transaction: need {length} bytes at offset {self.offset}"
            )
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def varint(self) -> int:
        value, self.offset = read_varint(self.data, self.offset)
        return value

    def var_bytes(self) -> bytes:
        return self.take(self.varint())


def deserialize_transaction(raw: bytes) -> ParsedTransaction:
    """
    Parse a serialized transaction, with or without witness data.

    Raises:
        SerializationError: On truncated input, non-canonical varints, a bad marker
            flag, an all-empty witness section or trailing bytes
    """
    from btctx.tx.models import TxInput, TxOutput

    reader = _Reader(raw)
    version = struct.unpack("<i", reader.take(4))[0]

    has_witness = False
    if len(raw) > reader.offset + 1 and raw[reader.offset] == 0x00:
        if raw[reader.offset + 1] != 0x01:
            raise SerializationError("Invalid witness flag")
        has_witness = True
        reader.offset += 2

    inputs: list[TxInput] = []
    for _ in range(reader.varint()):
        txid = reader.take(32)
        index = struct.unpack("<I", reader.take(4))[0]
        script_sig = reader.var_bytes()
        sequence = struct.unpack("<I", reader.take(4))[0]
        inputs.append(
            TxInput(
                previous_txid=txid,
                previous_index=index,
                sequence=sequence,
                script_sig=script_sig,
            )
        )

    outputs: list[TxOutput] = []
    for _ in range(reader.varint()):
        amount = struct.unpack("<q", reader.take(8))[0]
        script_pubkey = reader.var_bytes()
        outputs.append(TxOutput(address="", amount_sats=amount, script_pubkey=script_pubkey))

    if has_witness:
        for inp in inputs:
            inp.witness = [reader.var_bytes() for _ in range(reader.varint())]
        if not any(inp.witness for inp in inputs):
            raise SerializationError("Witness marker set but every witness is empty")

    lock_time = struct.unpack("<I", reader.take(4))[0]
    if reader.offset != len(raw):
        raise SerializationError(f"{len(raw) - reader.offset} trailing bytes after transaction")

    return ParsedTransaction(version, inputs, outputs, lock_time, has_witness, raw)


def compute_txid_from_raw(raw: bytes) -> str:
    """Txid of a serialized transaction; witness data is stripped first."""
    return deserialize_transaction(raw).txid
