"""
Tests for btctx.tx.serialization
"""

import pytest

from btctx.models import SerializationError
from btctx.tx.models import TxInput, TxOutput
from btctx.tx.serialization import (
    compute_txid,
    compute_txid_from_raw,
    compute_virtual_size,
    compute_weight,
    deserialize_transaction,
    encode_varint,
    read_varint,
    serialize_transaction,
)

# Unsigned transaction from the BIP143 native P2WPKH example
BIP143_UNSIGNED = (
    "0100000002fff7f7881a8099afa6940d42d1e7f6362bec38171ea3edf433541db4e4ad969f00000000"
    "00eeffffffef51e1b804cc89d182d279655c3aa89e815b1b309fe287d9b2b55d57b90ec68a01000000"
    "00ffffffff02202cb206000000001976a9148280b37df378db99f66f85c95a783a76ac7a6d5988ac90"
    "93510d000000001976a9143bde42dbee7e4dbe6a21b2d50ce2f0167faa815988ac11000000"
)


class TestVarint:
    @pytest.mark.parametrize(
        "value,length",
        [
            (0, 1),
            (0xFC, 1),
            (0xFD, 3),
            (0xFFFF, 3),
            (0x10000, 5),
            (0xFFFFFFFF, 5),
            (0x100000000, 9),
            (0xFFFFFFFFFFFFFFFF, 9),
        ],
    )
    def test_width_boundaries(self, value, length):
        encoded = encode_varint(value)
        assert len(encoded) == length
        assert read_varint(encoded, 0) == (value, length)

    def test_prefix_bytes(self):
        assert encode_varint(0xFD)[0] == 0xFD
        assert encode_varint(0x10000)[0] == 0xFE
        assert encode_varint(0x100000000)[0] == 0xFF

    def test_read_at_offset(self):
        data = b"\xaa" + encode_varint(515) + b"\xbb"
        assert read_varint(data, 1) == (515, 4)

    @pytest.mark.parametrize("value", [-1, 2**64])
    def test_out_of_range(self, value):
        with pytest.raises(ValueError):
            encode_varint(value)

    @pytest.mark.parametrize(
        "data",
        [
            b"\xfd\xfc\x00",
            b"\xfd\x01\x00",
            b"\xfe\xff\xff\x00\x00",
            b"\xff\xff\xff\xff\xff\x00\x00\x00\x00",
        ],
    )
    def test_non_canonical_rejected(self, data):
        with pytest.raises(SerializationError, match="Non-canonical"):
            read_varint(data, 0)

    @pytest.mark.parametrize("data", [b"", b"\xfd\x01", b"\xfe\x01\x02\x03", b"\xff" + bytes(7)])
    def test_truncated(self, data):
        with pytest.raises(SerializationError):
            read_varint(data, 0)


class TestTransactionSerialization:
    def test_parse_bip143_unsigned(self):
        parsed = deserialize_transaction(bytes.fromhex(BIP143_UNSIGNED))
        assert parsed.version == 1
        assert not parsed.has_witness
        assert len(parsed.inputs) == 2
        assert parsed.inputs[0].sequence == 0xFFFFFFEE
        assert parsed.inputs[1].sequence == 0xFFFFFFFF
        assert parsed.inputs[1].previous_index == 1
        assert [out.amount_sats for out in parsed.outputs] == [112340000, 223450000]
        assert parsed.lock_time == 17

    def test_reserialize_is_identical(self):
        raw = bytes.fromhex(BIP143_UNSIGNED)
        assert deserialize_transaction(raw).serialize() == raw

    def _segwit_tx(self) -> bytes:
        inputs = [
            TxInput(previous_txid=bytes(range(32)), previous_index=0, witness=[b"\x01" * 71]),
            TxInput(previous_txid=bytes(32), previous_index=3),
        ]
        outputs = [TxOutput(address="", amount_sats=5000, script_pubkey=b"\x00\x14" + bytes(20))]
        return serialize_transaction(2, inputs, outputs, 0)

    def test_witness_marker_only_with_witness(self):
        inputs = [TxInput(previous_txid=bytes(32), previous_index=0)]
        outputs = [TxOutput(address="", amount_sats=1, script_pubkey=b"\x51")]
        legacy = serialize_transaction(2, inputs, outputs, 0)
        assert legacy[4] == 0x01  # input count, no marker

        segwit = self._segwit_tx()
        assert segwit[4:6] == b"\x00\x01"

    def test_empty_witness_written_as_zero(self):
        parsed = deserialize_transaction(self._segwit_tx())
        assert parsed.has_witness
        assert parsed.inputs[0].witness == [b"\x01" * 71]
        assert parsed.inputs[1].witness == []

    def test_segwit_roundtrip(self):
        raw = self._segwit_tx()
        assert deserialize_transaction(raw).serialize() == raw

    def test_txid_ignores_witness(self):
        raw = self._segwit_tx()
        parsed = deserialize_transaction(raw)
        stripped = parsed.serialize(include_witness=False)
        assert len(stripped) < len(raw)
        assert compute_txid_from_raw(raw) == compute_txid(stripped)
        assert compute_txid_from_raw(stripped) == compute_txid(stripped)

    def test_weight_identity(self):
        raw = self._segwit_tx()
        stripped = deserialize_transaction(raw).serialize(include_witness=False)
        weight = compute_weight(len(stripped), len(raw))
        assert weight == len(stripped) * 3 + len(raw)
        assert compute_virtual_size(weight) == -(-weight // 4)

    def test_virtual_size_rounds_up(self):
        assert compute_virtual_size(400) == 100
        assert compute_virtual_size(401) == 101

    def _minimal_tx(self, input_count: bytes, witness: bytes = b"") -> bytes:
        txin = bytes(32) + bytes(4) + b"\x00" + b"\xff" * 4
        txout = (1000).to_bytes(8, "little") + b"\x01\x51"
        marker = b"\x00\x01" if witness else b""
        return (
            b"\x02\x00\x00\x00" + marker + input_count + txin + b"\x01" + txout + witness + bytes(4)
        )

    def test_minimal_tx_parses(self):
        parsed = deserialize_transaction(self._minimal_tx(b"\x01"))
        assert len(parsed.inputs) == 1
        assert parsed.outputs[0].amount_sats == 1000

    def test_non_canonical_input_count_rejected(self):
        with pytest.raises(SerializationError, match="Non-canonical"):
            deserialize_transaction(self._minimal_tx(b"\xfd\x01\x00"))
        with pytest.raises(SerializationError):
            compute_txid_from_raw(self._minimal_tx(b"\xfd\x01\x00"))

    def test_superfluous_witness_rejected(self):
        with pytest.raises(SerializationError, match="every witness is empty"):
            deserialize_transaction(self._minimal_tx(b"\x01", witness=b"\x00"))

    def test_single_witness_item_accepted(self):
        parsed = deserialize_transaction(self._minimal_tx(b"\x01", witness=b"\x01\x01\xaa"))
        assert parsed.has_witness
        assert parsed.inputs[0].witness == [b"\xaa"]

    def test_trailing_bytes_rejected(self):
        with pytest.raises(SerializationError):
            deserialize_transaction(bytes.fromhex(BIP143_UNSIGNED) + b"\x00")

    def test_truncated_rejected(self):
        raw = bytes.fromhex(BIP143_UNSIGNED)
        for cut in (3, 10, 60, len(raw) - 1):
            with pytest.raises(SerializationError):
                deserialize_transaction(raw[:cut])

    def test_txid_is_reversed_double_sha(self):
        raw = bytes.fromhex(BIP143_UNSIGNED)
        from btctx.crypto.hashes import hash256

        assert compute_txid(raw) == hash256(raw)[::-1].hex()
