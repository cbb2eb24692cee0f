"""
Tests for btctx.tx.sighash
"""

import struct

import pytest
from coincurve import PrivateKey

from btctx.constants import SIGHASH_ALL, SIGHASH_DEFAULT
from btctx.crypto import ecdsa
from btctx.crypto.curve import public_key
from btctx.crypto.hashes import sha256, tagged_hash
from btctx.encoding.script import p2tr_script, p2wpkh_script_code
from btctx.models import UTXO, ScriptType, SigningError, UnsupportedSighashError
from btctx.tx.models import TxInput, TxOutput, UnsignedTransaction
from btctx.tx.serialization import deserialize_transaction
from btctx.tx.sighash import (
    Bip143Hashes,
    Bip341Hashes,
    segwit_v0_sighash,
    taproot_sighash,
)

BIP143_SPK = bytes.fromhex("00141d0f172a0ecb48aee1be1f2687d2963ae33f71a1")
BIP143_KEY = bytes.fromhex("619c335025c7f4012e556c2a58b2506e30b8511b53ade95ea316fd8c3286feb9")


def _bip143_tx(raw: bytes) -> UnsignedTransaction:
    parsed = deserialize_transaction(raw)
    return UnsignedTransaction(
        inputs=parsed.inputs,
        outputs=parsed.outputs,
        fee=0,
        version=parsed.version,
        lock_time=parsed.lock_time,
    )


class TestBip143:
    def test_shared_components(self, bip143_unsigned):
        hashes = Bip143Hashes.from_transaction(_bip143_tx(bip143_unsigned))
        assert hashes.hash_prevouts.hex() == (
            "96b827c8483d4e9b96712b6713a7b68d6e8003a781feba36c31143470b4efd37"
        )
        assert hashes.hash_sequence.hex() == (
            "52b0a642eea2fb7ae638c36f6252b6750293dbe574a806984b8e4d8548339a3b"
        )
        assert hashes.hash_outputs.hex() == (
            "863ef3e1a92afbfdb97f31ad0fc7683ee943e9abcf2501590ff8f6551f47e5e5"
        )

    def test_native_p2wpkh_digest(self, bip143_unsigned):
        tx = _bip143_tx(bip143_unsigned)
        digest = segwit_v0_sighash(
            tx,
            1,
            Bip143Hashes.from_transaction(tx),
            script_code=p2wpkh_script_code(BIP143_SPK),
            amount=600_000_000,
        )
        assert digest.hex() == "c37af31116d1b27caf68aae9e3ac82f1477929014d5b917657d0eb49478cb670"

    def test_public_key_matches_example(self):
        assert public_key(BIP143_KEY).hex() == (
            "025476c2e83188368da1ff3e292e7acafcdb3566bb0ad253f62fc70f07aeee6357"
        )

    def test_signature_over_digest(self, bip143_unsigned):
        tx = _bip143_tx(bip143_unsigned)
        digest = segwit_v0_sighash(
            tx, 1, script_code=p2wpkh_script_code(BIP143_SPK), amount=600_000_000
        )
        signature = ecdsa.sign(digest, BIP143_KEY)
        assert signature[:-1] == PrivateKey(BIP143_KEY).sign(digest, hasher=None)
        assert ecdsa.verify(digest, signature, public_key(BIP143_KEY))

    def test_defaults_from_utxo(self, bip143_unsigned):
        tx = _bip143_tx(bip143_unsigned)
        tx.inputs[1].utxo = UTXO(
            txid=tx.inputs[1].previous_txid_hex,
            vout=1,
            amount_sats=600_000_000,
            script_pubkey=BIP143_SPK,
            script_type=ScriptType.P2WPKH,
        )
        assert segwit_v0_sighash(tx, 1).hex() == (
            "c37af31116d1b27caf68aae9e3ac82f1477929014d5b917657d0eb49478cb670"
        )

    def test_missing_utxo(self, bip143_unsigned):
        with pytest.raises(SigningError):
            segwit_v0_sighash(_bip143_tx(bip143_unsigned), 0)

    def test_unsupported_sighash_type(self, bip143_unsigned):
        with pytest.raises(UnsupportedSighashError):
            segwit_v0_sighash(
                _bip143_tx(bip143_unsigned), 1, script_code=b"", amount=1, sighash_type=0x02
            )

    def test_index_out_of_range(self, bip143_unsigned):
        with pytest.raises(IndexError):
            segwit_v0_sighash(_bip143_tx(bip143_unsigned), 2, script_code=b"", amount=1)


def _taproot_tx() -> UnsignedTransaction:
    key_a = bytes.fromhex("aa" * 32)
    key_b = bytes.fromhex("bb" * 32)
    inputs = []
    for i, (amount, program) in enumerate(((40_000, key_a), (25_000, key_b))):
        utxo = UTXO(
            txid=f"{i + 1:02x}" * 32,
            vout=i,
            amount_sats=amount,
            script_pubkey=p2tr_script(program),
            script_type=ScriptType.P2TR,
        )
        inputs.append(TxInput.from_utxo(utxo))
    outputs = [TxOutput(address="", amount_sats=60_000, script_pubkey=p2tr_script(key_a))]
    return UnsignedTransaction(inputs=inputs, outputs=outputs, fee=5_000)


class TestBip341:
    def test_digest_layout(self):
        tx = _taproot_tx()
        prevouts = b"".join(
            inp.previous_txid + struct.pack("<I", inp.previous_index) for inp in tx.inputs
        )
        amounts = struct.pack("<q", 40_000) + struct.pack("<q", 25_000)
        spks = b"".join(bytes([34]) + inp.utxo.script_pubkey for inp in tx.inputs)
        sequences = b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs)
        outputs = struct.pack("<q", 60_000) + bytes([34]) + tx.outputs[0].script_pubkey

        hashes = Bip341Hashes.from_transaction(tx)
        assert hashes.sha_prevouts == sha256(prevouts)
        assert hashes.sha_amounts == sha256(amounts)
        assert hashes.sha_scriptpubkeys == sha256(spks)
        assert hashes.sha_sequences == sha256(sequences)
        assert hashes.sha_outputs == sha256(outputs)

        expected = tagged_hash(
            "TapSighash",
            b"\x00\x00"
            + struct.pack("<i", 2)
            + struct.pack("<I", 0)
            + sha256(prevouts)
            + sha256(amounts)
            + sha256(spks)
            + sha256(sequences)
            + sha256(outputs)
            + b"\x00"
            + struct.pack("<I", 1),
        )
        assert taproot_sighash(tx, 1, hashes) == expected

    def test_default_and_all_differ(self):
        tx = _taproot_tx()
        assert taproot_sighash(tx, 0, sighash_type=SIGHASH_DEFAULT) != taproot_sighash(
            tx, 0, sighash_type=SIGHASH_ALL
        )

    def test_commits_to_every_amount(self):
        tx = _taproot_tx()
        before = taproot_sighash(tx, 0)
        other = tx.inputs[1].utxo.model_copy(update={"amount_sats": 25_001})
        tx.inputs[1].utxo = other
        assert taproot_sighash(tx, 0) != before

    def test_explicit_spent_outputs(self):
        tx = _taproot_tx()
        spent = [(inp.utxo.amount_sats, inp.utxo.script_pubkey) for inp in tx.inputs]
        assert Bip341Hashes.from_transaction(tx, spent) == Bip341Hashes.from_transaction(tx)
        with pytest.raises(SigningError):
            Bip341Hashes.from_transaction(tx, spent[:1])

    @pytest.mark.parametrize("sighash_type", [0x02, 0x03, 0x81])
    def test_unsupported_types(self, sighash_type):
        with pytest.raises(UnsupportedSighashError):
            taproot_sighash(_taproot_tx(), 0, sighash_type=sighash_type)

    def test_index_out_of_range(self):
        with pytest.raises(IndexError):
            taproot_sighash(_taproot_tx(), 5)
