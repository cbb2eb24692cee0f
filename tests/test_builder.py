"""
Tests for btctx.tx.builder
"""

import pytest

from btctx.config import Settings
from btctx.crypto.curve import public_key, x_only_public_key
from btctx.encoding.address import p2pkh_address, p2tr_address, p2wpkh_address
from btctx.models import (
    DustOutputError,
    FeeExceedsAmountError,
    InvalidAddressError,
    InvalidAmountError,
    Network,
    NoUTXOsError,
    SelectionStrategy,
)
from btctx.tx.builder import TransactionBuilder
from btctx.tx.selector import UTXOSelector


@pytest.fixture
def builder(settings) -> TransactionBuilder:
    return TransactionBuilder(settings)


@pytest.fixture
def alice_address(alice_key) -> str:
    return p2wpkh_address(public_key(alice_key))


@pytest.fixture
def bob_address(bob_key) -> str:
    return p2wpkh_address(public_key(bob_key))


class TestBuild:
    def test_payment_with_change(
        self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_address
    ):
        utxo = make_p2wpkh_utxo(alice_key, 100_000)
        tx = builder.build(
            [utxo], bob_address, 50_000, 10, alice_address, SelectionStrategy.LARGEST_FIRST
        )

        assert tx.fee == 1410
        assert len(tx.inputs) == 1
        assert tx.inputs[0].utxo == utxo
        assert tx.inputs[0].previous_txid_hex == utxo.txid
        assert tx.inputs[0].sequence == 0xFFFFFFFE
        assert tx.version == 2
        assert tx.lock_time == 0

        assert len(tx.outputs) == 2
        assert tx.outputs[0].address == bob_address
        assert tx.outputs[0].amount_sats == 50_000
        assert tx.change_output_index == 1
        assert tx.change_output.address == alice_address
        assert tx.change_output.amount_sats == 48_590
        assert tx.total_input_amount - tx.total_output_amount == tx.fee

    def test_changeless_branch_and_bound(
        self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_address
    ):
        utxos = [
            make_p2wpkh_utxo(alice_key, amount, vout=i)
            for i, amount in enumerate([100_000, 60_000, 51_100, 30_000])
        ]
        tx = builder.build(utxos, bob_address, 50_000, 10, alice_address)
        assert len(tx.inputs) == 1
        assert tx.inputs[0].utxo.amount_sats == 51_100
        assert len(tx.outputs) == 1
        assert tx.change_output is None
        assert tx.fee == 1100

    def test_default_fee_rate(
        self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_address
    ):
        tx = builder.build(
            [make_p2wpkh_utxo(alice_key, 100_000)],
            bob_address,
            50_000,
            None,
            alice_address,
            SelectionStrategy.LARGEST_FIRST,
        )
        assert tx.fee == 1410

    def test_taproot_destination(
        self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_key
    ):
        destination = p2tr_address(x_only_public_key(bob_key))
        tx = builder.build(
            [make_p2wpkh_utxo(alice_key, 100_000)],
            destination,
            50_000,
            1,
            alice_address,
            SelectionStrategy.LARGEST_FIRST,
        )
        assert tx.outputs[0].script_pubkey[:2] == b"\x51\x20"
        # 10 + 68 + 43 + 31 + 1 vbytes
        assert tx.fee == 153

    def test_settings_propagate(self, tmp_path, monkeypatch, make_p2wpkh_utxo, alice_key):
        monkeypatch.chdir(tmp_path)
        settings = Settings(network=Network.TESTNET, tx_version=1, sequence=0xFFFFFFFD)
        pub = public_key(alice_key)
        tx = TransactionBuilder(settings).build(
            [make_p2wpkh_utxo(alice_key, 100_000)],
            p2wpkh_address(pub, Network.TESTNET),
            50_000,
            2,
            p2wpkh_address(pub, Network.TESTNET),
        )
        assert tx.version == 1
        assert tx.inputs[0].sequence == 0xFFFFFFFD
        assert tx.outputs[0].address.startswith("tb1q")

    def test_weight_of_unsigned_transaction(
        self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_address
    ):
        tx = builder.build(
            [make_p2wpkh_utxo(alice_key, 100_000)],
            bob_address,
            50_000,
            10,
            alice_address,
            SelectionStrategy.LARGEST_FIRST,
        )
        base = len(tx.serialize(include_witness=False))
        assert tx.weight == base * 4

        tx.inputs[0].witness = [b"\x30" * 72, b"\x02" * 33]
        full = len(tx.serialize())
        assert full > base
        assert tx.weight == base * 3 + full
        assert tx.virtual_size == (tx.weight + 3) // 4


class TestBuildErrors:
    def test_no_utxos(self, builder, alice_address, bob_address):
        with pytest.raises(NoUTXOsError):
            builder.build([], bob_address, 50_000, 10, alice_address)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_invalid_amount(
        self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_address, amount
    ):
        with pytest.raises(InvalidAmountError):
            builder.build(
                [make_p2wpkh_utxo(alice_key, 100_000)], bob_address, amount, 10, alice_address
            )

    def test_dust_amount(self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_address):
        with pytest.raises(DustOutputError) as exc_info:
            builder.build(
                [make_p2wpkh_utxo(alice_key, 100_000)], bob_address, 200, 10, alice_address
            )
        assert exc_info.value.amount == 200
        assert exc_info.value.dust_limit == 294

    def test_legacy_dust_limit(self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_key):
        with pytest.raises(DustOutputError) as exc_info:
            builder.build(
                [make_p2wpkh_utxo(alice_key, 100_000)],
                p2pkh_address(public_key(bob_key)),
                500,
                10,
                alice_address,
            )
        assert exc_info.value.dust_limit == 546

    def test_invalid_destination(self, builder, make_p2wpkh_utxo, alice_key, alice_address):
        with pytest.raises(InvalidAddressError):
            builder.build(
                [make_p2wpkh_utxo(alice_key, 100_000)], "notanaddress", 50_000, 10, alice_address
            )

    def test_invalid_change_address(self, builder, make_p2wpkh_utxo, alice_key, bob_address):
        with pytest.raises(InvalidAddressError):
            builder.build([make_p2wpkh_utxo(alice_key, 100_000)], bob_address, 50_000, 10, "")

    def test_wrong_network(self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_key):
        testnet = p2wpkh_address(public_key(bob_key), Network.TESTNET)
        with pytest.raises(InvalidAddressError):
            builder.build(
                [make_p2wpkh_utxo(alice_key, 100_000)], testnet, 50_000, 10, alice_address
            )

    def test_unreasonable_fee(
        self, builder, make_p2wpkh_utxo, alice_key, alice_address, bob_address
    ):
        with pytest.raises(FeeExceedsAmountError):
            builder.build(
                [make_p2wpkh_utxo(alice_key, 200_000)],
                bob_address,
                60_000,
                1000,
                alice_address,
                SelectionStrategy.LARGEST_FIRST,
            )

    def test_injected_selector(
        self, settings, make_p2wpkh_utxo, alice_key, alice_address, bob_address
    ):
        builder = TransactionBuilder(settings, selector=UTXOSelector(max_iterations=1))
        tx = builder.build(
            [make_p2wpkh_utxo(alice_key, 51_100)], bob_address, 50_000, 10, alice_address
        )
        # Search is cut off before reaching a match; largest-first still finds one
        assert tx.fee == 1100
        assert tx.change_output is None


class TestSendAll:
    def test_sweeps_every_utxo(self, builder, make_p2wpkh_utxo, alice_key, bob_address):
        utxos = [make_p2wpkh_utxo(alice_key, 30_000, 0), make_p2wpkh_utxo(alice_key, 20_000, 1)]
        tx = builder.build_send_all(utxos, bob_address, 2)
        assert tx.fee == 356
        assert len(tx.inputs) == 2
        assert len(tx.outputs) == 1
        assert tx.outputs[0].amount_sats == 49_644
        assert tx.change_output_index is None
        assert tx.total_input_amount == 50_000

    def test_fee_exceeds_balance(self, builder, make_p2wpkh_utxo, alice_key, bob_address):
        with pytest.raises(FeeExceedsAmountError):
            builder.build_send_all([make_p2wpkh_utxo(alice_key, 500)], bob_address, 10)

    def test_remainder_is_dust(self, builder, make_p2wpkh_utxo, alice_key, bob_address):
        with pytest.raises(DustOutputError):
            builder.build_send_all([make_p2wpkh_utxo(alice_key, 1300)], bob_address, 10)

    def test_no_utxos(self, builder, bob_address):
        with pytest.raises(NoUTXOsError):
            builder.build_send_all([], bob_address, 1)

    def test_negative_fee_rate(self, builder, make_p2wpkh_utxo, alice_key, bob_address):
        with pytest.raises(InvalidAmountError):
            builder.build_send_all([make_p2wpkh_utxo(alice_key, 10_000)], bob_address, -1)
