"""
Shared fixtures for btctx tests.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from btctx.config import Settings
from btctx.crypto.curve import public_key, x_only_public_key
from btctx.crypto.hashes import hash160
from btctx.crypto.keys import taproot_output_key
from btctx.encoding.script import p2tr_script, p2wpkh_script
from btctx.models import UTXO, Network, ScriptType


def key_from_int(value: int) -> bytes:
    return value.to_bytes(32, "big")


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    """Default settings, isolated from any .env file or BTCTX_ variables."""
    monkeypatch.chdir(tmp_path)
    return Settings(network=Network.MAINNET)


@pytest.fixture
def alice_key() -> bytes:
    return bytes.fromhex("619c335025c7f4012e556c2a58b2506e30b8511b53ade95ea316fd8c3286feb9")


@pytest.fixture
def bob_key() -> bytes:
    return key_from_int(0xB0B)


@pytest.fixture
def make_p2wpkh_utxo() -> Callable[..., UTXO]:
    def _make(key: bytes, amount: int, vout: int = 0, path: str = "m/84'/0'/0'/0/0") -> UTXO:
        txid = hash160(key + vout.to_bytes(4, "little")).hex().ljust(64, "a")
        return UTXO(
            txid=txid,
            vout=vout,
            amount_sats=amount,
            script_pubkey=p2wpkh_script(hash160(public_key(key))),
            script_type=ScriptType.P2WPKH,
            derivation_path=path,
            confirmations=6,
        )

    return _make


@pytest.fixture
def make_p2tr_utxo() -> Callable[..., UTXO]:
    def _make(
        key: bytes,
        amount: int,
        vout: int = 0,
        path: str = "m/86'/0'/0'/0/0",
        tweaked: bool = True,
    ) -> UTXO:
        xonly = x_only_public_key(key)
        program = taproot_output_key(xonly) if tweaked else xonly
        txid = hash160(key + b"tr" + vout.to_bytes(4, "little")).hex().ljust(64, "b")
        return UTXO(
            txid=txid,
            vout=vout,
            amount_sats=amount,
            script_pubkey=p2tr_script(program),
            script_type=ScriptType.P2TR,
            derivation_path=path,
        )

    return _make


@pytest.fixture
def bip143_unsigned() -> bytes:
    """Unsigned transaction from the BIP143 native P2WPKH example."""
    return bytes.fromhex(
        "0100000002fff7f7881a8099afa6940d42d1e7f6362bec38171ea3edf433541db4e4ad969f00000000"
        "00eeffffffef51e1b804cc89d182d279655c3aa89e815b1b309fe287d9b2b55d57b90ec68a01000000"
        "00ffffffff02202cb206000000001976a9148280b37df378db99f66f85c95a783a76ac7a6d5988ac90"
        "93510d000000001976a9143bde42dbee7e4dbe6a21b2d50ce2f0167faa815988ac11000000"
    )
