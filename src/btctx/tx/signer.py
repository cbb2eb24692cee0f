"""
Per-input signing for P2WPKH (ECDSA, BIP143) and P2TR key-path (Schnorr, BIP341).
"""

from __future__ import annotations

from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor

from loguru import logger

from btctx.constants import SIGHASH_ALL, SIGHASH_DEFAULT
from btctx.crypto import ecdsa, schnorr
from btctx.crypto.curve import public_key, x_only_public_key
from btctx.crypto.errors import CryptoError
from btctx.crypto.hashes import hash160
from btctx.crypto.keys import taproot_output_key, tweaked_private_key, zeroizing
from btctx.models import ScriptType, SigningError
from btctx.tx.models import SignedTransaction, UnsignedTransaction
from btctx.tx.serialization import compute_txid_from_raw
from btctx.tx.sighash import (
    Bip143Hashes,
    Bip341Hashes,
    segwit_v0_sighash,
    taproot_sighash,
)

__all__ = ["TransactionSigner", "compute_txid_from_raw"]


class TransactionSigner:
    """
    Signs every input of an UnsignedTransaction.

    Keys are looked up by each UTXO's derivation path and copied into a
    zeroizing buffer for the duration of that input's signing. With
    max_workers > 1 inputs are signed on a thread pool; witnesses are still
    attached in input order.
    """

    def __init__(self, max_workers: int = 1, taproot_sighash_type: int = SIGHASH_DEFAULT):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.taproot_sighash_type = taproot_sighash_type

    def sign(
        self, tx: UnsignedTransaction, private_keys: Mapping[str, bytes]
    ) -> SignedTransaction:
        """
        Sign all inputs and serialize the result.

        Args:
            tx: Transaction from TransactionBuilder; its inputs get witnesses
            private_keys: derivation path -> 32-byte private key

        Returns:
            SignedTransaction with txid, raw hex, vsize, weight and fee

        Raises:
            SigningError: If a key is missing, an input type is unsupported,
                or a signature fails verification
        """
        if not tx.inputs:
            raise SigningError("Transaction has no inputs")

        bip143 = Bip143Hashes.from_transaction(tx)
        bip341 = None
        if any(inp.utxo and inp.utxo.script_type == ScriptType.P2TR for inp in tx.inputs):
            bip341 = Bip341Hashes.from_transaction(tx)

        keys = [self._key_for_input(tx, i, private_keys) for i in range(len(tx.inputs))]

        def sign_one(index: int) -> list[bytes]:
            return self._witness_for(tx, index, keys[index], bip143, bip341)

        if self.max_workers > 1 and len(tx.inputs) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                witnesses = list(pool.map(sign_one, range(len(tx.inputs))))
        else:
            witnesses = [sign_one(i) for i in range(len(tx.inputs))]

        for inp, witness in zip(tx.inputs, witnesses, strict=True):
            inp.witness = witness

        raw = tx.serialize()
        signed = SignedTransaction(
            txid=tx.txid,
            raw_hex=raw.hex(),
            virtual_size=tx.virtual_size,
            weight=tx.weight,
            fee=tx.fee,
        )
        logger.info(
            f"Signed tx {signed.txid}: {len(tx.inputs)} inputs, "
            f"{signed.virtual_size} vB, fee {signed.fee} sats"
        )
        return signed

    def sign_input(
        self,
        tx: UnsignedTransaction,
        index: int,
        private_key: bytes,
        bip143: Bip143Hashes | None = None,
        bip341: Bip341Hashes | None = None,
    ) -> list[bytes]:
        """Sign a single input, attach its witness and return it."""
        if not 0 <= index < len(tx.inputs):
            raise IndexError(f"Input index {index} out of range")
        witness = self._witness_for(tx, index, private_key, bip143, bip341)
        tx.inputs[index].witness = witness
        return witness

    @staticmethod
    def _key_for_input(
        tx: UnsignedTransaction, index: int, private_keys: Mapping[str, bytes]
    ) -> bytes:
        utxo = tx.inputs[index].utxo
        if utxo is None:
            raise SigningError(f"Input {index} has no UTXO attached")
        if utxo.derivation_path is None:
            raise SigningError(f"Input {index} ({utxo.txid}:{utxo.vout}) has no derivation path")
        key = private_keys.get(utxo.derivation_path)
        if key is None:
            raise SigningError(f"No private key for derivation path {utxo.derivation_path}")
        return key

    def _witness_for(
        self,
        tx: UnsignedTransaction,
        index: int,
        private_key: bytes,
        bip143: Bip143Hashes | None,
        bip341: Bip341Hashes | None,
    ) -> list[bytes]:
        utxo = tx.inputs[index].utxo
        if utxo is None:
            raise SigningError(f"Input {index} has no UTXO attached")

        try:
            with zeroizing(private_key) as secret:
                if utxo.script_type == ScriptType.P2WPKH:
                    return self._sign_p2wpkh(tx, index, secret, bip143)
                if utxo.script_type == ScriptType.P2TR:
                    return self._sign_p2tr(tx, index, secret, bip341)
                raise SigningError(
                    f"Signing {utxo.script_type.display_name} inputs is not implemented"
                )
        except CryptoError as e:
            raise SigningError(f"Failed to sign input {index}: {e}") from e

    def _sign_p2wpkh(
        self,
        tx: UnsignedTransaction,
        index: int,
        secret: bytearray,
        hashes: Bip143Hashes | None,
    ) -> list[bytes]:
        utxo = tx.inputs[index].utxo
        assert utxo is not None

        pubkey = public_key(secret)
        if hash160(pubkey) != utxo.script_pubkey[2:]:
            raise SigningError(f"Private key does not match P2WPKH output of input {index}")

        digest = segwit_v0_sighash(tx, index, hashes)
        signature = ecdsa.sign(digest, secret, SIGHASH_ALL)
        if not ecdsa.verify(digest, signature, pubkey):
            raise SigningError(f"ECDSA signature verification failed for input {index}")

        return [signature, pubkey]

    def _sign_p2tr(
        self,
        tx: UnsignedTransaction,
        index: int,
        secret: bytearray,
        hashes: Bip341Hashes | None,
    ) -> list[bytes]:
        utxo = tx.inputs[index].utxo
        assert utxo is not None

        program = utxo.script_pubkey[2:]
        internal_key = x_only_public_key(secret)
        digest = taproot_sighash(tx, index, hashes, self.taproot_sighash_type)

        if program == taproot_output_key(internal_key):
            # BIP86 output: sign with the tweaked key
            with tweaked_private_key(secret) as tweaked:
                signature = schnorr.sign(digest, tweaked)
        elif program == internal_key:
            signature = schnorr.sign(digest, secret)
        else:
            raise SigningError(f"Private key does not match P2TR output of input {index}")

        if not schnorr.verify(digest, signature, program):
            raise SigningError(f"Schnorr signature verification failed for input {index}")

        if self.taproot_sighash_type != SIGHASH_DEFAULT:
            signature += bytes([self.taproot_sighash_type])
        return [signature]
