"""
Hash primitives used by addresses, sighashes and signatures.
"""

from __future__ import annotations

import hashlib
import hmac
from functools import lru_cache

from btctx.crypto.ripemd160 import ripemd160


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    """SHA256(SHA256(data))"""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    return ripemd160(hashlib.sha256(data).digest())


@lru_cache(maxsize=None)
def _tag_prefix(tag: str) -> bytes:
    tag_hash = hashlib.sha256(tag.encode()).digest()
    return tag_hash + tag_hash


def tagged_hash(tag: str, msg: bytes) -> bytes:
    """
    BIP340 tagged hash: SHA256(SHA256(tag) || SHA256(tag) || msg).

    Args:
        tag: Domain separation tag, e.g. "BIP0340/challenge" or "TapSighash"
        msg: Message bytes

    Returns:
        32-byte digest
    """
    return hashlib.sha256(_tag_prefix(tag) + msg).digest()


def hmac_sha256(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha256).digest()
