"""
BIP340 Schnorr signatures over x-only public keys.
"""

from __future__ import annotations

import secrets

from loguru import logger

from btctx.crypto.curve import (
    G,
    has_even_y,
    is_infinity,
    lift_x,
    point_add,
    point_multiply,
    point_negate,
    public_key_point,
    scalar_from_private_key,
)
from btctx.crypto.errors import InvalidAuxRandError, InvalidHashError, InvalidNonceError
from btctx.crypto.field import N, P, int_from_bytes, int_to_bytes
from btctx.crypto.hashes import tagged_hash


def _aux_randomness() -> bytes:
    try:
        return secrets.token_bytes(32)
    except OSError as e:
        # Zero aux loses nonce hardening against fault attacks, not correctness
        logger.warning(f"OS randomness unavailable, using zero aux_rand: {e}")
        return b"\x00" * 32


def sign(msg_hash: bytes, private_key: bytes | bytearray, aux_rand: bytes | None = None) -> bytes:
    """
    Create a 64-byte BIP340 signature R.x || s.

    Args:
        msg_hash: 32-byte message
        private_key: 32-byte secret key; negated internally if its point has odd y
        aux_rand: 32 bytes of auxiliary randomness, drawn from the OS when omitted

    Raises:
        InvalidHashError: If msg_hash is not 32 bytes
        InvalidAuxRandError: If aux_rand is not 32 bytes
        InvalidPrivateKeyError: If the key is out of range
        InvalidNonceError: If the derived nonce is zero
    """
    if len(msg_hash) != 32:
        raise InvalidHashError(f"Message must be 32 bytes, got {len(msg_hash)}")
    if aux_rand is None:
        aux_rand = _aux_randomness()
    if len(aux_rand) != 32:
        raise InvalidAuxRandError(f"aux_rand must be 32 bytes, got {len(aux_rand)}")

    d0 = scalar_from_private_key(private_key)
    pub = public_key_point(private_key)
    d = d0 if has_even_y(pub) else N - d0
    px = int_to_bytes(pub.x)

    t = (d ^ int_from_bytes(tagged_hash("BIP0340/aux", aux_rand))).to_bytes(32, "big")
    k0 = int_from_bytes(tagged_hash("BIP0340/nonce", t + px + msg_hash)) % N
    if k0 == 0:
        raise InvalidNonceError("BIP340 nonce is zero")

    r_point = point_multiply(k0, G)
    k = k0 if has_even_y(r_point) else N - k0
    rx = int_to_bytes(r_point.x)

    e = int_from_bytes(tagged_hash("BIP0340/challenge", rx + px + msg_hash)) % N
    s = (k + e * d) % N
    return rx + int_to_bytes(s)


def verify(msg_hash: bytes, signature: bytes, x_only_pubkey: bytes) -> bool:
    """Verify a BIP340 signature against a 32-byte x-only public key."""
    if len(msg_hash) != 32 or len(signature) != 64 or len(x_only_pubkey) != 32:
        return False

    pub = lift_x(int_from_bytes(x_only_pubkey))
    if pub is None:
        return False
    r = int_from_bytes(signature[:32])
    s = int_from_bytes(signature[32:])
    if r >= P or s >= N:
        return False

    e = int_from_bytes(tagged_hash("BIP0340/challenge", signature[:32] + x_only_pubkey + msg_hash))
    e %= N
    r_point = point_add(point_multiply(s, G), point_negate(point_multiply(e, pub)))
    if is_infinity(r_point) or not has_even_y(r_point):
        return False
    return r_point.x == r
