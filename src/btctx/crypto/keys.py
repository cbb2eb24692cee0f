"""
Private-key handling: scoped zeroization and Taproot key tweaking.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from btctx.crypto.curve import (
    G,
    has_even_y,
    is_infinity,
    lift_x,
    point_add,
    point_multiply,
    public_key_point,
    scalar_from_private_key,
)
from btctx.crypto.errors import InvalidPrivateKeyError, InvalidPublicKeyError
from btctx.crypto.field import N, int_from_bytes, int_to_bytes
from btctx.crypto.hashes import tagged_hash


@contextmanager
def zeroizing(private_key: bytes | bytearray) -> Iterator[bytearray]:
    """
    Yield a private copy of a key that is zero-filled when the block exits.

    Usage:
        with zeroizing(keys[path]) as key:
            sig = ecdsa.sign(digest, key)
    """
    buffer = bytearray(private_key)
    try:
        yield buffer
    finally:
        wipe(buffer)


def wipe(buffer: bytearray) -> None:
    for i in range(len(buffer)):
        buffer[i] = 0


def validate_private_key(private_key: bytes | bytearray) -> None:
    scalar_from_private_key(private_key)


def taproot_tweak(internal_key: bytes, merkle_root: bytes = b"") -> int:
    """t = H_TapTweak(P || merkle_root) as an integer; BIP86 uses an empty root."""
    t = int_from_bytes(tagged_hash("TapTweak", internal_key + merkle_root))
    if t >= N:
        raise InvalidPublicKeyError("Taproot tweak exceeds the group order")
    return t


def taproot_output_key(internal_key: bytes, merkle_root: bytes = b"") -> bytes:
    """
    Compute the 32-byte x-only Taproot output key Q = P + t*G.

    Args:
        internal_key: 32-byte x-only internal public key
        merkle_root: Script tree root, empty for key-path-only outputs

    Raises:
        InvalidPublicKeyError: If the internal key is not a valid x coordinate
    """
    point = lift_x(int_from_bytes(internal_key)) if len(internal_key) == 32 else None
    if point is None:
        raise InvalidPublicKeyError("Invalid x-only internal key")
    tweaked = point_add(point, point_multiply(taproot_tweak(internal_key, merkle_root), G))
    if is_infinity(tweaked):
        raise InvalidPublicKeyError("Tweaked output key is at infinity")
    return int_to_bytes(tweaked.x)


def tweak_private_key(private_key: bytes | bytearray, merkle_root: bytes = b"") -> bytearray:
    """
    Return the secret key matching taproot_output_key() of this key's x-only pubkey.

    The caller owns the returned buffer and should zeroize it.
    """
    d = scalar_from_private_key(private_key)
    point = public_key_point(private_key)
    if not has_even_y(point):
        d = N - d
    tweaked = (d + taproot_tweak(int_to_bytes(point.x), merkle_root)) % N
    if tweaked == 0:
        raise InvalidPrivateKeyError("Tweaked private key is zero")
    return bytearray(int_to_bytes(tweaked))


@contextmanager
def tweaked_private_key(
    private_key: bytes | bytearray, merkle_root: bytes = b""
) -> Iterator[bytearray]:
    """Scoped tweak_private_key(); the tweaked secret is wiped on exit."""
    buffer = tweak_private_key(private_key, merkle_root)
    try:
        yield buffer
    finally:
        wipe(buffer)
