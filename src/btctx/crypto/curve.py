"""
secp256k1 point arithmetic in affine coordinates.

All curve operations in the package, including Taproot output-key tweaking,
go through this module.
"""

from __future__ import annotations

from typing import NamedTuple

from btctx.crypto.errors import InvalidPrivateKeyError, InvalidPublicKeyError
from btctx.crypto.field import (
    N,
    P,
    int_from_bytes,
    int_to_bytes,
    mod_add,
    mod_inverse,
    mod_mul,
    mod_neg,
    mod_sqr,
    mod_sqrt_p,
    mod_sub,
)

CURVE_B = 7


class Point(NamedTuple):
    x: int
    y: int


# Point at infinity. (0, 0) cannot collide with a real point: 0 != 0^3 + 7
INFINITY = Point(0, 0)

G = Point(
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)


def is_infinity(point: Point) -> bool:
    return point == INFINITY


def is_on_curve(point: Point) -> bool:
    if is_infinity(point):
        return True
    x, y = point
    if not (0 <= x < P and 0 <= y < P):
        return False
    return mod_sqr(y, P) == mod_add(mod_mul(mod_sqr(x, P), x, P), CURVE_B, P)


def has_even_y(point: Point) -> bool:
    return point.y % 2 == 0


def point_negate(point: Point) -> Point:
    if is_infinity(point):
        return point
    return Point(point.x, mod_neg(point.y, P))


def point_double(point: Point) -> Point:
    if is_infinity(point) or point.y == 0:
        return INFINITY
    x, y = point
    # lambda = 3x^2 / 2y
    numerator = mod_mul(3, mod_sqr(x, P), P)
    lam = mod_mul(numerator, mod_inverse(mod_add(y, y, P), P), P)
    x3 = mod_sub(mod_sqr(lam, P), mod_add(x, x, P), P)
    y3 = mod_sub(mod_mul(lam, mod_sub(x, x3, P), P), y, P)
    return Point(x3, y3)


def point_add(p1: Point, p2: Point) -> Point:
    if is_infinity(p1):
        return p2
    if is_infinity(p2):
        return p1
    if p1.x == p2.x:
        if p1.y == p2.y:
            return point_double(p1)
        # P + (-P)
        return INFINITY
    lam = mod_mul(mod_sub(p2.y, p1.y, P), mod_inverse(mod_sub(p2.x, p1.x, P), P), P)
    x3 = mod_sub(mod_sub(mod_sqr(lam, P), p1.x, P), p2.x, P)
    y3 = mod_sub(mod_mul(lam, mod_sub(p1.x, x3, P), P), p1.y, P)
    return Point(x3, y3)


def point_multiply(scalar: int, point: Point = G) -> Point:
    """Double-and-add, consuming the scalar from its least significant bit."""
    scalar %= N
    result = INFINITY
    addend = point
    while scalar:
        if scalar & 1:
            result = point_add(result, addend)
        addend = point_double(addend)
        scalar >>= 1
    return result


def lift_x(x: int) -> Point | None:
    """Return the even-y point with the given x, or None if x is not on the curve."""
    if not 0 <= x < P:
        return None
    y_sq = mod_add(mod_mul(mod_sqr(x, P), x, P), CURVE_B, P)
    y = mod_sqrt_p(y_sq)
    if mod_sqr(y, P) != y_sq:
        return None
    return Point(x, y if y % 2 == 0 else P - y)


def serialize_point(point: Point, compressed: bool = True) -> bytes:
    if is_infinity(point):
        raise InvalidPublicKeyError("Cannot serialize the point at infinity")
    if compressed:
        prefix = b"\x02" if has_even_y(point) else b"\x03"
        return prefix + int_to_bytes(point.x)
    return b"\x04" + int_to_bytes(point.x) + int_to_bytes(point.y)


def parse_public_key(data: bytes) -> Point:
    """
    Parse a SEC1 compressed (33B), uncompressed (65B) or BIP340 x-only (32B) key.

    Raises:
        InvalidPublicKeyError: If the encoding is malformed or not on the curve
    """
    if len(data) == 32:
        point = lift_x(int_from_bytes(data))
    elif len(data) == 33 and data[0] in (2, 3):
        point = lift_x(int_from_bytes(data[1:]))
        if point is not None and (point.y % 2) != (data[0] - 2):
            point = point_negate(point)
    elif len(data) == 65 and data[0] == 4:
        point = Point(int_from_bytes(data[1:33]), int_from_bytes(data[33:]))
        if not is_on_curve(point):
            point = None
    else:
        raise InvalidPublicKeyError(f"Invalid public key length: {len(data)}")

    if point is None:
        raise InvalidPublicKeyError("Public key is not on the curve")
    return point


def scalar_from_private_key(private_key: bytes | bytearray) -> int:
    if len(private_key) != 32:
        raise InvalidPrivateKeyError(f"Private key must be 32 bytes, got {len(private_key)}")
    d = int_from_bytes(bytes(private_key))
    if not 0 < d < N:
        raise InvalidPrivateKeyError("Private key out of range [1, n-1]")
    return d


def public_key_point(private_key: bytes | bytearray) -> Point:
    return point_multiply(scalar_from_private_key(private_key), G)


def public_key(private_key: bytes | bytearray) -> bytes:
    """33-byte compressed public key for a 32-byte private key."""
    return serialize_point(public_key_point(private_key))


def x_only_public_key(private_key: bytes | bytearray) -> bytes:
    return int_to_bytes(public_key_point(private_key).x)
