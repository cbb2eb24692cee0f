"""
Modular arithmetic over the secp256k1 field prime p and group order n.

Values are plain Python ints kept in [0, modulus). Multiplication modulo p
uses the identity 2^256 = 2^32 + 977 (mod p) to fold the high half of the
512-bit product back into 256 bits; every product takes the same two folds
and one conditional subtraction.

Python ints are not constant time, so this module makes no side-channel
guarantee beyond a fixed operation structure.
"""

from __future__ import annotations

P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
HALF_N = N // 2

MASK_256 = (1 << 256) - 1
# 2^256 mod p
P_FOLD = (1 << 32) + 977


def compare(a: int, b: int) -> int:
    """Three-way compare: -1, 0 or 1."""
    return (a > b) - (a < b)


def is_zero(a: int) -> bool:
    return a == 0


def raw_add(a: int, b: int) -> tuple[int, int]:
    """256-bit add returning (sum mod 2^256, carry)."""
    total = a + b
    return total & MASK_256, total >> 256


def raw_sub(a: int, b: int) -> tuple[int, int]:
    """256-bit subtract returning (difference mod 2^256, borrow)."""
    diff = a - b
    return diff & MASK_256, 1 if diff < 0 else 0


def _reduce_p(value: int) -> int:
    # Two folds bring a 512-bit product under 2^257, then one subtraction
    value = (value & MASK_256) + (value >> 256) * P_FOLD
    value = (value & MASK_256) + (value >> 256) * P_FOLD
    return value - P if value >= P else value


def reduce(value: int, modulus: int) -> int:
    if modulus == P:
        return _reduce_p(value)
    return value % modulus


def mod_add(a: int, b: int, modulus: int) -> int:
    total, carry = raw_add(a, b)
    if carry or total >= modulus:
        total = (total + (carry << 256)) - modulus
    return total


def mod_sub(a: int, b: int, modulus: int) -> int:
    diff, borrow = raw_sub(a, b)
    if borrow:
        diff = (diff + modulus) & MASK_256
    return diff


def mod_neg(a: int, modulus: int) -> int:
    return 0 if a == 0 else modulus - a


def mod_mul(a: int, b: int, modulus: int) -> int:
    return reduce(a * b, modulus)


def mod_sqr(a: int, modulus: int) -> int:
    return reduce(a * a, modulus)


def mod_exp(base: int, exponent: int, modulus: int) -> int:
    """Right-to-left binary exponentiation."""
    result = 1
    base = reduce(base, modulus)
    while exponent > 0:
        if exponent & 1:
            result = mod_mul(result, base, modulus)
        base = mod_sqr(base, modulus)
        exponent >>= 1
    return result


def mod_inverse(a: int, modulus: int) -> int:
    """Inverse via Fermat's little theorem; modulus must be prime."""
    a = reduce(a, modulus)
    if a == 0:
        raise ValueError("zero has no modular inverse")
    return mod_exp(a, modulus - 2, modulus)


def mod_sqrt_p(a: int) -> int:
    """Candidate square root mod p. Callers must check the result squares back."""
    return mod_exp(a, (P + 1) // 4, P)


def int_from_bytes(data: bytes) -> int:
    return int.from_bytes(data, "big")


def int_to_bytes(value: int, length: int = 32) -> bytes:
    return value.to_bytes(length, "big")
