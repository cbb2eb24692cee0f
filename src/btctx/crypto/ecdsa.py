"""
ECDSA over secp256k1 with RFC 6979 deterministic nonces and BIP62 low-S.
"""

from __future__ import annotations

from btctx.crypto.curve import (
    G,
    Point,
    is_infinity,
    parse_public_key,
    point_add,
    point_multiply,
    scalar_from_private_key,
)
from btctx.crypto.errors import (
    InvalidHashError,
    InvalidPublicKeyError,
    SigningFailedError,
)
from btctx.crypto.field import HALF_N, N, int_from_bytes, int_to_bytes, mod_inverse, mod_mul
from btctx.crypto.hashes import hmac_sha256
from btctx.encoding.der import DERError, encode_der_signature, parse_der_signature

RFC6979_MAX_ATTEMPTS = 1000

SIGHASH_ALL = 0x01


def _check_hash(msg_hash: bytes) -> None:
    if len(msg_hash) != 32:
        raise InvalidHashError(f"Message hash must be 32 bytes, got {len(msg_hash)}")


def deterministic_nonce(msg_hash: bytes, private_key: bytes | bytearray) -> int:
    """
    Derive the RFC 6979 nonce for (msg_hash, private_key) using HMAC-SHA256.

    Raises:
        SigningFailedError: If no candidate in [1, n-1] is found within
            RFC6979_MAX_ATTEMPTS rounds
    """
    _check_hash(msg_hash)
    x = int_to_bytes(scalar_from_private_key(private_key))
    # bits2octets: the hash reduced mod n
    h1 = int_to_bytes(int_from_bytes(msg_hash) % N)

    v = b"\x01" * 32
    k = b"\x00" * 32
    k = hmac_sha256(k, v + b"\x00" + x + h1)
    v = hmac_sha256(k, v)
    k = hmac_sha256(k, v + b"\x01" + x + h1)
    v = hmac_sha256(k, v)

    for _ in range(RFC6979_MAX_ATTEMPTS):
        v = hmac_sha256(k, v)
        candidate = int_from_bytes(v)
        if 0 < candidate < N:
            return candidate
        k = hmac_sha256(k, v + b"\x00")
        v = hmac_sha256(k, v)

    raise SigningFailedError("RFC 6979 nonce generation exhausted its retries")


def sign_raw(msg_hash: bytes, private_key: bytes | bytearray) -> tuple[int, int]:
    """Sign a 32-byte digest, returning low-S (r, s)."""
    _check_hash(msg_hash)
    d = scalar_from_private_key(private_key)
    z = int_from_bytes(msg_hash) % N

    k = deterministic_nonce(msg_hash, private_key)
    point = point_multiply(k, G)
    if is_infinity(point):
        raise SigningFailedError("Nonce point is at infinity")
    r = point.x % N
    if r == 0:
        raise SigningFailedError("Signature r is zero")

    s = mod_mul(mod_inverse(k, N), (z + mod_mul(r, d, N)) % N, N)
    if s == 0:
        raise SigningFailedError("Signature s is zero")
    if s > HALF_N:
        s = N - s
    return r, s


def sign(msg_hash: bytes, private_key: bytes | bytearray, sighash_type: int = SIGHASH_ALL) -> bytes:
    """
    Produce a DER-encoded signature with the sighash type byte appended.

    Args:
        msg_hash: 32-byte digest to sign
        private_key: 32-byte private key in [1, n-1]
        sighash_type: Sighash flag appended after the DER body

    Returns:
        DER signature followed by one sighash byte

    Raises:
        InvalidHashError: If msg_hash is not 32 bytes
        InvalidPrivateKeyError: If the key is out of range
        SigningFailedError: If signing hits a degenerate value
    """
    r, s = sign_raw(msg_hash, private_key)
    return encode_der_signature(r, s) + bytes([sighash_type])


def verify(msg_hash: bytes, signature: bytes, public_key: bytes | Point) -> bool:
    """
    Verify a DER signature (optionally followed by a sighash byte).

    High-S signatures are accepted; low-S is a relay policy, not a validity rule.
    """
    if len(msg_hash) != 32:
        return False
    try:
        r, s = parse_der_signature(signature)
        q = public_key if isinstance(public_key, Point) else parse_public_key(public_key)
    except (DERError, InvalidPublicKeyError):
        return False

    if not (0 < r < N and 0 < s < N):
        return False

    z = int_from_bytes(msg_hash) % N
    w = mod_inverse(s, N)
    u1 = mod_mul(z, w, N)
    u2 = mod_mul(r, w, N)
    point = point_add(point_multiply(u1, G), point_multiply(u2, q))
    if is_infinity(point):
        return False
    return point.x % N == r


def is_low_s(signature: bytes) -> bool:
    _, s = parse_der_signature(signature)
    return s <= HALF_N
