"""
Base58Check for legacy P2PKH and P2SH addresses.
"""

from __future__ import annotations

import base58

from btctx.encoding.errors import Base58Error


def b58check_encode(version: int, payload: bytes) -> str:
    return base58.b58encode_check(bytes([version]) + payload).decode("ascii")


def b58check_decode(address: str) -> tuple[int, bytes]:
    """
    Decode a Base58Check string into (version byte, payload).

    Raises:
        Base58Error: On bad alphabet, bad checksum or empty payload
    """
    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise Base58Error(f"Invalid Base58Check string: {e}") from e
    if not decoded:
        raise Base58Error("Empty Base58Check payload")
    return decoded[0], decoded[1:]
