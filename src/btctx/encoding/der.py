"""
Strict DER encoding for ECDSA (r, s) signatures.
"""

from __future__ import annotations

from btctx.encoding.errors import DERError

__all__ = ["DERError", "encode_der_integer", "encode_der_signature", "parse_der_signature"]


def encode_der_integer(value: int) -> bytes:
    """Minimal big-endian encoding, with a 0x00 pad when the high bit is set."""
    if value <= 0:
        raise DERError("DER integers in signatures must be positive")
    body = value.to_bytes((value.bit_length() + 7) // 8, "big")
    if body[0] & 0x80:
        body = b"\x00" + body
    return b"\x02" + bytes([len(body)]) + body


def encode_der_signature(r: int, s: int) -> bytes:
    body = encode_der_integer(r) + encode_der_integer(s)
    return b"\x30" + bytes([len(body)]) + body


def _read_integer(sig: bytes, offset: int) -> tuple[int, int]:
    if offset + 2 > len(sig) or sig[offset] != 0x02:
        raise DERError("Expected DER INTEGER")
    length = sig[offset + 1]
    start = offset + 2
    end = start + length
    if length == 0:
        raise DERError("Empty DER integer")
    if end > len(sig):
        raise DERError("DER integer overruns signature")
    body = sig[start:end]
    if body[0] & 0x80:
        raise DERError("Negative DER integer")
    if length > 1 and body[0] == 0x00 and not body[1] & 0x80:
        raise DERError("Non-minimal DER integer padding")
    return int.from_bytes(body, "big"), end


def parse_der_signature(sig: bytes) -> tuple[int, int]:
    """
    Parse a DER signature into (r, s).

    A single trailing byte after the DER sequence is tolerated and ignored,
    so signatures with their sighash flag attached can be passed directly.

    Raises:
        DERError: If the encoding is malformed
    """
    if len(sig) < 8 or sig[0] != 0x30:
        raise DERError("Not a DER sequence")
    seq_len = sig[1]
    total = seq_len + 2
    if total not in (len(sig), len(sig) - 1):
        raise DERError(f"DER length mismatch: header says {seq_len}, have {len(sig) - 2}")

    r, offset = _read_integer(sig, 2)
    s, offset = _read_integer(sig, offset)
    if offset != total:
        raise DERError("Trailing data inside DER sequence")
    return r, s
