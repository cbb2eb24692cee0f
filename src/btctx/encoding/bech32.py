"""
Bech32 (BIP173) and Bech32m (BIP350) codecs and SegWit address encoding.
"""

from __future__ import annotations

from enum import Enum

from btctx.encoding.errors import Bech32Error

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_CHARSET_REV = {c: i for i, c in enumerate(CHARSET)}

_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)

MAX_LENGTH = 90


class Encoding(Enum):
    BECH32 = 1
    BECH32M = 0x2BC830A3

    @property
    def constant(self) -> int:
        return self.value


def bech32_polymod(values: list[int]) -> int:
    """Bech32 checksum polymod"""
    chk = 1
    for v in values:
        b = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i in range(5):
            chk ^= _GENERATOR[i] if ((b >> i) & 1) else 0
    return chk


def bech32_hrp_expand(hrp: str) -> list[int]:
    """Expand HRP for bech32"""
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def bech32_create_checksum(hrp: str, data: list[int], encoding: Encoding) -> list[int]:
    values = bech32_hrp_expand(hrp) + data
    polymod = bech32_polymod(values + [0, 0, 0, 0, 0, 0]) ^ encoding.constant
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def bech32_verify_checksum(hrp: str, data: list[int]) -> Encoding | None:
    const = bech32_polymod(bech32_hrp_expand(hrp) + data)
    for encoding in Encoding:
        if const == encoding.constant:
            return encoding
    return None


def bech32_encode(hrp: str, data: list[int], encoding: Encoding = Encoding.BECH32) -> str:
    """Encode 5-bit data under hrp; the result is lowercase."""
    hrp = hrp.lower()
    combined = data + bech32_create_checksum(hrp, data, encoding)
    encoded = hrp + "1" + "".join(CHARSET[d] for d in combined)
    if len(encoded) > MAX_LENGTH:
        raise Bech32Error(f"Encoded string exceeds {MAX_LENGTH} characters")
    return encoded


def bech32_decode(bech: str) -> tuple[str, list[int], Encoding]:
    """
    Decode a Bech32 or Bech32m string into (hrp, 5-bit data, encoding).

    Raises:
        Bech32Error: On mixed case, bad length, bad characters or bad checksum
    """
    if any(ord(c) < 33 or ord(c) > 126 for c in bech):
        raise Bech32Error("Character out of range")
    if bech.lower() != bech and bech.upper() != bech:
        raise Bech32Error("Mixed-case string")
    if len(bech) > MAX_LENGTH:
        raise Bech32Error(f"String exceeds {MAX_LENGTH} characters")

    bech = bech.lower()
    pos = bech.rfind("1")
    if pos < 1:
        raise Bech32Error("Missing separator or empty HRP")
    if pos + 7 > len(bech):
        raise Bech32Error("Data part too short")

    hrp = bech[:pos]
    try:
        data = [_CHARSET_REV[c] for c in bech[pos + 1 :]]
    except KeyError as e:
        raise Bech32Error(f"Invalid data character: {e.args[0]!r}") from e

    encoding = bech32_verify_checksum(hrp, data)
    if encoding is None:
        raise Bech32Error("Invalid checksum")
    return hrp, data[:-6], encoding


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """
    Regroup a sequence of frombits-wide values into tobits-wide values.

    Raises:
        Bech32Error: On out-of-range input or invalid padding when pad is False
    """
    acc = 0
    bits = 0
    ret: list[int] = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        if value < 0 or (value >> frombits):
            raise Bech32Error(f"Value {value} does not fit in {frombits} bits")
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise Bech32Error("Invalid padding")

    return ret


def decode_segwit_address(hrp: str, address: str) -> tuple[int, bytes]:
    """
    Decode a SegWit address into (witness version, witness program).

    Enforces the HRP, version 0..16, a 2..40 byte program, the 20/32-byte
    v0 program lengths and Bech32 for v0 vs Bech32m for v1+.
    """
    hrp_got, data, encoding = bech32_decode(address)
    if hrp_got != hrp:
        raise Bech32Error(f"HRP mismatch: expected {hrp!r}, got {hrp_got!r}")
    if not data:
        raise Bech32Error("Empty witness data")

    version = data[0]
    if version > 16:
        raise Bech32Error(f"Invalid witness version: {version}")
    program = bytes(convertbits(data[1:], 5, 8, pad=False))
    if not 2 <= len(program) <= 40:
        raise Bech32Error(f"Invalid witness program length: {len(program)}")
    if version == 0 and len(program) not in (20, 32):
        raise Bech32Error(f"Invalid v0 witness program length: {len(program)}")

    expected = Encoding.BECH32 if version == 0 else Encoding.BECH32M
    if encoding != expected:
        raise Bech32Error(f"Witness v{version} must use {expected.name.lower()}")
    return version, program


def encode_segwit_address(hrp: str, version: int, program: bytes) -> str:
    encoding = Encoding.BECH32 if version == 0 else Encoding.BECH32M
    address = bech32_encode(hrp, [version] + convertbits(program, 8, 5), encoding)
    # Round-trip catches invalid version/program combinations
    decode_segwit_address(hrp, address)
    return address
