"""
scriptPubKey construction and classification.
"""

from __future__ import annotations

import struct

from btctx.models import ScriptType

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1 = 0x51
OP_16 = 0x60
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC


def push_data(data: bytes) -> bytes:
    """Minimal push opcode followed by data."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + struct.pack("<H", length) + data
    return bytes([OP_PUSHDATA4]) + struct.pack("<I", length) + data


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
    if len(pubkey_hash) != 20:
        raise ValueError("P2PKH requires a 20-byte hash")
    return bytes([OP_DUP, OP_HASH160, 0x14]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2sh_script(script_hash: bytes) -> bytes:
    # OP_HASH160 <20-byte-scripthash> OP_EQUAL
    if len(script_hash) != 20:
        raise ValueError("P2SH requires a 20-byte hash")
    return bytes([OP_HASH160, 0x14]) + script_hash + bytes([OP_EQUAL])


def witness_script(version: int, program: bytes) -> bytes:
    """OP_n <program> for witness version n."""
    if not 0 <= version <= 16:
        raise ValueError(f"Invalid witness version: {version}")
    if not 2 <= len(program) <= 40:
        raise ValueError(f"Invalid witness program length: {len(program)}")
    opcode = OP_0 if version == 0 else OP_1 + version - 1
    return bytes([opcode, len(program)]) + program


def p2wpkh_script(pubkey_hash: bytes) -> bytes:
    if len(pubkey_hash) != 20:
        raise ValueError("P2WPKH requires a 20-byte hash")
    return witness_script(0, pubkey_hash)


def p2tr_script(output_key: bytes) -> bytes:
    if len(output_key) != 32:
        raise ValueError("P2TR requires a 32-byte x-only key")
    return witness_script(1, output_key)


def parse_witness_script(script: bytes) -> tuple[int, bytes] | None:
    """Return (version, program) if script is a witness output, else None."""
    if not 4 <= len(script) <= 42:
        return None
    opcode = script[0]
    if opcode != OP_0 and not OP_1 <= opcode <= OP_16:
        return None
    if script[1] != len(script) - 2:
        return None
    version = 0 if opcode == OP_0 else opcode - OP_1 + 1
    return version, script[2:]


def classify_script(script: bytes) -> ScriptType | None:
    """Identify a standard scriptPubKey; None for anything unsupported."""
    if (
        len(script) == 25
        and script[:3] == bytes([OP_DUP, OP_HASH160, 0x14])
        and script[23:] == bytes([OP_EQUALVERIFY, OP_CHECKSIG])
    ):
        return ScriptType.P2PKH
    if len(script) == 23 and script[:2] == bytes([OP_HASH160, 0x14]) and script[22] == OP_EQUAL:
        return ScriptType.P2SH

    witness = parse_witness_script(script)
    if witness is not None:
        version, program = witness
        if version == 0 and len(program) == 20:
            return ScriptType.P2WPKH
        if version == 1 and len(program) == 32:
            return ScriptType.P2TR
    return None


def script_program(script: bytes) -> bytes:
    """The hash or key committed to by a classified scriptPubKey."""
    script_type = classify_script(script)
    if script_type is ScriptType.P2PKH:
        return script[3:23]
    if script_type is ScriptType.P2SH:
        return script[2:22]
    if script_type in (ScriptType.P2WPKH, ScriptType.P2TR):
        return script[2:]
    raise ValueError(f"Unsupported scriptPubKey: {script.hex()}")


def p2wpkh_script_code(script_or_hash: bytes) -> bytes:
    """
    BIP143 scriptCode for a P2WPKH input.

    Accepts the 22-byte P2WPKH scriptPubKey or the bare 20-byte key hash
    and returns the equivalent P2PKH script. The sighash preimage adds the
    length prefix.
    """
    if len(script_or_hash) == 20:
        pubkey_hash = script_or_hash
    elif classify_script(script_or_hash) is ScriptType.P2WPKH:
        pubkey_hash = script_or_hash[2:]
    else:
        raise ValueError("Not a P2WPKH scriptPubKey")
    return p2pkh_script(pubkey_hash)
