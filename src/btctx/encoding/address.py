"""
Bitcoin address decoding, validation and generation.

Supported address types:
- P2PKH (1..., m..., n...)
- P2SH (3..., 2...)
- P2WPKH (bc1q..., tb1q..., bcrt1q...)
- P2TR (bc1p..., tb1p..., bcrt1p...)
"""

from __future__ import annotations

from dataclasses import dataclass

from btctx.crypto.hashes import hash160
from btctx.crypto.keys import taproot_output_key
from btctx.encoding.base58 import b58check_decode, b58check_encode
from btctx.encoding.bech32 import bech32_decode, decode_segwit_address, encode_segwit_address
from btctx.encoding.errors import EncodingError
from btctx.encoding.script import (
    classify_script,
    p2pkh_script,
    p2sh_script,
    p2tr_script,
    p2wpkh_script,
    script_program,
)
from btctx.models import InvalidAddressError, Network, ScriptType

_HRP_NETWORKS = {
    "bc": Network.MAINNET,
    "tb": Network.TESTNET,
    "bcrt": Network.REGTEST,
}


@dataclass(frozen=True)
class DecodedAddress:
    address: str
    script_type: ScriptType
    network: Network
    program: bytes
    script_pubkey: bytes


def _networks_match(expected: Network, decoded: DecodedAddress) -> bool:
    # Signet shares testnet's prefixes; regtest shares testnet's Base58 versions
    if decoded.script_type.witness_version is not None:
        return expected.hrp == decoded.network.hrp
    return expected.p2pkh_version == decoded.network.p2pkh_version


def _decode_segwit(address: str) -> DecodedAddress:
    try:
        hrp, _, _ = bech32_decode(address)
    except EncodingError as e:
        raise InvalidAddressError(f"Invalid bech32 address {address!r}: {e}") from e

    network = _HRP_NETWORKS.get(hrp)
    if network is None:
        raise InvalidAddressError(f"Unknown address prefix: {hrp!r}")

    try:
        version, program = decode_segwit_address(hrp, address)
    except EncodingError as e:
        raise InvalidAddressError(f"Invalid segwit address {address!r}: {e}") from e

    if version == 0 and len(program) == 20:
        return DecodedAddress(
            address, ScriptType.P2WPKH, network, program, p2wpkh_script(program)
        )
    if version == 1 and len(program) == 32:
        return DecodedAddress(address, ScriptType.P2TR, network, program, p2tr_script(program))
    raise InvalidAddressError(
        f"Unsupported witness output (version {version}, {len(program)}-byte program)"
    )


def _decode_base58(address: str) -> DecodedAddress:
    try:
        version, payload = b58check_decode(address)
    except EncodingError as e:
        raise InvalidAddressError(f"Invalid address {address!r}: {e}") from e
    if len(payload) != 20:
        raise InvalidAddressError(f"Invalid Base58 payload length: {len(payload)}")

    if version == 0x00:
        return DecodedAddress(
            address, ScriptType.P2PKH, Network.MAINNET, payload, p2pkh_script(payload)
        )
    if version == 0x6F:
        return DecodedAddress(
            address, ScriptType.P2PKH, Network.TESTNET, payload, p2pkh_script(payload)
        )
    if version == 0x05:
        return DecodedAddress(
            address, ScriptType.P2SH, Network.MAINNET, payload, p2sh_script(payload)
        )
    if version == 0xC4:
        return DecodedAddress(
            address, ScriptType.P2SH, Network.TESTNET, payload, p2sh_script(payload)
        )
    raise InvalidAddressError(f"Unknown address version: {version:#04x}")


def decode_address(address: str, network: Network | None = None) -> DecodedAddress:
    """
    Decode an address into its script type, network and scriptPubKey.

    Args:
        address: Address string
        network: If given, reject addresses belonging to another network

    Raises:
        InvalidAddressError: If the address is malformed, unsupported or for the wrong network
    """
    if not address:
        raise InvalidAddressError("Empty address")

    if address.lower().startswith(tuple(hrp + "1" for hrp in _HRP_NETWORKS)):
        decoded = _decode_segwit(address)
    else:
        decoded = _decode_base58(address)

    if network is not None and not _networks_match(network, decoded):
        raise InvalidAddressError(
            f"Address {address} is for {decoded.network.value}, expected {network.value}"
        )
    return decoded


def script_pubkey_for_address(address: str, network: Network | None = None) -> bytes:
    return decode_address(address, network).script_pubkey


def script_type_for_address(address: str, network: Network | None = None) -> ScriptType:
    return decode_address(address, network).script_type


def validate_address(address: str, network: Network | None = None) -> bool:
    try:
        decode_address(address, network)
    except InvalidAddressError:
        return False
    return True


def p2pkh_address(pubkey: bytes, network: Network = Network.MAINNET) -> str:
    return b58check_encode(network.p2pkh_version, hash160(pubkey))


def p2sh_address(script_hash: bytes, network: Network = Network.MAINNET) -> str:
    return b58check_encode(network.p2sh_version, script_hash)


def p2sh_p2wpkh_address(pubkey: bytes, network: Network = Network.MAINNET) -> str:
    """Nested SegWit address wrapping a P2WPKH redeem script."""
    redeem_script = p2wpkh_script(hash160(pubkey))
    return p2sh_address(hash160(redeem_script), network)


def p2wpkh_address(pubkey: bytes, network: Network = Network.MAINNET) -> str:
    """Native SegWit v0 address for a 33-byte compressed public key."""
    if len(pubkey) != 33 or pubkey[0] not in (2, 3):
        raise InvalidAddressError("P2WPKH requires a compressed public key")
    return encode_segwit_address(network.hrp, 0, hash160(pubkey))


def p2tr_address(internal_key: bytes, network: Network = Network.MAINNET) -> str:
    """
    BIP86 key-path-only Taproot address.

    Args:
        internal_key: 32-byte x-only internal key, or a 33-byte compressed key
            whose prefix is dropped
        network: Target network
    """
    if len(internal_key) == 33:
        internal_key = internal_key[1:]
    return encode_segwit_address(network.hrp, 1, taproot_output_key(internal_key))


def address_from_script_pubkey(script_pubkey: bytes, network: Network = Network.MAINNET) -> str:
    script_type = classify_script(script_pubkey)
    if script_type is None:
        raise InvalidAddressError(f"Unsupported scriptPubKey: {script_pubkey.hex()}")
    program = script_program(script_pubkey)
    if script_type is ScriptType.P2PKH:
        return b58check_encode(network.p2pkh_version, program)
    if script_type is ScriptType.P2SH:
        return b58check_encode(network.p2sh_version, program)
    return encode_segwit_address(network.hrp, int(script_type.witness_version), program)
