"""
Exceptions raised by the secp256k1 signing primitives.
"""

from __future__ import annotations


class CryptoError(Exception):
    pass


class InvalidHashError(CryptoError):
    """Message digest is not exactly 32 bytes."""

    pass


class InvalidPrivateKeyError(CryptoError):
    """Private key is not a 32-byte scalar in [1, n-1]."""

    pass


class InvalidPublicKeyError(CryptoError):
    pass


class SigningFailedError(CryptoError):
    pass


class InvalidNonceError(CryptoError):
    pass


class InvalidAuxRandError(CryptoError):
    """BIP340 auxiliary randomness is not exactly 32 bytes."""

    pass
