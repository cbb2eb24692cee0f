from __future__ import annotations


class EncodingError(Exception):
    pass


class Base58Error(EncodingError):
    pass


class Bech32Error(EncodingError):
    pass


class DERError(EncodingError):
    pass
