"""
Byte-level codecs: Base58Check, Bech32/Bech32m, DER and Bitcoin scripts.
"""
