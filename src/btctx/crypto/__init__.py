"""
secp256k1 arithmetic, hashes and signature schemes.
"""
