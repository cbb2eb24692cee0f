"""
Bitcoin protocol constants for transaction construction.

Virtual sizes are per-component estimates in vbytes, including the
witness discount. Dust limits follow Bitcoin Core's relay policy at the
default 3 sat/vB dust relay fee.
"""

from __future__ import annotations

TX_VERSION = 2
DEFAULT_LOCKTIME = 0

# Final-but-one: enables nLockTime and signals RBF (BIP125)
SEQUENCE_RBF_LOCKTIME = 0xFFFFFFFE

SIGHASH_DEFAULT = 0x00  # Taproot only, commits like SIGHASH_ALL
SIGHASH_ALL = 0x01

# version(4) + locktime(4) + input count(1) + output count(1)
TX_OVERHEAD_VSIZE = 10
# marker + flag, 2 weight units rounded up to a whole vbyte
SEGWIT_MARKER_VSIZE = 1

INPUT_VSIZE = {
    "p2pkh": 148,
    "p2sh": 91,  # P2SH-P2WPKH
    "p2wpkh": 68,
    "p2tr": 58,
}

OUTPUT_VSIZE = {
    "p2pkh": 34,
    "p2sh": 32,
    "p2wpkh": 31,
    "p2tr": 43,
}

DUST_LIMIT = {
    "p2pkh": 546,
    "p2sh": 546,
    "p2wpkh": 294,
    "p2tr": 330,
}

# Branch-and-bound node limit
BNB_MAX_ITERATIONS = 100_000

# Absolute floor for the fee sanity check; fees above max(amount / 2, this)
# are rejected as a probable amount/fee mixup
MAX_ABSOLUTE_FEE_SATS = 50_000

SATS_PER_BTC = 100_000_000
