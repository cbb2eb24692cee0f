"""
btctx - Bitcoin transaction construction and signing

Selects UTXOs, builds unsigned transactions, computes BIP143/BIP341
digests, signs with ECDSA and BIP340 Schnorr, and serializes to the wire
format.
"""

__version__ = "0.1.0"

from btctx.config import Settings, get_settings
from btctx.models import (
    UTXO,
    DustOutputError,
    FeeExceedsAmountError,
    InsufficientFundsError,
    InvalidAddressError,
    InvalidAmountError,
    Network,
    NoUTXOsError,
    ScriptType,
    SelectionResult,
    SelectionStrategy,
    SerializationError,
    SigningError,
    TransactionError,
    UnsupportedSighashError,
)
from btctx.tx.builder import TransactionBuilder
from btctx.tx.models import SignedTransaction, TxInput, TxOutput, UnsignedTransaction
from btctx.tx.selector import UTXOSelector
from btctx.tx.signer import TransactionSigner

__all__ = [
    "DustOutputError",
    "FeeExceedsAmountError",
    "InsufficientFundsError",
    "InvalidAddressError",
    "InvalidAmountError",
    "Network",
    "NoUTXOsError",
    "ScriptType",
    "SelectionResult",
    "SelectionStrategy",
    "SerializationError",
    "Settings",
    "SignedTransaction",
    "SigningError",
    "TransactionBuilder",
    "TransactionError",
    "TransactionSigner",
    "TxInput",
    "TxOutput",
    "UTXO",
    "UTXOSelector",
    "UnsignedTransaction",
    "UnsupportedSighashError",
    "__version__",
    "get_settings",
]
