"""
Core data models using Pydantic for validation and serialization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from btctx.constants import DUST_LIMIT, INPUT_VSIZE, OUTPUT_VSIZE, SATS_PER_BTC


class TransactionError(Exception):
    """Base class for transaction construction and signing failures."""

    pass


class NoUTXOsError(TransactionError):
    def __init__(self, message: str = "No UTXOs available") -> None:
        super().__init__(message)


class InvalidAmountError(TransactionError):
    pass


class InvalidAddressError(TransactionError):
    pass


class DustOutputError(TransactionError):
    def __init__(self, amount: int, dust_limit: int) -> None:
        self.amount = amount
        self.dust_limit = dust_limit
        super().__init__(f"Output of {amount} sats is below the dust limit of {dust_limit} sats")


class InsufficientFundsError(TransactionError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(f"Insufficient funds: need {required} sats, have {available} sats")


class FeeExceedsAmountError(TransactionError):
    def __init__(self, fee: int, amount: int) -> None:
        self.fee = fee
        self.amount = amount
        super().__init__(f"Fee of {fee} sats is unreasonable for an amount of {amount} sats")


class SigningError(TransactionError):
    pass


class SerializationError(TransactionError):
    pass


class UnsupportedSighashError(TransactionError):
    pass


class Network(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"

    @property
    def hrp(self) -> str:
        """Bech32 human-readable part."""
        return {"mainnet": "bc", "testnet": "tb", "signet": "tb", "regtest": "bcrt"}[self.value]

    @property
    def p2pkh_version(self) -> int:
        return 0x00 if self is Network.MAINNET else 0x6F

    @property
    def p2sh_version(self) -> int:
        return 0x05 if self is Network.MAINNET else 0xC4


class ScriptType(str, Enum):
    P2PKH = "p2pkh"
    P2SH = "p2sh"
    P2WPKH = "p2wpkh"
    P2TR = "p2tr"

    @property
    def display_name(self) -> str:
        return {
            "p2pkh": "Legacy (P2PKH)",
            "p2sh": "Nested SegWit (P2SH)",
            "p2wpkh": "Native SegWit (P2WPKH)",
            "p2tr": "Taproot (P2TR)",
        }[self.value]

    @property
    def witness_version(self) -> int | None:
        return {"p2wpkh": 0, "p2tr": 1}.get(self.value)

    @property
    def is_segwit(self) -> bool:
        # P2SH inputs are estimated as P2SH-P2WPKH, which carry a witness
        return self is not ScriptType.P2PKH

    @property
    def input_vsize(self) -> int:
        return INPUT_VSIZE[self.value]

    @property
    def output_vsize(self) -> int:
        return OUTPUT_VSIZE[self.value]

    @property
    def dust_limit(self) -> int:
        return DUST_LIMIT[self.value]


class SelectionStrategy(str, Enum):
    BRANCH_AND_BOUND = "branch_and_bound"
    LARGEST_FIRST = "largest_first"
    SMALLEST_FIRST = "smallest_first"


class UTXO(BaseModel):
    """A spendable output supplied by the wallet layer."""

    txid: str = Field(..., pattern=r"^[0-9a-fA-F]{64}$")
    vout: int = Field(..., ge=0, le=0xFFFFFFFF)
    amount_sats: int = Field(..., gt=0)
    script_pubkey: bytes
    script_type: ScriptType
    address: str = ""
    confirmations: int = Field(default=0, ge=0)
    derivation_path: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def infer_script_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("script_type") is None and "script_pubkey" in data:
            from btctx.encoding.script import classify_script

            spk = data["script_pubkey"]
            spk = bytes.fromhex(spk) if isinstance(spk, str) else spk
            script_type = classify_script(spk)
            if script_type is None:
                raise ValueError(f"Unrecognized scriptPubKey: {spk.hex()}")
            data = {**data, "script_type": script_type}
        return data

    @model_validator(mode="after")
    def check_script_type(self) -> "UTXO":
        from btctx.encoding.script import classify_script

        actual = classify_script(self.script_pubkey)
        if actual != self.script_type:
            found = actual.value if actual else "unrecognized"
            raise ValueError(
                f"script_type {self.script_type.value} does not match scriptPubKey ({found})"
            )
        return self

    @field_validator("script_pubkey", mode="before")
    @classmethod
    def parse_script_pubkey(cls, v: Any) -> Any:
        if isinstance(v, str):
            return bytes.fromhex(v)
        return v

    @field_validator("txid")
    @classmethod
    def normalize_txid(cls, v: str) -> str:
        return v.lower()

    @field_serializer("script_pubkey")
    def serialize_script_pubkey(self, v: bytes) -> str:
        return v.hex()

    @property
    def outpoint(self) -> tuple[str, int]:
        return self.txid, self.vout

    @property
    def amount_btc(self) -> Decimal:
        return Decimal(self.amount_sats) / SATS_PER_BTC


@dataclass(frozen=True)
class SelectionResult:
    selected_utxos: list[UTXO]
    total_input: int
    fee: int
    change_amount: int = 0
    has_change: bool = False
    strategy: SelectionStrategy | None = field(default=None, compare=False)

    @property
    def target_amount(self) -> int:
        return self.total_input - self.fee - self.change_amount
