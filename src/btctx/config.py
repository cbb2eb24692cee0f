"""
Configuration management using pydantic-settings.

Every field can be overridden with a BTCTX_-prefixed environment variable
or a .env file, e.g. BTCTX_NETWORK=testnet.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from btctx.constants import (
    BNB_MAX_ITERATIONS,
    MAX_ABSOLUTE_FEE_SATS,
    SEQUENCE_RBF_LOCKTIME,
    TX_VERSION,
)
from btctx.models import Network, ScriptType, SelectionStrategy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BTCTX_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: Network = Network.MAINNET

    default_fee_rate: Decimal = Field(default=Decimal(10), ge=0, description="sat/vB")
    selection_strategy: SelectionStrategy = SelectionStrategy.BRANCH_AND_BOUND
    change_script_type: ScriptType = ScriptType.P2WPKH
    bnb_max_iterations: int = Field(default=BNB_MAX_ITERATIONS, ge=1)

    max_absolute_fee_sats: int = Field(
        default=MAX_ABSOLUTE_FEE_SATS,
        ge=0,
        description="Fees above max(amount / 2, this) are rejected",
    )
    sequence: int = Field(default=SEQUENCE_RBF_LOCKTIME, ge=0, le=0xFFFFFFFF)
    tx_version: int = Field(default=TX_VERSION, ge=1, le=2)

    signing_workers: int = Field(default=1, ge=1, le=64)

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()
