"""
Unsigned transaction construction.

Builds a transaction from:
- The wallet's UTXOs
- A destination address and amount (or everything, for send-all)
- A change address for any non-dust remainder
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from loguru import logger

from btctx.config import Settings, get_settings
from btctx.encoding.address import DecodedAddress, decode_address
from btctx.models import (
    UTXO,
    DustOutputError,
    FeeExceedsAmountError,
    InvalidAmountError,
    NoUTXOsError,
    SelectionStrategy,
)
from btctx.tx.models import TxInput, TxOutput, UnsignedTransaction
from btctx.tx.selector import FeeRate, UTXOSelector, estimate_virtual_size, fee_for_size


class TransactionBuilder:
    """Turns a UTXO set and a payment request into an UnsignedTransaction."""

    def __init__(self, settings: Settings | None = None, selector: UTXOSelector | None = None):
        self.settings = settings or get_settings()
        self.selector = selector or UTXOSelector(max_iterations=self.settings.bnb_max_iterations)

    def _decode(self, address: str) -> DecodedAddress:
        return decode_address(address, self.settings.network)

    def _check_fee(self, fee: int, amount: int, total_input: int) -> None:
        if fee > total_input:
            raise FeeExceedsAmountError(fee, amount)
        if fee > max(amount // 2, self.settings.max_absolute_fee_sats):
            raise FeeExceedsAmountError(fee, amount)

    def _inputs(self, utxos: Sequence[UTXO]) -> list[TxInput]:
        return [TxInput.from_utxo(u, sequence=self.settings.sequence) for u in utxos]

    def build(
        self,
        utxos: Sequence[UTXO],
        to_address: str,
        amount: int,
        fee_rate: FeeRate | None,
        change_address: str,
        strategy: SelectionStrategy | None = None,
    ) -> UnsignedTransaction:
        """
        Build a payment of amount sats to to_address.

        Args:
            utxos: Spendable outputs to choose from
            to_address: Destination address
            amount: Amount to send in sats
            fee_rate: sat/vB, settings.default_fee_rate when None
            change_address: Receives the remainder when it is above dust
            strategy: Selection strategy, settings.selection_strategy when omitted

        Raises:
            NoUTXOsError, InvalidAmountError, InvalidAddressError, DustOutputError,
            InsufficientFundsError, FeeExceedsAmountError
        """
        if not utxos:
            raise NoUTXOsError()
        if amount <= 0:
            raise InvalidAmountError(f"Amount must be positive, got {amount}")

        destination = self._decode(to_address)
        change = self._decode(change_address)

        dust = destination.script_type.dust_limit
        if amount < dust:
            raise DustOutputError(amount, dust)

        rate = self.settings.default_fee_rate if fee_rate is None else fee_rate
        selection = self.selector.select(
            utxos,
            amount,
            rate,
            change_script_type=change.script_type,
            strategy=strategy or self.settings.selection_strategy,
            destination_script_type=destination.script_type,
        )

        outputs = [TxOutput(to_address, amount, destination.script_pubkey)]
        change_index = None
        if selection.has_change:
            change_index = len(outputs)
            outputs.append(
                TxOutput(change_address, selection.change_amount, change.script_pubkey)
            )

        self._check_fee(selection.fee, amount, selection.total_input)

        tx = UnsignedTransaction(
            inputs=self._inputs(selection.selected_utxos),
            outputs=outputs,
            fee=selection.fee,
            version=self.settings.tx_version,
            change_output_index=change_index,
        )
        logger.info(
            f"Built tx: {len(tx.inputs)} inputs, {len(tx.outputs)} outputs, "
            f"amount {amount} sats, fee {tx.fee} sats"
        )
        return tx

    def build_send_all(
        self,
        utxos: Sequence[UTXO],
        to_address: str,
        fee_rate: FeeRate | None = None,
    ) -> UnsignedTransaction:
        """
        Sweep every UTXO into a single output, less the fee.

        Raises:
            NoUTXOsError, InvalidAddressError, FeeExceedsAmountError, DustOutputError
        """
        if not utxos:
            raise NoUTXOsError()
        destination = self._decode(to_address)

        rate = self.settings.default_fee_rate if fee_rate is None else fee_rate
        if Decimal(str(rate)) < 0:
            raise InvalidAmountError(f"Fee rate must not be negative, got {rate}")
        vsize = estimate_virtual_size([u.script_type for u in utxos], [destination.script_type])
        fee = fee_for_size(vsize, rate)

        total = sum(u.amount_sats for u in utxos)
        if total <= fee:
            raise FeeExceedsAmountError(fee, total)
        amount = total - fee

        dust = destination.script_type.dust_limit
        if amount < dust:
            raise DustOutputError(amount, dust)
        self._check_fee(fee, amount, total)

        tx = UnsignedTransaction(
            inputs=self._inputs(utxos),
            outputs=[TxOutput(to_address, amount, destination.script_pubkey)],
            fee=fee,
            version=self.settings.tx_version,
        )
        logger.info(f"Built send-all tx: {len(tx.inputs)} inputs, {amount} sats, fee {fee} sats")
        return tx
