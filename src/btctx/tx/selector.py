"""
UTXO selection with virtual-size based fee estimation.

Strategies:
- Branch-and-bound: searches for an input set that pays target + fee with
  an excess small enough to drop the change output
- Largest-first / smallest-first: greedy accumulation, adding change when
  it clears the dust limit and donating it to the fee otherwise
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_CEILING, Decimal
from typing import NamedTuple

from loguru import logger

from btctx.constants import BNB_MAX_ITERATIONS, SEGWIT_MARKER_VSIZE, TX_OVERHEAD_VSIZE
from btctx.models import (
    UTXO,
    InsufficientFundsError,
    InvalidAmountError,
    NoUTXOsError,
    ScriptType,
    SelectionResult,
    SelectionStrategy,
)

FeeRate = Decimal | float | int


def _to_decimal(fee_rate: FeeRate) -> Decimal:
    return fee_rate if isinstance(fee_rate, Decimal) else Decimal(str(fee_rate))


def estimate_virtual_size(
    input_types: Iterable[ScriptType], output_types: Iterable[ScriptType]
) -> int:
    """
    Estimate transaction vsize from per-type input and output sizes.

    Adds one vbyte for the SegWit marker and flag when any input carries a
    witness.
    """
    input_types = list(input_types)
    vsize = TX_OVERHEAD_VSIZE
    vsize += sum(t.input_vsize for t in input_types)
    vsize += sum(t.output_vsize for t in output_types)
    if any(t.is_segwit for t in input_types):
        vsize += SEGWIT_MARKER_VSIZE
    return vsize


def fee_for_size(vsize: int, fee_rate: FeeRate) -> int:
    """Fee in sats for vsize vbytes at fee_rate sat/vB, rounded up."""
    fee = _to_decimal(fee_rate) * vsize
    return int(fee.to_integral_value(rounding=ROUND_CEILING))


def dust_limit(script_type: ScriptType) -> int:
    return script_type.dust_limit


def is_dust(amount: int, script_type: ScriptType) -> bool:
    return amount < script_type.dust_limit


class _SearchNode(NamedTuple):
    index: int
    selected: tuple[int, ...]
    value: int
    input_vsize: int
    has_witness: bool


class UTXOSelector:
    """Chooses inputs covering a payment plus its fee."""

    def __init__(self, max_iterations: int = BNB_MAX_ITERATIONS) -> None:
        self.max_iterations = max_iterations

    def select(
        self,
        utxos: Sequence[UTXO],
        target_amount: int,
        fee_rate: FeeRate,
        change_script_type: ScriptType = ScriptType.P2WPKH,
        strategy: SelectionStrategy = SelectionStrategy.BRANCH_AND_BOUND,
        destination_script_type: ScriptType = ScriptType.P2WPKH,
    ) -> SelectionResult:
        """
        Select UTXOs to pay target_amount at fee_rate.

        Branch-and-bound falls back to largest-first when it finds no
        changeless match.

        Raises:
            NoUTXOsError: If utxos is empty
            InvalidAmountError: If target_amount <= 0 or fee_rate < 0
            InsufficientFundsError: If all UTXOs together cannot pay target + fee
        """
        if not utxos:
            raise NoUTXOsError()
        if target_amount <= 0:
            raise InvalidAmountError(f"Target amount must be positive, got {target_amount}")
        if _to_decimal(fee_rate) < 0:
            raise InvalidAmountError(f"Fee rate must not be negative, got {fee_rate}")

        logger.debug(
            f"Selecting from {len(utxos)} UTXOs for {target_amount} sats "
            f"at {fee_rate} sat/vB ({strategy.value})"
        )

        if strategy == SelectionStrategy.BRANCH_AND_BOUND:
            result = self.branch_and_bound(
                utxos, target_amount, fee_rate, change_script_type, destination_script_type
            )
            if result is not None:
                return result
            logger.debug("Branch-and-bound found no changeless match, using largest-first")
            strategy = SelectionStrategy.LARGEST_FIRST

        ordered = sorted(
            utxos,
            key=lambda u: u.amount_sats,
            reverse=strategy == SelectionStrategy.LARGEST_FIRST,
        )
        return self._accumulate(
            ordered,
            target_amount,
            fee_rate,
            change_script_type,
            destination_script_type,
            strategy,
        )

    def _accumulate(
        self,
        ordered: Sequence[UTXO],
        target_amount: int,
        fee_rate: FeeRate,
        change_script_type: ScriptType,
        destination_script_type: ScriptType,
        strategy: SelectionStrategy,
    ) -> SelectionResult:
        selected: list[UTXO] = []
        total = 0

        for utxo in ordered:
            selected.append(utxo)
            total += utxo.amount_sats

            input_types = [u.script_type for u in selected]
            fee_no_change = fee_for_size(
                estimate_virtual_size(input_types, [destination_script_type]), fee_rate
            )
            if total < target_amount + fee_no_change:
                continue

            fee_with_change = fee_for_size(
                estimate_virtual_size(input_types, [destination_script_type, change_script_type]),
                fee_rate,
            )
            change = total - target_amount - fee_with_change
            if change >= change_script_type.dust_limit:
                logger.debug(
                    f"Selected {len(selected)} inputs: {total} sats, fee {fee_with_change}, "
                    f"change {change}"
                )
                return SelectionResult(
                    selected_utxos=list(selected),
                    total_input=total,
                    fee=fee_with_change,
                    change_amount=change,
                    has_change=True,
                    strategy=strategy,
                )

            # Change would be dust; the excess goes to the miner
            fee = total - target_amount
            logger.debug(f"Selected {len(selected)} inputs: {total} sats, fee {fee}, no change")
            return SelectionResult(
                selected_utxos=list(selected),
                total_input=total,
                fee=fee,
                strategy=strategy,
            )

        required = target_amount + fee_for_size(
            estimate_virtual_size([u.script_type for u in ordered], [destination_script_type]),
            fee_rate,
        )
        raise InsufficientFundsError(required=required, available=total)

    def branch_and_bound(
        self,
        utxos: Sequence[UTXO],
        target_amount: int,
        fee_rate: FeeRate,
        change_script_type: ScriptType = ScriptType.P2WPKH,
        destination_script_type: ScriptType = ScriptType.P2WPKH,
    ) -> SelectionResult | None:
        """
        Depth-first search for a changeless input set.

        A set is acceptable when its value covers target + fee (without a
        change output) and the excess is at most the cost of creating and
        holding a change output: dust limit + fee_rate * change output vsize.
        The least-excess acceptable set wins. Returns None when nothing is
        found within max_iterations nodes.
        """
        pool = sorted(utxos, key=lambda u: u.amount_sats, reverse=True)
        tolerance = change_script_type.dust_limit + fee_for_size(
            change_script_type.output_vsize, fee_rate
        )
        dest_vsize = destination_script_type.output_vsize

        # remaining[i] = value of pool[i:]
        remaining = [0] * (len(pool) + 1)
        for i in range(len(pool) - 1, -1, -1):
            remaining[i] = remaining[i + 1] + pool[i].amount_sats

        best: tuple[int, ...] | None = None
        best_waste = 0
        best_fee = 0
        iterations = 0

        stack = [_SearchNode(0, (), 0, 0, False)]
        while stack and iterations < self.max_iterations:
            node = stack.pop()
            iterations += 1

            vsize = TX_OVERHEAD_VSIZE + node.input_vsize + dest_vsize
            if node.has_witness:
                vsize += SEGWIT_MARKER_VSIZE
            fee = fee_for_size(vsize, fee_rate)
            needed = target_amount + fee

            if node.value >= needed:
                waste = node.value - needed
                if waste <= tolerance and (best is None or waste < best_waste):
                    best, best_waste, best_fee = node.selected, waste, fee
                    if waste == 0:
                        break
                # More inputs only add excess
                continue

            if node.index >= len(pool) or node.value + remaining[node.index] < needed:
                continue

            utxo = pool[node.index]
            stack.append(
                node._replace(index=node.index + 1),
            )
            stack.append(
                _SearchNode(
                    index=node.index + 1,
                    selected=node.selected + (node.index,),
                    value=node.value + utxo.amount_sats,
                    input_vsize=node.input_vsize + utxo.script_type.input_vsize,
                    has_witness=node.has_witness or utxo.script_type.is_segwit,
                )
            )

        logger.debug(f"Branch-and-bound explored {iterations} nodes")
        if best is None:
            return None

        selected = [pool[i] for i in best]
        total = sum(u.amount_sats for u in selected)
        # Sub-dust excess is paid to the miner
        fee = total - target_amount
        logger.debug(
            f"Branch-and-bound match: {len(selected)} inputs, {total} sats, "
            f"fee {fee} (estimate {best_fee}, waste {best_waste})"
        )
        return SelectionResult(
            selected_utxos=selected,
            total_input=total,
            fee=fee,
            strategy=SelectionStrategy.BRANCH_AND_BOUND,
        )
