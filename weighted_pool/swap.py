"""Swap planning.

Both swap directions hold the supply D fixed while the traded balances move
along the invariant. The fee is charged on the input asset. It is kept out
of the trade itself and then added to the pool's balance, and the supply it
creates is minted to the staking recipient.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from weighted_pool.constants import PRECISION
from weighted_pool.errors import InsufficientLiquidityError
from weighted_pool.invariant import iterate_balance
from weighted_pool.ledger import VirtualBalanceLedger
from weighted_pool.math.fixed_point import mul_up

logger = structlog.get_logger()


@dataclass(frozen=True)
class SwapResult:
    """Planned swap.

    Attributes:
        ledger: Ledger to commit
        amount_in: Raw amount of the input asset paid by the trader
        amount_out: Raw amount of the output asset paid to the receiver
        fee: Raw fee charged on the input asset (included in amount_in)
        staking_shares: Fee shares minted to the staking recipient
    """

    ledger: VirtualBalanceLedger
    amount_in: int
    amount_out: int
    fee: int
    staking_shares: int


class SwapEngine:
    """Plans exact-in and exact-out swaps."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations

    def _solve(self, ledger: VirtualBalanceLedger, amplification: int, index: int) -> VirtualBalanceLedger:
        """Re-solve balances[index] so the ledger is back on the curve at its supply."""
        solution = iterate_balance(
            amplification,
            ledger.w_prod,
            ledger.weights[index],
            ledger.num_assets,
            ledger.supply,
            ledger.sum_excluding(index),
            ledger.product_excluding(index),
            ledger.balances[index],
            self.max_iterations,
        )
        return ledger.replace_balance(index, solution.y, solution.vb_prod)

    def _collect_fee(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        index: int,
        fee_virtual: int,
    ) -> tuple[VirtualBalanceLedger, int]:
        if fee_virtual == 0:
            return ledger, 0
        updated = ledger.apply_delta(index, fee_virtual).solve_supply(amplification, self.max_iterations)
        return updated, updated.supply - ledger.supply

    def swap(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        rates: Sequence[int],
        i: int,
        j: int,
        dx: int,
        fee_rate: int,
    ) -> SwapResult:
        """Plan selling exactly dx of asset i for asset j.

        Args:
            ledger: Current ledger (must hold supply)
            amplification: Effective amplification
            rates: Rate per asset
            i: Input asset index
            j: Output asset index
            dx: Raw input amount, fee included
            fee_rate: Pool fee rate (18 decimals)

        Returns:
            SwapResult with amount_out rounded down

        Raises:
            ValueError: If i == j or dx is not positive
            InsufficientLiquidityError: If the pool is empty or j would be drained,
                or dx is too small to pay out anything
        """
        _check_pair(ledger, i, j)
        if dx <= 0:
            raise ValueError(f"Swap amount must be positive, got {dx}")

        fee = mul_up(dx, fee_rate)
        moved = ledger.apply_delta(i, (dx - fee) * rates[i] // PRECISION)
        solved = self._solve(moved, amplification, j)

        out_virtual = ledger.balances[j] - solved.balances[j]
        dy = max(out_virtual, 0) * PRECISION // rates[j]
        if dy == 0:
            raise InsufficientLiquidityError(f"Swap of {dx} is too small to pay out any of asset {j}")

        updated, staking_shares = self._collect_fee(solved, amplification, i, fee * rates[i] // PRECISION)
        logger.debug("swap_planned", asset_in=i, asset_out=j, amount_in=dx, amount_out=dy, fee=fee)
        return SwapResult(updated, dx, dy, fee, staking_shares)

    def swap_exact_out(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        rates: Sequence[int],
        i: int,
        j: int,
        dy: int,
        fee_rate: int,
    ) -> SwapResult:
        """Plan buying exactly dy of asset j with asset i.

        The input is solved holding D fixed and the fee is grossed up so that
        it is fee_rate of the total amount paid: fee = dx * f / (1 - f).

        Args:
            ledger: Current ledger (must hold supply)
            amplification: Effective amplification
            rates: Rate per asset
            i: Input asset index
            j: Output asset index
            dy: Raw output amount
            fee_rate: Pool fee rate (18 decimals)

        Returns:
            SwapResult with amount_in rounded up

        Raises:
            ValueError: If i == j or dy is not positive
            InsufficientLiquidityError: If the pool is empty or j would be drained
        """
        _check_pair(ledger, i, j)
        if dy <= 0:
            raise ValueError(f"Swap amount must be positive, got {dy}")

        out_virtual = (dy * rates[j] + PRECISION - 1) // PRECISION
        if out_virtual >= ledger.balances[j]:
            raise InsufficientLiquidityError(f"Pool cannot pay {dy} of asset {j}")

        moved = ledger.apply_delta(j, -out_virtual)
        solved = self._solve(moved, amplification, i)

        in_virtual = solved.balances[i] - ledger.balances[i]
        net = (max(in_virtual, 0) * PRECISION + rates[i] - 1) // rates[i]
        fee = (net * fee_rate + PRECISION - fee_rate - 1) // (PRECISION - fee_rate)
        dx = net + fee

        updated, staking_shares = self._collect_fee(solved, amplification, i, fee * rates[i] // PRECISION)
        logger.debug("swap_exact_out_planned", asset_in=i, asset_out=j, amount_in=dx, amount_out=dy, fee=fee)
        return SwapResult(updated, dx, dy, fee, staking_shares)


def _check_pair(ledger: VirtualBalanceLedger, i: int, j: int) -> None:
    n = ledger.num_assets
    if not (0 <= i < n and 0 <= j < n):
        raise IndexError(f"Asset index out of range for {n} assets")
    if i == j:
        raise ValueError("Cannot swap an asset for itself")
    if ledger.is_empty:
        raise InsufficientLiquidityError("Pool has no liquidity")
