"""Virtual balance ledger.

Holds per-asset virtual balances together with the cached aggregates the
invariant solvers consume:

- vb_sum: exact running sum of the virtual balances
- vb_prod: product term prod_i (D * w_i / x_i)^(n * w_i) evaluated at the
  current supply D, always rounded up
- w_prod: weight product, recomputed whenever weights change

The ledger is an immutable value. Every mutation returns a new ledger, so an
operation can plan its full effect on local copies and the pool only swaps in
the final ledger once all checks passed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

import structlog

from weighted_pool.constants import PRECISION
from weighted_pool.errors import InsufficientLiquidityError
from weighted_pool.invariant import (
    inverse_balance_factor,
    iterate_supply,
    rescale_product,
    vb_product,
    weight_product,
)
from weighted_pool.math.fixed_point import div_up, mul_up, pow_up

logger = structlog.get_logger()


@dataclass(frozen=True)
class VirtualBalanceLedger:
    """Virtual balances and cached aggregates of a pool.

    An empty pool has supply, vb_sum and vb_prod all equal to 0; a zero
    vb_prod means "no shape yet" rather than a degenerate product.

    Attributes:
        balances: Virtual balance per asset (raw balance * rate)
        weights: Current weight per asset (18 decimals)
        vb_sum: Sum of balances
        vb_prod: Product term at supply (18 decimals, 0 when empty)
        w_prod: Weight product of the current weights (18 decimals)
        supply: Supply invariant D, equal to the outstanding pool shares
    """

    balances: tuple[int, ...]
    weights: tuple[int, ...]
    vb_sum: int = 0
    vb_prod: int = 0
    w_prod: int = 0
    supply: int = 0

    @classmethod
    def empty(cls, weights: Sequence[int]) -> VirtualBalanceLedger:
        """Create a ledger with no balances for the given weights."""
        return cls(
            balances=(0,) * len(weights),
            weights=tuple(weights),
            w_prod=weight_product(weights),
        )

    @property
    def num_assets(self) -> int:
        """Number of assets tracked."""
        return len(self.balances)

    @property
    def is_empty(self) -> bool:
        """True when no shares are outstanding."""
        return self.supply == 0

    def exponent(self, index: int) -> int:
        """Weight exponent n * w_i of an asset."""
        return self.weights[index] * self.num_assets

    def share(self, index: int) -> int:
        """Fraction of vb_sum held by an asset (18 decimals)."""
        if self.vb_sum == 0:
            return 0
        return self.balances[index] * PRECISION // self.vb_sum

    # =========================================================================
    # Incremental updates
    # =========================================================================

    def apply_delta(self, index: int, delta: int) -> VirtualBalanceLedger:
        """Adjust one virtual balance by a signed delta.

        vb_prod is updated by multiplying in (old / new)^(n * w), which swaps
        the stale factor for the new one without touching other assets. The
        ratio and the power are both rounded up so repeated updates can only
        drift in the pool's favour.

        Raises:
            InsufficientLiquidityError: If the balance would go negative, or
                reach zero while the pool has shape
        """
        if delta == 0:
            return self
        old = self.balances[index]
        new = old + delta
        if new < 0:
            raise InsufficientLiquidityError(f"Balance of asset {index} would go negative")

        vb_prod = self.vb_prod
        if vb_prod > 0:
            if new == 0:
                raise InsufficientLiquidityError(f"Balance of asset {index} would be depleted")
            vb_prod = mul_up(vb_prod, pow_up(div_up(old, new), self.exponent(index)))

        balances = list(self.balances)
        balances[index] = new
        return replace(self, balances=tuple(balances), vb_sum=self.vb_sum + delta, vb_prod=vb_prod)

    def replace_balance(self, index: int, balance: int, vb_prod: int) -> VirtualBalanceLedger:
        """Set one balance to a solved value with its matching product term."""
        balances = list(self.balances)
        vb_sum = self.vb_sum - balances[index] + balance
        balances[index] = balance
        return replace(self, balances=tuple(balances), vb_sum=vb_sum, vb_prod=vb_prod)

    def scale_balances(self, balances: Sequence[int], supply: int) -> VirtualBalanceLedger:
        """Replace all balances and supply keeping vb_prod.

        Only valid for proportional changes, which leave the product term
        unchanged.
        """
        ledger = replace(self, balances=tuple(balances), vb_sum=sum(balances), supply=supply)
        if supply == 0:
            return ledger.reset_empty()
        return ledger

    def product_excluding(self, index: int) -> int:
        """Product term at supply without the factor of one asset."""
        return mul_up(
            self.vb_prod,
            inverse_balance_factor(self.supply, self.weights[index], self.num_assets, self.balances[index]),
        )

    def sum_excluding(self, index: int) -> int:
        """vb_sum without the balance of one asset."""
        return self.vb_sum - self.balances[index]

    def with_supply(self, supply: int) -> VirtualBalanceLedger:
        """Move the ledger to a new supply, rescaling vb_prod by (new / old)^n."""
        if supply == self.supply:
            return self
        if supply == 0:
            return replace(self, supply=0).reset_empty()
        vb_prod = rescale_product(self.vb_prod, supply, self.supply, self.num_assets)
        return replace(self, supply=supply, vb_prod=vb_prod)

    # =========================================================================
    # Full recomputation
    # =========================================================================

    def recompute_full(self) -> VirtualBalanceLedger:
        """Recompute vb_sum and vb_prod from the balances and weights.

        vb_prod is evaluated at the current supply, or at vb_sum when no
        supply exists yet. The result depends only on balances, weights and
        supply, so recomputing twice gives the same ledger.
        """
        vb_sum = sum(self.balances)
        if vb_sum == 0:
            return self.reset_empty()
        supply = self.supply or vb_sum
        return replace(self, vb_sum=vb_sum, vb_prod=vb_product(supply, self.weights, self.balances))

    def reset_empty(self) -> VirtualBalanceLedger:
        """Set both aggregates to the empty sentinel 0."""
        return replace(self, vb_sum=0, vb_prod=0)

    def reweight(self, weights: Sequence[int]) -> VirtualBalanceLedger:
        """Switch to new weights and recompute the aggregates."""
        ledger = replace(self, weights=tuple(weights), w_prod=weight_product(weights))
        return ledger.recompute_full()

    def append_asset(self, balance: int, weights: Sequence[int]) -> VirtualBalanceLedger:
        """Add a new asset with the given balance under a new weight vector.

        Aggregates are recomputed from scratch at vb_sum, exactly as for a
        pool that held the asset from its first deposit.
        """
        ledger = replace(
            self,
            balances=(*self.balances, balance),
            weights=tuple(weights),
            w_prod=weight_product(weights),
            supply=0,
        )
        return ledger.recompute_full()

    # =========================================================================
    # Supply
    # =========================================================================

    def solve_supply(self, amplification: int, max_iterations: int) -> VirtualBalanceLedger:
        """Solve the invariant for D starting from the cached supply.

        A ledger without supply starts from vb_sum.

        Raises:
            InvariantDidNotConverge: If the iteration cap is exhausted
        """
        if self.vb_sum == 0:
            return self.reset_empty()
        solution = iterate_supply(
            amplification,
            self.w_prod,
            self.num_assets,
            self.vb_sum,
            self.supply or self.vb_sum,
            self.vb_prod,
            max_iterations,
        )
        logger.debug(
            "supply_solved",
            previous_supply=self.supply,
            supply=solution.d,
            iterations=solution.iterations,
        )
        return replace(self, supply=solution.d, vb_prod=solution.vb_prod)
