"""Invariant solvers for the weighted stableswap pool.

The pool invariant relating the supply D to the virtual balances x_i is

    a * sum + D = a * D + D * prod

where
    n     = number of assets,
    v_i   = n * w_i (weight exponent),
    f     = prod_i w_i^(-v_i) (weight product, >= 1),
    a     = A * f (effective amplification),
    sum   = sum_i x_i,
    prod  = prod_i (D * w_i / x_i)^(v_i), which is exactly 1 when every
            x_i == w_i * D.

Large A pulls the curve toward the constant sum (sum == D), small A toward
the weighted constant product prod_i (x_i / w_i)^(v_i) == D^n.

Both solvers are Newton-Raphson iterations with a caller-supplied iteration
cap. They never return a best-effort value: running out of iterations raises.
Every rounding step biases prod upward, which yields a smaller D and a larger
solved balance, both in the pool's favour.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from weighted_pool.constants import MAX_POW_RELATIVE_ERROR, PRECISION
from weighted_pool.errors import (
    BalanceDidNotConverge,
    InsufficientLiquidityError,
    InvariantDidNotConverge,
)
from weighted_pool.math.fixed_point import div_down, div_up, mul_down, mul_up, pow_down, pow_up

__all__ = [
    "InvariantSolution",
    "BalanceSolution",
    "weight_product",
    "effective_amplification",
    "balance_factor",
    "inverse_balance_factor",
    "vb_product",
    "rescale_product",
    "iterate_supply",
    "solve_d",
    "iterate_balance",
    "solve_y",
]


@dataclass(frozen=True)
class InvariantSolution:
    """Result of solving for the supply invariant.

    Attributes:
        d: Supply invariant D
        vb_prod: Product term evaluated at D, for reuse as the cached aggregate
        iterations: Newton-Raphson iterations used
    """

    d: int
    vb_prod: int
    iterations: int


@dataclass(frozen=True)
class BalanceSolution:
    """Result of solving for a single virtual balance.

    Attributes:
        y: Solved virtual balance (rounded up)
        vb_prod: Product term at the same D with y substituted in
        iterations: Newton-Raphson iterations used
    """

    y: int
    vb_prod: int
    iterations: int


# =============================================================================
# Product term helpers
# =============================================================================


def weight_product(weights: Sequence[int]) -> int:
    """Compute f = prod_i (1 / w_i)^(n * w_i).

    Equal weights give exactly n^n.
    """
    n = len(weights)
    product = PRECISION
    for weight in weights:
        product = mul_down(product, pow_down(div_down(PRECISION, weight), weight * n))
    return product


def effective_amplification(amplification: int, w_prod: int) -> int:
    """Scale user-facing amplification by the weight product."""
    return mul_down(amplification, w_prod)


def balance_factor(supply: int, weight: int, num_assets: int, balance: int) -> int:
    """Factor (D * w / x)^(n * w) of one asset, rounded up."""
    return pow_up(div_up(mul_up(supply, weight), balance), weight * num_assets)


def inverse_balance_factor(supply: int, weight: int, num_assets: int, balance: int) -> int:
    """Reciprocal factor (x / (D * w))^(n * w), rounded up.

    Multiplying the product by this removes an asset's contribution.
    """
    return pow_up(div_up(balance, mul_down(supply, weight)), weight * num_assets)


def vb_product(supply: int, weights: Sequence[int], balances: Sequence[int]) -> int:
    """Full product term at supply D.

    Raises:
        InsufficientLiquidityError: If any balance is not positive
    """
    n = len(weights)
    product = PRECISION
    for i, (weight, balance) in enumerate(zip(weights, balances, strict=True)):
        if balance <= 0:
            raise InsufficientLiquidityError(f"Balance at index {i} must be positive")
        product = mul_up(product, balance_factor(supply, weight, n, balance))
    return product


def rescale_product(vb_prod: int, new_supply: int, old_supply: int, num_assets: int) -> int:
    """Move the product term from old_supply to new_supply.

    prod scales with D^n; applied as n ceiling steps of prod * new / old.
    """
    for _ in range(num_assets):
        vb_prod = (vb_prod * new_supply + old_supply - 1) // old_supply
    return vb_prod


# =============================================================================
# Supply invariant
# =============================================================================


def iterate_supply(
    amplification: int,
    w_prod: int,
    num_assets: int,
    vb_sum: int,
    supply: int,
    vb_prod: int,
    max_iterations: int,
) -> InvariantSolution:
    """Newton-Raphson for D starting from a cached (supply, prod) pair.

    Step:
        D' = (a * sum + n * D * prod) / (a - 1 + (n + 1) * prod)
    followed by prod' = prod * (D' / D)^n.

    The residual a*sum + (1 - a)*D - D*prod(D) is concave and strictly
    decreasing in D, so from any start the iterates settle from above.

    Args:
        amplification: User-facing amplification A (18 decimals)
        w_prod: Weight product f (18 decimals)
        num_assets: Number of assets n
        vb_sum: Sum of virtual balances
        supply: Starting guess for D
        vb_prod: Product term evaluated at the starting guess
        max_iterations: Iteration cap

    Returns:
        InvariantSolution with D, prod at D, and iterations used

    Raises:
        InvariantDidNotConverge: If |D' - D| > 1 after max_iterations
    """
    if vb_sum == 0:
        return InvariantSolution(d=0, vb_prod=0, iterations=0)

    amp = effective_amplification(amplification, w_prod)
    d = supply
    for iteration in range(1, max_iterations + 1):
        numerator = amp * vb_sum + num_assets * d * vb_prod
        denominator = amp - PRECISION + (num_assets + 1) * vb_prod
        if denominator <= 0:
            raise InvariantDidNotConverge("Supply iteration denominator became non-positive")

        d_next = numerator // denominator
        vb_prod = rescale_product(vb_prod, d_next, d, num_assets)
        converged = abs(d_next - d) <= 1
        d = d_next
        if converged:
            return InvariantSolution(d=d, vb_prod=vb_prod, iterations=iteration)

    raise InvariantDidNotConverge(f"Supply invariant did not converge after {max_iterations} iterations")


def solve_d(
    amplification: int,
    weights: Sequence[int],
    balances: Sequence[int],
    max_iterations: int,
) -> InvariantSolution:
    """Solve the invariant for D from balances alone.

    Starts from D0 = sum(balances). A cap of 1 is enough when the balances
    are already in proportion to the weights.

    Args:
        amplification: User-facing amplification A (18 decimals)
        weights: Weights, summing to PRECISION
        balances: Positive virtual balances
        max_iterations: Iteration cap

    Returns:
        InvariantSolution

    Raises:
        InsufficientLiquidityError: If any balance is not positive
        InvariantDidNotConverge: If the iteration cap is exhausted
    """
    vb_sum = sum(balances)
    vb_prod = vb_product(vb_sum, weights, balances)
    return iterate_supply(
        amplification,
        weight_product(weights),
        len(weights),
        vb_sum,
        vb_sum,
        vb_prod,
        max_iterations,
    )


# =============================================================================
# Single balance
# =============================================================================


def iterate_balance(
    amplification: int,
    w_prod: int,
    weight: int,
    num_assets: int,
    supply: int,
    sum_other: int,
    prod_other: int,
    seed: int,
    max_iterations: int,
) -> BalanceSolution:
    """Newton-Raphson for one balance y holding D and all other balances fixed.

    With b = sum_other + D / a and k(y) = D * prod_other * (D * w / y)^v / a,
    the invariant reads y + b - D - k(y) = 0 and the step is

        y' = y * ((v + 1) * k + D - b) / (y + v * k)

    A step that would leave the positive domain halves y instead.

    Args:
        amplification: User-facing amplification A (18 decimals)
        w_prod: Weight product f (18 decimals)
        weight: Weight of the solved asset
        num_assets: Number of assets n
        supply: Fixed D
        sum_other: Sum of the other virtual balances
        prod_other: Product term at D without the solved asset's factor
        seed: Starting guess; 0 seeds from D * w
        max_iterations: Iteration cap

    Returns:
        BalanceSolution with y rounded up by the convergence tolerance

    Raises:
        BalanceDidNotConverge: If the iteration cap is exhausted
    """
    amp = effective_amplification(amplification, w_prod)
    exponent = weight * num_assets
    b = sum_other + div_down(supply, amp)
    y = seed if seed > 0 else mul_up(supply, weight)
    base = mul_up(supply, weight)

    for iteration in range(1, max_iterations + 1):
        factor = pow_up(div_up(base, y), exponent)
        k = supply * prod_other // PRECISION * factor // amp
        numerator = (exponent + PRECISION) * k // PRECISION + supply - b
        if numerator <= 0:
            y_next = y // 2
            if y_next == 0:
                raise BalanceDidNotConverge("Balance iteration left the positive domain")
            y = y_next
            continue

        y_next = max(y * numerator // (y + exponent * k // PRECISION), 1)
        tolerance = max(1, y_next * MAX_POW_RELATIVE_ERROR // PRECISION)
        if abs(y_next - y) <= tolerance:
            y = y_next + tolerance
            vb_prod = mul_up(prod_other, pow_up(div_up(base, y), exponent))
            return BalanceSolution(y=y, vb_prod=vb_prod, iterations=iteration)
        y = y_next

    raise BalanceDidNotConverge(f"Balance did not converge after {max_iterations} iterations")


def solve_y(
    amplification: int,
    weights: Sequence[int],
    balances: Sequence[int],
    index: int,
    supply: int,
    max_iterations: int,
) -> BalanceSolution:
    """Solve the invariant for balances[index] at a target D.

    The current balances[index] seeds the iteration; pass 0 for an asset with
    no prior balance and the iteration starts from D * w.

    Raises:
        IndexError: If index is out of range
        InsufficientLiquidityError: If any other balance is not positive
        BalanceDidNotConverge: If the iteration cap is exhausted
    """
    n = len(weights)
    if index < 0 or index >= n:
        raise IndexError(f"index {index} out of range for {n} assets")

    sum_other = 0
    prod_other = PRECISION
    for i, (weight, balance) in enumerate(zip(weights, balances, strict=True)):
        if i == index:
            continue
        if balance <= 0:
            raise InsufficientLiquidityError(f"Balance at index {i} must be positive")
        sum_other += balance
        prod_other = mul_up(prod_other, balance_factor(supply, weight, n, balance))

    return iterate_balance(
        amplification,
        weight_product(weights),
        weights[index],
        n,
        supply,
        sum_other,
        prod_other,
        balances[index],
        max_iterations,
    )
