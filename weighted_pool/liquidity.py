"""Liquidity operations.

Planning functions for deposits and withdrawals. Each takes the current
ledger and returns the ledger to commit plus the share and asset amounts
involved; nothing here touches pool state.

Fees on imbalanced deposits and single-asset withdrawals are charged at half
the pool fee rate on the imbalanced portion. The fee stays in the pool: the
supply it adds is minted to the staking recipient.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

import structlog

from weighted_pool.constants import PRECISION
from weighted_pool.errors import InsufficientLiquidityError, InsufficientSharesError, SlippageError
from weighted_pool.invariant import iterate_balance
from weighted_pool.ledger import VirtualBalanceLedger

logger = structlog.get_logger()


def half_fee(amount: int, fee_rate: int) -> int:
    """Fee of amount * fee_rate / 2, rounded up."""
    return (amount * fee_rate + 2 * PRECISION - 1) // (2 * PRECISION)


@dataclass(frozen=True)
class AddLiquidityResult:
    """Planned deposit.

    Attributes:
        ledger: Ledger to commit
        shares: Shares minted to the receiver
        staking_shares: Fee shares minted to the staking recipient
        fees: Virtual fee charged per asset
    """

    ledger: VirtualBalanceLedger
    shares: int
    staking_shares: int
    fees: tuple[int, ...]


@dataclass(frozen=True)
class RemoveLiquidityResult:
    """Planned balanced withdrawal."""

    ledger: VirtualBalanceLedger
    amounts: tuple[int, ...]


@dataclass(frozen=True)
class RemoveSingleResult:
    """Planned single-asset withdrawal.

    Attributes:
        ledger: Ledger to commit
        amount: Asset amount paid to the receiver
        fee: Virtual fee retained by the pool
        staking_shares: Fee shares minted to the staking recipient
    """

    ledger: VirtualBalanceLedger
    amount: int
    fee: int
    staking_shares: int


@dataclass(frozen=True)
class AddAssetResult:
    """Planned asset addition."""

    ledger: VirtualBalanceLedger
    shares: int


class LiquidityEngine:
    """Plans deposits, withdrawals and asset additions."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations

    def add_liquidity(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        rates: Sequence[int],
        amounts: Sequence[int],
        fee_rate: int,
    ) -> AddLiquidityResult:
        """Plan a deposit of raw asset amounts.

        The first deposit must include every asset and is fee free; its
        shares equal the solved D. Later deposits pay half the fee rate on the
        part of each asset's increase above the smallest proportional increase
        across all assets, so a balanced deposit pays nothing and a
        single-sided deposit pays half the fee on its full amount. Shares are
        the supply gained by the fee-reduced balances; the supply gained by
        the fees goes to staking.

        Raises:
            ValueError: If amounts has the wrong length or is all zero
            InsufficientLiquidityError: If a first deposit omits an asset
            SlippageError: If the deposit would mint no shares
        """
        if len(amounts) != ledger.num_assets:
            raise ValueError(f"Expected {ledger.num_assets} amounts, got {len(amounts)}")
        if any(amount < 0 for amount in amounts) or not any(amounts):
            raise ValueError("Deposit amounts must be non-negative and not all zero")

        deltas = [amount * rate // PRECISION for amount, rate in zip(amounts, rates, strict=True)]

        if ledger.is_empty:
            if not all(deltas):
                raise InsufficientLiquidityError("First deposit must include every asset")
            balances = tuple(b + d for b, d in zip(ledger.balances, deltas, strict=True))
            seeded = replace(ledger, balances=balances, supply=0).recompute_full()
            updated = seeded.solve_supply(amplification, self.max_iterations)
            logger.debug("initial_deposit_planned", supply=updated.supply)
            return AddLiquidityResult(updated, updated.supply, 0, (0,) * ledger.num_assets)

        lowest = min(d * PRECISION // b for d, b in zip(deltas, ledger.balances, strict=True))

        user = ledger
        final = ledger
        fees = []
        for i, delta in enumerate(deltas):
            fee = 0
            if delta > 0 and fee_rate > 0:
                fee = half_fee(delta - ledger.balances[i] * lowest // PRECISION, fee_rate)
            fees.append(fee)
            user = user.apply_delta(i, delta - fee)
            final = final.apply_delta(i, delta)

        user = user.solve_supply(amplification, self.max_iterations)
        final = final.solve_supply(amplification, self.max_iterations) if any(fees) else user

        shares = user.supply - ledger.supply
        if shares <= 0:
            raise SlippageError("Deposit mints no shares")
        staking_shares = final.supply - user.supply
        logger.debug(
            "deposit_planned",
            shares=shares,
            staking_shares=staking_shares,
            lowest_increase=lowest,
        )
        return AddLiquidityResult(final, shares, staking_shares, tuple(fees))

    def remove_liquidity(
        self,
        ledger: VirtualBalanceLedger,
        rates: Sequence[int],
        shares: int,
    ) -> RemoveLiquidityResult:
        """Plan a balanced withdrawal.

        Every balance shrinks by shares / supply, which leaves the product
        term unchanged, so no solve is needed. Removing the whole supply
        empties the pool.

        Raises:
            InsufficientSharesError: If shares is not in (0, supply]
        """
        if shares <= 0 or shares > ledger.supply:
            raise InsufficientSharesError(f"Cannot redeem {shares} of {ledger.supply} shares")

        deltas = [balance * shares // ledger.supply for balance in ledger.balances]
        balances = [balance - delta for balance, delta in zip(ledger.balances, deltas, strict=True)]
        updated = ledger.scale_balances(balances, ledger.supply - shares)
        amounts = tuple(delta * PRECISION // rate for delta, rate in zip(deltas, rates, strict=True))
        return RemoveLiquidityResult(updated, amounts)

    def remove_liquidity_single(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        rates: Sequence[int],
        index: int,
        shares: int,
        fee_rate: int,
    ) -> RemoveSingleResult:
        """Plan a withdrawal of one asset.

        Solves the asset's balance at D' = supply - shares. Half the fee rate
        is charged on the virtual amount leaving the pool and stays in the
        pool's balance; the supply it adds goes to staking.

        Raises:
            InsufficientSharesError: If shares is not positive
            InsufficientLiquidityError: If shares would redeem the whole supply
                or are too few to pay out anything
        """
        if shares <= 0:
            raise InsufficientSharesError(f"Cannot redeem {shares} shares")
        if shares >= ledger.supply:
            raise InsufficientLiquidityError("Whole supply cannot be redeemed through a single asset")

        target = ledger.with_supply(ledger.supply - shares)
        previous = target.balances[index]
        solution = iterate_balance(
            amplification,
            target.w_prod,
            target.weights[index],
            target.num_assets,
            target.supply,
            target.sum_excluding(index),
            target.product_excluding(index),
            previous,
            self.max_iterations,
        )
        delta = max(previous - solution.y, 0)
        fee = half_fee(delta, fee_rate)
        amount = (delta - fee) * PRECISION // rates[index]
        if amount == 0:
            raise InsufficientLiquidityError(f"Redeeming {shares} shares pays out none of asset {index}")

        updated = target.replace_balance(index, solution.y, solution.vb_prod)
        staking_shares = 0
        if fee > 0:
            updated = updated.apply_delta(index, fee).solve_supply(amplification, self.max_iterations)
            staking_shares = updated.supply - target.supply
        logger.debug(
            "single_withdrawal_planned",
            asset_index=index,
            amount=amount,
            fee=fee,
            iterations=solution.iterations,
        )
        return RemoveSingleResult(updated, amount, fee, staking_shares)

    def add_asset(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        weight: int,
        balance: int,
    ) -> AddAssetResult:
        """Plan onboarding a new asset with a starting virtual balance.

        Existing weights are scaled by (1 - weight) and the new asset takes
        the remainder, so rounding never breaks the weight sum. Aggregates
        and supply are then rebuilt from scratch, which makes the result
        identical to a pool that held the asset from its first deposit.

        Raises:
            InsufficientLiquidityError: If balance is not positive
            SlippageError: If the addition would mint no shares
        """
        if balance <= 0:
            raise InsufficientLiquidityError("New asset needs a positive starting balance")

        scale = PRECISION - weight
        weights = [w * scale // PRECISION for w in ledger.weights]
        weights.append(PRECISION - sum(weights))

        updated = ledger.append_asset(balance, weights).solve_supply(amplification, self.max_iterations)
        shares = updated.supply - ledger.supply
        if shares <= 0:
            raise SlippageError("Asset addition mints no shares")
        return AddAssetResult(updated, shares)
