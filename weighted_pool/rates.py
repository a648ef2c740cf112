"""Rate refresh.

Applies freshly observed oracle rates to the ledger: each changed rate
rescales the asset's virtual balance by new / old, and the supply is
re-solved once at the end.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import structlog

from weighted_pool.constants import PRECISION
from weighted_pool.errors import RateShockError, ZeroRateError
from weighted_pool.ledger import VirtualBalanceLedger

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateUpdate:
    """Outcome of a rate refresh.

    Attributes:
        ledger: Ledger with rescaled balances and re-solved supply
        rates: Cached rate per asset after the refresh
        supply_delta: Change in supply to settle with the staking recipient
    """

    ledger: VirtualBalanceLedger
    rates: tuple[int, ...]
    supply_delta: int


def check_rate_increase(asset: str, previous: int, current: int, max_rate_increase: int) -> None:
    """Reject a rate jump above previous * (1 + max_rate_increase).

    A first observation (previous == 0) is never capped.

    Raises:
        RateShockError: If the increase exceeds the cap
    """
    if previous == 0:
        return
    if current > previous + previous * max_rate_increase // PRECISION:
        logger.warning("rate_shock_rejected", asset=asset, previous=previous, current=current)
        raise RateShockError(asset, previous, current)


class RateUpdater:
    """Folds new rates into a ledger."""

    def __init__(self, max_rate_increase: int, max_iterations: int) -> None:
        self.max_rate_increase = max_rate_increase
        self.max_iterations = max_iterations

    def refresh(
        self,
        ledger: VirtualBalanceLedger,
        rates: Sequence[int],
        observed: Mapping[int, int],
        amplification: int,
        assets: Sequence[str],
        override: bool = False,
    ) -> RateUpdate:
        """Apply observed rates.

        Args:
            ledger: Current ledger
            rates: Cached rate per asset
            observed: New rate per asset index
            amplification: Amplification used to re-solve the supply
            assets: Asset identifiers (for error reporting)
            override: Skip the rate increase cap

        Returns:
            RateUpdate

        Raises:
            ZeroRateError: If any observed rate is zero
            RateShockError: If an increase exceeds the cap without override
        """
        new_rates = list(rates)
        updated = ledger
        for index in sorted(observed):
            rate = observed[index]
            if rate == 0:
                raise ZeroRateError(f"Rate provider for {assets[index]} returned zero")
            previous = new_rates[index]
            if rate == previous:
                continue
            if not override:
                check_rate_increase(assets[index], previous, rate, self.max_rate_increase)

            balance = updated.balances[index]
            if previous > 0 and balance > 0:
                updated = updated.apply_delta(index, balance * rate // previous - balance)
            new_rates[index] = rate
            logger.debug("rate_updated", asset=assets[index], previous=previous, rate=rate)

        supply_delta = 0
        if updated is not ledger and not updated.is_empty:
            updated = updated.solve_supply(amplification, self.max_iterations)
            supply_delta = updated.supply - ledger.supply

        return RateUpdate(updated, tuple(new_rates), supply_delta)
