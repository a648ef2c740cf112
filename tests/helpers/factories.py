"""Factory functions for creating test pools.

Usage:
    from tests.helpers import make_pool, seed_pool

    pool = make_pool()
    seed_pool(pool)  # 100 of every asset from ALICE
"""

from collections.abc import Sequence
from dataclasses import replace

from weighted_pool import PRECISION, Pool, PoolConfig, StaticRateProvider, VirtualBalanceLedger
from weighted_pool.config import DEFAULT_POOL_CONFIG
from tests.helpers.constants import ALICE, ASSETS, E18, GENESIS_TIME, GUARDIAN, MANAGEMENT, STAKING


class FakeClock:
    """Manually advanced clock returning whole seconds."""

    def __init__(self, now: int = GENESIS_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def equal_weights(num_assets: int) -> list[int]:
    """Weights of PRECISION // n, with the rounding remainder on the last asset."""
    weights = [PRECISION // num_assets] * num_assets
    weights[-1] += PRECISION - sum(weights)
    return weights


def make_pool(
    assets: Sequence[str] = ASSETS,
    weights: Sequence[int] | None = None,
    amplification: int = 10 * E18,
    provider: StaticRateProvider | None = None,
    clock: FakeClock | None = None,
    staking: str | None = STAKING,
    config: PoolConfig = DEFAULT_POOL_CONFIG,
) -> Pool:
    """Create an empty pool managed by MANAGEMENT.

    Args:
        assets: Asset identifiers
        weights: Weights (default: equal)
        amplification: Amplification (default: 10)
        provider: Rate provider shared by all assets (default: all rates 1.0)
        clock: Clock (default: a fresh FakeClock)
        staking: Staking recipient to configure, or None to leave unset
        config: Pool configuration

    Returns:
        Empty Pool
    """
    provider = provider or StaticRateProvider()
    pool = Pool(
        assets=list(assets),
        rate_providers=[provider] * len(assets),
        weights=list(weights) if weights is not None else equal_weights(len(assets)),
        amplification=amplification,
        management=MANAGEMENT,
        guardian=GUARDIAN,
        clock=clock or FakeClock(),
        config=config,
    )
    if staking is not None:
        pool.set_staking(staking, sender=MANAGEMENT)
    return pool


def fund(pool: Pool, account: str, amount: int = 10**6 * E18, assets: Sequence[str] | None = None) -> None:
    """Credit an account with every pool asset."""
    for asset in assets or pool.assets:
        pool.custodian.fund(account, asset, amount)


def seed_pool(
    pool: Pool,
    amounts: Sequence[int] | None = None,
    sender: str = ALICE,
    receiver: str | None = None,
) -> int:
    """Fund sender and make a deposit (default: 100 of every asset).

    Returns:
        Shares minted
    """
    amounts = list(amounts) if amounts is not None else [100 * E18] * pool.num_assets
    fund(pool, sender)
    return pool.add_liquidity(amounts, 0, receiver, sender=sender)


def seeded_ledger(
    balances: Sequence[int],
    weights: Sequence[int] | None = None,
    amplification: int = 10 * E18,
) -> VirtualBalanceLedger:
    """Ledger holding balances with its supply solved."""
    weights = list(weights) if weights is not None else equal_weights(len(balances))
    empty = VirtualBalanceLedger.empty(weights)
    ledger = replace(empty, balances=tuple(balances)).recompute_full()
    return ledger.solve_supply(amplification, DEFAULT_POOL_CONFIG.max_iterations)
