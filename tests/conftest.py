"""Pytest configuration and fixtures."""

import pytest

from weighted_pool import Pool, StaticRateProvider, VirtualBalanceLedger
from tests.helpers import E18, STAKING, FakeClock, make_pool, seed_pool, seeded_ledger


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake clock starting at GENESIS_TIME."""
    return FakeClock()


@pytest.fixture
def provider() -> StaticRateProvider:
    """Return a rate provider with every rate at 1.0."""
    return StaticRateProvider()


@pytest.fixture
def pool(clock: FakeClock, provider: StaticRateProvider) -> Pool:
    """Empty four-asset pool with equal weights and amplification 10."""
    return make_pool(provider=provider, clock=clock)


@pytest.fixture
def seeded_pool(pool: Pool) -> Pool:
    """Pool holding 100 of every asset; ALICE owns all 400 shares."""
    seed_pool(pool)
    return pool


@pytest.fixture
def staked_pool(pool: Pool) -> Pool:
    """Pool holding 100 of every asset; the staking recipient owns all 400 shares.

    Used where ramps or rate changes burn shares from staking.
    """
    seed_pool(pool, receiver=STAKING)
    return pool


@pytest.fixture
def balanced_ledger() -> VirtualBalanceLedger:
    """Four-asset ledger at 100 each with supply 400."""
    return seeded_ledger([100 * E18] * 4)
