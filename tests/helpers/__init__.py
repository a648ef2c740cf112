"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Asset identifiers, accounts and common amounts
- factories: Pool, ledger and clock factory functions
"""

from tests.helpers.constants import (
    ALICE,
    ASSETS,
    BOB,
    CBETH,
    E18,
    GENESIS_TIME,
    GUARDIAN,
    MANAGEMENT,
    RETH,
    SFRXETH,
    STAKING,
    STETH,
)
from tests.helpers.factories import (
    FakeClock,
    equal_weights,
    fund,
    make_pool,
    seed_pool,
    seeded_ledger,
)

__all__ = [
    # Constants
    "E18",
    "STETH",
    "RETH",
    "CBETH",
    "SFRXETH",
    "ASSETS",
    "MANAGEMENT",
    "GUARDIAN",
    "STAKING",
    "ALICE",
    "BOB",
    "GENESIS_TIME",
    # Factories
    "FakeClock",
    "equal_weights",
    "fund",
    "make_pool",
    "seed_pool",
    "seeded_ledger",
]
