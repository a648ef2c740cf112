"""Multi-asset weighted stableswap pool.

Core pieces:
- math: 18-decimal fixed-point ln / exponent / pow kernel and packed weights
- invariant: Newton-Raphson solvers for the supply D and a single balance y
- ledger: immutable virtual balance ledger with cached vb_sum / vb_prod
- ramp, bands, rates: parameter schedules and guards
- liquidity, swap: operation planning
- pool: stateful facade with lifecycle, access control and quotes
"""

from weighted_pool.bands import Band, BandGuard
from weighted_pool.collaborators import (
    InMemoryCustodian,
    InMemoryShareLedger,
    StaticRateProvider,
)
from weighted_pool.config import DEFAULT_POOL_CONFIG, PoolConfig
from weighted_pool.constants import PRECISION
from weighted_pool.invariant import BalanceSolution, InvariantSolution, solve_d, solve_y
from weighted_pool.ledger import VirtualBalanceLedger
from weighted_pool.liquidity import LiquidityEngine
from weighted_pool.pool import AssetRecord, Pool
from weighted_pool.ramp import EffectiveParams, RampController, RampState
from weighted_pool.swap import SwapEngine

__version__ = "0.1.0"

__all__ = [
    # Pool
    "Pool",
    "AssetRecord",
    "PoolConfig",
    "DEFAULT_POOL_CONFIG",
    # Engines
    "LiquidityEngine",
    "SwapEngine",
    "RampController",
    "BandGuard",
    # Values
    "VirtualBalanceLedger",
    "RampState",
    "EffectiveParams",
    "Band",
    "InvariantSolution",
    "BalanceSolution",
    # Solvers
    "solve_d",
    "solve_y",
    # Collaborators
    "StaticRateProvider",
    "InMemoryShareLedger",
    "InMemoryCustodian",
    # Constants
    "PRECISION",
]
