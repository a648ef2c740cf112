"""Pool configuration."""

from dataclasses import dataclass

from weighted_pool.constants import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_RATE_INCREASE,
    MAX_NUM_ASSETS,
)


@dataclass(frozen=True)
class PoolConfig:
    """Centralized configuration for pool behavior.

    Holds the numeric limits that are not part of pool state, making it easy
    to test with different solver caps and rate guards.

    Attributes:
        max_iterations: Newton-Raphson iteration cap used by both invariant
            solvers (default: 255)
        max_rate_increase: Largest accepted relative rate increase per update,
            18 decimals (default: 0.1). Larger jumps require a privileged override.
        max_num_assets: Largest number of assets a pool may hold (default: 32)
    """

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_rate_increase: int = DEFAULT_MAX_RATE_INCREASE
    max_num_assets: int = MAX_NUM_ASSETS


# Default configuration instance
DEFAULT_POOL_CONFIG = PoolConfig()
