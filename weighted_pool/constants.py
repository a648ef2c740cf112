"""Shared constants for the weighted stableswap pool.

All amounts, rates, weights and amplification values are 18-decimal
fixed-point integers unless noted otherwise.
"""

# =============================================================================
# Fixed-point scale
# =============================================================================

# 1.0 in 18-decimal fixed point
PRECISION = 10**18

# =============================================================================
# Pool limits
# =============================================================================

# Largest number of assets a single pool may hold
MAX_NUM_ASSETS = 32

# Smallest allowed user-facing amplification (1.0)
MIN_AMPLIFICATION = PRECISION

# Default cap on Newton-Raphson iterations for the invariant solvers
DEFAULT_MAX_ITERATIONS = 255

# Default cap on a single rate increase (10%) before an override is required
DEFAULT_MAX_RATE_INCREASE = PRECISION // 10

# =============================================================================
# Rounding margins
# =============================================================================

# Relative error budget for pow_up/pow_down (1e-16)
MAX_POW_RELATIVE_ERROR = 100

# =============================================================================
# Packed weight layout
# =============================================================================

# Bits per packed field (weight, lower band, upper band)
WEIGHT_FIELD_BITS = 85
WEIGHT_FIELD_MASK = (1 << WEIGHT_FIELD_BITS) - 1
