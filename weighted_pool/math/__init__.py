"""Fixed-point math for the weighted pool."""

from weighted_pool.math.fixed_point import (
    ONE_18,
    InvalidExponent,
    LnDomainError,
    LogExpMathError,
    ProductOutOfBounds,
    XOutOfBounds,
    YOutOfBounds,
    div_down,
    div_up,
    exponent,
    ln,
    ln_36,
    mul_down,
    mul_up,
    pow_down,
    pow_raw,
    pow_up,
)
from weighted_pool.math.packing import (
    PackingOverflowError,
    WeightRecord,
    pack_weight,
    unpack_weight,
)

__all__ = [
    # Errors
    "LogExpMathError",
    "XOutOfBounds",
    "YOutOfBounds",
    "ProductOutOfBounds",
    "InvalidExponent",
    "LnDomainError",
    "PackingOverflowError",
    # Functions
    "ln",
    "ln_36",
    "exponent",
    "pow_raw",
    "pow_up",
    "pow_down",
    "mul_down",
    "mul_up",
    "div_down",
    "div_up",
    "pack_weight",
    "unpack_weight",
    # Types
    "WeightRecord",
    # Constants
    "ONE_18",
]
