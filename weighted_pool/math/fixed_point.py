"""18-decimal fixed-point math kernel.

Deterministic integer implementations of the natural logarithm, the
exponential and the power function used by the invariant solvers. The
logarithm and exponential follow the LogExpMath digit-extraction scheme:
large powers of e are factored out against precomputed constants and the
remainder is handled by a short series.

All values are integers scaled by 10^18. Callers pick the rounding direction
explicitly (``*_up`` / ``*_down``) so that every result can be biased in the
pool's favour.
"""

from __future__ import annotations

from weighted_pool.constants import MAX_POW_RELATIVE_ERROR
from weighted_pool.errors import MathDomainError

__all__ = [
    # Errors
    "LogExpMathError",
    "XOutOfBounds",
    "YOutOfBounds",
    "ProductOutOfBounds",
    "InvalidExponent",
    "LnDomainError",
    # Transcendental functions
    "ln",
    "ln_36",
    "exponent",
    "pow_raw",
    "pow_up",
    "pow_down",
    # Arithmetic helpers
    "mul_down",
    "mul_up",
    "div_down",
    "div_up",
    # Constants
    "ONE_18",
    "ONE_20",
    "ONE_36",
]

# =============================================================================
# Constants
# =============================================================================

ONE_18 = 10**18
ONE_20 = 10**20
ONE_36 = 10**36

MAX_NATURAL_EXPONENT = 130 * ONE_18  # e^130 is the max we can handle
MIN_NATURAL_EXPONENT = -41 * ONE_18  # e^-41 is close to zero

LN_36_LOWER_BOUND = ONE_18 - 10**17  # 0.9 in fixed-point
LN_36_UPPER_BOUND = ONE_18 + 10**17  # 1.1 in fixed-point

# 2^254 / ONE_20 - bounds the exponent to prevent overflow
MILD_EXPONENT_BOUND = (1 << 254) // ONE_20

# Largest base accepted by ln (fits a signed 256-bit word)
MAX_LN_ARGUMENT = 1 << 255

# x values are exponents (powers of 2), a values are e^x

# 18-decimal precision constants (for large values)
X_18 = (
    128 * ONE_18,  # 2^7
    64 * ONE_18,  # 2^6
)
A_18 = (
    38877084059945950922200000000000000000000000000000000000,  # e^128
    6235149080811616882910000000,  # e^64
)

# 20-decimal precision constants (for medium values)
X_20 = (
    3_200_000_000_000_000_000_000,  # 2^5
    1_600_000_000_000_000_000_000,  # 2^4
    800_000_000_000_000_000_000,  # 2^3
    400_000_000_000_000_000_000,  # 2^2
    200_000_000_000_000_000_000,  # 2^1
    100_000_000_000_000_000_000,  # 2^0
    50_000_000_000_000_000_000,  # 2^-1
    25_000_000_000_000_000_000,  # 2^-2
    12_500_000_000_000_000_000,  # 2^-3
    6_250_000_000_000_000_000,  # 2^-4
)
A_20 = (
    7_896_296_018_268_069_516_100_000_000_000_000,  # e^32
    888_611_052_050_787_263_676_000_000,  # e^16
    298_095_798_704_172_827_474_000,  # e^8
    5_459_815_003_314_423_907_810,  # e^4
    738_905_609_893_065_022_723,  # e^2
    271_828_182_845_904_523_536,  # e^1
    164_872_127_070_012_814_685,  # e^0.5
    128_402_541_668_774_148_407,  # e^0.25
    113_314_845_306_682_631_683,  # e^0.125
    106_449_445_891_785_942_956,  # e^0.0625
)


# =============================================================================
# Error classes
# =============================================================================


class LogExpMathError(MathDomainError):
    """Base error for the log/exp kernel."""

    pass


class XOutOfBounds(LogExpMathError):
    """Base x is out of valid range."""

    pass


class YOutOfBounds(LogExpMathError):
    """Exponent y exceeds MILD_EXPONENT_BOUND."""

    pass


class ProductOutOfBounds(LogExpMathError):
    """Result of y * ln(x) is outside the valid range for exponent()."""

    pass


class InvalidExponent(LogExpMathError):
    """Exponent is outside [MIN_NATURAL_EXPONENT, MAX_NATURAL_EXPONENT]."""

    pass


class LnDomainError(LogExpMathError):
    """Logarithm of a non-positive value."""

    pass


# =============================================================================
# Arithmetic helpers
# =============================================================================


def mul_down(a: int, b: int) -> int:
    """Multiply with floor rounding: (a * b) // 10^18"""
    return (a * b) // ONE_18


def mul_up(a: int, b: int) -> int:
    """Multiply with ceiling rounding."""
    product = a * b
    if product == 0:
        return 0
    return (product - 1) // ONE_18 + 1


def div_down(a: int, b: int) -> int:
    """Divide with floor rounding: (a * 10^18) // b"""
    if b == 0:
        raise ZeroDivisionError("Fixed-point division by zero")
    return (a * ONE_18) // b


def div_up(a: int, b: int) -> int:
    """Divide with ceiling rounding."""
    if b == 0:
        raise ZeroDivisionError("Fixed-point division by zero")
    numerator = a * ONE_18
    if numerator == 0:
        return 0
    return (numerator - 1) // b + 1


def _div_trunc(a: int, b: int) -> int:
    """Integer division truncating toward zero.

    Python's // floors toward negative infinity. The series below need
    truncation so that ln(1/x) == -ln(x) holds bit for bit.
    """
    if (a >= 0) == (b >= 0):
        return a // b
    return -(abs(a) // abs(b))


# =============================================================================
# Logarithm
# =============================================================================


def _ln(a: int) -> int:
    """Natural logarithm of a positive 18-decimal value.

    Uses digit extraction against powers of e followed by the arctanh series
    ln(a) = 2 * (z + z^3/3 + z^5/5 + ...), z = (a - 1) / (a + 1).
    """
    if a < ONE_18:
        # ln(a) = -ln(1/a)
        return -_ln((ONE_18 * ONE_18) // a)

    sum_val = 0

    for x_n, a_n in zip(X_18, A_18, strict=True):
        if a >= a_n * ONE_18:
            a //= a_n
            sum_val += x_n

    # Scale up to 20-decimal precision
    sum_val *= 100
    a *= 100

    for x_n, a_n in zip(X_20, A_20, strict=True):
        if a >= a_n:
            a = (a * ONE_20) // a_n
            sum_val += x_n

    z = ((a - ONE_20) * ONE_20) // (a + ONE_20)
    z_squared = (z * z) // ONE_20

    num = z
    series_sum = num

    # z + z^3/3 + ... + z^11/11
    for i in range(3, 12, 2):
        num = (num * z_squared) // ONE_20
        series_sum += num // i

    series_sum *= 2

    return (sum_val + series_sum) // 100


def _ln_36(x: int) -> int:
    """Natural logarithm with 36-decimal precision for x close to 1."""
    x *= ONE_18

    z = _div_trunc((x - ONE_36) * ONE_36, x + ONE_36)
    z_squared = _div_trunc(z * z, ONE_36)

    num = z
    series_sum = num

    # z + z^3/3 + ... + z^15/15
    for i in range(3, 16, 2):
        num = _div_trunc(num * z_squared, ONE_36)
        series_sum += _div_trunc(num, i)

    return series_sum * 2


def ln(x: int) -> int:
    """Natural logarithm of an 18-decimal value.

    Args:
        x: Positive 18-decimal fixed-point value

    Returns:
        ln(x) as signed 18-decimal fixed point (negative for x < 1)

    Raises:
        LnDomainError: If x <= 0
        XOutOfBounds: If x does not fit a signed 256-bit word
    """
    if x <= 0:
        raise LnDomainError(f"ln undefined for {x}")
    if x >= MAX_LN_ARGUMENT:
        raise XOutOfBounds(f"Base {x} too large")

    if LN_36_LOWER_BOUND < x < LN_36_UPPER_BOUND:
        return _div_trunc(_ln_36(x), ONE_18)
    return _ln(x)


def ln_36(x: int) -> tuple[int, int]:
    """High precision logarithm for x within 10% of 1.

    Args:
        x: 18-decimal value in (0.9, 1.1)

    Returns:
        ln(x) as a 36-decimal number split into (integer, fractional) halves
        at 10^18, both truncated toward zero, so that
        ``integer * 10^18 + fractional`` is the full 36-decimal result.

    Raises:
        XOutOfBounds: If x is outside (0.9, 1.1)
    """
    if not LN_36_LOWER_BOUND < x < LN_36_UPPER_BOUND:
        raise XOutOfBounds(f"ln_36 argument {x} not within 10% of one")
    value = _ln_36(x)
    integer = _div_trunc(value, ONE_18)
    return integer, value - integer * ONE_18


# =============================================================================
# Exponential and power
# =============================================================================


def exponent(x: int) -> int:
    """Compute e^x where x is 18-decimal fixed-point.

    Args:
        x: Exponent in 18-decimal fixed-point (can be negative).

    Returns:
        e^x as 18-decimal fixed-point integer.

    Raises:
        InvalidExponent: If x is outside [MIN_NATURAL_EXPONENT, MAX_NATURAL_EXPONENT]
    """
    if not (MIN_NATURAL_EXPONENT <= x <= MAX_NATURAL_EXPONENT):
        raise InvalidExponent(f"Exponent {x} outside valid range")

    if x < 0:
        # e^-x = 1 / e^x
        return (ONE_18 * ONE_18) // exponent(-x)

    if x >= X_18[0]:
        x -= X_18[0]
        first_an = A_18[0]
    elif x >= X_18[1]:
        x -= X_18[1]
        first_an = A_18[1]
    else:
        first_an = 1

    # Scale to 20-decimal precision
    x *= 100

    product = ONE_20
    for x_n, a_n in zip(X_20[:8], A_20[:8], strict=True):
        if x >= x_n:
            x -= x_n
            product = (product * a_n) // ONE_20

    # Taylor series: 1 + x + x^2/2! + ... + x^12/12!
    series_sum = ONE_20
    term = x
    series_sum += term

    for i in range(2, 13):
        term = ((term * x) // ONE_20) // i
        series_sum += term

    return (((product * series_sum) // ONE_20) * first_an) // 100


def pow_raw(x: int, y: int) -> int:
    """Compute x^y as exponent(y * ln(x)) without a rounding margin.

    Args:
        x: Base (non-negative, 18-decimal fixed-point)
        y: Exponent (non-negative, 18-decimal fixed-point)

    Returns:
        x^y as 18-decimal fixed-point

    Raises:
        XOutOfBounds: If x is negative or too large
        YOutOfBounds: If y is negative or exceeds MILD_EXPONENT_BOUND
        ProductOutOfBounds: If y * ln(x) is outside the valid range
    """
    if y == 0:
        return ONE_18
    if x == 0:
        return 0
    if x < 0 or x >= MAX_LN_ARGUMENT:
        raise XOutOfBounds(f"Base {x} out of range")
    if y < 0 or y >= MILD_EXPONENT_BOUND:
        raise YOutOfBounds(f"Exponent {y} out of range")

    if LN_36_LOWER_BOUND < x < LN_36_UPPER_BOUND:
        integer, fractional = ln_36(x)
        logx_times_y = integer * y + _div_trunc(fractional * y, ONE_18)
    else:
        logx_times_y = _ln(x) * y

    logx_times_y = _div_trunc(logx_times_y, ONE_18)

    if not (MIN_NATURAL_EXPONENT <= logx_times_y <= MAX_NATURAL_EXPONENT):
        raise ProductOutOfBounds(f"Product {logx_times_y} outside valid range")

    return exponent(logx_times_y)


def _max_pow_error(raw: int) -> int:
    return mul_up(raw, MAX_POW_RELATIVE_ERROR) + 1


def pow_down(x: int, y: int) -> int:
    """Compute x^y rounded down.

    Exponents of 1, 2 and 4 and the bases 0 and 1 are computed exactly;
    everything else goes through pow_raw and subtracts the error margin.
    """
    if x < 0:
        raise XOutOfBounds(f"Base {x} out of range")
    if y == 0 or x == ONE_18:
        return ONE_18
    if x == 0:
        return 0
    if y == ONE_18:
        return x
    if y == 2 * ONE_18:
        return mul_down(x, x)
    if y == 4 * ONE_18:
        square = mul_down(x, x)
        return mul_down(square, square)

    raw = pow_raw(x, y)
    max_error = _max_pow_error(raw)
    if raw < max_error:
        return 0
    return raw - max_error


def pow_up(x: int, y: int) -> int:
    """Compute x^y rounded up.

    Mirror of pow_down: exact fast paths, otherwise pow_raw plus the error
    margin.
    """
    if x < 0:
        raise XOutOfBounds(f"Base {x} out of range")
    if y == 0 or x == ONE_18:
        return ONE_18
    if x == 0:
        return 0
    if y == ONE_18:
        return x
    if y == 2 * ONE_18:
        return mul_up(x, x)
    if y == 4 * ONE_18:
        square = mul_up(x, x)
        return mul_up(square, square)

    raw = pow_raw(x, y)
    return raw + _max_pow_error(raw)
