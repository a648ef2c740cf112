"""Pool error classes.

Every failure raised by the pool derives from PoolError. Operations compute on
local values before committing, so any of these errors leaves pool state
untouched.
"""

from __future__ import annotations


class PoolError(Exception):
    """Base error for pool operations."""

    pass


# =============================================================================
# Numeric errors
# =============================================================================


class MathDomainError(PoolError):
    """Math kernel input outside its valid domain."""

    pass


class DidNotConvergeError(PoolError):
    """Newton-Raphson iteration exhausted its iteration cap."""

    pass


class InvariantDidNotConverge(DidNotConvergeError):
    """Iteration for the supply invariant D did not converge."""

    pass


class BalanceDidNotConverge(DidNotConvergeError):
    """Iteration for a single virtual balance y did not converge."""

    pass


# =============================================================================
# Configuration errors
# =============================================================================


class InvariantViolationError(PoolError):
    """Input would break a pool invariant and is rejected at the boundary."""

    pass


class WeightSumError(InvariantViolationError):
    """Weights must sum to PRECISION."""

    pass


class InvalidWeightError(InvariantViolationError):
    """Each weight must be in (0, PRECISION)."""

    pass


class ZeroRateError(InvariantViolationError):
    """Rate provider returned zero for an asset."""

    pass


class InvalidAmplificationError(InvariantViolationError):
    """Amplification must be at least PRECISION."""

    pass


class InvalidFeeError(InvariantViolationError):
    """Fee rate must be in [0, PRECISION)."""

    pass


class InvalidBandError(InvariantViolationError):
    """Band multipliers must satisfy lower <= PRECISION <= upper."""

    pass


class AssetCountError(InvariantViolationError):
    """Number of assets is outside the supported range."""

    pass


class DuplicateAssetError(InvariantViolationError):
    """Asset is already a member of the pool."""

    pass


class InsufficientLiquidityError(InvariantViolationError):
    """Operation would drain an asset's virtual balance."""

    pass


class RateShockError(PoolError):
    """Rate increased by more than the configured cap."""

    def __init__(self, asset: str, previous: int, current: int) -> None:
        super().__init__(f"Rate of {asset} jumped from {previous} to {current}")
        self.asset = asset
        self.previous = previous
        self.current = current


# =============================================================================
# Operation errors
# =============================================================================


class SlippageError(PoolError):
    """Result is worse than the caller's bound."""

    pass


class BandViolationError(PoolError):
    """Asset share of vb_sum moved further outside its configured band."""

    def __init__(self, index: int, ratio: int, bound: int) -> None:
        super().__init__(f"Asset {index} ratio {ratio} outside band bound {bound}")
        self.index = index
        self.ratio = ratio
        self.bound = bound


class AccessDeniedError(PoolError):
    """Caller is not allowed to perform the action."""

    pass


class StakingNotSetError(PoolError):
    """Supply change must be settled but no staking recipient is set."""

    pass


# =============================================================================
# Lifecycle errors
# =============================================================================


class LifecycleError(PoolError):
    """Operation not allowed in the pool's current lifecycle state."""

    pass


class PoolPausedError(LifecycleError):
    """Pool is paused."""

    pass


class PoolKilledError(LifecycleError):
    """Pool is killed."""

    pass


class AlreadyPausedError(LifecycleError):
    """Pool is already paused."""

    pass


class NotPausedError(LifecycleError):
    """Pool is not paused."""

    pass


class RampActiveError(LifecycleError):
    """A ramp is in progress."""

    pass


class NoRampError(LifecycleError):
    """No ramp is in progress."""

    pass


# =============================================================================
# Collaborator errors
# =============================================================================


class InsufficientSharesError(PoolError):
    """Holder does not own enough pool shares."""

    pass


class InsufficientFundsError(PoolError):
    """Account does not hold enough of an asset."""

    pass
