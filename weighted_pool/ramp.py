"""Time-based ramps of amplification and weights.

A ramp is a linear schedule between (time_start, start values) and
(time_stop, target values). Effective parameters are always derived from the
schedule and the current time; they only enter the ledger when a commit
happens.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from weighted_pool.constants import MIN_AMPLIFICATION, PRECISION
from weighted_pool.errors import (
    InvalidAmplificationError,
    InvalidWeightError,
    LifecycleError,
    RampActiveError,
    WeightSumError,
)
from weighted_pool.ledger import VirtualBalanceLedger

logger = structlog.get_logger()


def validate_weights(weights: Sequence[int], num_assets: int | None = None) -> None:
    """Check that weights are positive and sum to PRECISION.

    Raises:
        InvalidWeightError: If a weight is outside (0, PRECISION) or the
            count does not match num_assets
        WeightSumError: If the weights do not sum to PRECISION
    """
    if num_assets is not None and len(weights) != num_assets:
        raise InvalidWeightError(f"Expected {num_assets} weights, got {len(weights)}")
    for i, weight in enumerate(weights):
        if not 0 < weight < PRECISION:
            raise InvalidWeightError(f"Weight {i} must be in (0, 1), got {weight}")
    if sum(weights) != PRECISION:
        raise WeightSumError(f"Weights sum to {sum(weights)}, expected {PRECISION}")


def validate_amplification(amplification: int) -> None:
    """Raises InvalidAmplificationError if amplification < 1."""
    if amplification < MIN_AMPLIFICATION:
        raise InvalidAmplificationError(f"Amplification {amplification} below {MIN_AMPLIFICATION}")


def _interpolate(start: int, target: int, elapsed: int, duration: int) -> int:
    # Truncate toward the start value in both directions
    if target >= start:
        return start + (target - start) * elapsed // duration
    return start - (start - target) * elapsed // duration


@dataclass(frozen=True)
class EffectiveParams:
    """Amplification and weights in force at a point in time."""

    amplification: int
    weights: tuple[int, ...]


@dataclass(frozen=True)
class RampState:
    """Linear schedule for amplification and weights.

    Attributes:
        amp_start: Amplification at time_start
        amp_target: Amplification from time_stop on
        weights_start: Weights at time_start
        weights_target: Weights from time_stop on (sum to PRECISION)
        time_start: Ramp start (seconds)
        time_stop: Ramp end (seconds)
    """

    amp_start: int
    amp_target: int
    weights_start: tuple[int, ...]
    weights_target: tuple[int, ...]
    time_start: int
    time_stop: int

    def effective(self, now: int) -> EffectiveParams:
        """Interpolated parameters at time now.

        Clamped to the start values before time_start and to the target
        values from time_stop on. Interpolated weights are truncated and not
        renormalized, so mid-ramp their sum may be off PRECISION by a few units.
        """
        # checked first so a zero-length ramp applies its targets at once
        if now >= self.time_stop:
            return EffectiveParams(self.amp_target, self.weights_target)
        if now <= self.time_start:
            return EffectiveParams(self.amp_start, self.weights_start)

        elapsed = now - self.time_start
        duration = self.time_stop - self.time_start
        return EffectiveParams(
            amplification=_interpolate(self.amp_start, self.amp_target, elapsed, duration),
            weights=tuple(
                _interpolate(start, target, elapsed, duration)
                for start, target in zip(self.weights_start, self.weights_target, strict=True)
            ),
        )

    def is_finished(self, now: int) -> bool:
        """True once the target values are in force."""
        return now >= self.time_stop


@dataclass(frozen=True)
class RampCommit:
    """Outcome of committing a ramp.

    Attributes:
        ledger: Ledger with the effective weights and re-solved supply
        amplification: Effective amplification now in force
        ramp: Remaining ramp, or None once finished
        supply_delta: Change in supply to settle with the staking recipient
    """

    ledger: VirtualBalanceLedger
    amplification: int
    ramp: RampState | None
    supply_delta: int


class RampController:
    """Creates ramps and commits their effective values into a ledger."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations

    def set_ramp(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        current: RampState | None,
        amp_target: int,
        weights_target: Sequence[int],
        duration: int,
        now: int,
    ) -> RampState:
        """Validate and create a new ramp starting now.

        A duration of 0 changes parameters instantly and is only allowed on
        an empty pool, where no balances can be mispriced.

        Args:
            ledger: Current ledger (weights are the ramp start)
            amplification: Current amplification (the ramp start)
            current: Ramp in progress, if any
            amp_target: Target amplification
            weights_target: Target weights
            duration: Ramp length in seconds
            now: Current time in seconds

        Returns:
            The new RampState

        Raises:
            RampActiveError: If a ramp is still in progress
            LifecycleError: If duration is 0 on a non-empty pool or negative
            InvalidAmplificationError: If amp_target < 1
            InvalidWeightError / WeightSumError: If weights_target is invalid
        """
        if current is not None and not current.is_finished(now):
            raise RampActiveError("A ramp is already in progress")
        if duration < 0:
            raise LifecycleError(f"Ramp duration must be non-negative, got {duration}")
        if duration == 0 and not ledger.is_empty:
            raise LifecycleError("Instant parameter changes are only allowed on an empty pool")
        validate_amplification(amp_target)
        validate_weights(weights_target, ledger.num_assets)

        ramp = RampState(
            amp_start=amplification,
            amp_target=amp_target,
            weights_start=ledger.weights,
            weights_target=tuple(weights_target),
            time_start=now,
            time_stop=now + duration,
        )
        logger.info(
            "ramp_set",
            amp_start=amplification,
            amp_target=amp_target,
            time_start=ramp.time_start,
            time_stop=ramp.time_stop,
        )
        return ramp

    def commit(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        ramp: RampState | None,
        now: int,
    ) -> RampCommit:
        """Write the effective parameters at time now into the ledger.

        Weights that changed trigger a full recompute of the aggregates. If
        weights or amplification changed on a pool with supply, the supply is
        re-solved and the difference reported for settlement.

        Raises:
            InvariantDidNotConverge: If the supply cannot be re-solved
        """
        if ramp is None:
            return RampCommit(ledger, amplification, None, 0)
        remaining = None if ramp.is_finished(now) else ramp
        return self._apply(ledger, amplification, ramp.effective(now), remaining)

    def stop(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        ramp: RampState,
        now: int,
    ) -> RampCommit:
        """Freeze the ramp at its effective values at time now.

        Interpolated weights can be a few units off PRECISION; the remainder
        goes to the last asset so the frozen weights sum to PRECISION.

        Raises:
            InvariantDidNotConverge: If the supply cannot be re-solved
        """
        params = ramp.effective(now)
        weights = list(params.weights)
        weights[-1] += PRECISION - sum(weights)
        logger.debug("ramp_frozen", remainder=weights[-1] - params.weights[-1])
        return self._apply(ledger, amplification, EffectiveParams(params.amplification, tuple(weights)), None)

    def _apply(
        self,
        ledger: VirtualBalanceLedger,
        amplification: int,
        params: EffectiveParams,
        remaining: RampState | None,
    ) -> RampCommit:
        weights_changed = params.weights != ledger.weights
        amp_changed = params.amplification != amplification
        if not weights_changed and not amp_changed:
            return RampCommit(ledger, amplification, remaining, 0)

        updated = ledger.reweight(params.weights) if weights_changed else ledger
        supply_delta = 0
        if not updated.is_empty:
            updated = updated.solve_supply(params.amplification, self.max_iterations)
            supply_delta = updated.supply - ledger.supply

        logger.debug(
            "ramp_committed",
            amplification=params.amplification,
            weights_changed=weights_changed,
            supply_delta=supply_delta,
            finished=remaining is None,
        )
        return RampCommit(updated, params.amplification, remaining, supply_delta)
