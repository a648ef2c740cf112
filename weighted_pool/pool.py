"""Weighted stableswap pool.

The Pool ties the planning engines to mutable pool state and to the external
collaborators. Every mutating entry point follows the same sequence:

1. Commit the ramp at the current time and refresh the rates it needs, on
   local copies.
2. Plan the operation with the engines, check slippage and bands, and check
   that the collaborators can honour the transfers.
3. Commit the new ledger and parameters.
4. Only then call the collaborators (pull assets, mint/burn shares, push
   assets).

A failure in steps 1 and 2 leaves the pool untouched, and external calls
only ever observe fully committed state.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace

import structlog

from weighted_pool.bands import Band, BandGuard
from weighted_pool.collaborators import (
    AssetCustodian,
    InMemoryCustodian,
    InMemoryShareLedger,
    RateProvider,
    ShareLedger,
)
from weighted_pool.config import DEFAULT_POOL_CONFIG, PoolConfig
from weighted_pool.constants import PRECISION
from weighted_pool.errors import (
    AccessDeniedError,
    AlreadyPausedError,
    AssetCountError,
    DuplicateAssetError,
    InsufficientFundsError,
    InsufficientLiquidityError,
    InsufficientSharesError,
    InvalidFeeError,
    InvalidWeightError,
    NoRampError,
    NotPausedError,
    PoolKilledError,
    PoolPausedError,
    RampActiveError,
    SlippageError,
    StakingNotSetError,
    ZeroRateError,
)
from weighted_pool.ledger import VirtualBalanceLedger
from weighted_pool.liquidity import AddLiquidityResult, LiquidityEngine, RemoveSingleResult
from weighted_pool.math.packing import WeightRecord
from weighted_pool.ramp import (
    EffectiveParams,
    RampController,
    RampState,
    validate_amplification,
    validate_weights,
)
from weighted_pool.rates import RateUpdater
from weighted_pool.swap import SwapEngine, SwapResult

logger = structlog.get_logger()


def _default_clock() -> int:
    return int(time.time())


@dataclass(frozen=True)
class AssetRecord:
    """Pool member.

    Attributes:
        asset: Opaque asset identifier
        rate_provider: Oracle for the asset's rate
        rate: Last observed rate (18 decimals)
        band: Weight band multipliers
    """

    asset: str
    rate_provider: RateProvider
    rate: int
    band: Band = field(default_factory=Band)


@dataclass(frozen=True)
class _Prepared:
    """Pool parameters after committing the ramp and refreshing rates."""

    ledger: VirtualBalanceLedger
    amplification: int
    ramp: RampState | None
    rates: tuple[int, ...]
    supply_delta: int


class Pool:
    """Multi-asset weighted stableswap pool.

    Usage:
        pool = Pool(
            assets=["a", "b"],
            rate_providers=[provider, provider],
            weights=[PRECISION // 2, PRECISION // 2],
            amplification=10 * PRECISION,
            management="dao",
        )
        pool.add_liquidity([10**18, 10**18], 0, sender="alice")
    """

    def __init__(
        self,
        assets: Sequence[str],
        rate_providers: Sequence[RateProvider],
        weights: Sequence[int],
        amplification: int,
        *,
        management: str,
        guardian: str | None = None,
        share_ledger: ShareLedger | None = None,
        custodian: AssetCustodian | None = None,
        clock: Callable[[], int] | None = None,
        config: PoolConfig = DEFAULT_POOL_CONFIG,
    ) -> None:
        """Create an empty pool.

        Args:
            assets: Asset identifiers, unique, 2 to config.max_num_assets
            rate_providers: Rate provider per asset
            weights: Initial weights, summing to PRECISION
            amplification: Initial amplification, at least PRECISION
            management: Account allowed to configure the pool
            guardian: Account allowed to pause the pool
            share_ledger: Pool share ledger (in-memory by default)
            custodian: Asset custodian (in-memory by default)
            clock: Returns the current time in seconds
            config: Solver and guard limits

        Raises:
            AssetCountError: If the number of assets is out of range
            DuplicateAssetError: If an asset is listed twice
            InvalidWeightError / WeightSumError: If weights are invalid
            InvalidAmplificationError: If amplification < 1
            ZeroRateError: If a rate provider returns zero
        """
        if not 2 <= len(assets) <= config.max_num_assets:
            raise AssetCountError(f"Pool needs 2 to {config.max_num_assets} assets, got {len(assets)}")
        if len(set(assets)) != len(assets):
            raise DuplicateAssetError("Assets must be unique")
        if len(rate_providers) != len(assets):
            raise ValueError(f"Expected {len(assets)} rate providers, got {len(rate_providers)}")
        validate_weights(weights, len(assets))
        validate_amplification(amplification)

        self._assets = [
            AssetRecord(asset, provider, _read_rate(provider, asset))
            for asset, provider in zip(assets, rate_providers, strict=True)
        ]
        self._ledger = VirtualBalanceLedger.empty(weights)
        self._amplification = amplification
        self._ramp: RampState | None = None

        self.management = management
        self.guardian = guardian
        self.staking: str | None = None
        self.fee_rate = 0
        self.paused = False
        self.killed = False

        self.share_ledger: ShareLedger = share_ledger or InMemoryShareLedger()
        self.custodian: AssetCustodian = custodian or InMemoryCustodian()
        self.config = config
        self._clock = clock or _default_clock

        self._ramps = RampController(config.max_iterations)
        self._rate_updater = RateUpdater(config.max_rate_increase, config.max_iterations)
        self._liquidity = LiquidityEngine(config.max_iterations)
        self._swaps = SwapEngine(config.max_iterations)
        self._bands = BandGuard()

        logger.info("pool_created", assets=list(assets), amplification=amplification)

    # =========================================================================
    # Views
    # =========================================================================

    @property
    def ledger(self) -> VirtualBalanceLedger:
        """Committed virtual balance ledger."""
        return self._ledger

    @property
    def assets(self) -> tuple[str, ...]:
        return tuple(record.asset for record in self._assets)

    @property
    def num_assets(self) -> int:
        return len(self._assets)

    @property
    def supply(self) -> int:
        return self._ledger.supply

    @property
    def vb_sum(self) -> int:
        return self._ledger.vb_sum

    @property
    def vb_prod(self) -> int:
        return self._ledger.vb_prod

    @property
    def amplification(self) -> int:
        """Amplification as of the last commit."""
        return self._amplification

    @property
    def rates(self) -> tuple[int, ...]:
        return tuple(record.rate for record in self._assets)

    @property
    def ramp(self) -> RampState | None:
        return self._ramp

    def virtual_balance(self, index: int) -> int:
        return self._ledger.balances[index]

    def rate(self, index: int) -> int:
        return self._assets[index].rate

    def band(self, index: int) -> Band:
        return self._assets[index].band

    def weight(self, index: int) -> WeightRecord:
        """Committed weight and band multipliers of an asset."""
        band = self._assets[index].band
        return WeightRecord(self._ledger.weights[index], band.lower, band.upper)

    def packed_weight(self, index: int) -> int:
        """weight(index) in its packed single-word form."""
        return self.weight(index).pack()

    def effective_params(self, now: int | None = None) -> EffectiveParams:
        """Amplification and weights in force at a time, without committing."""
        if self._ramp is None:
            return EffectiveParams(self._amplification, self._ledger.weights)
        return self._ramp.effective(self._clock() if now is None else now)

    def index_of(self, asset: str) -> int:
        """Index of an asset identifier.

        Raises:
            KeyError: If the asset is not in the pool
        """
        for index, record in enumerate(self._assets):
            if record.asset == asset:
                return index
        raise KeyError(asset)

    # =========================================================================
    # Liquidity
    # =========================================================================

    def add_liquidity(
        self,
        amounts: Sequence[int],
        min_shares: int,
        receiver: str | None = None,
        *,
        sender: str,
    ) -> int:
        """Deposit assets and mint pool shares.

        Args:
            amounts: Raw amount per asset (zeros allowed after the first deposit)
            min_shares: Smallest acceptable number of shares
            receiver: Account credited with the shares (default: sender)
            sender: Account paying the assets

        Returns:
            Shares minted to the receiver

        Raises:
            SlippageError: If fewer than min_shares would be minted
            BandViolationError: If the deposit pushes an asset out of its band
            PoolPausedError / PoolKilledError: If the pool is not active
        """
        self._require_active()
        prepared, result = self._plan_add_liquidity(amounts)
        if result.shares < min_shares:
            raise SlippageError(f"Deposit mints {result.shares} shares, below minimum {min_shares}")

        staking_delta = prepared.supply_delta + result.staking_shares
        transfers = [(i, amount) for i, amount in enumerate(amounts) if amount > 0]
        for i, amount in transfers:
            self._require_funds(sender, self._assets[i].asset, amount)
        self._require_staking(staking_delta)

        self._commit(prepared, result.ledger)
        for i, amount in transfers:
            self.custodian.pull(self._assets[i].asset, sender, amount)
        self.share_ledger.mint(receiver or sender, result.shares)
        self._settle_staking(staking_delta)

        logger.info(
            "liquidity_added",
            sender=sender,
            shares=result.shares,
            staking_shares=result.staking_shares,
            supply=self.supply,
        )
        return result.shares

    def remove_liquidity(
        self,
        shares: int,
        min_amounts: Sequence[int],
        receiver: str | None = None,
        *,
        sender: str,
    ) -> tuple[int, ...]:
        """Burn shares for a proportional part of every asset.

        Stays available while the pool is paused or killed. Uses the committed
        rates and parameters: no ramp commit or rate refresh takes place.

        Args:
            shares: Shares to burn
            min_amounts: Smallest acceptable amount per asset
            receiver: Account receiving the assets (default: sender)
            sender: Account whose shares are burned

        Returns:
            Raw amount paid out per asset

        Raises:
            SlippageError: If any amount is below its minimum
            InsufficientSharesError: If sender holds fewer than shares
        """
        if len(min_amounts) != self.num_assets:
            raise ValueError(f"Expected {self.num_assets} minimum amounts, got {len(min_amounts)}")
        result = self._liquidity.remove_liquidity(self._ledger, self.rates, shares)
        for i, (amount, minimum) in enumerate(zip(result.amounts, min_amounts, strict=True)):
            if amount < minimum:
                raise SlippageError(f"Asset {i} pays {amount}, below minimum {minimum}")
        self._require_shares(sender, shares)

        self._ledger = result.ledger
        self.share_ledger.burn(sender, shares)
        for record, amount in zip(self._assets, result.amounts, strict=True):
            if amount > 0:
                self.custodian.push(record.asset, receiver or sender, amount)

        logger.info("liquidity_removed", sender=sender, shares=shares, supply=self.supply)
        return result.amounts

    def remove_liquidity_single(
        self,
        index: int,
        shares: int,
        min_amount: int,
        receiver: str | None = None,
        *,
        sender: str,
    ) -> int:
        """Burn shares for a single asset.

        Returns:
            Raw amount of the asset paid out

        Raises:
            SlippageError: If the amount is below min_amount
            BandViolationError: If the withdrawal pushes an asset out of its band
            InsufficientSharesError: If sender holds fewer than shares
        """
        self._require_active()
        prepared, result = self._plan_remove_single(index, shares)
        if result.amount < min_amount:
            raise SlippageError(f"Withdrawal pays {result.amount}, below minimum {min_amount}")

        staking_delta = prepared.supply_delta + result.staking_shares
        self._require_shares(sender, shares)
        self._require_staking(staking_delta)

        self._commit(prepared, result.ledger)
        self.share_ledger.burn(sender, shares)
        self._settle_staking(staking_delta)
        if result.amount > 0:
            self.custodian.push(self._assets[index].asset, receiver or sender, result.amount)

        logger.info(
            "liquidity_removed_single",
            sender=sender,
            asset=self._assets[index].asset,
            shares=shares,
            amount=result.amount,
        )
        return result.amount

    # =========================================================================
    # Swaps
    # =========================================================================

    def swap(
        self,
        i: int,
        j: int,
        dx: int,
        min_dy: int,
        receiver: str | None = None,
        *,
        sender: str,
    ) -> int:
        """Sell exactly dx of asset i for asset j.

        Returns:
            Raw amount of asset j paid out

        Raises:
            SlippageError: If the output is below min_dy
            BandViolationError: If the swap pushes an asset out of its band
        """
        self._require_active()
        prepared, result = self._plan_swap(i, j, dx)
        if result.amount_out < min_dy:
            raise SlippageError(f"Swap pays {result.amount_out}, below minimum {min_dy}")
        self._execute_swap(prepared, result, i, j, sender, receiver)
        return result.amount_out

    def swap_exact_out(
        self,
        i: int,
        j: int,
        dy: int,
        max_dx: int,
        receiver: str | None = None,
        *,
        sender: str,
    ) -> int:
        """Buy exactly dy of asset j with asset i.

        Returns:
            Raw amount of asset i charged, fee included

        Raises:
            SlippageError: If the input exceeds max_dx
            BandViolationError: If the swap pushes an asset out of its band
        """
        self._require_active()
        prepared, result = self._plan_swap_exact_out(i, j, dy)
        if result.amount_in > max_dx:
            raise SlippageError(f"Swap charges {result.amount_in}, above maximum {max_dx}")
        self._execute_swap(prepared, result, i, j, sender, receiver)
        return result.amount_in

    def _execute_swap(
        self,
        prepared: _Prepared,
        result: SwapResult,
        i: int,
        j: int,
        sender: str,
        receiver: str | None,
    ) -> None:
        staking_delta = prepared.supply_delta + result.staking_shares
        self._require_funds(sender, self._assets[i].asset, result.amount_in)
        self._require_staking(staking_delta)

        self._commit(prepared, result.ledger)
        self.custodian.pull(self._assets[i].asset, sender, result.amount_in)
        self._settle_staking(staking_delta)
        if result.amount_out > 0:
            self.custodian.push(self._assets[j].asset, receiver or sender, result.amount_out)

        logger.info(
            "swap_executed",
            sender=sender,
            asset_in=self._assets[i].asset,
            asset_out=self._assets[j].asset,
            amount_in=result.amount_in,
            amount_out=result.amount_out,
            fee=result.fee,
        )

    # =========================================================================
    # Quotes
    # =========================================================================

    def get_dy(self, i: int, j: int, dx: int) -> int:
        """Output of swap(i, j, dx) if executed now."""
        return self._plan_swap(i, j, dx)[1].amount_out

    def get_dx(self, i: int, j: int, dy: int) -> int:
        """Input charged by swap_exact_out(i, j, dy) if executed now."""
        return self._plan_swap_exact_out(i, j, dy)[1].amount_in

    def get_add_lp(self, amounts: Sequence[int]) -> int:
        """Shares minted by add_liquidity(amounts) if executed now."""
        return self._plan_add_liquidity(amounts)[1].shares

    def get_remove_lp(self, shares: int) -> tuple[int, ...]:
        """Amounts paid by remove_liquidity(shares) if executed now."""
        return self._liquidity.remove_liquidity(self._ledger, self.rates, shares).amounts

    def get_remove_single_lp(self, index: int, shares: int) -> int:
        """Amount paid by remove_liquidity_single(index, shares) if executed now."""
        return self._plan_remove_single(index, shares)[1].amount

    # =========================================================================
    # Parameter commits
    # =========================================================================

    def update_rates(
        self,
        indices: Sequence[int] | None = None,
        *,
        sender: str | None = None,
        override: bool = False,
    ) -> int:
        """Refresh rates from the providers and settle the supply change.

        Args:
            indices: Assets to refresh (default: all)
            sender: Caller, required to be management when override is set
            override: Accept rate increases above the configured cap

        Returns:
            Signed supply change settled with the staking recipient

        Raises:
            AccessDeniedError: If override is requested by non-management
            RateShockError: If an increase exceeds the cap without override
            ZeroRateError: If a provider returns zero
        """
        if override:
            self._require_management(sender)
        self._require_active()
        indices = range(self.num_assets) if indices is None else indices
        prepared = self._prepare(indices, override=override)
        self._require_staking(prepared.supply_delta)
        self._commit(prepared, prepared.ledger)
        self._settle_staking(prepared.supply_delta)
        return prepared.supply_delta

    def update_weights(self) -> bool:
        """Commit the ramp's effective parameters at the current time.

        Returns:
            True if weights or amplification changed
        """
        self._require_active()
        prepared = self._prepare(())
        changed = (
            prepared.ledger.weights != self._ledger.weights
            or prepared.amplification != self._amplification
        )
        self._require_staking(prepared.supply_delta)
        self._commit(prepared, prepared.ledger)
        self._settle_staking(prepared.supply_delta)
        return changed

    # =========================================================================
    # Management
    # =========================================================================

    def set_ramp(
        self,
        amplification: int,
        weights: Sequence[int],
        duration: int,
        *,
        sender: str,
    ) -> None:
        """Schedule a linear ramp to new amplification and weights.

        A duration of 0 applies the values immediately; only allowed while
        the pool is empty.

        Raises:
            AccessDeniedError: If sender is not management
            RampActiveError: If a ramp is in progress
            LifecycleError: If duration is 0 on a non-empty pool
            StakingNotSetError: If duration is positive and no staking recipient
                is set to settle the supply changes of ramp commits
        """
        self._require_management(sender)
        self._require_not_killed()
        now = self._clock()
        prepared = self._prepare(())
        ramp = self._ramps.set_ramp(
            prepared.ledger,
            prepared.amplification,
            prepared.ramp,
            amplification,
            weights,
            duration,
            now,
        )
        if duration > 0 and self.staking is None:
            raise StakingNotSetError("A gradual ramp needs a staking recipient to settle supply changes")
        if duration == 0:
            commit = self._ramps.commit(prepared.ledger, prepared.amplification, ramp, now)
            prepared = replace(prepared, ledger=commit.ledger, amplification=commit.amplification, ramp=None)
        else:
            prepared = replace(prepared, ramp=ramp)
        self._require_staking(prepared.supply_delta)
        self._commit(prepared, prepared.ledger)
        self._settle_staking(prepared.supply_delta)

    def stop_ramp(self, *, sender: str) -> None:
        """Freeze the ramp at its current effective values.

        Raises:
            NoRampError: If no ramp is in progress
        """
        self._require_management(sender)
        if self._ramp is None:
            raise NoRampError("No ramp to stop")
        commit = self._ramps.stop(self._ledger, self._amplification, self._ramp, self._clock())
        prepared = _Prepared(
            ledger=commit.ledger,
            amplification=commit.amplification,
            ramp=None,
            rates=self.rates,
            supply_delta=commit.supply_delta,
        )
        self._require_staking(prepared.supply_delta)
        self._commit(prepared, prepared.ledger)
        self._settle_staking(prepared.supply_delta)
        logger.info("ramp_stopped", amplification=self._amplification)

    def set_weight_bands(
        self,
        indices: Sequence[int],
        lower: Sequence[int],
        upper: Sequence[int],
        *,
        sender: str,
    ) -> None:
        """Configure band multipliers for a set of assets (0 = unbounded side).

        Raises:
            InvalidBandError: If a band is malformed
            PackingOverflowError: If a band does not fit the packed weight layout
        """
        self._require_management(sender)
        if not len(indices) == len(lower) == len(upper):
            raise ValueError("indices, lower and upper must have the same length")

        records = list(self._assets)
        for index, low, high in zip(indices, lower, upper, strict=True):
            band = Band(low, high)
            band.validate()
            WeightRecord(self._ledger.weights[index], low, high).pack()
            records[index] = replace(records[index], band=band)
        self._assets = records
        logger.info("weight_bands_set", indices=list(indices))

    def set_fee_rate(self, fee_rate: int, *, sender: str) -> None:
        """Set the swap fee rate (18 decimals).

        Raises:
            InvalidFeeError: If fee_rate is outside [0, 1)
            StakingNotSetError: If a non-zero fee is set without staking
        """
        self._require_management(sender)
        if not 0 <= fee_rate < PRECISION:
            raise InvalidFeeError(f"Fee rate {fee_rate} outside [0, 1)")
        if fee_rate > 0 and self.staking is None:
            raise StakingNotSetError("Set a staking recipient before charging fees")
        self.fee_rate = fee_rate
        logger.info("fee_rate_set", fee_rate=fee_rate)

    def set_rate_provider(self, index: int, provider: RateProvider, *, sender: str) -> None:
        """Replace an asset's rate provider and apply its rate immediately.

        The new rate bypasses the increase cap, as the switch is privileged.

        Raises:
            ZeroRateError: If the new provider returns zero
        """
        self._require_management(sender)
        self._require_not_killed()
        record = self._assets[index]
        rate = _read_rate(provider, record.asset)

        prepared = self._prepare((index,), override=True, providers={index: provider})
        self._require_staking(prepared.supply_delta)

        self._assets[index] = replace(self._assets[index], rate_provider=provider)
        self._commit(prepared, prepared.ledger)
        self._settle_staking(prepared.supply_delta)
        logger.info("rate_provider_set", asset=record.asset, rate=rate)

    def set_staking(self, staking: str, *, sender: str) -> None:
        self._require_management(sender)
        self.staking = staking

    def set_guardian(self, guardian: str | None, *, sender: str) -> None:
        self._require_management(sender)
        self.guardian = guardian

    def add_asset(
        self,
        asset: str,
        rate_provider: RateProvider,
        weight: int,
        amount: int,
        lower_band: int = 0,
        upper_band: int = 0,
        receiver: str | None = None,
        *,
        sender: str,
    ) -> int:
        """Onboard a new asset with a starting deposit.

        Existing weights are scaled by (1 - weight). The resulting pool is
        identical to one that held the asset from its first deposit.

        Args:
            asset: New asset identifier
            rate_provider: Rate provider for the new asset
            weight: Weight of the new asset
            amount: Raw starting deposit, paid by sender
            lower_band: Lower band multiplier of the new asset
            upper_band: Upper band multiplier of the new asset
            receiver: Account credited with the minted shares (default: sender)
            sender: Management account

        Returns:
            Shares minted to the receiver

        Raises:
            RampActiveError: If a ramp is in progress
            AssetCountError / DuplicateAssetError: If the asset cannot join
            InsufficientLiquidityError: If the pool is empty
        """
        self._require_management(sender)
        self._require_active()
        if self.num_assets >= self.config.max_num_assets:
            raise AssetCountError(f"Pool already holds {self.num_assets} assets")
        if asset in self.assets:
            raise DuplicateAssetError(f"{asset} is already in the pool")
        if not 0 < weight < PRECISION:
            raise InvalidWeightError(f"Weight must be in (0, 1), got {weight}")
        band = Band(lower_band, upper_band)
        band.validate()
        WeightRecord(weight, lower_band, upper_band).pack()
        rate = _read_rate(rate_provider, asset)

        prepared = self._prepare(range(self.num_assets))
        if prepared.ramp is not None:
            raise RampActiveError("Cannot add an asset during a ramp")
        if prepared.ledger.is_empty:
            raise InsufficientLiquidityError("Cannot add an asset to an empty pool")

        result = self._liquidity.add_asset(prepared.ledger, prepared.amplification, weight, amount * rate // PRECISION)
        validate_weights(result.ledger.weights, self.num_assets + 1)
        self._require_funds(sender, asset, amount)
        self._require_staking(prepared.supply_delta)

        self._assets = [*self._assets, AssetRecord(asset, rate_provider, rate, band)]
        self._commit(replace(prepared, rates=(*prepared.rates, rate)), result.ledger)
        self.custodian.pull(asset, sender, amount)
        self.share_ledger.mint(receiver or sender, result.shares)
        self._settle_staking(prepared.supply_delta)

        logger.info("asset_added", asset=asset, weight=weight, shares=result.shares)
        return result.shares

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def pause(self, *, sender: str) -> None:
        """Pause the pool (guardian or management)."""
        if sender not in (self.guardian, self.management):
            raise AccessDeniedError(f"{sender} cannot pause")
        if self.paused:
            raise AlreadyPausedError("Pool is already paused")
        self.paused = True
        logger.warning("pool_paused", sender=sender)

    def unpause(self, *, sender: str) -> None:
        """Unpause the pool (management)."""
        self._require_management(sender)
        if self.killed:
            raise PoolKilledError("Killed pool cannot be unpaused")
        if not self.paused:
            raise NotPausedError("Pool is not paused")
        self.paused = False
        logger.info("pool_unpaused", sender=sender)

    def kill(self, *, sender: str) -> None:
        """Permanently shut the pool; only balanced withdrawals remain.

        Raises:
            NotPausedError: If the pool is not paused first
        """
        self._require_management(sender)
        if self.killed:
            raise PoolKilledError("Pool is already killed")
        if not self.paused:
            raise NotPausedError("Pool must be paused before it is killed")
        self.killed = True
        logger.warning("pool_killed", sender=sender)

    # =========================================================================
    # Planning
    # =========================================================================

    def _prepare(
        self,
        indices: Sequence[int],
        override: bool = False,
        providers: dict[int, RateProvider] | None = None,
    ) -> _Prepared:
        providers = providers or {}
        commit = self._ramps.commit(self._ledger, self._amplification, self._ramp, self._clock())
        observed = {
            i: _read_rate(providers.get(i, self._assets[i].rate_provider), self._assets[i].asset)
            for i in indices
        }
        update = self._rate_updater.refresh(
            commit.ledger,
            self.rates,
            observed,
            commit.amplification,
            self.assets,
            override,
        )
        return _Prepared(
            ledger=update.ledger,
            amplification=commit.amplification,
            ramp=commit.ramp,
            rates=update.rates,
            supply_delta=commit.supply_delta + update.supply_delta,
        )

    def _plan_add_liquidity(self, amounts: Sequence[int]) -> tuple[_Prepared, AddLiquidityResult]:
        prepared = self._prepare(range(self.num_assets))
        result = self._liquidity.add_liquidity(
            prepared.ledger, prepared.amplification, prepared.rates, amounts, self.fee_rate
        )
        if not prepared.ledger.is_empty:
            self._bands.check(prepared.ledger, result.ledger, self._band_list())
        return prepared, result

    def _plan_remove_single(self, index: int, shares: int) -> tuple[_Prepared, RemoveSingleResult]:
        prepared = self._prepare(range(self.num_assets))
        result = self._liquidity.remove_liquidity_single(
            prepared.ledger, prepared.amplification, prepared.rates, index, shares, self.fee_rate
        )
        self._bands.check(prepared.ledger, result.ledger, self._band_list())
        return prepared, result

    def _plan_swap(self, i: int, j: int, dx: int) -> tuple[_Prepared, SwapResult]:
        prepared = self._prepare((i, j))
        result = self._swaps.swap(prepared.ledger, prepared.amplification, prepared.rates, i, j, dx, self.fee_rate)
        self._bands.check(prepared.ledger, result.ledger, self._band_list())
        return prepared, result

    def _plan_swap_exact_out(self, i: int, j: int, dy: int) -> tuple[_Prepared, SwapResult]:
        prepared = self._prepare((i, j))
        result = self._swaps.swap_exact_out(
            prepared.ledger, prepared.amplification, prepared.rates, i, j, dy, self.fee_rate
        )
        self._bands.check(prepared.ledger, result.ledger, self._band_list())
        return prepared, result

    def _band_list(self) -> list[Band]:
        return [record.band for record in self._assets]

    # =========================================================================
    # Commit and settlement
    # =========================================================================

    def _commit(self, prepared: _Prepared, ledger: VirtualBalanceLedger) -> None:
        self._ledger = ledger
        self._amplification = prepared.amplification
        self._ramp = prepared.ramp
        self._assets = [
            replace(record, rate=rate) if record.rate != rate else record
            for record, rate in zip(self._assets, prepared.rates, strict=True)
        ]

    def _settle_staking(self, delta: int) -> None:
        if delta > 0:
            self.share_ledger.mint(self.staking, delta)
        elif delta < 0:
            self.share_ledger.burn(self.staking, -delta)
        if delta:
            logger.debug("staking_settled", staking=self.staking, delta=delta)

    # =========================================================================
    # Guards
    # =========================================================================

    def _require_management(self, sender: str | None) -> None:
        if sender != self.management:
            raise AccessDeniedError(f"{sender} is not management")

    def _require_not_killed(self) -> None:
        if self.killed:
            raise PoolKilledError("Pool is killed")

    def _require_active(self) -> None:
        self._require_not_killed()
        if self.paused:
            raise PoolPausedError("Pool is paused")

    def _require_staking(self, delta: int) -> None:
        if delta == 0:
            return
        if self.staking is None:
            raise StakingNotSetError(f"Supply change of {delta} needs a staking recipient")
        if delta < 0:
            self._require_shares(self.staking, -delta)

    def _require_shares(self, holder: str, amount: int) -> None:
        held = self.share_ledger.balance_of(holder)
        if held < amount:
            raise InsufficientSharesError(f"{holder} holds {held} shares, needs {amount}")

    def _require_funds(self, account: str, asset: str, amount: int) -> None:
        held = self.custodian.balance_of(account, asset)
        if held < amount:
            raise InsufficientFundsError(f"{account} holds {held} {asset}, needs {amount}")


def _read_rate(provider: RateProvider, asset: str) -> int:
    rate = provider.rate(asset)
    if rate <= 0:
        raise ZeroRateError(f"Rate provider for {asset} returned {rate}")
    return rate
