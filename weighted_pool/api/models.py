"""Request and response models for the quote API.

Integers travel as uint256 decimal strings.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

from weighted_pool.collaborators import InMemoryCustodian, StaticRateProvider
from weighted_pool.constants import PRECISION
from weighted_pool.pool import Pool

# Maximum uint256 value
UINT256_MAX = 2**256 - 1


def validate_uint256(value: Any) -> str:
    """Validate that a value is a valid uint256 decimal string.

    Args:
        value: Value to validate (string or int)

    Returns:
        Valid uint256 as decimal string

    Raises:
        ValueError: If value is not a non-negative integer within uint256 range
    """
    if isinstance(value, bool):
        raise ValueError("Uint256 must be string or int, got bool")
    if isinstance(value, int):
        int_value = value
    elif isinstance(value, str):
        try:
            int_value = int(value)
        except ValueError as err:
            raise ValueError(f"Uint256 must be a decimal integer string: '{value}'") from err
    else:
        raise ValueError(f"Uint256 must be string or int, got {type(value).__name__}")

    if int_value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")
    if int_value > UINT256_MAX:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")
    return str(int_value)


# 256-bit unsigned integer as decimal string (validated)
Uint256 = Annotated[
    str,
    BeforeValidator(validate_uint256),
    Field(description="256-bit unsigned integer as decimal string"),
]


# =============================================================================
# Pool configuration
# =============================================================================


class PoolSpec(BaseModel):
    """Pool served by the API, as read from the pools file.

    The pool is created with static rates and seeded with an initial
    deposit from the management account when balances are given.
    """

    assets: list[str] = Field(min_length=2)
    weights: list[Uint256]
    amplification: Uint256
    rates: list[Uint256] | None = Field(default=None, description="Static rate per asset (default 1.0).")
    balances: list[Uint256] | None = Field(default=None, description="Raw initial deposit per asset.")
    fee_rate: Uint256 = Field(default="0", alias="feeRate")
    management: str = "management"
    staking: str | None = None

    model_config = {"populate_by_name": True}

    def build(self) -> Pool:
        """Create the pool and apply its initial deposit and fee rate."""
        rates = self.rates or [str(PRECISION)] * len(self.assets)
        if len(rates) != len(self.assets):
            raise ValueError(f"Expected {len(self.assets)} rates, got {len(rates)}")
        provider = StaticRateProvider({asset: int(rate) for asset, rate in zip(self.assets, rates, strict=True)})
        custodian = InMemoryCustodian()
        pool = Pool(
            self.assets,
            [provider] * len(self.assets),
            [int(weight) for weight in self.weights],
            int(self.amplification),
            management=self.management,
            custodian=custodian,
        )
        if self.staking is not None:
            pool.set_staking(self.staking, sender=self.management)
        if self.balances is not None:
            amounts = [int(amount) for amount in self.balances]
            for asset, amount in zip(self.assets, amounts, strict=True):
                custodian.fund(self.management, asset, amount)
            pool.add_liquidity(amounts, 0, sender=self.management)
        if int(self.fee_rate):
            pool.set_fee_rate(int(self.fee_rate), sender=self.management)
        return pool


class PoolsFile(BaseModel):
    """Pools file: pool specs keyed by pool id."""

    pools: dict[str, PoolSpec]


# =============================================================================
# Requests
# =============================================================================


class SwapQuoteRequest(BaseModel):
    """Quote for a swap between two assets."""

    asset_in: int = Field(alias="assetIn", ge=0, description="Index of the input asset.")
    asset_out: int = Field(alias="assetOut", ge=0, description="Index of the output asset.")
    amount: Uint256 = Field(description="Input amount (exact in) or output amount (exact out).")

    model_config = {"populate_by_name": True}


class AddLiquidityQuoteRequest(BaseModel):
    """Quote for a deposit."""

    amounts: list[Uint256] = Field(description="Raw deposit amount per asset.")


class RemoveLiquidityQuoteRequest(BaseModel):
    """Quote for a balanced withdrawal."""

    shares: Uint256 = Field(description="Pool shares to redeem.")


class RemoveSingleQuoteRequest(BaseModel):
    """Quote for a single-asset withdrawal."""

    asset: int = Field(ge=0, description="Index of the asset to withdraw.")
    shares: Uint256 = Field(description="Pool shares to redeem.")


# =============================================================================
# Responses
# =============================================================================


class AmountResponse(BaseModel):
    """Single quoted amount."""

    amount: Uint256


class AmountsResponse(BaseModel):
    """Quoted amount per asset."""

    amounts: list[Uint256]


class AssetState(BaseModel):
    """Committed state of one pool asset."""

    asset: str
    weight: Uint256
    lower_band: Uint256 = Field(alias="lowerBand")
    upper_band: Uint256 = Field(alias="upperBand")
    rate: Uint256
    virtual_balance: Uint256 = Field(alias="virtualBalance")

    model_config = {"populate_by_name": True}


class RampStateResponse(BaseModel):
    """Scheduled ramp."""

    amp_start: Uint256 = Field(alias="ampStart")
    amp_target: Uint256 = Field(alias="ampTarget")
    weights_start: list[Uint256] = Field(alias="weightsStart")
    weights_target: list[Uint256] = Field(alias="weightsTarget")
    time_start: int = Field(alias="timeStart")
    time_stop: int = Field(alias="timeStop")

    model_config = {"populate_by_name": True}


class PoolStateResponse(BaseModel):
    """Committed pool state."""

    id: str
    amplification: Uint256
    supply: Uint256
    vb_sum: Uint256 = Field(alias="vbSum")
    vb_prod: Uint256 = Field(alias="vbProd")
    fee_rate: Uint256 = Field(alias="feeRate")
    paused: bool
    killed: bool
    assets: list[AssetState]
    ramp: RampStateResponse | None = None

    model_config = {"populate_by_name": True}

    @classmethod
    def from_pool(cls, pool_id: str, pool: Pool) -> PoolStateResponse:
        """Snapshot a pool."""
        ramp = pool.ramp
        return cls(
            id=pool_id,
            amplification=pool.amplification,
            supply=pool.supply,
            vb_sum=pool.vb_sum,
            vb_prod=pool.vb_prod,
            fee_rate=pool.fee_rate,
            paused=pool.paused,
            killed=pool.killed,
            assets=[
                AssetState(
                    asset=asset,
                    weight=pool.weight(i).weight,
                    lower_band=pool.weight(i).lower_band,
                    upper_band=pool.weight(i).upper_band,
                    rate=pool.rate(i),
                    virtual_balance=pool.virtual_balance(i),
                )
                for i, asset in enumerate(pool.assets)
            ],
            ramp=None
            if ramp is None
            else RampStateResponse(
                amp_start=ramp.amp_start,
                amp_target=ramp.amp_target,
                weights_start=list(ramp.weights_start),
                weights_target=list(ramp.weights_target),
                time_start=ramp.time_start,
                time_stop=ramp.time_stop,
            ),
        )


class ErrorResponse(BaseModel):
    """Pool error returned with HTTP 422."""

    detail: str
    error: str
