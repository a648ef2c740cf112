"""Quote API endpoints.

Read-only: every quote runs the same planning pipeline as the pool's
mutating entry points without committing anything.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException

from weighted_pool.api.models import (
    AddLiquidityQuoteRequest,
    AmountResponse,
    AmountsResponse,
    PoolStateResponse,
    RemoveLiquidityQuoteRequest,
    RemoveSingleQuoteRequest,
    SwapQuoteRequest,
)
from weighted_pool.api.registry import DEFAULT_REGISTRY, PoolRegistry
from weighted_pool.pool import Pool

logger = structlog.get_logger()

router = APIRouter(prefix="/pools")


def get_registry() -> PoolRegistry:
    """Dependency provider for the pool registry.

    Override this in tests to inject pools:
        app.dependency_overrides[get_registry] = lambda: registry

    Returns:
        The registry to serve quotes from.
    """
    return DEFAULT_REGISTRY


def _lookup(registry: PoolRegistry, pool_id: str) -> Pool:
    pool = registry.get(pool_id)
    if pool is None:
        raise HTTPException(status_code=404, detail=f"Unknown pool {pool_id}")
    return pool


def _check_index(pool: Pool, *indices: int) -> None:
    for index in indices:
        if index >= pool.num_assets:
            raise HTTPException(
                status_code=422,
                detail=f"Asset index {index} out of range for {pool.num_assets} assets",
            )


@router.get("")
async def list_pools(registry: PoolRegistry = Depends(get_registry)) -> list[str]:
    """List the ids of all served pools."""
    return registry.ids()


@router.get("/{pool_id}", response_model=PoolStateResponse)
async def pool_state(pool_id: str, registry: PoolRegistry = Depends(get_registry)) -> PoolStateResponse:
    """Committed state of a pool."""
    return PoolStateResponse.from_pool(pool_id, _lookup(registry, pool_id))


@router.post("/{pool_id}/quote/swap", response_model=AmountResponse)
async def quote_swap(
    pool_id: str,
    request: SwapQuoteRequest,
    registry: PoolRegistry = Depends(get_registry),
) -> AmountResponse:
    """Output amount for selling an exact input amount."""
    pool = _lookup(registry, pool_id)
    _check_index(pool, request.asset_in, request.asset_out)
    amount = pool.get_dy(request.asset_in, request.asset_out, int(request.amount))
    logger.debug("quote_swap", pool_id=pool_id, amount_in=request.amount, amount_out=amount)
    return AmountResponse(amount=amount)


@router.post("/{pool_id}/quote/swap-exact-out", response_model=AmountResponse)
async def quote_swap_exact_out(
    pool_id: str,
    request: SwapQuoteRequest,
    registry: PoolRegistry = Depends(get_registry),
) -> AmountResponse:
    """Input amount, fee included, for buying an exact output amount."""
    pool = _lookup(registry, pool_id)
    _check_index(pool, request.asset_in, request.asset_out)
    amount = pool.get_dx(request.asset_in, request.asset_out, int(request.amount))
    logger.debug("quote_swap_exact_out", pool_id=pool_id, amount_out=request.amount, amount_in=amount)
    return AmountResponse(amount=amount)


@router.post("/{pool_id}/quote/add-liquidity", response_model=AmountResponse)
async def quote_add_liquidity(
    pool_id: str,
    request: AddLiquidityQuoteRequest,
    registry: PoolRegistry = Depends(get_registry),
) -> AmountResponse:
    """Shares minted for a deposit."""
    pool = _lookup(registry, pool_id)
    return AmountResponse(amount=pool.get_add_lp([int(amount) for amount in request.amounts]))


@router.post("/{pool_id}/quote/remove-liquidity", response_model=AmountsResponse)
async def quote_remove_liquidity(
    pool_id: str,
    request: RemoveLiquidityQuoteRequest,
    registry: PoolRegistry = Depends(get_registry),
) -> AmountsResponse:
    """Amounts paid for a balanced withdrawal."""
    pool = _lookup(registry, pool_id)
    return AmountsResponse(amounts=list(pool.get_remove_lp(int(request.shares))))


@router.post("/{pool_id}/quote/remove-liquidity-single", response_model=AmountResponse)
async def quote_remove_liquidity_single(
    pool_id: str,
    request: RemoveSingleQuoteRequest,
    registry: PoolRegistry = Depends(get_registry),
) -> AmountResponse:
    """Amount paid for a single-asset withdrawal."""
    pool = _lookup(registry, pool_id)
    _check_index(pool, request.asset)
    return AmountResponse(amount=pool.get_remove_single_lp(request.asset, int(request.shares)))
