"""Registry of pools served by the quote API."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from weighted_pool.api.models import PoolsFile
from weighted_pool.pool import Pool

logger = structlog.get_logger()


class PoolRegistry:
    """Pools indexed by identifier."""

    def __init__(self, pools: dict[str, Pool] | None = None) -> None:
        self._pools: dict[str, Pool] = dict(pools or {})

    def add(self, pool_id: str, pool: Pool) -> None:
        """Register a pool, replacing any pool with the same id."""
        if pool_id in self._pools:
            logger.warning("pool_replaced", pool_id=pool_id)
        self._pools[pool_id] = pool

    def get(self, pool_id: str) -> Pool | None:
        return self._pools.get(pool_id)

    def ids(self) -> list[str]:
        return sorted(self._pools)

    def load_json(self, data: dict[str, object]) -> None:
        """Build and register every pool in a pools file document.

        Raises:
            pydantic.ValidationError: If the document is malformed
            PoolError: If a pool cannot be created or seeded
        """
        pools_file = PoolsFile.model_validate(data)
        for pool_id, spec in pools_file.pools.items():
            self.add(pool_id, spec.build())
        logger.info("pools_loaded", pool_ids=sorted(pools_file.pools))

    def load_file(self, path: Path) -> None:
        """Load pools from a JSON pools file."""
        with open(path) as f:
            self.load_json(json.load(f))

    def __len__(self) -> int:
        return len(self._pools)


# Registry used when no override is installed
DEFAULT_REGISTRY = PoolRegistry()
