"""External collaborators of the pool.

The pool only computes how many shares and asset units move. Moving them is
delegated to a share ledger and an asset custodian, and rates come from rate
providers. The protocols below are the interfaces the pool relies on; the
in-memory implementations back tests, the quote service and simulations.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Protocol

import structlog

from weighted_pool.errors import InsufficientFundsError, InsufficientSharesError

logger = structlog.get_logger()


class RateProvider(Protocol):
    """Oracle returning an 18-decimal exchange rate per asset.

    Must be a side-effect free read. A rate of 0 means "no rate" and is
    rejected by the pool.
    """

    def rate(self, asset: str) -> int: ...


class ShareLedger(Protocol):
    """Fungible pool-share ledger."""

    def mint(self, receiver: str, amount: int) -> None: ...

    def burn(self, holder: str, amount: int) -> None: ...

    def balance_of(self, account: str) -> int: ...

    def total_supply(self) -> int: ...


class AssetCustodian(Protocol):
    """Holds pool assets and moves them in and out on the pool's behalf."""

    def balance_of(self, account: str, asset: str) -> int: ...

    def pull(self, asset: str, sender: str, amount: int) -> None: ...

    def push(self, asset: str, receiver: str, amount: int) -> None: ...


# =============================================================================
# In-memory implementations
# =============================================================================


class StaticRateProvider:
    """Rate provider returning configured rates (default 1.0).

    Usage:
        provider = StaticRateProvider({"steth": 10**18})
        provider.set_rate("steth", 101 * 10**16)
    """

    def __init__(self, rates: dict[str, int] | None = None, default: int = 10**18) -> None:
        self.rates = dict(rates or {})
        self.default = default

    def rate(self, asset: str) -> int:
        return self.rates.get(asset, self.default)

    def set_rate(self, asset: str, rate: int) -> None:
        self.rates[asset] = rate


class InMemoryShareLedger:
    """Share balances kept in a dict."""

    def __init__(self) -> None:
        self.balances: dict[str, int] = defaultdict(int)
        self._total_supply = 0

    def mint(self, receiver: str, amount: int) -> None:
        self.balances[receiver] += amount
        self._total_supply += amount

    def burn(self, holder: str, amount: int) -> None:
        if self.balances[holder] < amount:
            raise InsufficientSharesError(f"{holder} holds {self.balances[holder]} shares, needs {amount}")
        self.balances[holder] -= amount
        self._total_supply -= amount

    def balance_of(self, account: str) -> int:
        return self.balances[account]

    def total_supply(self) -> int:
        return self._total_supply


class InMemoryCustodian:
    """Asset balances per account, plus the pool's own holdings.

    Usage:
        custodian = InMemoryCustodian(pool_account="pool")
        custodian.fund("alice", "steth", 100 * 10**18)
    """

    def __init__(self, pool_account: str = "pool") -> None:
        self.pool_account = pool_account
        self.balances: dict[tuple[str, str], int] = defaultdict(int)

    def fund(self, account: str, asset: str, amount: int) -> None:
        """Credit an account with an asset (test and simulation helper)."""
        self.balances[(account, asset)] += amount

    def balance_of(self, account: str, asset: str) -> int:
        return self.balances[(account, asset)]

    def pull(self, asset: str, sender: str, amount: int) -> None:
        self._move(asset, sender, self.pool_account, amount)

    def push(self, asset: str, receiver: str, amount: int) -> None:
        self._move(asset, self.pool_account, receiver, amount)

    def _move(self, asset: str, source: str, destination: str, amount: int) -> None:
        if self.balances[(source, asset)] < amount:
            raise InsufficientFundsError(
                f"{source} holds {self.balances[(source, asset)]} {asset}, needs {amount}"
            )
        self.balances[(source, asset)] -= amount
        self.balances[(destination, asset)] += amount
        logger.debug("asset_moved", asset=asset, source=source, destination=destination, amount=amount)
