"""Tests for the in-memory collaborators."""

import pytest

from weighted_pool.collaborators import InMemoryCustodian, InMemoryShareLedger, StaticRateProvider
from weighted_pool.errors import InsufficientFundsError, InsufficientSharesError
from tests.helpers import ALICE, BOB, E18, STETH


class TestStaticRateProvider:
    def test_default_and_override(self):
        provider = StaticRateProvider({STETH: 2 * E18})
        assert provider.rate(STETH) == 2 * E18
        assert provider.rate("other") == E18
        provider.set_rate("other", 3 * E18)
        assert provider.rate("other") == 3 * E18


class TestInMemoryShareLedger:
    """Share balances and supply."""

    def test_mint_and_burn(self):
        shares = InMemoryShareLedger()
        shares.mint(ALICE, 10 * E18)
        shares.mint(BOB, 5 * E18)
        shares.burn(ALICE, 4 * E18)
        assert shares.balance_of(ALICE) == 6 * E18
        assert shares.total_supply() == 11 * E18

    def test_burn_more_than_held(self):
        shares = InMemoryShareLedger()
        shares.mint(ALICE, E18)
        with pytest.raises(InsufficientSharesError):
            shares.burn(ALICE, E18 + 1)
        assert shares.total_supply() == E18


class TestInMemoryCustodian:
    """Asset movements."""

    def test_pull_and_push(self):
        custodian = InMemoryCustodian()
        custodian.fund(ALICE, STETH, 10 * E18)
        custodian.pull(STETH, ALICE, 4 * E18)
        custodian.push(STETH, BOB, E18)
        assert custodian.balance_of(ALICE, STETH) == 6 * E18
        assert custodian.balance_of("pool", STETH) == 3 * E18
        assert custodian.balance_of(BOB, STETH) == E18

    def test_insufficient_funds(self):
        custodian = InMemoryCustodian()
        with pytest.raises(InsufficientFundsError):
            custodian.pull(STETH, ALICE, 1)
        with pytest.raises(InsufficientFundsError):
            custodian.push(STETH, BOB, 1)
