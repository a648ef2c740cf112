"""Tests for rate refresh."""

import pytest

from weighted_pool.constants import DEFAULT_MAX_RATE_INCREASE, PRECISION
from weighted_pool.errors import RateShockError, ZeroRateError
from weighted_pool.ledger import VirtualBalanceLedger
from weighted_pool.rates import RateUpdater, check_rate_increase
from tests.helpers import ASSETS, E18, equal_weights

RATES = (PRECISION,) * 4


class TestCheckRateIncrease:
    """Cap on rate increases."""

    def test_first_observation_uncapped(self):
        check_rate_increase("steth", 0, 100 * E18, DEFAULT_MAX_RATE_INCREASE)

    def test_cap_is_inclusive(self):
        check_rate_increase("steth", E18, 11 * 10**17, DEFAULT_MAX_RATE_INCREASE)

    def test_above_cap(self):
        with pytest.raises(RateShockError) as exc_info:
            check_rate_increase("steth", E18, 11 * 10**17 + 1, DEFAULT_MAX_RATE_INCREASE)
        assert exc_info.value.asset == "steth"
        assert exc_info.value.previous == E18
        assert exc_info.value.current == 11 * 10**17 + 1

    def test_decrease_uncapped(self):
        check_rate_increase("steth", E18, E18 // 2, DEFAULT_MAX_RATE_INCREASE)


class TestRateUpdater:
    """Folding observed rates into the ledger."""

    def refresh(self, ledger, observed, override=False):
        updater = RateUpdater(DEFAULT_MAX_RATE_INCREASE, 255)
        return updater.refresh(ledger, RATES, observed, 10 * E18, ASSETS, override)

    def test_unchanged_rates(self, balanced_ledger):
        update = self.refresh(balanced_ledger, {0: PRECISION, 1: PRECISION})
        assert update.ledger is balanced_ledger
        assert update.rates == RATES
        assert update.supply_delta == 0

    def test_increase_rescales_balance(self, balanced_ledger):
        update = self.refresh(balanced_ledger, {2: 105 * 10**16})
        assert update.ledger.balances[2] == 105 * E18
        assert update.rates[2] == 105 * 10**16
        assert update.supply_delta > 0
        assert update.ledger.supply == 400 * E18 + update.supply_delta

    def test_decrease_shrinks_supply(self, balanced_ledger):
        update = self.refresh(balanced_ledger, {1: 95 * 10**16})
        assert update.ledger.balances[1] == 95 * E18
        assert update.supply_delta < 0

    def test_shock_rejected(self, balanced_ledger):
        with pytest.raises(RateShockError):
            self.refresh(balanced_ledger, {0: 2 * PRECISION})

    def test_override_accepts_shock(self, balanced_ledger):
        update = self.refresh(balanced_ledger, {0: 2 * PRECISION}, override=True)
        assert update.ledger.balances[0] == 200 * E18

    def test_zero_rate_rejected(self, balanced_ledger):
        with pytest.raises(ZeroRateError):
            self.refresh(balanced_ledger, {3: 0})

    def test_empty_ledger_only_records_rates(self):
        ledger = VirtualBalanceLedger.empty(equal_weights(4))
        update = self.refresh(ledger, {0: 2 * PRECISION}, override=True)
        assert update.ledger is ledger
        assert update.rates[0] == 2 * PRECISION
        assert update.supply_delta == 0
