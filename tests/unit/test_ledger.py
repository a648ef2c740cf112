"""Tests for the virtual balance ledger."""

from dataclasses import replace

import pytest

from weighted_pool.constants import PRECISION
from weighted_pool.errors import InsufficientLiquidityError
from weighted_pool.ledger import VirtualBalanceLedger
from tests.helpers import E18, equal_weights, seeded_ledger


class TestEmptyLedger:
    """A fresh ledger has no shape."""

    def test_empty(self):
        ledger = VirtualBalanceLedger.empty(equal_weights(4))
        assert ledger.balances == (0, 0, 0, 0)
        assert ledger.vb_sum == 0
        assert ledger.vb_prod == 0
        assert ledger.supply == 0
        assert ledger.w_prod == 256 * PRECISION
        assert ledger.is_empty

    def test_recompute_of_empty_stays_empty(self):
        ledger = VirtualBalanceLedger.empty(equal_weights(2))
        assert ledger.recompute_full() == ledger

    def test_share_of_empty_is_zero(self):
        assert VirtualBalanceLedger.empty(equal_weights(2)).share(0) == 0


class TestAggregates:
    """Cached vb_sum and vb_prod."""

    def test_balanced_ledger(self, balanced_ledger):
        assert balanced_ledger.supply == 400 * E18
        assert balanced_ledger.vb_sum == 400 * E18
        assert balanced_ledger.vb_prod == PRECISION
        assert balanced_ledger.share(2) == PRECISION // 4

    def test_exponent(self, balanced_ledger):
        """Weight exponent n * w is 1 for four equal weights."""
        assert balanced_ledger.exponent(0) == PRECISION

    def test_recompute_is_idempotent(self):
        ledger = seeded_ledger([120 * E18, 80 * E18, 100 * E18, 110 * E18])
        once = ledger.recompute_full()
        assert once.recompute_full() == once

    def test_incremental_product_tracks_full_recompute(self, balanced_ledger):
        """apply_delta drifts only upward, and only by rounding."""
        ledger = balanced_ledger.apply_delta(0, 10 * E18).apply_delta(1, -5 * E18).apply_delta(3, 7 * E18)
        full = ledger.recompute_full()
        assert ledger.vb_sum == full.vb_sum == 412 * E18
        assert ledger.vb_prod >= full.vb_prod
        assert ledger.vb_prod == pytest.approx(full.vb_prod, rel=1e-15)

    def test_incremental_product_uneven_weights(self):
        weights = [2 * 10**17, 3 * 10**17, 5 * 10**17]
        ledger = seeded_ledger([20 * E18, 30 * E18, 50 * E18], weights)
        moved = ledger.apply_delta(1, 3 * E18).apply_delta(2, -4 * E18)
        assert moved.vb_prod == pytest.approx(moved.recompute_full().vb_prod, rel=1e-14)

    def test_product_excluding_balanced(self, balanced_ledger):
        assert balanced_ledger.product_excluding(0) == PRECISION

    def test_sum_excluding(self, balanced_ledger):
        assert balanced_ledger.sum_excluding(3) == 300 * E18


class TestApplyDelta:
    """Single balance updates."""

    def test_zero_delta_is_identity(self, balanced_ledger):
        assert balanced_ledger.apply_delta(1, 0) is balanced_ledger

    def test_returns_new_ledger(self, balanced_ledger):
        updated = balanced_ledger.apply_delta(1, E18)
        assert updated.balances[1] == 101 * E18
        assert balanced_ledger.balances[1] == 100 * E18

    def test_negative_balance_raises(self, balanced_ledger):
        with pytest.raises(InsufficientLiquidityError):
            balanced_ledger.apply_delta(0, -101 * E18)

    def test_depleting_balance_raises(self, balanced_ledger):
        """A shaped pool cannot hold a zero balance."""
        with pytest.raises(InsufficientLiquidityError):
            balanced_ledger.apply_delta(0, -100 * E18)

    def test_empty_ledger_accepts_deposits(self):
        ledger = VirtualBalanceLedger.empty(equal_weights(2)).apply_delta(0, 5 * E18)
        assert ledger.balances == (5 * E18, 0)
        assert ledger.vb_prod == 0


class TestSupply:
    """Supply changes and resets."""

    def test_with_supply_rescales_product(self, balanced_ledger):
        """vb_prod scales with D^n."""
        doubled = balanced_ledger.with_supply(800 * E18)
        assert doubled.vb_prod == 16 * PRECISION

    def test_with_supply_zero_resets(self, balanced_ledger):
        emptied = balanced_ledger.with_supply(0)
        assert emptied.vb_sum == 0
        assert emptied.vb_prod == 0

    def test_scale_balances_keeps_product(self, balanced_ledger):
        halved = balanced_ledger.scale_balances([50 * E18] * 4, 200 * E18)
        assert halved.vb_prod == balanced_ledger.vb_prod
        assert halved.vb_sum == 200 * E18

    def test_scale_to_zero_resets(self, balanced_ledger):
        emptied = balanced_ledger.scale_balances([0] * 4, 0)
        assert emptied.is_empty
        assert emptied.vb_prod == 0

    def test_reset_empty(self, balanced_ledger):
        reset = balanced_ledger.reset_empty()
        assert (reset.vb_sum, reset.vb_prod) == (0, 0)

    def test_solve_supply_from_scratch(self):
        """Without supply the solve starts from vb_sum."""
        ledger = replace(VirtualBalanceLedger.empty(equal_weights(4)), balances=(100 * E18,) * 4)
        solved = ledger.recompute_full().solve_supply(10 * E18, 255)
        assert solved.supply == 400 * E18

    def test_solve_supply_after_deposit(self, balanced_ledger):
        """A proportional deposit grows D by the same proportion."""
        ledger = balanced_ledger
        for i in range(4):
            ledger = ledger.apply_delta(i, 10 * E18)
        solved = ledger.solve_supply(10 * E18, 255)
        assert abs(solved.supply - 440 * E18) <= 10**3


class TestReweight:
    """Weight changes and new assets."""

    def test_reweight_recomputes(self, balanced_ledger):
        weights = [10**17, 2 * 10**17, 3 * 10**17, 4 * 10**17]
        reweighted = balanced_ledger.reweight(weights)
        assert reweighted.weights == tuple(weights)
        assert reweighted.w_prod < balanced_ledger.w_prod
        assert reweighted.vb_prod > PRECISION

    def test_append_asset(self):
        weights = [2 * 10**17, 3 * 10**17, 5 * 10**17]
        ledger = seeded_ledger([20 * E18, 30 * E18, 50 * E18], weights)
        appended = ledger.append_asset(25 * E18, [16 * 10**16, 24 * 10**16, 4 * 10**17, 2 * 10**17])
        assert appended.num_assets == 4
        assert appended.vb_sum == 125 * E18
        assert appended.vb_prod == PRECISION
        assert appended.supply == 0
