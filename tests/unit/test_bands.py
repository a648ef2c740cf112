"""Tests for weight band validation and enforcement."""

import pytest

from weighted_pool.bands import Band, BandGuard
from weighted_pool.constants import PRECISION
from weighted_pool.errors import BandViolationError, InvalidBandError
from tests.helpers import E18

# share of vb_sum allowed within [0.2, 0.3] for a 0.25 weight
TIGHT = Band(lower=8 * 10**17, upper=12 * 10**17)
UNSET = Band()


class TestBand:
    """Band multiplier validation."""

    def test_unset(self):
        assert not UNSET.is_set
        UNSET.validate()

    def test_one_sided(self):
        Band(lower=5 * 10**17).validate()
        Band(upper=2 * PRECISION).validate()
        assert Band(upper=2 * PRECISION).is_set

    def test_lower_above_one(self):
        with pytest.raises(InvalidBandError):
            Band(lower=PRECISION + 1).validate()

    def test_upper_below_one(self):
        with pytest.raises(InvalidBandError):
            Band(upper=PRECISION - 1).validate()

    def test_negative(self):
        with pytest.raises(InvalidBandError):
            Band(lower=-1).validate()


class TestBandGuard:
    """Operations may not push an asset further outside its band."""

    def test_inside_band_passes(self, balanced_ledger):
        after = balanced_ledger.apply_delta(0, 10 * E18)
        BandGuard().check(balanced_ledger, after, [TIGHT] * 4)

    def test_upper_violation(self, balanced_ledger):
        """140 / 440 = 0.318 exceeds 0.25 * 1.2."""
        after = balanced_ledger.apply_delta(0, 40 * E18)
        with pytest.raises(BandViolationError) as exc_info:
            BandGuard().check(balanced_ledger, after, [TIGHT, UNSET, UNSET, UNSET])
        assert exc_info.value.index == 0
        assert exc_info.value.bound == 3 * 10**17
        assert exc_info.value.ratio > exc_info.value.bound

    def test_lower_violation(self, balanced_ledger):
        """40 / 340 = 0.118 is below 0.25 * 0.8."""
        after = balanced_ledger.apply_delta(1, -60 * E18)
        with pytest.raises(BandViolationError) as exc_info:
            BandGuard().check(balanced_ledger, after, [UNSET, TIGHT, UNSET, UNSET])
        assert exc_info.value.index == 1
        assert exc_info.value.bound == 2 * 10**17

    def test_unset_band_ignored(self, balanced_ledger):
        after = balanced_ledger.apply_delta(0, 300 * E18)
        BandGuard().check(balanced_ledger, after, [UNSET] * 4)

    def test_moving_back_toward_band_passes(self, balanced_ledger):
        """An asset already out of band may still move toward it."""
        outside = balanced_ledger.apply_delta(0, 40 * E18)
        closer = outside.apply_delta(0, -10 * E18)
        BandGuard().check(outside, closer, [TIGHT, UNSET, UNSET, UNSET])

    def test_moving_further_out_fails(self, balanced_ledger):
        outside = balanced_ledger.apply_delta(0, 40 * E18)
        further = outside.apply_delta(0, 10 * E18)
        with pytest.raises(BandViolationError):
            BandGuard().check(outside, further, [TIGHT, UNSET, UNSET, UNSET])

    def test_other_assets_checked(self, balanced_ledger):
        """Growing one asset shrinks the others' shares."""
        after = balanced_ledger.apply_delta(0, 150 * E18)
        with pytest.raises(BandViolationError) as exc_info:
            BandGuard().check(balanced_ledger, after, [UNSET, TIGHT, UNSET, UNSET])
        assert exc_info.value.index == 1
