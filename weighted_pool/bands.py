"""Per-asset weight bands.

A band bounds an asset's share of vb_sum to
[weight * lower_band, weight * upper_band]. A side set to 0 is unbounded.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from weighted_pool.constants import PRECISION
from weighted_pool.errors import BandViolationError, InvalidBandError
from weighted_pool.ledger import VirtualBalanceLedger

logger = structlog.get_logger()


@dataclass(frozen=True)
class Band:
    """Band multipliers of one asset (18 decimals, 0 = not configured)."""

    lower: int = 0
    upper: int = 0

    @property
    def is_set(self) -> bool:
        return self.lower > 0 or self.upper > 0

    def validate(self) -> None:
        """Raises InvalidBandError unless lower <= 1 <= upper for set sides."""
        if self.lower < 0 or self.upper < 0:
            raise InvalidBandError(f"Band multipliers must be non-negative: {self}")
        if self.lower > PRECISION:
            raise InvalidBandError(f"Lower band {self.lower} above 1")
        if self.upper and self.upper < PRECISION:
            raise InvalidBandError(f"Upper band {self.upper} below 1")


class BandGuard:
    """Rejects operations that push an asset further outside its band.

    An asset already outside its band (for instance after a weight ramp) may
    still move back toward it; only movement away from the band is rejected.
    """

    def check(
        self,
        before: VirtualBalanceLedger,
        after: VirtualBalanceLedger,
        bands: Sequence[Band],
    ) -> None:
        """Compare asset shares before and after a planned operation.

        Args:
            before: Ledger before the operation
            after: Ledger the operation would commit
            bands: Band per asset

        Raises:
            BandViolationError: For the first asset that ends outside its
                band and further from it than before
        """
        if after.vb_sum == 0:
            return

        for i, band in enumerate(bands):
            if not band.is_set:
                continue
            share = after.share(i)
            previous = before.share(i)
            weight = after.weights[i]

            if band.lower:
                lower = weight * band.lower // PRECISION
                if share < lower and share < previous:
                    logger.info("band_violation", asset_index=i, share=share, bound=lower, side="lower")
                    raise BandViolationError(i, share, lower)
            if band.upper:
                upper = weight * band.upper // PRECISION
                if share > upper and share > previous:
                    logger.info("band_violation", asset_index=i, share=share, bound=upper, side="upper")
                    raise BandViolationError(i, share, upper)
