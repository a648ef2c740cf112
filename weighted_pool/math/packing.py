"""Packed weight codec.

An asset's target weight and its two band multipliers are stored as one
integer word: three fixed-width fields, weight in the low bits.
"""

from __future__ import annotations

from dataclasses import dataclass

from weighted_pool.constants import WEIGHT_FIELD_BITS, WEIGHT_FIELD_MASK
from weighted_pool.errors import MathDomainError

__all__ = [
    "PackingOverflowError",
    "WeightRecord",
    "pack_weight",
    "unpack_weight",
]


class PackingOverflowError(MathDomainError):
    """Field does not fit its packed slot."""

    pass


@dataclass(frozen=True)
class WeightRecord:
    """Target weight plus band multipliers of one asset.

    Attributes:
        weight: Target weight (18 decimals)
        lower_band: Lower band multiplier (18 decimals, 0 when unset)
        upper_band: Upper band multiplier (18 decimals, 0 when unset)
    """

    weight: int
    lower_band: int = 0
    upper_band: int = 0

    def pack(self) -> int:
        """Return the packed word for this record."""
        return pack_weight(self.weight, self.lower_band, self.upper_band)

    @classmethod
    def unpack(cls, word: int) -> WeightRecord:
        """Build a record from a packed word."""
        return cls(*unpack_weight(word))


def pack_weight(weight: int, lower_band: int, upper_band: int) -> int:
    """Pack weight and band multipliers into one word.

    Raises:
        PackingOverflowError: If a field is negative or wider than its slot
    """
    fields = (weight, lower_band, upper_band)
    word = 0
    for position, value in enumerate(fields):
        if value < 0 or value > WEIGHT_FIELD_MASK:
            raise PackingOverflowError(f"Field {position} value {value} does not fit")
        word |= value << (position * WEIGHT_FIELD_BITS)
    return word


def unpack_weight(word: int) -> tuple[int, int, int]:
    """Unpack a word produced by pack_weight into (weight, lower, upper)."""
    if word < 0 or word >> (3 * WEIGHT_FIELD_BITS):
        raise PackingOverflowError(f"Word {word} is not a packed weight")
    return (
        word & WEIGHT_FIELD_MASK,
        (word >> WEIGHT_FIELD_BITS) & WEIGHT_FIELD_MASK,
        (word >> (2 * WEIGHT_FIELD_BITS)) & WEIGHT_FIELD_MASK,
    )
