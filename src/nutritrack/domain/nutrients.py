"""Nutrient vector model."""

import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from nutritrack.domain.errors import InvalidFactor
from nutritrack.domain.phases import AuthorizationPhase


class NutrientKey(StrEnum):
    """Nutrients tracked per food and written to the health record."""

    ENERGY = "energy"
    PROTEIN = "protein"
    CARBS = "carbs"
    FAT = "fat"
    FIBER = "fiber"
    SUGAR = "sugar"
    SODIUM = "sodium"
    WATER = "water"
    SATURATED_FAT = "saturated_fat"
    MONOUNSATURATED_FAT = "monounsaturated_fat"
    POLYUNSATURATED_FAT = "polyunsaturated_fat"
    CHOLESTEROL = "cholesterol"
    VITAMIN_C = "vitamin_c"
    VITAMIN_D = "vitamin_d"
    VITAMIN_E = "vitamin_e"
    VITAMIN_K = "vitamin_k"
    VITAMIN_B6 = "vitamin_b6"
    VITAMIN_B12 = "vitamin_b12"
    CALCIUM = "calcium"
    IRON = "iron"
    POTASSIUM = "potassium"
    ZINC = "zinc"


NUTRIENT_UNITS: dict[NutrientKey, str] = {
    key: "g" for key in NutrientKey
} | {NutrientKey.ENERGY: "kcal", NutrientKey.WATER: "L"}

NUTRIENT_TIERS: dict[NutrientKey, AuthorizationPhase] = {
    NutrientKey.ENERGY: AuthorizationPhase.CORE,
    NutrientKey.PROTEIN: AuthorizationPhase.CORE,
    NutrientKey.CARBS: AuthorizationPhase.CORE,
    NutrientKey.FAT: AuthorizationPhase.CORE,
    NutrientKey.FIBER: AuthorizationPhase.CORE,
    NutrientKey.SUGAR: AuthorizationPhase.CORE,
    NutrientKey.SODIUM: AuthorizationPhase.CORE,
    NutrientKey.WATER: AuthorizationPhase.CORE,
    NutrientKey.SATURATED_FAT: AuthorizationPhase.ENHANCED,
    NutrientKey.MONOUNSATURATED_FAT: AuthorizationPhase.ENHANCED,
    NutrientKey.POLYUNSATURATED_FAT: AuthorizationPhase.ENHANCED,
    NutrientKey.CHOLESTEROL: AuthorizationPhase.ENHANCED,
    NutrientKey.VITAMIN_C: AuthorizationPhase.ENHANCED,
    NutrientKey.VITAMIN_D: AuthorizationPhase.ENHANCED,
    NutrientKey.VITAMIN_E: AuthorizationPhase.ENHANCED,
    NutrientKey.VITAMIN_K: AuthorizationPhase.ENHANCED,
    NutrientKey.VITAMIN_B6: AuthorizationPhase.COMPREHENSIVE,
    NutrientKey.VITAMIN_B12: AuthorizationPhase.COMPREHENSIVE,
    NutrientKey.CALCIUM: AuthorizationPhase.COMPREHENSIVE,
    NutrientKey.IRON: AuthorizationPhase.COMPREHENSIVE,
    NutrientKey.POTASSIUM: AuthorizationPhase.COMPREHENSIVE,
    NutrientKey.ZINC: AuthorizationPhase.COMPREHENSIVE,
}


def keys_unlocked_at(phase: AuthorizationPhase) -> frozenset[NutrientKey]:
    """Return the nutrient keys first granted at exactly ``phase``."""
    return frozenset(key for key, tier in NUTRIENT_TIERS.items() if tier == phase)


def keys_allowed_at(phase: AuthorizationPhase) -> frozenset[NutrientKey]:
    """Return every nutrient key writable once ``phase`` is granted."""
    if phase is AuthorizationPhase.NONE:
        return frozenset()
    return frozenset(key for key, tier in NUTRIENT_TIERS.items() if tier <= phase)


@dataclass(frozen=True)
class NutrientVector:
    """Optional amount per nutrient key.

    A key that is not present means "unknown", which is distinct from an
    explicit zero. Amounts are non-negative and expressed in the fixed unit of
    their key (see ``NUTRIENT_UNITS``).
    """

    values: Mapping[NutrientKey, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned: dict[NutrientKey, float] = {}
        for raw_key, raw_amount in self.values.items():
            key = NutrientKey(raw_key)
            amount = float(raw_amount)
            if not math.isfinite(amount) or amount < 0:
                raise ValueError(f"Invalid amount for {key}: {raw_amount!r}")
            cleaned[key] = amount
        object.__setattr__(self, "values", cleaned)

    @classmethod
    def empty(cls) -> "NutrientVector":
        """Return a vector with every nutrient unknown."""
        return cls({})

    @classmethod
    def from_optional(
        cls, values: Mapping[NutrientKey | str, float | None]
    ) -> "NutrientVector":
        """Build a vector, dropping keys whose value is None."""
        return cls({key: amount for key, amount in values.items() if amount is not None})

    def get(self, key: NutrientKey) -> float | None:
        """Return the amount for a key, or None if unknown."""
        return self.values.get(key)

    def keys(self) -> frozenset[NutrientKey]:
        """Return the keys with a known amount."""
        return frozenset(self.values)

    @property
    def is_empty(self) -> bool:
        """True when no nutrient amount is known."""
        return not self.values

    def as_dict(self) -> dict[str, float]:
        """Return a JSON-friendly mapping of known amounts."""
        return {key.value: amount for key, amount in self.values.items()}

    def __iter__(self) -> Iterator[tuple[NutrientKey, float]]:
        return iter(self.values.items())

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __hash__(self) -> int:
        return hash(frozenset(self.values.items()))


def scale(vector: NutrientVector, factor: float) -> NutrientVector:
    """Multiply every known amount by ``factor``.

    Raises InvalidFactor for a negative or non-finite factor, and for a factor
    that pushes an amount beyond the float range.
    """
    if not math.isfinite(factor) or factor < 0:
        raise InvalidFactor(f"Scaling factor must be finite and >= 0, got {factor!r}")
    scaled = {key: amount * factor for key, amount in vector.values.items()}
    overflowed = sorted(
        key.value for key, amount in scaled.items() if math.isinf(amount)
    )
    if overflowed:
        raise InvalidFactor(f"Scaling by {factor!r} overflows {', '.join(overflowed)}")
    return NutrientVector(scaled)


def add(a: NutrientVector, b: NutrientVector) -> NutrientVector:
    """Sum two vectors field by field.

    A key known on one side only is summed with zero; a key unknown on both
    sides stays unknown.
    """
    totals = dict(a.values)
    for key, amount in b.values.items():
        totals[key] = totals.get(key, 0.0) + amount
    return NutrientVector(totals)


def restrict_to_phase(
    vector: NutrientVector, phase: AuthorizationPhase
) -> NutrientVector:
    """Drop every key whose tier is above ``phase``."""
    allowed = keys_allowed_at(phase)
    return NutrientVector(
        {key: amount for key, amount in vector.values.items() if key in allowed}
    )


def total(vectors: Iterable[NutrientVector]) -> NutrientVector:
    """Sum a list of vectors with ``add``."""
    result = NutrientVector.empty()
    for vector in vectors:
        result = add(result, vector)
    return result
