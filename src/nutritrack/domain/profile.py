"""Health profile models."""

from dataclasses import dataclass
from enum import Enum, StrEnum


class BiologicalSex(StrEnum):
    """Biological sex as reported by the health store."""

    FEMALE = "female"
    MALE = "male"
    OTHER = "other"
    NOT_SET = "not_set"


class ActivityLevel(Enum):
    """Activity levels with their energy expenditure multipliers."""

    SEDENTARY = 1.2
    LIGHT = 1.375
    MODERATE = 1.55
    ACTIVE = 1.725
    VERY_ACTIVE = 1.9

    @property
    def multiplier(self) -> float:
        """Multiplier applied to the basal metabolic rate."""
        return self.value


@dataclass(frozen=True)
class UserProfile:
    """Body profile read from the health store."""

    age: int | None
    biological_sex: BiologicalSex
    height_m: float | None
    weight_kg: float | None
    bmi: float | None

    @property
    def bmr(self) -> float | None:
        """Basal metabolic rate in kcal/day (Mifflin-St Jeor)."""
        if self.height_m is None or self.weight_kg is None or self.age is None:
            return None
        base = 10 * self.weight_kg + 6.25 * (self.height_m * 100) - 5 * self.age
        if self.biological_sex is BiologicalSex.MALE:
            return base + 5
        if self.biological_sex is BiologicalSex.FEMALE:
            return base - 161
        # midpoint of the male and female offsets
        return base - 78

    def recommended_calories(
        self, activity_level: ActivityLevel = ActivityLevel.MODERATE
    ) -> float | None:
        """Daily calorie target for the given activity level."""
        bmr = self.bmr
        if bmr is None:
            return None
        return bmr * activity_level.multiplier
