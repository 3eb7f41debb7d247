"""Domain models for consumption logging."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from nutritrack.domain.catalog import Dish, Ingredient
from nutritrack.domain.errors import ValidationError
from nutritrack.domain.nutrients import NutrientVector


class ConsumptionKind(StrEnum):
    """What a consumption event refers to."""

    INGREDIENT = "ingredient"
    DISH = "dish"


class DataQuality(StrEnum):
    """Whether every reference could be resolved to nutrition data."""

    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class NewConsumption:
    """A consumption the user wants to log, before the remote write."""

    consumed_at: datetime
    ingredient_id: str | None = None
    quantity: float | None = None
    unit: str | None = None
    dish_id: str | None = None
    servings: float | None = None

    @property
    def kind(self) -> ConsumptionKind:
        """Return the referenced entity kind."""
        if self.dish_id:
            return ConsumptionKind.DISH
        return ConsumptionKind.INGREDIENT

    @property
    def item_id(self) -> str:
        """Return the referenced ingredient or dish id."""
        return str(self.dish_id or self.ingredient_id)

    def validate(self) -> None:
        """Raise ValidationError unless exactly one reference is well formed."""
        has_ingredient = bool(self.ingredient_id)
        has_dish = bool(self.dish_id)
        if has_ingredient == has_dish:
            raise ValidationError(
                "A consumption must reference exactly one ingredient or dish"
            )
        if has_ingredient:
            _require_amount(self.quantity, "quantity")
            if self.servings is not None:
                raise ValidationError("Ingredient consumption cannot carry servings")
        else:
            _require_amount(self.servings, "servings")
            if self.quantity is not None:
                raise ValidationError("Dish consumption cannot carry a quantity")


@dataclass(frozen=True)
class ConsumptionEvent:
    """Canonical consumption event as persisted by the remote store."""

    id: str
    kind: ConsumptionKind
    consumed_at: datetime
    created_at: datetime | None = None
    user_id: str | None = None
    ingredient_id: str | None = None
    quantity: float | None = None
    unit: str | None = None
    dish_id: str | None = None
    servings: float | None = None
    ingredient: Ingredient | None = None
    dish: Dish | None = None

    def embedded_entities(self) -> tuple[list[Ingredient], list[Dish]]:
        """Return the ingredient and dish snapshots carried by the event."""
        ingredients: list[Ingredient] = []
        dishes: list[Dish] = []
        if self.ingredient is not None:
            ingredients.append(self.ingredient)
        if self.dish is not None:
            dishes.append(self.dish)
            ingredients.extend(
                component.ingredient
                for component in self.dish.components
                if component.ingredient is not None
            )
        return ingredients, dishes


@dataclass(frozen=True)
class CachedConsumption:
    """Local mirror of a consumption event with resolved back-references."""

    event: ConsumptionEvent
    ingredient: Ingredient | None = None
    dish: Dish | None = None


@dataclass(frozen=True)
class ResolvedNutrition:
    """Nutrition computed for a consumption event."""

    vector: NutrientVector
    data_quality: DataQuality = DataQuality.COMPLETE
    unresolved: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        """True when every reference contributed nutrition data."""
        return self.data_quality is DataQuality.COMPLETE


@dataclass(frozen=True)
class PropagationWarning:
    """Non-fatal failure of a best-effort propagation step."""

    kind: str
    message: str


@dataclass(frozen=True)
class LogResult:
    """Outcome of logging a consumption event."""

    event: ConsumptionEvent
    nutrition: ResolvedNutrition | None
    warnings: list[PropagationWarning] = field(default_factory=list)

    @property
    def data_quality(self) -> DataQuality | None:
        """Data quality of the resolved nutrition, if it was resolved."""
        if self.nutrition is None:
            return None
        return self.nutrition.data_quality


def _require_amount(value: float | None, name: str) -> None:
    if value is None:
        raise ValidationError(f"Missing {name}")
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"Invalid {name}: {value!r}")
