"""Nutrition resolution for consumption events."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from nutritrack.domain.catalog import Dish, Ingredient
from nutritrack.domain.consumption import (
    ConsumptionEvent,
    ConsumptionKind,
    DataQuality,
    ResolvedNutrition,
)
from nutritrack.domain.nutrients import NutrientVector, add, scale

_GRAMS_PER_UNIT = {
    "g": 1.0,
    "gram": 1.0,
    "grams": 1.0,
    "kg": 1000.0,
    "mg": 0.001,
    # liquids are taken at water density
    "ml": 1.0,
    "l": 1000.0,
}

_logger = logging.getLogger(__name__)


def to_grams(quantity: float, unit: str | None) -> float | None:
    """Convert a quantity to grams, or None when the unit has no fixed mass."""
    if unit is None or not unit.strip():
        return quantity
    factor = _GRAMS_PER_UNIT.get(unit.strip().lower())
    if factor is None:
        return None
    return quantity * factor


@dataclass
class CompositionResolver:
    """Resolve consumption events to nutrient vectors using catalog data."""

    def resolve(
        self,
        event: ConsumptionEvent,
        ingredient_catalog: Mapping[str, Ingredient],
        dish_catalog: Mapping[str, Dish],
    ) -> ResolvedNutrition:
        """Compute the nutrition consumed by ``event``.

        Ingredient events scale the per-100 g vector by the consumed grams.
        Dish events sum every composition line (quantities are per serving)
        and then scale the sum by the number of servings eaten. Unknown
        references contribute nothing and mark the result incomplete.
        """
        if event.kind is ConsumptionKind.DISH:
            return self._resolve_dish(event, ingredient_catalog, dish_catalog)
        return self._resolve_ingredient(event, ingredient_catalog)

    def _resolve_ingredient(
        self, event: ConsumptionEvent, ingredient_catalog: Mapping[str, Ingredient]
    ) -> ResolvedNutrition:
        ingredient_id = str(event.ingredient_id)
        contribution = _portion(
            ingredient_catalog.get(ingredient_id), event.quantity or 0.0, event.unit
        )
        if contribution is None:
            return ResolvedNutrition(
                vector=NutrientVector.empty(),
                data_quality=DataQuality.INCOMPLETE,
                unresolved=(ingredient_id,),
            )
        return ResolvedNutrition(vector=contribution)

    def _resolve_dish(
        self,
        event: ConsumptionEvent,
        ingredient_catalog: Mapping[str, Ingredient],
        dish_catalog: Mapping[str, Dish],
    ) -> ResolvedNutrition:
        dish_id = str(event.dish_id)
        dish = dish_catalog.get(dish_id)
        if dish is None:
            _logger.warning("Dish %s not found in catalog", dish_id)
            return ResolvedNutrition(
                vector=NutrientVector.empty(),
                data_quality=DataQuality.INCOMPLETE,
                unresolved=(dish_id,),
            )

        per_serving = NutrientVector.empty()
        unresolved: list[str] = []
        for component in dish.components:
            contribution = _portion(
                ingredient_catalog.get(component.ingredient_id),
                component.quantity,
                component.unit,
            )
            if contribution is None:
                unresolved.append(component.ingredient_id)
                continue
            per_serving = add(per_serving, contribution)

        if unresolved:
            _logger.info(
                "Dish %s resolved with %s unresolved ingredient(s)",
                dish_id,
                len(unresolved),
            )
        return ResolvedNutrition(
            vector=scale(per_serving, event.servings or 0.0),
            data_quality=(
                DataQuality.INCOMPLETE if unresolved else DataQuality.COMPLETE
            ),
            unresolved=tuple(unresolved),
        )


def _portion(
    ingredient: Ingredient | None, quantity: float, unit: str | None
) -> NutrientVector | None:
    """Nutrition for a quantity of an ingredient, None when it can't be known."""
    if ingredient is None or ingredient.nutrition_per_100g is None:
        return None
    grams = to_grams(quantity, unit)
    if grams is None:
        return None
    return scale(ingredient.nutrition_per_100g, grams / 100.0)
