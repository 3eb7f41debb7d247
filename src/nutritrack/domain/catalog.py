"""Domain models for the ingredient and dish catalog."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from nutritrack.domain.nutrients import NutrientVector


@dataclass(frozen=True)
class Ingredient:
    """Raw ingredient with nutrition expressed per 100 grams."""

    id: str
    name: str
    category: str
    nutrition_per_100g: NutrientVector | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class DishComponent:
    """One composition line of a dish, quantities per single serving."""

    id: str
    ingredient_id: str
    quantity: float
    unit: str
    ingredient: Ingredient | None = None


@dataclass(frozen=True)
class Dish:
    """Composite dish made of ingredient lines."""

    id: str
    name: str
    servings: int = 1
    description: str | None = None
    instructions: str | None = None
    components: tuple[DishComponent, ...] = ()
    user_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Catalog:
    """Ingredients and dishes keyed by identifier."""

    ingredients: dict[str, Ingredient] = field(default_factory=dict)
    dishes: dict[str, Dish] = field(default_factory=dict)

    @classmethod
    def from_lists(
        cls, ingredients: Iterable[Ingredient], dishes: Iterable[Dish]
    ) -> "Catalog":
        """Index ingredient and dish lists by id."""
        return cls(
            ingredients={item.id: item for item in ingredients},
            dishes={dish.id: dish for dish in dishes},
        )

    def merged_with(
        self,
        ingredients: Iterable[Ingredient] = (),
        dishes: Iterable[Dish] = (),
    ) -> "Catalog":
        """Return a copy with extra entities layered over the existing ones."""
        merged_ingredients = dict(self.ingredients)
        merged_dishes = dict(self.dishes)
        for ingredient in ingredients:
            merged_ingredients[ingredient.id] = ingredient
        for dish in dishes:
            merged_dishes[dish.id] = dish
        return Catalog(ingredients=merged_ingredients, dishes=merged_dishes)


@dataclass(frozen=True)
class IngredientDraft:
    """Fields sent when creating or editing an ingredient.

    On edits, a field left as None is not sent and keeps its remote value.
    """

    name: str | None = None
    category: str | None = None
    nutrition_per_100g: NutrientVector | None = None


@dataclass(frozen=True)
class DishLineDraft:
    """Ingredient line of a dish being created or edited."""

    ingredient_id: str
    quantity: float
    unit: str = "g"


@dataclass(frozen=True)
class DishDraft:
    """Fields sent when creating or editing a dish.

    ``lines`` replaces the whole composition when given.
    """

    name: str | None = None
    servings: int | None = None
    description: str | None = None
    instructions: str | None = None
    lines: tuple[DishLineDraft, ...] | None = None
