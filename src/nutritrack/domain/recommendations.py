"""Domain models for dish recommendations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DishSnapshotIngredient:
    """Ingredient line shown with a recommended dish."""

    ingredient_id: str
    name: str
    category: str | None
    quantity: float
    unit: str


@dataclass(frozen=True)
class DishSnapshot:
    """Read-only view of a recommended dish."""

    id: str
    name: str
    description: str | None
    instructions: str | None
    ingredients: list[DishSnapshotIngredient]


@dataclass(frozen=True)
class RecommendationItem:
    """Normalized recommendation entry."""

    dish: DishSnapshot
    freshness_score: float
    explanation: str
