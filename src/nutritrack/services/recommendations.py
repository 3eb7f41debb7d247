"""Dish recommendation feed normalization."""

import logging
from dataclasses import dataclass
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PayloadValidationError

from nutritrack.adapters.remote_store_client import RemoteStore
from nutritrack.domain.recommendations import (
    DishSnapshot,
    DishSnapshotIngredient,
    RecommendationItem,
)

_LIST_KEYS = ("recommendations", "data", "items")

_logger = logging.getLogger(__name__)


class _FeedModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        coerce_numbers_to_str=True,
        allow_inf_nan=False,
    )


class FeedIngredientDetail(_FeedModel):
    """Ingredient summary nested in feed payloads."""

    id: str
    name: str
    category: str | None = None


class EnvelopeDishLine(_FeedModel):
    """Composition line of a dish inside an envelope entry."""

    ingredient_id: str = Field(alias="ingredientId")
    quantity: float
    unit: str
    ingredient: FeedIngredientDetail | None = None


class EnvelopeDish(_FeedModel):
    """Dish as returned inside an envelope entry."""

    id: str
    name: str
    description: str | None = None
    instructions: str | None = None
    ingredients: list[EnvelopeDishLine] = []


class EnvelopeRecommendation(_FeedModel):
    """Recommendation shape ``{dish, score, explanation}``."""

    dish: EnvelopeDish
    score: float
    explanation: str = ""

    def to_item(self) -> RecommendationItem:
        """Convert to the internal recommendation shape."""
        return RecommendationItem(
            dish=DishSnapshot(
                id=self.dish.id,
                name=self.dish.name,
                description=self.dish.description,
                instructions=self.dish.instructions,
                ingredients=[
                    DishSnapshotIngredient(
                        ingredient_id=line.ingredient_id,
                        name=line.ingredient.name if line.ingredient else "",
                        category=line.ingredient.category if line.ingredient else None,
                        quantity=line.quantity,
                        unit=line.unit,
                    )
                    for line in self.dish.ingredients
                ],
            ),
            freshness_score=_clamp(self.score),
            explanation=self.explanation,
        )


class FlatDishLine(_FeedModel):
    """Composition line of a flattened recommendation."""

    ingredient: FeedIngredientDetail
    quantity: float
    unit: str


class FlatRecommendation(_FeedModel):
    """Recommendation shape with score fields flattened onto the dish."""

    id: str
    name: str
    description: str | None = None
    instructions: str | None = None
    dish_ingredients: list[FlatDishLine] = Field(default=[], alias="dishIngredients")
    freshness_score: float = Field(alias="freshnessScore")
    reason: str = ""

    def to_item(self) -> RecommendationItem:
        """Convert to the internal recommendation shape."""
        return RecommendationItem(
            dish=DishSnapshot(
                id=self.id,
                name=self.name,
                description=self.description,
                instructions=self.instructions,
                ingredients=[
                    DishSnapshotIngredient(
                        ingredient_id=line.ingredient.id,
                        name=line.ingredient.name,
                        category=line.ingredient.category,
                        quantity=line.quantity,
                        unit=line.unit,
                    )
                    for line in self.dish_ingredients
                ],
            ),
            freshness_score=_clamp(self.freshness_score),
            explanation=self.reason,
        )


FeedEntry = Annotated[
    EnvelopeRecommendation | FlatRecommendation,
    Field(union_mode="left_to_right"),
]

_ENTRY_ADAPTER: TypeAdapter[EnvelopeRecommendation | FlatRecommendation] = (
    TypeAdapter(FeedEntry)
)


def normalize(raw_payload: object) -> list[RecommendationItem]:
    """Decode a recommendation payload of any known shape.

    Each entry is tried as an envelope first and as a flattened dish second.
    Entries matching neither shape are skipped.
    """
    items: list[RecommendationItem] = []
    for index, entry in enumerate(_entries(raw_payload)):
        try:
            decoded = _ENTRY_ADAPTER.validate_python(entry)
        except PayloadValidationError as exc:
            _logger.warning(
                "Skipping recommendation %s: %s error(s)", index, exc.error_count()
            )
            continue
        items.append(decoded.to_item())
    return items


@dataclass
class RecommendationService:
    """Fetches and normalizes dish recommendations."""

    remote_store: RemoteStore
    default_window_days: int = 7
    default_limit: int = 10

    async def fetch(
        self, window_days: int | None = None, limit: int | None = None
    ) -> list[RecommendationItem]:
        """Return normalized recommendations for a trailing window."""
        payload = await self.remote_store.fetch_recommendations(
            window_days or self.default_window_days,
            limit or self.default_limit,
        )
        return normalize(payload)


def _entries(raw_payload: object) -> list[object]:
    if isinstance(raw_payload, list):
        return raw_payload
    if isinstance(raw_payload, dict):
        for key in _LIST_KEYS:
            value = raw_payload.get(key)
            if isinstance(value, list):
                return value
    _logger.warning("Unrecognized recommendation payload: %s", type(raw_payload))
    return []


def _clamp(score: float) -> float:
    return min(max(score, 0.0), 1.0)
