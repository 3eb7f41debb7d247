"""Pydantic models for HTTP request bodies."""

from datetime import datetime

from pydantic import BaseModel, Field, NonNegativeFloat

from nutritrack.domain.nutrients import NutrientKey


class ConsumptionRequest(BaseModel):
    """Body of ``POST /consumption``."""

    ingredient_id: str | None = None
    quantity: float | None = Field(default=None, ge=0)
    unit: str | None = None
    dish_id: str | None = None
    servings: float | None = Field(default=None, ge=0)
    consumed_at: datetime | None = None


class PhaseRequest(BaseModel):
    """Body of ``POST /health-record/phase``."""

    phase: str


class SessionRequest(BaseModel):
    """Body of ``POST /session``."""

    token: str = Field(min_length=1)


class IngredientRequest(BaseModel):
    """Body of ``POST /ingredients`` and ``PUT /ingredients/{id}``."""

    name: str | None = None
    category: str | None = None
    nutrition_per_100g: dict[NutrientKey, NonNegativeFloat] | None = None


class DishLineRequest(BaseModel):
    """One ingredient line of a dish body."""

    ingredient_id: str
    quantity: NonNegativeFloat
    unit: str = "g"


class DishRequest(BaseModel):
    """Body of ``POST /dishes`` and ``PUT /dishes/{id}``."""

    name: str | None = None
    servings: int | None = Field(default=None, ge=1)
    description: str | None = None
    instructions: str | None = None
    ingredients: list[DishLineRequest] | None = None
