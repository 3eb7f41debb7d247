"""Ingredient and dish catalog access."""

import asyncio
import logging
import math
from dataclasses import dataclass, replace

from nutritrack.adapters.remote_store_client import RemoteStore
from nutritrack.domain.catalog import (
    Catalog,
    Dish,
    DishDraft,
    Ingredient,
    IngredientDraft,
)
from nutritrack.domain.errors import LocalMirrorFailure, ValidationError
from nutritrack.services.cache import Cache
from nutritrack.services.reconciler import CacheReconciler

_INGREDIENTS_KEY = "catalog:ingredients"
_DISHES_KEY = "catalog:dishes"

_logger = logging.getLogger(__name__)


@dataclass
class CatalogService:
    """Fetches the authoritative catalog and keeps the local cache in step."""

    remote_store: RemoteStore
    reconciler: CacheReconciler
    cache: Cache
    ttl_seconds: int = 300

    async def ingredients(self) -> list[Ingredient]:
        """Return the ingredient catalog, cached for ``ttl_seconds``."""
        cached = self.cache.get(_INGREDIENTS_KEY)
        if isinstance(cached, list):
            return cached
        ingredients = await self.remote_store.list_ingredients()
        self.cache.set(_INGREDIENTS_KEY, ingredients, ttl_seconds=self.ttl_seconds)
        return ingredients

    async def dishes(self) -> list[Dish]:
        """Return the dish catalog, cached for ``ttl_seconds``."""
        cached = self.cache.get(_DISHES_KEY)
        if isinstance(cached, list):
            return cached
        dishes = await self.remote_store.list_dishes()
        self.cache.set(_DISHES_KEY, dishes, ttl_seconds=self.ttl_seconds)
        return dishes

    async def snapshot(self) -> Catalog:
        """Fetch both catalogs concurrently and index them by id."""
        ingredients, dishes = await asyncio.gather(self.ingredients(), self.dishes())
        return Catalog.from_lists(ingredients, dishes)

    async def reload(self) -> Catalog:
        """Refetch the catalog and rebuild the local cache from it."""
        self.invalidate()
        catalog = await self.snapshot()
        self.reconciler.replace_catalog(
            catalog.ingredients.values(), catalog.dishes.values()
        )
        _logger.info(
            "Catalog reloaded: ingredients=%s dishes=%s",
            len(catalog.ingredients),
            len(catalog.dishes),
        )
        return catalog

    async def get_ingredient(self, ingredient_id: str) -> Ingredient:
        """Fetch one ingredient and refresh its cached copy."""
        ingredient = await self.remote_store.get_ingredient(ingredient_id)
        self._remember(ingredient)
        return ingredient

    async def create_ingredient(self, draft: IngredientDraft) -> Ingredient:
        """Create an ingredient remotely and mirror the stored record."""
        if not draft.name or not draft.name.strip():
            raise ValidationError("Ingredient name is required")
        if not draft.category:
            raise ValidationError("Ingredient category is required")
        ingredient = await self.remote_store.create_ingredient(draft)
        self.invalidate()
        self._remember(ingredient)
        _logger.info("Ingredient %s created", ingredient.id)
        return ingredient

    async def update_ingredient(
        self, ingredient_id: str, draft: IngredientDraft
    ) -> Ingredient:
        """Edit an ingredient remotely and mirror the stored record."""
        if draft.name is not None and not draft.name.strip():
            raise ValidationError("Ingredient name cannot be blank")
        ingredient = await self.remote_store.update_ingredient(ingredient_id, draft)
        self.invalidate()
        self._remember(ingredient)
        return ingredient

    async def get_dish(self, dish_id: str) -> Dish:
        """Fetch one dish and refresh its cached copy."""
        dish = await self.remote_store.get_dish(dish_id)
        self._remember(dish)
        return dish

    async def create_dish(self, draft: DishDraft) -> Dish:
        """Create a dish remotely and mirror the stored record."""
        if not draft.name or not draft.name.strip():
            raise ValidationError("Dish name is required")
        _check_dish_draft(draft)
        dish = await self.remote_store.create_dish(
            replace(draft, servings=draft.servings or 1, lines=draft.lines or ())
        )
        self.invalidate()
        self._remember(dish)
        _logger.info("Dish %s created with %s lines", dish.id, len(dish.components))
        return dish

    async def update_dish(self, dish_id: str, draft: DishDraft) -> Dish:
        """Edit a dish remotely and mirror the stored record."""
        if draft.name is not None and not draft.name.strip():
            raise ValidationError("Dish name cannot be blank")
        _check_dish_draft(draft)
        dish = await self.remote_store.update_dish(dish_id, draft)
        self.invalidate()
        self._remember(dish)
        return dish

    async def delete_ingredient(self, ingredient_id: str) -> None:
        """Delete an ingredient remotely, then cascade the local cache."""
        await self.remote_store.delete_ingredient(ingredient_id)
        self.invalidate()
        self._forget(ingredient_id)

    async def delete_dish(self, dish_id: str) -> None:
        """Delete a dish remotely, then cascade the local cache."""
        await self.remote_store.delete_dish(dish_id)
        self.invalidate()
        self._forget(dish_id)

    def invalidate(self) -> None:
        """Drop cached catalog listings."""
        self.cache.delete(_INGREDIENTS_KEY)
        self.cache.delete(_DISHES_KEY)

    def _forget(self, entity_id: str) -> None:
        try:
            self.reconciler.delete(entity_id)
        except LocalMirrorFailure:
            _logger.exception("Failed to remove %s from local cache", entity_id)

    def _remember(self, entity: Ingredient | Dish) -> None:
        try:
            self.reconciler.upsert(entity)
        except LocalMirrorFailure:
            _logger.exception("Failed to cache %s locally", entity.id)


def _check_dish_draft(draft: DishDraft) -> None:
    if draft.servings is not None and draft.servings < 1:
        raise ValidationError("Dish servings must be at least 1")
    for line in draft.lines or ():
        if not math.isfinite(line.quantity) or line.quantity < 0:
            raise ValidationError(
                f"Invalid quantity for ingredient {line.ingredient_id}: {line.quantity}"
            )
