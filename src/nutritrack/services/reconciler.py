"""Local cache reconciliation for remote entities."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Protocol

from nutritrack.domain.catalog import Dish, Ingredient
from nutritrack.domain.consumption import CachedConsumption, ConsumptionEvent
from nutritrack.domain.errors import LocalMirrorFailure

INGREDIENT = "ingredient"
DISH = "dish"
CONSUMPTION = "consumption"

_logger = logging.getLogger(__name__)


class LocalStore(Protocol):
    """Keyed local persistence for cached records."""

    def get(self, kind: str, record_id: str) -> object | None:
        """Return a record by kind and id."""

    def put(self, kind: str, record_id: str, record: object) -> None:
        """Insert or overwrite a record."""

    def delete(self, kind: str, record_id: str) -> None:
        """Remove a record if present."""

    def list(self, kind: str) -> list[object]:
        """Return every record of a kind."""


@dataclass
class CacheReconciler:
    """Mirror remote entities into the local store by remote identifier."""

    store: LocalStore

    def upsert(self, entity: Ingredient | Dish | ConsumptionEvent) -> None:
        """Insert or overwrite a remote entity, keyed by its id.

        Raises LocalMirrorFailure when the local store rejects the write.
        """
        if isinstance(entity, Ingredient):
            apply = self._upsert_ingredient
        elif isinstance(entity, Dish):
            apply = self._upsert_dish
        elif isinstance(entity, ConsumptionEvent):
            apply = self._upsert_consumption
        else:
            raise TypeError(f"Cannot cache {type(entity).__name__}")
        try:
            apply(entity)
        except Exception as exc:
            raise LocalMirrorFailure(f"Could not cache {entity.id}: {exc}") from exc

    def delete(self, entity_id: str) -> None:
        """Remove a record and every local record that references it.

        Raises LocalMirrorFailure when the local store rejects the removal.
        """
        try:
            if self.store.get(INGREDIENT, entity_id) is not None:
                self._delete_ingredient(entity_id)
            elif self.store.get(DISH, entity_id) is not None:
                self._delete_dish(entity_id)
            elif self.store.get(CONSUMPTION, entity_id) is not None:
                self.store.delete(CONSUMPTION, entity_id)
        except Exception as exc:
            raise LocalMirrorFailure(f"Could not remove {entity_id}: {exc}") from exc

    def find(self, entity_id: str) -> Ingredient | Dish | CachedConsumption | None:
        """Return the cached record for an id, whatever its kind."""
        for kind in (INGREDIENT, DISH, CONSUMPTION):
            record = self.store.get(kind, entity_id)
            if record is not None:
                return record
        return None

    def ingredients(self) -> list[Ingredient]:
        """Return cached ingredients."""
        return list(self.store.list(INGREDIENT))

    def dishes(self) -> list[Dish]:
        """Return cached dishes."""
        return list(self.store.list(DISH))

    def consumptions(self) -> list[CachedConsumption]:
        """Return cached consumption records."""
        return list(self.store.list(CONSUMPTION))

    def replace_catalog(
        self, ingredients: Iterable[Ingredient], dishes: Iterable[Dish]
    ) -> None:
        """Apply a full catalog listing and drop entries it no longer contains."""
        ingredients = list(ingredients)
        dishes = list(dishes)
        for ingredient in ingredients:
            self._upsert_ingredient(ingredient)
        for dish in dishes:
            self._upsert_dish(dish)

        live_dishes = {dish.id for dish in dishes}
        for cached in self.dishes():
            if cached.id not in live_dishes:
                self._delete_dish(cached.id)
        live_ingredients = {ingredient.id for ingredient in ingredients}
        live_ingredients.update(
            component.ingredient_id
            for dish in dishes
            for component in dish.components
            if component.ingredient is not None
        )
        for cached in self.ingredients():
            if cached.id not in live_ingredients:
                self._delete_ingredient(cached.id)

    def _upsert_ingredient(self, ingredient: Ingredient) -> None:
        self.store.put(INGREDIENT, ingredient.id, ingredient)
        for record in self.consumptions():
            if record.event.ingredient_id == ingredient.id:
                self.store.put(
                    CONSUMPTION, record.event.id, replace(record, ingredient=ingredient)
                )

    def _upsert_dish(self, dish: Dish) -> None:
        for component in dish.components:
            if component.ingredient is not None:
                self._upsert_ingredient(component.ingredient)
        self._store_dish(dish)

    def _store_dish(self, dish: Dish) -> None:
        self.store.put(DISH, dish.id, dish)
        for record in self.consumptions():
            if record.event.dish_id == dish.id:
                self.store.put(CONSUMPTION, record.event.id, replace(record, dish=dish))

    def _upsert_consumption(self, event: ConsumptionEvent) -> None:
        if event.ingredient is not None:
            self._upsert_ingredient(event.ingredient)
        if event.dish is not None:
            self._upsert_dish(event.dish)
        ingredient = (
            self.store.get(INGREDIENT, event.ingredient_id)
            if event.ingredient_id
            else None
        )
        dish = self.store.get(DISH, event.dish_id) if event.dish_id else None
        if event.ingredient_id and ingredient is None:
            _logger.info("Consumption %s cached without ingredient link", event.id)
        if event.dish_id and dish is None:
            _logger.info("Consumption %s cached without dish link", event.id)
        self.store.put(
            CONSUMPTION,
            event.id,
            CachedConsumption(event=event, ingredient=ingredient, dish=dish),
        )

    def _delete_ingredient(self, ingredient_id: str) -> None:
        for dish in self.dishes():
            remaining = tuple(
                component
                for component in dish.components
                if component.ingredient_id != ingredient_id
            )
            if len(remaining) != len(dish.components):
                self._store_dish(replace(dish, components=remaining))
        for record in self.consumptions():
            if record.event.ingredient_id == ingredient_id:
                self.store.delete(CONSUMPTION, record.event.id)
        self.store.delete(INGREDIENT, ingredient_id)

    def _delete_dish(self, dish_id: str) -> None:
        for record in self.consumptions():
            if record.event.dish_id == dish_id:
                self.store.delete(CONSUMPTION, record.event.id)
        self.store.delete(DISH, dish_id)
