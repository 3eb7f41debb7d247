"""Tests for local cache reconciliation."""

from dataclasses import replace
from datetime import UTC, datetime

import pytest

from nutritrack.domain.catalog import Dish, DishComponent, Ingredient
from nutritrack.domain.consumption import (
    CachedConsumption,
    ConsumptionEvent,
    ConsumptionKind,
)
from nutritrack.domain.errors import LocalMirrorFailure
from nutritrack.domain.nutrients import NutrientKey, NutrientVector

CONSUMED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

TOFU = Ingredient(
    id="tofu",
    name="Tofu",
    category="Protein",
    nutrition_per_100g=NutrientVector({NutrientKey.PROTEIN: 8.0}),
)
RICE = Ingredient(id="rice", name="Rice", category="Grains")
BOWL = Dish(
    id="bowl",
    name="Tofu bowl",
    components=(
        DishComponent(id="l1", ingredient_id="tofu", quantity=100, unit="g"),
        DishComponent(id="l2", ingredient_id="rice", quantity=150, unit="g"),
    ),
)


def _event(event_id: str, **kwargs) -> ConsumptionEvent:  # type: ignore[no-untyped-def]
    kind = ConsumptionKind.DISH if "dish_id" in kwargs else ConsumptionKind.INGREDIENT
    return ConsumptionEvent(id=event_id, kind=kind, consumed_at=CONSUMED_AT, **kwargs)


def test_upsert_twice_keeps_one_record(reconciler) -> None:
    reconciler.upsert(TOFU)
    reconciler.upsert(replace(TOFU, name="Silken tofu"))

    assert [ingredient.name for ingredient in reconciler.ingredients()] == [
        "Silken tofu"
    ]


def test_consumption_links_cached_entities(reconciler) -> None:
    reconciler.upsert(TOFU)
    reconciler.upsert(_event("log-1", ingredient_id="tofu", quantity=50, unit="g"))

    record = reconciler.find("log-1")

    assert isinstance(record, CachedConsumption)
    assert record.ingredient == TOFU
    assert record.dish is None


def test_consumption_without_cached_reference_has_no_link(reconciler) -> None:
    reconciler.upsert(_event("log-1", ingredient_id="tofu", quantity=50, unit="g"))

    record = reconciler.find("log-1")

    assert record.ingredient is None


def test_embedded_snapshots_are_cached(reconciler) -> None:
    embedded_dish = replace(
        BOWL,
        components=tuple(
            replace(component, ingredient=ingredient)
            for component, ingredient in zip(BOWL.components, (TOFU, RICE), strict=True)
        ),
    )
    reconciler.upsert(_event("log-1", dish_id="bowl", servings=1, dish=embedded_dish))

    assert reconciler.find("bowl") is not None
    assert {ingredient.id for ingredient in reconciler.ingredients()} == {
        "tofu",
        "rice",
    }
    assert reconciler.find("log-1").dish == embedded_dish


def test_updating_ingredient_refreshes_consumption_link(reconciler) -> None:
    reconciler.upsert(TOFU)
    reconciler.upsert(_event("log-1", ingredient_id="tofu", quantity=50, unit="g"))

    renamed = replace(TOFU, name="Firm tofu")
    reconciler.upsert(renamed)

    assert reconciler.find("log-1").ingredient == renamed


def test_deleting_ingredient_cascades(reconciler) -> None:
    reconciler.upsert(TOFU)
    reconciler.upsert(RICE)
    reconciler.upsert(BOWL)
    reconciler.upsert(_event("log-1", ingredient_id="tofu", quantity=50, unit="g"))
    reconciler.upsert(_event("log-2", dish_id="bowl", servings=1))

    reconciler.delete("tofu")

    assert reconciler.find("tofu") is None
    assert reconciler.find("log-1") is None
    bowl = reconciler.find("bowl")
    assert [component.ingredient_id for component in bowl.components] == ["rice"]
    assert reconciler.find("log-2").dish == bowl


def test_deleting_dish_removes_its_consumptions(reconciler) -> None:
    reconciler.upsert(BOWL)
    reconciler.upsert(_event("log-1", dish_id="bowl", servings=2))
    reconciler.upsert(TOFU)
    reconciler.upsert(_event("log-2", ingredient_id="tofu", quantity=50, unit="g"))

    reconciler.delete("bowl")

    assert reconciler.find("bowl") is None
    assert reconciler.find("log-1") is None
    assert reconciler.find("log-2") is not None


def test_deleting_unknown_id_is_a_noop(reconciler) -> None:
    reconciler.upsert(TOFU)

    reconciler.delete("missing")

    assert reconciler.ingredients() == [TOFU]


def test_replace_catalog_drops_stale_entries(reconciler) -> None:
    stale = Ingredient(id="lard", name="Lard", category="Fats")
    old_dish = Dish(id="old", name="Old dish")
    reconciler.upsert(stale)
    reconciler.upsert(old_dish)

    reconciler.replace_catalog([TOFU, RICE], [BOWL])

    assert {ingredient.id for ingredient in reconciler.ingredients()} == {
        "tofu",
        "rice",
    }
    assert [dish.id for dish in reconciler.dishes()] == ["bowl"]


def test_replace_catalog_keeps_ingredients_embedded_in_dishes(reconciler) -> None:
    embedded = replace(
        BOWL,
        components=(replace(BOWL.components[0], ingredient=TOFU),),
    )

    reconciler.replace_catalog([], [embedded])

    assert reconciler.find("tofu") == TOFU


def test_upsert_rejects_unknown_types(reconciler) -> None:
    with pytest.raises(TypeError):
        reconciler.upsert("not an entity")


def test_store_failures_surface_as_mirror_failures(reconciler) -> None:
    reconciler.upsert(TOFU)

    def broken(*args) -> None:  # type: ignore[no-untyped-def]
        raise OSError("disk full")

    reconciler.store.put = broken
    reconciler.store.delete = broken

    with pytest.raises(LocalMirrorFailure, match="disk full"):
        reconciler.upsert(RICE)
    with pytest.raises(LocalMirrorFailure, match="tofu"):
        reconciler.delete("tofu")
