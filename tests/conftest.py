"""Shared test fixtures."""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime

import pytest

from nutritrack.adapters.health_store_client import HealthStore
from nutritrack.adapters.memory_local_store import InMemoryLocalStore
from nutritrack.adapters.remote_store_client import RemoteStore
from nutritrack.config import Settings
from nutritrack.containers import AppContainer
from nutritrack.domain.catalog import (
    Dish,
    DishComponent,
    DishDraft,
    DishLineDraft,
    Ingredient,
    IngredientDraft,
)
from nutritrack.domain.consumption import (
    ConsumptionEvent,
    NewConsumption,
)
from nutritrack.domain.errors import HealthWriteFailure, ValidationError
from nutritrack.domain.nutrients import NutrientKey, NutrientVector
from nutritrack.domain.phases import PhaseState
from nutritrack.services.cache import InMemoryCache
from nutritrack.services.catalog import CatalogService
from nutritrack.services.phases import HealthAuthorizationService, PhaseRepository
from nutritrack.services.profile import HealthProfileService
from nutritrack.services.propagation import ConsumptionLogService
from nutritrack.services.reconciler import CacheReconciler
from nutritrack.services.recommendations import RecommendationService
from nutritrack.services.resolver import CompositionResolver
from nutritrack.services.sessions import AuthSession
from nutritrack.services.stats import NutritionSummaryService

OATS = Ingredient(
    id="ing-oats",
    name="Oats",
    category="Grains",
    nutrition_per_100g=NutrientVector(
        {
            NutrientKey.ENERGY: 380.0,
            NutrientKey.PROTEIN: 13.0,
            NutrientKey.CARBS: 67.0,
            NutrientKey.FAT: 7.0,
            NutrientKey.FIBER: 10.0,
            NutrientKey.IRON: 0.004,
        }
    ),
)
MILK = Ingredient(
    id="ing-milk",
    name="Milk",
    category="Dairy",
    nutrition_per_100g=NutrientVector(
        {
            NutrientKey.ENERGY: 60.0,
            NutrientKey.PROTEIN: 3.2,
            NutrientKey.FAT: 3.3,
            NutrientKey.CALCIUM: 0.12,
        }
    ),
)
PORRIDGE = Dish(
    id="dish-porridge",
    name="Porridge",
    components=(
        DishComponent(id="line-1", ingredient_id=OATS.id, quantity=50, unit="g"),
        DishComponent(id="line-2", ingredient_id=MILK.id, quantity=200, unit="ml"),
    ),
)


@dataclass
class FakeRemoteStore(RemoteStore):
    """In-memory remote store that records calls."""

    ingredients: list[Ingredient] = field(default_factory=lambda: [OATS, MILK])
    dishes: list[Dish] = field(default_factory=lambda: [PORRIDGE])
    events: list[ConsumptionEvent] = field(default_factory=list)
    recommendations: object = field(default_factory=list)
    fail_with: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def create_consumption_event(
        self, request: NewConsumption
    ) -> ConsumptionEvent:
        self.calls.append("create_consumption_event")
        if self.fail_with:
            raise self.fail_with
        event = ConsumptionEvent(
            id=f"log-{len(self.events) + 1}",
            kind=request.kind,
            consumed_at=request.consumed_at,
            created_at=datetime.now(tz=UTC),
            ingredient_id=request.ingredient_id,
            quantity=request.quantity,
            unit=request.unit,
            dish_id=request.dish_id,
            servings=request.servings,
        )
        self.events.append(event)
        return event

    async def list_consumption_events(
        self, days: int = 7, start: date | None = None, end: date | None = None
    ) -> list[ConsumptionEvent]:
        if start is not None and end is not None:
            self.calls.append(f"list_consumption_events:{start}:{end}")
            return [
                event
                for event in self.events
                if start <= event.consumed_at.date() <= end
            ]
        self.calls.append("list_consumption_events")
        return list(self.events)

    async def delete_consumption_event(self, event_id: str) -> None:
        self.calls.append("delete_consumption_event")
        if self.fail_with:
            raise self.fail_with
        self.events = [event for event in self.events if event.id != event_id]

    async def list_ingredients(self) -> list[Ingredient]:
        self.calls.append("list_ingredients")
        return list(self.ingredients)

    async def get_ingredient(self, ingredient_id: str) -> Ingredient:
        self.calls.append(f"get_ingredient:{ingredient_id}")
        for ingredient in self.ingredients:
            if ingredient.id == ingredient_id:
                return ingredient
        raise ValidationError(f"Ingredient {ingredient_id} not found")

    async def create_ingredient(self, draft: IngredientDraft) -> Ingredient:
        self.calls.append("create_ingredient")
        if self.fail_with:
            raise self.fail_with
        ingredient = Ingredient(
            id=f"ing-{len(self.ingredients) + 1}",
            name=draft.name or "",
            category=draft.category or "Other",
            nutrition_per_100g=draft.nutrition_per_100g,
        )
        self.ingredients.append(ingredient)
        return ingredient

    async def update_ingredient(
        self, ingredient_id: str, draft: IngredientDraft
    ) -> Ingredient:
        self.calls.append(f"update_ingredient:{ingredient_id}")
        current = await self.get_ingredient(ingredient_id)
        updated = replace(
            current,
            name=draft.name if draft.name is not None else current.name,
            category=draft.category if draft.category is not None else current.category,
            nutrition_per_100g=draft.nutrition_per_100g or current.nutrition_per_100g,
        )
        self.ingredients = [
            updated if ingredient.id == ingredient_id else ingredient
            for ingredient in self.ingredients
        ]
        return updated

    async def list_dishes(self) -> list[Dish]:
        self.calls.append("list_dishes")
        return list(self.dishes)

    async def get_dish(self, dish_id: str) -> Dish:
        self.calls.append(f"get_dish:{dish_id}")
        for dish in self.dishes:
            if dish.id == dish_id:
                return dish
        raise ValidationError(f"Dish {dish_id} not found")

    async def create_dish(self, draft: DishDraft) -> Dish:
        self.calls.append("create_dish")
        if self.fail_with:
            raise self.fail_with
        dish_id = f"dish-{len(self.dishes) + 1}"
        dish = Dish(
            id=dish_id,
            name=draft.name or "",
            servings=draft.servings or 1,
            description=draft.description,
            instructions=draft.instructions,
            components=_components(dish_id, draft.lines or ()),
        )
        self.dishes.append(dish)
        return dish

    async def update_dish(self, dish_id: str, draft: DishDraft) -> Dish:
        self.calls.append(f"update_dish:{dish_id}")
        current = await self.get_dish(dish_id)
        updated = replace(
            current,
            name=draft.name if draft.name is not None else current.name,
            servings=draft.servings or current.servings,
            components=_components(dish_id, draft.lines)
            if draft.lines is not None
            else current.components,
        )
        self.dishes = [updated if dish.id == dish_id else dish for dish in self.dishes]
        return updated

    async def delete_ingredient(self, ingredient_id: str) -> None:
        self.calls.append("delete_ingredient")
        self.ingredients = [i for i in self.ingredients if i.id != ingredient_id]

    async def delete_dish(self, dish_id: str) -> None:
        self.calls.append("delete_dish")
        self.dishes = [dish for dish in self.dishes if dish.id != dish_id]

    async def fetch_recommendations(self, window_days: int, limit: int) -> object:
        self.calls.append(f"fetch_recommendations:{window_days}:{limit}")
        return self.recommendations


def _components(
    dish_id: str, lines: Iterable[DishLineDraft]
) -> tuple[DishComponent, ...]:
    return tuple(
        DishComponent(
            id=f"{dish_id}-line-{index}",
            ingredient_id=line.ingredient_id,
            quantity=line.quantity,
            unit=line.unit,
        )
        for index, line in enumerate(lines, start=1)
    )


@dataclass
class FakeHealthStore(HealthStore):
    """Health store that records authorizations and writes."""

    grant: bool = True
    fail_writes: bool = False
    authorized: list[frozenset[NutrientKey]] = field(default_factory=list)
    writes: list[tuple[NutrientVector, datetime]] = field(default_factory=list)
    profile: dict[str, object] = field(default_factory=dict)
    fail_reads_with: Exception | None = None

    async def authorize(self, keys: Iterable[NutrientKey]) -> bool:
        self.authorized.append(frozenset(keys))
        return self.grant

    async def write(self, vector: NutrientVector, timestamp: datetime) -> None:
        if self.fail_writes:
            raise HealthWriteFailure("health store unavailable")
        self.writes.append((vector, timestamp))

    async def read_latest(self, field: str) -> object | None:
        if self.fail_reads_with:
            raise self.fail_reads_with
        return self.profile.get(field)

    async def close(self) -> None:
        return None


@dataclass
class InMemoryPhaseRepository(PhaseRepository):
    """In-memory phase repository for tests."""

    states: dict[str, PhaseState] = field(default_factory=dict)

    def get_state(self, profile_id: str) -> PhaseState:
        return self.states.get(profile_id, PhaseState())

    def save_state(self, profile_id: str, state: PhaseState) -> None:
        self.states[profile_id] = state


@pytest.fixture
def settings() -> Settings:
    return Settings(
        remote_api_base_url="https://remote.example.com/v1",
        remote_api_token="remote-token",
        health_store_base_url="https://health.example.com",
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
    )


@pytest.fixture
def remote_store() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def health_store() -> FakeHealthStore:
    return FakeHealthStore()


@pytest.fixture
def phase_repository() -> InMemoryPhaseRepository:
    return InMemoryPhaseRepository()


@pytest.fixture
def session() -> AuthSession:
    return AuthSession(token="remote-token")


@pytest.fixture
def reconciler() -> CacheReconciler:
    return CacheReconciler(InMemoryLocalStore())


@pytest.fixture
def catalog_service(
    remote_store: FakeRemoteStore, reconciler: CacheReconciler
) -> CatalogService:
    return CatalogService(
        remote_store=remote_store, reconciler=reconciler, cache=InMemoryCache()
    )


@pytest.fixture
def authorization_service(
    phase_repository: InMemoryPhaseRepository, health_store: FakeHealthStore
) -> HealthAuthorizationService:
    return HealthAuthorizationService(
        repository=phase_repository,
        health_store=health_store,
        profile_id="default",
    )


@pytest.fixture
def consumption_log_service(  # noqa: PLR0913
    remote_store: FakeRemoteStore,
    reconciler: CacheReconciler,
    catalog_service: CatalogService,
    authorization_service: HealthAuthorizationService,
    health_store: FakeHealthStore,
    session: AuthSession,
) -> ConsumptionLogService:
    return ConsumptionLogService(
        remote_store=remote_store,
        reconciler=reconciler,
        catalog_service=catalog_service,
        resolver=CompositionResolver(),
        authorization_service=authorization_service,
        health_store=health_store,
        session=session,
    )


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    session: AuthSession,
    remote_store: FakeRemoteStore,
    health_store: FakeHealthStore,
    reconciler: CacheReconciler,
    catalog_service: CatalogService,
    authorization_service: HealthAuthorizationService,
    consumption_log_service: ConsumptionLogService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session=session,
        remote_store=remote_store,
        health_store=health_store,
        reconciler=reconciler,
        catalog_service=catalog_service,
        authorization_service=authorization_service,
        consumption_log_service=consumption_log_service,
        recommendation_service=RecommendationService(remote_store=remote_store),
        summary_service=NutritionSummaryService(
            remote_store=remote_store,
            catalog_service=catalog_service,
            resolver=CompositionResolver(),
        ),
        profile_service=HealthProfileService(
            health_store=health_store,
            authorization_service=authorization_service,
        ),
        close_resources=close_resources,
    )
