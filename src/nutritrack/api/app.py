"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from nutritrack.api.models import (
    ConsumptionRequest,
    DishRequest,
    IngredientRequest,
    PhaseRequest,
    SessionRequest,
)
from nutritrack.app_logging import configure_logging
from nutritrack.containers import AppContainer
from nutritrack.domain.catalog import (
    Dish,
    DishDraft,
    DishLineDraft,
    Ingredient,
    IngredientDraft,
)
from nutritrack.domain.consumption import ConsumptionEvent, LogResult, NewConsumption
from nutritrack.domain.errors import (
    AuthExpired,
    CommittedResponseUnreadable,
    HealthAuthorizationDenied,
    HealthStoreUnavailable,
    PhaseTransitionError,
    RemoteUnavailable,
    ValidationError,
)
from nutritrack.domain.nutrients import NutrientVector
from nutritrack.domain.phases import PhaseState, parse_phase
from nutritrack.domain.profile import ActivityLevel
from nutritrack.domain.recommendations import RecommendationItem
from nutritrack.domain.stats import DailyTotals, PeriodSummary

_ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AuthExpired: status.HTTP_401_UNAUTHORIZED,
    RemoteUnavailable: status.HTTP_502_BAD_GATEWAY,
    CommittedResponseUnreadable: status.HTTP_502_BAD_GATEWAY,
    HealthStoreUnavailable: status.HTTP_502_BAD_GATEWAY,
    PhaseTransitionError: status.HTTP_409_CONFLICT,
    HealthAuthorizationDenied: status.HTTP_403_FORBIDDEN,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    async def handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
        if isinstance(exc, AuthExpired):
            request.app.state.container.session.invalidate()
        status_code = _ERROR_STATUS[type(exc)]
        logger.info("Request failed with %s: %s", type(exc).__name__, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "message": str(exc)},
        )

    for error_type in _ERROR_STATUS:
        app.add_exception_handler(error_type, handle_domain_error)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/session")
    async def get_session(request: Request) -> dict[str, bool]:
        """Report whether a remote credential is held."""
        state_container: AppContainer = request.app.state.container
        return {"active": state_container.session.is_active}

    @app.post("/session")
    async def sign_in(body: SessionRequest, request: Request) -> dict[str, bool]:
        """Install a fresh bearer token after the client has signed in."""
        state_container: AppContainer = request.app.state.container
        state_container.session.sign_in(body.token)
        return {"active": state_container.session.is_active}

    @app.post("/consumption", status_code=status.HTTP_201_CREATED)
    async def log_consumption(
        body: ConsumptionRequest, request: Request
    ) -> dict[str, object]:
        """Log a consumption event and propagate it."""
        state_container: AppContainer = request.app.state.container
        consumed_at = body.consumed_at or datetime.now(tz=UTC)
        if consumed_at.tzinfo is None:
            consumed_at = consumed_at.replace(tzinfo=UTC)
        result = await state_container.consumption_log_service.log_consumption(
            NewConsumption(
                consumed_at=consumed_at,
                ingredient_id=body.ingredient_id,
                quantity=body.quantity,
                unit=body.unit,
                dish_id=body.dish_id,
                servings=body.servings,
            )
        )
        return _format_log_result(result)

    @app.delete("/consumption/{event_id}")
    async def delete_consumption(event_id: str, request: Request) -> dict[str, object]:
        """Delete a consumption event."""
        state_container: AppContainer = request.app.state.container
        warnings = await state_container.consumption_log_service.delete_consumption(
            event_id
        )
        return {
            "deleted": event_id,
            "warnings": [
                {"kind": warning.kind, "message": warning.message}
                for warning in warnings
            ],
        }

    @app.get("/consumption")
    async def consumption_history(
        request: Request,
        days: int = 7,
        start: date | None = None,
        end: date | None = None,
    ) -> dict[str, object]:
        """List logged consumption for a date range or the last ``days`` days."""
        state_container: AppContainer = request.app.state.container
        events = await state_container.consumption_log_service.history(
            days=days, start=start, end=end
        )
        return {"consumption": [_format_event(event) for event in events]}

    @app.get("/summary/today")
    async def summary_today(request: Request) -> dict[str, object]:
        """Return today's nutrition totals."""
        state_container: AppContainer = request.app.state.container
        totals = await state_container.summary_service.get_today(
            state_container.settings.timezone
        )
        return _format_daily(totals)

    @app.get("/summary/week")
    async def summary_week(request: Request) -> dict[str, object]:
        """Return the last seven days of totals."""
        state_container: AppContainer = request.app.state.container
        summary = await state_container.summary_service.get_week(
            state_container.settings.timezone
        )
        return _format_period(summary)

    @app.get("/recommendations")
    async def recommendations(
        request: Request, days: int | None = None, limit: int | None = None
    ) -> dict[str, object]:
        """Return normalized dish recommendations."""
        state_container: AppContainer = request.app.state.container
        items = await state_container.recommendation_service.fetch(days, limit)
        return {"recommendations": [_format_recommendation(item) for item in items]}

    @app.get("/health-record/phase")
    async def get_phase(request: Request) -> dict[str, object]:
        """Return the granted health-record phase."""
        state_container: AppContainer = request.app.state.container
        return _format_phase(state_container.authorization_service.current_state())

    @app.post("/health-record/phase")
    async def request_phase(body: PhaseRequest, request: Request) -> dict[str, object]:
        """Request the scopes of the next health-record phase."""
        state_container: AppContainer = request.app.state.container
        try:
            target = parse_phase(body.phase)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc
        state = await state_container.authorization_service.request_phase(target)
        return _format_phase(state)

    @app.get("/health-record/suggestion")
    async def get_suggestion(request: Request) -> dict[str, object]:
        """Return whether the next phase should be suggested."""
        state_container: AppContainer = request.app.state.container
        service = state_container.authorization_service
        state = service.current_state()
        suggest = service.should_suggest_next_phase()
        next_phase = state.phase.next()
        return {
            "suggest": suggest,
            "next_phase": next_phase.name if suggest and next_phase else None,
        }

    @app.post("/health-record/suggestion/shown")
    async def suggestion_shown(request: Request) -> dict[str, object]:
        """Record that an upgrade suggestion was shown."""
        state_container: AppContainer = request.app.state.container
        state = state_container.authorization_service.mark_suggestion_shown()
        return _format_phase(state)

    @app.get("/health-record/profile")
    async def profile(request: Request, activity: str = "moderate") -> dict[str, object]:
        """Return the health profile and calorie target."""
        state_container: AppContainer = request.app.state.container
        try:
            level = ActivityLevel[activity.upper()]
        except KeyError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Unknown activity level: {activity}",
            ) from exc
        user_profile = await state_container.profile_service.load_profile()
        if user_profile is None:
            return {"profile": None}
        return {
            "profile": {
                "age": user_profile.age,
                "biological_sex": user_profile.biological_sex.value,
                "height_m": user_profile.height_m,
                "weight_kg": user_profile.weight_kg,
                "bmi": user_profile.bmi,
                "bmr": user_profile.bmr,
                "recommended_calories": user_profile.recommended_calories(level),
            }
        }

    @app.post("/ingredients", status_code=status.HTTP_201_CREATED)
    async def create_ingredient(
        body: IngredientRequest, request: Request
    ) -> dict[str, object]:
        """Create an ingredient."""
        state_container: AppContainer = request.app.state.container
        ingredient = await state_container.catalog_service.create_ingredient(
            _ingredient_draft(body)
        )
        return _format_ingredient(ingredient)

    @app.get("/ingredients/{ingredient_id}")
    async def get_ingredient(ingredient_id: str, request: Request) -> dict[str, object]:
        """Return one ingredient."""
        state_container: AppContainer = request.app.state.container
        ingredient = await state_container.catalog_service.get_ingredient(ingredient_id)
        return _format_ingredient(ingredient)

    @app.put("/ingredients/{ingredient_id}")
    async def update_ingredient(
        ingredient_id: str, body: IngredientRequest, request: Request
    ) -> dict[str, object]:
        """Edit an ingredient."""
        state_container: AppContainer = request.app.state.container
        ingredient = await state_container.catalog_service.update_ingredient(
            ingredient_id, _ingredient_draft(body)
        )
        return _format_ingredient(ingredient)

    @app.delete("/ingredients/{ingredient_id}")
    async def delete_ingredient(ingredient_id: str, request: Request) -> dict[str, str]:
        """Delete an ingredient and cascade the local cache."""
        state_container: AppContainer = request.app.state.container
        await state_container.catalog_service.delete_ingredient(ingredient_id)
        return {"deleted": ingredient_id}

    @app.post("/dishes", status_code=status.HTTP_201_CREATED)
    async def create_dish(body: DishRequest, request: Request) -> dict[str, object]:
        """Create a dish."""
        state_container: AppContainer = request.app.state.container
        dish = await state_container.catalog_service.create_dish(_dish_draft(body))
        return _format_dish(dish)

    @app.get("/dishes/{dish_id}")
    async def get_dish(dish_id: str, request: Request) -> dict[str, object]:
        """Return one dish with its ingredient lines."""
        state_container: AppContainer = request.app.state.container
        dish = await state_container.catalog_service.get_dish(dish_id)
        return _format_dish(dish)

    @app.put("/dishes/{dish_id}")
    async def update_dish(
        dish_id: str, body: DishRequest, request: Request
    ) -> dict[str, object]:
        """Edit a dish."""
        state_container: AppContainer = request.app.state.container
        dish = await state_container.catalog_service.update_dish(
            dish_id, _dish_draft(body)
        )
        return _format_dish(dish)

    @app.delete("/dishes/{dish_id}")
    async def delete_dish(dish_id: str, request: Request) -> dict[str, str]:
        """Delete a dish and cascade the local cache."""
        state_container: AppContainer = request.app.state.container
        await state_container.catalog_service.delete_dish(dish_id)
        return {"deleted": dish_id}

    @app.post("/catalog/reload")
    async def reload_catalog(request: Request) -> dict[str, int]:
        """Refetch the catalog and rebuild the local cache."""
        state_container: AppContainer = request.app.state.container
        catalog = await state_container.catalog_service.reload()
        return {
            "ingredients": len(catalog.ingredients),
            "dishes": len(catalog.dishes),
        }

    return app


def _format_log_result(result: LogResult) -> dict[str, object]:
    nutrition = result.nutrition
    return {
        "id": result.event.id,
        "type": result.event.kind.value,
        "consumed_at": result.event.consumed_at.isoformat(),
        "nutrients": nutrition.vector.as_dict() if nutrition else None,
        "data_quality": result.data_quality.value if result.data_quality else None,
        "warnings": [
            {"kind": warning.kind, "message": warning.message}
            for warning in result.warnings
        ],
    }


def _format_daily(totals: DailyTotals) -> dict[str, object]:
    return {
        "day": totals.day.isoformat(),
        "nutrients": totals.nutrients.as_dict(),
        "log_count": totals.log_count,
        "incomplete_count": totals.incomplete_count,
    }


def _format_period(summary: PeriodSummary) -> dict[str, object]:
    return {
        "daily": [_format_daily(entry) for entry in summary.daily],
        "averages": summary.averages.as_dict(),
        "variety_score": summary.variety_score,
    }


def _format_recommendation(item: RecommendationItem) -> dict[str, object]:
    return {
        "dish": {
            "id": item.dish.id,
            "name": item.dish.name,
            "description": item.dish.description,
            "instructions": item.dish.instructions,
            "ingredients": [
                {
                    "ingredient_id": line.ingredient_id,
                    "name": line.name,
                    "category": line.category,
                    "quantity": line.quantity,
                    "unit": line.unit,
                }
                for line in item.dish.ingredients
            ],
        },
        "freshness_score": item.freshness_score,
        "explanation": item.explanation,
    }


def _format_phase(state: PhaseState) -> dict[str, object]:
    return {
        "phase": state.phase.name,
        "display_name": state.phase.display_name,
        "last_suggestion_at": state.last_suggestion_at.isoformat()
        if state.last_suggestion_at
        else None,
    }


def _ingredient_draft(body: IngredientRequest) -> IngredientDraft:
    return IngredientDraft(
        name=body.name,
        category=body.category,
        nutrition_per_100g=NutrientVector(body.nutrition_per_100g)
        if body.nutrition_per_100g is not None
        else None,
    )


def _dish_draft(body: DishRequest) -> DishDraft:
    lines = None
    if body.ingredients is not None:
        lines = tuple(
            DishLineDraft(
                ingredient_id=line.ingredient_id,
                quantity=line.quantity,
                unit=line.unit,
            )
            for line in body.ingredients
        )
    return DishDraft(
        name=body.name,
        servings=body.servings,
        description=body.description,
        instructions=body.instructions,
        lines=lines,
    )


def _format_ingredient(ingredient: Ingredient) -> dict[str, object]:
    nutrition = ingredient.nutrition_per_100g
    return {
        "id": ingredient.id,
        "name": ingredient.name,
        "category": ingredient.category,
        "nutrition_per_100g": nutrition.as_dict() if nutrition else None,
    }


def _format_dish(dish: Dish) -> dict[str, object]:
    return {
        "id": dish.id,
        "name": dish.name,
        "servings": dish.servings,
        "description": dish.description,
        "instructions": dish.instructions,
        "ingredients": [
            {
                "ingredient_id": line.ingredient_id,
                "quantity": line.quantity,
                "unit": line.unit,
            }
            for line in dish.components
        ],
    }


def _format_event(event: ConsumptionEvent) -> dict[str, object]:
    return {
        "id": event.id,
        "type": event.kind.value,
        "item_id": event.dish_id or event.ingredient_id,
        "quantity": event.quantity,
        "unit": event.unit,
        "servings": event.servings,
        "consumed_at": event.consumed_at.isoformat(),
    }
