"""Client for the remote nutrition data service."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol, TypeVar

import httpx

from nutritrack.domain.catalog import (
    Dish,
    DishComponent,
    DishDraft,
    Ingredient,
    IngredientDraft,
)
from nutritrack.domain.consumption import (
    ConsumptionEvent,
    ConsumptionKind,
    NewConsumption,
)
from nutritrack.domain.errors import (
    AuthExpired,
    CommittedResponseUnreadable,
    RemoteUnavailable,
    ValidationError,
)
from nutritrack.domain.nutrients import NutrientKey, NutrientVector
from nutritrack.services.sessions import AuthSession

_UNAUTHORIZED = 401
_CLIENT_ERROR = 400
_SERVER_ERROR = 500

_REMOTE_NUTRIENT_FIELDS = {
    "calories": NutrientKey.ENERGY,
    "protein": NutrientKey.PROTEIN,
    "carbs": NutrientKey.CARBS,
    "fat": NutrientKey.FAT,
    "fiber": NutrientKey.FIBER,
    "sugar": NutrientKey.SUGAR,
    "sodium": NutrientKey.SODIUM,
    "water": NutrientKey.WATER,
    "saturatedFat": NutrientKey.SATURATED_FAT,
    "monounsaturatedFat": NutrientKey.MONOUNSATURATED_FAT,
    "polyunsaturatedFat": NutrientKey.POLYUNSATURATED_FAT,
    "cholesterol": NutrientKey.CHOLESTEROL,
    "vitaminC": NutrientKey.VITAMIN_C,
    "vitaminD": NutrientKey.VITAMIN_D,
    "vitaminE": NutrientKey.VITAMIN_E,
    "vitaminK": NutrientKey.VITAMIN_K,
    "vitaminB6": NutrientKey.VITAMIN_B6,
    "vitaminB12": NutrientKey.VITAMIN_B12,
    "calcium": NutrientKey.CALCIUM,
    "iron": NutrientKey.IRON,
    "potassium": NutrientKey.POTASSIUM,
    "zinc": NutrientKey.ZINC,
}

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteStore(Protocol):
    """Interface for the authoritative remote data service."""

    async def create_consumption_event(
        self, request: NewConsumption
    ) -> ConsumptionEvent:
        """Persist a consumption and return the canonical event."""

    async def list_consumption_events(
        self, days: int = 7, start: date | None = None, end: date | None = None
    ) -> list[ConsumptionEvent]:
        """Return consumption events from ``start`` to ``end``, or the last ``days``."""

    async def delete_consumption_event(self, event_id: str) -> None:
        """Delete a consumption event."""

    async def list_ingredients(self) -> list[Ingredient]:
        """Return the ingredient catalog."""

    async def get_ingredient(self, ingredient_id: str) -> Ingredient:
        """Return one ingredient."""

    async def create_ingredient(self, draft: IngredientDraft) -> Ingredient:
        """Create an ingredient and return the canonical record."""

    async def update_ingredient(
        self, ingredient_id: str, draft: IngredientDraft
    ) -> Ingredient:
        """Edit an ingredient and return the canonical record."""

    async def delete_ingredient(self, ingredient_id: str) -> None:
        """Delete an ingredient."""

    async def list_dishes(self) -> list[Dish]:
        """Return the dish catalog."""

    async def get_dish(self, dish_id: str) -> Dish:
        """Return one dish with its composition."""

    async def create_dish(self, draft: DishDraft) -> Dish:
        """Create a dish and return the canonical record."""

    async def update_dish(self, dish_id: str, draft: DishDraft) -> Dish:
        """Edit a dish and return the canonical record."""

    async def delete_dish(self, dish_id: str) -> None:
        """Delete a dish."""

    async def fetch_recommendations(self, window_days: int, limit: int) -> object:
        """Return the raw recommendation payload."""


@dataclass
class HttpxRemoteStoreClient(RemoteStore):
    """HTTPX-backed remote store client using bearer authentication."""

    base_url: str
    session: AuthSession
    http_client: httpx.AsyncClient
    timeout_seconds: float = 30.0

    @classmethod
    def create(
        cls, base_url: str, session: AuthSession, timeout_seconds: float = 30.0
    ) -> "HttpxRemoteStoreClient":
        """Create a remote store client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            session=session,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def create_consumption_event(
        self, request: NewConsumption
    ) -> ConsumptionEvent:
        """POST a consumption log."""
        payload: dict[str, object] = {
            "type": request.kind.value,
            "itemId": request.item_id,
            "consumedAt": request.consumed_at.isoformat(),
        }
        if request.quantity is not None:
            payload["quantity"] = request.quantity
        if request.unit is not None:
            payload["unit"] = request.unit
        if request.servings is not None:
            payload["servings"] = request.servings
        response = await self._request("POST", "/consumption", json=payload)
        return _decode_committed(response, parse_consumption_event, "consumption log")

    async def list_consumption_events(
        self, days: int = 7, start: date | None = None, end: date | None = None
    ) -> list[ConsumptionEvent]:
        """GET consumption logs for a date range, or a trailing window."""
        if start is not None and end is not None:
            params = {"startDate": start.isoformat(), "endDate": end.isoformat()}
        else:
            params = {"days": str(days)}
        response = await self._request("GET", "/consumption", params=params)
        return _decode_many(_json(response), parse_consumption_event, "consumption log")

    async def delete_consumption_event(self, event_id: str) -> None:
        """DELETE a consumption log."""
        await self._request("DELETE", f"/consumption/{event_id}")

    async def list_ingredients(self) -> list[Ingredient]:
        """GET the ingredient catalog."""
        response = await self._request("GET", "/ingredients")
        return _decode_many(_json(response), parse_ingredient, "ingredient")

    async def get_ingredient(self, ingredient_id: str) -> Ingredient:
        """GET one ingredient."""
        response = await self._request("GET", f"/ingredients/{ingredient_id}")
        return _decode(_json(response), parse_ingredient, "ingredient")

    async def create_ingredient(self, draft: IngredientDraft) -> Ingredient:
        """POST a new ingredient."""
        response = await self._request(
            "POST", "/ingredients", json=serialize_ingredient_draft(draft)
        )
        return _decode_committed(response, parse_ingredient, "ingredient")

    async def update_ingredient(
        self, ingredient_id: str, draft: IngredientDraft
    ) -> Ingredient:
        """PUT changed ingredient fields."""
        response = await self._request(
            "PUT",
            f"/ingredients/{ingredient_id}",
            json=serialize_ingredient_draft(draft),
        )
        return _decode_committed(response, parse_ingredient, "ingredient")

    async def delete_ingredient(self, ingredient_id: str) -> None:
        """DELETE an ingredient."""
        await self._request("DELETE", f"/ingredients/{ingredient_id}")

    async def list_dishes(self) -> list[Dish]:
        """GET the dish catalog."""
        response = await self._request("GET", "/dishes")
        return _decode_many(_json(response), parse_dish, "dish")

    async def get_dish(self, dish_id: str) -> Dish:
        """GET one dish."""
        response = await self._request("GET", f"/dishes/{dish_id}")
        return _decode(_json(response), parse_dish, "dish")

    async def create_dish(self, draft: DishDraft) -> Dish:
        """POST a new dish with its ingredient lines."""
        response = await self._request(
            "POST", "/dishes", json=serialize_dish_draft(draft)
        )
        return _decode_committed(response, parse_dish, "dish")

    async def update_dish(self, dish_id: str, draft: DishDraft) -> Dish:
        """PUT changed dish fields."""
        response = await self._request(
            "PUT", f"/dishes/{dish_id}", json=serialize_dish_draft(draft)
        )
        return _decode_committed(response, parse_dish, "dish")

    async def delete_dish(self, dish_id: str) -> None:
        """DELETE a dish."""
        await self._request("DELETE", f"/dishes/{dish_id}")

    async def fetch_recommendations(self, window_days: int, limit: int) -> object:
        """GET dish recommendations without interpreting their shape."""
        response = await self._request(
            "GET",
            "/recommendations/dishes",
            params={"days": str(window_days), "limit": str(limit)},
        )
        return _json(response)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:  # type: ignore[no-untyped-def]
        headers = {"Content-Type": "application/json"}
        if self.session.is_active:
            headers["Authorization"] = f"Bearer {self.session.bearer_token()}"
        try:
            response = await self.http_client.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                timeout=self.timeout_seconds,
                **kwargs,
            )
        except httpx.TransportError as exc:
            raise RemoteUnavailable(f"{method} {path} failed: {exc}") from exc
        _raise_for_status(response, f"{method} {path}")
        return response


def _raise_for_status(response: httpx.Response, action: str) -> None:
    status_code = response.status_code
    if status_code < _CLIENT_ERROR:
        return
    message = _error_message(response)
    _logger.warning("Remote %s returned %s: %s", action, status_code, message)
    if status_code == _UNAUTHORIZED:
        raise AuthExpired(message or "Credential expired")
    if status_code < _SERVER_ERROR:
        raise ValidationError(message or f"Request rejected ({status_code})")
    raise RemoteUnavailable(
        message or f"Server error ({status_code})", status_code=status_code
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or "")
    return response.text


def _json(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError as exc:
        raise RemoteUnavailable("Undecodable response from remote store") from exc


def _decode(payload: object, parser: Callable[[dict], T], what: str) -> T:
    if not isinstance(payload, dict):
        raise RemoteUnavailable(f"Unexpected {what} payload")
    try:
        return parser(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise RemoteUnavailable(f"Malformed {what} payload: {exc}") from exc


def _decode_committed(
    response: httpx.Response, parser: Callable[[dict], T], what: str
) -> T:
    # the write is already applied remotely
    try:
        return _decode(_json(response), parser, what)
    except RemoteUnavailable as exc:
        _logger.warning("Remote stored the %s but its response was unreadable", what)
        raise CommittedResponseUnreadable(
            f"The {what} was saved remotely but the response could not be read: {exc}",
            status_code=response.status_code,
        ) from exc


def _decode_many(payload: object, parser: Callable[[dict], T], what: str) -> list[T]:
    if not isinstance(payload, list):
        raise RemoteUnavailable(f"Unexpected {what} list payload")
    return [_decode(row, parser, what) for row in payload]


def parse_nutrition(raw: object) -> NutrientVector | None:
    """Parse a camelCase nutrition object, ignoring unknown fields."""
    if not isinstance(raw, dict):
        return None
    return NutrientVector.from_optional(
        {
            key: float(raw[field]) if raw.get(field) is not None else None
            for field, key in _REMOTE_NUTRIENT_FIELDS.items()
        }
    )


def parse_ingredient(row: dict[str, object]) -> Ingredient:
    """Parse an ingredient payload into a domain model."""
    return Ingredient(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        category=str(row.get("category") or "Other"),
        nutrition_per_100g=parse_nutrition(row.get("nutritionPer100g")),
        created_at=_parse_datetime(row.get("createdAt")),
        updated_at=_parse_datetime(row.get("updatedAt")),
    )


def parse_dish(row: dict[str, object]) -> Dish:
    """Parse a dish payload with its composition lines."""
    components = []
    for line in row.get("ingredients") or []:
        embedded = line.get("ingredient")
        components.append(
            DishComponent(
                id=str(line.get("id") or line["ingredientId"]),
                ingredient_id=str(line["ingredientId"]),
                quantity=float(line.get("quantity", 0.0)),
                unit=str(line.get("unit") or "g"),
                ingredient=parse_ingredient(embedded)
                if isinstance(embedded, dict)
                else None,
            )
        )
    return Dish(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        servings=int(row.get("servings") or 1),
        description=row.get("description"),
        instructions=row.get("instructions"),
        components=tuple(components),
        user_id=row.get("userId"),
        created_at=_parse_datetime(row.get("createdAt")),
        updated_at=_parse_datetime(row.get("updatedAt")),
    )


def parse_consumption_event(row: dict[str, object]) -> ConsumptionEvent:
    """Parse a consumption log payload into a canonical event."""
    consumed_at = _parse_datetime(row.get("consumedAt"))
    if consumed_at is None:
        raise ValueError("consumedAt is required")
    ingredient = row.get("ingredient")
    dish = row.get("dish")
    return ConsumptionEvent(
        id=str(row["id"]),
        kind=ConsumptionKind(str(row.get("type", "ingredient"))),
        consumed_at=consumed_at,
        created_at=_parse_datetime(row.get("createdAt")),
        user_id=row.get("userId"),
        ingredient_id=row.get("ingredientId"),
        quantity=_optional_float(row.get("quantity")),
        unit=row.get("unit"),
        dish_id=row.get("dishId"),
        servings=_optional_float(row.get("servings")),
        ingredient=parse_ingredient(ingredient) if isinstance(ingredient, dict) else None,
        dish=parse_dish(dish) if isinstance(dish, dict) else None,
    )


def _parse_datetime(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)


def serialize_nutrition(vector: NutrientVector) -> dict[str, float]:
    """Render known amounts with the remote store's camelCase field names."""
    return {
        field: amount
        for field, key in _REMOTE_NUTRIENT_FIELDS.items()
        if (amount := vector.get(key)) is not None
    }


def serialize_ingredient_draft(draft: IngredientDraft) -> dict[str, object]:
    """Build an ingredient request body, leaving out unset fields."""
    payload: dict[str, object] = {}
    if draft.name is not None:
        payload["name"] = draft.name
    if draft.category is not None:
        payload["category"] = draft.category
    if draft.nutrition_per_100g is not None:
        payload["nutritionPer100g"] = serialize_nutrition(draft.nutrition_per_100g)
    return payload


def serialize_dish_draft(draft: DishDraft) -> dict[str, object]:
    """Build a dish request body, leaving out unset fields."""
    fields = {
        "name": draft.name,
        "servings": draft.servings,
        "description": draft.description,
        "instructions": draft.instructions,
    }
    payload: dict[str, object] = {
        name: value for name, value in fields.items() if value is not None
    }
    if draft.lines is not None:
        payload["ingredients"] = [
            {
                "ingredientId": line.ingredient_id,
                "quantity": line.quantity,
                "unit": line.unit,
            }
            for line in draft.lines
        ]
    return payload
