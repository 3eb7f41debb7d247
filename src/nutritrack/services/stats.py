"""Nutrition summaries over logged consumption."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from nutritrack.adapters.remote_store_client import RemoteStore
from nutritrack.domain.catalog import Catalog
from nutritrack.domain.consumption import ConsumptionEvent, ConsumptionKind
from nutritrack.domain.nutrients import scale, total
from nutritrack.domain.stats import DailyTotals, PeriodSummary
from nutritrack.services.catalog import CatalogService
from nutritrack.services.resolver import CompositionResolver

VARIETY_TARGET = 20
WEEK_DAYS = 7


@dataclass
class NutritionSummaryService:
    """Computes per-day nutrition totals in the user's timezone."""

    remote_store: RemoteStore
    catalog_service: CatalogService
    resolver: CompositionResolver
    variety_target: int = VARIETY_TARGET

    async def get_today(
        self, timezone_name: str, now: datetime | None = None
    ) -> DailyTotals:
        """Return today's resolved totals."""
        tz = ZoneInfo(timezone_name)
        current = (now or datetime.now(tz=UTC)).astimezone(tz)
        events, catalog = await self._load(days=1)
        return self._aggregate_day(current.date(), events, catalog, tz)

    async def get_week(
        self, timezone_name: str, now: datetime | None = None
    ) -> PeriodSummary:
        """Return totals for the last seven days, averages and variety."""
        tz = ZoneInfo(timezone_name)
        current = (now or datetime.now(tz=UTC)).astimezone(tz)
        events, catalog = await self._load(days=WEEK_DAYS)
        start = current.date() - timedelta(days=WEEK_DAYS - 1)
        daily = [
            self._aggregate_day(start + timedelta(days=offset), events, catalog, tz)
            for offset in range(WEEK_DAYS)
        ]
        period_total = total(entry.nutrients for entry in daily)
        return PeriodSummary(
            daily=daily,
            averages=scale(period_total, 1 / len(daily)),
            variety_score=self.variety_score(events, current),
        )

    def variety_score(self, events: list[ConsumptionEvent], now: datetime) -> float:
        """Share of distinct foods eaten over the last week, capped at 1."""
        since = now - timedelta(days=WEEK_DAYS)
        recent = [event for event in events if event.consumed_at >= since]
        ingredients = {
            event.ingredient_id
            for event in recent
            if event.kind is ConsumptionKind.INGREDIENT and event.ingredient_id
        }
        dishes = {
            event.dish_id
            for event in recent
            if event.kind is ConsumptionKind.DISH and event.dish_id
        }
        return min((len(ingredients) + len(dishes)) / self.variety_target, 1.0)

    async def _load(self, days: int) -> tuple[list[ConsumptionEvent], Catalog]:
        # one extra day covers timezone offsets at the window edge
        return await asyncio.gather(
            self.remote_store.list_consumption_events(days=days + 1),
            self.catalog_service.snapshot(),
        )

    def _aggregate_day(
        self,
        day: date,
        events: list[ConsumptionEvent],
        catalog: Catalog,
        tz: ZoneInfo,
    ) -> DailyTotals:
        vectors = []
        incomplete = 0
        for event in events:
            if event.consumed_at.astimezone(tz).date() != day:
                continue
            merged = catalog.merged_with(*event.embedded_entities())
            resolved = self.resolver.resolve(event, merged.ingredients, merged.dishes)
            vectors.append(resolved.vector)
            if not resolved.is_complete:
                incomplete += 1
        return DailyTotals(
            day=day,
            nutrients=total(vectors),
            log_count=len(vectors),
            incomplete_count=incomplete,
        )
