"""Consumption logging and propagation across stores."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date

from nutritrack.adapters.health_store_client import HealthStore
from nutritrack.adapters.remote_store_client import RemoteStore
from nutritrack.domain.catalog import Catalog
from nutritrack.domain.consumption import (
    ConsumptionEvent,
    ConsumptionKind,
    LogResult,
    NewConsumption,
    PropagationWarning,
    ResolvedNutrition,
)
from nutritrack.domain.errors import (
    AuthExpired,
    HealthWriteFailure,
    LocalMirrorFailure,
    ValidationError,
)
from nutritrack.domain.nutrients import restrict_to_phase
from nutritrack.domain.phases import AuthorizationPhase
from nutritrack.services.catalog import CatalogService
from nutritrack.services.phases import HealthAuthorizationService
from nutritrack.services.reconciler import CacheReconciler
from nutritrack.services.resolver import CompositionResolver
from nutritrack.services.sessions import AuthSession

LOCAL_MIRROR = "local_mirror"
HEALTH_WRITE = "health_write"

_logger = logging.getLogger(__name__)


@dataclass
class ConsumptionLogService:
    """Logs consumption remotely and mirrors it to the cache and health store.

    The remote write decides the outcome. Mirroring into the local cache and
    writing nutrition to the health store run afterwards, concurrently, and
    their failures are reported as warnings on the result instead of errors.
    """

    remote_store: RemoteStore
    reconciler: CacheReconciler
    catalog_service: CatalogService
    resolver: CompositionResolver
    authorization_service: HealthAuthorizationService
    health_store: HealthStore
    session: AuthSession
    _pending: set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    async def log_consumption(self, request: NewConsumption) -> LogResult:
        """Log a consumption event and propagate it.

        Raises ValidationError, AuthExpired or RemoteUnavailable when the
        remote write does not happen. CommittedResponseUnreadable means the
        write did happen but nothing was propagated. Once the event is known,
        cancelling the caller does not stop the local mirror or the health
        write; both finish before the cancellation is re-raised.
        """
        request.validate()
        event = await self._submit(request)

        follow_up = asyncio.ensure_future(self._propagate(event))
        self._pending.add(follow_up)
        follow_up.add_done_callback(self._pending.discard)
        try:
            nutrition, warnings = await asyncio.shield(follow_up)
        except asyncio.CancelledError:
            _logger.info(
                "Cancelled after remote commit, finishing propagation for %s", event.id
            )
            await asyncio.wait({follow_up})
            raise
        return LogResult(event=event, nutrition=nutrition, warnings=warnings)

    async def delete_consumption(self, event_id: str) -> list[PropagationWarning]:
        """Delete a consumption event remotely, then from the local cache."""
        try:
            await self.remote_store.delete_consumption_event(event_id)
        except AuthExpired:
            self.session.invalidate()
            raise
        try:
            self.reconciler.delete(event_id)
        except LocalMirrorFailure as exc:
            _logger.warning("Local delete of %s failed: %s", event_id, exc)
            return [PropagationWarning(LOCAL_MIRROR, str(exc))]
        return []

    async def history(
        self, days: int = 7, start: date | None = None, end: date | None = None
    ) -> list[ConsumptionEvent]:
        """List remote consumption events and mirror them into the local cache.

        ``start`` and ``end`` select an inclusive date range and must be given
        together. Without them the last ``days`` days are listed.
        """
        if (start is None) != (end is None):
            raise ValidationError("start and end must be given together")
        if start is not None and end is not None and start > end:
            raise ValidationError("start must not be after end")
        if days < 1:
            raise ValidationError("days must be at least 1")
        try:
            events = await self.remote_store.list_consumption_events(
                days=days, start=start, end=end
            )
        except AuthExpired:
            self.session.invalidate()
            raise
        for event in events:
            try:
                self.reconciler.upsert(event)
            except LocalMirrorFailure as exc:
                _logger.warning("Local mirror of %s failed: %s", event.id, exc)
        return events

    async def _submit(self, request: NewConsumption) -> ConsumptionEvent:
        try:
            event = await self.remote_store.create_consumption_event(request)
        except AuthExpired:
            self.session.invalidate()
            raise
        _logger.info("Consumption %s logged remotely (%s)", event.id, event.kind)
        return event

    async def _propagate(
        self, event: ConsumptionEvent
    ) -> tuple[ResolvedNutrition | None, list[PropagationWarning]]:
        mirror_warning, (nutrition, health_warning) = await asyncio.gather(
            self._mirror(event), self._sync_health(event)
        )
        warnings = [
            warning for warning in (mirror_warning, health_warning) if warning
        ]
        return nutrition, warnings

    async def _mirror(self, event: ConsumptionEvent) -> PropagationWarning | None:
        try:
            self.reconciler.upsert(event)
        except LocalMirrorFailure as exc:
            _logger.warning("Local mirror of %s failed: %s", event.id, exc)
            return PropagationWarning(LOCAL_MIRROR, str(exc))
        return None

    async def _sync_health(
        self, event: ConsumptionEvent
    ) -> tuple[ResolvedNutrition | None, PropagationWarning | None]:
        try:
            nutrition = await self._resolve(event)
            phase = self.authorization_service.current_phase()
        except Exception as exc:
            _logger.exception("Failed to resolve nutrition for %s", event.id)
            return None, PropagationWarning(
                HEALTH_WRITE, f"Nutrition could not be resolved: {exc}"
            )

        if not nutrition.is_complete:
            _logger.info(
                "Consumption %s has incomplete nutrition data: %s",
                event.id,
                ", ".join(nutrition.unresolved),
            )
        if phase is AuthorizationPhase.NONE:
            return nutrition, None
        restricted = restrict_to_phase(nutrition.vector, phase)
        if restricted.is_empty:
            return nutrition, None

        try:
            await self.health_store.write(restricted, event.consumed_at)
        except HealthWriteFailure as exc:
            _logger.warning("Health write for %s failed: %s", event.id, exc)
            return nutrition, PropagationWarning(HEALTH_WRITE, str(exc))
        except Exception as exc:
            _logger.exception("Health write for %s failed", event.id)
            return nutrition, PropagationWarning(
                HEALTH_WRITE, f"Health record write failed: {exc}"
            )
        return nutrition, None

    async def _resolve(self, event: ConsumptionEvent) -> ResolvedNutrition:
        catalog = await self.catalog_service.snapshot()
        if not _references_known(catalog, event):
            self.catalog_service.invalidate()
            catalog = await self.catalog_service.snapshot()
        catalog = catalog.merged_with(*event.embedded_entities())
        return self.resolver.resolve(event, catalog.ingredients, catalog.dishes)


def _references_known(catalog: Catalog, event: ConsumptionEvent) -> bool:
    if event.kind is ConsumptionKind.DISH:
        return event.dish_id in catalog.dishes or event.dish is not None
    return event.ingredient_id in catalog.ingredients or event.ingredient is not None
