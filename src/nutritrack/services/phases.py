"""Health-record authorization phase management."""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Protocol

from nutritrack.adapters.health_store_client import HealthStore
from nutritrack.domain.errors import HealthAuthorizationDenied, PhaseTransitionError
from nutritrack.domain.nutrients import keys_unlocked_at
from nutritrack.domain.phases import (
    COMPREHENSIVE_SUGGESTION_DAYS,
    ENHANCED_SUGGESTION_DAYS,
    AuthorizationPhase,
    PhaseState,
    should_suggest_next_phase,
)

_logger = logging.getLogger(__name__)


class PhaseRepository(Protocol):
    """Persistence interface for the authorization phase."""

    def get_state(self, profile_id: str) -> PhaseState:
        """Return the stored phase state, defaulting to NONE."""

    def save_state(self, profile_id: str, state: PhaseState) -> None:
        """Persist the phase state."""


@dataclass
class HealthAuthorizationService:
    """Forward-only state machine over the granted health-record scopes."""

    repository: PhaseRepository
    health_store: HealthStore
    profile_id: str
    enhanced_suggestion_days: int = ENHANCED_SUGGESTION_DAYS
    comprehensive_suggestion_days: int = COMPREHENSIVE_SUGGESTION_DAYS

    def current_state(self) -> PhaseState:
        """Return the persisted phase state."""
        return self.repository.get_state(self.profile_id)

    def current_phase(self) -> AuthorizationPhase:
        """Return the currently granted phase."""
        return self.current_state().phase

    async def request_phase(
        self, target: AuthorizationPhase, now: datetime | None = None
    ) -> PhaseState:
        """Ask the health store for the scopes newly unlocked at ``target``.

        Only the phase directly after the current one may be requested. On a
        grant the new phase is persisted and the suggestion clock restarts; on
        a denial or a health store error the phase is left unchanged.
        """
        state = self.current_state()
        expected = state.phase.next()
        if expected is None or target != expected:
            raise PhaseTransitionError(
                f"Cannot move from {state.phase.name} to {target.name}"
            )

        requested = keys_unlocked_at(target)
        try:
            granted = await self.health_store.authorize(requested)
        except Exception as exc:
            _logger.exception("Health store authorization for %s failed", target.name)
            raise HealthAuthorizationDenied(
                f"Authorization for {target.display_name} failed"
            ) from exc
        if not granted:
            _logger.info("Health store denied %s scopes", target.name)
            raise HealthAuthorizationDenied(
                f"Authorization for {target.display_name} was denied"
            )

        updated = PhaseState(
            phase=target, last_suggestion_at=now or datetime.now(tz=UTC)
        )
        self.repository.save_state(self.profile_id, updated)
        _logger.info("Authorization phase advanced to %s", target.name)
        return updated

    def should_suggest_next_phase(self, now: datetime | None = None) -> bool:
        """Return True when the next phase should be suggested to the user."""
        return should_suggest_next_phase(
            self.current_state(),
            now or datetime.now(tz=UTC),
            enhanced_after_days=self.enhanced_suggestion_days,
            comprehensive_after_days=self.comprehensive_suggestion_days,
        )

    def mark_suggestion_shown(self, now: datetime | None = None) -> PhaseState:
        """Record that an upgrade suggestion was displayed."""
        state = replace(
            self.current_state(), last_suggestion_at=now or datetime.now(tz=UTC)
        )
        self.repository.save_state(self.profile_id, state)
        return state
