"""Health-record authorization phases."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum

ENHANCED_SUGGESTION_DAYS = 14
COMPREHENSIVE_SUGGESTION_DAYS = 30


class AuthorizationPhase(IntEnum):
    """Ordered tiers of health-record scopes granted by the user."""

    NONE = 0
    CORE = 1
    ENHANCED = 2
    COMPREHENSIVE = 3

    @property
    def display_name(self) -> str:
        """Human-readable label for the phase."""
        return _DISPLAY_NAMES[self]

    def next(self) -> "AuthorizationPhase | None":
        """Return the phase that follows this one, if any."""
        if self is AuthorizationPhase.COMPREHENSIVE:
            return None
        return AuthorizationPhase(self.value + 1)


_DISPLAY_NAMES = {
    AuthorizationPhase.NONE: "Not Connected",
    AuthorizationPhase.CORE: "Basic Tracking",
    AuthorizationPhase.ENHANCED: "Enhanced Tracking",
    AuthorizationPhase.COMPREHENSIVE: "Comprehensive Analysis",
}


@dataclass(frozen=True)
class PhaseState:
    """Persisted authorization phase plus the last upgrade suggestion time."""

    phase: AuthorizationPhase = AuthorizationPhase.NONE
    last_suggestion_at: datetime | None = None


def parse_phase(value: object) -> AuthorizationPhase:
    """Parse a phase from its name or ordinal."""
    if isinstance(value, AuthorizationPhase):
        return value
    if isinstance(value, int):
        return AuthorizationPhase(value)
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.isdigit():
            return AuthorizationPhase(int(cleaned))
        try:
            return AuthorizationPhase[cleaned.upper()]
        except KeyError:
            raise ValueError(f"Unknown authorization phase: {value}") from None
    raise ValueError(f"Unknown authorization phase: {value!r}")


def should_suggest_next_phase(
    state: PhaseState,
    now: datetime,
    *,
    enhanced_after_days: int = ENHANCED_SUGGESTION_DAYS,
    comprehensive_after_days: int = COMPREHENSIVE_SUGGESTION_DAYS,
) -> bool:
    """Return True when an upgrade to the next phase should be suggested.

    Advisory only. CORE users are nudged towards ENHANCED after
    ``enhanced_after_days``, ENHANCED users towards COMPREHENSIVE after
    ``comprehensive_after_days``, both counted from the last time a
    suggestion was shown (or the last successful transition).
    """
    if state.phase is AuthorizationPhase.CORE:
        threshold = timedelta(days=enhanced_after_days)
    elif state.phase is AuthorizationPhase.ENHANCED:
        threshold = timedelta(days=comprehensive_after_days)
    else:
        return False
    if state.last_suggestion_at is None:
        return True
    return now - state.last_suggestion_at >= threshold
