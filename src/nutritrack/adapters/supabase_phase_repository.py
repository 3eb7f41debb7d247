"""Supabase repository for the health-record authorization phase."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from nutritrack.domain.phases import AuthorizationPhase, PhaseState, parse_phase
from nutritrack.services.phases import PhaseRepository


@dataclass
class SupabasePhaseRepository(PhaseRepository):
    """Supabase implementation for the authorization phase state."""

    client: Client

    def get_state(self, profile_id: str) -> PhaseState:
        """Return the stored phase state, NONE when no row exists."""
        response = (
            self.client.table("health_record_settings")
            .select("phase, last_suggestion_at")
            .eq("profile_id", profile_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return PhaseState()
        row = response.data[0]
        return PhaseState(
            phase=parse_phase(row.get("phase") or AuthorizationPhase.NONE.name),
            last_suggestion_at=_parse_timestamp(row.get("last_suggestion_at")),
        )

    def save_state(self, profile_id: str, state: PhaseState) -> None:
        """Upsert the phase state for a profile."""
        self.client.table("health_record_settings").upsert(
            {
                "profile_id": profile_id,
                "phase": state.phase.name,
                "last_suggestion_at": state.last_suggestion_at.isoformat()
                if state.last_suggestion_at
                else None,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="profile_id",
        ).execute()


def _parse_timestamp(raw: object) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
