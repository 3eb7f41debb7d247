"""Body profile lookups from the health store."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime

from nutritrack.adapters.health_store_client import HealthStore
from nutritrack.domain.errors import HealthStoreUnavailable
from nutritrack.domain.phases import AuthorizationPhase
from nutritrack.domain.profile import BiologicalSex, UserProfile
from nutritrack.services.phases import HealthAuthorizationService

_PROFILE_FIELDS = (
    "date_of_birth",
    "biological_sex",
    "height",
    "body_mass",
    "body_mass_index",
)

_logger = logging.getLogger(__name__)


@dataclass
class HealthProfileService:
    """Reads the user's latest body measurements once CORE is granted."""

    health_store: HealthStore
    authorization_service: HealthAuthorizationService

    async def load_profile(self, today: date | None = None) -> UserProfile | None:
        """Return the user profile, or None before health access is granted.

        Raises HealthStoreUnavailable when any profile field cannot be read.
        """
        if self.authorization_service.current_phase() is AuthorizationPhase.NONE:
            return None
        try:
            values = await asyncio.gather(
                *(self.health_store.read_latest(field) for field in _PROFILE_FIELDS)
            )
        except Exception as exc:
            _logger.warning("Failed to read health profile: %s", exc)
            raise HealthStoreUnavailable("Health profile is unavailable") from exc
        raw = dict(zip(_PROFILE_FIELDS, values, strict=True))
        return UserProfile(
            age=_age(raw["date_of_birth"], today or datetime.now(tz=UTC).date()),
            biological_sex=_sex(raw["biological_sex"]),
            height_m=_as_float(raw["height"]),
            weight_kg=_as_float(raw["body_mass"]),
            bmi=_as_float(raw["body_mass_index"]),
        )


def _age(raw: object, today: date) -> int | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        born = date.fromisoformat(raw[:10])
    except ValueError:
        _logger.warning("Ignoring unparseable date of birth: %s", raw)
        return None
    had_birthday = (today.month, today.day) >= (born.month, born.day)
    return today.year - born.year - (0 if had_birthday else 1)


def _sex(raw: object) -> BiologicalSex:
    if isinstance(raw, str):
        try:
            return BiologicalSex(raw.lower())
        except ValueError:
            return BiologicalSex.OTHER
    return BiologicalSex.NOT_SET


def _as_float(raw: object) -> float | None:
    if isinstance(raw, int | float):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw)
        except ValueError:
            return None
    return None
