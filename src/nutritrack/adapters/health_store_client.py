"""Health-record store client."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import httpx

from nutritrack.domain.errors import HealthStoreUnavailable, HealthWriteFailure
from nutritrack.domain.nutrients import NUTRIENT_UNITS, NutrientKey, NutrientVector

_NOT_FOUND = 404


class HealthStore(Protocol):
    """Interface for the platform health-record store."""

    async def authorize(self, keys: Iterable[NutrientKey]) -> bool:
        """Request read/write access for the given nutrient keys."""

    async def write(self, vector: NutrientVector, timestamp: datetime) -> None:
        """Write one sample per known nutrient, stamped at ``timestamp``."""

    async def read_latest(self, field: str) -> object | None:
        """Return the latest value of a profile field, if recorded."""


@dataclass
class HttpxHealthStoreClient(HealthStore):
    """HTTPX-backed client for the health-record bridge."""

    base_url: str
    token: str | None
    http_client: httpx.AsyncClient
    timeout_seconds: float = 30.0

    @classmethod
    def create(
        cls, base_url: str, token: str | None, timeout_seconds: float = 30.0
    ) -> "HttpxHealthStoreClient":
        """Create a health store client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            token=token,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def authorize(self, keys: Iterable[NutrientKey]) -> bool:
        """Request share and read scopes for the nutrient keys."""
        requested = sorted(key.value for key in keys)
        try:
            response = await self.http_client.post(
                f"{self.base_url}/authorizations",
                json={"share": requested, "read": requested},
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            return bool(response.json().get("granted"))
        except (httpx.HTTPError, ValueError) as exc:
            raise HealthStoreUnavailable(f"Authorization request failed: {exc}") from exc

    async def write(self, vector: NutrientVector, timestamp: datetime) -> None:
        """Write nutrient samples for a single point in time."""
        stamp = timestamp.isoformat()
        samples = [
            {
                "type": key.value,
                "value": amount,
                "unit": NUTRIENT_UNITS[key],
                "start": stamp,
                "end": stamp,
            }
            for key, amount in vector
        ]
        if not samples:
            return
        try:
            response = await self.http_client.post(
                f"{self.base_url}/samples",
                json={"samples": samples},
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise HealthWriteFailure(f"Health record write failed: {exc}") from exc

    async def read_latest(self, field: str) -> object | None:
        """Read the most recent value recorded for a profile field."""
        try:
            response = await self.http_client.get(
                f"{self.base_url}/profile/{field}/latest",
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
            if response.status_code == _NOT_FOUND:
                return None
            response.raise_for_status()
            return response.json().get("value")
        except (httpx.HTTPError, ValueError) as exc:
            raise HealthStoreUnavailable(f"Reading {field} failed: {exc}") from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}
