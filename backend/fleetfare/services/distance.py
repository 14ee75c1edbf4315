"""
Distance lookup against the maps provider.

This sits at the caller boundary: lookups feed kilometres into a
TripRequest, the fare calculator itself never performs I/O.
"""

import logging
from typing import NamedTuple, Optional, Protocol, Tuple, runtime_checkable

import httpx

from fleetfare.config import settings
from fleetfare.exceptions import DistanceLookupError, DistanceQuotaError, DistanceUnavailableError
from fleetfare.models import coerce_amount

logger = logging.getLogger(__name__)

# Distance Matrix statuses that mean billing, quota or key problems
QUOTA_STATUSES = {"REQUEST_DENIED", "OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT"}


@runtime_checkable
class DistanceProvider(Protocol):
    """One-leg driving distance in kilometres between two places."""

    async def distance(self, origin: str, destination: str) -> float:
        ...


class GoogleDistanceMatrixProvider:
    """Google Distance Matrix client (driving, metric)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = settings.MAPS_API_KEY if api_key is None else api_key
        self.base_url = base_url or settings.DISTANCE_MATRIX_URL
        self.timeout = timeout or settings.DISTANCE_TIMEOUT_SECONDS
        self._client = client

    async def _get(self, params: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(self.base_url, params=params, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(self.base_url, params=params)

    async def distance(self, origin: str, destination: str) -> float:
        """
        Look up the driving distance for one leg.

        Raises:
            DistanceQuotaError: key missing, billing disabled or quota exhausted
            DistanceUnavailableError: network failure, timeout or no route
        """
        if not self.api_key:
            raise DistanceQuotaError("Maps API key missing. Add it in Settings > Integrations.")

        params = {
            "origins": origin,
            "destinations": destination,
            "mode": "driving",
            "units": "metric",
            "key": self.api_key,
        }
        try:
            response = await self._get(params)
        except httpx.TimeoutException as e:
            logger.warning("Distance lookup timed out for %s -> %s", origin, destination)
            raise DistanceUnavailableError("Distance lookup timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Distance lookup failed for %s -> %s: %s", origin, destination, e)
            raise DistanceUnavailableError("Distance service unreachable") from e

        if response.status_code in (401, 403, 429):
            raise DistanceQuotaError(f"Maps provider refused the request (HTTP {response.status_code})")
        if response.status_code >= 400:
            raise DistanceUnavailableError(f"Maps provider error (HTTP {response.status_code})")

        try:
            payload = response.json()
        except ValueError as e:
            raise DistanceUnavailableError("Unreadable response from maps provider") from e

        status = payload.get("status")
        if status in QUOTA_STATUSES:
            message = payload.get("error_message") or "Billing not enabled or quota exceeded"
            logger.warning("Distance provider denied request: %s (%s)", status, message)
            raise DistanceQuotaError(f"Map Error: {message}")
        if status != "OK":
            raise DistanceUnavailableError(f"Maps provider returned {status}")

        try:
            element = payload["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise DistanceUnavailableError("Maps provider returned no route") from e
        if element.get("status") != "OK":
            raise DistanceUnavailableError(f"No route found ({element.get('status')})")

        meters = coerce_amount((element.get("distance") or {}).get("value"))
        return meters / 1000


async def trip_distance(provider: DistanceProvider, origin: str, destination: str, round_trip: bool = False) -> float:
    """Trip kilometres to one decimal; round trips are the one-leg distance doubled."""
    km = await provider.distance(origin, destination)
    if round_trip:
        km = km * 2
    return round(km, 1)


class DistanceTicket(NamedTuple):
    generation: int
    key: Tuple[str, str, bool]


class DistanceRequestGuard:
    """
    Discards responses for superseded lookups.

    Each lookup takes a ticket for its (origin, destination, round_trip)
    tuple; only the most recent ticket may apply its result.
    """

    def __init__(self):
        self._generation = 0
        self._current: Optional[DistanceTicket] = None

    def begin(self, origin: str, destination: str, round_trip: bool = False) -> DistanceTicket:
        self._generation += 1
        self._current = DistanceTicket(self._generation, (origin, destination, bool(round_trip)))
        return self._current

    def is_current(self, ticket: DistanceTicket) -> bool:
        return self._current == ticket

    async def lookup(
        self,
        provider: DistanceProvider,
        origin: str,
        destination: str,
        round_trip: bool = False,
    ) -> Optional[float]:
        """Trip kilometres, or None if a newer lookup started meanwhile."""
        ticket = self.begin(origin, destination, round_trip)
        try:
            km = await trip_distance(provider, origin, destination, round_trip)
        except DistanceLookupError:
            if not self.is_current(ticket):
                return None
            raise
        if not self.is_current(ticket):
            logger.debug("Discarding stale distance for %s -> %s", origin, destination)
            return None
        return km


_default_provider: Optional[DistanceProvider] = None


def get_distance_provider() -> DistanceProvider:
    """Get the default distance provider."""
    global _default_provider
    if _default_provider is None:
        _default_provider = GoogleDistanceMatrixProvider()
    return _default_provider
