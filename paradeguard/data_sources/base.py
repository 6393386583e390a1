"""Interfaces and the shared async HTTP plumbing for the data sources."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Protocol, TypeVar

import httpx

from paradeguard.data_sources.observations import Coordinates, Observation
from paradeguard.errors import UnauthenticatedError, UpstreamUnavailableError
from utils.logging_utils import get_tagged_logger, mask_url_secrets

logger = get_tagged_logger(__name__, tag="data_sources/base")

T = TypeVar("T")


class GeocodingSource(Protocol):
    """Anything that can turn free-text location into coordinates."""

    async def get_coordinates(self, place: str) -> Coordinates:
        """Resolve `place`, raising a ParadeGuardError subclass on failure."""
        ...


class HistoricalWeatherSource(Protocol):
    """Anything that can provide a validated daily series for a point."""

    async def get_historical_data(self, latitude: float, longitude: float, years: int) -> List[Observation]:
        """Return daily observations for the last `years` complete calendar years."""
        ...


@dataclass(frozen=True)
class RequestConfig:
    """Timeout and retry policy for one provider."""
    timeout: float = 30.0
    max_attempts: int = 3
    backoff_seconds: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (1-based): backoff * 2**attempt."""
        return self.backoff_seconds * (2 ** attempt)


class AsyncHttpProvider:
    """Base class that adds timeouts, status mapping and bounded retries."""

    provider_name: str = "provider"
    # Status codes that mean "your key is wrong" rather than "try again".
    auth_status_codes: frozenset[int] = frozenset()

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        request_config: RequestConfig | None = None,
        *,
        user_agent: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.request_config = request_config or RequestConfig()
        self._owns_client = client is None
        headers = {"User-Agent": user_agent} if user_agent else None
        self.client = client or httpx.AsyncClient(timeout=self.request_config.timeout, headers=headers)
        self._sleep = sleep

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self.client.aclose()

    async def _get(self, url: str, params: Mapping[str, Any]) -> httpx.Response:
        """Issue one GET, mapping transport failures onto the error taxonomy."""
        try:
            response = await self.client.get(url, params=params, timeout=self.request_config.timeout)
        except httpx.TimeoutException as exc:
            logger.error("%s request timed out", self.provider_name, extra={"url": mask_url_secrets(url)})
            raise UpstreamUnavailableError(f"{self.provider_name} request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error(
                "%s request failed: %s", self.provider_name, exc, extra={"url": mask_url_secrets(url)}
            )
            raise UpstreamUnavailableError(f"{self.provider_name} is temporarily unavailable") from exc
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Raise for authentication failures and any other non-2xx answer."""
        if response.status_code in self.auth_status_codes:
            logger.error("%s rejected the API key (HTTP %s)", self.provider_name, response.status_code)
            raise UnauthenticatedError(f"{self.provider_name} rejected the configured API key")
        if not response.is_success:
            logger.warning(
                "%s returned HTTP %s: %s",
                self.provider_name,
                response.status_code,
                response.text[:200],
                extra={"url": mask_url_secrets(str(response.request.url))},
            )
            raise UpstreamUnavailableError(
                f"{self.provider_name} returned HTTP {response.status_code}",
                details=response.reason_phrase or None,
            )
        return response

    async def _with_retry(self, operation: Callable[[], Awaitable[T]], *, description: str) -> T:
        """Run `operation`, retrying only UpstreamUnavailableError with exponential backoff."""
        attempts = max(1, self.request_config.max_attempts)
        attempt = 1
        while True:
            try:
                return await operation()
            except UpstreamUnavailableError as exc:
                if attempt >= attempts:
                    logger.error(
                        "%s failed after %d attempts: %s", description, attempts, exc.message
                    )
                    raise
                delay = self.request_config.delay_for(attempt)
                logger.warning(
                    "Retry %d/%d for %s after %.1fs. Reason: %s",
                    attempt,
                    attempts - 1,
                    description,
                    delay,
                    exc.message,
                )
                await self._sleep(delay)
                attempt += 1
