"""
Shared pieces for the delivery provider clients
===============================================

Value types passed to every provider, the provider error, and the httpx
request helper with retry logic (3 attempts, exponential backoff).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 0.5  # doubles each retry: 0.5, 1.0, 2.0
REQUEST_TIMEOUT_SECONDS = 10.0

DEFAULT_PHONE_NUMBER = "+15555555555"


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------


class DeliveryProviderError(Exception):
    """Raised when a provider request fails after all retries or returns
    an error status."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status: int | None = None,
        raw: Any = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status
        self.raw = raw


class ProviderConfigError(DeliveryProviderError):
    """Credentials are missing or were rejected. Affects every request to
    the provider, not just one destination."""


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Address:
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "US"

    def one_line(self) -> str:
        return f"{self.street} {self.city}, {self.state} {self.zip_code}".strip()


@dataclass(frozen=True)
class Location:
    """A pickup or dropoff point."""
    latitude: float
    longitude: float
    address: Address = Address()
    phone: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ItemCounts:
    bags: int = 0
    boxes: int = 0

    @property
    def total(self) -> int:
        return self.bags + self.boxes


@dataclass(frozen=True)
class ProviderQuote:
    """Normalised quote returned by every provider client."""
    provider: str
    price: Decimal
    quote_id: Optional[str] = None
    currency: str = "usd"
    raw: Any = None


class DeliveryClient(Protocol):
    name: str

    async def get_quote(
        self, pickup: Location, dropoff: Location, items: ItemCounts
    ) -> ProviderQuote:
        ...

    async def aclose(self) -> None:
        ...


def cents_to_dollars(cents: Any) -> Decimal:
    return (Decimal(str(cents)) / 100).quantize(Decimal("0.01"))


# ---------------------------------------------------------------------------
# HTTP helper
# ---------------------------------------------------------------------------


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    provider: str,
    headers: dict[str, str] | None = None,
    json_body: dict[str, Any] | None = None,
    data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Execute an HTTP request with exponential-backoff retry logic.

    Retries on transient errors (5xx, timeouts, connection errors). 4xx
    responses are surfaced immediately; 401/403 raise ``ProviderConfigError``.

    Returns:
        Parsed JSON response.

    Raises:
        DeliveryProviderError: After all retries are exhausted or on a
            client error.
    """
    last_exception: Exception | None = None
    backoff = INITIAL_BACKOFF_SECONDS

    for attempt in range(1, MAX_RETRIES + 1):
        try:
            response = await client.request(
                method,
                url,
                headers=headers,
                json=json_body,
                data=data,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )

            if response.status_code in (401, 403):
                raise ProviderConfigError(
                    f"{provider} rejected credentials: HTTP {response.status_code}",
                    provider=provider,
                    status=response.status_code,
                    raw=response.text,
                )

            if 400 <= response.status_code < 500:
                raise DeliveryProviderError(
                    f"{provider} client error: HTTP {response.status_code}",
                    provider=provider,
                    status=response.status_code,
                    raw=response.text,
                )

            if response.status_code >= 500:
                last_exception = DeliveryProviderError(
                    f"{provider} server error: HTTP {response.status_code}",
                    provider=provider,
                    status=response.status_code,
                    raw=response.text,
                )
                logger.warning(
                    "%s server error on attempt %d/%d: HTTP %d",
                    provider,
                    attempt,
                    MAX_RETRIES,
                    response.status_code,
                )
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(backoff)
                    backoff *= 2
                continue

            return response.json()

        except (httpx.TimeoutException, httpx.ConnectError) as exc:
            last_exception = exc
            logger.warning(
                "%s transport error on attempt %d/%d: %s",
                provider,
                attempt,
                MAX_RETRIES,
                exc,
            )
            if attempt < MAX_RETRIES:
                await asyncio.sleep(backoff)
                backoff *= 2

    raise DeliveryProviderError(
        f"{provider} request failed after {MAX_RETRIES} attempts",
        provider=provider,
        raw=str(last_exception),
    )
