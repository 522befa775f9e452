"""
Delivery quote providers
========================

A ``QuoteProvider`` turns a pickup, a destination and the item counts into
a base delivery cost. The provider is chosen once from configuration and
passed to the aggregator, so callers never branch on the quote mode.

Variants:
- ``ManualQuoteProvider``: flat $9.25 + $0.75/mile, used when dispatch is
  handled by staff
- ``MockQuoteProvider``: $3.50 + $0.85/mile, the estimate shown before a
  live quote exists and the fallback when a live provider fails
- ``LiveQuoteProvider``: a live API client behind a circuit breaker

Error contract:
- ``QuoteError``: one destination could not be quoted. The aggregator
  recovers locally.
- ``ProviderUnavailableError``: the whole provider is unusable (missing or
  rejected credentials, open circuit). Propagates to the caller.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, Optional

from src.integrations.delivery.base import (
    DeliveryClient,
    DeliveryProviderError,
    ItemCounts,
    Location,
    ProviderConfigError,
)
from src.services.geoService import haversine_miles

if TYPE_CHECKING:
    from src.services.circuitBreaker import CircuitBreaker

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")

MANUAL_BASE_FEE = Decimal("9.25")
MANUAL_PER_MILE = Decimal("0.75")
MOCK_BASE_FEE = Decimal("3.50")
MOCK_PER_MILE = Decimal("0.85")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class QuoteError(Exception):
    """A single destination could not be quoted."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(Exception):
    """The provider cannot quote anything right now."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Destination:
    """A donation center (or any dropoff) to quote against."""
    id: str
    location: Location


@dataclass(frozen=True)
class DeliveryQuote:
    price: Decimal
    provider: str
    provider_quote_id: Optional[str] = None
    distance_miles: Optional[float] = None
    is_fallback: bool = False


def _distance_priced(
    pickup: Location, dropoff: Location, base: Decimal, per_mile: Decimal
) -> tuple[Decimal, float]:
    miles = haversine_miles(
        pickup.latitude, pickup.longitude, dropoff.latitude, dropoff.longitude
    )
    price = (base + per_mile * Decimal(str(miles))).quantize(_CENT, rounding=ROUND_HALF_UP)
    return price, miles


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class QuoteProvider(abc.ABC):
    name: str = "provider"

    @abc.abstractmethod
    async def quote(
        self, pickup: Location, dropoff: Location, items: ItemCounts
    ) -> DeliveryQuote:
        """Quote one pickup-to-dropoff trip.

        Raises:
            QuoteError: This trip cannot be quoted.
            ProviderUnavailableError: No trip can be quoted right now.
        """


class ManualQuoteProvider(QuoteProvider):
    name = "manual"

    async def quote(
        self, pickup: Location, dropoff: Location, items: ItemCounts
    ) -> DeliveryQuote:
        price, miles = _distance_priced(pickup, dropoff, MANUAL_BASE_FEE, MANUAL_PER_MILE)
        return DeliveryQuote(price=price, provider=self.name, distance_miles=miles)


class MockQuoteProvider(QuoteProvider):
    name = "mock"

    async def quote(
        self, pickup: Location, dropoff: Location, items: ItemCounts
    ) -> DeliveryQuote:
        price, miles = _distance_priced(pickup, dropoff, MOCK_BASE_FEE, MOCK_PER_MILE)
        return DeliveryQuote(price=price, provider=self.name, distance_miles=miles)


class LiveQuoteProvider(QuoteProvider):
    """Adapter from a live delivery API client to ``QuoteProvider``."""

    def __init__(
        self,
        client: DeliveryClient,
        breaker: Optional["CircuitBreaker"] = None,
    ) -> None:
        self.client = client
        self.name = client.name
        self.breaker = breaker

    async def quote(
        self, pickup: Location, dropoff: Location, items: ItemCounts
    ) -> DeliveryQuote:
        async def _call():
            return await self.client.get_quote(pickup, dropoff, items)

        try:
            if self.breaker is not None:
                result = await self.breaker.call(_call)
            else:
                result = await _call()
        except ProviderConfigError as exc:
            raise ProviderUnavailableError(str(exc), provider=self.name) from exc
        except DeliveryProviderError as exc:
            raise QuoteError(str(exc), provider=self.name) from exc

        miles = haversine_miles(
            pickup.latitude, pickup.longitude, dropoff.latitude, dropoff.longitude
        )
        return DeliveryQuote(
            price=result.price,
            provider=self.name,
            provider_quote_id=result.quote_id,
            distance_miles=miles,
        )
