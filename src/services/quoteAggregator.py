"""
Quote aggregation
=================

Fans one pickup out to many destinations through a ``QuoteProvider``.

- Destinations are processed in batches (default 5) with a short pause
  between batches to stay under provider rate limits.
- Within a batch requests run concurrently and every request is allowed
  to settle; one failure never cancels its siblings.
- A destination that fails is priced by the fallback provider (the mock
  estimate by default) and flagged ``is_fallback``. With no fallback it is
  left out of the result.
- ``ProviderUnavailableError`` is not a per-destination failure and
  propagates; ``get_quotes_with_fallback`` keeps the quotes already
  settled and prices the rest with the mock estimate.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Optional, Sequence

from src.integrations.delivery.base import ItemCounts, Location
from src.services.circuitBreaker import breaker_from_settings
from src.services.quoteProviders import (
    DeliveryQuote,
    Destination,
    LiveQuoteProvider,
    ManualQuoteProvider,
    MockQuoteProvider,
    ProviderUnavailableError,
    QuoteProvider,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SECONDS = 0.5

_DEFAULT_FALLBACK = MockQuoteProvider()


async def _quote_one(
    provider: QuoteProvider,
    fallback: Optional[QuoteProvider],
    pickup: Location,
    destination: Destination,
    items: ItemCounts,
) -> Optional[DeliveryQuote]:
    try:
        return await provider.quote(pickup, destination.location, items)
    except ProviderUnavailableError:
        raise
    except Exception as exc:
        logger.warning(
            "Quote from %s failed for destination %s: %s",
            provider.name,
            destination.id,
            exc,
        )
        if fallback is None:
            return None

    quote = await fallback.quote(pickup, destination.location, items)
    return replace(quote, is_fallback=True)


async def _run_batches(
    provider: QuoteProvider,
    pickup: Location,
    destinations: Sequence[Destination],
    items: ItemCounts,
    results: dict[str, DeliveryQuote],
    *,
    batch_size: int,
    batch_delay: float,
    fallback_provider: Optional[QuoteProvider],
) -> None:
    """Fill ``results`` batch by batch.

    A batch is always settled completely before an outage is raised, so
    ``results`` holds every quote obtained up to that point.
    """
    for i in range(0, len(destinations), batch_size):
        if i > 0 and batch_delay > 0:
            await asyncio.sleep(batch_delay)

        batch = destinations[i : i + batch_size]
        settled = await asyncio.gather(
            *(
                _quote_one(provider, fallback_provider, pickup, dest, items)
                for dest in batch
            ),
            return_exceptions=True,
        )

        outage: Optional[ProviderUnavailableError] = None
        for dest, outcome in zip(batch, settled):
            if isinstance(outcome, ProviderUnavailableError):
                outage = outage or outcome
                continue
            if isinstance(outcome, BaseException):
                # Only reachable when the fallback itself failed
                logger.error(
                    "Fallback quote failed for destination %s: %s", dest.id, outcome
                )
                continue
            if outcome is not None:
                results[dest.id] = outcome

        if outage is not None:
            raise outage


async def get_delivery_quotes(
    provider: QuoteProvider,
    pickup: Location,
    destinations: Sequence[Destination],
    items: ItemCounts,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
    fallback_provider: Optional[QuoteProvider] = _DEFAULT_FALLBACK,
) -> dict[str, DeliveryQuote]:
    """Quote every destination, batch by batch.

    Returns:
        Mapping of destination id to quote. With a fallback provider every
        destination is present.

    Raises:
        ProviderUnavailableError: The provider cannot quote at all.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    results: dict[str, DeliveryQuote] = {}
    await _run_batches(
        provider,
        pickup,
        destinations,
        items,
        results,
        batch_size=batch_size,
        batch_delay=batch_delay,
        fallback_provider=fallback_provider,
    )

    logger.info(
        "Quoted %d/%d destinations via %s",
        len(results),
        len(destinations),
        provider.name,
    )
    return results


async def get_quotes_with_fallback(
    provider: QuoteProvider,
    pickup: Location,
    destinations: Sequence[Destination],
    items: ItemCounts,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
    fallback_provider: QuoteProvider = _DEFAULT_FALLBACK,
) -> dict[str, DeliveryQuote]:
    """Like ``get_delivery_quotes`` but never fails for provider outages.

    If the provider becomes unavailable, quotes already settled are kept
    and the remaining destinations are priced by ``fallback_provider``,
    flagged ``is_fallback``.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    results: dict[str, DeliveryQuote] = {}
    try:
        await _run_batches(
            provider,
            pickup,
            destinations,
            items,
            results,
            batch_size=batch_size,
            batch_delay=batch_delay,
            fallback_provider=fallback_provider,
        )
        return results
    except ProviderUnavailableError as exc:
        logger.warning(
            "Provider %s unavailable after %d quotes (%s); using %s estimates",
            provider.name,
            len(results),
            exc,
            fallback_provider.name,
        )

    remaining = [d for d in destinations if d.id not in results]
    estimates = await get_delivery_quotes(
        fallback_provider,
        pickup,
        remaining,
        items,
        batch_size=batch_size,
        batch_delay=0,
        fallback_provider=None,
    )
    results.update({key: replace(q, is_fallback=True) for key, q in estimates.items()})
    return results


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def select_quote_provider(settings: Any, **client_kwargs: Any) -> QuoteProvider:
    """Build the provider named by ``settings.quote_mode``.

    Raises:
        ValueError: Unknown quote mode.
    """
    mode = settings.quote_mode.strip().lower()

    if mode == "manual":
        return ManualQuoteProvider()
    if mode == "mock":
        return MockQuoteProvider()

    if mode == "uber":
        from src.integrations.delivery.uberDirect import UberDirectClient

        client = UberDirectClient.from_settings(settings, **client_kwargs)
    elif mode == "doordash":
        from src.integrations.delivery.doordashDrive import DoorDashDriveClient

        client = DoorDashDriveClient.from_settings(settings, **client_kwargs)
    elif mode == "roadie":
        from src.integrations.delivery.roadie import RoadieClient

        client = RoadieClient.from_settings(settings, **client_kwargs)
    else:
        raise ValueError(f"Unknown quote mode: {settings.quote_mode!r}")

    return LiveQuoteProvider(client, breaker=breaker_from_settings(mode, settings))
