"""
Pricing API routes
==================

  POST /api/v1/pricing/estimate   -- Price breakdown for explicit order modifiers
  POST /api/v1/pricing/quotes     -- Delivery quotes from the configured provider
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from src.api.deps import PricingConfigDep, QuoteProviderDep
from src.api.schemas.pricing import (
    DeliveryQuoteOut,
    PriceBreakdownOut,
    PriceEstimateRequest,
    QuoteRequest,
    QuotesOut,
)
from src.core.config import settings
from src.services.pricingEngine import calculate_price_with_subsidies
from src.services.quoteAggregator import get_quotes_with_fallback
from src.services.quoteProviders import Destination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.post(
    "/estimate",
    response_model=PriceBreakdownOut,
    summary="Price a pickup",
    description=(
        "Computes the itemised price for a base delivery cost and order "
        "modifiers, stacking any charity and company subsidies."
    ),
)
async def estimate_price(
    body: PriceEstimateRequest,
    config: PricingConfigDep,
) -> PriceBreakdownOut:
    try:
        breakdown = calculate_price_with_subsidies(
            body.base_cost,
            is_rush=body.is_rush,
            tip=body.tip,
            charity_subsidy_pct=body.charity_subsidy_pct,
            company_subsidy_pct=body.company_subsidy_pct,
            service_fee_pct=body.service_fee_pct,
            state=body.state,
            bag_count=body.bag_count,
            box_count=body.box_count,
            days_in_advance=body.days_in_advance,
            config=config,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )
    return PriceBreakdownOut.model_validate(breakdown)


@router.post(
    "/quotes",
    response_model=QuotesOut,
    summary="Quote delivery to several destinations",
    description=(
        "Quotes every destination through the configured provider. Failed "
        "destinations, or all of them if the provider is down, fall back "
        "to distance-based estimates flagged with is_fallback."
    ),
)
async def get_quotes(
    body: QuoteRequest,
    provider: QuoteProviderDep,
) -> QuotesOut:
    destinations = [
        Destination(id=d.id, location=d.location.to_location())
        for d in body.destinations
    ]
    quotes = await get_quotes_with_fallback(
        provider,
        body.pickup.to_location(),
        destinations,
        body.to_items(),
        batch_size=settings.quote_batch_size,
        batch_delay=settings.quote_batch_delay_seconds,
    )
    return QuotesOut(
        provider=provider.name,
        quotes={
            key: DeliveryQuoteOut.model_validate(quote)
            for key, quote in quotes.items()
        },
    )
