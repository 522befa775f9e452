"""
Roadie estimate client
======================

Bearer-token authenticated ``POST /estimates``. The vehicle size is
derived from the bag/box counts. Depending on API version the price comes
back as ``price`` (dollars), ``fee`` (cents) or ``quote.price`` (dollars).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from src.integrations.delivery.base import (
    Address,
    DeliveryProviderError,
    ItemCounts,
    Location,
    ProviderConfigError,
    ProviderQuote,
    cents_to_dollars,
    request_with_retry,
)
from src.integrations.delivery.roadieSizeMapper import (
    build_roadie_items,
    map_to_roadie_size,
    validate_roadie_load,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "roadie"


def _format_address(address: Address) -> dict[str, str]:
    return {
        "street1": address.street,
        "city": address.city,
        "state": address.state,
        "zip": address.zip_code,
        "country": address.country or "US",
    }


def _format_location(location: Location) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "address": _format_address(location.address),
        "latitude": location.latitude,
        "longitude": location.longitude,
    }
    if location.name or location.phone:
        payload["contact"] = {
            "name": location.name or "",
            "phone": location.phone or "",
        }
    return payload


def extract_price(data: dict[str, Any]) -> Decimal:
    """Pull the dollar price out of a Roadie estimate response.

    Raises:
        DeliveryProviderError: If no recognised price field is present.
    """
    if data.get("price") is not None:
        return Decimal(str(data["price"])).quantize(Decimal("0.01"))
    if data.get("fee") is not None:
        return cents_to_dollars(data["fee"])
    quote = data.get("quote") or {}
    if quote.get("price") is not None:
        return Decimal(str(quote["price"])).quantize(Decimal("0.01"))
    raise DeliveryProviderError(
        "Roadie estimate response missing price", provider=PROVIDER_NAME, raw=data
    )


class RoadieClient:
    name = PROVIDER_NAME

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = "https://connect.roadie.com/v1",
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient()

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "RoadieClient":
        return cls(
            settings.roadie_access_token,
            base_url=settings.roadie_base_url,
            **kwargs,
        )

    async def get_quote(
        self, pickup: Location, dropoff: Location, items: ItemCounts
    ) -> ProviderQuote:
        if not self._access_token:
            raise ProviderConfigError(
                "Roadie access token not configured", provider=PROVIDER_NAME
            )

        reason = validate_roadie_load(items.bags, items.boxes)
        if reason:
            raise DeliveryProviderError(reason, provider=PROVIDER_NAME)

        size = map_to_roadie_size(items.bags, items.boxes)
        logger.debug(
            "Roadie size %s for %d bags / %d boxes",
            size.size.value,
            items.bags,
            items.boxes,
        )

        data = await request_with_retry(
            self._http,
            "POST",
            f"{self._base_url}/estimates",
            provider=PROVIDER_NAME,
            headers={"Authorization": f"Bearer {self._access_token}"},
            json_body={
                "items": build_roadie_items(items.bags, items.boxes),
                "pickup_location": _format_location(pickup),
                "delivery_location": _format_location(dropoff),
            },
        )

        return ProviderQuote(
            provider=PROVIDER_NAME,
            price=extract_price(data),
            quote_id=str(data["id"]) if data.get("id") is not None else None,
            raw=data,
        )

    async def aclose(self) -> None:
        await self._http.aclose()
