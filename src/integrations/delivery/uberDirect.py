"""
Uber Direct quote client
========================

OAuth2 client-credentials flow (``eats.deliveries`` scope). The access
token is cached per client instance until five minutes before it expires.
Quotes come back with ``fee`` in cents and ``id`` as the quote id.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from typing import Any, Callable, Optional

import httpx

from src.integrations.delivery.base import (
    DEFAULT_PHONE_NUMBER,
    DeliveryProviderError,
    ItemCounts,
    Location,
    ProviderConfigError,
    ProviderQuote,
    cents_to_dollars,
    request_with_retry,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "uber"

_TOKEN_SCOPE = "eats.deliveries"
_TOKEN_REFRESH_MARGIN_SECONDS = 300


class UberDirectClient:
    name = PROVIDER_NAME

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        customer_id: str,
        *,
        base_url: str = "https://api.uber.com/v1",
        auth_url: str = "https://auth.uber.com/oauth/v2/token",
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._customer_id = customer_id
        self._base_url = base_url.rstrip("/")
        self._auth_url = auth_url
        self._http = http_client or httpx.AsyncClient()
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "UberDirectClient":
        return cls(
            settings.uber_client_id,
            settings.uber_client_secret,
            settings.uber_customer_id,
            base_url=settings.uber_base_url,
            auth_url=settings.uber_auth_url,
            **kwargs,
        )

    def _ensure_credentials(self) -> None:
        if not (self._client_id and self._client_secret and self._customer_id):
            raise ProviderConfigError(
                "Uber credentials not configured", provider=PROVIDER_NAME
            )

    def _basic_credentials(self) -> str:
        raw = f"{self._client_id}:{self._client_secret}".encode()
        return base64.b64encode(raw).decode()

    async def get_access_token(self) -> str:
        """Return a cached token, fetching a new one when it is near expiry.

        Concurrent callers on a cold cache share a single token request.
        """
        self._ensure_credentials()
        async with self._token_lock:
            now = self._clock()
            if self._token and self._token_expires_at > now:
                return self._token
            return await self._refresh_token(now)

    async def _refresh_token(self, now: float) -> str:
        data = await request_with_retry(
            self._http,
            "POST",
            self._auth_url,
            provider=PROVIDER_NAME,
            headers={"Authorization": f"Basic {self._basic_credentials()}"},
            data={
                "grant_type": "client_credentials",
                "scope": _TOKEN_SCOPE,
            },
        )
        token = data.get("access_token")
        if not token:
            raise ProviderConfigError(
                "Uber OAuth response missing access_token",
                provider=PROVIDER_NAME,
                raw=data,
            )

        expires_in = float(data.get("expires_in", 0))
        self._token = token
        self._token_expires_at = now + expires_in - _TOKEN_REFRESH_MARGIN_SECONDS
        logger.info("Uber access token refreshed, valid for %.0fs", expires_in)
        return token

    async def get_quote(
        self, pickup: Location, dropoff: Location, items: ItemCounts
    ) -> ProviderQuote:
        token = await self.get_access_token()
        body = {
            "pickup_address": pickup.address.one_line(),
            "dropoff_address": dropoff.address.one_line(),
            "pickup_latitude": pickup.latitude,
            "pickup_longitude": pickup.longitude,
            "dropoff_latitude": dropoff.latitude,
            "dropoff_longitude": dropoff.longitude,
            "pickup_phone_number": pickup.phone or DEFAULT_PHONE_NUMBER,
            "dropoff_phone_number": dropoff.phone or DEFAULT_PHONE_NUMBER,
        }

        data = await request_with_retry(
            self._http,
            "POST",
            f"{self._base_url}/customers/{self._customer_id}/delivery_quotes",
            provider=PROVIDER_NAME,
            headers={"Authorization": f"Bearer {token}"},
            json_body=body,
        )

        if data.get("fee") is None:
            raise DeliveryProviderError(
                "Uber quote response missing fee", provider=PROVIDER_NAME, raw=data
            )

        return ProviderQuote(
            provider=PROVIDER_NAME,
            price=cents_to_dollars(data["fee"]),
            quote_id=data.get("id"),
            currency=(data.get("currency_type") or data.get("currency") or "usd").lower(),
            raw=data,
        )

    async def aclose(self) -> None:
        await self._http.aclose()
