"""
DoorDash Drive quote client
===========================

Requests are authenticated with a short-lived HS256 JWT:
- header ``dd-ver: DD-JWT-V1``
- claims ``aud=doordash``, ``iss=<developer id>``, ``kid=<key id>``,
  ``iat`` and ``exp`` (five minutes)
- signed with the base64-decoded signing secret
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
import uuid
from typing import Any, Callable, Optional

import httpx
import jwt

from src.integrations.delivery.base import (
    DeliveryProviderError,
    ItemCounts,
    Location,
    ProviderConfigError,
    ProviderQuote,
    cents_to_dollars,
    request_with_retry,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "doordash"

_JWT_TTL_SECONDS = 300


def _decode_secret(secret: str) -> bytes:
    padded = secret.replace("-", "+").replace("_", "/")
    padded += "=" * (-len(padded) % 4)
    try:
        return base64.b64decode(padded)
    except (binascii.Error, ValueError) as exc:
        raise ProviderConfigError(
            "DoorDash signing secret is not valid base64", provider=PROVIDER_NAME
        ) from exc


class DoorDashDriveClient:
    name = PROVIDER_NAME

    def __init__(
        self,
        developer_id: str,
        key_id: str,
        signing_secret: str,
        *,
        base_url: str = "https://openapi.doordash.com",
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._developer_id = developer_id
        self._key_id = key_id
        self._signing_secret = signing_secret
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient()
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "DoorDashDriveClient":
        return cls(
            settings.doordash_developer_id,
            settings.doordash_key_id,
            settings.doordash_signing_secret,
            base_url=settings.doordash_base_url,
            **kwargs,
        )

    def build_jwt(self) -> str:
        if not (self._developer_id and self._key_id and self._signing_secret):
            raise ProviderConfigError(
                "DoorDash credentials not configured", provider=PROVIDER_NAME
            )

        now = int(self._clock())
        payload = {
            "aud": "doordash",
            "iss": self._developer_id,
            "kid": self._key_id,
            "exp": now + _JWT_TTL_SECONDS,
            "iat": now,
        }
        return jwt.encode(
            payload,
            _decode_secret(self._signing_secret),
            algorithm="HS256",
            headers={"dd-ver": "DD-JWT-V1"},
        )

    async def get_quote(
        self, pickup: Location, dropoff: Location, items: ItemCounts
    ) -> ProviderQuote:
        token = self.build_jwt()
        body: dict[str, Any] = {
            "external_delivery_id": f"quote_{uuid.uuid4().hex}",
            "pickup_address": pickup.address.one_line(),
            "dropoff_address": dropoff.address.one_line(),
        }
        if pickup.phone:
            body["pickup_phone_number"] = pickup.phone
        if dropoff.phone:
            body["dropoff_phone_number"] = dropoff.phone
        if dropoff.name:
            body["dropoff_business_name"] = dropoff.name

        data = await request_with_retry(
            self._http,
            "POST",
            f"{self._base_url}/drive/v2/quotes",
            provider=PROVIDER_NAME,
            headers={"Authorization": f"Bearer {token}"},
            json_body=body,
        )

        if data.get("fee") is None:
            raise DeliveryProviderError(
                "DoorDash quote response missing fee", provider=PROVIDER_NAME, raw=data
            )

        return ProviderQuote(
            provider=PROVIDER_NAME,
            price=cents_to_dollars(data["fee"]),
            quote_id=data.get("external_delivery_id") or body["external_delivery_id"],
            currency=(data.get("currency") or "usd").lower(),
            raw=data,
        )

    async def aclose(self) -> None:
        await self._http.aclose()
