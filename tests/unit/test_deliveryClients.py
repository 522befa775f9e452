"""
Unit tests for the live delivery provider clients.

HTTP is served by ``httpx.MockTransport`` so request shapes, auth headers,
price parsing and retry behaviour are exercised without a network.
"""

import asyncio
import base64
import json
import time
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs

import httpx
import jwt
import pytest

from src.integrations.delivery.base import (
    MAX_RETRIES,
    Address,
    DeliveryProviderError,
    ItemCounts,
    Location,
    ProviderConfigError,
    cents_to_dollars,
    request_with_retry,
)
from src.integrations.delivery.doordashDrive import DoorDashDriveClient
from src.integrations.delivery.roadie import RoadieClient, extract_price
from src.integrations.delivery.uberDirect import UberDirectClient

DROPOFF = Location(
    latitude=30.2772,
    longitude=-97.7431,
    address=Address(street="1 Main St", city="Austin", state="TX", zip_code="78701"),
    phone="+15125550199",
    name="Goodwill Central",
)

SIGNING_SECRET_BYTES = b"0123456789abcdef0123456789abcdef"
SIGNING_SECRET = base64.b64encode(SIGNING_SECRET_BYTES).decode()


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return httpx.Response(
            response.status_code, headers=response.headers, content=response.content
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


# ---------------------------------------------------------------------------
# request_with_retry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRequestWithRetry:

    async def test_returns_json(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True}))
        async with recorder.client() as client:
            data = await request_with_retry(client, "GET", "https://x.test/a", provider="x")
        assert data == {"ok": True}

    async def test_retries_server_errors_then_succeeds(self):
        recorder = Recorder(
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json={"ok": True}),
        )
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            async with recorder.client() as client:
                data = await request_with_retry(
                    client, "GET", "https://x.test/a", provider="x"
                )
        assert data == {"ok": True}
        assert len(recorder.requests) == 3
        assert [c.args[0] for c in mock_sleep.await_args_list] == [0.5, 1.0]

    async def test_gives_up_after_max_retries(self):
        recorder = Recorder(httpx.Response(500))
        with patch("asyncio.sleep", new_callable=AsyncMock):
            async with recorder.client() as client:
                with pytest.raises(DeliveryProviderError):
                    await request_with_retry(
                        client, "GET", "https://x.test/a", provider="x"
                    )
        assert len(recorder.requests) == MAX_RETRIES

    async def test_retries_connection_errors(self):
        recorder = Recorder(
            httpx.ConnectError("refused"),
            httpx.Response(200, json={"ok": True}),
        )
        with patch("asyncio.sleep", new_callable=AsyncMock):
            async with recorder.client() as client:
                data = await request_with_retry(
                    client, "GET", "https://x.test/a", provider="x"
                )
        assert data == {"ok": True}

    async def test_client_error_not_retried(self):
        recorder = Recorder(httpx.Response(422, text="bad address"))
        async with recorder.client() as client:
            with pytest.raises(DeliveryProviderError) as exc_info:
                await request_with_retry(client, "GET", "https://x.test/a", provider="x")
        assert exc_info.value.status == 422
        assert not isinstance(exc_info.value, ProviderConfigError)
        assert len(recorder.requests) == 1

    async def test_auth_failure_is_config_error(self):
        recorder = Recorder(httpx.Response(401))
        async with recorder.client() as client:
            with pytest.raises(ProviderConfigError):
                await request_with_retry(client, "GET", "https://x.test/a", provider="x")


def test_cents_to_dollars():
    assert cents_to_dollars(1234) == Decimal("12.34")
    assert cents_to_dollars("5") == Decimal("0.05")


# ---------------------------------------------------------------------------
# Uber Direct
# ---------------------------------------------------------------------------


def _uber_client(recorder: Recorder, clock=time.time) -> UberDirectClient:
    return UberDirectClient(
        "client-id",
        "client-secret",
        "cust-1",
        base_url="https://api.uber.test/v1",
        auth_url="https://auth.uber.test/oauth/v2/token",
        http_client=recorder.client(),
        clock=clock,
    )


def _uber_handler(token_calls: list, quote_requests: list):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "auth.uber.test":
            token_calls.append(request)
            return httpx.Response(
                200, json={"access_token": f"tok-{len(token_calls)}", "expires_in": 3600}
            )
        quote_requests.append(request)
        return httpx.Response(
            200, json={"id": "dqt_1", "fee": 1234, "currency_type": "USD"}
        )

    return handler


@pytest.mark.asyncio
class TestUberDirectClient:

    async def test_quote(self, pickup, items):
        token_calls, quote_requests = [], []
        client = UberDirectClient(
            "client-id",
            "client-secret",
            "cust-1",
            base_url="https://api.uber.test/v1",
            auth_url="https://auth.uber.test/oauth/v2/token",
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(_uber_handler(token_calls, quote_requests))
            ),
        )

        quote = await client.get_quote(pickup, DROPOFF, items)
        await client.aclose()

        assert quote.price == Decimal("12.34")
        assert quote.quote_id == "dqt_1"
        assert quote.currency == "usd"

        token_request = token_calls[0]
        expected = base64.b64encode(b"client-id:client-secret").decode()
        assert token_request.headers["Authorization"] == f"Basic {expected}"
        form = parse_qs(token_request.content.decode())
        assert form["grant_type"] == ["client_credentials"]
        assert form["scope"] == ["eats.deliveries"]

        quote_request = quote_requests[0]
        assert quote_request.url.path == "/v1/customers/cust-1/delivery_quotes"
        assert quote_request.headers["Authorization"] == "Bearer tok-1"
        body = json.loads(quote_request.content)
        assert body["dropoff_phone_number"] == "+15125550199"

    async def test_token_cached_until_near_expiry(self, pickup, items):
        token_calls, quote_requests = [], []
        now = [1_000_000.0]
        client = UberDirectClient(
            "client-id",
            "client-secret",
            "cust-1",
            base_url="https://api.uber.test/v1",
            auth_url="https://auth.uber.test/oauth/v2/token",
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(_uber_handler(token_calls, quote_requests))
            ),
            clock=lambda: now[0],
        )

        await client.get_quote(pickup, DROPOFF, items)
        await client.get_quote(pickup, DROPOFF, items)
        assert len(token_calls) == 1

        # Refreshed five minutes before the hour is up
        now[0] += 3600 - 300
        await client.get_quote(pickup, DROPOFF, items)
        assert len(token_calls) == 2
        assert quote_requests[-1].headers["Authorization"] == "Bearer tok-2"
        await client.aclose()

    async def test_concurrent_quotes_share_one_token_request(self, pickup, items):
        token_calls, quote_requests = [], []
        sync_handler = _uber_handler(token_calls, quote_requests)

        async def handler(request: httpx.Request) -> httpx.Response:
            # Yield so every caller reaches the cold cache before a token lands
            await asyncio.sleep(0)
            return sync_handler(request)

        client = UberDirectClient(
            "client-id",
            "client-secret",
            "cust-1",
            base_url="https://api.uber.test/v1",
            auth_url="https://auth.uber.test/oauth/v2/token",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        quotes = await asyncio.gather(
            *(client.get_quote(pickup, DROPOFF, items) for _ in range(5))
        )
        await client.aclose()

        assert len(quotes) == 5
        assert len(token_calls) == 1
        assert all(r.headers["Authorization"] == "Bearer tok-1" for r in quote_requests)

    async def test_missing_credentials(self, pickup, items):
        recorder = Recorder(httpx.Response(200, json={}))
        client = UberDirectClient("", "", "", http_client=recorder.client())
        with pytest.raises(ProviderConfigError):
            await client.get_quote(pickup, DROPOFF, items)
        assert recorder.requests == []
        await client.aclose()

    async def test_missing_fee(self, pickup, items):
        recorder = Recorder(
            httpx.Response(200, json={"access_token": "tok", "expires_in": 3600}),
            httpx.Response(200, json={"id": "dqt_1"}),
        )
        client = _uber_client(recorder)
        with pytest.raises(DeliveryProviderError):
            await client.get_quote(pickup, DROPOFF, items)
        await client.aclose()


# ---------------------------------------------------------------------------
# DoorDash Drive
# ---------------------------------------------------------------------------


def _doordash_client(recorder: Recorder, secret: str = SIGNING_SECRET) -> DoorDashDriveClient:
    return DoorDashDriveClient(
        "dev-1",
        "key-1",
        secret,
        base_url="https://openapi.doordash.test",
        http_client=recorder.client(),
    )


@pytest.mark.asyncio
class TestDoorDashDriveClient:

    async def test_jwt_claims_and_header(self):
        client = _doordash_client(Recorder(httpx.Response(200, json={})))
        token = client.build_jwt()
        await client.aclose()

        header = jwt.get_unverified_header(token)
        assert header["dd-ver"] == "DD-JWT-V1"
        assert header["alg"] == "HS256"

        claims = jwt.decode(
            token, SIGNING_SECRET_BYTES, algorithms=["HS256"], audience="doordash"
        )
        assert claims["iss"] == "dev-1"
        assert claims["kid"] == "key-1"
        assert claims["exp"] - claims["iat"] == 300

    async def test_quote(self, pickup, items):
        recorder = Recorder(
            httpx.Response(
                200,
                json={"external_delivery_id": "quote_abc", "fee": 975, "currency": "USD"},
            )
        )
        client = _doordash_client(recorder)
        quote = await client.get_quote(pickup, DROPOFF, items)
        await client.aclose()

        assert quote.price == Decimal("9.75")
        assert quote.quote_id == "quote_abc"

        request = recorder.requests[0]
        assert request.url.path == "/drive/v2/quotes"
        assert request.headers["Authorization"].startswith("Bearer ")
        body = json.loads(request.content)
        assert body["external_delivery_id"].startswith("quote_")
        assert body["dropoff_address"] == "1 Main St Austin, TX 78701"
        assert body["dropoff_business_name"] == "Goodwill Central"

    async def test_missing_credentials(self, pickup, items):
        recorder = Recorder(httpx.Response(200, json={}))
        client = _doordash_client(recorder, secret="")
        with pytest.raises(ProviderConfigError):
            await client.get_quote(pickup, DROPOFF, items)
        assert recorder.requests == []
        await client.aclose()


# ---------------------------------------------------------------------------
# Roadie
# ---------------------------------------------------------------------------


class TestExtractPrice:

    def test_price_in_dollars(self):
        assert extract_price({"price": 18.5}) == Decimal("18.50")

    def test_fee_in_cents(self):
        assert extract_price({"fee": 1850}) == Decimal("18.50")

    def test_nested_quote_price(self):
        assert extract_price({"quote": {"price": "18.5"}}) == Decimal("18.50")

    def test_missing_price(self):
        with pytest.raises(DeliveryProviderError):
            extract_price({"id": 1})


@pytest.mark.asyncio
class TestRoadieClient:

    async def test_quote(self, pickup):
        recorder = Recorder(httpx.Response(200, json={"id": 42, "price": 21.0}))
        client = RoadieClient(
            "tok", base_url="https://connect.roadie.test/v1", http_client=recorder.client()
        )
        quote = await client.get_quote(pickup, DROPOFF, ItemCounts(bags=5, boxes=2))
        await client.aclose()

        assert quote.price == Decimal("21.00")
        assert quote.quote_id == "42"

        request = recorder.requests[0]
        assert request.url.path == "/v1/estimates"
        assert request.headers["Authorization"] == "Bearer tok"
        body = json.loads(request.content)
        assert body["items"][0]["value"] == 230
        assert body["delivery_location"]["address"]["zip"] == "78701"

    async def test_empty_load_rejected_without_request(self, pickup):
        recorder = Recorder(httpx.Response(200, json={"price": 1}))
        client = RoadieClient("tok", http_client=recorder.client())
        with pytest.raises(DeliveryProviderError):
            await client.get_quote(pickup, DROPOFF, ItemCounts())
        assert recorder.requests == []
        await client.aclose()

    async def test_missing_token(self, pickup, items):
        client = RoadieClient("", http_client=Recorder(httpx.Response(200)).client())
        with pytest.raises(ProviderConfigError):
            await client.get_quote(pickup, DROPOFF, items)
        await client.aclose()
