"""Unit tests for the CJ Dropshipping API client."""

import json

import httpx
import pytest

from dropship_service.exceptions import CJAPIError, CJAuthError, CJRateLimitError
from dropship_service.integrations.cj import CJClient, RateLimiter
from dropship_service.integrations.cj.client import CJTokens
from tests.conftest import cj_envelope


def sequence(*responses: httpx.Response):
    """Route that answers with each response in turn, repeating the last."""
    remaining = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return handler


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_token_sent_on_requests(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/product/getCategory"] = []

        await cj_client.get_categories()
        await cj_client.get_categories()

        assert len(fake_cj.calls("/authentication/getAccessToken")) == 1
        auth_body = json.loads(fake_cj.calls("/authentication/getAccessToken")[0].content)
        assert auth_body == {"email": "store@example.com", "apiKey": "test-key"}
        for request in fake_cj.calls("/product/getCategory"):
            assert request.headers["CJ-Access-Token"] == "access-1"

    @pytest.mark.asyncio
    async def test_expired_token_refreshed_before_call(self, cj_client: CJClient, fake_cj) -> None:
        cj_client._tokens = CJTokens(
            access_token="access-1",
            refresh_token="refresh-1",
            access_expires_at="2000-01-01T00:00:00+00:00",
        )
        fake_cj.routes["/authentication/refreshAccessToken"] = {
            "accessToken": "access-2",
            "accessTokenExpiryDate": "2099-01-01T00:00:00+00:00",
        }
        fake_cj.routes["/product/getCategory"] = []

        await cj_client.get_categories()

        refresh_calls = fake_cj.calls("/authentication/refreshAccessToken")
        assert len(refresh_calls) == 1
        assert json.loads(refresh_calls[0].content) == {"refreshToken": "refresh-1"}
        assert fake_cj.calls("/authentication/getAccessToken") == []
        assert fake_cj.calls("/product/getCategory")[0].headers["CJ-Access-Token"] == "access-2"
        assert cj_client._tokens.refresh_token == "refresh-1"

    @pytest.mark.asyncio
    async def test_failed_refresh_falls_back_to_login(self, cj_client: CJClient, fake_cj) -> None:
        cj_client._tokens = CJTokens(
            access_token="stale",
            refresh_token="refresh-old",
            access_expires_at="2000-01-01T00:00:00+00:00",
        )
        fake_cj.routes["/authentication/refreshAccessToken"] = sequence(
            httpx.Response(200, json=cj_envelope(code=1600001, message="Invalid refresh token")),
        )
        fake_cj.routes["/product/getCategory"] = []

        await cj_client.get_categories()

        assert len(fake_cj.calls("/authentication/refreshAccessToken")) == 1
        assert len(fake_cj.calls("/authentication/getAccessToken")) == 1
        assert fake_cj.calls("/product/getCategory")[0].headers["CJ-Access-Token"] == "access-1"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_settings, fake_cj) -> None:
        settings = test_settings.model_copy(update={"cj_api_key": ""})
        client = CJClient(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_cj)),
            rate_limiter=RateLimiter(0),
        )

        with pytest.raises(CJAuthError):
            await client.authenticate()
        assert fake_cj.requests == []

    @pytest.mark.asyncio
    async def test_reauthenticates_on_auth_error_code(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/product/getCategory"] = sequence(
            httpx.Response(200, json=cj_envelope(code=1600001, message="Invalid token")),
            httpx.Response(200, json=cj_envelope([{"categoryFirstId": "1"}])),
        )

        result = await cj_client.get_categories()

        assert result == [{"categoryFirstId": "1"}]
        assert len(fake_cj.calls("/authentication/getAccessToken")) == 2

    @pytest.mark.asyncio
    async def test_auth_error_after_reauthentication(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/product/getCategory"] = sequence(
            httpx.Response(200, json=cj_envelope(code=1600003, message="Token expired")),
        )

        with pytest.raises(CJAuthError):
            await cj_client.get_categories()

    @pytest.mark.asyncio
    async def test_connection_check(self, cj_client: CJClient, fake_cj) -> None:
        assert await cj_client.test_connection() is True

        fake_cj.routes["/authentication/getAccessToken"] = sequence(
            httpx.Response(200, json=cj_envelope(code=1600001, message="Bad key")),
        )
        cj_client._tokens = None
        assert await cj_client.test_connection() is False


class TestRetries:
    @pytest.mark.asyncio
    async def test_retries_server_errors(self, cj_client: CJClient, fake_cj, sleeper) -> None:
        fake_cj.routes["/product/getCategory"] = sequence(
            httpx.Response(502),
            httpx.Response(503),
            httpx.Response(200, json=cj_envelope([])),
        )

        assert await cj_client.get_categories() == []
        assert len(sleeper.calls) == 2

    @pytest.mark.asyncio
    async def test_backoff_grows_exponentially(self, cj_client: CJClient, fake_cj, sleeper) -> None:
        fake_cj.routes["/product/getCategory"] = sequence(
            httpx.Response(500),
            httpx.Response(500),
            httpx.Response(500),
            httpx.Response(200, json=cj_envelope([])),
        )

        await cj_client.get_categories()

        # base 1s doubled per attempt plus up to 1s of jitter
        assert 1.0 <= sleeper.calls[0] < 2.0
        assert 2.0 <= sleeper.calls[1] < 3.0
        assert 4.0 <= sleeper.calls[2] < 5.0

    @pytest.mark.asyncio
    async def test_retry_after_header(self, cj_client: CJClient, fake_cj, sleeper) -> None:
        fake_cj.routes["/product/getCategory"] = sequence(
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json=cj_envelope([])),
        )

        await cj_client.get_categories()

        assert sleeper.calls[0] >= 7.0

    @pytest.mark.asyncio
    async def test_rate_limited_after_retries(self, cj_client: CJClient, fake_cj, sleeper) -> None:
        fake_cj.routes["/product/getCategory"] = sequence(httpx.Response(429))

        with pytest.raises(CJRateLimitError):
            await cj_client.get_categories()

        assert len(fake_cj.calls("/product/getCategory")) == 4
        assert len(sleeper.calls) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_envelope_code(self, cj_client: CJClient, fake_cj, sleeper) -> None:
        fake_cj.routes["/product/getCategory"] = sequence(
            httpx.Response(200, json=cj_envelope(code=1600200, message="Too many requests")),
            httpx.Response(200, json=cj_envelope([])),
        )

        assert await cj_client.get_categories() == []
        assert len(sleeper.calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_after_retries(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/product/getCategory"] = sequence(httpx.Response(500))

        with pytest.raises(CJAPIError) as exc_info:
            await cj_client.get_categories()
        assert exc_info.value.http_status == 500

    @pytest.mark.asyncio
    async def test_network_errors_retried(self, cj_client: CJClient, fake_cj, sleeper) -> None:
        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fake_cj.routes["/product/getCategory"] = unreachable

        with pytest.raises(CJAPIError):
            await cj_client.get_categories()
        assert len(sleeper.calls) == 3

    @pytest.mark.asyncio
    async def test_business_error_not_retried(self, cj_client: CJClient, fake_cj, sleeper) -> None:
        fake_cj.routes["/product/query"] = sequence(
            httpx.Response(200, json=cj_envelope(code=1600100, message="Param error")),
        )

        with pytest.raises(CJAPIError) as exc_info:
            await cj_client.get_product("P1")

        assert exc_info.value.code == 1600100
        assert exc_info.value.message == "Param error"
        assert sleeper.calls == []


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_search_products_params(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/product/list"] = {
            "pageNum": 2,
            "pageSize": 200,
            "total": 1,
            "list": [{"pid": "P1"}],
        }

        result = await cj_client.search_products(page=2, size=500, keyword="lamp", category_id="C1")

        params = fake_cj.calls("/product/list")[0].url.params
        assert params["pageNum"] == "2"
        assert params["pageSize"] == "200"
        assert params["productNameEn"] == "lamp"
        assert params["categoryId"] == "C1"
        assert result == {"page": 2, "size": 200, "total": 1, "list": [{"pid": "P1"}]}

    @pytest.mark.asyncio
    async def test_get_product_missing(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/product/query"] = sequence(httpx.Response(200, json=cj_envelope(None)))

        with pytest.raises(CJAPIError):
            await cj_client.get_product("P404")

    @pytest.mark.asyncio
    async def test_set_webhooks(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/webhook/set"] = True

        await cj_client.set_webhooks("https://shop.example.com/api/v1/webhooks/cj")

        body = json.loads(fake_cj.calls("/webhook/set")[0].content)
        assert set(body) == {"product", "stock", "order", "logistics"}
        assert body["order"] == {
            "type": "ENABLE",
            "callbackUrls": ["https://shop.example.com/api/v1/webhooks/cj"],
        }

    @pytest.mark.asyncio
    async def test_create_order(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/shopping/order/createOrderV2"] = {"orderId": "CJ-100"}

        data = await cj_client.create_order({"orderNumber": "1"})

        assert data == {"orderId": "CJ-100"}
        assert fake_cj.calls("/shopping/order/createOrderV2")[0].method == "POST"


    @pytest.mark.asyncio
    async def test_calculate_freight(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/logistic/freightCalculate"] = [
            {"logisticName": "CJPacket", "logisticPrice": 4.2, "logisticAging": "7-12"}
        ]

        options = await cj_client.calculate_freight(
            start_country_code="CN",
            end_country_code="US",
            products=[{"vid": "VID-1", "quantity": 2}],
        )

        assert options[0]["logisticName"] == "CJPacket"
        body = json.loads(fake_cj.calls("/logistic/freightCalculate")[0].content)
        assert body == {
            "startCountryCode": "CN",
            "endCountryCode": "US",
            "products": [{"vid": "VID-1", "quantity": 2}],
        }

    @pytest.mark.asyncio
    async def test_get_tracking(self, cj_client: CJClient, fake_cj) -> None:
        fake_cj.routes["/logistic/trackInfo"] = [{"trackingNumber": "TRK1", "trackingStatus": "In transit"}]

        events = await cj_client.get_tracking("TRK1")

        assert events[0]["trackingStatus"] == "In transit"
        request = fake_cj.calls("/logistic/trackInfo")[0]
        assert request.method == "GET"
        assert request.url.params["trackNumber"] == "TRK1"


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_spaces_calls(self) -> None:
        waits: list[float] = []

        async def record(seconds: float) -> None:
            waits.append(seconds)

        limiter = RateLimiter(2.0, clock=lambda: 0.0, sleep=record)

        for _ in range(3):
            await limiter.acquire()

        assert waits == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_no_wait_after_interval(self) -> None:
        now = [0.0]
        waits: list[float] = []

        async def record(seconds: float) -> None:
            waits.append(seconds)

        limiter = RateLimiter(1.0, clock=lambda: now[0], sleep=record)
        await limiter.acquire()
        now[0] = 1.5
        await limiter.acquire()

        assert waits == []

    def test_tier_rates(self) -> None:
        assert RateLimiter.for_tier("free").interval == 1.0
        assert RateLimiter.for_tier("prime").interval == 0.25
        assert RateLimiter.for_tier("unknown").interval == 1.0
