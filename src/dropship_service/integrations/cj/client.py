"""Async CJ Dropshipping API client.

Handles access-token authentication, per-tier request spacing, and retries
with exponential backoff for network errors, HTTP 429/5xx and CJ's own
rate-limit envelope code.
"""

import asyncio
import random
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx
import structlog

from dropship_service.config import Settings, get_settings
from dropship_service.exceptions import CJAPIError, CJAuthError, CJRateLimitError
from dropship_service.infrastructure.redis import CacheService, get_redis_client
from shared.constants import (
    CJ_AUTH_ERROR_CODES,
    CJ_MAX_PAGE_SIZE,
    CJ_RATE_LIMIT_CODE,
    CJ_SUCCESS_CODE,
    CJ_TIER_RATE_LIMITS,
    CJ_TOKEN_CACHE_KEY,
)

logger = structlog.get_logger()

TOKEN_CACHE_TTL_SECONDS = 14 * 24 * 3600
WEBHOOK_TOPICS = ("product", "stock", "order", "logistics")

Sleep = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Spaces calls at least 1/rate seconds apart across concurrent callers."""

    def __init__(
        self,
        requests_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._next_allowed = 0.0

    @classmethod
    def for_tier(cls, tier: str, **kwargs: Any) -> "RateLimiter":
        return cls(CJ_TIER_RATE_LIMITS.get(tier, CJ_TIER_RATE_LIMITS["free"]), **kwargs)

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            wait = self._next_allowed - now
            if wait > 0:
                await self._sleep(wait)
            self._next_allowed = max(now, self._next_allowed) + self.interval


@dataclass
class CJTokens:
    access_token: str
    refresh_token: str | None = None
    access_expires_at: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if not self.access_expires_at:
            return False
        try:
            expires = datetime.fromisoformat(self.access_expires_at)
        except ValueError:
            return False
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return (now or datetime.now(timezone.utc)) >= expires


def _retry_after_seconds(response: httpx.Response) -> float:
    value = response.headers.get("Retry-After")
    if not value:
        return 0.0
    try:
        return max(float(value), 0.0)
    except ValueError:
        return 0.0


def _is_success(body: dict[str, Any]) -> bool:
    if "code" in body and body["code"] is not None:
        return body["code"] == CJ_SUCCESS_CODE
    return bool(body.get("result") or body.get("success"))


class CJClient:
    """Typed wrapper around the CJ Dropshipping REST API (api2.0/v1)."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        cache: CacheService | None = None,
        http_client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.cj_api_base_url.rstrip("/")
        self.cache = cache or CacheService(None)
        self._http = http_client or httpx.AsyncClient(timeout=self.settings.cj_timeout_seconds)
        self._owns_http = http_client is None
        self.rate_limiter = rate_limiter or RateLimiter.for_tier(self.settings.cj_tier, sleep=sleep)
        self._sleep = sleep
        self._tokens: CJTokens | None = None
        self._token_lock = asyncio.Lock()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self) -> CJTokens:
        """Obtain a fresh access token with email + API key."""
        if not self.settings.cj_credentials_configured:
            raise CJAuthError("CJ credentials are not configured")

        try:
            data = await self._request(
                "POST",
                "/authentication/getAccessToken",
                json_body={"email": self.settings.cj_email, "apiKey": self.settings.cj_api_key},
                authenticated=False,
            )
        except (CJAuthError, CJRateLimitError):
            raise
        except CJAPIError as e:
            if e.code is None:
                raise
            raise CJAuthError(
                f"CJ authentication failed: {e.message}", code=e.code, request_id=e.request_id
            ) from e

        tokens = self._tokens_from_data(data)
        await self._store_tokens(tokens)
        logger.info("CJ access token obtained", expires_at=tokens.access_expires_at)
        return tokens

    async def refresh_access_token(self) -> CJTokens:
        """Refresh the access token, falling back to a full login."""
        if not self._tokens or not self._tokens.refresh_token:
            return await self.authenticate()

        try:
            data = await self._request(
                "POST",
                "/authentication/refreshAccessToken",
                json_body={"refreshToken": self._tokens.refresh_token},
                authenticated=False,
            )
        except CJRateLimitError:
            raise
        except CJAPIError as e:
            logger.warning("CJ token refresh failed, re-authenticating", error=e.message)
            return await self.authenticate()

        tokens = self._tokens_from_data(data, previous=self._tokens)
        await self._store_tokens(tokens)
        return tokens

    async def _ensure_token(self) -> str:
        async with self._token_lock:
            if self._tokens is None:
                cached = await self.cache.get(CJ_TOKEN_CACHE_KEY)
                if cached and cached.get("access_token"):
                    self._tokens = CJTokens(**cached)

            if self._tokens is None:
                self._tokens = await self.authenticate()
            elif self._tokens.is_expired():
                self._tokens = await self.refresh_access_token()
            return self._tokens.access_token

    async def _invalidate_tokens(self) -> None:
        self._tokens = None
        await self.cache.delete(CJ_TOKEN_CACHE_KEY)

    async def _store_tokens(self, tokens: CJTokens) -> None:
        self._tokens = tokens
        await self.cache.set(CJ_TOKEN_CACHE_KEY, asdict(tokens), ttl_seconds=TOKEN_CACHE_TTL_SECONDS)

    @staticmethod
    def _tokens_from_data(data: Any, previous: CJTokens | None = None) -> CJTokens:
        if not isinstance(data, dict) or not data.get("accessToken"):
            raise CJAuthError("CJ authentication response did not contain an access token")
        return CJTokens(
            access_token=data["accessToken"],
            refresh_token=data.get("refreshToken") or (previous.refresh_token if previous else None),
            access_expires_at=data.get("accessTokenExpiryDate"),
        )

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _backoff(self, attempt: int, retry_after: float = 0.0) -> None:
        base = self.settings.cj_backoff_base_seconds
        backoff = min(base * (2**attempt), self.settings.cj_backoff_max_seconds)
        wait = max(retry_after, backoff) + random.uniform(0, base)
        logger.warning("CJ request retry scheduled", attempt=attempt + 1, wait_seconds=round(wait, 2))
        await self._sleep(wait)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        authenticated: bool = True,
    ) -> Any:
        """Send a request and unwrap CJ's {code, result, message, data} envelope."""
        url = f"{self.base_url}{path}"
        max_retries = self.settings.cj_max_retries
        attempt = 0
        reauthenticated = False

        while True:
            headers = {"Accept": "application/json"}
            if authenticated:
                headers["CJ-Access-Token"] = await self._ensure_token()

            await self.rate_limiter.acquire()
            try:
                response = await self._http.request(
                    method, url, params=params, json=json_body, headers=headers
                )
            except httpx.TransportError as e:
                if attempt < max_retries:
                    await self._backoff(attempt)
                    attempt += 1
                    continue
                raise CJAPIError(f"CJ request failed: {e}") from e

            status = response.status_code
            if status == 429 or status >= 500:
                if attempt < max_retries:
                    await self._backoff(attempt, _retry_after_seconds(response))
                    attempt += 1
                    continue
                if status == 429:
                    raise CJRateLimitError(
                        f"CJ API still rate-limiting after {max_retries} retries", http_status=status
                    )
                raise CJAPIError(f"CJ API returned HTTP {status}", http_status=status)

            if status in (401, 403):
                if authenticated and not reauthenticated:
                    reauthenticated = True
                    await self._invalidate_tokens()
                    continue
                raise CJAuthError(f"CJ API rejected credentials (HTTP {status})", http_status=status)

            if status >= 400:
                raise CJAPIError(f"CJ API returned HTTP {status}", http_status=status)

            try:
                body = response.json()
            except ValueError as e:
                raise CJAPIError("CJ API returned invalid JSON", http_status=status) from e

            if not isinstance(body, dict):
                raise CJAPIError("CJ API returned an unexpected payload", http_status=status)

            if _is_success(body):
                return body.get("data")

            code = body.get("code")
            message = body.get("message") or "CJ request failed"
            request_id = body.get("requestId")

            if code in CJ_AUTH_ERROR_CODES:
                if authenticated and not reauthenticated:
                    reauthenticated = True
                    await self._invalidate_tokens()
                    continue
                raise CJAuthError(message, code=code, request_id=request_id)

            if code == CJ_RATE_LIMIT_CODE:
                if attempt < max_retries:
                    await self._backoff(attempt)
                    attempt += 1
                    continue
                raise CJRateLimitError(message, code=code, request_id=request_id)

            logger.warning("CJ API error", path=path, code=code, message=message)
            raise CJAPIError(message, code=code, request_id=request_id)

    # -------------------------------------------------------------------------
    # Products & Categories
    # -------------------------------------------------------------------------

    async def get_categories(self) -> list[dict[str, Any]]:
        """Three-level CJ category tree."""
        return await self._request("GET", "/product/getCategory") or []

    async def search_products(
        self,
        *,
        page: int = 1,
        size: int = 20,
        keyword: str | None = None,
        category_id: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        country_code: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "pageNum": max(page, 1),
            "pageSize": min(max(size, 1), CJ_MAX_PAGE_SIZE),
        }
        if keyword:
            params["productNameEn"] = keyword
        if category_id:
            params["categoryId"] = category_id
        if min_price is not None:
            params["minPrice"] = min_price
        if max_price is not None:
            params["maxPrice"] = max_price
        if country_code:
            params["countryCode"] = country_code

        data = await self._request("GET", "/product/list", params=params) or {}
        return {
            "page": data.get("pageNum", params["pageNum"]),
            "size": data.get("pageSize", params["pageSize"]),
            "total": data.get("total", 0),
            "list": data.get("list") or [],
        }

    async def get_product(self, pid: str) -> dict[str, Any]:
        data = await self._request("GET", "/product/query", params={"pid": pid})
        if not data:
            raise CJAPIError(f"CJ product {pid} not found")
        return data

    async def get_variants(self, pid: str) -> list[dict[str, Any]]:
        return await self._request("GET", "/product/variant/query", params={"pid": pid}) or []

    async def get_variant_stock(self, vid: str) -> list[dict[str, Any]]:
        """Per-warehouse stock entries for a variant."""
        return await self._request("GET", "/product/stock/queryByVid", params={"vid": vid}) or []

    # -------------------------------------------------------------------------
    # Orders & Logistics
    # -------------------------------------------------------------------------

    async def create_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = await self._request("POST", "/shopping/order/createOrderV2", json_body=payload)
        return data or {}

    async def get_order(self, order_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET", "/shopping/order/getOrderDetail", params={"orderId": order_id}
        )
        return data or {}

    async def calculate_freight(
        self,
        *,
        start_country_code: str,
        end_country_code: str,
        products: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        body = {
            "startCountryCode": start_country_code,
            "endCountryCode": end_country_code,
            "products": products,
        }
        return await self._request("POST", "/logistic/freightCalculate", json_body=body) or []

    async def get_tracking(self, track_number: str) -> list[dict[str, Any]]:
        return await self._request(
            "GET", "/logistic/trackInfo", params={"trackNumber": track_number}
        ) or []

    # -------------------------------------------------------------------------
    # Webhooks & Status
    # -------------------------------------------------------------------------

    async def set_webhooks(self, callback_url: str, enable: bool = True) -> Any:
        """Register (or cancel) the callback URL for every webhook topic."""
        topic_config = {
            "type": "ENABLE" if enable else "CANCEL",
            "callbackUrls": [callback_url] if enable else [],
        }
        body = {topic: dict(topic_config) for topic in WEBHOOK_TOPICS}
        return await self._request("POST", "/webhook/set", json_body=body)

    async def test_connection(self) -> bool:
        try:
            await self._ensure_token()
            return True
        except CJAPIError as e:
            logger.warning("CJ connection test failed", error=e.message)
            return False


# Global client, closed on shutdown
_cj_client: CJClient | None = None


async def get_cj_client() -> CJClient:
    """Dependency for FastAPI to get the shared CJ client."""
    global _cj_client
    if _cj_client is None:
        _cj_client = CJClient(get_settings(), cache=CacheService(await get_redis_client()))
    return _cj_client


async def close_cj_client() -> None:
    global _cj_client
    if _cj_client:
        await _cj_client.close()
        _cj_client = None
