"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, AsyncIterator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dropship_service.config import Settings, get_settings
from dropship_service.infrastructure.database.connection import get_session
from dropship_service.infrastructure.database.models import (
    Base,
    Category,
    Product,
    ProductSource,
    ProductStatus,
    ProductVariant,
    Supplier,
    SupplierStatus,
    User,
)
from dropship_service.infrastructure.redis import CacheService, get_cache
from dropship_service.integrations.cj import CJClient, RateLimiter, get_cj_client
from dropship_service.main import create_app

CJ_BASE_URL = "https://cj.test/api2.0/v1"


def cj_envelope(data: Any = None, code: int = 200, message: str = "Success") -> dict[str, Any]:
    """Wrap data the way CJ does."""
    return {
        "code": code,
        "result": code == 200,
        "message": message,
        "data": data,
        "requestId": "req-test",
    }


class FakeCJ:
    """In-memory CJ API served through httpx.MockTransport.

    Routes map an API path (without the base path) to either response data,
    wrapped in a success envelope, or a callable returning an httpx.Response.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, Any] = {
            "/authentication/getAccessToken": {
                "accessToken": "access-1",
                "refreshToken": "refresh-1",
                "accessTokenExpiryDate": "2099-01-01T00:00:00+00:00",
            },
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(httpx.URL(CJ_BASE_URL).path)
        route = self.routes.get(path)
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=cj_envelope(route))

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path)]


class SleepRecorder:
    """Stands in for asyncio.sleep so retries do not slow tests down."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeRedis:
    """Dict-backed stand-in for the async Redis client."""

    def __init__(self) -> None:
        self.store: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self.store.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> None:
        self.store[key] = value

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)

    async def scan_iter(self, match: str) -> AsyncIterator[str]:
        prefix = match.rstrip("*")
        for key in list(self.store):
            if key.startswith(prefix):
                yield key

    async def ping(self) -> bool:
        return True


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        database_url_override="sqlite+aiosqlite://",
        cj_api_base_url=CJ_BASE_URL,
        cj_email="store@example.com",
        cj_api_key="test-key",
        cj_enabled=True,
        cj_max_retries=3,
        cj_backoff_base_seconds=1.0,
        cj_backoff_max_seconds=60,
        cj_webhook_secret="",
        default_margin_percent=50.0,
    )


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# =============================================================================
# CJ
# =============================================================================


@pytest.fixture
def fake_cj() -> FakeCJ:
    return FakeCJ()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def cj_client(
    test_settings: Settings, fake_cj: FakeCJ, sleeper: SleepRecorder
) -> AsyncGenerator[CJClient, None]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_cj))
    client = CJClient(
        test_settings,
        http_client=http_client,
        rate_limiter=RateLimiter(0),
        sleep=sleeper,
    )
    yield client
    await http_client.aclose()


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def app(test_settings: Settings, session_factory, cj_client: CJClient) -> Any:
    """Create test application."""

    async def get_test_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def get_test_cj_client() -> CJClient:
        return cj_client

    async def get_test_cache() -> CacheService:
        return CacheService(None)

    def get_test_settings() -> Settings:
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    app.dependency_overrides[get_session] = get_test_session
    app.dependency_overrides[get_cj_client] = get_test_cj_client
    app.dependency_overrides[get_cache] = get_test_cache
    return app


@pytest_asyncio.fixture
async def async_client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create asynchronous test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# =============================================================================
# Data builders
# =============================================================================
# Builders commit so rows are visible to the sessions opened by API requests.


@pytest_asyncio.fixture
async def cj_supplier(session: AsyncSession, test_settings: Settings) -> Supplier:
    supplier = Supplier(name=test_settings.cj_supplier_name, status=SupplierStatus.CONNECTED)
    session.add(supplier)
    await session.commit()
    return supplier


@pytest_asyncio.fixture
async def category(session: AsyncSession) -> Category:
    category = Category(name="Electronics", slug="electronics")
    session.add(category)
    await session.commit()
    return category


@pytest_asyncio.fixture
async def user(session: AsyncSession) -> User:
    user = User(email="alice@example.com", name="Alice")
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
def make_product(session: AsyncSession) -> Callable[..., Any]:
    """Build and save a product; keyword arguments override the defaults."""

    async def _make(**overrides: Any) -> Product:
        values: dict[str, Any] = {
            "name": "Wireless Earbuds",
            "price_cents": 2999,
            "stock": 10,
            "status": ProductStatus.ACTIVE,
            "source": ProductSource.MANUAL,
            "images": [],
        }
        values.update(overrides)
        product = Product(**values)
        session.add(product)
        await session.commit()
        return product

    return _make


@pytest.fixture
def make_cj_product(session: AsyncSession, make_product) -> Callable[..., Any]:
    """Build an imported CJ product with one variant."""

    async def _make(pid: str = "PID-1", vid: str = "VID-1", **overrides: Any) -> Product:
        values: dict[str, Any] = {
            "source": ProductSource.CJ_DROPSHIPPING,
            "cj_product_id": pid,
            "product_sku": f"SKU-{pid}",
            "original_price_cents": 1000,
            "margin_percent": 50.0,
            "price_cents": 1500,
            "external_category": "Earphones",
        }
        values.update(overrides)
        product = await make_product(**values)
        if vid:
            session.add(
                ProductVariant(
                    product_id=product.id,
                    cj_variant_id=vid,
                    price_cents=1000,
                    stock=product.stock,
                )
            )
            await session.commit()
        return product

    return _make
