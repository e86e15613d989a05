"""
Pytest configuration and fixtures for storefront tests.

Transactional behaviour is tested against a real SQLite database (one file
per test) so that conditional updates, rollbacks and concurrent sessions
behave like they do in production.
"""
import os
from decimal import Decimal
from unittest.mock import MagicMock, AsyncMock

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from storefront.core.database import Base, get_db  # noqa: E402
from storefront.core.security import create_access_token  # noqa: E402
from storefront.models import Product  # noqa: E402
from storefront.services.checkout import CheckoutService  # noqa: E402
from storefront.services.order_engine import OrderTransactionEngine  # noqa: E402


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine with foreign keys enforced."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def order_engine(session_factory) -> OrderTransactionEngine:
    return OrderTransactionEngine(session_factory)


@pytest.fixture
def checkout(order_engine) -> CheckoutService:
    return CheckoutService(engine=order_engine)


@pytest.fixture
def make_product(session_factory):
    """Insert and commit a product; returns its id."""

    async def _make_product(
        name: str = "Widget",
        price: str = "1000.00",
        stock: int = 10,
        category: str = None,
        description: str = None,
    ) -> int:
        async with session_factory() as session:
            product = Product(
                name=name,
                price=Decimal(price),
                stock=stock,
                category=category,
                description=description,
            )
            session.add(product)
            await session.commit()
            return product.id

    return _make_product


@pytest.fixture
def read_stock(session_factory):
    """Read a product's stock through a fresh session."""

    async def _read_stock(product_id: int) -> int:
        async with session_factory() as session:
            product = await session.get(Product, product_id)
            return product.stock

    return _read_stock


def auth_headers(user_id: int, role: str = "customer") -> dict:
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers():
    return auth_headers


@pytest.fixture
async def client(session_factory, checkout):
    """API client bound to the per-test database."""
    from storefront.api.deps import get_checkout_service
    from storefront.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_checkout_service] = lambda: checkout

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
