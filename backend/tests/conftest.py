"""
Shared fixtures: in-memory SQLite database, the app with its request session
bound to it, authenticated clients and the Shopify API double.
"""
import os
from collections.abc import AsyncGenerator

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-chars")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key-at-least-32-characters")
os.environ.setdefault("SHOPIFY_API_KEY", "test-shopify-key")
os.environ.setdefault("SHOPIFY_API_SECRET", "test-shopify-secret")
os.environ.setdefault("SITE_URL", "http://localhost:3000")
os.environ.setdefault("ENVIRONMENT", "development")

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from retentionos.core.database import Base, get_db_session
from retentionos.core.security import create_access_token, encrypt_token
from retentionos.models.account import Account
from retentionos.models.connection import Connection
from retentionos.repositories.account import AccountRepository
from retentionos.repositories.connection import ConnectionRepository
from shopify_fakes import TEST_ACCESS_TOKEN, TEST_SHOP, TEST_USER_ID, FakeShopify


@pytest.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
def app(db_session: AsyncSession) -> FastAPI:
    """Application whose request session is the test session."""
    from retentionos.main import create_app

    test_app = create_app()

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    test_app.dependency_overrides[get_db_session] = override_get_db_session
    return test_app


@pytest.fixture
def client() -> TestClient:
    """Synchronous client, for endpoints that do not touch the database."""
    from retentionos.main import create_app

    return TestClient(create_app())


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def user_token() -> str:
    return create_access_token({"sub": TEST_USER_ID})


@pytest.fixture
def auth_headers(user_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
async def account(db_session: AsyncSession) -> Account:
    account, _ = await AccountRepository(db_session).get_or_create(TEST_USER_ID)
    await db_session.commit()
    return account


@pytest.fixture
async def connection(db_session: AsyncSession) -> Connection:
    conn = await ConnectionRepository(db_session).activate(
        owner_id=TEST_USER_ID,
        platform_domain=TEST_SHOP,
        access_token_encrypted=encrypt_token(TEST_ACCESS_TOKEN),
        scopes="read_customers,read_orders",
    )
    await db_session.commit()
    return conn


@pytest.fixture
def fake_shopify() -> FakeShopify:
    return FakeShopify()
