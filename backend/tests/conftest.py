from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.db.session import configure_sqlite_engine, get_session, init_db
from domain_evolution.main import app
from domain_evolution.services import (
    CaptureService,
    DomainRegistry,
    EmbeddingCache,
    get_capture_service,
    get_domain_registry,
    get_embedding_cache,
    get_extractor,
    get_openai_service,
)

from helpers import FakeExtractor, FakeOpenAIService


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture()
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    # File-backed so background embedding sessions see the same database.
    test_engine = configure_sqlite_engine(
        create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'evolution.db'}",
            connect_args={"check_same_thread": False},
        )
    )
    await init_db(test_engine)
    try:
        yield test_engine
    finally:
        await test_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as test_session:
        yield test_session


@pytest.fixture()
def fake_openai() -> FakeOpenAIService:
    return FakeOpenAIService()


@pytest.fixture()
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture()
def cache(fake_openai: FakeOpenAIService) -> EmbeddingCache:
    return EmbeddingCache(fake_openai)


@pytest.fixture()
def registry() -> DomainRegistry:
    return DomainRegistry()


@pytest_asyncio.fixture()
async def capture_service(cache, session_factory) -> AsyncGenerator[CaptureService, None]:
    service = CaptureService(cache, session_factory)
    yield service
    await service.drain()


@pytest_asyncio.fixture()
async def client(
    session_factory,
    fake_openai,
    fake_extractor,
    cache,
    registry,
    capture_service,
) -> AsyncGenerator[AsyncClient, None]:
    async def _override_session():
        async with session_factory() as request_session:
            yield request_session

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_openai_service] = lambda: fake_openai
    app.dependency_overrides[get_extractor] = lambda: fake_extractor
    app.dependency_overrides[get_embedding_cache] = lambda: cache
    app.dependency_overrides[get_domain_registry] = lambda: registry
    app.dependency_overrides[get_capture_service] = lambda: capture_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()
