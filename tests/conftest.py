"""Pytest configuration and fixtures"""
import asyncio
from typing import Any, Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.main import app
from app.core.database import Base, build_engine, get_db
from app.dependencies.rate_limit import get_rate_limiter
from app.models.user import User
from app.schemas.token import TokenCreate
from app.services.rate_limiter import RateLimiter
from app.services.sbom_parser import PackageRef
from app.services.storage_service import StorageError, get_artifact_store
from app.services.token_service import TokenService
from app.services.vulnerability_service import Finding, get_correlator


class FakeCorrelator:
    """Returns canned findings, or fails / stalls on demand."""

    def __init__(self) -> None:
        self.findings: list[Finding] = []
        self.error: Optional[Exception] = None
        self.delay: float = 0.0
        self.calls: list[list[PackageRef]] = []

    async def correlate(self, packages: list[PackageRef]) -> list[Finding]:
        self.calls.append(list(packages))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.findings)


class FakeArtifactStore:
    """In-memory artifact store; unconfigured unless a test says otherwise."""

    def __init__(self, bucket: str = "test-bucket") -> None:
        self.bucket = bucket
        self.configured = False
        self.fail = False
        self.objects: dict[str, Any] = {}
        self.deleted: list[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def put_sbom(self, document: Any, project_id: str, sbom_id: str) -> str:
        if self.fail:
            raise StorageError("upload failed")
        key = f"sboms/{project_id}/{sbom_id}.json"
        self.objects[key] = document
        return f"s3://{self.bucket}/{key}"

    async def delete_sbom(self, project_id: str, sbom_id: str) -> None:
        if self.fail:
            raise StorageError("delete failed")
        key = f"sboms/{project_id}/{sbom_id}.json"
        self.objects.pop(key, None)
        self.deleted.append(key)


@pytest_asyncio.fixture
async def test_db(tmp_path):
    """Create a file-backed test database (shared by the request and ledger sessions)"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session factory
    TestSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    limiter = RateLimiter(TestSessionLocal)

    # Override dependencies
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    yield TestSessionLocal

    # Cleanup
    app.dependency_overrides.clear()
    await engine.dispose()


@pytest_asyncio.fixture
async def fake_correlator(test_db):
    correlator = FakeCorrelator()
    app.dependency_overrides[get_correlator] = lambda: correlator
    return correlator


@pytest_asyncio.fixture
async def fake_store(test_db):
    store = FakeArtifactStore()
    app.dependency_overrides[get_artifact_store] = lambda: store
    return store


@pytest_asyncio.fixture
async def client(test_db, fake_correlator, fake_store):
    """Create test client"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def create_user(session_factory, email: str = "dev@example.com", name: str = "Dev") -> User:
    async with session_factory() as session:
        user = User(email=email, name=name, is_active=True)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def issue_raw_token(session_factory, user: User, name: str = "ci") -> str:
    async with session_factory() as session:
        created = await TokenService.issue_token(session, user, TokenCreate(name=name))
        return created.token


@pytest_asyncio.fixture
async def user(test_db):
    return await create_user(test_db)


@pytest_asyncio.fixture
async def api_token(test_db, user):
    return await issue_raw_token(test_db, user)


@pytest_asyncio.fixture
async def auth_headers(api_token):
    return {"Authorization": f"Bearer {api_token}"}


@pytest_asyncio.fixture
async def make_user(test_db):
    """Factory for additional users"""

    async def _make(email: str, name: str = "Other") -> User:
        return await create_user(test_db, email=email, name=name)

    return _make


@pytest_asyncio.fixture
async def make_token(test_db):
    """Factory issuing a raw API token for a user"""

    async def _make(owner: User, name: str = "ci") -> str:
        return await issue_raw_token(test_db, owner, name=name)

    return _make
