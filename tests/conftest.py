"""Shared fixtures: an API client over a throwaway SQLite database."""

import asyncio
import os

# Settings are read at import time; point them away from MySQL / Redis / Jaeger
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SOCIAL_BACKEND", "memory")
os.environ.setdefault("OTEL_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pinboard.database import Base, get_db
from pinboard.dependencies import get_social_store
from pinboard.main import app
from pinboard.social.backends import InMemoryMembershipBackend
from pinboard.social.store import SocialToggleStore


async def _create_tables(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def membership_scope() -> dict[str, str]:
    """The persisted blobs behind the API's social store."""
    return {}


@pytest.fixture
def social_store(membership_scope: dict[str, str]) -> SocialToggleStore:
    return SocialToggleStore(InMemoryMembershipBackend(membership_scope))


@pytest.fixture
def client(tmp_path, social_store: SocialToggleStore):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'pinboard.db'}", poolclass=NullPool
    )
    asyncio.run(_create_tables(engine))
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_social_store] = lambda: social_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        asyncio.run(engine.dispose())
