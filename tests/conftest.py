"""Shared fixtures for Cumulus tests."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from cumulus.db import SchemaCapabilities
from cumulus.dialect import enable_sqlite_savepoints
from cumulus.models import User
from cumulus.storage import BlobFetcher, LocalObjectStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

ALICE = "a11ce000-0000-4000-8000-000000000001"
BOB = "b0b00000-0000-4000-8000-000000000002"

BLOB_PREFIX = "/api/blobs/"


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    enable_sqlite_savepoints(eng)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session, rolled back after each test."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
def capabilities() -> SchemaCapabilities:
    return SchemaCapabilities()


@pytest.fixture
def store(tmp_path: Path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "objects", secret="test-secret")


def blob_handler(store: LocalObjectStore):
    """httpx handler serving signed local-store URLs straight from disk."""

    def handle(request: httpx.Request) -> httpx.Response:
        parts = urlsplit(str(request.url))
        if not parts.path.startswith(BLOB_PREFIX):
            return httpx.Response(404)
        path = unquote(parts.path[len(BLOB_PREFIX) :])
        if not store.verify_token(path, request.url.params.get("token", "")):
            return httpx.Response(403)
        target = store.bucket_dir / path
        if not target.is_file():
            return httpx.Response(404)
        return httpx.Response(200, content=target.read_bytes())

    return handle


@pytest.fixture
def blob_transport(store: LocalObjectStore) -> httpx.MockTransport:
    return httpx.MockTransport(blob_handler(store))


@pytest.fixture
async def fetcher(blob_transport: httpx.MockTransport) -> AsyncIterator[BlobFetcher]:
    client = httpx.AsyncClient(transport=blob_transport)
    yield BlobFetcher(client=client)
    await client.aclose()


@pytest.fixture
async def users(async_session: AsyncSession) -> dict[str, User]:
    """Two registered users: alice and bob."""
    alice = User(id=ALICE, email="alice@example.com", name="Alice")
    bob = User(id=BOB, email="bob@example.com", name="Bob")
    async_session.add_all([alice, bob])
    await async_session.flush()
    return {"alice": alice, "bob": bob}
