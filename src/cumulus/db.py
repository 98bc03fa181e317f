"""Database — async engine, session factory, and schema capability detection.

The engine (and its connection pool) is created once per process and
handed to the API layer; services never import a module-level engine.
"""

from __future__ import annotations

import logging
import socket
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from .dialect import enable_sqlite_savepoints, get_dialect
from .exceptions import ConnectivityError, CumulusError, PersistenceError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from sqlalchemy.engine import Result
    from sqlalchemy.ext.asyncio import AsyncEngine

    from .config import Settings

logger = logging.getLogger(__name__)


_DNS_MARKERS = ("getaddrinfo", "enotfound", "name or service not known", "nodename nor servname")
_REFUSED_MARKERS = ("connection refused", "econnrefused", "could not connect")
_AUTH_MARKERS = ("password authentication failed", "authentication failed", "invalid password")
_TIMEOUT_MARKERS = ("timeout expired", "timed out", "etimedout")

_HINTS = {
    "dns": "the database host name could not be resolved; check DATABASE_URL and network reachability",
    "refused": "the database host refused the connection; check the port and that the server is running",
    "auth": "the database rejected the credentials; check the user and password in DATABASE_URL",
    "timeout": "the database did not answer in time; check network reachability and DB_CONNECT_TIMEOUT",
}


def classify_connection_error(exc: BaseException) -> ConnectivityError | None:
    """Map a low-level failure to a ``ConnectivityError`` with a diagnostic hint.

    Walks the ``orig``/``__cause__`` chain so wrapped driver errors are
    recognized.  Returns ``None`` for failures unrelated to connectivity.
    """
    if isinstance(exc, ConnectivityError):
        return exc

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        kind = _classify_one(current)
        if kind is not None:
            return ConnectivityError(
                f"Database connection failed: {current}",
                kind=kind,
                hint=_HINTS[kind],
            )
        current = getattr(current, "orig", None) or current.__cause__
    return None


def _classify_one(exc: BaseException) -> str | None:
    if isinstance(exc, socket.gaierror):
        return "dns"
    if isinstance(exc, ConnectionRefusedError):
        return "refused"
    if isinstance(exc, TimeoutError):
        return "timeout"
    message = str(exc).lower()
    if any(marker in message for marker in _DNS_MARKERS):
        return "dns"
    if any(marker in message for marker in _REFUSED_MARKERS):
        return "refused"
    if any(marker in message for marker in _AUTH_MARKERS):
        return "auth"
    if any(marker in message for marker in _TIMEOUT_MARKERS):
        return "timeout"
    return None


def is_connectivity_failure(exc: BaseException) -> bool:
    """True when *exc* means the database is unreachable."""
    return classify_connection_error(exc) is not None


@dataclass
class SchemaCapabilities:
    """Which optional schema features are present, detected once at startup.

    Services take exactly one code path per capability instead of
    retrying queries when a column turns out to be missing.
    """

    soft_delete: bool = True
    public_links: bool = True

    @property
    def complete(self) -> bool:
        return self.soft_delete and self.public_links


class Database:
    """Owns the async engine and hands out sessions.

    ``session()`` commits on success and rolls back on error.  Driver
    failures that mean "unreachable" surface as ``ConnectivityError``;
    other SQLAlchemy failures surface as ``PersistenceError``.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        capabilities: SchemaCapabilities | None = None,
    ) -> None:
        self.engine = engine
        self.dialect = get_dialect(engine)
        enable_sqlite_savepoints(engine)
        self.capabilities = capabilities or SchemaCapabilities()
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        """Create the engine and pool described by *settings*."""
        url = settings.database_url
        kwargs: dict[str, Any] = {"echo": settings.db_echo, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            kwargs.update(
                pool_size=settings.db_pool_size,
                pool_recycle=settings.db_pool_recycle,
                pool_timeout=settings.db_connect_timeout,
            )
            if "asyncpg" in url:
                kwargs["connect_args"] = {"timeout": settings.db_connect_timeout}
        engine = create_async_engine(url, **kwargs)
        return cls(engine)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_all(self) -> None:
        """Create every SQLModel table that does not exist yet."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
        except (OperationalError, OSError) as e:
            raise self._translate(e) from e

    async def detect_capabilities(self) -> SchemaCapabilities:
        """Inspect the live schema and record which optional features exist."""
        from .models import File, Folder, PublicLink

        def _inspect(sync_conn: Any) -> SchemaCapabilities:
            inspector = inspect(sync_conn)
            tables = set(inspector.get_table_names())
            soft_delete = True
            for model in (Folder, File):
                name = model.__tablename__
                if name not in tables:
                    soft_delete = False
                    continue
                columns = {c["name"] for c in inspector.get_columns(name)}
                if "is_deleted" not in columns:
                    soft_delete = False
            return SchemaCapabilities(
                soft_delete=soft_delete,
                public_links=PublicLink.__tablename__ in tables,
            )

        try:
            async with self.engine.connect() as conn:
                caps = await conn.run_sync(_inspect)
        except (OperationalError, OSError) as e:
            raise self._translate(e) from e

        if not caps.soft_delete:
            logger.warning(
                "is_deleted column missing; deletes will be permanent and trash will be empty"
            )
        if not caps.public_links:
            logger.warning(
                "public link table missing; share links will be issued but not stored"
            )
        self.capabilities = caps
        return caps

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()

    # ------------------------------------------------------------------
    # Sessions and raw queries
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; commit on success, roll back on any exception."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except CumulusError:
                await session.rollback()
                raise
            except (SQLAlchemyError, OSError) as e:
                await session.rollback()
                raise self._translate(e) from e

    async def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> Result[Any]:
        """Run a parameterized SQL statement in its own transaction."""
        try:
            async with self.engine.begin() as conn:
                # AsyncConnection buffers rows, so the result outlives the connection.
                return await conn.execute(text(sql), dict(params or {}))
        except (SQLAlchemyError, OSError) as e:
            raise self._translate(e) from e

    async def ping(self) -> bool:
        """Return True if ``SELECT 1`` succeeds."""
        try:
            await self.execute("SELECT 1")
        except PersistenceError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    @staticmethod
    def _translate(exc: BaseException) -> PersistenceError:
        connectivity = classify_connection_error(exc)
        if connectivity is not None:
            return connectivity
        return PersistenceError(str(exc))
