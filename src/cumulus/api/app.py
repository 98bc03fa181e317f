"""FastAPI application factory.

Gateways (database engine, object store, blob fetcher, mailer) are built
in the lifespan, or injected by the caller, and released at shutdown.
Services are constructed once the schema capabilities are known.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cumulus.config import Settings
from cumulus.db import Database
from cumulus.mail import ShareMailer
from cumulus.storage import BlobFetcher, create_object_store

from .context import build_context
from .responses import install_error_handlers
from .routes import auth, blobs, files, folders, health, search, shares, trash, users

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from cumulus.storage import ObjectStore

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    store: ObjectStore | None = None,
    fetcher: BlobFetcher | None = None,
    mailer: ShareMailer | None = None,
    create_tables: bool = True,
) -> FastAPI:
    """Build the API.  Unset collaborators are created from *settings*."""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db = database or Database.from_settings(settings)
        object_store = store or create_object_store(settings)
        blob_fetcher = fetcher or BlobFetcher(timeout=settings.fetch_timeout)
        share_mailer = mailer or ShareMailer.from_settings(settings)

        if create_tables:
            await db.create_all()
        await db.detect_capabilities()
        if not share_mailer.configured:
            logger.warning("SMTP not configured; share emails will be logged only")

        app.state.ctx = build_context(settings, db, object_store, blob_fetcher, share_mailer)
        logger.info("Cumulus API ready (dialect=%s, storage=%s)", db.dialect, settings.storage_backend)
        try:
            yield
        finally:
            await blob_fetcher.close()
            await object_store.close()
            await db.dispose()

    app = FastAPI(title="Cumulus", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    for module in (auth, users, folders, files, trash, search, shares, blobs, health):
        app.include_router(module.router, prefix=API_PREFIX)
    return app
