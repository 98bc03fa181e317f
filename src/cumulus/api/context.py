"""AppContext — the gateways and services shared by every request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cumulus.identity import IdentityService
from cumulus.services import (
    FileService,
    FolderService,
    SearchService,
    SharingService,
    TrashService,
)

if TYPE_CHECKING:
    from cumulus.config import Settings
    from cumulus.db import Database
    from cumulus.mail import ShareMailer
    from cumulus.storage import BlobFetcher, ObjectStore


@dataclass
class AppContext:
    """Everything a request handler needs, attached to ``app.state.ctx``."""

    settings: Settings
    database: Database
    store: ObjectStore
    fetcher: BlobFetcher
    mailer: ShareMailer
    identity: IdentityService
    folders: FolderService
    files: FileService
    sharing: SharingService
    trash: TrashService
    search: SearchService


def build_context(
    settings: Settings,
    database: Database,
    store: ObjectStore,
    fetcher: BlobFetcher,
    mailer: ShareMailer,
) -> AppContext:
    """Wire services to the gateways using the detected schema capabilities."""
    caps = database.capabilities
    return AppContext(
        settings=settings,
        database=database,
        store=store,
        fetcher=fetcher,
        mailer=mailer,
        identity=IdentityService(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expires_in=settings.jwt_expires_in,
        ),
        folders=FolderService(capabilities=caps),
        files=FileService(
            store,
            fetcher,
            capabilities=caps,
            signed_url_ttl=settings.signed_url_ttl,
        ),
        sharing=SharingService(dialect=database.dialect, capabilities=caps),
        trash=TrashService(store, capabilities=caps),
        search=SearchService(capabilities=caps),
    )
