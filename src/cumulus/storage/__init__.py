"""Object storage gateway: protocol, backends, and signed-URL fetcher."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .fetcher import BlobFetcher
from .local import LocalObjectStore
from .protocol import ObjectStore, StoredObject

if TYPE_CHECKING:
    from cumulus.config import Settings


def create_object_store(settings: Settings) -> ObjectStore:
    """Build the store selected by ``settings.storage_backend``."""
    if settings.storage_backend == "s3":
        from .s3 import S3ObjectStore

        return S3ObjectStore.from_settings(settings)
    if settings.storage_backend == "local":
        return LocalObjectStore(
            settings.storage_root,
            bucket=settings.storage_bucket,
            base_url=settings.public_base_url,
            secret=settings.jwt_secret,
        )
    raise ValueError(
        f"Unknown STORAGE_BACKEND {settings.storage_backend!r}. Must be 'local' or 's3'."
    )


__all__ = [
    "BlobFetcher",
    "LocalObjectStore",
    "ObjectStore",
    "StoredObject",
    "create_object_store",
]
