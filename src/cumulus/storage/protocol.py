"""ObjectStore protocol — the collaborator contract for blob storage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class StoredObject:
    """One entry of an object-store listing."""

    name: str
    path: str
    size: int | None = None


@runtime_checkable
class ObjectStore(Protocol):
    """Minimal blob store used by the file and trash services.

    Implementations raise ``StorageError`` on backend failures and
    ``ObjectNotFoundError`` when signing a URL for a missing object.
    """

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Write *data* at *path*; never overwrites an existing object."""
        ...

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        """Return a read URL for *path* valid for *ttl_seconds*."""
        ...

    async def list(self, prefix: str) -> list[StoredObject]:
        """List objects directly under *prefix*."""
        ...

    async def remove(self, paths: list[str]) -> None:
        """Delete every object in *paths*; missing objects are ignored."""
        ...

    async def close(self) -> None:
        """Release client resources."""
        ...
