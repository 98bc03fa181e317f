"""FileService — uploads, listings, moves, copies, and signed read URLs.

Blobs go to the ``ObjectStore``; metadata goes to the files table.
Uploads and copies write the blob first, so a metadata failure leaves
an orphaned blob rather than a row without content.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from cumulus.db import SchemaCapabilities
from cumulus.exceptions import (
    ForbiddenError,
    NotFoundError,
    ObjectNotFoundError,
    PersistenceError,
    StorageError,
    ValidationError,
)
from cumulus.models.files import File
from cumulus.models.folders import Folder
from cumulus.types import SignedUrl
from cumulus.utils import build_storage_path, copy_name, detect_mime_type

from ._common import owned_conditions

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cumulus.models.files import FileBase
    from cumulus.models.folders import FolderBase
    from cumulus.storage import BlobFetcher, ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_SIGNED_URL_TTL = 60


@dataclass
class UploadBlob:
    """An uploaded file as received from the client."""

    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)


class FileService:
    """Stateless file operations; a session is supplied per call."""

    def __init__(
        self,
        store: ObjectStore,
        fetcher: BlobFetcher,
        file_model: type[FileBase] = File,
        folder_model: type[FolderBase] = Folder,
        capabilities: SchemaCapabilities | None = None,
        *,
        signed_url_ttl: int = DEFAULT_SIGNED_URL_TTL,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._file_model = file_model
        self._folder_model = folder_model
        self._capabilities = capabilities or SchemaCapabilities()
        self._signed_url_ttl = signed_url_ttl

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, session: AsyncSession, owner_id: str, file_id: str) -> FileBase:
        """Return *owner_id*'s live file *file_id* or raise ``NotFoundError``."""
        model = self._file_model
        result = await session.execute(
            select(model).where(
                model.id == file_id,
                *owned_conditions(model, owner_id, self._capabilities),
            )
        )
        file = result.scalar_one_or_none()
        if file is None:
            raise NotFoundError(f"File not found: {file_id}")
        return file

    async def _require_folder(self, session: AsyncSession, owner_id: str, folder_id: str) -> None:
        model = self._folder_model
        result = await session.execute(
            select(model.id).where(
                model.id == folder_id,
                *owned_conditions(model, owner_id, self._capabilities),
            )
        )
        if result.first() is None:
            raise NotFoundError(f"Folder not found: {folder_id}")

    async def list(
        self,
        session: AsyncSession,
        owner_id: str,
        folder_id: str | None = None,
    ) -> list[FileBase]:
        """Live files directly in *folder_id* (``None`` = root), newest first."""
        model = self._file_model
        folder_clause = model.folder_id.is_(None) if folder_id is None else model.folder_id == folder_id
        result = await session.execute(
            select(model)
            .where(folder_clause, *owned_conditions(model, owner_id, self._capabilities))
            .order_by(model.created_at.desc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upload(
        self,
        session: AsyncSession,
        owner_id: str,
        folder_id: str | None,
        blob: UploadBlob,
    ) -> FileBase:
        """Store *blob* and record its metadata."""
        filename = (blob.filename or "").strip()
        if not filename:
            raise ValidationError("No file provided")
        if folder_id is not None:
            await self._require_folder(session, owner_id, folder_id)

        mime_type = detect_mime_type(filename, blob.content_type)
        storage_path = build_storage_path(owner_id, folder_id, filename)
        await self._store.upload(storage_path, blob.content, mime_type)

        return await self._insert(
            session,
            name=filename,
            storage_path=storage_path,
            size=blob.size,
            mime_type=mime_type,
            owner_id=owner_id,
            folder_id=folder_id,
        )

    async def _insert(self, session: AsyncSession, **values: object) -> FileBase:
        file = self._file_model(**values)
        session.add(file)
        try:
            await session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Blob %s stored but metadata insert failed", values.get("storage_path"), exc_info=True
            )
            raise PersistenceError(f"Failed to save file metadata: {e}") from e
        return file

    async def soft_delete(self, session: AsyncSession, owner_id: str, file_id: str) -> FileBase:
        """Move a file to trash; without soft-delete support, delete the row."""
        file = await self.get(session, owner_id, file_id)
        if not self._capabilities.soft_delete:
            logger.warning("Soft delete unavailable; permanently deleting file %s", file_id)
            await session.delete(file)
        else:
            file.is_deleted = True
            file.deleted_at = datetime.now(UTC)
        await session.flush()
        return file

    async def rename(
        self,
        session: AsyncSession,
        owner_id: str,
        file_id: str,
        new_name: str,
    ) -> FileBase:
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValidationError("File name is required")
        file = await self.get(session, owner_id, file_id)
        file.name = new_name
        await session.flush()
        return file

    async def move(
        self,
        session: AsyncSession,
        owner_id: str,
        file_id: str,
        new_folder_id: str | None,
    ) -> FileBase:
        file = await self.get(session, owner_id, file_id)
        if file.folder_id == new_folder_id:
            raise ValidationError("File is already in this folder")
        if new_folder_id is not None:
            await self._require_folder(session, owner_id, new_folder_id)
        file.folder_id = new_folder_id
        await session.flush()
        return file

    async def copy(
        self,
        session: AsyncSession,
        owner_id: str,
        file_id: str,
        target_folder_id: str | None = None,
    ) -> FileBase:
        """Duplicate a file's blob and metadata as ``"{stem} (copy){ext}"``.

        The copy lands in *target_folder_id* when given, otherwise in the
        original's folder.  The original row is left untouched.
        """
        original = await self.get(session, owner_id, file_id)
        folder_id = target_folder_id if target_folder_id is not None else original.folder_id
        if target_folder_id is not None:
            await self._require_folder(session, owner_id, target_folder_id)

        url = await self._store.create_signed_url(original.storage_path, self._signed_url_ttl)
        data = await self._fetcher.fetch(url)

        name = copy_name(original.name)
        storage_path = build_storage_path(owner_id, folder_id, name)
        await self._store.upload(storage_path, data, original.mime_type)

        return await self._insert(
            session,
            name=name,
            storage_path=storage_path,
            size=original.size,
            mime_type=original.mime_type,
            owner_id=owner_id,
            folder_id=folder_id,
        )

    # ------------------------------------------------------------------
    # Signed URLs
    # ------------------------------------------------------------------

    async def get_signed_url(
        self,
        session: AsyncSession,
        owner_id: str,
        file_id: str,
    ) -> SignedUrl:
        """Issue a short-lived read URL for one of *owner_id*'s files."""
        model = self._file_model
        conditions = [model.id == file_id]
        if self._capabilities.soft_delete:
            conditions.append(model.is_deleted.is_(False))
        result = await session.execute(select(model).where(*conditions))
        file = result.scalar_one_or_none()
        if file is None:
            raise NotFoundError(f"File not found: {file_id}")
        if file.owner_id != owner_id:
            raise ForbiddenError("You do not have access to this file")

        try:
            url = await self._store.create_signed_url(file.storage_path, self._signed_url_ttl)
        except ObjectNotFoundError:
            raise NotFoundError("File not found in storage") from None
        except StorageError:
            if not await self._blob_exists(file.storage_path):
                raise NotFoundError("File not found in storage") from None
            raise
        return SignedUrl(url=url, expires_in=self._signed_url_ttl, file=file)

    async def _blob_exists(self, storage_path: str) -> bool:
        """Confirm a blob by listing its parent prefix."""
        parent, name = posixpath.split(storage_path)
        try:
            entries = await self._store.list(parent)
        except StorageError:
            logger.warning("Could not list %s to confirm blob", parent, exc_info=True)
            return True
        return any(entry.name == name for entry in entries)
