"""TrashService — list, restore, and permanently purge soft-deleted items."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlmodel import select

from cumulus.db import SchemaCapabilities
from cumulus.exceptions import NotFoundError, StorageError
from cumulus.models.files import File
from cumulus.models.folders import Folder
from cumulus.types import PurgeResult, SideEffect, TrashListing

from ._common import owned_conditions

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cumulus.models.files import FileBase
    from cumulus.models.folders import FolderBase
    from cumulus.storage import ObjectStore
    from cumulus.types import ResourceRef

logger = logging.getLogger(__name__)


class TrashService:
    """Stateless trash operations over the folder and file tables."""

    def __init__(
        self,
        store: ObjectStore,
        file_model: type[FileBase] = File,
        folder_model: type[FolderBase] = Folder,
        capabilities: SchemaCapabilities | None = None,
    ) -> None:
        self._store = store
        self._file_model = file_model
        self._folder_model = folder_model
        self._capabilities = capabilities or SchemaCapabilities()

    def _model_for(self, ref: ResourceRef) -> type[FileBase] | type[FolderBase]:
        return self._file_model if ref.is_file else self._folder_model

    async def list(self, session: AsyncSession, owner_id: str) -> TrashListing:
        """Trashed folders and files of *owner_id*, newest first."""
        if not self._capabilities.soft_delete:
            return TrashListing()

        listing = TrashListing()
        for model, bucket in (
            (self._folder_model, listing.folders),
            (self._file_model, listing.files),
        ):
            result = await session.execute(
                select(model)
                .where(*owned_conditions(model, owner_id, self._capabilities, deleted=True))
                .order_by(model.created_at.desc())
            )
            bucket.extend(result.scalars().all())
        return listing

    async def _get_trashed(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
    ) -> FileBase | FolderBase:
        if not self._capabilities.soft_delete:
            raise NotFoundError(f"{ref.kind.capitalize()} not found in trash: {ref.id}")
        model = self._model_for(ref)
        result = await session.execute(
            select(model).where(
                model.id == ref.id,
                *owned_conditions(model, owner_id, self._capabilities, deleted=True),
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"{ref.kind.capitalize()} not found in trash: {ref.id}")
        return row

    async def restore(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
    ) -> FileBase | FolderBase:
        row = await self._get_trashed(session, owner_id, ref)
        row.is_deleted = False
        row.deleted_at = None
        await session.flush()
        return row

    async def purge(self, session: AsyncSession, owner_id: str, ref: ResourceRef) -> PurgeResult:
        """Delete a trashed item for good.

        For files the blob is removed first; a storage failure is logged
        and recorded, and the row is deleted regardless.
        """
        row = await self._get_trashed(session, owner_id, ref)
        outcome = PurgeResult(ref=ref)

        if ref.is_file:
            storage_path = row.storage_path  # type: ignore[union-attr]
            try:
                await self._store.remove([storage_path])
                outcome.side_effects.append(SideEffect("blob_remove", True, storage_path))
            except StorageError as e:
                logger.warning("Failed to remove blob %s during purge: %s", storage_path, e)
                outcome.side_effects.append(SideEffect("blob_remove", False, str(e)))

        await session.delete(row)
        await session.flush()
        return outcome
