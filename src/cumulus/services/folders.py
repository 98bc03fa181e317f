"""FolderService — owner-scoped folder tree CRUD with cycle-safe moves."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlmodel import select

from cumulus.db import SchemaCapabilities
from cumulus.exceptions import NotFoundError, ValidationError
from cumulus.models.folders import Folder

from ._common import MAX_FOLDER_DEPTH, owned_conditions

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cumulus.models.folders import FolderBase

logger = logging.getLogger(__name__)


class FolderService:
    """Stateless folder operations; a session is supplied per call.

    Every operation is scoped to the acting owner.  Writes flush but do
    not commit.
    """

    def __init__(
        self,
        folder_model: type[FolderBase] = Folder,
        capabilities: SchemaCapabilities | None = None,
        *,
        max_depth: int = MAX_FOLDER_DEPTH,
    ) -> None:
        self._folder_model = folder_model
        self._capabilities = capabilities or SchemaCapabilities()
        self._max_depth = max_depth

    async def get(self, session: AsyncSession, owner_id: str, folder_id: str) -> FolderBase:
        """Return *owner_id*'s live folder *folder_id* or raise ``NotFoundError``."""
        model = self._folder_model
        result = await session.execute(
            select(model).where(
                model.id == folder_id,
                *owned_conditions(model, owner_id, self._capabilities),
            )
        )
        folder = result.scalar_one_or_none()
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        return folder

    async def create(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        parent_id: str | None = None,
    ) -> FolderBase:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name is required")
        if parent_id is not None:
            try:
                await self.get(session, owner_id, parent_id)
            except NotFoundError:
                raise NotFoundError(f"Parent folder not found: {parent_id}") from None

        folder = self._folder_model(name=name, owner_id=owner_id, parent_id=parent_id)
        session.add(folder)
        await session.flush()
        return folder

    async def list(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None = None,
    ) -> list[FolderBase]:
        """Live folders directly under *parent_id* (``None`` = root), oldest first."""
        model = self._folder_model
        parent_clause = model.parent_id.is_(None) if parent_id is None else model.parent_id == parent_id
        result = await session.execute(
            select(model)
            .where(parent_clause, *owned_conditions(model, owner_id, self._capabilities))
            .order_by(model.created_at.asc())
        )
        return list(result.scalars().all())

    async def rename(
        self,
        session: AsyncSession,
        owner_id: str,
        folder_id: str,
        name: str,
    ) -> FolderBase:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name is required")
        folder = await self.get(session, owner_id, folder_id)
        folder.name = name
        await session.flush()
        return folder

    async def soft_delete(self, session: AsyncSession, owner_id: str, folder_id: str) -> FolderBase:
        """Move a folder to trash.  Children keep their parent reference.

        Without the soft-delete capability the row is removed outright.
        """
        folder = await self.get(session, owner_id, folder_id)
        if not self._capabilities.soft_delete:
            logger.warning("Soft delete unavailable; permanently deleting folder %s", folder_id)
            await session.delete(folder)
        else:
            folder.is_deleted = True
            folder.deleted_at = datetime.now(UTC)
        await session.flush()
        return folder

    async def move(
        self,
        session: AsyncSession,
        owner_id: str,
        folder_id: str,
        new_parent_id: str | None,
    ) -> FolderBase:
        """Re-parent a folder, refusing self-parenting and cycles.

        Moving to the current parent is a no-op success.
        """
        if new_parent_id == folder_id:
            raise ValidationError("Cannot move a folder into itself")

        folder = await self.get(session, owner_id, folder_id)
        if folder.parent_id == new_parent_id:
            return folder

        if new_parent_id is not None:
            await self.get(session, owner_id, new_parent_id)
            await self._check_not_descendant(session, folder_id, new_parent_id)

        folder.parent_id = new_parent_id
        await session.flush()
        return folder

    async def _check_not_descendant(
        self,
        session: AsyncSession,
        folder_id: str,
        candidate_parent_id: str,
    ) -> None:
        """Walk ancestors of *candidate_parent_id* to the root looking for *folder_id*."""
        model = self._folder_model
        current: str | None = candidate_parent_id
        depth = 0
        while current is not None:
            if current == folder_id:
                raise ValidationError("Cannot move a folder into one of its descendants")
            depth += 1
            if depth > self._max_depth:
                raise ValidationError("Folder tree is too deep or contains a cycle")
            result = await session.execute(select(model.parent_id).where(model.id == current))
            row = result.first()
            current = row[0] if row else None
