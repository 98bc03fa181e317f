"""SearchService — case-insensitive name search over folders and files."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from cumulus.db import SchemaCapabilities
from cumulus.dialect import savepoint
from cumulus.models.files import File
from cumulus.models.folders import Folder
from cumulus.types import SearchResults
from cumulus.utils import escape_like

from ._common import owned_conditions

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cumulus.models.files import FileBase
    from cumulus.models.folders import FolderBase

logger = logging.getLogger(__name__)


class SearchService:
    def __init__(
        self,
        file_model: type[FileBase] = File,
        folder_model: type[FolderBase] = Folder,
        capabilities: SchemaCapabilities | None = None,
    ) -> None:
        self._file_model = file_model
        self._folder_model = folder_model
        self._capabilities = capabilities or SchemaCapabilities()

    async def search(self, session: AsyncSession, owner_id: str, term: str | None) -> SearchResults:
        """Substring match on names.  Each type is queried independently."""
        term = (term or "").strip()
        if not term:
            return SearchResults()

        pattern = f"%{escape_like(term.lower())}%"
        return SearchResults(
            folders=await self._search_model(session, self._folder_model, owner_id, pattern),
            files=await self._search_model(session, self._file_model, owner_id, pattern),
        )

    async def _search_model(
        self,
        session: AsyncSession,
        model: Any,
        owner_id: str,
        pattern: str,
    ) -> list[Any]:
        try:
            async with savepoint(session):
                result = await session.execute(
                    select(model)
                    .where(
                        func.lower(model.name).like(pattern, escape="\\"),
                        *owned_conditions(model, owner_id, self._capabilities),
                    )
                    .order_by(model.name.asc())
                )
                return list(result.scalars().all())
        except SQLAlchemyError:
            logger.error("Search over %s failed", model.__tablename__, exc_info=True)
            return []
