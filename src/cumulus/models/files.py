"""File model — metadata for a blob held in the object store.

Provides ``FileBase`` (non-table) and ``File`` (concrete table).
Subclass ``FileBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per deployment.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FileBase(SQLModel):
    """Base fields for a stored file. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str
    storage_path: str = Field(index=True, unique=True)
    size: int = Field(default=0)
    mime_type: str = Field(default="application/octet-stream")
    owner_id: str = Field(index=True)
    folder_id: str | None = Field(default=None, index=True)
    is_deleted: bool = Field(default=False)
    deleted_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class File(FileBase, table=True):
    """Default file table — ``cumulus_files``."""

    __tablename__ = "cumulus_files"
