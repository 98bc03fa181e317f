"""ShareGrant and PublicLink models — per-user grants and public link tokens.

Both reference a resource by ``(resource_type, resource_id)``.  This is a
weak reference: there is no foreign key across the two resource tables,
so lookups pick the table explicitly from ``resource_type``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

RESOURCE_FILE = "file"
RESOURCE_FOLDER = "folder"
RESOURCE_TYPES = (RESOURCE_FILE, RESOURCE_FOLDER)

ROLE_VIEWER = "viewer"
ROLE_EDITOR = "editor"
SHARE_ROLES = (ROLE_VIEWER, ROLE_EDITOR)


class ShareGrantBase(SQLModel):
    """Base fields for a share grant. Subclass with ``table=True`` for a concrete table.

    Concrete tables must carry a unique constraint on
    ``(resource_type, resource_id, target_user_id)`` for upserts to work.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    resource_type: str = Field(index=True)
    resource_id: str = Field(index=True)
    target_user_id: str = Field(index=True)
    role: str = Field(default=ROLE_VIEWER)
    created_by: str = Field(index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class ShareGrant(ShareGrantBase, table=True):
    """Default share grant table — ``cumulus_share_grants``."""

    __tablename__ = "cumulus_share_grants"
    __table_args__ = (
        UniqueConstraint(
            "resource_type",
            "resource_id",
            "target_user_id",
            name="uq_cumulus_share_grants_target",
        ),
    )


class PublicLinkBase(SQLModel):
    """Base fields for a public link. Subclass with ``table=True`` for a concrete table."""

    token: str = Field(primary_key=True)
    resource_type: str
    resource_id: str = Field(index=True)
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    created_by: str = Field(index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class PublicLink(PublicLinkBase, table=True):
    """Default public link table — ``cumulus_public_links``."""

    __tablename__ = "cumulus_public_links"
