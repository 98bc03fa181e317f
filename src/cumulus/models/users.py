"""User model — local projection of identity-provider accounts."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class UserBase(SQLModel):
    """Base fields for a user record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str = Field(default="")
    password_hash: str | None = Field(default=None)
    role: str = Field(default=ROLE_USER)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class User(UserBase, table=True):
    """Default user table — ``cumulus_users``."""

    __tablename__ = "cumulus_users"
