"""Request bodies.  Field names follow the public camelCase wire format."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

# ---------- Auth ----------


class SignUpRequest(BaseModel):
    email: str
    password: str
    name: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


# ---------- Folders / Files ----------


class CreateFolderRequest(BaseModel):
    name: str = ""
    parentId: str | None = None


class RenameRequest(BaseModel):
    name: str = ""


class MoveFolderRequest(BaseModel):
    parentId: str | None = None


class MoveFileRequest(BaseModel):
    folderId: str | None = None


class CopyFileRequest(BaseModel):
    folderId: str | None = None


# ---------- Trash ----------


class TrashTarget(BaseModel):
    type: str | None = None
    id: str | int | None = None


# ---------- Shares ----------


class GrantRequest(BaseModel):
    resourceType: str
    resourceId: str | int
    targetUserId: str
    role: str = "viewer"


class RevokeRequest(BaseModel):
    resourceType: str
    resourceId: str | int
    targetUserId: str


class EmailShareRequest(BaseModel):
    resourceType: str
    resourceId: str | int
    recipientEmails: list[str] = Field(default_factory=list)
    role: str | None = "viewer"


class LinkRequest(BaseModel):
    resourceType: str
    resourceId: str | int
    expiresAt: datetime | None = None
