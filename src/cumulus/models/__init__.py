"""SQLModel database models for Cumulus."""

from cumulus.models.files import File, FileBase
from cumulus.models.folders import Folder, FolderBase
from cumulus.models.shares import (
    RESOURCE_FILE,
    RESOURCE_FOLDER,
    RESOURCE_TYPES,
    ROLE_EDITOR,
    ROLE_VIEWER,
    SHARE_ROLES,
    PublicLink,
    PublicLinkBase,
    ShareGrant,
    ShareGrantBase,
)
from cumulus.models.users import ROLE_ADMIN, ROLE_USER, User, UserBase

__all__ = [
    "RESOURCE_FILE",
    "RESOURCE_FOLDER",
    "RESOURCE_TYPES",
    "ROLE_ADMIN",
    "ROLE_EDITOR",
    "ROLE_USER",
    "ROLE_VIEWER",
    "SHARE_ROLES",
    "File",
    "FileBase",
    "Folder",
    "FolderBase",
    "PublicLink",
    "PublicLinkBase",
    "ShareGrant",
    "ShareGrantBase",
    "User",
    "UserBase",
]
