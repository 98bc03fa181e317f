"""Cumulus: a cloud-storage backend.

Folders, files behind signed URLs, trash, sharing, and name search,
served as a JSON API.
"""

__version__ = "0.1.0"

from cumulus.config import Settings
from cumulus.db import Database, SchemaCapabilities
from cumulus.exceptions import (
    AuthenticationError,
    ConnectivityError,
    CumulusError,
    ForbiddenError,
    NotFoundError,
    ObjectNotFoundError,
    PersistenceError,
    StorageError,
    ValidationError,
)
from cumulus.identity import Identity, IdentityService
from cumulus.services import (
    FileService,
    FolderService,
    SearchService,
    SharingService,
    TrashService,
    UploadBlob,
)
from cumulus.types import (
    LinkInfo,
    PurgeResult,
    RecipientOutcome,
    ResourceRef,
    SearchResults,
    ShareByEmailResult,
    SideEffect,
    SignedUrl,
    TrashListing,
)

__all__ = [
    "AuthenticationError",
    "ConnectivityError",
    "CumulusError",
    "Database",
    "FileService",
    "FolderService",
    "ForbiddenError",
    "Identity",
    "IdentityService",
    "LinkInfo",
    "NotFoundError",
    "ObjectNotFoundError",
    "PersistenceError",
    "PurgeResult",
    "RecipientOutcome",
    "ResourceRef",
    "SchemaCapabilities",
    "SearchResults",
    "SearchService",
    "Settings",
    "ShareByEmailResult",
    "SharingService",
    "SideEffect",
    "SignedUrl",
    "StorageError",
    "TrashListing",
    "TrashService",
    "UploadBlob",
    "ValidationError",
]
