"""Stateless resource services.  Each takes an ``AsyncSession`` per call."""

from cumulus.services.files import FileService, UploadBlob
from cumulus.services.folders import FolderService
from cumulus.services.search import SearchService
from cumulus.services.sharing import SharingService, coerce_role, normalize_role
from cumulus.services.trash import TrashService

__all__ = [
    "FileService",
    "FolderService",
    "SearchService",
    "SharingService",
    "TrashService",
    "UploadBlob",
    "coerce_role",
    "normalize_role",
]
