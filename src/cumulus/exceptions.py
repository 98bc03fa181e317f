"""Custom exception hierarchy for the Cumulus storage backend."""

from __future__ import annotations


class CumulusError(Exception):
    """Base exception for all Cumulus errors."""


class ValidationError(CumulusError):
    """Raised when input is malformed or violates a structural rule."""


class AuthenticationError(CumulusError):
    """Raised when credentials or a session token cannot be verified."""


class ForbiddenError(CumulusError):
    """Raised when the acting user does not own the target resource."""


class NotFoundError(CumulusError):
    """Raised when no matching row (or blob) exists."""


class StorageError(CumulusError):
    """Raised on object-store failures (upload, signed URL, fetch)."""


class ObjectNotFoundError(StorageError):
    """Raised by an object store when the requested object does not exist."""


class PersistenceError(CumulusError):
    """Raised when a database write or read fails unexpectedly."""


class ConnectivityError(PersistenceError):
    """Raised when the database cannot be reached or rejects credentials.

    ``kind`` is one of ``"dns"``, ``"refused"``, ``"auth"`` or ``"timeout"``
    and ``hint`` is a human-readable diagnostic for operators.
    """

    def __init__(self, message: str, *, kind: str, hint: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.hint = hint

    def __str__(self) -> str:
        return f"{self.args[0]} ({self.hint})"
