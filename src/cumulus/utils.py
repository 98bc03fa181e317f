"""Identifier, file-name, MIME and storage-path helpers."""

from __future__ import annotations

import base64
import mimetypes
import posixpath
import re
import secrets
import time
import uuid

from cumulus.exceptions import NotFoundError, ValidationError

DEFAULT_MIME_TYPE = "application/octet-stream"
PDF_MIME_TYPE = "application/pdf"

MAX_SANITIZED_LENGTH = 200
"""Maximum length of the sanitized stem inside a storage path."""

COPY_SUFFIX = " (copy)"

_SAFE_ASCII_RE = re.compile(r"^[a-zA-Z0-9._\s-]+$")
_SAFE_EXT_RE = re.compile(r"^\.[a-z0-9]{1,16}$")
_UNSAFE_CHARS_RE = re.compile(r'[<>:"|?*\x00-\x1f/\\]')
_COLLAPSE_RE = re.compile(r"[\s_]+")
_EDGE_RE = re.compile(r"^[._]+|[._]+$")


# =============================================================================
# Identifiers
# =============================================================================


def normalize_id(raw: object) -> str:
    """Return the canonical lowercase UUID string for *raw*.

    Accepts ``uuid.UUID`` instances and UUID-shaped strings (with or
    without hyphens/braces).  Numeric ids from older clients name rows
    that no longer exist and raise ``NotFoundError``; anything else raises
    ``ValidationError``.
    """
    if isinstance(raw, uuid.UUID):
        return str(raw)
    if isinstance(raw, int) and not isinstance(raw, bool):
        raise NotFoundError(f"Resource not found: {raw}")
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f"Invalid identifier: {raw!r}. Expected a UUID.")
    try:
        return str(uuid.UUID(raw.strip()))
    except ValueError:
        if raw.strip().isdigit():
            raise NotFoundError(f"Resource not found: {raw.strip()}") from None
        raise ValidationError(f"Invalid identifier: {raw!r}. Expected a UUID.") from None


def normalize_optional_id(raw: object) -> str | None:
    """Like ``normalize_id`` but maps ``None``, ``""`` and ``"null"`` to ``None``."""
    if raw is None:
        return None
    if isinstance(raw, str) and raw.strip().lower() in ("", "null", "root"):
        return None
    return normalize_id(raw)


# =============================================================================
# File names
# =============================================================================


def split_extension(filename: str) -> tuple[str, str]:
    """Split *filename* into ``(stem, ext)``; dotfiles have no extension.

    Examples:
        split_extension("report.pdf") -> ("report", ".pdf")
        split_extension("archive.tar.gz") -> ("archive.tar", ".gz")
        split_extension(".env") -> (".env", "")
    """
    stem, ext = posixpath.splitext(filename)
    return stem, ext


def sanitize_file_name(filename: str | None) -> str:
    """Make *filename* safe for use inside an object-store path.

    ASCII-safe names are lightly normalized (runs of whitespace and
    underscores collapse to ``_``, leading/trailing dots and underscores
    are stripped).  Names with any other characters are encoded as
    URL-safe base64 without padding, which is reversible and always
    ASCII.  The extension is lowercased and kept when it is itself safe.
    """
    if not filename or not filename.strip():
        return "file"

    stem, ext = split_extension(filename.strip())
    ext = ext.lower()
    if ext and not _SAFE_EXT_RE.match(ext):
        stem, ext = stem + ext, ""

    if _SAFE_ASCII_RE.match(stem):
        sanitized = _UNSAFE_CHARS_RE.sub("_", stem)
        sanitized = _COLLAPSE_RE.sub("_", sanitized)
        sanitized = _EDGE_RE.sub("", sanitized) or "file"
    else:
        encoded = base64.urlsafe_b64encode(stem.encode("utf-8")).decode("ascii")
        sanitized = encoded.rstrip("=")

    return sanitized[:MAX_SANITIZED_LENGTH] + ext


def copy_name(name: str) -> str:
    """Insert ``" (copy)"`` before the extension of *name*."""
    stem, ext = split_extension(name)
    return f"{stem}{COPY_SUFFIX}{ext}"


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Pick the MIME type to store for *filename*.

    PDFs are forced to ``application/pdf`` (by declared type or ``.pdf``
    extension) so browsers preview them.  Otherwise the declared type wins
    unless it is missing or generic, then the extension is consulted.
    """
    if declared == PDF_MIME_TYPE or filename.lower().endswith(".pdf"):
        return PDF_MIME_TYPE
    if declared and declared != DEFAULT_MIME_TYPE:
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_MIME_TYPE


# =============================================================================
# Storage paths
# =============================================================================


def build_storage_path(
    owner_id: str,
    folder_id: str | None,
    filename: str,
    *,
    now_ms: int | None = None,
) -> str:
    """Derive the object-store path ``{owner}/{folder|root}/{ms}-{nonce}_{name}``.

    The millisecond timestamp plus a short random nonce keeps paths
    distinct even for same-name uploads in the same millisecond.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    nonce = secrets.token_hex(3)
    return f"{owner_id}/{folder_id or 'root'}/{now_ms}-{nonce}_{sanitize_file_name(filename)}"


def escape_like(term: str) -> str:
    """Escape SQL LIKE wildcards in *term* (escape character ``\\``)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
