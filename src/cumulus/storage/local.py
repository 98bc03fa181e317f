"""LocalObjectStore — disk-backed object store with signed read URLs.

Objects live under ``{root}/{bucket}/{path}``.  Signed URLs point at the
API's ``/api/blobs/{path}`` route and carry an itsdangerous token over the
path and lifetime, which the route verifies before streaming the object.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from pathlib import Path
from urllib.parse import quote, urlencode

from itsdangerous import BadSignature, URLSafeTimedSerializer

from cumulus.exceptions import ObjectNotFoundError, StorageError

from .protocol import StoredObject

BLOB_TOKEN_SALT = "cumulus-blob"


class LocalObjectStore:
    """Object store rooted at a local directory.

    Security: ``_resolve`` keeps every object inside the bucket
    directory, rejecting traversal via ``..`` or absolute paths.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        bucket: str = "files",
        base_url: str = "http://localhost:8000",
        secret: str = "dev-secret",
    ) -> None:
        self.bucket_dir = (Path(root) / bucket).resolve()
        self.bucket_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self._serializer = URLSafeTimedSerializer(secret, salt=BLOB_TOKEN_SALT)

    # =========================================================================
    # Path resolution
    # =========================================================================

    def _resolve(self, path: str) -> Path:
        rel = path.strip().lstrip("/")
        if not rel:
            raise StorageError("Object path is empty")
        resolved = (self.bucket_dir / rel).resolve()
        try:
            resolved.relative_to(self.bucket_dir)
        except ValueError:
            raise StorageError(f"Path traversal detected: {path}") from None
        return resolved

    # =========================================================================
    # Signing
    # =========================================================================

    def sign(self, path: str, ttl_seconds: int) -> str:
        """Return a token granting read access to *path* for *ttl_seconds*."""
        return self._serializer.dumps({"path": path, "ttl": ttl_seconds})

    def verify_token(self, path: str, token: str) -> bool:
        """True if *token* was issued for *path* and has not expired."""
        try:
            claims = self._serializer.loads(token)
            if claims.get("path") != path:
                return False
            self._serializer.loads(token, max_age=claims["ttl"])
        except (BadSignature, KeyError, TypeError, AttributeError):
            return False
        return True

    # =========================================================================
    # ObjectStore protocol
    # =========================================================================

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        resolved = self._resolve(path)

        def _write() -> None:
            if resolved.exists():
                raise StorageError(f"Object already exists: {path}")
            resolved.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(resolved.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                Path(tmp_path).replace(resolved)
            except Exception:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
                raise

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Failed to write object {path}: {e}") from e

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        resolved = self._resolve(path)
        if not await asyncio.to_thread(resolved.is_file):
            raise ObjectNotFoundError(f"Object not found: {path}")
        query = urlencode({"token": self.sign(path, ttl_seconds)})
        return f"{self.base_url}/api/blobs/{quote(path)}?{query}"

    async def list(self, prefix: str) -> list[StoredObject]:
        directory = self._resolve(prefix) if prefix.strip("/") else self.bucket_dir

        def _scan() -> list[StoredObject]:
            if not directory.is_dir():
                return []
            entries = []
            for child in sorted(directory.iterdir()):
                if child.suffix == ".tmp":
                    continue
                rel = child.relative_to(self.bucket_dir).as_posix()
                size = child.stat().st_size if child.is_file() else None
                entries.append(StoredObject(name=child.name, path=rel, size=size))
            return entries

        try:
            return await asyncio.to_thread(_scan)
        except OSError as e:
            raise StorageError(f"Failed to list {prefix}: {e}") from e

    async def remove(self, paths: list[str]) -> None:
        resolved = [self._resolve(p) for p in paths]

        def _delete() -> None:
            for target in resolved:
                target.unlink(missing_ok=True)

        try:
            await asyncio.to_thread(_delete)
        except OSError as e:
            raise StorageError(f"Failed to remove objects: {e}") from e

    async def close(self) -> None:
        """No-op — nothing to release."""

    # =========================================================================
    # Local-only helpers
    # =========================================================================

    async def read(self, path: str) -> bytes:
        """Return the bytes stored at *path*."""
        resolved = self._resolve(path)
        try:
            return await asyncio.to_thread(resolved.read_bytes)
        except FileNotFoundError:
            raise ObjectNotFoundError(f"Object not found: {path}") from None
        except OSError as e:
            raise StorageError(f"Failed to read object {path}: {e}") from e
