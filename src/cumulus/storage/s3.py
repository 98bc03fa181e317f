"""S3ObjectStore — boto3-backed store for S3 and S3-compatible buckets."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from cumulus.exceptions import ObjectNotFoundError, StorageError

from .protocol import StoredObject

if TYPE_CHECKING:
    from cumulus.config import Settings

logger = logging.getLogger(__name__)

_DELETE_BATCH = 1000


class S3ObjectStore:
    """Object store on an S3 bucket.

    All SDK calls are wrapped in ``asyncio.to_thread`` because boto3 is
    sync-only.
    """

    def __init__(self, bucket: str, client: Any) -> None:
        self.bucket = bucket
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> S3ObjectStore:
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            config=Config(
                signature_version="s3v4",
                connect_timeout=settings.fetch_timeout,
                read_timeout=settings.fetch_timeout,
            ),
        )
        return cls(settings.storage_bucket, client)

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
                CacheControl="max-age=3600",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to upload {path}: {e}") from e

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self.bucket, Key=path)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("404", "NoSuchKey", "NotFound"):
                raise ObjectNotFoundError(f"Object not found: {path}") from e
            raise StorageError(f"Failed to sign {path}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to sign {path}: {e}") from e

        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to sign {path}: {e}") from e

    async def list(self, prefix: str) -> list[StoredObject]:
        key_prefix = prefix.strip("/") + "/" if prefix.strip("/") else ""
        try:
            resp = await asyncio.to_thread(
                self._client.list_objects_v2,
                Bucket=self.bucket,
                Prefix=key_prefix,
                Delimiter="/",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to list {prefix}: {e}") from e

        entries = [
            StoredObject(
                name=obj["Key"][len(key_prefix):],
                path=obj["Key"],
                size=obj.get("Size"),
            )
            for obj in resp.get("Contents", [])
        ]
        entries.extend(
            StoredObject(name=p["Prefix"][len(key_prefix):].rstrip("/"), path=p["Prefix"])
            for p in resp.get("CommonPrefixes", [])
        )
        return entries

    async def remove(self, paths: list[str]) -> None:
        for start in range(0, len(paths), _DELETE_BATCH):
            batch = paths[start : start + _DELETE_BATCH]
            try:
                resp = await asyncio.to_thread(
                    self._client.delete_objects,
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": p} for p in batch], "Quiet": True},
                )
            except (BotoCoreError, ClientError) as e:
                raise StorageError(f"Failed to remove objects: {e}") from e
            errors = resp.get("Errors") or []
            if errors:
                logger.warning("S3 reported %d delete errors: %s", len(errors), errors[:3])
                raise StorageError(f"Failed to remove {len(errors)} object(s)")

    async def close(self) -> None:
        await asyncio.to_thread(self._client.close)
