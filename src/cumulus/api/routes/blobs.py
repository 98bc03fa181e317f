"""Signed downloads for the local object store.

S3 signed URLs point at the bucket directly and never reach this route.
"""

from fastapi import APIRouter, Query
from fastapi.responses import Response

from cumulus.exceptions import ForbiddenError, NotFoundError
from cumulus.storage import LocalObjectStore
from cumulus.utils import detect_mime_type

from ..deps import Context

router = APIRouter(prefix="/blobs", tags=["Blobs"])


@router.get("/{path:path}")
async def download(
    path: str,
    ctx: Context,
    token: str = Query(...),
):
    store = ctx.store
    if not isinstance(store, LocalObjectStore):
        raise NotFoundError("Blob downloads are served by the storage backend")
    if not store.verify_token(path, token):
        raise ForbiddenError("Invalid or expired signature")
    data = await store.read(path)
    return Response(content=data, media_type=detect_mime_type(path))
