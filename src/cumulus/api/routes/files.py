from fastapi import APIRouter, Body, Form, Query, UploadFile
from fastapi import File as FormFile

from cumulus.exceptions import ValidationError
from cumulus.services import UploadBlob
from cumulus.utils import normalize_id, normalize_optional_id

from ..deps import Context, CurrentUser
from ..responses import ok
from ..schemas import CopyFileRequest, MoveFileRequest, RenameRequest

router = APIRouter(prefix="/files", tags=["Files"])


@router.post("")
async def upload_file(
    user: CurrentUser,
    ctx: Context,
    file: UploadFile | None = FormFile(None),
    folder_id: str | None = Form(None, alias="folderId"),
):
    if file is None or not file.filename:
        raise ValidationError("No file provided")
    blob = UploadBlob(
        filename=file.filename,
        content=await file.read(),
        content_type=file.content_type,
    )
    async with ctx.database.session() as session:
        record = await ctx.files.upload(session, user.id, normalize_optional_id(folder_id), blob)
    return ok(record, status_code=201)


@router.get("")
async def list_files(
    user: CurrentUser,
    ctx: Context,
    folder_id: str | None = Query(None, alias="folderId"),
):
    async with ctx.database.session() as session:
        files = await ctx.files.list(session, user.id, normalize_optional_id(folder_id))
    return ok(files)


@router.get("/{file_id}/signed-url")
async def signed_url(file_id: str, user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        signed = await ctx.files.get_signed_url(session, user.id, normalize_id(file_id))
    return ok({"url": signed.url, "expiresIn": signed.expires_in, "file": signed.file})


@router.delete("/{file_id}")
async def delete_file(file_id: str, user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        record = await ctx.files.soft_delete(session, user.id, normalize_id(file_id))
    return ok({"id": record.id, "message": "File moved to trash"})


@router.patch("/{file_id}/rename")
async def rename_file(file_id: str, body: RenameRequest, user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        record = await ctx.files.rename(session, user.id, normalize_id(file_id), body.name)
    return ok(record)


@router.patch("/{file_id}/move")
async def move_file(file_id: str, body: MoveFileRequest, user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        record = await ctx.files.move(
            session,
            user.id,
            normalize_id(file_id),
            normalize_optional_id(body.folderId),
        )
    return ok(record)


@router.post("/{file_id}/copy")
async def copy_file(
    file_id: str,
    user: CurrentUser,
    ctx: Context,
    body: CopyFileRequest | None = Body(None),
):
    target = normalize_optional_id(body.folderId) if body else None
    async with ctx.database.session() as session:
        record = await ctx.files.copy(session, user.id, normalize_id(file_id), target)
    return ok(record, status_code=201)
