from fastapi import APIRouter, Query

from cumulus.utils import normalize_id, normalize_optional_id

from ..deps import Context, CurrentUser
from ..responses import ok
from ..schemas import CreateFolderRequest, MoveFolderRequest, RenameRequest

router = APIRouter(prefix="/folders", tags=["Folders"])


@router.post("")
async def create_folder(body: CreateFolderRequest, user: CurrentUser, ctx: Context):
    parent_id = normalize_optional_id(body.parentId)
    async with ctx.database.session() as session:
        folder = await ctx.folders.create(session, user.id, body.name, parent_id)
    return ok(folder, status_code=201)


@router.get("")
async def list_folders(
    user: CurrentUser,
    ctx: Context,
    parent_id: str | None = Query(None, alias="parentId"),
):
    async with ctx.database.session() as session:
        folders = await ctx.folders.list(session, user.id, normalize_optional_id(parent_id))
    return ok(folders)


@router.get("/{folder_id}")
async def get_folder(folder_id: str, user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        folder = await ctx.folders.get(session, user.id, normalize_id(folder_id))
    return ok(folder)


@router.delete("/{folder_id}")
async def delete_folder(folder_id: str, user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        folder = await ctx.folders.soft_delete(session, user.id, normalize_id(folder_id))
    return ok({"id": folder.id, "message": "Folder moved to trash"})


@router.patch("/{folder_id}/rename")
async def rename_folder(folder_id: str, body: RenameRequest, user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        folder = await ctx.folders.rename(session, user.id, normalize_id(folder_id), body.name)
    return ok(folder)


@router.patch("/{folder_id}/move")
async def move_folder(folder_id: str, body: MoveFolderRequest, user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        folder = await ctx.folders.move(
            session,
            user.id,
            normalize_id(folder_id),
            normalize_optional_id(body.parentId),
        )
    return ok(folder)
