from fastapi import APIRouter, Body, Query

from cumulus.types import ResourceRef

from ..deps import Context, CurrentUser
from ..responses import ok
from ..schemas import TrashTarget

router = APIRouter(prefix="/trash", tags=["Trash"])


@router.get("")
async def list_trash(user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        listing = await ctx.trash.list(session, user.id)
    return ok({"folders": listing.folders, "files": listing.files})


@router.post("/restore")
async def restore(body: TrashTarget, user: CurrentUser, ctx: Context):
    ref = ResourceRef.parse(body.type, body.id)
    async with ctx.database.session() as session:
        row = await ctx.trash.restore(session, user.id, ref)
    return ok({"type": ref.kind, "item": row})


@router.delete("/{item_id}")
async def purge(
    item_id: str,
    user: CurrentUser,
    ctx: Context,
    item_type: str | None = Query(None, alias="type"),
    body: TrashTarget | None = Body(None),
):
    ref = ResourceRef.parse(item_type or (body.type if body else None), item_id)
    async with ctx.database.session() as session:
        result = await ctx.trash.purge(session, user.id, ref)
    return ok(
        {
            "type": ref.kind,
            "id": ref.id,
            "message": "Permanently deleted",
            "sideEffects": result.side_effects,
        }
    )
