from fastapi import APIRouter, Query

from ..deps import Context, CurrentUser
from ..responses import ok

router = APIRouter(tags=["Search"])


@router.get("/search")
async def search(user: CurrentUser, ctx: Context, q: str | None = Query(None)):
    async with ctx.database.session() as session:
        results = await ctx.search.search(session, user.id, q)
    return ok({"folders": results.folders, "files": results.files})
