from fastapi import APIRouter

from ..deps import Context
from ..responses import ok

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(ctx: Context):
    database_ok = await ctx.database.ping()
    return ok(
        {
            "status": "ok" if database_ok else "degraded",
            "database": database_ok,
            "capabilities": ctx.database.capabilities,
        }
    )
