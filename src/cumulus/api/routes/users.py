from fastapi import APIRouter

from cumulus.exceptions import NotFoundError
from cumulus.identity import require_role
from cumulus.models.users import ROLE_ADMIN

from ..deps import Context, CurrentUser
from ..responses import ok

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me")
async def me(user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        record = await ctx.identity.get_user(session, user.id)
    if record is None:
        raise NotFoundError("Not found")
    return ok({"user": ctx.identity.to_identity(record)})


@router.get("")
async def list_users(user: CurrentUser, ctx: Context):
    require_role(user, ROLE_ADMIN)
    async with ctx.database.session() as session:
        records = await ctx.identity.list_users(session)
    return ok({"users": [ctx.identity.to_identity(record) for record in records]})
