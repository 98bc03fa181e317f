from fastapi import APIRouter
from fastapi.responses import JSONResponse

from cumulus.identity import Identity, SessionToken

from ..context import AppContext
from ..deps import TOKEN_COOKIE, Context, CurrentUser
from ..responses import ok
from ..schemas import LoginRequest, SignUpRequest

router = APIRouter(prefix="/auth", tags=["Auth"])


def _session_payload(session_token: SessionToken) -> dict:
    return {
        "user": session_token.user,
        "token": session_token.token,
        "expiresAt": session_token.expires_at,
    }


def _set_session_cookie(response: JSONResponse, ctx: AppContext, session_token: SessionToken) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        session_token.token,
        max_age=ctx.settings.jwt_expires_in,
        httponly=True,
        secure=ctx.settings.cookie_secure,
        samesite="lax",
    )


@router.post("/signup")
async def signup(body: SignUpRequest, ctx: Context):
    async with ctx.database.session() as session:
        user = await ctx.identity.sign_up(session, body.email, body.password, body.name)
    session_token = ctx.identity.issue_token(ctx.identity.to_identity(user))
    response = ok(_session_payload(session_token), status_code=201)
    _set_session_cookie(response, ctx, session_token)
    return response


@router.post("/login")
async def login(body: LoginRequest, ctx: Context):
    async with ctx.database.session() as session:
        session_token = await ctx.identity.login(session, body.email, body.password)
    response = ok(_session_payload(session_token))
    _set_session_cookie(response, ctx, session_token)
    return response


@router.post("/signout")
async def signout():
    response = ok({"message": "Signed out"})
    response.delete_cookie(TOKEN_COOKIE)
    return response


@router.get("/me")
async def me(user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        profile: Identity = await ctx.identity.profile(session, user)
    return ok({"user": profile})
