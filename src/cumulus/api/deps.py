"""Request dependencies: application context and the acting identity."""

from typing import Annotated

from fastapi import Depends, Request

from cumulus.identity import Identity

from .context import AppContext

TOKEN_COOKIE = "token"


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def extract_token(request: Request) -> str | None:
    """Bearer token from ``Authorization``, else the ``token`` cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(TOKEN_COOKIE)


def current_identity(request: Request) -> Identity:
    ctx = get_context(request)
    return ctx.identity.verify(extract_token(request))


Context = Annotated[AppContext, Depends(get_context)]
CurrentUser = Annotated[Identity, Depends(current_identity)]
