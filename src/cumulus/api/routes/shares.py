import logging

from fastapi import APIRouter, Query

from cumulus.exceptions import CumulusError, NotFoundError, ValidationError
from cumulus.identity import Identity
from cumulus.mail import MailError
from cumulus.services import coerce_role
from cumulus.types import RecipientOutcome, ResourceRef, SideEffect
from cumulus.utils import normalize_id

from ..context import AppContext
from ..deps import Context, CurrentUser
from ..responses import ok
from ..schemas import EmailShareRequest, GrantRequest, LinkRequest, RevokeRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shares", tags=["Shares"])


def share_link_url(ctx: AppContext, token: str) -> str:
    return f"{ctx.settings.frontend_url}/share/{token}"


@router.post("")
async def grant(body: GrantRequest, user: CurrentUser, ctx: Context):
    ref = ResourceRef.parse(body.resourceType, body.resourceId)
    target_user_id = normalize_id(body.targetUserId)
    async with ctx.database.session() as session:
        if await ctx.identity.get_user(session, target_user_id) is None:
            raise NotFoundError(f"User not found: {target_user_id}")
        share = await ctx.sharing.grant(session, user.id, ref, target_user_id, body.role)
    return ok(share, status_code=201)


@router.get("")
async def list_grants(
    user: CurrentUser,
    ctx: Context,
    resource_type: str | None = Query(None, alias="resourceType"),
    resource_id: str | None = Query(None, alias="resourceId"),
):
    ref = ResourceRef.parse(resource_type, resource_id)
    async with ctx.database.session() as session:
        grants = await ctx.sharing.list_grants(session, user.id, ref)
    return ok(grants)


@router.get("/shared-with-me")
async def shared_with_me(user: CurrentUser, ctx: Context):
    async with ctx.database.session() as session:
        grants = await ctx.sharing.list_shared_with(session, user.id)
    return ok(grants)


@router.post("/revoke")
async def revoke(body: RevokeRequest, user: CurrentUser, ctx: Context):
    ref = ResourceRef.parse(body.resourceType, body.resourceId)
    async with ctx.database.session() as session:
        await ctx.sharing.revoke(session, user.id, ref, normalize_id(body.targetUserId))
    return ok({"message": "Share revoked"})


@router.post("/link")
async def create_link(body: LinkRequest, user: CurrentUser, ctx: Context):
    ref = ResourceRef.parse(body.resourceType, body.resourceId)
    async with ctx.database.session() as session:
        link = await ctx.sharing.create_link(session, user.id, ref, body.expiresAt)
    return ok(
        {
            "token": link.token,
            "url": share_link_url(ctx, link.token),
            "expiresAt": link.expires_at,
            "persisted": link.persisted,
        },
        status_code=201,
    )


@router.get("/link/{token}")
async def resolve_link(token: str, ctx: Context):
    async with ctx.database.session() as session:
        link = await ctx.sharing.resolve_link(session, token)
    if link is None:
        raise NotFoundError("Link not found or expired")
    return ok(link)


@router.post("/email")
async def share_by_email(body: EmailShareRequest, user: CurrentUser, ctx: Context):
    """Share with several addresses.  201 when all succeed, 207 otherwise."""
    ref = ResourceRef.parse(body.resourceType, body.resourceId)
    recipients = [email.strip() for email in body.recipientEmails if email and email.strip()]
    if not recipients:
        raise ValidationError("At least one recipient email is required")

    async with ctx.database.session() as session:
        resource = await ctx.sharing.verify_owner(session, user.id, ref)
    item_name = resource.name
    role = coerce_role(body.role)

    outcomes = [
        await _share_with_recipient(ctx, user, ref, item_name, email, role)
        for email in recipients
    ]
    status_code = 201 if all(outcome.success for outcome in outcomes) else 207
    return ok({"role": role, "results": outcomes}, status_code=status_code)


async def _share_with_recipient(
    ctx: AppContext,
    user: Identity,
    ref: ResourceRef,
    item_name: str,
    email: str,
    role: str,
) -> RecipientOutcome:
    try:
        async with ctx.database.session() as session:
            result = await ctx.sharing.share_by_email(session, user.id, ref, email, role)
    except CumulusError as e:
        logger.warning("Share with %s failed: %s", email, e)
        return RecipientOutcome(email=email, success=False, error=str(e))

    link = share_link_url(ctx, result.link_token)
    side_effects = list(result.side_effects)
    email_sent = False
    try:
        email_sent = await ctx.mailer.send_share_email(
            result.recipient_email,
            sender_name=user.name or user.email,
            item_name=item_name,
            item_type=ref.kind,
            share_link=link,
            role=role,
        )
        side_effects.append(SideEffect("email", True, "sent" if email_sent else "logged"))
    except MailError as e:
        logger.warning("Share email to %s failed: %s", result.recipient_email, e)
        side_effects.append(SideEffect("email", False, str(e)))

    return RecipientOutcome(
        email=result.recipient_email,
        success=True,
        link_token=result.link_token,
        share_link=link,
        email_sent=email_sent,
        side_effects=side_effects,
    )
