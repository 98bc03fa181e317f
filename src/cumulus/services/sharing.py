"""SharingService — per-user share grants and public link tokens.

Grants are upserted on ``(resource_type, resource_id, target_user_id)``
so re-granting only updates the role.  Public links are random tokens
that resolve while unexpired.
"""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from cumulus.db import SchemaCapabilities, classify_connection_error, is_connectivity_failure
from cumulus.dialect import savepoint, upsert
from cumulus.exceptions import (
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from cumulus.identity import normalize_email
from cumulus.models.files import File
from cumulus.models.folders import Folder
from cumulus.models.shares import ROLE_VIEWER, SHARE_ROLES, PublicLink, ShareGrant
from cumulus.models.users import User
from cumulus.types import LinkInfo, ShareByEmailResult, SideEffect

from ._common import as_utc, is_active

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cumulus.models.files import FileBase
    from cumulus.models.folders import FolderBase
    from cumulus.models.shares import PublicLinkBase, ShareGrantBase
    from cumulus.models.users import UserBase
    from cumulus.types import ResourceRef

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24


def normalize_role(role: str | None) -> str:
    """Lowercase *role*; raise ``ValidationError`` unless viewer or editor."""
    value = (role or "").strip().lower()
    if value not in SHARE_ROLES:
        raise ValidationError(f"Invalid role: {role!r}. Must be 'viewer' or 'editor'.")
    return value


def coerce_role(role: str | None) -> str:
    """Lenient ``normalize_role``: unknown roles become viewer."""
    value = (role or "").strip().lower()
    return value if value in SHARE_ROLES else ROLE_VIEWER


class SharingService:
    """Stateless sharing operations; a session is supplied per call."""

    def __init__(
        self,
        grant_model: type[ShareGrantBase] = ShareGrant,
        link_model: type[PublicLinkBase] = PublicLink,
        *,
        file_model: type[FileBase] = File,
        folder_model: type[FolderBase] = Folder,
        user_model: type[UserBase] = User,
        dialect: str = "sqlite",
        capabilities: SchemaCapabilities | None = None,
    ) -> None:
        self._grant_model = grant_model
        self._link_model = link_model
        self._file_model = file_model
        self._folder_model = folder_model
        self._user_model = user_model
        self._dialect = dialect
        self._capabilities = capabilities or SchemaCapabilities()
        self._warned_links = False

    @staticmethod
    def mint_token() -> str:
        return secrets.token_hex(TOKEN_BYTES)

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    async def verify_owner(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
    ) -> FileBase | FolderBase:
        """Return the resource *ref* if *owner_id* owns it.

        Raises ``NotFoundError`` if it does not exist (or is in trash) and
        ``ForbiddenError`` if someone else owns it.
        """
        model = self._file_model if ref.is_file else self._folder_model
        conditions = [model.id == ref.id]
        if self._capabilities.soft_delete:
            conditions.append(model.is_deleted.is_(False))
        try:
            result = await session.execute(select(model).where(*conditions))
        except SQLAlchemyError as e:
            connectivity = classify_connection_error(e)
            if connectivity is not None:
                raise connectivity from e
            raise PersistenceError(f"Failed to look up {ref.kind}: {e}") from e
        resource = result.scalar_one_or_none()
        if resource is None:
            raise NotFoundError(f"{ref.kind.capitalize()} not found: {ref.id}")
        if resource.owner_id != owner_id:
            raise ForbiddenError(f"You do not own this {ref.kind}")
        return resource

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def grant(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
        target_user_id: str,
        role: str,
    ) -> ShareGrantBase:
        """Share *ref* with *target_user_id*.  Re-granting updates the role."""
        role = normalize_role(role)
        await self.verify_owner(session, owner_id, ref)
        return await self._upsert_grant(session, owner_id, ref, target_user_id, role)

    async def _upsert_grant(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
        target_user_id: str,
        role: str,
    ) -> ShareGrantBase:
        model = self._grant_model
        values = model(
            resource_type=ref.kind,
            resource_id=ref.id,
            target_user_id=target_user_id,
            role=role,
            created_by=owner_id,
        ).model_dump()
        await upsert(
            session,
            self._dialect,
            model,
            values,
            conflict_keys=["resource_type", "resource_id", "target_user_id"],
            update_keys=["role"],
        )
        result = await session.execute(
            select(model)
            .where(
                model.resource_type == ref.kind,
                model.resource_id == ref.id,
                model.target_user_id == target_user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_grants(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
    ) -> list[ShareGrantBase]:
        """Grants *owner_id* created for *ref*, oldest first."""
        model = self._grant_model
        result = await session.execute(
            select(model)
            .where(
                model.resource_type == ref.kind,
                model.resource_id == ref.id,
                model.created_by == owner_id,
            )
            .order_by(model.created_at.asc())
        )
        return list(result.scalars().all())

    async def revoke(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
        target_user_id: str,
    ) -> ShareGrantBase:
        model = self._grant_model
        result = await session.execute(
            select(model).where(
                model.resource_type == ref.kind,
                model.resource_id == ref.id,
                model.target_user_id == target_user_id,
                model.created_by == owner_id,
            )
        )
        grant = result.scalar_one_or_none()
        if grant is None:
            raise NotFoundError("Share not found")
        await session.delete(grant)
        await session.flush()
        return grant

    async def list_shared_with(self, session: AsyncSession, user_id: str) -> list[ShareGrantBase]:
        """Every grant targeting *user_id*, newest first."""
        model = self._grant_model
        result = await session.execute(
            select(model)
            .where(model.target_user_id == user_id)
            .order_by(model.created_at.desc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Public links
    # ------------------------------------------------------------------

    def _links_available(self) -> bool:
        if self._capabilities.public_links:
            return True
        if not self._warned_links:
            logger.warning("Public link table missing; links will not be persisted")
            self._warned_links = True
        return False

    async def create_link(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
        expires_at: datetime | None = None,
    ) -> LinkInfo:
        """Mint a public link for *ref*.  ``expires_at=None`` never expires."""
        if expires_at is not None:
            expires_at = as_utc(expires_at)
            if expires_at <= datetime.now(UTC):
                raise ValidationError("Link expiry must be in the future")
        await self.verify_owner(session, owner_id, ref)

        token = self.mint_token()
        if not self._links_available():
            return LinkInfo(
                token=token,
                resource_type=ref.kind,
                resource_id=ref.id,
                created_by=owner_id,
                expires_at=expires_at,
                persisted=False,
            )

        link = self._link_model(
            token=token,
            resource_type=ref.kind,
            resource_id=ref.id,
            created_by=owner_id,
            expires_at=expires_at,
        )
        session.add(link)
        await session.flush()
        return self._to_link_info(link)

    async def resolve_link(self, session: AsyncSession, token: str) -> PublicLinkBase | None:
        """Return the link for *token*, or ``None`` if unknown or expired."""
        if not token or not self._links_available():
            return None
        result = await session.execute(
            select(self._link_model).where(self._link_model.token == token)
        )
        link = result.scalar_one_or_none()
        if link is None or not is_active(link.expires_at):
            return None
        return link

    @staticmethod
    def _to_link_info(link: PublicLinkBase, *, persisted: bool = True) -> LinkInfo:
        return LinkInfo(
            token=link.token,
            resource_type=link.resource_type,
            resource_id=link.resource_id,
            created_by=link.created_by,
            expires_at=link.expires_at,
            created_at=link.created_at,
            persisted=persisted,
        )

    # ------------------------------------------------------------------
    # Share by email
    # ------------------------------------------------------------------

    async def share_by_email(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
        recipient_email: str,
        role: str | None = ROLE_VIEWER,
    ) -> ShareByEmailResult:
        """Share *ref* with an email address via a public link.

        The link token is always returned.  Looking up the recipient,
        persisting the link and granting a registered recipient access are
        best-effort; their outcomes are recorded in ``side_effects``.
        Only ownership verification aborts the operation.
        """
        email = normalize_email(recipient_email)
        role = coerce_role(role)
        side_effects: list[SideEffect] = []

        recipient = await self._lookup_recipient(session, email, side_effects)
        await self.verify_owner(session, owner_id, ref)
        token, persisted, reused = await self._reuse_or_mint_link(
            session, owner_id, ref, side_effects
        )

        target_user_id = recipient.id if recipient is not None else None
        if target_user_id is not None:
            try:
                async with savepoint(session):
                    await self._upsert_grant(session, owner_id, ref, target_user_id, role)
                side_effects.append(SideEffect("share_grant", True, role))
            except (SQLAlchemyError, OSError, ValueError) as e:
                logger.warning("Share grant for %s failed; link still issued: %s", email, e)
                side_effects.append(SideEffect("share_grant", False, str(e)))

        return ShareByEmailResult(
            link_token=token,
            recipient_email=email,
            target_user_id=target_user_id,
            persisted=persisted,
            reused=reused,
            side_effects=side_effects,
        )

    async def _lookup_recipient(
        self,
        session: AsyncSession,
        email: str,
        side_effects: list[SideEffect],
    ) -> UserBase | None:
        model = self._user_model
        try:
            async with savepoint(session):
                result = await session.execute(select(model).where(model.email == email))
                user = result.scalars().first()
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Recipient lookup for %s failed: %s", email, e)
            side_effects.append(SideEffect("recipient_lookup", False, str(e)))
            return None
        side_effects.append(
            SideEffect("recipient_lookup", True, "registered" if user else "unregistered")
        )
        return user

    async def _reuse_or_mint_link(
        self,
        session: AsyncSession,
        owner_id: str,
        ref: ResourceRef,
        side_effects: list[SideEffect],
    ) -> tuple[str, bool, bool]:
        """Return ``(token, persisted, reused)`` for *ref*."""
        if not self._links_available():
            side_effects.append(SideEffect("link_persist", False, "public link table missing"))
            return self.mint_token(), False, False

        model = self._link_model
        token = self.mint_token()
        try:
            async with savepoint(session):
                result = await session.execute(
                    select(model)
                    .where(
                        model.resource_type == ref.kind,
                        model.resource_id == ref.id,
                        model.created_by == owner_id,
                    )
                    .order_by(model.created_at.desc())
                )
                for existing in result.scalars().all():
                    if is_active(existing.expires_at):
                        side_effects.append(SideEffect("link_reuse", True))
                        return existing.token, True, True

                session.add(
                    model(
                        token=token,
                        resource_type=ref.kind,
                        resource_id=ref.id,
                        created_by=owner_id,
                    )
                )
                await session.flush()
        except (SQLAlchemyError, OSError) as e:
            if is_connectivity_failure(e):
                logger.warning("Database unreachable; issuing unpersisted link: %s", e)
            else:
                logger.warning("Link insert failed; issuing unpersisted link: %s", e)
            side_effects.append(SideEffect("link_persist", False, str(e)))
            return token, False, False

        side_effects.append(SideEffect("link_persist", True))
        return token, True, False
