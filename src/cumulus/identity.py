"""IdentityService — accounts, password checks, and signed session tokens."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from sqlalchemy import func
from sqlmodel import select
from werkzeug.security import check_password_hash, generate_password_hash

from .config import DEFAULT_JWT_EXPIRES_IN
from .exceptions import AuthenticationError, ForbiddenError, ValidationError
from .models.users import ROLE_USER, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .models.users import UserBase

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str | None) -> str:
    """Lowercase and strip *email*; raise ``ValidationError`` if malformed."""
    value = (email or "").strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValidationError(f"Invalid email address: {email!r}")
    return value


def display_name(email: str, name: str | None = None) -> str:
    """Return *name*, or the local part of *email* when no name is set."""
    return name or email.split("@", 1)[0]


@dataclass(frozen=True)
class Identity:
    """The acting user attached to a request."""

    id: str
    email: str
    role: str = ROLE_USER
    name: str = ""


@dataclass
class SessionToken:
    """A signed session token and the identity it carries."""

    token: str
    user: Identity
    expires_at: datetime


def require_role(identity: Identity, *roles: str) -> Identity:
    """Return *identity* if it holds one of *roles* (any role when empty)."""
    if roles and identity.role not in roles:
        raise ForbiddenError("Forbidden")
    return identity


class IdentityService:
    """Local identity provider backed by the users table.

    Passwords are hashed with werkzeug; sessions are HS256 JWTs carrying
    ``sub``, ``email``, ``role`` and ``name`` claims.
    """

    def __init__(
        self,
        user_model: type[UserBase] = User,
        *,
        secret: str,
        algorithm: str = "HS256",
        expires_in: int = DEFAULT_JWT_EXPIRES_IN,
    ) -> None:
        self._user_model = user_model
        self._secret = secret
        self._algorithm = algorithm
        self._expires_in = expires_in

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def sign_up(
        self,
        session: AsyncSession,
        email: str,
        password: str,
        name: str | None = None,
    ) -> UserBase:
        """Create an account. Flushes but does not commit."""
        email = normalize_email(email)
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if await self.find_by_email(session, email) is not None:
            raise ValidationError("A user with this email address has already been registered")

        user = self._user_model(
            email=email,
            name=(name or "").strip() or display_name(email),
            password_hash=generate_password_hash(password),
            role=ROLE_USER,
        )
        session.add(user)
        await session.flush()
        logger.debug("Registered user %s", user.id)
        return user

    async def login(self, session: AsyncSession, email: str, password: str) -> SessionToken:
        """Check credentials and issue a session token."""
        try:
            email = normalize_email(email)
        except ValidationError:
            raise AuthenticationError("Invalid credentials") from None
        user = await self.find_by_email(session, email)
        if user is None or not user.password_hash:
            raise AuthenticationError("Invalid credentials")
        if not check_password_hash(user.password_hash, password or ""):
            raise AuthenticationError("Invalid credentials")
        return self.issue_token(self.to_identity(user))

    async def get_user(self, session: AsyncSession, user_id: str) -> UserBase | None:
        model = self._user_model
        result = await session.execute(select(model).where(model.id == user_id))
        return result.scalar_one_or_none()

    async def find_by_email(self, session: AsyncSession, email: str) -> UserBase | None:
        model = self._user_model
        result = await session.execute(
            select(model).where(func.lower(model.email) == email.strip().lower())
        )
        return result.scalars().first()

    async def list_users(self, session: AsyncSession) -> list[UserBase]:
        """All accounts, newest first."""
        model = self._user_model
        result = await session.execute(
            select(model).order_by(model.created_at.desc(), model.email)  # type: ignore[union-attr]
        )
        return list(result.scalars().all())

    async def profile(self, session: AsyncSession, identity: Identity) -> Identity:
        """Return the freshest profile for *identity*, falling back to token claims."""
        user = await self.get_user(session, identity.id)
        if user is None:
            return identity
        return Identity(
            id=user.id,
            email=user.email,
            role=identity.role,
            name=display_name(user.email, user.name),
        )

    @staticmethod
    def to_identity(user: UserBase) -> Identity:
        return Identity(
            id=user.id,
            email=user.email,
            role=user.role,
            name=display_name(user.email, user.name),
        )

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_token(self, identity: Identity) -> SessionToken:
        expires_at = datetime.now(UTC) + timedelta(seconds=self._expires_in)
        claims = {
            "sub": identity.id,
            "email": identity.email,
            "role": identity.role,
            "name": identity.name,
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self._secret, algorithm=self._algorithm)
        return SessionToken(token=token, user=identity, expires_at=expires_at)

    def verify(self, token: str | None) -> Identity:
        """Decode *token* into an ``Identity``; raise ``AuthenticationError``."""
        if not token:
            raise AuthenticationError("Unauthorized")
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError:
            raise AuthenticationError("Unauthorized") from None
        user_id = claims.get("sub")
        email = claims.get("email")
        if not user_id or not email:
            raise AuthenticationError("Unauthorized")
        return Identity(
            id=str(user_id),
            email=str(email),
            role=str(claims.get("role") or ROLE_USER),
            name=str(claims.get("name") or display_name(str(email))),
        )
