"""Query helpers shared by the resource services."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cumulus.db import SchemaCapabilities

MAX_FOLDER_DEPTH = 256
"""Upper bound on ancestor walks; deeper trees are treated as corrupt."""


def owned_conditions(
    model: Any,
    owner_id: str,
    capabilities: SchemaCapabilities,
    *,
    deleted: bool = False,
) -> list[Any]:
    """WHERE clauses selecting *owner_id*'s rows in (or out of) trash.

    Without the soft-delete capability every row counts as live.
    """
    conditions = [model.owner_id == owner_id]
    if capabilities.soft_delete:
        conditions.append(model.is_deleted.is_(deleted))
    return conditions


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_active(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """True when *expires_at* is unset or still in the future."""
    if expires_at is None:
        return True
    return as_utc(expires_at) > (now or datetime.now(UTC))
