"""Result types: ResourceRef, SignedUrl, LinkInfo, ShareByEmailResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cumulus.exceptions import ValidationError
from cumulus.models.shares import RESOURCE_FILE, RESOURCE_TYPES
from cumulus.utils import normalize_id

if TYPE_CHECKING:
    from datetime import datetime

    from cumulus.models.files import FileBase
    from cumulus.models.folders import FolderBase


@dataclass(frozen=True, slots=True)
class ResourceRef:
    """A file or folder reference, resolved once at the API boundary.

    ``id`` is always the canonical lowercase UUID string, so lookups never
    need to guess between numeric and UUID-shaped identifiers.
    """

    kind: str
    id: str

    @classmethod
    def parse(cls, kind: str | None, raw_id: object) -> ResourceRef:
        """Validate *kind* and normalize *raw_id*; raise ``ValidationError``."""
        normalized_kind = (kind or "").strip().lower()
        if normalized_kind not in RESOURCE_TYPES:
            raise ValidationError(
                f"Invalid resource type: {kind!r}. Must be 'file' or 'folder'."
            )
        return cls(kind=normalized_kind, id=normalize_id(raw_id))

    @property
    def is_file(self) -> bool:
        return self.kind == RESOURCE_FILE


@dataclass
class SignedUrl:
    """A short-lived signed read URL plus the file it points to."""

    url: str
    expires_in: int
    file: FileBase


@dataclass
class LinkInfo:
    """Public link metadata.

    ``persisted`` is False when the token was minted without a database
    row (degraded mode); such a link cannot be resolved later.
    """

    token: str
    resource_type: str
    resource_id: str
    created_by: str
    expires_at: datetime | None = None
    created_at: datetime | None = None
    persisted: bool = True


@dataclass
class SideEffect:
    """Outcome of a best-effort secondary step inside a primary operation."""

    name: str
    ok: bool
    detail: str | None = None


@dataclass
class ShareByEmailResult:
    """Result of ``share_by_email``.

    The link token is the primary guarantee; grant creation and the
    link write itself are recorded in ``side_effects``.
    """

    link_token: str
    recipient_email: str
    target_user_id: str | None = None
    persisted: bool = True
    reused: bool = False
    side_effects: list[SideEffect] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return not self.persisted or any(not s.ok for s in self.side_effects)


@dataclass
class RecipientOutcome:
    """Per-recipient outcome for a multi-recipient email share."""

    email: str
    success: bool
    link_token: str | None = None
    share_link: str | None = None
    email_sent: bool = False
    error: str | None = None
    side_effects: list[SideEffect] = field(default_factory=list)


@dataclass
class TrashListing:
    """Soft-deleted folders and files of one owner. Both lists always present."""

    folders: list[FolderBase] = field(default_factory=list)
    files: list[FileBase] = field(default_factory=list)


@dataclass
class SearchResults:
    """Name-search matches, one list per resource type."""

    folders: list[FolderBase] = field(default_factory=list)
    files: list[FileBase] = field(default_factory=list)


@dataclass
class PurgeResult:
    """Result of permanently deleting a trashed resource."""

    ref: ResourceRef
    side_effects: list[SideEffect] = field(default_factory=list)
