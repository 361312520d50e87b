"""Profile domain entities."""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any

# Fields the user can change in the profile editor.
EDITABLE_FIELDS: tuple[str, ...] = ("full_name", "username", "instagram_handle", "avatar_url")


@dataclass(frozen=True)
class Session:
    """The authenticated actor for the lifetime of a client session."""

    user_id: str
    email: str


@dataclass
class ProfileRecord:
    """Domain entity for a user profile.

    ``id`` always equals the owning session's user id. Optional fields are
    ``None`` until first written, which is not the same as ``""``.
    """

    id: str
    email: str
    full_name: str | None = None
    username: str | None = None
    instagram_handle: str | None = None
    avatar_url: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def stub(cls, session: Session) -> "ProfileRecord":
        """Build the minimal record used when no remote row exists yet."""
        return cls(id=session.user_id, email=session.email)

    @classmethod
    def from_row(cls, session: Session, row: dict[str, Any]) -> "ProfileRecord":
        """Build a record from a stored row.

        Identity comes from the session, never from the row.
        """
        return cls(
            id=session.user_id,
            email=session.email,
            full_name=row.get("full_name"),
            username=row.get("username"),
            instagram_handle=row.get("instagram_handle"),
            avatar_url=row.get("avatar_url"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> dict[str, Any]:
        """Return the merge-upsert payload: ``id`` plus every present field."""
        row: dict[str, Any] = {"id": self.id}
        for f in fields(self):
            if f.name == "id":
                continue
            value = getattr(self, f.name)
            if value is not None:
                row[f.name] = value
        return row

    def touch(self, now: datetime | None = None) -> "ProfileRecord":
        """Return a copy stamped with a fresh ``updated_at``."""
        return replace(self, updated_at=now or datetime.now(timezone.utc))


@dataclass
class ProfileDraft:
    """Editable copy of a profile held while the editor is open.

    Absent fields are shown as ``""``. Only fields edited since the draft was
    opened are written back; the rest keep whatever the store holds by then.
    """

    full_name: str = ""
    username: str = ""
    instagram_handle: str = ""
    avatar_url: str = ""
    _edited: set[str] = field(default_factory=set, repr=False)

    @classmethod
    def from_record(cls, record: ProfileRecord) -> "ProfileDraft":
        draft = cls()
        for name in EDITABLE_FIELDS:
            value = getattr(record, name)
            if value is not None:
                setattr(draft, name, value)
        return draft

    def update(self, **changes: str) -> None:
        """Apply user edits. Unknown field names are a programming error."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(self, name, value)
            self._edited.add(name)

    @property
    def edited_fields(self) -> tuple[str, ...]:
        return tuple(name for name in EDITABLE_FIELDS if name in self._edited)

    def values(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}

    def apply_to(self, record: ProfileRecord) -> ProfileRecord:
        """Return ``record`` with every edited draft field written over it."""
        changes = {name: getattr(self, name) for name in self.edited_fields}
        return replace(record, **changes)
