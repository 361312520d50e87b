"""Avatar domain entities and state machine definition."""

import time
from dataclasses import dataclass, field
from enum import StrEnum
from urllib.parse import urlsplit

from core.exceptions import AppException

AVATAR_OBJECT_NAME = "avatar"

# Square crop requested from every image source.
SQUARE_ASPECT: tuple[int, int] = (1, 1)
DEFAULT_QUALITY = 0.8


class AvatarState(StrEnum):
    """States of a single avatar change attempt."""

    IDLE = "idle"
    REQUESTING_PERMISSION = "requesting_permission"
    ACQUIRING_IMAGE = "acquiring_image"
    UPLOADING = "uploading"
    PUBLISHED = "published"
    DENIED = "denied"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({AvatarState.PUBLISHED, AvatarState.DENIED, AvatarState.CANCELLED})

# Every edge the pipeline may take. A failed upload returns to IDLE, and so
# does an acquired image that cannot be read or cropped.
TRANSITIONS: dict[AvatarState, frozenset[AvatarState]] = {
    AvatarState.IDLE: frozenset({AvatarState.REQUESTING_PERMISSION}),
    AvatarState.REQUESTING_PERMISSION: frozenset(
        {AvatarState.ACQUIRING_IMAGE, AvatarState.DENIED}
    ),
    AvatarState.ACQUIRING_IMAGE: frozenset(
        {AvatarState.UPLOADING, AvatarState.CANCELLED, AvatarState.IDLE}
    ),
    AvatarState.UPLOADING: frozenset({AvatarState.PUBLISHED, AvatarState.IDLE}),
    AvatarState.PUBLISHED: frozenset(),
    AvatarState.DENIED: frozenset(),
    AvatarState.CANCELLED: frozenset(),
}


def can_transition(current: AvatarState, target: AvatarState) -> bool:
    """Check whether ``current -> target`` is an edge of the state machine."""
    return target in TRANSITIONS[current]


class AssetStatus(StrEnum):
    """Coarse status of the transient avatar asset."""

    IDLE = "idle"
    ACQUIRING = "acquiring"
    UPLOADING = "uploading"
    PUBLISHED = "published"
    FAILED = "failed"


class ImageSourceKind(StrEnum):
    """Where the avatar image comes from."""

    CAMERA = "camera"
    LIBRARY = "library"


@dataclass(frozen=True)
class PickerOptions:
    """Constraints handed to an image source at acquisition time."""

    aspect: tuple[int, int] = SQUARE_ASPECT
    quality: float = DEFAULT_QUALITY
    allows_editing: bool = True


@dataclass(frozen=True)
class AcquiredImage:
    """An image returned by a camera or library picker."""

    uri: str
    data: bytes = field(repr=False)


@dataclass
class AvatarAsset:
    """Transient avatar being captured and uploaded. Never persisted."""

    local_uri: str
    content_type: str
    remote_url: str | None = None
    status: AssetStatus = AssetStatus.IDLE


@dataclass(frozen=True)
class AvatarResult:
    """Outcome of one pipeline run.

    ``canonical_url`` is only set when ``state`` is PUBLISHED; ``error`` holds
    the typed failure for DENIED, CANCELLED and failed uploads.
    """

    state: AvatarState
    canonical_url: str | None = None
    asset: AvatarAsset | None = None
    error: AppException | None = None

    @property
    def published(self) -> bool:
        return self.state == AvatarState.PUBLISHED


def file_extension(uri: str) -> str:
    """Return the extension of the file a URI points at, lower-cased.

    ``file:///tmp/a.jpg`` gives ``jpg``. An extension-less URI gives ``""``.
    """
    path = urlsplit(uri).path or uri
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def storage_path(user_id: str, ext: str) -> str:
    """Fixed object path of a user's avatar: ``{user_id}/avatar.{ext}``."""
    return f"{user_id}/{AVATAR_OBJECT_NAME}.{ext}"


def content_type_for(ext: str) -> str:
    """MIME type sent with the upload, ``image/{ext}``."""
    return f"image/{ext}"


def display_url(canonical_url: str, now_ms: int | None = None) -> str:
    """Append the cache-busting token used when rendering an avatar.

    The result is for display only and must never be stored.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{canonical_url}?t={now_ms}"
