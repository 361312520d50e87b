"""Profile API routes."""

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from api.dependencies.auth import CurrentSession
from api.v1.dependencies import build_editor, get_blob_store, get_profile_store
from api.v1.schemas.common import ErrorResponse
from api.v1.schemas.profile import (
    AvatarDetailResponse,
    AvatarResponse,
    NoticeResponse,
    ProfileDetailResponse,
    ProfileResponse,
    ProfileUpdate,
)
from core.config import settings
from core.exceptions import InvalidImageError, PreconditionError, StoreError
from core.rate_limit import limiter
from domain.entities.avatar import ImageSourceKind, display_url
from domain.entities.profile import ProfileRecord
from domain.repositories.blob_store import IBlobStore
from domain.services.profile_store import ProfileStore
from infrastructure.media.upload_source import UploadedImageSource
from infrastructure.notifications.collecting import CollectingNotifier

router = APIRouter(prefix="/profile", tags=["profile"])


def _to_response(record: ProfileRecord) -> ProfileResponse:
    return ProfileResponse(
        id=record.id,
        email=record.email,
        full_name=record.full_name,
        username=record.username,
        instagram_handle=record.instagram_handle,
        avatar_url=record.avatar_url,
        avatar_display_url=display_url(record.avatar_url) if record.avatar_url else None,
        updated_at=record.updated_at,
    )


@router.get(
    "",
    response_model=ProfileDetailResponse,
    summary="Get the caller's profile",
    responses={
        200: {"description": "Stored profile, or a stub when none exists yet"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_profile(
    request: Request,
    session: CurrentSession,
    store: ProfileStore = Depends(get_profile_store),
    blob_store: IBlobStore = Depends(get_blob_store),
) -> ProfileDetailResponse:
    """Return the caller's profile.

    A missing row, and a store that cannot be reached, both yield the stub
    record so clients never block on profile absence.
    """
    editor = build_editor(session, store, blob_store)
    record = await editor.load()
    if record is None:
        raise PreconditionError()
    return ProfileDetailResponse(data=_to_response(record))


@router.put(
    "",
    response_model=ProfileDetailResponse,
    summary="Save profile fields",
    responses={
        412: {"model": ErrorResponse, "description": "No active session"},
        502: {"model": ErrorResponse, "description": "Profile store rejected the write"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def save_profile(
    request: Request,
    body: ProfileUpdate,
    session: CurrentSession,
    store: ProfileStore = Depends(get_profile_store),
    blob_store: IBlobStore = Depends(get_blob_store),
) -> ProfileDetailResponse:
    """Merge the supplied fields into the profile and return the stored result."""
    editor = build_editor(session, store, blob_store)
    await editor.load()
    editor.begin_edit()
    changes = {
        key: value
        for key, value in body.model_dump(exclude_unset=True).items()
        if value is not None
    }
    editor.update_draft(**changes)
    record = await editor.save()
    return ProfileDetailResponse(data=_to_response(record))


@router.post(
    "/avatar",
    response_model=AvatarDetailResponse,
    summary="Upload a new avatar",
    responses={
        400: {"model": ErrorResponse, "description": "Empty upload (picker dismissed)"},
        422: {"model": ErrorResponse, "description": "Unreadable or oversized image"},
        502: {"model": ErrorResponse, "description": "Storage or profile store failure"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def upload_avatar(
    request: Request,
    session: CurrentSession,
    file: UploadFile = File(..., description="Image picked or captured on the device"),
    source: ImageSourceKind = Form(ImageSourceKind.LIBRARY),
    store: ProfileStore = Depends(get_profile_store),
    blob_store: IBlobStore = Depends(get_blob_store),
) -> AvatarDetailResponse:
    """Crop, upload and publish an avatar, then persist its URL.

    The stored ``avatar_url`` is the canonical public URL; the response also
    carries a cache-busted URL for immediate display.
    """
    data = await file.read(settings.avatar_max_bytes + 1)
    if len(data) > settings.avatar_max_bytes:
        raise InvalidImageError(f"Image exceeds {settings.avatar_max_bytes} bytes")

    notifier = CollectingNotifier()
    editor = build_editor(
        session,
        store,
        blob_store,
        image_source=UploadedImageSource(file.filename or "", data, source),
        notifier=notifier,
    )
    await editor.load()
    result = await editor.change_avatar(source)

    if result is None or not result.published or result.canonical_url is None:
        if result is not None and result.error is not None:
            raise result.error
        raise StoreError("upload_avatar")

    failures = await editor.wait_for_pending()
    if failures:
        raise failures[0]

    content_type = result.asset.content_type if result.asset else ""
    return AvatarDetailResponse(
        data=AvatarResponse(
            state=result.state,
            avatar_url=result.canonical_url,
            avatar_display_url=display_url(result.canonical_url),
            content_type=content_type,
        ),
        notices=[NoticeResponse(kind=n.kind, message=n.message) for n in notifier.notices],
    )
