"""Dependency injection factories for API v1."""

from functools import lru_cache

from core.config import settings
from domain.entities.avatar import ImageSourceKind, PickerOptions
from domain.entities.profile import Session
from domain.repositories.blob_store import IBlobStore
from domain.repositories.media import IImageSource, INotifier
from domain.services.avatar_pipeline import AvatarPipeline
from domain.services.profile_editor import ProfileEditorController
from domain.services.profile_store import ProfileStore
from infrastructure.auth.provider import StaticSessionProvider
from infrastructure.database.session import async_session_factory
from infrastructure.database.sqlalchemy_store import SQLAlchemyRelationalStore
from infrastructure.media.imaging import crop_to_aspect
from infrastructure.media.upload_source import StaticPermissionBroker, UploadedImageSource
from infrastructure.storage.supabase_storage import SupabaseBlobStore


@lru_cache
def get_profile_store() -> ProfileStore:
    """Get the ProfileStore instance.

    One instance per process, so its per-profile write locks are shared by
    every request.
    """
    return ProfileStore(
        SQLAlchemyRelationalStore(async_session_factory),
        table=settings.profiles_table,
    )


@lru_cache
def get_blob_store() -> IBlobStore:
    """Get the avatar blob store."""
    return SupabaseBlobStore()


def build_pipeline(
    blob_store: IBlobStore,
    image_source: IImageSource,
    notifier: INotifier | None = None,
) -> AvatarPipeline:
    """Build a pipeline for one request's image."""
    return AvatarPipeline(
        blob_store=blob_store,
        permissions=StaticPermissionBroker(),
        image_source=image_source,
        notifier=notifier,
        cropper=crop_to_aspect,
        options=PickerOptions(quality=settings.avatar_quality),
    )


def build_editor(
    session: Session,
    store: ProfileStore,
    blob_store: IBlobStore,
    image_source: IImageSource | None = None,
    notifier: INotifier | None = None,
) -> ProfileEditorController:
    """Build an editor controller bound to the request's session.

    Without an image source the pipeline has nothing to acquire, which is all
    the plain profile routes need.
    """
    source = image_source or UploadedImageSource("", b"", ImageSourceKind.LIBRARY)
    return ProfileEditorController(
        sessions=StaticSessionProvider(session),
        store=store,
        pipeline=build_pipeline(blob_store, source, notifier),
    )
