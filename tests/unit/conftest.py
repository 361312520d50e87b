"""Shared fixtures for unit tests."""

import pytest

from domain.entities.avatar import AcquiredImage
from domain.entities.profile import Session
from domain.services.avatar_pipeline import AvatarPipeline
from domain.services.profile_editor import ProfileEditorController
from domain.services.profile_store import ProfileStore
from infrastructure.auth.provider import StaticSessionProvider
from tests.fakes import (
    FakeImageSource,
    FakePermissionBroker,
    InMemoryBlobStore,
    InMemoryRelationalStore,
    RecordingNotifier,
)


@pytest.fixture
def session() -> Session:
    return Session(user_id="u1", email="ann@x.com")


@pytest.fixture
def relational_store() -> InMemoryRelationalStore:
    return InMemoryRelationalStore()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def permissions() -> FakePermissionBroker:
    return FakePermissionBroker()


@pytest.fixture
def image_source() -> FakeImageSource:
    return FakeImageSource(AcquiredImage(uri="file:///tmp/a.jpg", data=b"jpeg-bytes"))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def profile_store(relational_store: InMemoryRelationalStore) -> ProfileStore:
    return ProfileStore(relational_store)


@pytest.fixture
def pipeline(
    blob_store: InMemoryBlobStore,
    permissions: FakePermissionBroker,
    image_source: FakeImageSource,
    notifier: RecordingNotifier,
) -> AvatarPipeline:
    """Pipeline without a cropper: image bytes pass through unchanged."""
    return AvatarPipeline(
        blob_store=blob_store,
        permissions=permissions,
        image_source=image_source,
        notifier=notifier,
    )


@pytest.fixture
def sessions(session: Session) -> StaticSessionProvider:
    return StaticSessionProvider(session)


@pytest.fixture
def editor(
    sessions: StaticSessionProvider,
    profile_store: ProfileStore,
    pipeline: AvatarPipeline,
) -> ProfileEditorController:
    return ProfileEditorController(sessions=sessions, store=profile_store, pipeline=pipeline)
