"""Unit tests for ProfileEditorController."""

from datetime import datetime, timezone

import pytest

from core.exceptions import PreconditionError, StoreError
from domain.entities.avatar import AcquiredImage, AvatarState, ImageSourceKind
from domain.entities.profile import ProfileRecord, Session
from domain.services.avatar_pipeline import AvatarPipeline
from domain.services.profile_editor import ProfileEditorController
from domain.services.profile_store import ProfileStore
from infrastructure.auth.provider import StaticSessionProvider
from tests.fakes import (
    FakeImageSource,
    FakePermissionBroker,
    InMemoryBlobStore,
    InMemoryRelationalStore,
)

NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def signed_out(profile_store: ProfileStore, pipeline: AvatarPipeline) -> ProfileEditorController:
    return ProfileEditorController(
        sessions=StaticSessionProvider(None), store=profile_store, pipeline=pipeline
    )


class TestLoad:
    @pytest.mark.asyncio
    async def test_loads_stored_profile(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        relational_store.tables["profiles"]["u1"] = {"id": "u1", "full_name": "Ann"}

        profile = await editor.load()

        assert profile is not None
        assert profile.full_name == "Ann"
        assert editor.loading is False

    @pytest.mark.asyncio
    async def test_store_failure_falls_back_to_stub(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        relational_store.select_error = ConnectionError()

        profile = await editor.load()

        assert profile == ProfileRecord(id="u1", email="ann@x.com")
        assert isinstance(editor.last_error, StoreError)

    @pytest.mark.asyncio
    async def test_signed_out_does_nothing(
        self,
        signed_out: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        assert await signed_out.load() is None
        assert relational_store.selects == []


class TestEditing:
    @pytest.mark.asyncio
    async def test_begin_edit_copies_profile(self, editor: ProfileEditorController) -> None:
        editor.profile = ProfileRecord(id="u1", email="ann@x.com", full_name="Ann")

        draft = editor.begin_edit()

        assert editor.editing
        assert draft.values() == {
            "full_name": "Ann",
            "username": "",
            "instagram_handle": "",
            "avatar_url": "",
        }

    def test_begin_edit_requires_loaded_profile(self, editor: ProfileEditorController) -> None:
        with pytest.raises(PreconditionError):
            editor.begin_edit()

    def test_update_requires_open_editor(self, editor: ProfileEditorController) -> None:
        with pytest.raises(PreconditionError):
            editor.update_draft(full_name="Ann")

    @pytest.mark.asyncio
    async def test_cancel_discards_draft(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()
        editor.begin_edit()
        editor.update_draft(full_name="Changed")

        editor.cancel_edit()

        assert not editor.editing
        assert editor.profile is not None
        assert editor.profile.full_name is None
        assert relational_store.upserts == []


class TestSave:
    @pytest.mark.asyncio
    async def test_saved_draft_is_read_back(
        self,
        editor: ProfileEditorController,
        profile_store: ProfileStore,
        session: Session,
    ) -> None:
        await editor.load()
        editor.begin_edit()
        editor.update_draft(full_name="Ann B")

        profile = await editor.save()

        assert profile.full_name == "Ann B"
        assert not editor.editing
        assert editor.last_error is None
        refreshed = await profile_store.get_or_create_profile(session)
        assert refreshed.full_name == "Ann B"

    @pytest.mark.asyncio
    async def test_failed_save_keeps_draft_and_editor_open(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()
        editor.begin_edit()
        editor.update_draft(full_name="Ann C")
        relational_store.upsert_error = ConnectionError("offline")

        with pytest.raises(StoreError):
            await editor.save()

        assert editor.editing
        assert editor.draft is not None
        assert editor.draft.full_name == "Ann C"
        assert isinstance(editor.last_error, StoreError)
        assert editor.saving is False

    @pytest.mark.asyncio
    async def test_stamps_updated_at_from_clock(
        self,
        profile_store: ProfileStore,
        pipeline: AvatarPipeline,
        sessions: StaticSessionProvider,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        editor = ProfileEditorController(sessions, profile_store, pipeline, clock=lambda: NOW)
        await editor.load()
        editor.begin_edit()
        editor.update_draft(username="ann")

        await editor.save()

        assert relational_store.tables["profiles"]["u1"]["updated_at"] == NOW

    @pytest.mark.asyncio
    async def test_absent_fields_are_not_written(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()
        editor.begin_edit()
        editor.update_draft(full_name="Ann")

        await editor.save()

        _, payload = relational_store.upserts[-1]
        assert set(payload) == {"id", "email", "full_name", "updated_at"}

    @pytest.mark.asyncio
    async def test_cleared_field_is_written_as_empty(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        relational_store.tables["profiles"]["u1"] = {"id": "u1", "instagram_handle": "ann"}
        await editor.load()
        editor.begin_edit()
        editor.update_draft(instagram_handle="")

        await editor.save()

        assert relational_store.tables["profiles"]["u1"]["instagram_handle"] == ""

    @pytest.mark.asyncio
    async def test_save_without_session_is_rejected(
        self,
        signed_out: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        with pytest.raises(PreconditionError):
            await signed_out.save()

        assert relational_store.upserts == []

    @pytest.mark.asyncio
    async def test_save_without_open_editor_is_rejected(
        self, editor: ProfileEditorController
    ) -> None:
        await editor.load()

        with pytest.raises(PreconditionError):
            await editor.save()

    @pytest.mark.asyncio
    async def test_text_save_keeps_concurrent_avatar_change(
        self,
        editor: ProfileEditorController,
        profile_store: ProfileStore,
        sessions: StaticSessionProvider,
        blob_store: InMemoryBlobStore,
        permissions: FakePermissionBroker,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        relational_store.tables["profiles"]["u1"] = {
            "id": "u1",
            "avatar_url": "https://store/u1/avatar.jpg",
        }
        await editor.load()
        editor.begin_edit()
        editor.update_draft(full_name="Ann")

        other = ProfileEditorController(
            sessions=sessions,
            store=profile_store,
            pipeline=AvatarPipeline(
                blob_store,
                permissions,
                FakeImageSource(AcquiredImage(uri="file:///tmp/b.png", data=b"png")),
            ),
        )
        await other.load()
        await other.change_avatar(ImageSourceKind.LIBRARY)
        await other.wait_for_pending()

        profile = await editor.save()

        row = relational_store.tables["profiles"]["u1"]
        assert row["avatar_url"] == "https://store/u1/avatar.png"
        assert row["full_name"] == "Ann"
        assert profile.avatar_url == "https://store/u1/avatar.png"

    @pytest.mark.asyncio
    async def test_loaded_fields_are_not_rewritten(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        relational_store.tables["profiles"]["u1"] = {
            "id": "u1",
            "username": "ann",
            "avatar_url": "https://store/u1/avatar.jpg",
        }
        await editor.load()
        editor.begin_edit()
        editor.update_draft(full_name="Ann")

        await editor.save()

        _, payload = relational_store.upserts[-1]
        assert set(payload) == {"id", "email", "full_name", "updated_at"}


class TestChangeAvatar:
    @pytest.mark.asyncio
    async def test_publish_updates_draft_and_auto_saves(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()
        editor.begin_edit()

        result = await editor.change_avatar(ImageSourceKind.LIBRARY)
        failures = await editor.wait_for_pending()

        assert result is not None and result.published
        assert failures == []
        assert editor.draft is not None
        assert editor.draft.avatar_url == "https://store/u1/avatar.jpg"
        assert editor.profile is not None
        assert editor.profile.avatar_url == "https://store/u1/avatar.jpg"
        assert relational_store.tables["profiles"]["u1"]["avatar_url"] == (
            "https://store/u1/avatar.jpg"
        )

    @pytest.mark.asyncio
    async def test_auto_save_writes_only_avatar_fields(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        relational_store.tables["profiles"]["u1"] = {"id": "u1", "full_name": "Ann"}
        await editor.load()
        editor.begin_edit()
        editor.update_draft(full_name="Unsaved")

        await editor.change_avatar(ImageSourceKind.LIBRARY)
        await editor.wait_for_pending()

        _, payload = relational_store.upserts[-1]
        assert set(payload) == {"id", "avatar_url", "updated_at"}
        assert relational_store.tables["profiles"]["u1"]["full_name"] == "Ann"

    @pytest.mark.asyncio
    async def test_auto_save_lands_after_cancel(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()
        editor.begin_edit()

        await editor.change_avatar(ImageSourceKind.LIBRARY)
        editor.cancel_edit()
        await editor.wait_for_pending()

        assert relational_store.tables["profiles"]["u1"]["avatar_url"] == (
            "https://store/u1/avatar.jpg"
        )

    @pytest.mark.asyncio
    async def test_works_without_open_editor(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()

        await editor.change_avatar(ImageSourceKind.CAMERA)
        await editor.wait_for_pending()

        assert not editor.editing
        assert "u1" in relational_store.tables["profiles"]

    @pytest.mark.asyncio
    async def test_auto_save_failure_is_reported(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()
        relational_store.upsert_error = ConnectionError()

        result = await editor.change_avatar(ImageSourceKind.LIBRARY)
        failures = await editor.wait_for_pending()

        assert result is not None and result.published
        assert len(failures) == 1
        assert editor.last_error is failures[0]

    @pytest.mark.asyncio
    async def test_cancelled_pick_leaves_no_error(
        self,
        editor: ProfileEditorController,
        image_source: FakeImageSource,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()
        image_source.image = None

        result = await editor.change_avatar(ImageSourceKind.LIBRARY)

        assert result is not None
        assert result.state == AvatarState.CANCELLED
        assert editor.last_error is None
        assert relational_store.upserts == []

    @pytest.mark.asyncio
    async def test_denied_sets_last_error(
        self,
        editor: ProfileEditorController,
        permissions: FakePermissionBroker,
    ) -> None:
        await editor.load()
        permissions.camera = False

        result = await editor.change_avatar(ImageSourceKind.CAMERA)

        assert result is not None
        assert result.state == AvatarState.DENIED
        assert editor.last_error is result.error

    @pytest.mark.asyncio
    async def test_upload_failure_keeps_previous_avatar(
        self,
        editor: ProfileEditorController,
        blob_store: InMemoryBlobStore,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        relational_store.tables["profiles"]["u1"] = {
            "id": "u1",
            "avatar_url": "https://store/u1/avatar.png",
        }
        await editor.load()
        blob_store.upload_error = ConnectionError()

        await editor.change_avatar(ImageSourceKind.LIBRARY)

        assert editor.profile is not None
        assert editor.profile.avatar_url == "https://store/u1/avatar.png"
        assert relational_store.upserts == []

    @pytest.mark.asyncio
    async def test_repeated_changes_reset_the_pipeline(
        self, editor: ProfileEditorController
    ) -> None:
        await editor.load()

        await editor.change_avatar(ImageSourceKind.LIBRARY)
        second = await editor.change_avatar(ImageSourceKind.LIBRARY)
        await editor.wait_for_pending()

        assert second is not None and second.published

    @pytest.mark.asyncio
    async def test_signed_out_does_nothing(
        self,
        signed_out: ProfileEditorController,
        blob_store: InMemoryBlobStore,
    ) -> None:
        assert await signed_out.change_avatar(ImageSourceKind.LIBRARY) is None
        assert blob_store.uploads == []


class TestAvatarDisplayUrl:
    def test_appends_cache_buster(self, editor: ProfileEditorController) -> None:
        editor.profile = ProfileRecord(
            id="u1", email="ann@x.com", avatar_url="https://store/u1/avatar.jpg"
        )

        url = editor.avatar_display_url()

        assert url is not None
        assert url.startswith("https://store/u1/avatar.jpg?t=")

    def test_none_without_avatar(self, editor: ProfileEditorController) -> None:
        editor.profile = ProfileRecord(id="u1", email="ann@x.com")

        assert editor.avatar_display_url() is None

    @pytest.mark.asyncio
    async def test_stored_url_has_no_cache_buster(
        self,
        editor: ProfileEditorController,
        relational_store: InMemoryRelationalStore,
    ) -> None:
        await editor.load()

        await editor.change_avatar(ImageSourceKind.LIBRARY)
        await editor.wait_for_pending()

        assert "?t=" not in relational_store.tables["profiles"]["u1"]["avatar_url"]
