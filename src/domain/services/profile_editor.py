"""Profile editor controller: draft editing, avatar auto-save and explicit save."""

import asyncio
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

import structlog

from core.exceptions import AppException, PreconditionError, StoreError, UserCancelledError
from domain.entities.avatar import TERMINAL_STATES, AvatarResult, ImageSourceKind, display_url
from domain.entities.profile import ProfileDraft, ProfileRecord, Session
from domain.repositories.session_provider import ISessionProvider
from domain.services.avatar_pipeline import AvatarPipeline
from domain.services.profile_store import ProfileStore

logger = structlog.get_logger()

# Columns written by the avatar auto-save side channel.
AUTO_SAVE_FIELDS = ("avatar_url", "updated_at")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileEditorController:
    """Orchestrates one profile editing session.

    Two independent write paths target the same profile row:

    * an avatar auto-save, started as soon as the pipeline publishes and
      carrying only ``avatar_url`` and ``updated_at``;
    * the explicit ``save()``, carrying every present draft field.

    Neither waits for the other. ProfileStore serializes them per id, and both
    are merge-upserts, so neither can wipe columns it does not carry.
    """

    def __init__(
        self,
        sessions: ISessionProvider,
        store: ProfileStore,
        pipeline: AvatarPipeline,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._sessions = sessions
        self._store = store
        self._pipeline = pipeline
        self._clock = clock
        self._pending: set[asyncio.Task[StoreError | None]] = set()

        self.profile: ProfileRecord | None = None
        self.draft: ProfileDraft | None = None
        self.last_error: AppException | None = None
        self.loading = False
        self.saving = False

    @property
    def editing(self) -> bool:
        return self.draft is not None

    @property
    def pipeline(self) -> AvatarPipeline:
        return self._pipeline

    async def load(self) -> ProfileRecord | None:
        """Fetch the profile for the current session.

        Falls back to a stub on backend failure so the caller never blocks on
        a missing profile. Returns None (and does nothing) when signed out.
        """
        session = self._sessions.get_session()
        if session is None:
            return None

        self.loading = True
        try:
            self.profile = await self._fetch_or_stub(session)
        finally:
            self.loading = False
        return self.profile

    def begin_edit(self) -> ProfileDraft:
        """Open the editor with a draft copied from the loaded profile."""
        if self.profile is None:
            raise PreconditionError("Profile has not been loaded")
        self.draft = ProfileDraft.from_record(self.profile)
        self.last_error = None
        return self.draft

    def update_draft(self, **changes: str) -> None:
        self._require_draft().update(**changes)

    def cancel_edit(self) -> None:
        """Close the editor without writing. In-flight auto-saves still land."""
        self.draft = None

    def avatar_display_url(self) -> str | None:
        """Avatar URL with a fresh cache-busting token, for rendering only."""
        url = self.draft.avatar_url if self.draft is not None else None
        if not url and self.profile is not None:
            url = self.profile.avatar_url
        return display_url(url) if url else None

    async def change_avatar(self, source: ImageSourceKind) -> AvatarResult | None:
        """Run the avatar pipeline and auto-save the published URL.

        Returns None without side effects when signed out or when a previous
        run is still in flight.
        """
        session = self._sessions.get_session()
        if session is None:
            return None
        if self._pipeline.busy:
            logger.info("avatar_change_ignored", user_id=session.user_id, reason="busy")
            return None
        if self._pipeline.state in TERMINAL_STATES:
            self._pipeline.reset()

        previous = self._current_avatar_url()
        result = await self._pipeline.run(session.user_id, source, previous_url=previous)

        if result.published and result.canonical_url:
            url = result.canonical_url
            if self.draft is not None:
                self.draft.update(avatar_url=url)
            if self.profile is not None:
                self.profile = replace(self.profile, avatar_url=url)
            self._schedule_auto_save(session, url)
        elif result.error is not None and not isinstance(result.error, UserCancelledError):
            self.last_error = result.error

        return result

    async def save(self) -> ProfileRecord:
        """Commit the draft, refresh from the store and close the editor.

        Only the fields edited in this session are written.
        On failure the editor stays open and the draft is left exactly as the
        user last edited it.

        Raises:
            PreconditionError: No active session, or the editor is not open.
            StoreError: The backend rejected the write.
        """
        session = self._sessions.get_session()
        if session is None:
            raise PreconditionError("Cannot save profile without an active session")
        draft = self._require_draft()

        base = self.profile or ProfileRecord.stub(session)
        record = draft.apply_to(base).touch(self._clock())

        self.saving = True
        try:
            await self._store.save_profile(
                record, fields=("email", *draft.edited_fields, "updated_at")
            )
        except StoreError as e:
            self.last_error = e
            raise
        finally:
            self.saving = False

        try:
            self.profile = await self._store.get_or_create_profile(session)
        except StoreError as e:
            # The write succeeded; show what was written rather than a stub.
            logger.warning("profile_refresh_failed", user_id=session.user_id, error=e.message)
            self.profile = record

        self.draft = None
        self.last_error = None
        return self.profile

    async def wait_for_pending(self) -> list[StoreError]:
        """Wait for outstanding avatar auto-saves; return the ones that failed."""
        if not self._pending:
            return []
        results = await asyncio.gather(*self._pending)
        return [error for error in results if error is not None]

    async def _fetch_or_stub(self, session: Session) -> ProfileRecord:
        try:
            return await self._store.get_or_create_profile(session)
        except StoreError as e:
            self.last_error = e
            logger.warning("profile_load_fell_back_to_stub", user_id=session.user_id)
            return ProfileRecord.stub(session)

    def _schedule_auto_save(self, session: Session, url: str) -> None:
        record = ProfileRecord(
            id=session.user_id,
            email=session.email,
            avatar_url=url,
            updated_at=self._clock(),
        )
        task = asyncio.create_task(self._auto_save(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _auto_save(self, record: ProfileRecord) -> StoreError | None:
        try:
            await self._store.save_profile(record, fields=AUTO_SAVE_FIELDS)
        except StoreError as e:
            self.last_error = e
            logger.warning("avatar_auto_save_failed", user_id=record.id, error=e.message)
            return e
        return None

    def _current_avatar_url(self) -> str | None:
        if self.draft is not None and self.draft.avatar_url:
            return self.draft.avatar_url
        if self.profile is not None:
            return self.profile.avatar_url
        return None

    def _require_draft(self) -> ProfileDraft:
        if self.draft is None:
            raise PreconditionError("Profile editor is not open")
        return self.draft
