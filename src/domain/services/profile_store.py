"""Profile store: fetch-or-stub reads and merge-upsert writes."""

import asyncio
import weakref
from collections.abc import Iterable

import structlog

from core.exceptions import AppException, ProfileNotFoundError, StoreError
from domain.entities.profile import ProfileRecord, Session
from domain.repositories.relational_store import IRelationalStore

logger = structlog.get_logger()

PROFILES_TABLE = "profiles"


class ProfileStore:
    """Reconciles a session's profile with the remote record store.

    Writes for the same profile id run one at a time, so an avatar auto-save
    and an explicit save never interleave their upserts.
    """

    def __init__(self, store: IRelationalStore, table: str = PROFILES_TABLE) -> None:
        self._store = store
        self._table = table
        self._write_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def fetch_profile(self, session: Session) -> ProfileRecord:
        """Read the stored profile for ``session``.

        Raises:
            ProfileNotFoundError: No row exists for the user.
            StoreError: The backend failed.
        """
        try:
            row = await self._store.select_one(self._table, {"id": session.user_id})
        except AppException:
            raise
        except Exception as e:
            logger.warning(
                "profile_fetch_failed",
                user_id=session.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreError("select_profile", details={"user_id": session.user_id}) from e

        if row is None:
            raise ProfileNotFoundError(session.user_id)
        return ProfileRecord.from_row(session, row)

    async def get_or_create_profile(self, session: Session) -> ProfileRecord:
        """Return the stored profile, or a local stub when none exists yet.

        The stub is not written back; the row is created by the first save.

        Raises:
            StoreError: The backend failed. Callers fall back to
                ``ProfileRecord.stub(session)``.
        """
        try:
            record = await self.fetch_profile(session)
        except ProfileNotFoundError:
            logger.info("profile_stubbed", user_id=session.user_id)
            return ProfileRecord.stub(session)

        logger.debug("profile_loaded", user_id=session.user_id)
        return record

    async def save_profile(
        self,
        record: ProfileRecord,
        fields: Iterable[str] | None = None,
    ) -> ProfileRecord:
        """Merge-upsert the present fields of ``record``.

        Fields that are None are left out of the payload and so never null out
        a stored value. ``fields`` narrows the payload further (``id`` is
        always sent). ``updated_at`` must already be stamped by the caller.

        Raises:
            StoreError: The backend rejected the write.
        """
        row = record.to_row()
        if fields is not None:
            keep = {"id", *fields}
            row = {key: value for key, value in row.items() if key in keep}
        lock = self._lock_for(record.id)
        async with lock:
            try:
                await self._store.upsert(self._table, row, on_conflict="id")
            except AppException:
                raise
            except Exception as e:
                logger.warning(
                    "profile_save_failed",
                    user_id=record.id,
                    fields=sorted(row),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise StoreError("upsert_profile", details={"user_id": record.id}) from e

        logger.info("profile_saved", user_id=record.id, fields=sorted(row))
        return record

    def _lock_for(self, profile_id: str) -> asyncio.Lock:
        lock = self._write_locks.get(profile_id)
        if lock is None:
            lock = asyncio.Lock()
            self._write_locks[profile_id] = lock
        return lock
