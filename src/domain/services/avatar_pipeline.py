"""Avatar pipeline: permission, acquisition, upload and publication.

The pipeline is an explicit state machine (see ``domain.entities.avatar``).
One run walks it from IDLE to one of::

    PUBLISHED   upload accepted, canonical URL returned
    DENIED      permission refused, user notified, nothing acquired
    CANCELLED   picker dismissed, silent, nothing uploaded
    IDLE        upload rejected, user notified, previous avatar untouched

Expected outcomes come back as an ``AvatarResult``; only programming errors
(driving the machine along a missing edge) raise.
"""

from collections.abc import Callable

import structlog

from core.exceptions import (
    AppException,
    InvalidImageError,
    InvalidTransitionError,
    PermissionDeniedError,
    StoreError,
    UserCancelledError,
)
from domain.entities.avatar import (
    TERMINAL_STATES,
    AcquiredImage,
    AssetStatus,
    AvatarAsset,
    AvatarResult,
    AvatarState,
    ImageSourceKind,
    PickerOptions,
    can_transition,
    content_type_for,
    file_extension,
    storage_path,
)
from domain.repositories.blob_store import IBlobStore
from domain.repositories.media import IImageSource, INotifier, IPermissionBroker

logger = structlog.get_logger()

# Used when the picked asset's URI carries no extension.
FALLBACK_EXTENSION = "jpg"

ImageCropper = Callable[[bytes, str, PickerOptions], bytes]
StateListener = Callable[[AvatarState, AvatarState], None]


class Notices:
    """Notice kinds handed to the notifier."""

    PERMISSION_DENIED = "permission_denied"
    IMAGE_INVALID = "image_invalid"
    UPLOAD_FAILED = "upload_failed"
    UPLOAD_SUCCEEDED = "upload_succeeded"


class NullNotifier:
    """Notifier that drops every notice."""

    def notify(self, kind: str, message: str) -> None:
        return None


class AvatarPipeline:
    """Turns a picked or captured image into the user's published avatar."""

    def __init__(
        self,
        blob_store: IBlobStore,
        permissions: IPermissionBroker,
        image_source: IImageSource,
        notifier: INotifier | None = None,
        cropper: ImageCropper | None = None,
        options: PickerOptions | None = None,
    ) -> None:
        self._blobs = blob_store
        self._permissions = permissions
        self._images = image_source
        self._notifier = notifier or NullNotifier()
        self._cropper = cropper
        self._options = options or PickerOptions()
        self._state = AvatarState.IDLE
        self._asset: AvatarAsset | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> AvatarState:
        return self._state

    @property
    def asset(self) -> AvatarAsset | None:
        return self._asset

    @property
    def busy(self) -> bool:
        """True while a run is between IDLE and a terminal state."""
        return self._state not in TERMINAL_STATES and self._state != AvatarState.IDLE

    def subscribe(self, listener: StateListener) -> None:
        """Register ``listener(previous, current)`` for every transition."""
        self._listeners.append(listener)

    def reset(self) -> None:
        """Return a finished pipeline to IDLE so it can run again."""
        if self.busy:
            raise InvalidTransitionError(self._state.value, AvatarState.IDLE.value)
        self._set_state(AvatarState.IDLE)
        self._asset = None

    async def run(
        self,
        user_id: str,
        source: ImageSourceKind,
        previous_url: str | None = None,
    ) -> AvatarResult:
        """Drive one avatar change for ``user_id`` from ``source``.

        ``previous_url`` is the avatar currently shown; it is only used to
        report an object orphaned by an extension change.
        """
        self._transition(AvatarState.REQUESTING_PERMISSION)
        self._asset = None
        log = logger.bind(user_id=user_id, source=source.value)

        if not await self._request_permission(source, log):
            self._transition(AvatarState.DENIED)
            error = PermissionDeniedError(source.value)
            log.info("avatar_permission_denied")
            self._notifier.notify(Notices.PERMISSION_DENIED, error.message)
            return AvatarResult(state=self._state, error=error)

        self._transition(AvatarState.ACQUIRING_IMAGE)
        try:
            image = await self._acquire(source)
        except Exception as e:
            return self._reject_image(InvalidImageError(f"Could not read image: {e}"), None, log)
        if image is None:
            self._transition(AvatarState.CANCELLED)
            log.debug("avatar_picker_cancelled")
            return AvatarResult(state=self._state, error=UserCancelledError(source.value))

        ext = file_extension(image.uri) or FALLBACK_EXTENSION
        asset = AvatarAsset(
            local_uri=image.uri,
            content_type=content_type_for(ext),
            status=AssetStatus.ACQUIRING,
        )
        self._asset = asset

        try:
            data = self._crop(image, ext)
        except AppException as e:
            return self._reject_image(e, asset, log)

        self._transition(AvatarState.UPLOADING)
        asset.status = AssetStatus.UPLOADING
        path = storage_path(user_id, ext)

        try:
            await self._blobs.upload(path, data, content_type=asset.content_type, upsert=True)
        except Exception as e:
            error = e if isinstance(e, StoreError) else StoreError(
                "upload_avatar", details={"path": path}
            )
            asset.status = AssetStatus.FAILED
            self._transition(AvatarState.IDLE)
            log.warning(
                "avatar_upload_failed",
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._notifier.notify(
                Notices.UPLOAD_FAILED, "Failed to upload image. Please try again."
            )
            return AvatarResult(state=self._state, asset=asset, error=error)

        canonical = self._blobs.get_public_url(path)
        asset.remote_url = canonical
        asset.status = AssetStatus.PUBLISHED
        self._transition(AvatarState.PUBLISHED)

        self._warn_if_orphaned(previous_url, ext, log)
        log.info("avatar_published", path=path, bytes=len(data))
        self._notifier.notify(Notices.UPLOAD_SUCCEEDED, "Profile picture updated successfully!")
        return AvatarResult(state=self._state, canonical_url=canonical, asset=asset)

    async def _request_permission(self, source: ImageSourceKind, log: structlog.BoundLogger) -> bool:
        try:
            if source == ImageSourceKind.CAMERA:
                return await self._permissions.request_camera_permission()
            return await self._permissions.request_library_permission()
        except Exception as e:
            # A broken permission prompt counts as a refusal.
            log.warning("avatar_permission_request_failed", error=str(e))
            return False

    async def _acquire(self, source: ImageSourceKind) -> AcquiredImage | None:
        if source == ImageSourceKind.CAMERA:
            return await self._images.capture_from_camera(self._options)
        return await self._images.pick_from_library(self._options)

    def _crop(self, image: AcquiredImage, ext: str) -> bytes:
        if self._cropper is None:
            return image.data
        try:
            return self._cropper(image.data, ext, self._options)
        except AppException:
            raise
        except Exception as e:
            raise InvalidImageError(f"Could not crop image: {e}") from e

    def _reject_image(
        self,
        error: AppException,
        asset: AvatarAsset | None,
        log: structlog.BoundLogger,
    ) -> AvatarResult:
        if asset is not None:
            asset.status = AssetStatus.FAILED
        self._transition(AvatarState.IDLE)
        log.warning("avatar_image_invalid", error=error.message)
        self._notifier.notify(Notices.IMAGE_INVALID, error.message)
        return AvatarResult(state=self._state, asset=asset, error=error)

    def _warn_if_orphaned(
        self, previous_url: str | None, ext: str, log: structlog.BoundLogger
    ) -> None:
        if not previous_url:
            return
        previous_ext = file_extension(previous_url)
        if previous_ext and previous_ext != ext:
            log.warning(
                "avatar_previous_object_orphaned",
                previous_extension=previous_ext,
                extension=ext,
            )

    def _transition(self, target: AvatarState) -> None:
        if not can_transition(self._state, target):
            raise InvalidTransitionError(self._state.value, target.value)
        self._set_state(target)

    def _set_state(self, target: AvatarState) -> None:
        previous, self._state = self._state, target
        if previous == target:
            return
        for listener in self._listeners:
            listener(previous, target)
