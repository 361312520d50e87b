"""Device media protocols: permissions, image sources and user notices."""

from typing import Protocol

from domain.entities.avatar import AcquiredImage, PickerOptions


class IPermissionBroker(Protocol):
    """Asks the user for access to a media source.

    Every call prompts (or re-checks) afresh; results are never cached.
    """

    async def request_camera_permission(self) -> bool:
        ...

    async def request_library_permission(self) -> bool:
        ...


class IImageSource(Protocol):
    """Produces an image from the camera or the photo library.

    Returns None when the user dismisses the picker.
    """

    async def capture_from_camera(self, options: PickerOptions) -> AcquiredImage | None:
        ...

    async def pick_from_library(self, options: PickerOptions) -> AcquiredImage | None:
        ...


class INotifier(Protocol):
    """Presents short user-facing notices (alerts, toasts)."""

    def notify(self, kind: str, message: str) -> None:
        ...
