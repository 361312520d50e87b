"""Image source and permission broker for images sent over HTTP.

On the HTTP surface the device has already prompted the user and picked the
image; the request body is the acquired asset.
"""

import posixpath

from domain.entities.avatar import AcquiredImage, ImageSourceKind, PickerOptions


class UploadedImageSource:
    """IImageSource that hands out one image received in a request."""

    def __init__(self, filename: str, data: bytes, kind: ImageSourceKind) -> None:
        self._uri = f"upload:///{posixpath.basename(filename or '')}"
        self._data = data
        self._kind = kind

    async def capture_from_camera(self, options: PickerOptions) -> AcquiredImage | None:
        return self._take(ImageSourceKind.CAMERA)

    async def pick_from_library(self, options: PickerOptions) -> AcquiredImage | None:
        return self._take(ImageSourceKind.LIBRARY)

    def _take(self, kind: ImageSourceKind) -> AcquiredImage | None:
        # An empty body is how a client reports a dismissed picker.
        if kind != self._kind or not self._data:
            return None
        return AcquiredImage(uri=self._uri, data=self._data)


class StaticPermissionBroker:
    """IPermissionBroker answering from permissions the client reported."""

    def __init__(self, camera: bool = True, library: bool = True) -> None:
        self._camera = camera
        self._library = library

    async def request_camera_permission(self) -> bool:
        return self._camera

    async def request_library_permission(self) -> bool:
        return self._library
