"""Blob store protocol."""

from typing import Protocol


class IBlobStore(Protocol):
    """Object storage holding avatar images."""

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> None:
        """Store ``data`` at ``path``, replacing any object there when ``upsert``."""
        ...

    def get_public_url(self, path: str) -> str:
        """Return the canonical public URL of ``path``. Never fails."""
        ...
