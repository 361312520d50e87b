"""Supabase Storage implementation of the blob store.

Talks to the Storage REST API directly:

    POST {url}/storage/v1/object/{bucket}/{path}          upload (x-upsert)
    GET  {url}/storage/v1/object/public/{bucket}/{path}   public read
"""

from urllib.parse import quote

import httpx
import structlog

from core.config import settings
from core.exceptions import StoreError

logger = structlog.get_logger()


class SupabaseBlobStore:
    """IBlobStore backed by a Supabase Storage bucket."""

    def __init__(
        self,
        storage_url: str = settings.supabase_storage_url,
        api_key: str = settings.supabase_service_role_key,
        bucket: str = settings.avatar_bucket,
        timeout: float = settings.storage_timeout_seconds,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._storage_url = storage_url.rstrip("/")
        self._api_key = api_key
        self._bucket = bucket
        self._timeout = timeout
        self._client = client

    @property
    def bucket(self) -> str:
        return self._bucket

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> None:
        """Upload ``data`` to ``path`` in the bucket.

        Raises:
            StoreError: The request failed or Storage rejected it. The HTTP
                status, when there is one, is kept in ``details``.
        """
        if not self._storage_url:
            raise StoreError("upload_avatar", message="Supabase storage is not configured")

        url = f"{self._storage_url}/object/{self._bucket}/{quote(path, safe='/')}"
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "apikey": self._api_key,
            "Content-Type": content_type,
            "x-upsert": "true" if upsert else "false",
        }

        try:
            if self._client is not None:
                response = await self._client.post(url, content=data, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, content=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(
                "storage_upload_rejected",
                bucket=self._bucket,
                path=path,
                status_code=status,
                body=e.response.text[:200],
            )
            raise StoreError(
                "upload_avatar",
                message="Storage rejected the upload",
                details={"path": path, "status_code": status},
            ) from e
        except httpx.HTTPError as e:
            logger.warning("storage_upload_failed", bucket=self._bucket, path=path, error=str(e))
            raise StoreError("upload_avatar", details={"path": path}) from e

        logger.debug("storage_upload_completed", bucket=self._bucket, path=path, bytes=len(data))

    def get_public_url(self, path: str) -> str:
        """Canonical public URL of ``path``. No query string, ever."""
        return f"{self._storage_url}/object/public/{self._bucket}/{quote(path, safe='/')}"
