"""Object storage client for uploaded note files.

Talks to a Supabase-style storage REST API::

    GET    {STORAGE_URL}/object/{bucket}/{path}   -- download
    DELETE {STORAGE_URL}/object/{bucket}          -- remove, body {"prefixes": [path]}

Usage::

    async with ObjectStorage(url, bucket, service_key) as storage:
        data = await storage.download("user-1/notes/week1.md")
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from studydesk.config import get_settings
from studydesk.exceptions import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage:
    """Async client for one storage bucket.

    Args:
        url: Storage API base URL (trailing slash is stripped).
        bucket: Bucket holding note files.
        service_key: Bearer key sent with every request; may be empty.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass a ``MockTransport``).
    """

    def __init__(
        self,
        url: str,
        bucket: str,
        service_key: str = "",
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self.bucket = bucket
        headers = {"Authorization": f"Bearer {service_key}"} if service_key else {}
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    def _object_url(self, path: str) -> str:
        return f"{self._url}/object/{self.bucket}/{quote(path.lstrip('/'))}"

    async def delete(self, path: str) -> None:
        """Remove one object.

        Raises:
            StorageError: On transport failure or a non-2xx response.
        """
        try:
            response = await self._client.request(
                "DELETE",
                f"{self._url}/object/{self.bucket}",
                json={"prefixes": [path]},
            )
        except httpx.HTTPError as exc:
            raise StorageError(path, str(exc) or None) from exc
        if response.status_code >= 400:
            raise StorageError(path, f"Storage delete failed ({response.status_code}): {response.text}")
        logger.info("Deleted storage object %s/%s", self.bucket, path)

    async def download(self, path: str) -> bytes:
        """Fetch one object's bytes.

        Raises:
            StorageError: On transport failure or a non-2xx response.
        """
        try:
            response = await self._client.get(self._object_url(path))
        except httpx.HTTPError as exc:
            raise StorageError(path, str(exc) or None) from exc
        if response.status_code >= 400:
            raise StorageError(path, f"Storage download failed ({response.status_code})")
        return response.content

    async def download_text(self, path: str | None) -> str:
        """Download and decode as UTF-8; any failure yields an empty string."""
        if not path:
            return ""
        try:
            data = await self.download(path)
        except StorageError:
            logger.warning("Could not load stored file %s", path, exc_info=True)
            return ""
        return data.decode("utf-8", errors="replace")

    async def close(self) -> None:
        """Dispose the underlying ``httpx.AsyncClient``."""
        await self._client.aclose()

    async def __aenter__(self) -> ObjectStorage:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


async def get_storage():
    """FastAPI dependency yielding a storage client configured from settings."""
    settings = get_settings()
    storage = ObjectStorage(
        settings.STORAGE_URL,
        settings.STORAGE_BUCKET,
        settings.STORAGE_SERVICE_KEY,
        timeout=settings.STORAGE_TIMEOUT,
    )
    try:
        yield storage
    finally:
        await storage.close()
