"""Object-storage client for message media.

Talks to a Supabase-compatible storage REST API over httpx. Objects live in a
single bucket and are addressed by path; public URLs follow the
``/storage/v1/object/public/<bucket>/<path>`` convention, which is also how
managed attachments are recognised when a message is sent.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from brewhub_dm.core.settings import settings

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the storage backend rejects or cannot complete a request."""


class ObjectStorage(Protocol):
    """Operations the messaging services need from object storage."""

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` and return its public URL."""
        ...

    async def remove(self, bucket: str, paths: list[str]) -> None:
        """Delete the given object paths."""
        ...


@dataclass(frozen=True)
class StorageConfig:
    """Immutable configuration for the storage client."""

    base_url: str
    service_key: str | None
    timeout_seconds: float


def load_storage_config() -> StorageConfig:
    """Build configuration object from global settings."""
    return StorageConfig(
        base_url=settings.storage_base_url.rstrip("/"),
        service_key=settings.storage_service_key,
        timeout_seconds=float(settings.storage_http_timeout_seconds),
    )


class HttpObjectStorage:
    """HTTP client wrapper for the storage service."""

    def __init__(self, config: StorageConfig | None = None) -> None:
        self.config = config or load_storage_config()
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        if not self.config.service_key:
            return {}
        return {
            "Authorization": f"Bearer {self.config.service_key}",
            "apikey": self.config.service_key,
        }

    def public_url(self, bucket: str, path: str) -> str:
        """Return the public URL for an object."""
        return f"{self.config.base_url}/storage/v1/object/public/{bucket}/{path}"

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        client = await self._ensure_client()
        headers = {**self._auth_headers(), "Content-Type": content_type, "x-upsert": "false"}
        try:
            response = await client.post(
                f"/storage/v1/object/{bucket}/{path}",
                content=data,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Storage upload failed: {exc}") from exc
        if response.status_code >= 400:
            raise StorageError(f"Storage responded with {response.status_code}")
        return self.public_url(bucket, path)

    async def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        client = await self._ensure_client()
        try:
            response = await client.request(
                "DELETE",
                f"/storage/v1/object/{bucket}",
                json={"prefixes": paths},
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Storage delete failed: {exc}") from exc
        if response.status_code >= 400:
            raise StorageError(f"Storage responded with {response.status_code}")

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _StorageSingleton:
    """Singleton wrapper for HttpObjectStorage."""

    _instance: HttpObjectStorage | None = None

    @classmethod
    def get_instance(cls) -> HttpObjectStorage:
        if cls._instance is None:
            cls._instance = HttpObjectStorage()
        return cls._instance


def get_object_storage() -> HttpObjectStorage:
    """Return the shared storage client."""
    return _StorageSingleton.get_instance()


def parse_managed_storage_path(url: str | None, bucket: str | None = None) -> str | None:
    """Return the object path if ``url`` points into our media bucket."""
    if not url or "://" not in url:
        return None
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        return None
    marker = f"/storage/v1/object/public/{bucket}/" if bucket else settings.dm_media_public_prefix
    index = parsed.path.find(marker)
    if index == -1:
        return None
    path = parsed.path[index + len(marker):]
    return path or None
