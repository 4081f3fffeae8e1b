"""Blob storage for captured frames."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol
from urllib.parse import quote

import httpx

from homework_scanner.core.config import DEFAULT_BUCKET, DEFAULT_CACHE_TTL_SECONDS, DEFAULT_PUBLIC_BASE
from homework_scanner.domain import PublishedImage
from homework_scanner.domain.errors import PublishError
from homework_scanner.domain.sessions import PNG_CONTENT_TYPE

from .identity import Identity

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Object storage contract used by :class:`BlobPublisher`."""

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_ttl: int,
        *,
        token: str | None = None,
    ) -> str: ...

    def public_address_for(self, key: str) -> str: ...


@dataclass(slots=True)
class StoredObject:
    data: bytes
    content_type: str
    cache_ttl: int


class InMemoryBlobStore:
    """Process-local store for tests and offline runs.

    Objects are served back by the ``/api/blobs`` route, so the public base
    should point at wherever the API is reachable.
    """

    def __init__(self, public_base: str = DEFAULT_PUBLIC_BASE) -> None:
        self._public_base = public_base.rstrip("/")
        self._objects: dict[str, StoredObject] = {}

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_ttl: int,
        *,
        token: str | None = None,
    ) -> str:
        # Upsert: the same key written twice keeps the last payload.
        self._objects[key] = StoredObject(data=bytes(data), content_type=content_type, cache_ttl=cache_ttl)
        return self.public_address_for(key)

    def public_address_for(self, key: str) -> str:
        return f"{self._public_base}/{quote(key)}"

    def get(self, key: str) -> StoredObject | None:
        return self._objects.get(key)

    def keys(self) -> list[str]:
        return sorted(self._objects)


class SupabaseBlobStore:
    """Supabase Storage REST client for a single public bucket."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        bucket: str = DEFAULT_BUCKET,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must include scheme and host")
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._bucket = bucket
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    def _object_url(self, key: str) -> str:
        return f"{self._base_url}/storage/v1/object/{self._bucket}/{quote(key)}"

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_ttl: int,
        *,
        token: str | None = None,
    ) -> str:
        headers = {
            "apikey": self._anon_key,
            "authorization": f"Bearer {token or self._anon_key}",
            "content-type": content_type,
            "cache-control": f"max-age={cache_ttl}",
            "x-upsert": "true",
        }
        try:
            response = await self._client.post(self._object_url(key), content=data, headers=headers)
        except httpx.HTTPError as exc:
            raise PublishError(f"Failed to upload image: {exc}") from exc
        if not response.is_success:
            reason = self._error_reason(response)
            raise PublishError(f"Failed to upload image: {reason}", payload={"status": response.status_code})
        return self.public_address_for(key)

    def public_address_for(self, key: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{quote(key)}"

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


def build_storage_key(user_id: str, unix_millis: int) -> str:
    return f"{user_id}/scan_{unix_millis}.png"


class BlobPublisher:
    """Stores captured frames under ``{identity}/scan_{unix_millis}.png``."""

    def __init__(
        self,
        store: BlobStore,
        *,
        cache_ttl: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._cache_ttl = cache_ttl
        self._clock = clock

    async def publish(self, identity: Identity, frame: bytes) -> PublishedImage:
        if not frame:
            raise PublishError("Refusing to upload an empty frame")
        key = build_storage_key(identity.user_id, int(self._clock() * 1000))
        logger.info("Uploading %.2f KB as %s", len(frame) / 1024, key)
        address = await self._store.put(
            key,
            frame,
            PNG_CONTENT_TYPE,
            self._cache_ttl,
            token=identity.access_token,
        )
        # Clients may return whatever URL they like from put(); the canonical
        # address is always the one derived from the key.
        canonical = self._store.public_address_for(key)
        if address != canonical:
            logger.debug("Store returned %s, using canonical %s", address, canonical)
        return PublishedImage(key=key, address=canonical, content_type=PNG_CONTENT_TYPE)
