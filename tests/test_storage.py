from __future__ import annotations

import asyncio
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from homework_scanner.domain.errors import PublishError
from homework_scanner.infrastructure.identity import Identity
from homework_scanner.infrastructure.storage import (
    BlobPublisher,
    InMemoryBlobStore,
    SupabaseBlobStore,
    build_storage_key,
)

FRAME = b"\x89PNG\r\n\x1a\nframe-bytes"


def test_build_storage_key_namespaces_by_identity():
    assert build_storage_key("u-1", 1700000000123) == "u-1/scan_1700000000123.png"


def test_publish_uses_millisecond_key_and_png_content_type():
    store = InMemoryBlobStore(public_base="https://blobs.example.test/api/blobs")
    publisher = BlobPublisher(store, cache_ttl=3600, clock=lambda: 1700000000.1234)

    image = asyncio.run(publisher.publish(Identity("u-1"), FRAME))

    assert image.key == "u-1/scan_1700000000123.png"
    assert image.address == "https://blobs.example.test/api/blobs/u-1/scan_1700000000123.png"
    assert image.content_type == "image/png"
    stored = store.get(image.key)
    assert stored is not None
    assert stored.data == FRAME
    assert stored.content_type == "image/png"
    assert stored.cache_ttl == 3600


def test_same_millisecond_upload_overwrites():
    store = InMemoryBlobStore()
    publisher = BlobPublisher(store, clock=lambda: 1700000000.0)

    first = asyncio.run(publisher.publish(Identity("u-1"), FRAME))
    second = asyncio.run(publisher.publish(Identity("u-1"), FRAME + b"-newer"))

    assert first.key == second.key
    assert store.keys() == [first.key]
    assert store.get(first.key).data == FRAME + b"-newer"


def test_empty_frame_is_rejected():
    publisher = BlobPublisher(InMemoryBlobStore())

    with pytest.raises(PublishError):
        asyncio.run(publisher.publish(Identity("u-1"), b""))


def test_supabase_upload_sends_upsert_and_cache_headers():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["headers"] = dict(request.headers)
        captured["body"] = request.content
        return httpx.Response(200, json={"Key": "scans/u-1/scan_1.png"})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    store = SupabaseBlobStore("https://proj.supabase.co/", "anon", http_client=http_client)
    publisher = BlobPublisher(store, cache_ttl=3600, clock=lambda: 0.001)

    image = asyncio.run(publisher.publish(Identity("u-1", access_token="user-jwt"), FRAME))

    assert captured["url"] == "https://proj.supabase.co/storage/v1/object/scans/u-1/scan_1.png"
    headers = captured["headers"]
    assert headers["authorization"] == "Bearer user-jwt"
    assert headers["apikey"] == "anon"
    assert headers["content-type"] == "image/png"
    assert headers["cache-control"] == "max-age=3600"
    assert headers["x-upsert"] == "true"
    assert captured["body"] == FRAME
    assert image.address == "https://proj.supabase.co/storage/v1/object/public/scans/u-1/scan_1.png"


def test_supabase_upload_failure_reports_provider_reason():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"statusCode": "403", "error": "Unauthorized", "message": "new row violates row-level security policy"})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    store = SupabaseBlobStore("https://proj.supabase.co", "anon", http_client=http_client)

    with pytest.raises(PublishError) as excinfo:
        asyncio.run(BlobPublisher(store).publish(Identity("u-1"), FRAME))

    assert "row-level security" in excinfo.value.detail


def test_supabase_transport_failure_is_publish_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("dns failure", request=request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    store = SupabaseBlobStore("https://proj.supabase.co", "anon", http_client=http_client)

    with pytest.raises(PublishError):
        asyncio.run(BlobPublisher(store).publish(Identity("u-1"), FRAME))


def test_in_memory_store_uses_configured_public_base():
    from homework_scanner.bootstrap import build_services
    from homework_scanner.core.config import Settings

    settings = Settings(public_base="https://scanner.example.test:9000/api/blobs")
    services = build_services(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda _: httpx.Response(200))))

    assert isinstance(services.blob_store, InMemoryBlobStore)
    assert services.blob_store.public_address_for("u-1/scan_1.png") == (
        "https://scanner.example.test:9000/api/blobs/u-1/scan_1.png"
    )
