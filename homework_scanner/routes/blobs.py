from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from homework_scanner.bootstrap import ScannerServices
from homework_scanner.infrastructure import InMemoryBlobStore

from .deps import get_services

router = APIRouter(prefix="/blobs", tags=["blobs"])


@router.api_route("/{key:path}", methods=["GET", "HEAD"], include_in_schema=False)
async def read_blob(key: str, services: ScannerServices = Depends(get_services)) -> Response:
    """Serve frames published to the in-memory store."""
    store = services.blob_store
    if not isinstance(store, InMemoryBlobStore):
        raise HTTPException(status_code=404, detail="blob serving is disabled")
    stored = store.get(key)
    if stored is None:
        raise HTTPException(status_code=404, detail="blob not found")
    return Response(
        content=stored.data,
        media_type=stored.content_type,
        headers={"cache-control": f"max-age={stored.cache_ttl}"},
    )
