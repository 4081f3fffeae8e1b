"""Process boot sequence: builds every collaborator from :class:`Settings`."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from homework_scanner.application import ScanPipeline, ScanService
from homework_scanner.core.config import Settings
from homework_scanner.infrastructure import (
    BlobPublisher,
    BlobStore,
    CapabilityChecker,
    FacingMode,
    IdentityProvider,
    InMemoryBlobStore,
    OCRSpaceClient,
    OpenCVCameraBackend,
    ReachabilityProber,
    StaticIdentityProvider,
    SupabaseBlobStore,
    SupabaseIdentityProvider,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_IDENTITY = "local-user"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@dataclass(slots=True)
class ScannerServices:
    settings: Settings
    http_client: httpx.AsyncClient
    identity_provider: IdentityProvider
    blob_store: BlobStore
    extractor: OCRSpaceClient
    pipeline: ScanPipeline
    scan_service: ScanService

    async def aclose(self) -> None:
        await self.http_client.aclose()


def build_services(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
    blob_store: BlobStore | None = None,
    identity_provider: IdentityProvider | None = None,
    with_camera: bool = False,
) -> ScannerServices:
    """Construct the collaborators shared by the API and the CLI.

    All HTTP collaborators share one ``httpx.AsyncClient`` whose lifetime is
    owned by the returned :class:`ScannerServices`.
    """

    client = http_client or httpx.AsyncClient(timeout=None, follow_redirects=True)

    if blob_store is None:
        if settings.storage_configured:
            blob_store = SupabaseBlobStore(
                settings.supabase_url or "",
                settings.supabase_anon_key or "",
                bucket=settings.bucket,
                http_client=client,
            )
        else:
            logger.warning("Supabase storage is not configured; frames are kept in memory")
            blob_store = InMemoryBlobStore(public_base=settings.public_base)

    if identity_provider is None:
        if settings.storage_configured and not settings.identity:
            identity_provider = SupabaseIdentityProvider(
                settings.supabase_url or "",
                settings.supabase_anon_key or "",
                http_client=client,
            )
        else:
            identity_provider = StaticIdentityProvider(settings.identity or DEFAULT_IDENTITY)

    extractor = OCRSpaceClient(settings.ocr_api_key, endpoint=settings.ocr_endpoint, http_client=client)

    capability_checker = None
    if with_camera:
        backend = OpenCVCameraBackend(
            {
                FacingMode.USER: settings.camera_index_user,
                FacingMode.ENVIRONMENT: settings.camera_index_environment,
            }
        )
        capability_checker = CapabilityChecker(backend)

    pipeline = ScanPipeline(
        publisher=BlobPublisher(blob_store, cache_ttl=settings.cache_ttl_seconds),
        prober=ReachabilityProber(http_client=client),
        extractor=extractor,
        capability_checker=capability_checker,
        deadline=settings.deadline_seconds,
    )
    return ScannerServices(
        settings=settings,
        http_client=client,
        identity_provider=identity_provider,
        blob_store=blob_store,
        extractor=extractor,
        pipeline=pipeline,
        scan_service=ScanService(pipeline),
    )
