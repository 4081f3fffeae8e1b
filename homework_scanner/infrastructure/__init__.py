"""Infrastructure layer exports."""

from .camera import (
    CameraBackend,
    CameraConstraints,
    CapabilityChecker,
    DeviceHint,
    FacingMode,
    FrameCapturer,
    OpenCVCameraBackend,
    VideoStream,
)
from .identity import Identity, IdentityProvider, StaticIdentityProvider, SupabaseIdentityProvider
from .ocr import TextExtractor
from .ocrspace import OCRSpaceClient
from .probe import ProbeResult, ReachabilityProber
from .storage import BlobPublisher, BlobStore, InMemoryBlobStore, SupabaseBlobStore

__all__ = [
    "BlobPublisher",
    "BlobStore",
    "CameraBackend",
    "CameraConstraints",
    "CapabilityChecker",
    "DeviceHint",
    "FacingMode",
    "FrameCapturer",
    "Identity",
    "IdentityProvider",
    "InMemoryBlobStore",
    "OCRSpaceClient",
    "OpenCVCameraBackend",
    "ProbeResult",
    "ReachabilityProber",
    "StaticIdentityProvider",
    "SupabaseBlobStore",
    "SupabaseIdentityProvider",
    "TextExtractor",
    "VideoStream",
]
