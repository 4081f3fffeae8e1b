"""Error taxonomy for the capture pipeline."""
from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "PermissionDenied"
    DEVICE_UNAVAILABLE = "DeviceUnavailable"
    CAPTURE_ERROR = "CaptureError"
    NOT_AUTHENTICATED = "NotAuthenticated"
    PUBLISH_ERROR = "PublishError"
    UNREACHABLE = "Unreachable"
    INVALID_INPUT = "InvalidInput"
    MISCONFIGURED = "Misconfigured"
    INVALID_PROVIDER_RESPONSE = "InvalidProviderResponse"
    EXTRACTION_FAILED = "ExtractionFailed"
    NO_TEXT_DETECTED = "NoTextDetected"
    CANCELLED = "Cancelled"


class ScanError(RuntimeError):
    """Raised by a pipeline stage; carries the failure kind and diagnostics."""

    kind: ErrorKind = ErrorKind.CAPTURE_ERROR

    def __init__(self, detail: str, *, payload: Any | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.payload = payload


class PermissionDenied(ScanError):
    kind = ErrorKind.PERMISSION_DENIED


class DeviceUnavailable(ScanError):
    kind = ErrorKind.DEVICE_UNAVAILABLE


class CaptureError(ScanError):
    kind = ErrorKind.CAPTURE_ERROR


class NotAuthenticated(ScanError):
    kind = ErrorKind.NOT_AUTHENTICATED


class PublishError(ScanError):
    kind = ErrorKind.PUBLISH_ERROR


class InvalidInput(ScanError):
    kind = ErrorKind.INVALID_INPUT


class Misconfigured(ScanError):
    kind = ErrorKind.MISCONFIGURED


class InvalidProviderResponse(ScanError):
    kind = ErrorKind.INVALID_PROVIDER_RESPONSE


class ExtractionFailed(ScanError):
    kind = ErrorKind.EXTRACTION_FAILED


class NoTextDetected(ScanError):
    kind = ErrorKind.NO_TEXT_DETECTED


class Cancelled(ScanError):
    kind = ErrorKind.CANCELLED


_ERROR_TYPES: dict[ErrorKind, type[ScanError]] = {
    cls.kind: cls
    for cls in (
        PermissionDenied,
        DeviceUnavailable,
        CaptureError,
        NotAuthenticated,
        PublishError,
        InvalidInput,
        Misconfigured,
        InvalidProviderResponse,
        ExtractionFailed,
        NoTextDetected,
        Cancelled,
    )
}


def error_for(kind: ErrorKind, detail: str, *, payload: Any | None = None) -> ScanError:
    """Build the stage error matching ``kind``."""

    error = _ERROR_TYPES.get(kind, ScanError)(detail, payload=payload)
    error.kind = kind
    return error


# One short message per failure kind; this is all the user ever sees.
USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.PERMISSION_DENIED: (
        "Camera access was denied. Please enable camera permissions in your browser settings."
    ),
    ErrorKind.DEVICE_UNAVAILABLE: "Could not access camera. Make sure your device has a working camera.",
    ErrorKind.CAPTURE_ERROR: "Failed to capture image. Please retake the photo.",
    ErrorKind.NOT_AUTHENTICATED: "You must be logged in to scan.",
    ErrorKind.PUBLISH_ERROR: "Failed to upload image. Please try again.",
    ErrorKind.UNREACHABLE: "The uploaded image could not be reached.",
    ErrorKind.INVALID_INPUT: "Invalid image URL format.",
    ErrorKind.MISCONFIGURED: "The text recognition service is not configured. Please contact support.",
    ErrorKind.INVALID_PROVIDER_RESPONSE: "Invalid response from OCR service.",
    ErrorKind.EXTRACTION_FAILED: "Failed to process image with OCR service.",
    ErrorKind.NO_TEXT_DETECTED: "No text detected. Try adjusting the lighting and camera position.",
    ErrorKind.CANCELLED: "The scan took too long and was cancelled. Please retake the photo.",
}


def user_message_for(kind: ErrorKind) -> str:
    return USER_MESSAGES[kind]


__all__ = [
    "Cancelled",
    "CaptureError",
    "DeviceUnavailable",
    "ErrorKind",
    "ExtractionFailed",
    "InvalidInput",
    "InvalidProviderResponse",
    "Misconfigured",
    "NoTextDetected",
    "NotAuthenticated",
    "PermissionDenied",
    "PublishError",
    "ScanError",
    "USER_MESSAGES",
    "error_for",
    "user_message_for",
]
