"""Domain layer definitions."""

from .errors import ErrorKind, ScanError, user_message_for
from .sessions import (
    CaptureOutcome,
    CaptureSession,
    DiagnosticTrace,
    ExtractionResult,
    PipelineFailure,
    PublishedImage,
    SessionState,
    TraceEntry,
)

__all__ = [
    "CaptureOutcome",
    "CaptureSession",
    "DiagnosticTrace",
    "ErrorKind",
    "ExtractionResult",
    "PipelineFailure",
    "PublishedImage",
    "ScanError",
    "SessionState",
    "TraceEntry",
    "user_message_for",
]
