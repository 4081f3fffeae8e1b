"""Domain entities for a single capture action."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import ErrorKind

logger = logging.getLogger(__name__)

ERROR_MARKER = "ERROR"
WARNING_MARKER = "WARNING"

PNG_CONTENT_TYPE = "image/png"
OCR_SUCCESS_EXIT_CODE = 1


class SessionState(str, Enum):
    IDLE = "Idle"
    CAPABILITY_GRANTED = "CapabilityGranted"
    CAPTURED = "Captured"
    PUBLISHED = "Published"
    PROBED = "Probed"
    EXTRACTED = "Extracted"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in {SessionState.EXTRACTED, SessionState.FAILED}


@dataclass(frozen=True, slots=True)
class TraceEntry:
    timestamp: datetime
    message: str
    marker: str | None = None

    @property
    def is_error(self) -> bool:
        return self.marker == ERROR_MARKER

    def __str__(self) -> str:
        if self.marker:
            return f"{self.marker}: {self.message}"
        return self.message

    def render(self) -> str:
        return f"{self.timestamp.isoformat(timespec='milliseconds')} {self}"


@dataclass(frozen=True, slots=True)
class DiagnosticTrace:
    """Append-only, session-scoped log of pipeline progress.

    The trace is immutable: ``append`` returns a new trace so a session can
    hand out snapshots without worrying about later mutation.
    """

    entries: tuple[TraceEntry, ...] = ()

    def append(self, message: str, *, marker: str | None = None) -> "DiagnosticTrace":
        entry = TraceEntry(timestamp=datetime.now(timezone.utc), message=message, marker=marker)
        return DiagnosticTrace(self.entries + (entry,))

    def errors(self) -> tuple[TraceEntry, ...]:
        return tuple(entry for entry in self.entries if entry.is_error)

    def warnings(self) -> tuple[TraceEntry, ...]:
        return tuple(entry for entry in self.entries if entry.marker == WARNING_MARKER)

    def lines(self) -> list[str]:
        return [str(entry) for entry in self.entries]

    def rendered(self) -> list[str]:
        return [entry.render() for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True, slots=True)
class PublishedImage:
    """A stored frame; the session only ever keeps the address."""

    key: str
    address: str
    content_type: str = PNG_CONTENT_TYPE


@dataclass(slots=True)
class ExtractionResult:
    """Outcome of one OCR call."""

    text: str
    provider_status: int | None
    raw_payload: dict[str, Any] | None = None
    http_status: int | None = None

    @property
    def success(self) -> bool:
        return self.provider_status == OCR_SUCCESS_EXIT_CODE and bool(self.text.strip())


@dataclass(frozen=True, slots=True)
class PipelineFailure:
    kind: ErrorKind
    message: str
    detail: str
    payload: Any | None = None


@dataclass(frozen=True, slots=True)
class CaptureOutcome:
    """Terminal result handed back to the caller of a capture."""

    text: str | None = None
    failure: PipelineFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def to_payload(self) -> dict[str, str]:
        if self.failure is not None:
            return {"error": self.failure.message}
        return {"text": self.text or ""}


@dataclass(slots=True)
class CaptureSession:
    """Transient state for one user capture action."""

    identity: str
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: SessionState = SessionState.IDLE
    captured_at: datetime | None = None
    frame: bytes | None = None
    image: PublishedImage | None = None
    extraction: ExtractionResult | None = None
    outcome: CaptureOutcome | None = None
    trace: DiagnosticTrace = field(default_factory=DiagnosticTrace)
    # Live camera handle; kept across retakes, never part of a snapshot.
    stream: Any | None = None

    def note(self, message: str, *, marker: str | None = None) -> TraceEntry:
        self.trace = self.trace.append(message, marker=marker)
        level = {ERROR_MARKER: logging.ERROR, WARNING_MARKER: logging.WARNING}.get(marker or "", logging.INFO)
        logger.log(level, "[%s] %s", self.session_id[:8], message)
        return self.trace.entries[-1]

    def advance(self, state: SessionState, message: str, *, marker: str | None = None) -> TraceEntry:
        if self.state.is_terminal:
            raise RuntimeError(f"session {self.session_id} already finished in state {self.state.value}")
        self.state = state
        return self.note(message, marker=marker)

    def attach_frame(self, frame: bytes) -> None:
        self.frame = frame
        self.captured_at = datetime.now(timezone.utc)

    def release_frame(self) -> None:
        self.frame = None

    def finish(self, outcome: CaptureOutcome) -> None:
        self.outcome = outcome
        self.state = SessionState.EXTRACTED if outcome.ok else SessionState.FAILED

    def snapshot(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "session_id": self.session_id,
            "state": self.state.value,
            "captured_at": self.captured_at.isoformat() if self.captured_at else None,
            "image_url": self.image.address if self.image else None,
            "trace": self.trace.lines(),
        }
        if self.outcome is not None:
            data.update(self.outcome.to_payload())
        return data

    def reset(self) -> "CaptureSession":
        """Return a fresh session for the same identity (retake)."""

        return replace(
            self,
            session_id=uuid.uuid4().hex,
            state=SessionState.IDLE,
            captured_at=None,
            frame=None,
            image=None,
            extraction=None,
            outcome=None,
            trace=DiagnosticTrace(),
        )
