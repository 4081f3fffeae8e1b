"""Capture-upload-recognise orchestration for a single capture session."""
from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable

import httpx

from homework_scanner.domain import (
    CaptureOutcome,
    CaptureSession,
    ErrorKind,
    PipelineFailure,
    ScanError,
    SessionState,
    user_message_for,
)
from homework_scanner.domain.errors import CaptureError, ExtractionFailed, NoTextDetected, error_for
from homework_scanner.domain.sessions import ERROR_MARKER, OCR_SUCCESS_EXIT_CODE, WARNING_MARKER
from homework_scanner.infrastructure.camera import (
    CapabilityChecker,
    DeviceHint,
    FrameCapturer,
    VideoStream,
)
from homework_scanner.infrastructure.identity import Identity
from homework_scanner.infrastructure.ocr import TextExtractor
from homework_scanner.infrastructure.probe import ReachabilityProber
from homework_scanner.infrastructure.storage import BlobPublisher

logger = logging.getLogger(__name__)

# Failure kind used when a stage leaks a transport error instead of a ScanError.
_STAGE_FAILURE_KIND: dict[SessionState, ErrorKind] = {
    SessionState.IDLE: ErrorKind.DEVICE_UNAVAILABLE,
    SessionState.CAPABILITY_GRANTED: ErrorKind.CAPTURE_ERROR,
    SessionState.CAPTURED: ErrorKind.PUBLISH_ERROR,
    SessionState.PUBLISHED: ErrorKind.INVALID_PROVIDER_RESPONSE,
    SessionState.PROBED: ErrorKind.INVALID_PROVIDER_RESPONSE,
}


class ScanPipeline:
    """Runs the capture stages strictly in sequence for one session.

    Every stage error is turned into a :class:`PipelineFailure` carried on the
    returned :class:`CaptureOutcome`; callers never see a raw exception for an
    expected failure mode. The only locally recovered condition is an
    unreachable published image, which is logged as an advisory and the
    extraction is attempted anyway.
    """

    def __init__(
        self,
        *,
        publisher: BlobPublisher,
        prober: ReachabilityProber,
        extractor: TextExtractor,
        capability_checker: CapabilityChecker | None = None,
        frame_capturer: FrameCapturer | None = None,
        deadline: float | None = None,
    ) -> None:
        self._publisher = publisher
        self._prober = prober
        self._extractor = extractor
        self._capability_checker = capability_checker
        self._frame_capturer = frame_capturer or FrameCapturer()
        self._deadline = deadline

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def capture(
        self,
        session: CaptureSession,
        identity: Identity,
        *,
        hint: DeviceHint = DeviceHint.DESKTOP,
        stream: VideoStream | None = None,
    ) -> CaptureOutcome:
        """Run the full pipeline, from camera access to extracted text."""

        return await self._run(session, partial(self._capture_stages, session, identity, hint, stream))

    async def process_frame(self, session: CaptureSession, identity: Identity, frame: bytes) -> CaptureOutcome:
        """Run the pipeline for a frame captured elsewhere (e.g. by a browser)."""

        return await self._run(session, partial(self._frame_stages, session, identity, frame))

    # ------------------------------------------------------------------
    # stages
    # ------------------------------------------------------------------
    async def _capture_stages(
        self,
        session: CaptureSession,
        identity: Identity,
        hint: DeviceHint,
        stream: VideoStream | None,
    ) -> str:
        if stream is None:
            if self._capability_checker is None:
                raise CaptureError("Camera not ready. Please try again.")
            session.note(f"Requesting camera permissions ({hint.value})...")
            grant = await self._capability_checker.enable_capture(hint)
            stream = grant.stream
            session.stream = stream
            session.advance(
                SessionState.CAPABILITY_GRANTED,
                f"Camera permission granted ({stream.width}x{stream.height}, {stream.facing_mode.value})",
            )
        else:
            if not stream.active:
                raise CaptureError("Camera not ready. Please try again.")
            session.stream = stream
            session.advance(SessionState.CAPABILITY_GRANTED, "Camera already enabled")

        session.note("Taking screenshot...")
        frame = await self._frame_capturer.capture_frame(stream)
        return await self._frame_stages(session, identity, frame)

    async def _frame_stages(self, session: CaptureSession, identity: Identity, frame: bytes) -> str:
        if not frame:
            raise CaptureError("Failed to capture image")
        session.attach_frame(frame)
        session.advance(SessionState.CAPTURED, f"Screenshot captured, size: {len(frame) / 1024:.2f} KB")

        image = await self._publisher.publish(identity, frame)
        session.image = image
        session.release_frame()
        session.advance(SessionState.PUBLISHED, f"Image uploaded as {image.key}; public URL: {image.address}")

        probe = await self._prober.probe(image.address)
        if probe.reachable:
            session.advance(SessionState.PROBED, probe.describe())
        else:
            session.advance(SessionState.PROBED, probe.describe(), marker=WARNING_MARKER)

        session.note("Calling OCR API...")
        result = await self._extractor.extract_text(image.address)
        session.extraction = result
        if not result.success:
            if result.provider_status != OCR_SUCCESS_EXIT_CODE:
                raise ExtractionFailed("Failed to process image with OCR service", payload=result.raw_payload)
            raise NoTextDetected("OCR service returned no text", payload=result.raw_payload)

        session.advance(SessionState.EXTRACTED, f"Text detected ({len(result.text)} characters)")
        return result.text

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _run(self, session: CaptureSession, stages: Callable[[], Awaitable[str]]) -> CaptureOutcome:
        if session.state is not SessionState.IDLE:
            raise RuntimeError(f"session {session.session_id} has already run")

        try:
            # A missing credential fails every capture before any stage runs.
            self._extractor.ensure_configured()
            if self._deadline is not None:
                text = await asyncio.wait_for(self._guarded(session, stages), timeout=self._deadline)
            else:
                text = await self._guarded(session, stages)
        except ScanError as exc:
            return self._fail(session, exc.kind, exc.detail, exc.payload)
        except asyncio.TimeoutError:
            return self._fail(session, ErrorKind.CANCELLED, f"Deadline of {self._deadline}s exceeded")
        except asyncio.CancelledError:
            self._fail(session, ErrorKind.CANCELLED, "Capture was cancelled")
            raise

        outcome = CaptureOutcome(text=text)
        session.finish(outcome)
        logger.info("Session %s extracted %d characters", session.session_id, len(text))
        return outcome

    @staticmethod
    async def _guarded(session: CaptureSession, stages: Callable[[], Awaitable[str]]) -> str:
        # Only the deadline itself may surface as a timeout; anything a stage
        # leaks is charged to the stage that was running.
        try:
            return await stages()
        except (httpx.HTTPError, OSError) as exc:
            kind = _STAGE_FAILURE_KIND.get(session.state, ErrorKind.CAPTURE_ERROR)
            raise error_for(kind, f"{type(exc).__name__}: {exc}") from exc

    @staticmethod
    def _fail(
        session: CaptureSession,
        kind: ErrorKind,
        detail: str,
        payload: Any | None = None,
    ) -> CaptureOutcome:
        message = user_message_for(kind)
        if kind is ErrorKind.EXTRACTION_FAILED and detail:
            # The provider's own wording is the most useful thing to show.
            message = detail
        failure = PipelineFailure(kind=kind, message=message, detail=detail, payload=payload)
        session.note(f"{kind.value}: {detail}", marker=ERROR_MARKER)
        session.release_frame()
        outcome = CaptureOutcome(failure=failure)
        session.finish(outcome)
        return outcome
