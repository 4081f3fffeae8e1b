"""Application service tracking the current capture session per caller."""
from __future__ import annotations

import logging

from homework_scanner.domain import CaptureSession
from homework_scanner.infrastructure.identity import Identity

from .pipeline import ScanPipeline

logger = logging.getLogger(__name__)


class ScanService:
    """Coordinates capture sessions for each caller.

    Each caller has at most one current session. Starting a new capture
    replaces it; a pipeline that finishes after being replaced only ever wrote
    to its own session object, and that result is dropped.
    """

    def __init__(self, pipeline: ScanPipeline) -> None:
        self._pipeline = pipeline
        self._sessions: dict[str, CaptureSession] = {}

    # ------------------------------------------------------------------
    # session lifecycle
    # ------------------------------------------------------------------
    def start(self, identity: Identity) -> CaptureSession:
        previous = self._sessions.get(identity.user_id)
        if previous is not None and not previous.state.is_terminal:
            logger.info("Superseding in-flight session %s for %s", previous.session_id, identity.user_id)
        session = CaptureSession(identity=identity.user_id)
        self._sessions[identity.user_id] = session
        return session

    def current(self, user_id: str) -> CaptureSession | None:
        return self._sessions.get(user_id)

    def is_current(self, session: CaptureSession) -> bool:
        return self._sessions.get(session.identity) is session

    def retake(self, user_id: str) -> bool:
        """Discard the caller's session, trace and result."""

        return self._sessions.pop(user_id, None) is not None

    # ------------------------------------------------------------------
    # capture entry points
    # ------------------------------------------------------------------
    async def submit_frame(self, identity: Identity, frame: bytes) -> CaptureSession | None:
        """Run the pipeline on an uploaded frame.

        Returns ``None`` when a newer capture replaced this one while it was
        in flight.
        """

        session = self.start(identity)
        await self._pipeline.process_frame(session, identity, frame)
        return self._settle(session)

    def _settle(self, session: CaptureSession) -> CaptureSession | None:
        if self.is_current(session):
            return session
        logger.info("Discarding result of superseded session %s", session.session_id)
        return None
