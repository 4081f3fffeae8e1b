"""Camera access and still-frame capture backed by OpenCV."""
from __future__ import annotations

import asyncio
import logging
import os
import re
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import cv2
import numpy as np

from homework_scanner.domain.errors import CaptureError, DeviceUnavailable, PermissionDenied

logger = logging.getLogger(__name__)

_MOBILE_AGENT = re.compile(r"iPhone|iPad|iPod|Android", re.IGNORECASE)


class DeviceHint(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"

    @classmethod
    def from_user_agent(cls, user_agent: str | None) -> "DeviceHint":
        if user_agent and _MOBILE_AGENT.search(user_agent):
            return cls.MOBILE
        return cls.DESKTOP


class FacingMode(str, Enum):
    USER = "user"
    ENVIRONMENT = "environment"


@dataclass(frozen=True, slots=True)
class DimensionRange:
    ideal: int
    min: int


@dataclass(frozen=True, slots=True)
class CameraConstraints:
    width: DimensionRange
    height: DimensionRange
    facing_mode: FacingMode

    @classmethod
    def for_device(cls, hint: DeviceHint) -> "CameraConstraints":
        facing = FacingMode.ENVIRONMENT if hint is DeviceHint.MOBILE else FacingMode.USER
        return cls(
            width=DimensionRange(ideal=2560, min=1280),
            height=DimensionRange(ideal=1440, min=720),
            facing_mode=facing,
        )

    def as_media_constraints(self) -> dict[str, Any]:
        """Shape understood by the browser ``getUserMedia`` API."""

        return {
            "width": {"ideal": self.width.ideal, "min": self.width.min},
            "height": {"ideal": self.height.ideal, "min": self.height.min},
            "facingMode": self.facing_mode.value,
        }


class FrameReader(Protocol):
    def read(self) -> tuple[bool, np.ndarray | None]: ...

    def release(self) -> None: ...


class VideoStream:
    """An open camera feed.

    After a still is taken the stream is frozen: it keeps showing the captured
    frame until :meth:`resume` is called by an explicit retake.
    """

    def __init__(self, reader: FrameReader, *, width: int, height: int, facing_mode: FacingMode) -> None:
        self._reader: FrameReader | None = reader
        self.width = width
        self.height = height
        self.facing_mode = facing_mode
        self._frozen = False

    @property
    def active(self) -> bool:
        return self._reader is not None

    @property
    def frozen(self) -> bool:
        return self._frozen

    def read_still(self) -> np.ndarray:
        if self._reader is None:
            raise CaptureError("Camera not ready. Please try again.")
        if self._frozen:
            raise CaptureError("Stream is showing a captured frame; retake before capturing again")
        ok, frame = self._reader.read()
        if not ok or frame is None or frame.size == 0:
            raise CaptureError("Failed to capture image")
        self._frozen = True
        return frame

    def resume(self) -> None:
        self._frozen = False

    def close(self) -> None:
        if self._reader is not None:
            self._reader.release()
            self._reader = None


class CameraBackend(Protocol):
    def open(self, constraints: CameraConstraints) -> VideoStream: ...


class OpenCVCameraBackend:
    """Opens local cameras through ``cv2.VideoCapture``."""

    def __init__(
        self,
        device_indexes: dict[FacingMode, int] | None = None,
        *,
        api_preference: int = cv2.CAP_ANY,
    ) -> None:
        self._device_indexes = device_indexes or {FacingMode.USER: 0, FacingMode.ENVIRONMENT: 0}
        self._api_preference = api_preference

    @staticmethod
    def _check_device_node(index: int) -> None:
        if not sys.platform.startswith("linux"):
            return
        node = Path(f"/dev/video{index}")
        if not node.exists():
            raise DeviceUnavailable(f"No camera device at {node}")
        if not os.access(node, os.R_OK | os.W_OK):
            raise PermissionDenied(f"Camera device {node} is not accessible to this process")

    def open(self, constraints: CameraConstraints) -> VideoStream:
        index = self._device_indexes.get(constraints.facing_mode, 0)
        self._check_device_node(index)

        try:
            capture = cv2.VideoCapture(index, self._api_preference)
        except PermissionError as exc:
            raise PermissionDenied(f"Camera access was denied: {exc}") from exc
        except cv2.error as exc:
            raise DeviceUnavailable(f"Could not open camera {index}: {exc}") from exc

        if not capture.isOpened():
            capture.release()
            raise DeviceUnavailable(f"Could not open camera {index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width.ideal)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height.ideal)
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

        # Some backends report 0 until the first frame; only reject known sizes.
        if (width and width < constraints.width.min) or (height and height < constraints.height.min):
            capture.release()
            raise DeviceUnavailable(
                f"Camera {index} negotiated {width}x{height}, below the "
                f"{constraints.width.min}x{constraints.height.min} minimum"
            )

        logger.info("Opened camera %s (%s) at %sx%s", index, constraints.facing_mode.value, width, height)
        return VideoStream(capture, width=width, height=height, facing_mode=constraints.facing_mode)


@dataclass(slots=True)
class CapabilityGrant:
    stream: VideoStream
    constraints: CameraConstraints


class CapabilityChecker:
    def __init__(self, backend: CameraBackend) -> None:
        self._backend = backend

    async def enable_capture(self, hint: DeviceHint) -> CapabilityGrant:
        constraints = CameraConstraints.for_device(hint)
        logger.debug("Requesting camera with %s", constraints.as_media_constraints())
        stream = await asyncio.to_thread(self._backend.open, constraints)
        return CapabilityGrant(stream=stream, constraints=constraints)


def encode_png(frame: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", frame)
    if not ok:
        raise CaptureError("Failed to encode captured frame as PNG")
    return buffer.tobytes()


class FrameCapturer:
    """Takes one still from a live stream and returns it as PNG bytes."""

    async def capture_frame(self, stream: VideoStream | None) -> bytes:
        if stream is None:
            raise CaptureError("Camera not ready. Please try again.")
        frame = await asyncio.to_thread(stream.read_still)
        data = await asyncio.to_thread(encode_png, frame)
        if not data:
            raise CaptureError("Failed to capture image")
        return data
