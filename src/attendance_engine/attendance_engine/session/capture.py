from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Union

import cv2

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_JPEG_QUALITY
from ..core.enums import CaptureFailure
from ..core.exceptions import CaptureError

logger = logging.getLogger(__name__)

CameraSource = Union[int, str]


@dataclass(frozen=True)
class CapturedImage:
    """One JPEG-encoded still frame."""

    jpeg: bytes
    captured_at: datetime

    def as_data_url(self) -> str:
        return "data:image/jpeg;base64," + base64.b64encode(self.jpeg).decode("ascii")


class CaptureController:
    """Owns the camera device for one capture dialog.

    Pure device I/O: knows nothing about sessions or records.
    """

    def __init__(
        self,
        source: CameraSource = 0,
        *,
        device_factory: Callable[[CameraSource], Any] = cv2.VideoCapture,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        clock: Callable[[], datetime] = now_local,
    ):
        self._source = source
        self._device_factory = device_factory
        self._jpeg_quality = int(jpeg_quality)
        self._clock = clock
        self._device: Optional[Any] = None

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def open(self) -> None:
        if self._device is not None:
            return
        try:
            device = self._device_factory(self._source)
        except cv2.error as exc:
            raise CaptureError(CaptureFailure.DEVICE_UNAVAILABLE, f"Camera {self._source!r} failed: {exc}") from exc
        if not device.isOpened():
            device.release()
            raise CaptureError(CaptureFailure.DEVICE_UNAVAILABLE, f"Camera {self._source!r} is not available")
        self._device = device
        logger.debug("Camera %r opened", self._source)

    def capture(self) -> CapturedImage:
        if self._device is None:
            raise CaptureError(CaptureFailure.DEVICE_UNAVAILABLE, "Camera is not open")

        ok, frame = self._device.read()
        if not ok or frame is None or frame.size == 0:
            raise CaptureError(CaptureFailure.EMPTY_FRAME, "Camera returned no frame")

        ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self._jpeg_quality])
        if not ok:
            raise CaptureError(CaptureFailure.EMPTY_FRAME, "Frame could not be encoded")
        return CapturedImage(jpeg=buffer.tobytes(), captured_at=self._clock())

    def close(self) -> None:
        device, self._device = self._device, None
        if device is not None:
            device.release()
            logger.debug("Camera %r released", self._source)

    def __enter__(self) -> "CaptureController":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
