from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Callable, Optional

import cv2


logger = logging.getLogger("second_sight.hud.camera")


class CameraError(Exception):
    pass


class CameraCapture:
    """Owns the camera device and grabs single frames as JPEG data URLs.

    OpenCV calls block, so they run in a worker thread.
    """

    def __init__(
        self,
        device_index: int = 0,
        jpeg_quality: int = 90,
        capture_factory: Callable[[int], Any] = cv2.VideoCapture,
    ) -> None:
        self.device_index = device_index
        self.jpeg_quality = jpeg_quality
        self._capture_factory = capture_factory
        self._capture: Optional[Any] = None

    @property
    def is_running(self) -> bool:
        return self._capture is not None

    async def start(self) -> None:
        if self._capture is not None:
            return
        capture = await asyncio.to_thread(self._capture_factory, self.device_index)
        if not capture.isOpened():
            capture.release()
            raise CameraError(f"Camera permission denied or device {self.device_index} unavailable")
        self._capture = capture
        logger.info("Camera %s started", self.device_index)

    def _grab(self) -> str:
        capture = self._capture
        if capture is None:
            raise CameraError("Camera is not ready yet.")
        ok, frame = capture.read()
        if not ok or frame is None or frame.size == 0 or not frame.shape[0] or not frame.shape[1]:
            raise CameraError("Waiting for camera to warm up.")
        ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        if not ok:
            raise CameraError("Frame encoding failed.")
        encoded = base64.b64encode(buffer.tobytes()).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"

    async def capture_frame(self) -> str:
        return await asyncio.to_thread(self._grab)

    async def stop(self) -> None:
        capture, self._capture = self._capture, None
        if capture is not None:
            await asyncio.to_thread(capture.release)
            logger.info("Camera %s released", self.device_index)

    async def __aenter__(self) -> "CameraCapture":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()
