import json
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import cv2
import numpy as np

from src.core.errors import DeviceError, DeviceErrorKind, classify_device_error
from src.core.models import Rect, ScanLayout

logger = logging.getLogger(__name__)


class JavaScriptBridge:
    """Runs the camera helpers from camera_js in the browser of one client."""

    def __init__(self, client=None):
        self.client = client

    def _target(self):
        if self.client is not None:
            return self.client
        from nicegui import ui
        return ui

    async def evaluate(self, code: str, timeout: float = 5.0) -> Any:
        return await self._target().run_javascript(code, timeout=timeout)

    def fire(self, code: str):
        """Sends code without waiting for a result."""
        self._target().run_javascript(code)


@dataclass
class VideoHandle:
    width: int
    height: int


def decode_data_url(data_url: Optional[str]):
    """Decodes a 'data:image/...;base64,' URL into a BGR frame, or None."""
    if not data_url or ',' not in data_url:
        return None
    _, encoded = data_url.split(',', 1)
    try:
        content = base64.b64decode(encoded)
    except ValueError as e:
        logger.error(f"Invalid frame data: {e}")
        return None
    buffer = np.frombuffer(content, dtype=np.uint8)
    if buffer.size == 0:
        return None
    return cv2.imdecode(buffer, cv2.IMREAD_COLOR)


class DeviceSession:
    """
    Owns the camera stream of one video element.

    Every successful acquire is matched by exactly one stop in the browser;
    release is idempotent and also cancels an acquire that is still pending.
    """

    def __init__(self, bridge: JavaScriptBridge, video_id: str, timeout: float = 20.0):
        self.bridge = bridge
        self.video_id = video_id
        self.timeout = timeout
        self.handle: Optional[VideoHandle] = None
        self._pending = False
        self._generation = 0

    @property
    def is_active(self) -> bool:
        return self.handle is not None

    async def acquire(self, constraints: Dict[str, Any]) -> VideoHandle:
        if self.handle is not None or self._pending:
            # Re-acquire (retry) must never leave the previous stream running
            self.release()

        self._generation += 1
        generation = self._generation
        self._pending = True
        logger.info(f"Acquiring camera for '{self.video_id}'")

        try:
            result = await self.bridge.evaluate(
                f'raffleStartCamera({json.dumps(self.video_id)}, {json.dumps(constraints)})',
                timeout=self.timeout,
            )
        except (TimeoutError, RuntimeError) as e:
            if generation == self._generation:
                self._pending = False
                self._stop_stream()
            raise DeviceError(DeviceErrorKind.OTHER, f"Camera did not start: {e}") from e

        if generation != self._generation:
            # Released while we were waiting; the stream that just opened must not leak
            self._stop_stream()
            raise DeviceError(DeviceErrorKind.OTHER, "Camera released before it became ready")

        self._pending = False
        if not result or not result.get('ok'):
            error = classify_device_error((result or {}).get('error'))
            logger.error(f"Camera acquisition failed ({error.kind.value}): {error.message}")
            raise error

        self.handle = VideoHandle(width=int(result.get('width', 0)), height=int(result.get('height', 0)))
        logger.info(f"Camera ready at {self.handle.width}x{self.handle.height}")
        return self.handle

    def release(self):
        if self.handle is None and not self._pending:
            return
        self._generation += 1
        self._pending = False
        self.handle = None
        self._stop_stream()
        logger.info(f"Camera released for '{self.video_id}'")

    def _stop_stream(self):
        try:
            self.bridge.fire(f'raffleStopCamera({json.dumps(self.video_id)})')
        except RuntimeError as e:
            # Client already gone; the browser drops its tracks with the page
            logger.warning(f"Could not stop camera stream: {e}")

    async def grab_frame(self):
        """Draws the current video frame at native resolution and returns it as a BGR array."""
        if self.handle is None:
            return None
        data_url = await self.bridge.evaluate(f'raffleCaptureFrame({json.dumps(self.video_id)})', timeout=self.timeout)
        return decode_data_url(data_url)

    async def get_layout(self, guide_id: str) -> Optional[ScanLayout]:
        """Current on-screen geometry of the video element and the scan guide."""
        data = await self.bridge.evaluate(
            f'raffleScanLayout({json.dumps(self.video_id)}, {json.dumps(guide_id)})',
            timeout=self.timeout,
        )
        if not data:
            return None
        return ScanLayout(
            video_width=data['videoWidth'],
            video_height=data['videoHeight'],
            video_box=Rect(**data['video']),
            guide_box=Rect(**data['guide']),
        )
