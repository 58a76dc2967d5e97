import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import cv2
from nicegui import run

from src.core.errors import DeviceError
from src.core.models import RaffleTicket
from src.services.transfer import decode_tickets

logger = logging.getLogger(__name__)

MALFORMED_MESSAGE = "QR code does not contain tickets. Make sure it was exported from this app."


class QrSymbolDecoder:
    """OpenCV QR detector. decode() returns the payload string or None."""

    def __init__(self):
        self.detector = cv2.QRCodeDetector()

    def decode(self, frame) -> Optional[str]:
        if frame is None:
            return None
        try:
            data, points, _ = self.detector.detectAndDecode(frame)
        except cv2.error as e:
            logger.debug(f"QR detection error: {e}")
            return None
        return data or None


class ImportStatus(str, Enum):
    IDLE = "idle"
    CAMERA_LOADING = "camera-loading"
    SCANNING = "scanning"
    SUCCESS = "success"
    ERROR = "error"
    CLOSED = "closed"


class ImportFlow:
    """
    Polls camera frames for a QR transfer payload until one decodes to tickets.

    The poll runs as one asyncio task that sleeps between attempts; cancel_scan()
    stops it and every exit path releases the camera.
    """

    def __init__(self, device, on_import: Callable[[List[RaffleTicket]], Any],
                 decoder: Optional[QrSymbolDecoder] = None,
                 constraints: Optional[Dict[str, Any]] = None,
                 poll_interval: float = 0.1,
                 max_malformed: int = 30):
        self.device = device
        self.on_import = on_import
        self.decoder = decoder or QrSymbolDecoder()
        self.constraints = constraints or {}
        self.poll_interval = poll_interval
        self.max_malformed = max_malformed

        self.status = ImportStatus.IDLE
        self.error: Optional[str] = None
        self.tickets: Optional[List[RaffleTicket]] = None
        self.malformed_count = 0
        self.frames_scanned = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Callable[[ImportStatus], None]] = []

    def register_listener(self, callback: Callable[[ImportStatus], None]):
        self._listeners.append(callback)

    def _set_status(self, status: ImportStatus):
        if status == self.status:
            return
        logger.debug(f"Import {self.status.value} -> {status.value}")
        self.status = status
        for cb in list(self._listeners):
            try:
                cb(status)
            except Exception as e:
                logger.error(f"Import listener failed: {e}")

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def open(self):
        """Starts the camera and the poll. Also used for retry and scan-again."""
        if self.status == ImportStatus.CLOSED:
            return
        self.cancel_scan()
        self.error = None
        self.tickets = None
        self.malformed_count = 0
        self.frames_scanned = 0
        self._set_status(ImportStatus.CAMERA_LOADING)

        try:
            await self.device.acquire(self.constraints)
        except DeviceError as e:
            if self.status == ImportStatus.CLOSED:
                return
            self.error = e.user_message()
            self._set_status(ImportStatus.ERROR)
            return

        if self.status == ImportStatus.CLOSED:
            self.device.release()
            return

        self._set_status(ImportStatus.SCANNING)
        self._task = asyncio.create_task(self._scan_loop())

    scan_again = open
    retry = open

    async def _scan_loop(self):
        try:
            while self.status == ImportStatus.SCANNING:
                frame = await self.device.grab_frame()
                if self.status != ImportStatus.SCANNING:
                    return

                if frame is not None:
                    self.frames_scanned += 1
                    data = await run.io_bound(self.decoder.decode, frame)
                    if self.status != ImportStatus.SCANNING:
                        return
                    if data and self._handle_payload(data):
                        return

                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"QR scan loop failed: {e}")
            self.error = f"Scan failed: {e}"
            self.device.release()
            self._set_status(ImportStatus.ERROR)

    def _handle_payload(self, data: str) -> bool:
        """Returns True when the loop should stop."""
        tickets = decode_tickets(data)
        if tickets:
            logger.info(f"QR import found {len(tickets)} tickets")
            self.tickets = tickets
            self.device.release()
            self._set_status(ImportStatus.SUCCESS)
            return True

        self.malformed_count += 1
        logger.warning(f"QR payload without tickets ({self.malformed_count}/{self.max_malformed}): {data[:40]!r}")
        if self.malformed_count >= self.max_malformed:
            self.error = MALFORMED_MESSAGE
            self.device.release()
            self._set_status(ImportStatus.ERROR)
            return True
        return False

    def cancel_scan(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def join(self):
        """Waits for the poll task to finish (tests and shutdown)."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def confirm(self) -> int:
        """Hands the decoded tickets to the collection. Returns how many were passed on."""
        if self.status != ImportStatus.SUCCESS or not self.tickets:
            return 0
        tickets: Sequence[RaffleTicket] = self.tickets
        self.on_import(list(tickets))
        return len(tickets)

    def close(self):
        self._set_status(ImportStatus.CLOSED)
        self.cancel_scan()
        self.device.release()
