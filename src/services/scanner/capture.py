import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from src.core.errors import DeviceError, DeviceErrorKind, TicketValidationError
from src.core.models import RaffleColour, Rect
from src.services.scanner.colour import detect_colour
from src.services.scanner.geometry import sensor_rect_for_layout
from src.services.scanner.ocr import TextRecognitionAdapter

logger = logging.getLogger(__name__)

UNREADABLE_MESSAGE = "Could not read ticket number. Try adjusting angle or lighting."


class ScanStatus(str, Enum):
    IDLE = "idle"
    CAMERA_LOADING = "camera-loading"
    READY = "ready"
    CAPTURING = "capturing"
    PROCESSING = "processing"
    CONFIRM = "confirm"
    ERROR = "error"
    CLOSED = "closed"


# --- States: each carries only the data valid while in it ---

@dataclass(frozen=True)
class Idle:
    status = ScanStatus.IDLE


@dataclass(frozen=True)
class CameraLoading:
    status = ScanStatus.CAMERA_LOADING


@dataclass(frozen=True)
class Ready:
    message: Optional[str] = None
    status = ScanStatus.READY


@dataclass(frozen=True)
class Capturing:
    status = ScanStatus.CAPTURING


@dataclass(frozen=True)
class Processing:
    colour: RaffleColour
    status = ScanStatus.PROCESSING


@dataclass(frozen=True)
class Confirm:
    number: str
    colour: RaffleColour
    confidence: float = 0.0
    status = ScanStatus.CONFIRM


@dataclass(frozen=True)
class Failed:
    kind: DeviceErrorKind
    message: str
    status = ScanStatus.ERROR


@dataclass(frozen=True)
class Closed:
    status = ScanStatus.CLOSED


ScanState = Union[Idle, CameraLoading, Ready, Capturing, Processing, Confirm, Failed, Closed]


# --- Events ---

@dataclass(frozen=True)
class StartCamera:
    pass


@dataclass(frozen=True)
class CameraReady:
    pass


@dataclass(frozen=True)
class CameraFailed:
    error: DeviceError


@dataclass(frozen=True)
class CaptureRequested:
    pass


@dataclass(frozen=True)
class FrameCaptured:
    colour: RaffleColour


@dataclass(frozen=True)
class RecognitionSucceeded:
    text: str
    confidence: float = 0.0


@dataclass(frozen=True)
class RecognitionFailed:
    message: str = UNREADABLE_MESSAGE


@dataclass(frozen=True)
class EditNumber:
    number: str


@dataclass(frozen=True)
class SelectColour:
    colour: RaffleColour


@dataclass(frozen=True)
class ConfirmRequested:
    pass


@dataclass(frozen=True)
class RetryRequested:
    pass


@dataclass(frozen=True)
class CloseRequested:
    pass


def transition(state: ScanState, event) -> ScanState:
    """
    Pure transition function of the scanner. Events that make no sense in the
    current state leave it unchanged, which is how a second capture during
    capturing/processing is ignored.
    """
    if isinstance(state, Closed):
        return state
    if isinstance(event, CloseRequested):
        return Closed()

    if isinstance(state, (Idle, Failed)) and isinstance(event, StartCamera):
        return CameraLoading()

    if isinstance(state, CameraLoading):
        if isinstance(event, CameraReady):
            return Ready()
        if isinstance(event, CameraFailed):
            return Failed(kind=event.error.kind, message=event.error.user_message())
        return state

    if isinstance(state, Ready):
        if isinstance(event, CaptureRequested):
            return Capturing()
        if isinstance(event, RetryRequested):
            return Ready()
        return state

    if isinstance(state, Capturing):
        if isinstance(event, FrameCaptured):
            return Processing(colour=event.colour)
        if isinstance(event, RecognitionFailed):
            return Ready(message=event.message)
        if isinstance(event, CameraFailed):
            return Failed(kind=event.error.kind, message=event.error.user_message())
        return state

    if isinstance(state, Processing):
        if isinstance(event, RecognitionSucceeded):
            if event.text:
                return Confirm(number=event.text, colour=state.colour, confidence=event.confidence)
            return Ready(message=UNREADABLE_MESSAGE)
        if isinstance(event, RecognitionFailed):
            return Ready(message=event.message)
        return state

    if isinstance(state, Confirm):
        if isinstance(event, EditNumber):
            return replace(state, number=event.number)
        if isinstance(event, SelectColour):
            return replace(state, colour=event.colour)
        if isinstance(event, ConfirmRequested):
            return Ready() if state.number.strip() else state
        if isinstance(event, RetryRequested):
            return Ready()
        return state

    return state


class ScannerFlow:
    """
    Drives one scanner session: camera, capture, colour, OCR, confirm.

    Collaborators are injected so the flow runs without a browser or engine.
    Closing from any state releases the camera.
    """

    def __init__(self, device, on_scan_complete: Callable[[str, RaffleColour], Any],
                 recognizer: Optional[TextRecognitionAdapter] = None,
                 classify: Callable[[Any, Rect], RaffleColour] = detect_colour,
                 constraints: Optional[Dict[str, Any]] = None,
                 guide_id: str = 'scan-guide'):
        self.device = device
        self.on_scan_complete = on_scan_complete
        self.recognizer = recognizer or TextRecognitionAdapter()
        self.classify = classify
        self.constraints = constraints or {}
        self.guide_id = guide_id
        self.state: ScanState = Idle()
        self._listeners: List[Callable[[ScanState], None]] = []

    @property
    def status(self) -> ScanStatus:
        return self.state.status

    @property
    def progress(self) -> int:
        return self.recognizer.progress

    def register_listener(self, callback: Callable[[ScanState], None]):
        self._listeners.append(callback)

    def dispatch(self, event) -> ScanState:
        previous = self.state
        self.state = transition(previous, event)
        if self.state != previous:
            logger.debug(f"Scanner {previous.status.value} -> {self.state.status.value} on {type(event).__name__}")
            for cb in list(self._listeners):
                try:
                    cb(self.state)
                except Exception as e:
                    logger.error(f"Scanner listener failed: {e}")
        return self.state

    async def open(self):
        """Starts (or retries) the camera."""
        if not isinstance(self.dispatch(StartCamera()), CameraLoading):
            return

        try:
            await self.device.acquire(self.constraints)
        except DeviceError as e:
            if isinstance(self.state, Closed):
                return
            self.dispatch(CameraFailed(e))
            return

        if isinstance(self.state, Closed):
            # Closed while the camera was starting
            self.device.release()
            return
        self.dispatch(CameraReady())

    retry_camera = open

    async def capture(self) -> bool:
        """Freezes a frame and runs colour + OCR on the scan guide. Ignored unless ready."""
        if not isinstance(self.state, Ready):
            logger.debug(f"Ignoring capture while {self.status.value}")
            return False
        self.dispatch(CaptureRequested())

        try:
            layout = await self.device.get_layout(self.guide_id)
            frame = await self.device.grab_frame()
        except DeviceError as e:
            self.dispatch(CameraFailed(e))
            return False
        except Exception as e:
            # Timeouts, a lost client or a malformed layout from the browser
            logger.error(f"Frame capture failed: {e}")
            self.dispatch(RecognitionFailed(f"Capture failed: {e}"))
            return False

        if not isinstance(self.state, Capturing):
            return False
        if frame is None or layout is None:
            self.dispatch(RecognitionFailed("Camera not ready. Please try again."))
            return False

        try:
            height, width = frame.shape[:2]
            layout = layout.model_copy(update={'video_width': width, 'video_height': height})
            rect = sensor_rect_for_layout(layout)
            colour = self.classify(frame, rect)
        except Exception as e:
            logger.error(f"Could not locate scan region: {e}")
            self.dispatch(RecognitionFailed(f"Capture failed: {e}"))
            return False

        self.dispatch(FrameCaptured(colour))

        result = await self.recognizer.recognize(frame, rect)
        if not isinstance(self.state, Processing):
            # Closed while recognising
            return False

        if result and result.text:
            self.dispatch(RecognitionSucceeded(result.text, result.confidence))
            return True

        if self.recognizer.error:
            logger.warning(f"Recognition failed: {self.recognizer.error}")
        self.dispatch(RecognitionFailed())
        return False

    def edit_number(self, number: str):
        self.dispatch(EditNumber(number))

    def select_colour(self, colour: RaffleColour):
        self.dispatch(SelectColour(RaffleColour(colour)))

    def confirm(self) -> Optional[str]:
        """Emits the pending ticket. Returns an error message if the collection refused it."""
        state = self.state
        if not isinstance(state, Confirm) or not state.number.strip():
            return None

        try:
            self.on_scan_complete(state.number.strip(), state.colour)
        except TicketValidationError as e:
            logger.warning(f"Scanned ticket rejected: {e}")
            return str(e)

        self.dispatch(ConfirmRequested())
        return None

    def retry(self):
        """Discards the pending result (or transient message)."""
        self.dispatch(RetryRequested())

    def close(self):
        self.dispatch(CloseRequested())
        self.device.release()
