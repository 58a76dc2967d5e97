from enum import Enum


class DeviceErrorKind(str, Enum):
    DENIED = "permission-denied"
    NOT_FOUND = "no-device-found"
    OTHER = "other"


class DeviceError(Exception):
    """Camera acquisition failed. Fatal to the current flow until the user retries."""

    def __init__(self, kind: DeviceErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message

    def user_message(self) -> str:
        if self.kind == DeviceErrorKind.DENIED:
            return "Camera permission denied. Please allow camera access in your browser settings."
        if self.kind == DeviceErrorKind.NOT_FOUND:
            return "No camera found on this device."
        return f"Camera error: {self.message or 'Camera access failed'}"


def classify_device_error(message: str) -> DeviceError:
    """Maps a raw browser error string onto a DeviceError."""
    message = message or "Camera access failed"
    if "Permission denied" in message or "NotAllowedError" in message:
        return DeviceError(DeviceErrorKind.DENIED, message)
    if "NotFoundError" in message:
        return DeviceError(DeviceErrorKind.NOT_FOUND, message)
    return DeviceError(DeviceErrorKind.OTHER, message)


class RecognitionFailure(Exception):
    """The OCR engine could not produce a result."""


class TicketValidationError(ValueError):
    pass


class CapacityExceeded(Exception):
    """The export payload does not fit in a single QR symbol."""
