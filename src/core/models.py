from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


class RaffleColour(str, Enum):
    # Declaration order is the enumeration order used for display and tie-breaks
    RED = "Red"
    BLUE = "Blue"
    GREEN = "Green"
    YELLOW = "Yellow"
    ORANGE = "Orange"
    PURPLE = "Purple"
    PINK = "Pink"
    WHITE = "White"


COLOURS = list(RaffleColour)


class RaffleTicket(BaseModel):
    id: int
    number: str
    colour: RaffleColour

    @field_validator('number')
    @classmethod
    def number_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Ticket number cannot be empty")
        return v


class Rect(BaseModel):
    """Axis aligned rectangle. Screen rects are in display pixels, sensor rects in frame pixels."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


class ScanLayout(BaseModel):
    """Geometry reported by the browser at capture time."""
    video_width: int
    video_height: int
    video_box: Rect
    guide_box: Rect


class ColourSample(BaseModel):
    r: float
    g: float
    b: float
    count: int


class RecognitionResult(BaseModel):
    text: str
    confidence: float = 0.0

    @field_validator('confidence')
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return max(0.0, min(100.0, float(v)))


class ExportPayload(BaseModel):
    payload: str
    size: int
    ticket_count: int
    oversize: bool
    svg: Optional[str] = None
