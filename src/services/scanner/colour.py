import math
import logging
from typing import List, Optional, Tuple

from src.core.constants import COLOUR_RGB, EDGE_SAMPLES, EDGE_INSET, FALLBACK_COLOUR
from src.core.models import RaffleColour, Rect, ColourSample, COLOURS

logger = logging.getLogger(__name__)


def edge_sample_points(rect: Rect, frame_width: int, frame_height: int,
                       samples: int = EDGE_SAMPLES, inset: int = EDGE_INSET) -> List[Tuple[int, int]]:
    """
    Points along all four edges of the rect, inset from the border so the
    sample sees the ticket rather than the background. Clamped into the frame.
    """
    if rect.width <= 0 or rect.height <= 0 or frame_width <= 0 or frame_height <= 0:
        return []

    points = []
    # Top and bottom edges
    for i in range(samples):
        x = rect.left + (rect.width * i) / samples
        points.append((x, rect.top + inset))
        points.append((x, rect.top + rect.height - inset))

    # Left and right edges
    for i in range(samples):
        y = rect.top + (rect.height * i) / samples
        points.append((rect.left + inset, y))
        points.append((rect.left + rect.width - inset, y))

    clamped = []
    for x, y in points:
        px = min(max(int(math.floor(x + 0.5)), 0), frame_width - 1)
        py = min(max(int(math.floor(y + 0.5)), 0), frame_height - 1)
        clamped.append((px, py))
    return clamped


def sample_colour(frame, rect: Rect) -> Optional[ColourSample]:
    """Averages the edge points of rect. Frames are BGR arrays (OpenCV order)."""
    height, width = frame.shape[:2]
    points = edge_sample_points(rect, width, height)
    if not points:
        return None

    total_r = total_g = total_b = 0.0
    for x, y in points:
        b, g, r = frame[y, x][:3]
        total_r += float(r)
        total_g += float(g)
        total_b += float(b)

    count = len(points)
    return ColourSample(r=total_r / count, g=total_g / count, b=total_b / count, count=count)


def nearest_colour(sample: ColourSample) -> Tuple[RaffleColour, float]:
    """Closest reference colour by Euclidean RGB distance. Ties go to the earlier colour."""
    best = FALLBACK_COLOUR
    best_distance = math.inf
    for colour in COLOURS:
        r, g, b = COLOUR_RGB[colour]
        distance = math.sqrt((sample.r - r) ** 2 + (sample.g - g) ** 2 + (sample.b - b) ** 2)
        if distance < best_distance:
            best_distance = distance
            best = colour
    return best, best_distance


def detect_colour(frame, rect: Rect) -> RaffleColour:
    """Ticket colour inside rect. Falls back to White for degenerate geometry."""
    sample = sample_colour(frame, rect)
    if sample is None:
        logger.warning(f"No colour sample points for rect {rect}, using {FALLBACK_COLOUR.value}")
        return FALLBACK_COLOUR

    colour, distance = nearest_colour(sample)
    logger.debug(f"Detected colour {colour.value} (distance {distance:.1f}) from {sample}")
    return colour
